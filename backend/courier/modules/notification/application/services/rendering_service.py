"""Template rendering application service.

Renders a channel of a ``NotificationTemplate`` through the block-grammar
engine, validating the context against the template's variable schema and
caching the result per template version, channel and context.
"""

import asyncio
import hashlib
import json
import time
from typing import Any

from courier.core.config import RenderingConfig
from courier.core.domain.base import utc_now
from courier.core.logging import get_logger
from courier.modules.notification.application.dto import (
    RenderedTemplate,
    RenderingContext,
    RenderingFailure,
)
from courier.modules.notification.domain.aggregates import NotificationTemplate
from courier.modules.notification.domain.enums import ChannelType, VariableType
from courier.modules.notification.domain.errors import TemplateRenderingError
from courier.modules.notification.domain.interfaces.services import (
    ITemplateRenderingService,
)
from courier.modules.notification.domain.value_objects import Channel, TemplateVariable
from courier.modules.notification.infrastructure.engines import (
    RenderCache,
    TextTemplateEngine,
)

logger = get_logger(__name__)


class TemplateRenderingService(ITemplateRenderingService):
    """Service for rendering notification templates."""

    def __init__(
        self,
        engine: TextTemplateEngine | None = None,
        cache: RenderCache | None = None,
        config: RenderingConfig | None = None,
    ):
        """Initialize rendering service.

        Args:
            engine: Template grammar engine
            cache: Render cache; built from ``config`` when omitted
            config: Rendering settings
        """
        self.config = config or RenderingConfig()
        self.engine = engine or TextTemplateEngine()
        self.cache = cache or RenderCache(ttl_seconds=self.config.cache_ttl_seconds)

    async def render_template(
        self,
        template: NotificationTemplate,
        channel: Channel | ChannelType | str,
        context: RenderingContext | None = None,
    ) -> RenderedTemplate:
        context = context or RenderingContext()
        channel_type = Channel.from_string(channel).type
        channel_template = self._get_renderable_channel_template(template, channel_type)

        errors = template.validate_variables(context.variables)
        if errors:
            logger.info(
                "Template context rejected",
                template_id=template.id,
                channel=channel_type.value,
                error_count=len(errors),
            )
            raise TemplateRenderingError(
                f"Template validation failed: {', '.join(errors)}",
                template_id=template.id,
                channel=channel_type.value,
                errors=errors,
            )

        cache_key = self._cache_key(template, channel_type, context)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        started = time.perf_counter()
        enriched = self._enrich_context(template, context)

        subject = None
        if channel_template.subject:
            subject = self.engine.render(channel_template.subject, enriched).strip()
        body = self.engine.render_content(channel_template.body, enriched, channel_template.format)

        rendered = RenderedTemplate(
            subject=subject,
            body=body,
            format=channel_template.format,
            metadata={
                "template_id": template.id,
                "template_version": template.current_version,
                "rendered_at": utc_now(),
                "variables_used": self.engine.extract_variables(channel_template.body, enriched),
                "rendering_time": time.perf_counter() - started,
            },
        )
        self.cache.set(cache_key, rendered)

        logger.debug(
            "Template rendered",
            template_id=template.id,
            channel=channel_type.value,
            rendering_time=rendered.metadata["rendering_time"],
        )
        return rendered

    async def render_bulk_templates(
        self,
        template: NotificationTemplate,
        channel: Channel | ChannelType | str,
        contexts: list[RenderingContext],
    ) -> list[RenderedTemplate | RenderingFailure]:
        semaphore = asyncio.Semaphore(self.config.bulk_concurrency)

        async def render_one(context: RenderingContext) -> RenderedTemplate | RenderingFailure:
            async with semaphore:
                try:
                    return await self.render_template(template, channel, context)
                except TemplateRenderingError as e:
                    kind = "validation" if e.errors else "template"
                    return RenderingFailure(type=kind, message=e.message)
                except Exception as e:
                    logger.exception(
                        "Unexpected rendering failure",
                        template_id=template.id,
                        error=str(e),
                    )
                    return RenderingFailure(type="rendering", message=str(e))

        return list(await asyncio.gather(*(render_one(context) for context in contexts)))

    async def preview_template(
        self,
        template: NotificationTemplate,
        channel: Channel | ChannelType | str,
        sample_variables: dict[str, Any] | None = None,
    ) -> RenderedTemplate:
        variables = dict(sample_variables or {})
        for variable in template.variables:
            if variables.get(variable.name) is None:
                variables[variable.name] = self.generate_sample_value(variable)
        return await self.render_template(
            template, channel, RenderingContext(variables=variables)
        )

    @staticmethod
    def generate_sample_value(variable: TemplateVariable) -> Any:
        if variable.var_type == VariableType.STRING:
            options = variable.validation.options if variable.validation else None
            return options[0] if options else f"Sample {variable.name}"
        if variable.var_type == VariableType.NUMBER:
            return 42
        if variable.var_type == VariableType.BOOLEAN:
            return True
        if variable.var_type == VariableType.DATE:
            return utc_now()
        if variable.var_type == VariableType.OBJECT:
            return {"sampleKey": "sampleValue"}
        return variable.default_value or f"Sample {variable.name}"

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Render cache cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    # Helpers

    @staticmethod
    def _get_renderable_channel_template(template: NotificationTemplate, channel: ChannelType):
        if not template.is_active:
            raise TemplateRenderingError(
                "Cannot render inactive template",
                template_id=template.id,
                channel=channel.value,
            )
        channel_template = template.get_channel_template(channel)
        if channel_template is None:
            raise TemplateRenderingError(
                f"No template found for channel '{channel.value}'",
                template_id=template.id,
                channel=channel.value,
            )
        if not channel_template.enabled:
            raise TemplateRenderingError(
                f"Template for channel '{channel.value}' is disabled",
                template_id=template.id,
                channel=channel.value,
            )
        return channel_template

    def _enrich_context(
        self, template: NotificationTemplate, context: RenderingContext
    ) -> dict[str, Any]:
        enriched = dict(context.variables)
        for variable in template.variables:
            if enriched.get(variable.name) is None and variable.default_value is not None:
                enriched[variable.name] = variable.default_value

        enriched["@now"] = utc_now()
        enriched["@templateId"] = template.id
        enriched["@templateName"] = template.name
        enriched["@locale"] = context.locale or self.config.default_locale
        enriched["@timezone"] = context.timezone or self.config.default_timezone
        return enriched

    @staticmethod
    def _cache_key(
        template: NotificationTemplate, channel: ChannelType, context: RenderingContext
    ) -> str:
        payload = json.dumps(
            {
                "variables": context.variables,
                "locale": context.locale,
                "timezone": context.timezone,
            },
            sort_keys=True,
            default=str,
        )
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"{template.id}:{template.current_version}:{channel.value}:{digest}"
