"""Tests for TemplateRenderingService."""

import pytest

from courier.core.config import RenderingConfig
from courier.modules.notification.application.dto import (
    RenderedTemplate,
    RenderingContext,
    RenderingFailure,
)
from courier.modules.notification.application.services import TemplateRenderingService
from courier.modules.notification.domain.aggregates import NotificationTemplate
from courier.modules.notification.domain.enums import (
    ChannelType,
    TemplateFormat,
    VariableType,
)
from courier.modules.notification.domain.errors import TemplateRenderingError
from courier.modules.notification.domain.value_objects import (
    ChannelTemplate,
    TemplateVariable,
    VariableValidation,
)


@pytest.fixture
def order_template():
    return NotificationTemplate.create(
        name="Order shipped",
        description="Shipping confirmation",
        template_type="workflow_status",
        created_by="admin-1",
        variables=[
            TemplateVariable(name="customer", var_type=VariableType.OBJECT),
            TemplateVariable(name="items", var_type=VariableType.OBJECT),
            TemplateVariable(name="total", var_type=VariableType.NUMBER),
            TemplateVariable(name="shippedAt", var_type=VariableType.DATE),
            TemplateVariable(
                name="tier",
                required=False,
                validation=VariableValidation(options=["gold", "silver"]),
            ),
        ],
        channel_templates=[
            ChannelTemplate(
                channel=ChannelType.EMAIL,
                subject="  Order for {{customer.name}}  ",
                body=(
                    "{{#each items}}{{@index}}. {{name}} x{{qty}}\n{{/each}}"
                    '{{#if tier}}Tier: {{format tier "uppercase"}}\n{{/if}}'
                    'Total: {{format total "currency"}}\n'
                    'Shipped: {{format shippedAt "YYYY-MM-DD"}}\n'
                    "Ref: {{@templateName}}"
                ),
            ),
        ],
    )


@pytest.fixture
def order_context():
    return RenderingContext(
        variables={
            "customer": {"name": "Ada"},
            "items": [{"name": "Pen", "qty": 2}, {"name": "Ink", "qty": 1}],
            "total": 12.5,
            "shippedAt": "2024-05-01T10:00:00+00:00",
        }
    )


class TestRenderTemplate:
    """Test suite for render_template."""

    @pytest.mark.asyncio
    async def test_full_grammar(self, rendering_service, order_template, order_context):
        rendered = await rendering_service.render_template(
            order_template, "email", order_context
        )

        assert rendered.subject == "Order for Ada"
        assert rendered.body == (
            "0. Pen x2\n1. Ink x1\n"
            "Total: $12.50\n"
            "Shipped: 2024-05-01\n"
            "Ref: Order shipped"
        )
        assert rendered.format == TemplateFormat.TEXT

    @pytest.mark.asyncio
    async def test_metadata(self, rendering_service, order_template, order_context):
        rendered = await rendering_service.render_template(
            order_template, ChannelType.EMAIL, order_context
        )

        assert rendered.metadata["template_id"] == order_template.id
        assert rendered.metadata["template_version"] == 1
        assert rendered.metadata["rendering_time"] >= 0
        assert rendered.metadata["variables_used"] == ["@templateName"]

    @pytest.mark.asyncio
    async def test_defaults_are_applied(self, rendering_service, welcome_template):
        rendered = await rendering_service.render_template(
            welcome_template, "in_app", RenderingContext(variables={"userName": "Ada"})
        )

        assert rendered.body == "Hello Ada, you are on the free plan."
        assert rendered.subject == "Welcome Ada"
        assert rendered.metadata["variables_used"] == ["userName", "plan"]

    @pytest.mark.asyncio
    async def test_html_is_sanitized(self, rendering_service, welcome_template):
        rendered = await rendering_service.render_template(
            welcome_template, "email", RenderingContext(variables={"userName": "Ada"})
        )

        assert rendered.body == "<p>Hello Ada</p>"
        assert rendered.format == TemplateFormat.HTML

    @pytest.mark.asyncio
    async def test_missing_required_variable(self, rendering_service, welcome_template):
        """Rendering with an empty context names the missing variable."""
        with pytest.raises(TemplateRenderingError) as exc_info:
            await rendering_service.render_template(welcome_template, "in_app", RenderingContext())

        assert "userName" in exc_info.value.message
        assert exc_info.value.errors == ["Required variable 'userName' is missing"]

    @pytest.mark.asyncio
    async def test_invalid_option(self, rendering_service, order_template, order_context):
        context = RenderingContext(variables={**order_context.variables, "tier": "bronze"})

        with pytest.raises(TemplateRenderingError, match="must be one of: gold, silver"):
            await rendering_service.render_template(order_template, "email", context)

    @pytest.mark.asyncio
    async def test_inactive_template(self, rendering_service, welcome_template):
        welcome_template.deactivate()

        with pytest.raises(TemplateRenderingError, match="Cannot render inactive template"):
            await rendering_service.render_template(
                welcome_template, "in_app", RenderingContext(variables={"userName": "Ada"})
            )

    @pytest.mark.asyncio
    async def test_disabled_channel(self, rendering_service, welcome_template):
        welcome_template.disable_channel_template("sms")

        with pytest.raises(TemplateRenderingError, match="Template for channel 'sms' is disabled"):
            await rendering_service.render_template(
                welcome_template, "sms", RenderingContext(variables={"userName": "Ada"})
            )

    @pytest.mark.asyncio
    async def test_missing_channel(self, rendering_service, welcome_template):
        with pytest.raises(TemplateRenderingError, match="No template found for channel 'push'"):
            await rendering_service.render_template(
                welcome_template, "push", RenderingContext(variables={"userName": "Ada"})
            )


class TestRenderCaching:
    """Test suite for the render cache."""

    @pytest.mark.asyncio
    async def test_second_render_is_served_from_cache(self, rendering_service, welcome_template):
        """Rendering the same input twice returns identical output from the cache."""
        context = RenderingContext(variables={"userName": "Ada"})

        first = await rendering_service.render_template(welcome_template, "in_app", context)
        second = await rendering_service.render_template(welcome_template, "in_app", context)

        assert second.body == first.body
        assert second.subject == first.subject
        assert second is first
        assert rendering_service.get_cache_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_new_version_misses_cache(self, rendering_service, welcome_template):
        context = RenderingContext(variables={"userName": "Ada"})
        first = await rendering_service.render_template(welcome_template, "in_app", context)

        welcome_template.update_channel_template("in_app", body="Hey {{userName}}")
        welcome_template.create_version("editor-1")
        second = await rendering_service.render_template(welcome_template, "in_app", context)

        assert first.body != second.body
        assert second.body == "Hey Ada"
        assert second.metadata["template_version"] == 2

    @pytest.mark.asyncio
    async def test_invalid_context_is_never_cached(self, rendering_service, welcome_template):
        with pytest.raises(TemplateRenderingError):
            await rendering_service.render_template(welcome_template, "in_app", RenderingContext())

        assert rendering_service.get_cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_reuse(self, welcome_template):
        service = TemplateRenderingService(config=RenderingConfig(cache_ttl_seconds=0))
        context = RenderingContext(variables={"userName": "Ada"})

        first = await service.render_template(welcome_template, "in_app", context)
        second = await service.render_template(welcome_template, "in_app", context)

        assert second is not first
        assert second.body == first.body

    @pytest.mark.asyncio
    async def test_clear_cache(self, rendering_service, welcome_template):
        await rendering_service.render_template(
            welcome_template, "in_app", RenderingContext(variables={"userName": "Ada"})
        )

        rendering_service.clear_cache()

        assert rendering_service.get_cache_stats()["size"] == 0


class TestBulkRendering:
    @pytest.mark.asyncio
    async def test_failures_are_reported_per_item(self, rendering_service, welcome_template):
        results = await rendering_service.render_bulk_templates(
            welcome_template,
            "in_app",
            [
                RenderingContext(variables={"userName": "Ada"}),
                RenderingContext(),
                RenderingContext(variables={"userName": "Grace"}),
            ],
        )

        assert isinstance(results[0], RenderedTemplate)
        assert results[1] == RenderingFailure(
            type="validation",
            message="Template validation failed: Required variable 'userName' is missing",
        )
        assert results[2].body == "Hello Grace, you are on the free plan."

    @pytest.mark.asyncio
    async def test_template_errors(self, rendering_service, welcome_template):
        results = await rendering_service.render_bulk_templates(
            welcome_template, "push", [RenderingContext(variables={"userName": "Ada"})]
        )

        assert results[0].type == "template"


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_fills_sample_values(self, rendering_service, order_template):
        rendered = await rendering_service.preview_template(order_template, "email")

        assert "Total: $42.00" in rendered.body
        assert "Tier: GOLD" in rendered.body

    @pytest.mark.parametrize(
        "var_type,expected",
        [
            (VariableType.STRING, "Sample title"),
            (VariableType.NUMBER, 42),
            (VariableType.BOOLEAN, True),
            (VariableType.OBJECT, {"sampleKey": "sampleValue"}),
        ],
    )
    def test_sample_values(self, var_type, expected):
        variable = TemplateVariable(name="title", var_type=var_type)

        assert TemplateRenderingService.generate_sample_value(variable) == expected
