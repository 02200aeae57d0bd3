"""
Template Rendering Service Interface

Port for rendering templates into channel-ready content.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from courier.modules.notification.application.dto import (
        RenderedTemplate,
        RenderingContext,
        RenderingFailure,
    )
    from courier.modules.notification.domain.aggregates import NotificationTemplate


class ITemplateRenderingService(ABC):
    """Port for template rendering operations."""

    @abstractmethod
    async def render_template(
        self,
        template: "NotificationTemplate",
        channel: Any,
        context: "RenderingContext",
    ) -> "RenderedTemplate":
        """
        Render one channel of a template.

        Raises:
            TemplateRenderingError: If the template cannot be rendered
        """
        ...

    @abstractmethod
    async def render_bulk_templates(
        self,
        template: "NotificationTemplate",
        channel: Any,
        contexts: list["RenderingContext"],
    ) -> list["RenderedTemplate | RenderingFailure"]:
        """Render many contexts; failures are returned in place, not raised."""
        ...

    @abstractmethod
    async def preview_template(
        self,
        template: "NotificationTemplate",
        channel: Any,
        sample_variables: dict[str, Any] | None = None,
    ) -> "RenderedTemplate":
        """Render with generated sample values for unset variables."""
        ...

    @abstractmethod
    def clear_cache(self) -> None:
        """Drop all cached renders."""
        ...

    @abstractmethod
    def get_cache_stats(self) -> dict[str, Any]:
        """Cache size, hits, misses and hit rate."""
        ...
