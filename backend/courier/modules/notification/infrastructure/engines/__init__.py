"""Notification template engines.

This module contains the template grammar engine used to render notification
content, along with its value formatter, post-processor and render cache.
"""

from courier.modules.notification.infrastructure.engines.text_engine import (
    ContentPostProcessor,
    RenderCache,
    TextTemplateEngine,
    ValueFormatter,
)

__all__ = [
    "ContentPostProcessor",
    "RenderCache",
    "TextTemplateEngine",
    "ValueFormatter",
]
