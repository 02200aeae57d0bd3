"""Block-grammar template engine for notification rendering.

Templates use a small ``{{...}}`` grammar stored verbatim with the template:

- ``{{a.b.c}}``: dotted-path lookup, left in place when the path is missing
- ``{{#if path}}...{{/if}}``: kept when the value is truthy
- ``{{#each path}}...{{/each}}``: repeated per list item with ``@index``,
  ``@first`` and ``@last`` bound and the item's fields merged into scope
- ``{{format path "spec"}}``: date, number and string formatting

Blocks are evaluated first, then formatters, then simple variables.
"""

import json
import math
import re
import threading
import time
from collections.abc import Callable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from dateutil import parser as date_parser

from courier.modules.notification.domain.enums import TemplateFormat

# Constants
DEFAULT_CACHE_TTL_SECONDS = 300.0

_PATH = r"[a-zA-Z0-9_.@]+"
EACH_PATTERN = re.compile(r"\{\{#each\s+(" + _PATH + r")\s*\}\}(.*?)\{\{/each\}\}", re.DOTALL)
IF_PATTERN = re.compile(r"\{\{#if\s+(" + _PATH + r")\s*\}\}(.*?)\{\{/if\}\}", re.DOTALL)
FORMAT_PATTERN = re.compile(r"\{\{format\s+(" + _PATH + r')\s+"([^"]+)"\s*\}\}')
VARIABLE_PATTERN = re.compile(r"\{\{\s*(" + _PATH + r")\s*\}\}")

DATE_TOKENS = ("YYYY", "MM", "DD", "HH", "mm", "ss")
NUMBER_SPECS = frozenset({"currency", "percent", "decimal"})
STRING_SPECS = frozenset({"uppercase", "lowercase", "capitalize", "title"})
CENTS = Decimal("0.01")
WHOLE = Decimal("1")

_MISSING = object()


class RenderCache:
    """Thread-safe in-memory cache of rendered output with a fixed expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize render cache.

        Args:
            ttl_seconds: Lifetime of each entry
            clock: Monotonic time source
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                value, expires_at = entry
                if expires_at > self._clock():
                    self._hits += 1
                    return value
                del self._entries[key]
            self._misses += 1
            return None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }


def to_text(value: Any) -> str:
    """Render a resolved value as template output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


def is_truthy(value: Any) -> bool:
    """Truthiness used by ``{{#if}}``; whitespace-only strings are falsy."""
    if value is None or value is _MISSING:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, list | tuple | dict | set):
        return len(value) > 0
    return bool(value)


def resolve_path(context: dict[str, Any], path: str) -> Any:
    """Walk a dotted path through nested mappings and sequences."""
    current: Any = context
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return _MISSING
            current = current[key]
        elif isinstance(current, list | tuple) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _round_half_up(value: Decimal, exponent: Decimal) -> Decimal:
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


class ValueFormatter:
    """Applies ``{{format path "spec"}}`` specs to values."""

    def format(self, value: Any, spec: str) -> str:
        if value is None or value is _MISSING:
            return ""

        if isinstance(value, datetime | date):
            return self.format_date(value, spec)

        if isinstance(value, bool):
            return to_text(value)

        if isinstance(value, int | float):
            return self.format_number(value, spec)

        if isinstance(value, str):
            if spec.lower() in STRING_SPECS:
                return self.format_string(value, spec)
            if any(token in spec for token in DATE_TOKENS):
                parsed = self._parse_date(value)
                if parsed is not None:
                    return self.format_date(parsed, spec)
            return value

        return to_text(value)

    @staticmethod
    def _parse_date(value: str) -> datetime | None:
        try:
            return date_parser.isoparse(value)
        except (ValueError, OverflowError):
            return None

    @staticmethod
    def format_date(value: date, spec: str) -> str:
        parts = {
            "YYYY": f"{value.year:04d}",
            "MM": f"{value.month:02d}",
            "DD": f"{value.day:02d}",
            "HH": f"{getattr(value, 'hour', 0):02d}",
            "mm": f"{getattr(value, 'minute', 0):02d}",
            "ss": f"{getattr(value, 'second', 0):02d}",
        }
        result = spec
        for token in DATE_TOKENS:
            result = result.replace(token, parts[token])
        return result

    @staticmethod
    def format_number(value: float, spec: str) -> str:
        kind = spec.lower()
        if kind not in NUMBER_SPECS or not math.isfinite(value):
            return to_text(value)
        # Halves round away from zero. currency and percent start from the
        # shortest decimal form of the value, decimal from its exact binary value.
        if kind == "currency":
            amount = _round_half_up(Decimal(repr(value)), CENTS)
            sign = "-" if amount < 0 else ""
            return f"{sign}${abs(amount):,}"
        if kind == "percent":
            return f"{_round_half_up(Decimal(repr(value)) * 100, WHOLE):,}%"
        return str(_round_half_up(Decimal(value), CENTS))

    @staticmethod
    def format_string(value: str, spec: str) -> str:
        kind = spec.lower()
        if kind == "uppercase":
            return value.upper()
        if kind == "lowercase":
            return value.lower()
        if kind == "capitalize":
            return value[:1].upper() + value[1:].lower()
        if kind == "title":
            return re.sub(r"\w\S*", lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), value)
        return value


class ContentPostProcessor:
    """Cleans rendered output according to the channel template format."""

    SCRIPT_PATTERN = re.compile(
        r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
    )
    IFRAME_PATTERN = re.compile(
        r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE
    )
    EVENT_HANDLER_PATTERN = re.compile(r'on\w+="[^"]*"', re.IGNORECASE)

    def process(self, content: str, content_format: TemplateFormat) -> str:
        if content_format == TemplateFormat.HTML:
            return self.sanitize_html(content)
        if content_format == TemplateFormat.MARKDOWN:
            return self.render_markdown(content)
        return content.strip()

    def sanitize_html(self, html: str) -> str:
        html = self.SCRIPT_PATTERN.sub("", html)
        html = self.IFRAME_PATTERN.sub("", html)
        html = self.EVENT_HANDLER_PATTERN.sub("", html)
        return html.strip()

    @staticmethod
    def render_markdown(markdown: str) -> str:
        markdown = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", markdown)
        markdown = re.sub(r"\*(.*?)\*", r"<em>\1</em>", markdown)
        markdown = re.sub(r"`(.*?)`", r"<code>\1</code>", markdown)
        markdown = markdown.replace("\n", "<br>")
        return markdown.strip()


class TextTemplateEngine:
    """Evaluates the ``{{...}}`` template grammar against a context."""

    def __init__(
        self,
        formatter: ValueFormatter | None = None,
        post_processor: ContentPostProcessor | None = None,
    ):
        self.formatter = formatter or ValueFormatter()
        self.post_processor = post_processor or ContentPostProcessor()

    def render(self, template_string: str, context: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template_string: Template text
            context: Variables, system variables included

        Returns:
            Rendered text; unresolved simple variables are kept literally
        """
        result = self._render_loops(template_string, context)
        result = self._render_conditionals(result, context)
        result = self._render_formatters(result, context)
        return self._render_variables(result, context)

    def render_content(
        self, template_string: str, context: dict[str, Any], content_format: TemplateFormat
    ) -> str:
        """Render and post-process for the given output format."""
        return self.post_processor.process(self.render(template_string, context), content_format)

    def _render_loops(self, template_string: str, context: dict[str, Any]) -> str:
        def replace(match: re.Match) -> str:
            items = resolve_path(context, match.group(1))
            if not isinstance(items, list | tuple):
                return ""

            body = match.group(2)
            rendered = []
            last = len(items) - 1
            for index, item in enumerate(items):
                scope = dict(context)
                if isinstance(item, dict):
                    scope.update(item)
                scope["this"] = item
                scope["@index"] = index
                scope["@first"] = index == 0
                scope["@last"] = index == last
                result = self._render_conditionals(body, scope)
                result = self._render_formatters(result, scope)
                rendered.append(self._render_variables(result, scope))
            return "".join(rendered)

        return EACH_PATTERN.sub(replace, template_string)

    @staticmethod
    def _render_conditionals(template_string: str, context: dict[str, Any]) -> str:
        return IF_PATTERN.sub(
            lambda m: m.group(2) if is_truthy(resolve_path(context, m.group(1))) else "",
            template_string,
        )

    def _render_formatters(self, template_string: str, context: dict[str, Any]) -> str:
        return FORMAT_PATTERN.sub(
            lambda m: self.formatter.format(resolve_path(context, m.group(1)), m.group(2)),
            template_string,
        )

    @staticmethod
    def _render_variables(template_string: str, context: dict[str, Any]) -> str:
        def replace(match: re.Match) -> str:
            value = resolve_path(context, match.group(1))
            return match.group(0) if value is _MISSING else to_text(value)

        return VARIABLE_PATTERN.sub(replace, template_string)

    @staticmethod
    def extract_variables(template_string: str, context: dict[str, Any]) -> list[str]:
        """Root names of simple variables that the context can resolve."""
        used: list[str] = []
        for match in VARIABLE_PATTERN.finditer(template_string):
            root = match.group(1).split(".")[0]
            if root in context and root not in used:
                used.append(root)
        return used

    @staticmethod
    def has_unresolved_placeholders(rendered: str) -> bool:
        return "{{" in rendered
