"""
TOON Encoder.

Encodes sections into TOON text: a header declaring the schema, then one
comma-separated row per item, indented two spaces.

    issues[2]{identifier,title,state,assignee,priority}:
      ENG-160,Fix login,s1,u0,p2
      ENG-161,"Dark mode, phase 2",s0,,p3

Field-specific encodings are applied by field name, so callers can pass raw
backend values (priority=2, dueDate=datetime) and get p2 / 2026-01-27.
"""

import json
import logging
import math
import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping

from trackline.toon.errors import ToonEncodingError
from trackline.toon.types import (
    EncodingOptions,
    EncodingResult,
    ToonMeta,
    ToonResponse,
    ToonRow,
    ToonSchema,
    ToonSection,
)

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = EncodingOptions()

# Raw integers in these fields get a one-letter prefix
PREFIXED_FIELDS = {"priority": "p", "estimate": "e", "cycle": "c"}

DAY_FIELDS = frozenset({"dueDate", "targetDate", "startDate", "start", "end"})
TIMESTAMP_FIELDS = frozenset({"createdAt", "updatedAt", "completedAt", "generated"})
ROUNDED_FIELDS = frozenset({"progress"})
FREE_TEXT_FIELDS = frozenset({"desc", "description", "body"})

_NEEDS_QUOTES = re.compile(r'[,"\\\r\n]')
_NEWLINES = re.compile(r"\r\n|\r|\n")
_DAY_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_HEX_SUFFIX = re.compile(r"^[a-f0-9]+$")

_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
_MULTI_SPACE = re.compile(r" {2,}")

# A markdown link to an issue URL, or a bare issue URL. One pass, so a link
# that is kept whole is never rewritten by the bare-URL branch.
_ISSUE_LINK_OR_URL = re.compile(
    r"\[(?P<text>[^\]]*)\]\(<?https?://linear\.app/[^/\s]+/issue/(?P<link_id>[A-Za-z]+-\d+)(?:/[^)>]*)?>?\)"
    r"|https?://linear\.app/[^/\s]+/issue/(?P<bare_id>[A-Za-z]+-\d+)(?:/[^\s)>\]]*)?"
)
_ISSUE_URL_IN_TEXT = re.compile(r"linear\.app/[^/\s]+/issue/([A-Za-z]+-\d+)")
_PROJECT_URL = re.compile(r"https?://linear\.app/[^/\s]+/project/(?P<slug>[A-Za-z0-9-]+)(?:/[^\s)>\]]*)?")


# =============================================================================
# Field Formatters
# =============================================================================


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _prefixed(prefix: str, value: int | float | None) -> str | None:
    if value is None:
        return None
    return f"{prefix}{_format_number(value)}"


def format_priority(priority: int | None) -> str | None:
    """format_priority(1) -> "p1"."""
    return _prefixed("p", priority)


def format_estimate(estimate: int | float | None) -> str | None:
    """format_estimate(5) -> "e5"."""
    return _prefixed("e", estimate)


def format_cycle(cycle_number: int | None) -> str | None:
    """format_cycle(5) -> "c5"."""
    return _prefixed("c", cycle_number)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with milliseconds: 2026-01-27T12:00:00.000Z. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def normalize_timestamp(value: str) -> str:
    """Re-render a parseable ISO string in canonical form; anything else is left alone."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return format_timestamp(parsed)


def format_day(value: Any) -> Any:
    """Reduce a date, datetime or ISO string to YYYY-MM-DD; other values pass through."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and _DAY_PREFIX.match(value):
        return value[:10]
    return value


def strip_markdown_images(text: str | None) -> str | None:
    """
    Replace markdown images with a count.

    "See ![shot](https://...) here" -> "See here [1 image]"
    """
    if not text:
        return text
    count = len(_MARKDOWN_IMAGE.findall(text))
    if count == 0:
        return text

    result = _MULTI_SPACE.sub(" ", _MARKDOWN_IMAGE.sub("", text))
    suffix = "[1 image]" if count == 1 else f"[{count} images]"
    if not result.strip():
        return suffix
    return f"{result.rstrip()} {suffix}"


def _collapse_issue_link(match: re.Match) -> str:
    bare_id = match.group("bare_id")
    if bare_id:
        return bare_id.upper()

    identifier = match.group("link_id").upper()
    text = match.group("text")
    if text.upper() == identifier:
        return identifier
    # Cross-team references come back as [url](<url>)
    in_text = _ISSUE_URL_IN_TEXT.search(text)
    if in_text and in_text.group(1).upper() == identifier:
        return identifier
    # Custom link text is kept as written
    return match.group(0)


def strip_issue_urls(text: str | None) -> str | None:
    """
    Collapse issue URLs to bare identifiers.

    - [ENG-12](https://linear.app/ws/issue/ENG-12/slug) -> ENG-12
    - https://linear.app/ws/issue/ENG-12/slug -> ENG-12
    - [the login bug](https://linear.app/ws/issue/ENG-12) is left alone
    """
    if not text:
        return text
    return _ISSUE_LINK_OR_URL.sub(_collapse_issue_link, text)


def strip_project_urls(text: str | None, slug_map: Mapping[str, str] | None) -> str | None:
    """
    Collapse project URLs to project short keys.

    https://linear.app/ws/project/api-v2-3f2a9c1b -> pr4, matched on the full
    slug id or its hash suffix. Unknown projects keep their URL.
    """
    if not text or not slug_map:
        return text

    def collapse(match: re.Match) -> str:
        slug = match.group("slug")
        key = slug_map.get(slug)
        tail = slug.rpartition("-")[2]
        if key is None and _HEX_SUFFIX.match(tail):
            key = slug_map.get(tail)
        return key or match.group(0)

    return _PROJECT_URL.sub(collapse, text)


def truncate_text(value: str, max_length: int | None, indicator: str) -> str:
    """
    Cut value so that value + indicator fits in max_length characters.

    The cut backs off over combining marks so a base character is never
    separated from its accents.
    """
    if max_length is None or len(value) <= max_length:
        return value
    cut = max_length - len(indicator)
    if cut <= 0:
        return indicator
    while cut > 0 and unicodedata.combining(value[cut]):
        cut -= 1
    return value[:cut] + indicator


def _truncation_limit(field_name: str, options: EncodingOptions) -> int | None:
    if field_name == "title":
        return options.title_max_length
    if field_name in ("desc", "description"):
        return options.desc_max_length
    return options.default_max_length


def format_field(field_name: str, value: Any, options: EncodingOptions = DEFAULT_OPTIONS) -> Any:
    """Apply the per-field encodings before generic value encoding."""
    if value is None:
        return None

    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)

    prefix = PREFIXED_FIELDS.get(field_name)
    if prefix and is_number:
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return _prefixed(prefix, value)

    if field_name in ROUNDED_FIELDS and is_number:
        return round(value, 2) if math.isfinite(value) else None

    if field_name in DAY_FIELDS:
        value = format_day(value)
    elif field_name in TIMESTAMP_FIELDS and isinstance(value, str):
        value = normalize_timestamp(value)

    if isinstance(value, str):
        if field_name in FREE_TEXT_FIELDS:
            value = strip_issue_urls(value)
            value = strip_project_urls(value, options.project_slug_map)
            value = strip_markdown_images(value)
        value = truncate_text(
            value, _truncation_limit(field_name, options), options.truncation_indicator
        )

    return value


# =============================================================================
# Value Encoding
# =============================================================================


def _quote(text: str) -> str:
    if not _NEEDS_QUOTES.search(text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    escaped = _NEWLINES.sub(r"\\n", escaped)
    return f'"{escaped}"'


def _raw(value: Any) -> str:
    """Unquoted text form of a scalar."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value) if math.isfinite(value) else ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise ToonEncodingError(
        "UNSUPPORTED_TYPE",
        f"Cannot encode value of type {type(value).__name__}",
        hint="Flatten nested objects to scalars before encoding",
    )


def encode_value(value: Any) -> str:
    """
    Encode one value as a TOON field.

    None, NaN and infinities are empty; booleans are true/false; lists are
    joined with commas and then quoted like any other string.
    """
    if isinstance(value, (list, tuple)):
        return _quote(",".join(_raw(item) for item in value if item is not None))
    return _quote(_raw(value))


def _get_field(row: Any, field_name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(field_name)
    return getattr(row, field_name, None)


def encode_row(row: ToonRow, schema: ToonSchema, options: EncodingOptions = DEFAULT_OPTIONS) -> str:
    """Encode one row in schema field order, without the leading indent."""
    return ",".join(
        encode_value(format_field(name, _get_field(row, name), options)) for name in schema.fields
    )


def encode_section(section: ToonSection, options: EncodingOptions = DEFAULT_OPTIONS) -> str:
    """Header plus rows; "" for an empty section when empty sections are excluded."""
    schema, items = section.schema, section.items
    if not items and not options.include_empty_sections:
        return ""

    lines = [f"{schema.name}[{len(items)}]{{{','.join(schema.fields)}}}:"]
    for index, item in enumerate(items):
        try:
            lines.append(f"{options.indent}{encode_row(item, schema, options)}")
        except ToonEncodingError as e:
            e.schema_name = schema.name
            e.row_index = index
            raise
    return "\n".join(lines)


def encode_meta(meta: ToonMeta, options: EncodingOptions = DEFAULT_OPTIONS) -> str:
    header = f"_meta{{{','.join(meta.fields)}}}:"
    row = ",".join(encode_value(meta.values.get(name)) for name in meta.fields)
    return f"{header}\n{options.indent}{row}"


def encode_toon(response: ToonResponse, options: EncodingOptions = DEFAULT_OPTIONS) -> str:
    """Encode meta, then lookups, then data; sections separated by a blank line."""
    sections = []
    if response.meta is not None:
        sections.append(encode_meta(response.meta, options))
    for section in [*response.lookups, *response.data]:
        encoded = encode_section(section, options)
        if encoded:
            sections.append(encoded)
    return "\n\n".join(sections)


def encode_simple_section(
    name: str,
    fields: list[str],
    items: Iterable[ToonRow],
    options: EncodingOptions = DEFAULT_OPTIONS,
) -> str:
    """Single-section shortcut."""
    return encode_section(ToonSection(ToonSchema(name, list(fields)), list(items)), options)


# =============================================================================
# Validation & Fallback
# =============================================================================


def validate_row_against_schema(row: ToonRow, schema: ToonSchema) -> list[str]:
    """Schema fields the row does not carry at all (None-valued fields count as present)."""
    if isinstance(row, Mapping):
        return [name for name in schema.fields if name not in row]
    return [name for name in schema.fields if not hasattr(row, name)]


def safe_encode(response: ToonResponse, options: EncodingOptions = DEFAULT_OPTIONS) -> EncodingResult:
    """Validate every row against its schema, then encode. Never raises."""
    try:
        for section in [*response.lookups, *response.data]:
            for index, row in enumerate(section.items):
                missing = validate_row_against_schema(row, section.schema)
                if missing:
                    raise ToonEncodingError(
                        "FIELD_MISMATCH",
                        f"Row {index} in section '{section.schema.name}' is missing fields: "
                        f"{', '.join(missing)}",
                        hint="Ensure data objects have all fields defined in schema",
                        schema_name=section.schema.name,
                        row_index=index,
                    )
        return EncodingResult(success=True, output=encode_toon(response, options))
    except ToonEncodingError as e:
        return EncodingResult(success=False, error=e.message)


def encode_response(
    data: Any,
    response: ToonResponse,
    options: EncodingOptions = DEFAULT_OPTIONS,
) -> str:
    """
    Encode a response, falling back to JSON if encoding fails.

    The caller always gets usable text; the fallback carries the raw data.
    """
    try:
        return encode_toon(response, options)
    except Exception as e:
        logger.exception(f"TOON encoding failed, falling back to JSON: {e}")
        fallback = {"_fallback": "json", "_reason": str(e) or type(e).__name__, "data": data}
        return json.dumps(fallback, indent=2, default=str)
