"""
Types for TOON (Token-Oriented Object Notation) encoding.

TOON is the compact, schema-headed tabular text every tool returns:

    _meta{team,generated}:
      ENG,2026-01-27T12:00:00.000Z

    _users[2]{key,name,displayName,email,role}:
      u0,Alice Smith,alice,alice@example.com,
      u1,Bob Jones,bob,bob@example.com,Tech Lead
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Union

ToonScalar = Union[str, int, float, bool, None]
ToonValue = Union[ToonScalar, date, datetime, list, tuple]
ToonRow = Mapping[str, Any]


@dataclass
class ToonSchema:
    """
    Section name plus ordered field names.

    Lookup sections are prefixed with an underscore (_users, _states) to set
    them apart from primary data (issues, comments).
    """

    name: str
    fields: list[str]


@dataclass
class ToonSection:
    """A schema and the rows encoded under it."""

    schema: ToonSchema
    items: list[ToonRow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToonSection":
        schema = data["schema"]
        return cls(
            schema=ToonSchema(name=schema["name"], fields=list(schema["fields"])),
            items=list(data.get("items") or []),
        )


@dataclass
class ToonMeta:
    """The _meta section: one row of response-level context."""

    fields: list[str]
    values: dict[str, ToonScalar | datetime | date] = field(default_factory=dict)


@dataclass
class ToonResponse:
    """Metadata, then lookup sections, then data sections."""

    meta: ToonMeta | None = None
    lookups: list[ToonSection] = field(default_factory=list)
    data: list[ToonSection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToonResponse":
        """Deserialize from dict (e.g. a JSON file handed to the CLI)."""
        meta = data.get("meta")
        return cls(
            meta=ToonMeta(fields=list(meta["fields"]), values=dict(meta.get("values") or {}))
            if meta else None,
            lookups=[ToonSection.from_dict(s) for s in data.get("lookups") or []],
            data=[ToonSection.from_dict(s) for s in data.get("data") or []],
        )


@dataclass
class EncodingOptions:
    """
    Encoder configuration.

    Truncation limits are in characters; None means no limit.
    """

    indent: str = "  "
    include_empty_sections: bool = True
    title_max_length: int | None = 500
    desc_max_length: int | None = 3000
    default_max_length: int | None = None
    truncation_indicator: str = "... [truncated]"
    # Project slug id (or its hash suffix) -> short key, for collapsing project URLs
    project_slug_map: dict[str, str] | None = None

    @classmethod
    def from_settings(cls) -> "EncodingOptions":
        from trackline.config import get_settings

        settings = get_settings()
        return cls(
            title_max_length=settings.title_max_length,
            desc_max_length=settings.desc_max_length,
        )


@dataclass
class EncodingResult:
    """Outcome of safe_encode."""

    success: bool
    output: str | None = None
    error: str | None = None
