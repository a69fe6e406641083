"""
Entity kinds that get short keys.

The set is closed: users, workflow states, projects. Each kind knows its
key prefix and the grammar its short keys follow, so callers dispatch on
the enum instead of comparing strings.
"""

import re
from enum import Enum

# 8-4-4-4-12 hex, the shape every backend id takes
UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# Any namespaced or bare key: "u0", "pr12", "eng:s3"
SHORT_KEY_PATTERN = re.compile(r"^(?:(\w+):)?(u|s|pr)(\d+)$")


class EntityKind(Enum):
    """Entity types that use short keys."""

    USER = "user"
    STATE = "state"
    PROJECT = "project"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @property
    def key_pattern(self) -> re.Pattern[str]:
        return _KEY_PATTERNS[self]

    @property
    def namespaced(self) -> bool:
        """Whether keys of this kind carry a team namespace."""
        return self is EntityKind.STATE

    @classmethod
    def from_prefix(cls, prefix: str) -> "EntityKind":
        for kind, value in _PREFIXES.items():
            if value == prefix:
                return kind
        raise ValueError(f"Unknown short key prefix '{prefix}'")


_PREFIXES: dict[EntityKind, str] = {
    EntityKind.USER: "u",
    EntityKind.STATE: "s",
    EntityKind.PROJECT: "pr",
}

_KEY_PATTERNS: dict[EntityKind, re.Pattern[str]] = {
    EntityKind.USER: re.compile(r"^u\d+$"),
    EntityKind.STATE: re.compile(r"^(\w+:)?s\d+$"),
    EntityKind.PROJECT: re.compile(r"^pr\d+$"),
}


def looks_like_uuid(value: str) -> bool:
    return bool(UUID_PATTERN.match(value))
