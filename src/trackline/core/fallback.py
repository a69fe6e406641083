"""
trackline - Fallback Key Allocator.

Some referenced entities are not in the registry: created after the last
build, guests, departed members. They still need a key so data rows and
lookup rows line up. The allocator hands out ext0, ext1, ... in first-seen
order. It lives for one response only and is never written back into the
registry.
"""

import logging
from dataclasses import dataclass, field

from trackline.core.kinds import EntityKind

logger = logging.getLogger(__name__)

EXT_PREFIX = "ext"

UNKNOWN_USER = "Unknown User"
FORMER_USER = "Former User"

PLACEHOLDER_NAMES: dict[EntityKind, str] = {
    EntityKind.USER: UNKNOWN_USER,
    EntityKind.STATE: "Unknown State",
    EntityKind.PROJECT: "Unknown Project",
}


@dataclass
class ExtEntry:
    key: str
    uuid: str
    name: str


@dataclass
class FallbackKeyAllocator:
    """
    Response-scoped ext key allocation, numbered from 0 across all kinds.

    Names come from inline names seen in the same response; without one a
    placeholder is used so an ext row never has an empty name.
    """

    inline_names: dict[EntityKind, dict[str, str]] = field(default_factory=dict)
    _entries: dict[EntityKind, dict[str, ExtEntry]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )

    def allocate(self, kind: EntityKind, uuid: str, placeholder: str | None = None) -> str:
        """ext key for a UUID; the same UUID always gets the same key."""
        entries = self._entries[kind]
        entry = entries.get(uuid)
        if entry is not None:
            return entry.key
        # One sequence across kinds: an ext key names a single entity per response
        key = f"{EXT_PREFIX}{len(self)}"
        name = self.inline_names.get(kind, {}).get(uuid) or placeholder or PLACEHOLDER_NAMES[kind]
        entries[uuid] = ExtEntry(key=key, uuid=uuid, name=name)
        logger.debug(f"FallbackKeys: {key} -> {uuid[:8]}... ({kind.value})")
        return key

    def get(self, kind: EntityKind, uuid: str) -> str | None:
        entry = self._entries[kind].get(uuid)
        return entry.key if entry else None

    def entries(self, kind: EntityKind) -> list[ExtEntry]:
        """Allocated entries in allocation order."""
        return list(self._entries[kind].values())

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())


def is_ext_key(key: str) -> bool:
    return key.startswith(EXT_PREFIX) and key[len(EXT_PREFIX):].isdigit()
