"""
trackline - Short Key Registry.

Session-scoped mapping between short keys (u0, s1, eng:s0, pr2) and UUIDs.

ARCHITECTURE:
- Built once per session from a workspace dump (see registry_builder)
- Replaced wholesale on rebuild, never merged
- Extended in place when a tool creates an entity (register_new_entity)
- Translation is pure lookup: unknown or malformed keys are "not found",
  never guessed

Key grammar:
- Users:    u{n}            (global)
- States:   s{n}            (default team) or {team}:s{n} (other teams)
- Projects: pr{n}           (global)
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, NamedTuple

from trackline.core.kinds import SHORT_KEY_PATTERN, EntityKind, looks_like_uuid
from trackline.toon.errors import (
    ToonResolutionError,
    invalid_key_format_error,
    unknown_short_key_error,
)

logger = logging.getLogger(__name__)

TransportType = Literal["stdio", "http"]

# HTTP sessions share a server, so their registries go stale after 30 minutes
DEFAULT_HTTP_TTL_SECONDS = 30 * 60

_HEX_SUFFIX = re.compile(r"^[a-f0-9]+$")

DEACTIVATED = "(deactivated)"
DEPARTED = "(departed)"
UserStatusLabel = Literal["(deactivated)", "(departed)"]


# =============================================================================
# Metadata Records
# =============================================================================


@dataclass
class UserMetadata:
    name: str
    display_name: str = ""
    email: str = ""
    active: bool = True
    role: str = ""
    skills: list[str] = field(default_factory=list)
    focus_area: str = ""
    teams: list[str] = field(default_factory=list)


@dataclass
class StateMetadata:
    name: str
    type: str = ""
    team_id: str = ""  # needed to work out the key namespace


@dataclass
class ProjectMetadata:
    name: str
    state: str = ""
    icon: str | None = None
    priority: int | None = None
    progress: float | None = None  # 0..1 ratio
    lead_id: str | None = None
    target_date: str | None = None  # YYYY-MM-DD
    team_keys: list[str] = field(default_factory=list)
    slug_id: str | None = None


EntityMetadata = UserMetadata | StateMetadata | ProjectMetadata


# =============================================================================
# Key Parsing
# =============================================================================


class ParsedShortKey(NamedTuple):
    team_prefix: str | None
    kind: EntityKind
    index: int


def parse_short_key(key: str) -> ParsedShortKey | None:
    """
    Split a short key into (team prefix, kind, index).

    "eng:s0" -> ("eng", STATE, 0); "pr10" -> (None, PROJECT, 10).
    Returns None for anything that is not a short key.
    """
    if not key:
        return None
    match = SHORT_KEY_PATTERN.match(key.strip())
    if not match:
        return None
    team, prefix, index = match.groups()
    return ParsedShortKey(
        team_prefix=team.lower() if team else None,
        kind=EntityKind.from_prefix(prefix),
        index=int(index),
    )


def parse_label_key(key: str) -> tuple[str | None, str]:
    """
    Split a label reference into (team prefix, label name).

    Labels are addressed by name. Only the first colon separates, since
    label names may contain colons themselves: "eng:Area/API" -> ("eng", "Area/API").
    """
    colon = key.find(":")
    if colon > 0:
        return key[:colon].lower(), key[colon + 1:]
    return None, key


def key_sort_key(key: str) -> tuple[int, str, int]:
    """
    Ordering for lookup tables: unprefixed keys first, then namespaces
    alphabetically, numeric suffix ascending within each group.
    """
    parsed = parse_short_key(key)
    if parsed is None:
        return (2, key, 0)
    namespace = parsed.team_prefix or ""
    return (1 if namespace else 0, namespace, parsed.index)


# =============================================================================
# Registry
# =============================================================================


@dataclass
class KindTable:
    """Bidirectional key map plus metadata for one entity kind."""

    kind: EntityKind
    key_to_uuid: dict[str, str] = field(default_factory=dict)
    uuid_to_key: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, EntityMetadata] = field(default_factory=dict)

    def insert(self, key: str, uuid: str) -> None:
        self.key_to_uuid[key] = uuid
        self.uuid_to_key[uuid] = key


def _empty_tables() -> dict[EntityKind, KindTable]:
    return {kind: KindTable(kind=kind) for kind in EntityKind}


@dataclass
class Registry:
    """
    Session-scoped registry for short key <-> UUID translation.

    One KindTable per EntityKind, assembled at construction time. The
    registry is treated as immutable once stored, apart from runtime
    registration which takes the registry lock so both map directions
    change together.
    """

    workspace_id: str = ""
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    transport: TransportType | None = None
    ttl_seconds: int = DEFAULT_HTTP_TTL_SECONDS

    # Multi-team support: team UUID -> lowercase team key
    team_keys: dict[str, str] = field(default_factory=dict)
    default_team_id: str | None = None

    # Project slug ids, hash suffixes and unambiguous lowercase names -> short key
    project_slugs: dict[str, str] = field(default_factory=dict)

    tables: dict[EntityKind, KindTable] = field(default_factory=_empty_tables)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    # =========================================================================
    # Lookup Methods
    # =========================================================================

    def table(self, kind: EntityKind) -> KindTable:
        return self.tables[kind]

    def try_get_short_key(self, kind: EntityKind, uuid: str | None) -> str | None:
        """Short key for a UUID, or None. Never raises."""
        if not uuid:
            return None
        return self.tables[kind].uuid_to_key.get(uuid)

    def try_resolve_short_key(self, kind: EntityKind, token: str | None) -> str | None:
        """
        UUID for a short key, or None. Never raises.

        A token that already looks like a UUID passes through unchanged.
        """
        if not token:
            return None
        token = token.strip()
        if looks_like_uuid(token):
            return token
        key = self._normalize_key(kind, token)
        if key is None:
            return None
        return self.tables[kind].key_to_uuid.get(key)

    def get_short_key(self, kind: EntityKind, uuid: str) -> str:
        """Short key for a UUID; raises ToonResolutionError if unregistered."""
        key = self.try_get_short_key(kind, uuid)
        if key is not None:
            return key
        uuids = self.list_uuids(kind)
        sample = uuids[:5]
        more = "..." if len(uuids) > 5 else ""
        raise ToonResolutionError(
            "ENTITY_NOT_FOUND",
            f"UUID '{uuid}' not found in {kind.value} registry",
            hint=f"Registry contains {len(uuids)} {kind.value}(s). "
                 f"Sample UUIDs: {', '.join(sample)}{more}",
            suggestion="The entity may have been created after the registry was built. "
                       "Refresh workspace metadata to rebuild it.",
            entity_type=kind.value,
        )

    def resolve_short_key(self, kind: EntityKind, token: str) -> str:
        """UUID for a short key; raises ToonResolutionError on bad format or unknown key."""
        uuid = self.try_resolve_short_key(kind, token)
        if uuid is not None:
            return uuid
        if self._normalize_key(kind, (token or "").strip()) is None:
            raise invalid_key_format_error(kind.value, token, kind.prefix)
        raise unknown_short_key_error(kind.value, token, self.list_short_keys(kind))

    def get_metadata(self, kind: EntityKind, uuid: str) -> EntityMetadata | None:
        return self.tables[kind].metadata.get(uuid)

    def has_short_key(self, kind: EntityKind, key: str) -> bool:
        return key in self.tables[kind].key_to_uuid

    def has_uuid(self, kind: EntityKind, uuid: str) -> bool:
        return uuid in self.tables[kind].uuid_to_key

    def list_short_keys(self, kind: EntityKind) -> list[str]:
        """All keys for a kind in lookup order (s0, s1, ..., eng:s0, ...)."""
        with self._lock:
            keys = list(self.tables[kind].key_to_uuid)
        return sorted(keys, key=key_sort_key)

    def list_uuids(self, kind: EntityKind) -> list[str]:
        """Registered UUIDs of a kind, in registration order."""
        with self._lock:
            return list(self.tables[kind].uuid_to_key)

    def user_status_label(self, uuid: str) -> UserStatusLabel:
        """
        Label for a user that has no short key.

        "(deactivated)" when the workspace still lists the user as inactive,
        "(departed)" when the user is not in the workspace at all. Reflects
        the registry as of its last build.
        """
        metadata = self.tables[EntityKind.USER].metadata.get(uuid)
        if isinstance(metadata, UserMetadata) and not metadata.active:
            return DEACTIVATED
        return DEPARTED

    # =========================================================================
    # Team Namespaces
    # =========================================================================

    @property
    def default_team_key(self) -> str | None:
        if not self.default_team_id:
            return None
        return self.team_keys.get(self.default_team_id)

    def namespace_for(self, team_id: str | None) -> str:
        """
        Namespace for a team's states: "" for the default team (or when no
        default team is configured), otherwise the lowercase team key.
        """
        if not self.default_team_id or not team_id or team_id == self.default_team_id:
            return ""
        return self.team_keys.get(team_id, "")

    def _normalize_key(self, kind: EntityKind, token: str) -> str | None:
        """
        Canonical lookup key for a token, or None if it is not a key of this kind.

        - "sqt:s0" with SQT as default team -> "s0"
        - "sqm:s0" -> "sqm:s0"
        - "eng:u3" -> "u3" (users and projects are global)
        """
        parsed = parse_short_key(token)
        if parsed is None or parsed.kind is not kind:
            return None
        namespace = parsed.team_prefix or ""
        if not kind.namespaced or namespace == self.default_team_key:
            namespace = ""
        key = _format_key(kind, namespace, parsed.index)
        if not kind.key_pattern.match(key):
            return None
        return key

    # =========================================================================
    # Runtime Registration
    # =========================================================================

    def register_new_entity(
        self,
        kind: EntityKind,
        uuid: str,
        metadata: EntityMetadata,
        *,
        team_id: str | None = None,
    ) -> str:
        """
        Register an entity created during this session without rebuilding.

        Takes max(existing suffix in the kind/namespace) + 1, so gaps are
        never refilled and no previously issued key changes. An already
        registered UUID keeps its key.
        """
        with self._lock:
            table = self.tables[kind]
            existing = table.uuid_to_key.get(uuid)
            if existing is not None:
                table.metadata[uuid] = metadata
                logger.info(f"Registry: {existing} already registered for {uuid[:8]}...")
                return existing

            if team_id is None and isinstance(metadata, StateMetadata):
                team_id = metadata.team_id or None
            namespace = self.namespace_for(team_id) if kind.namespaced else ""

            max_index = -1
            for key in table.key_to_uuid:
                parsed = parse_short_key(key)
                if parsed and (parsed.team_prefix or "") == namespace:
                    max_index = max(max_index, parsed.index)

            new_key = _format_key(kind, namespace, max_index + 1)
            table.insert(new_key, uuid)
            table.metadata[uuid] = metadata
            logger.info(f"Registry: Registered {new_key} -> {uuid[:8]}... (runtime)")
            return new_key

    def register_new_project(self, uuid: str, metadata: ProjectMetadata) -> str:
        """Register a newly created project and index its slug for URL stripping."""
        with self._lock:
            key = self.register_new_entity(EntityKind.PROJECT, uuid, metadata)
            index_project_slugs(self.project_slugs, key, metadata, overwrite=True)
            return key

    # =========================================================================
    # TTL & Staleness
    # =========================================================================

    def age_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.generated_at).total_seconds()

    def is_stale(self, transport: TransportType | None = None, now: datetime | None = None) -> bool:
        """
        stdio registries never expire (the user controls refresh);
        http registries expire after ttl_seconds.
        """
        effective = transport or self.transport
        if effective != "http":
            return False
        return self.age_seconds(now) > self.ttl_seconds

    def remaining_ttl(self, now: datetime | None = None) -> float:
        """Seconds until the registry goes stale; infinity when it never does."""
        if self.transport != "http":
            return float("inf")
        return max(0.0, self.ttl_seconds - self.age_seconds(now))

    def stats(self, now: datetime | None = None) -> dict:
        """Get registry statistics."""
        return {
            "users": len(self.tables[EntityKind.USER].key_to_uuid),
            "states": len(self.tables[EntityKind.STATE].key_to_uuid),
            "projects": len(self.tables[EntityKind.PROJECT].key_to_uuid),
            "age_seconds": round(self.age_seconds(now), 3),
            "stale": self.is_stale(now=now),
            "transport": self.transport,
            "workspace_id": self.workspace_id,
        }


# =============================================================================
# Helpers
# =============================================================================


def _format_key(kind: EntityKind, namespace: str, index: int) -> str:
    return f"{namespace}:{kind.prefix}{index}" if namespace else f"{kind.prefix}{index}"


def index_project_slugs(
    slugs: dict[str, str],
    key: str,
    metadata: ProjectMetadata,
    *,
    overwrite: bool = False,
    ambiguous: set[str] | None = None,
) -> None:
    """
    Index a project under its slug id, the hex hash suffix of the slug
    (trackers shorten project URLs to it) and its lowercase name.

    Names shared by two different projects are dropped and remembered in
    `ambiguous` so they are never resolved to the wrong project.
    """
    if metadata.slug_id:
        if overwrite or metadata.slug_id not in slugs:
            slugs[metadata.slug_id] = key
        head, _, tail = metadata.slug_id.rpartition("-")
        if head and _HEX_SUFFIX.match(tail):
            slugs[tail] = key

    if not metadata.name:
        return
    name_key = metadata.name.lower()
    if ambiguous is not None and name_key in ambiguous:
        return
    existing = slugs.get(name_key)
    if existing is None:
        slugs[name_key] = key
    elif existing != key and ambiguous is not None:
        del slugs[name_key]
        ambiguous.add(name_key)


def try_get_short_key(registry: Registry | None, kind: EntityKind, uuid: str | None) -> str | None:
    """Short key for a UUID; None when unknown or when the session has no registry."""
    if registry is None:
        return None
    return registry.try_get_short_key(kind, uuid)


def try_resolve_short_key(registry: Registry | None, kind: EntityKind, token: str | None) -> str | None:
    """UUID for a token; None when unknown, malformed, or when the session has no registry."""
    if registry is None:
        return None
    return registry.try_resolve_short_key(kind, token)
