"""
trackline - Response Context.

Everything one tool response needs to turn UUIDs into keys:

    ctx = ResponseContext(registry, collector.collect())
    row["assignee"] = ctx.key_for(EntityKind.USER, issue["assignee"])
    lookups = ctx.lookups()

Keys come from the registry where possible, otherwise from a response-local
ext allocator. With no registry at all, references degrade to inline names
(or the raw UUID) and lookups are omitted.
"""

import logging
from typing import Any

from trackline.core.fallback import FORMER_USER, FallbackKeyAllocator
from trackline.core.kinds import EntityKind
from trackline.core.references import ReferencedEntities, reference_of
from trackline.core.registry import (
    ProjectMetadata,
    Registry,
    StateMetadata,
    UserMetadata,
    key_sort_key,
)
from trackline.toon.schemas import (
    LABEL_LOOKUP_SCHEMA,
    PROJECT_LOOKUP_SCHEMA,
    STATE_LOOKUP_SCHEMA,
    USER_LOOKUP_SCHEMA,
)
from trackline.toon.types import ToonRow, ToonSchema, ToonSection

logger = logging.getLogger(__name__)


class ResponseContext:
    """Per-response key assignment and lookup building."""

    def __init__(self, registry: Registry | None, referenced: ReferencedEntities | None = None):
        self.registry = registry
        self.referenced = referenced if referenced is not None else ReferencedEntities()
        self.fallback = FallbackKeyAllocator(inline_names=self.referenced.inline_names)
        if registry is None:
            logger.warning("ResponseContext: No registry, falling back to inline names")

    @property
    def has_registry(self) -> bool:
        return self.registry is not None

    # =========================================================================
    # Key Assignment
    # =========================================================================

    def key_for(self, kind: EntityKind, uuid: str | None, *, placeholder: str | None = None) -> str | None:
        """
        Key to put in a data row for a referenced UUID.

        Registry short key, else an ext key for this response. Without a
        registry: the inline name seen for the UUID, else the UUID itself.
        """
        if not uuid:
            return None
        if self.registry is None:
            return self.referenced.inline_name(kind, uuid) or uuid

        key = self.registry.try_get_short_key(kind, uuid)
        if key is not None:
            return key

        # Known but unkeyed (e.g. a deactivated user): name from metadata
        metadata = self.registry.get_metadata(kind, uuid)
        if metadata is not None and placeholder is None:
            placeholder = metadata.name or None
        self.referenced.add(kind, uuid)
        return self.fallback.allocate(kind, uuid, placeholder)

    def ref(self, kind: EntityKind, value: Any) -> str | None:
        """key_for over a raw reference: a UUID string or an {id, name} mapping."""
        uuid, name = reference_of(value)
        if uuid is None:
            return None
        self.referenced.add(kind, uuid, name)
        return self.key_for(kind, uuid)

    # =========================================================================
    # Lookup Sections
    # =========================================================================

    def _section(self, kind: EntityKind, schema: ToonSchema, uuids: list[str], registered_row) -> ToonSection:
        """Registry rows in key order, then ext rows in allocation order, each carrying every schema field."""
        registered: list[tuple[str, str]] = []
        for uuid in uuids:
            key = self.key_for(kind, uuid)
            if self.registry.has_short_key(kind, key):
                registered.append((key, uuid))
        registered.sort(key=lambda pair: key_sort_key(pair[0]))

        rows = [registered_row(key, uuid) for key, uuid in registered]
        rows.extend({"key": entry.key, "name": entry.name} for entry in self.fallback.entries(kind))
        return ToonSection(schema, [{name: row.get(name) for name in schema.fields} for row in rows])

    def _referenced_users(self) -> list[str]:
        # Project leads shown in _projects are references too
        uuids = self.referenced.of(EntityKind.USER)
        for project_id in self.referenced.of(EntityKind.PROJECT):
            metadata = self.registry.get_metadata(EntityKind.PROJECT, project_id)
            lead_id = metadata.lead_id if isinstance(metadata, ProjectMetadata) else None
            if lead_id and lead_id not in uuids and self.registry.try_get_short_key(EntityKind.USER, lead_id):
                uuids.append(lead_id)
        return uuids

    def user_lookup(self) -> ToonSection | None:
        if self.registry is None:
            return None

        def row(key: str, uuid: str) -> ToonRow:
            metadata = self.registry.get_metadata(EntityKind.USER, uuid)
            if not isinstance(metadata, UserMetadata):
                return {"key": key}
            return {
                "key": key,
                "name": metadata.name,
                "displayName": metadata.display_name,
                "email": metadata.email,
                "role": metadata.role,
            }

        return self._section(EntityKind.USER, USER_LOOKUP_SCHEMA, self._referenced_users(), row)

    def state_lookup(self) -> ToonSection | None:
        if self.registry is None:
            return None

        def row(key: str, uuid: str) -> ToonRow:
            metadata = self.registry.get_metadata(EntityKind.STATE, uuid)
            if not isinstance(metadata, StateMetadata):
                return {"key": key}
            return {"key": key, "name": metadata.name, "type": metadata.type}

        return self._section(EntityKind.STATE, STATE_LOOKUP_SCHEMA, self.referenced.of(EntityKind.STATE), row)

    def project_lookup(self) -> ToonSection | None:
        if self.registry is None:
            return None

        def row(key: str, uuid: str) -> ToonRow:
            metadata = self.registry.get_metadata(EntityKind.PROJECT, uuid)
            if not isinstance(metadata, ProjectMetadata):
                return {"key": key}
            return {
                "key": key,
                "name": metadata.name,
                "state": metadata.state,
                "priority": metadata.priority,
                "progress": round(metadata.progress, 2) if metadata.progress is not None else None,
                "lead": self._lead_key(metadata.lead_id),
                "targetDate": metadata.target_date,
            }

        return self._section(
            EntityKind.PROJECT, PROJECT_LOOKUP_SCHEMA, self.referenced.of(EntityKind.PROJECT), row
        )

    def _lead_key(self, lead_id: str | None) -> str | None:
        if not lead_id:
            return None
        key = self.registry.try_get_short_key(EntityKind.USER, lead_id)
        return key or self.registry.user_status_label(lead_id)

    def lead_placeholder(self, lead_id: str) -> str:
        """
        Display name for a project lead without a short key.

        "Dave (deactivated)" for a user the workspace still lists as
        inactive, "Former User (departed)" for one it no longer lists.
        """
        if self.registry is None:
            return FORMER_USER
        metadata = self.registry.get_metadata(EntityKind.USER, lead_id)
        name = metadata.name if isinstance(metadata, UserMetadata) and metadata.name else FORMER_USER
        return f"{name} {self.registry.user_status_label(lead_id)}"

    def label_lookup(self) -> ToonSection:
        """Labels have no UUID indirection, so this works with or without a registry."""
        rows = [
            {"name": name, "color": color}
            for name, color in sorted(self.referenced.labels.items(), key=lambda item: item[0])
        ]
        return ToonSection(LABEL_LOOKUP_SCHEMA, rows)

    def lookups(self, *, labels: bool = True) -> list[ToonSection]:
        """All lookup sections that apply: _users, _states, _projects, _labels."""
        sections = [self.user_lookup(), self.state_lookup(), self.project_lookup()]
        if labels:
            sections.append(self.label_lookup())
        return [section for section in sections if section is not None]
