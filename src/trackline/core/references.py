"""
trackline - Reference Collector.

Works out exactly which entities a response refers to, so lookup tables
stay O(distinct referenced entities) instead of O(workspace).

Each batch declares where its references live:

    collector = ReferenceCollector()
    collector.add_batch(issues, [
        ReferenceField("assignee", EntityKind.USER),
        ReferenceField("state", EntityKind.STATE),
    ], labels=LabelField("labels"))
    collector.add_batch(comments, [ReferenceField("user", EntityKind.USER)])
    refs = collector.collect()

A referenced value may be a bare UUID string or a nested mapping with an
"id" (and optionally a "name", remembered for fallback display).
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from trackline.core.kinds import EntityKind


@dataclass(frozen=True)
class ReferenceField:
    """A dotted path into a record whose value references an entity."""

    path: str
    kind: EntityKind


@dataclass(frozen=True)
class LabelField:
    """A dotted path to a list of labels (names or {name, color} mappings)."""

    path: str


@dataclass
class ReferencedEntities:
    """
    Referenced UUIDs per kind, in first-seen order, plus label names and
    any inline names seen alongside a UUID.
    """

    ids: dict[EntityKind, dict[str, None]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )
    inline_names: dict[EntityKind, dict[str, str]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )
    labels: dict[str, str | None] = field(default_factory=dict)  # name -> color

    def of(self, kind: EntityKind) -> list[str]:
        """Referenced UUIDs of a kind in first-seen order."""
        return list(self.ids[kind])

    def as_set(self, kind: EntityKind) -> set[str]:
        return set(self.ids[kind])

    def inline_name(self, kind: EntityKind, uuid: str) -> str | None:
        return self.inline_names[kind].get(uuid)

    @property
    def users(self) -> set[str]:
        return self.as_set(EntityKind.USER)

    @property
    def states(self) -> set[str]:
        return self.as_set(EntityKind.STATE)

    @property
    def projects(self) -> set[str]:
        return self.as_set(EntityKind.PROJECT)

    def add(self, kind: EntityKind, uuid: str, name: str | None = None) -> None:
        self.ids[kind].setdefault(uuid, None)
        if name and uuid not in self.inline_names[kind]:
            self.inline_names[kind][uuid] = name


def get_path(record: Any, path: str) -> Any:
    """Follow a dotted path through mappings and attributes; None when absent."""
    value = record
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def reference_of(value: Any) -> tuple[str | None, str | None]:
    """(uuid, inline name) for a referenced value."""
    if value is None:
        return None, None
    if isinstance(value, str):
        return (value or None), None
    uuid = get_path(value, "id")
    name = get_path(value, "name")
    return (str(uuid) if uuid else None), (str(name) if name else None)


class ReferenceCollector:
    """Accumulates references across one response's batches."""

    def __init__(self):
        self._refs = ReferencedEntities()

    def add_batch(
        self,
        records: Iterable[Any],
        fields: Iterable[ReferenceField],
        *,
        labels: LabelField | None = None,
    ) -> "ReferenceCollector":
        fields = list(fields)
        for record in records:
            for ref_field in fields:
                uuid, name = reference_of(get_path(record, ref_field.path))
                if uuid:
                    self._refs.add(ref_field.kind, uuid, name)
            if labels is not None:
                self._add_labels(get_path(record, labels.path))
        return self

    def _add_labels(self, value: Any) -> None:
        # Labels carry no UUID indirection: de-duplicate by name
        if not value:
            return
        if isinstance(value, str):
            value = [value]
        if isinstance(value, Mapping) and "nodes" in value:
            value = value["nodes"]
        for label in value:
            if isinstance(label, str):
                name, color = label, None
            else:
                name, color = get_path(label, "name"), get_path(label, "color")
            if not name:
                continue
            if name not in self._refs.labels or (color and not self._refs.labels[name]):
                self._refs.labels[name] = color

    def collect(self) -> ReferencedEntities:
        return self._refs


def collect_referenced(
    *batches: tuple[Iterable[Any], Iterable[ReferenceField]],
) -> ReferencedEntities:
    """One-shot form: collect_referenced((issues, fields), (comments, fields))."""
    collector = ReferenceCollector()
    for records, fields in batches:
        collector.add_batch(records, fields)
    return collector.collect()
