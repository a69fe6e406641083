"""
trackline - Registry Builder.

Turns raw per-kind workspace dumps into a Registry.

Key assignment is deterministic: each kind's entities are stable-sorted by
created_at (ascending, ties keep input order) and numbered from 0. A
missing or unparseable created_at counts as the epoch, so such entities
sort first. The builder is a pure function of its input.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from trackline.core.kinds import EntityKind
from trackline.core.registry import (
    DEFAULT_HTTP_TTL_SECONDS,
    ProjectMetadata,
    Registry,
    StateMetadata,
    TransportType,
    UserMetadata,
    _format_key,
    index_project_slugs,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Input Models
# =============================================================================


def parse_created_at(value: Any) -> datetime | None:
    """
    Lenient timestamp parsing for created_at.

    Accepts datetimes, dates, ISO-8601 strings (with or without a trailing Z)
    and epoch seconds. Naive values are taken as UTC. Anything else is None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


class RegistryEntity(BaseModel):
    """One raw entity from the backend: a UUID plus its creation time."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str
    created_at: datetime | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _lenient_created_at(cls, value: Any) -> datetime | None:
        parsed = parse_created_at(value)
        if parsed is None and value not in (None, ""):
            logger.warning(f"RegistryBuilder: Unparseable createdAt {value!r}, treating as epoch")
        return parsed


class RegistryUserEntity(RegistryEntity):
    name: str = ""
    display_name: str = ""
    email: str = ""
    active: bool = True
    role: str = ""
    skills: list[str] = Field(default_factory=list)
    focus_area: str = ""
    teams: list[str] = Field(default_factory=list)


class RegistryStateEntity(RegistryEntity):
    name: str = ""
    type: str = ""
    team_id: str | None = None


class RegistryProjectEntity(RegistryEntity):
    name: str = ""
    icon: str | None = None
    state: str = ""
    priority: int | None = None
    progress: float | None = None
    lead_id: str | None = None
    target_date: str | None = None
    team_keys: list[str] = Field(default_factory=list)
    slug_id: str | None = None


class TeamRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    key: str


class RegistryBuildData(BaseModel):
    """
    Everything the builder needs, as fetched from the backend.

    teams + default_team_id switch on multi-team mode, where states of
    non-default teams get namespaced keys (eng:s0). team_id restricts states
    to a single team.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    users: list[RegistryUserEntity] = Field(default_factory=list)
    states: list[RegistryStateEntity] = Field(default_factory=list)
    projects: list[RegistryProjectEntity] = Field(default_factory=list)
    workspace_id: str = ""
    team_id: str | None = None
    teams: list[TeamRef] = Field(default_factory=list)
    default_team_id: str | None = None


# =============================================================================
# Building
# =============================================================================


def project_metadata(project: RegistryProjectEntity) -> ProjectMetadata:
    return ProjectMetadata(
        name=project.name,
        state=project.state,
        icon=project.icon,
        priority=project.priority,
        progress=project.progress,
        lead_id=project.lead_id,
        target_date=project.target_date,
        team_keys=list(project.team_keys),
        slug_id=project.slug_id,
    )


E = TypeVar("E", bound=RegistryEntity)


def sort_by_created_at(entities: Iterable[E]) -> list[E]:
    """Stable ascending sort; missing created_at sorts as the epoch."""
    return sorted(entities, key=lambda e: e.created_at or EPOCH)


def resolve_default_team_id(teams: Iterable[TeamRef], default_team: str | None) -> str | None:
    """Find the team matching a configured DEFAULT_TEAM key (case-insensitive) or UUID."""
    if not default_team:
        return None
    wanted = default_team.lower()
    for team in teams:
        if team.key.lower() == wanted or team.id == default_team:
            return team.id
    logger.warning(f"RegistryBuilder: DEFAULT_TEAM '{default_team}' matches no team")
    return None


def build_registry(
    data: RegistryBuildData | dict,
    *,
    transport: TransportType | None = None,
    ttl_seconds: int = DEFAULT_HTTP_TTL_SECONDS,
    now: datetime | None = None,
) -> Registry:
    """
    Build a complete registry from workspace data.

    - Users: u0, u1, ... (active users only; inactive keep metadata)
    - States: s0, s1, ... for the default team, eng:s0, ... for others
    - Projects: pr0, pr1, ...
    """
    if isinstance(data, dict):
        data = RegistryBuildData.model_validate(data)

    registry = Registry(
        workspace_id=data.workspace_id,
        generated_at=now or datetime.now(timezone.utc),
        transport=transport,
        ttl_seconds=ttl_seconds,
        team_keys={team.id: team.key.lower() for team in data.teams},
        default_team_id=data.default_team_id,
    )

    # Users: global keys, inactive users are known but not keyed
    users = registry.table(EntityKind.USER)
    active_users = [u for u in data.users if u.active]
    for index, user in enumerate(sort_by_created_at(active_users)):
        users.insert(_format_key(EntityKind.USER, "", index), user.id)
    for user in data.users:
        users.metadata[user.id] = UserMetadata(
            name=user.name,
            display_name=user.display_name,
            email=user.email,
            active=user.active,
            role=user.role,
            skills=list(user.skills),
            focus_area=user.focus_area,
            teams=list(user.teams),
        )

    # States: numbered per namespace
    states_in = data.states
    if data.team_id:
        states_in = [s for s in states_in if s.team_id == data.team_id]
    multi_team = bool(data.default_team_id and data.teams)
    states = registry.table(EntityKind.STATE)
    counters: dict[str, int] = {}
    for state in sort_by_created_at(states_in):
        namespace = registry.namespace_for(state.team_id) if multi_team else ""
        index = counters.get(namespace, 0)
        counters[namespace] = index + 1
        states.insert(_format_key(EntityKind.STATE, namespace, index), state.id)
        states.metadata[state.id] = StateMetadata(
            name=state.name,
            type=state.type,
            team_id=state.team_id or "",
        )

    # Projects: global keys
    projects = registry.table(EntityKind.PROJECT)
    ambiguous_names: set[str] = set()
    for index, project in enumerate(sort_by_created_at(data.projects)):
        key = _format_key(EntityKind.PROJECT, "", index)
        metadata = project_metadata(project)
        projects.insert(key, project.id)
        projects.metadata[project.id] = metadata
        index_project_slugs(registry.project_slugs, key, metadata, ambiguous=ambiguous_names)

    logger.debug(
        f"RegistryBuilder: Built registry for workspace '{data.workspace_id}' "
        f"({len(users.key_to_uuid)} users, {len(states.key_to_uuid)} states, "
        f"{len(projects.key_to_uuid)} projects)"
    )
    return registry
