"""
trackline - Project listing and creation output.

Listing emits a projects table whose leads point into _users. Creation
registers each new project in the session registry so the caller can use
its short key (pr7) straight away, without a rebuild.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from trackline.core.kinds import EntityKind
from trackline.core.references import ReferenceCollector, ReferenceField, get_path, reference_of
from trackline.core.registry import Registry
from trackline.core.registry_builder import RegistryProjectEntity, project_metadata
from trackline.core.response_context import ResponseContext
from trackline.toon.schemas import CREATED_PROJECT_SCHEMA, PROJECT_SCHEMA, PROJECT_WRITE_RESULT_SCHEMA
from trackline.toon.types import ToonMeta, ToonResponse, ToonRow, ToonSection

logger = logging.getLogger(__name__)

PROJECT_REFERENCES = [
    ReferenceField("lead", EntityKind.USER),
]


def _team_keys(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, Mapping):
        value = value.get("nodes") or []
    keys = [team if isinstance(team, str) else get_path(team, "key") for team in value]
    return [key for key in keys if key]


def _state_name(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("name") or value.get("type")
    return value


def project_row(project: Any, ctx: ResponseContext) -> ToonRow:
    lead_id, lead_name = reference_of(get_path(project, "lead"))
    if lead_id:
        ctx.referenced.add(EntityKind.USER, lead_id, lead_name)

    return {
        "key": ctx.key_for(EntityKind.PROJECT, get_path(project, "id")),
        "name": get_path(project, "name"),
        "description": get_path(project, "description"),
        "state": _state_name(get_path(project, "state")),
        "priority": get_path(project, "priority"),
        "progress": get_path(project, "progress"),
        "lead": ctx.key_for(EntityKind.USER, lead_id, placeholder=ctx.lead_placeholder(lead_id)) if lead_id else None,
        "teams": _team_keys(get_path(project, "teams")),
        "startDate": get_path(project, "startDate"),
        "targetDate": get_path(project, "targetDate"),
        "health": get_path(project, "health"),
    }


def build_projects_response(
    projects: Iterable[Any],
    registry: Registry | None = None,
    *,
    now: datetime | None = None,
) -> ToonResponse:
    """
    Projects table plus a _users lookup for their leads.

    A lead missing from the registry is shown under an ext key named after
    its status ("Dave (deactivated)", "Former User (departed)") unless the
    record carries the lead's name.
    """
    projects = list(projects)
    referenced = ReferenceCollector().add_batch(projects, PROJECT_REFERENCES).collect()
    ctx = ResponseContext(registry, referenced)

    section = ToonSection(PROJECT_SCHEMA, [project_row(project, ctx) for project in projects])
    user_lookup = ctx.user_lookup()

    return ToonResponse(
        meta=ToonMeta(
            fields=["count", "generated"],
            values={"count": len(projects), "generated": now or datetime.now(timezone.utc)},
        ),
        lookups=[user_lookup] if user_lookup is not None else [],
        data=[section],
    )


# =============================================================================
# Creation
# =============================================================================


def _normalize_created(project: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten nested backend objects into RegistryProjectEntity's shape."""
    data = dict(project)
    data["state"] = _state_name(project.get("state")) or ""
    lead_id, _ = reference_of(project.get("lead"))
    if lead_id and not project.get("leadId"):
        data["leadId"] = lead_id
    if "teams" in project and "teamKeys" not in project:
        data["teamKeys"] = _team_keys(project["teams"])
    return data


def record_created_project(registry: Registry | None, project: Mapping[str, Any]) -> ToonRow:
    """
    Register a project created in this session and return its created row.

    Without a registry the row falls back to the project name.
    """
    entity = RegistryProjectEntity.model_validate(_normalize_created(project))
    metadata = project_metadata(entity)
    if registry is None:
        key = entity.name or entity.id
    else:
        key = registry.register_new_project(entity.id, metadata)
    return {"key": key, "name": entity.name, "state": entity.state}


def build_create_projects_response(
    registry: Registry | None,
    outcomes: Iterable[Mapping[str, Any] | BaseException],
) -> ToonResponse:
    """
    Results of a batch create: one results row per input, in input order,
    plus a created row for every success.

    Each outcome is the created project record or the exception raised
    while creating it.
    """
    results: list[ToonRow] = []
    created: list[ToonRow] = []
    for index, outcome in enumerate(outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"Projects: Create {index} failed: {outcome}")
            results.append({"index": index, "status": "error", "key": None, "error": str(outcome)})
            continue
        row = record_created_project(registry, outcome)
        created.append(row)
        results.append({"index": index, "status": "ok", "key": row["key"], "error": None})

    return ToonResponse(
        meta=ToonMeta(
            fields=["action", "succeeded", "failed", "total"],
            values={
                "action": "create_projects",
                "succeeded": len(created),
                "failed": len(results) - len(created),
                "total": len(results),
            },
        ),
        data=[
            ToonSection(PROJECT_WRITE_RESULT_SCHEMA, results),
            ToonSection(CREATED_PROJECT_SCHEMA, created),
        ],
    )
