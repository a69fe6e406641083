"""
trackline - Issue listing output.

Turns backend issue and comment records into a TOON response:

    _meta{team,count,generated}:
    _users / _states / _projects / _labels   (only what the rows reference)
    issues[N]{...}:
    comments[M]{...}:

Records are plain dicts in the backend's shape. References may be bare
UUIDs or nested {id, name} objects.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from trackline.core.kinds import EntityKind
from trackline.core.references import LabelField, ReferenceCollector, ReferenceField, get_path
from trackline.core.registry import Registry
from trackline.core.response_context import ResponseContext
from trackline.toon.encoder import encode_response
from trackline.toon.schemas import COMMENT_SCHEMA, ISSUE_SCHEMA, PAGINATION_SCHEMA
from trackline.toon.types import EncodingOptions, ToonMeta, ToonResponse, ToonRow, ToonSection

logger = logging.getLogger(__name__)

ISSUE_REFERENCES = [
    ReferenceField("assignee", EntityKind.USER),
    ReferenceField("creator", EntityKind.USER),
    ReferenceField("state", EntityKind.STATE),
    ReferenceField("project", EntityKind.PROJECT),
]
ISSUE_LABELS = LabelField("labels")

COMMENT_REFERENCES = [
    ReferenceField("user", EntityKind.USER),
]


def _natural_key(value: Any, attribute: str) -> Any:
    """Nested objects carry their natural key (team.key, parent.identifier)."""
    if isinstance(value, Mapping) or hasattr(value, attribute):
        return get_path(value, attribute)
    return value


def _label_names(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Mapping):
        value = value.get("nodes") or []
    names = [label if isinstance(label, str) else get_path(label, "name") for label in value]
    return [name for name in names if name]


def issue_row(issue: Any, ctx: ResponseContext) -> ToonRow:
    return {
        "identifier": get_path(issue, "identifier"),
        "title": get_path(issue, "title"),
        "state": ctx.ref(EntityKind.STATE, get_path(issue, "state")),
        "assignee": ctx.ref(EntityKind.USER, get_path(issue, "assignee")),
        "priority": get_path(issue, "priority"),
        "estimate": get_path(issue, "estimate"),
        "project": ctx.ref(EntityKind.PROJECT, get_path(issue, "project")),
        "cycle": _natural_key(get_path(issue, "cycle"), "number"),
        "dueDate": get_path(issue, "dueDate"),
        "labels": _label_names(get_path(issue, "labels")),
        "parent": _natural_key(get_path(issue, "parent"), "identifier"),
        "team": _natural_key(get_path(issue, "team"), "key"),
        "url": get_path(issue, "url"),
        "desc": get_path(issue, "description"),
        "createdAt": get_path(issue, "createdAt"),
        "creator": ctx.ref(EntityKind.USER, get_path(issue, "creator")),
    }


def comment_row(comment: Any, ctx: ResponseContext) -> ToonRow:
    return {
        "issue": _natural_key(get_path(comment, "issue"), "identifier"),
        "user": ctx.ref(EntityKind.USER, get_path(comment, "user")),
        "body": get_path(comment, "body"),
        "createdAt": get_path(comment, "createdAt"),
    }


def build_issues_response(
    issues: Iterable[Any],
    comments: Iterable[Any] = (),
    registry: Registry | None = None,
    *,
    team: str | None = None,
    pagination: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> ToonResponse:
    """
    Build the TOON response for a batch of issues and their comments.

    Lookups list exactly the users, states and projects the rows point at.
    Without a registry the rows carry inline names and lookups are omitted.
    """
    issues = list(issues)
    comments = list(comments)

    referenced = (
        ReferenceCollector()
        .add_batch(issues, ISSUE_REFERENCES, labels=ISSUE_LABELS)
        .add_batch(comments, COMMENT_REFERENCES)
        .collect()
    )
    ctx = ResponseContext(registry, referenced)

    # Data rows first so ext keys are numbered in row order
    data = [
        ToonSection(ISSUE_SCHEMA, [issue_row(issue, ctx) for issue in issues]),
        ToonSection(COMMENT_SCHEMA, [comment_row(comment, ctx) for comment in comments]),
    ]
    if pagination is not None:
        data.append(
            ToonSection(PAGINATION_SCHEMA, [{name: pagination.get(name) for name in PAGINATION_SCHEMA.fields}])
        )

    meta = ToonMeta(
        fields=["team", "count", "generated"],
        values={
            "team": team,
            "count": len(issues),
            "generated": now or datetime.now(timezone.utc),
        },
    )

    if len(ctx.fallback):
        logger.info(f"Issues: {len(ctx.fallback)} referenced entities outside the registry")

    return ToonResponse(meta=meta, lookups=ctx.lookups(), data=data)


def format_issues(
    issues: Iterable[Any],
    comments: Iterable[Any] = (),
    registry: Registry | None = None,
    *,
    team: str | None = None,
    pagination: Mapping[str, Any] | None = None,
    options: EncodingOptions | None = None,
    now: datetime | None = None,
) -> str:
    """build_issues_response, encoded. Falls back to JSON rather than failing."""
    issues = list(issues)
    comments = list(comments)
    response = build_issues_response(
        issues, comments, registry, team=team, pagination=pagination, now=now
    )
    options = options or EncodingOptions.from_settings()
    if registry is not None and options.project_slug_map is None:
        options = replace(options, project_slug_map=registry.project_slugs)
    return encode_response({"issues": issues, "comments": comments}, response, options)
