"""
TOON section schemas.

Design principles:
1. No UUIDs in output - they stay inside the registry
2. Short keys for static entities - users (u0), states (s0), projects (pr0)
3. Natural keys where the backend has them - issues (ENG-123), teams (ENG), labels (name)
"""

from trackline.toon.types import ToonSchema

# =============================================================================
# Lookup Tables (prefixed with _)
# =============================================================================

USER_LOOKUP_SCHEMA = ToonSchema(
    name="_users",
    fields=["key", "name", "displayName", "email", "role"],
)

STATE_LOOKUP_SCHEMA = ToonSchema(
    name="_states",
    fields=["key", "name", "type"],
)

PROJECT_LOOKUP_SCHEMA = ToonSchema(
    name="_projects",
    fields=["key", "name", "state", "priority", "progress", "lead", "targetDate"],
)

LABEL_LOOKUP_SCHEMA = ToonSchema(
    name="_labels",
    fields=["name", "color"],
)

# =============================================================================
# Data Tables
# =============================================================================

ISSUE_SCHEMA = ToonSchema(
    name="issues",
    fields=[
        "identifier",  # ENG-160
        "title",
        "state",       # s0 -> _states
        "assignee",    # u0 -> _users
        "priority",    # p0..p4
        "estimate",    # e1, e2, ...
        "project",     # pr0 -> _projects
        "cycle",       # c5
        "dueDate",     # YYYY-MM-DD
        "labels",      # "Bug,Feature"
        "parent",      # ENG-159
        "team",        # ENG
        "url",
        "desc",
        "createdAt",   # ISO timestamp
        "creator",     # u0 -> _users
    ],
)

COMMENT_SCHEMA = ToonSchema(
    name="comments",
    fields=["issue", "user", "body", "createdAt"],
)

PROJECT_SCHEMA = ToonSchema(
    name="projects",
    fields=[
        "key",
        "name",
        "description",
        "state",
        "priority",
        "progress",
        "lead",
        "teams",
        "startDate",
        "targetDate",
        "health",
    ],
)

PAGINATION_SCHEMA = ToonSchema(
    name="_pagination",
    fields=["hasMore", "cursor", "fetched", "total"],
)

# =============================================================================
# Write Results
# =============================================================================

PROJECT_WRITE_RESULT_SCHEMA = ToonSchema(
    name="results",
    fields=["index", "status", "key", "error"],
)

CREATED_PROJECT_SCHEMA = ToonSchema(
    name="created",
    fields=["key", "name", "state"],
)
