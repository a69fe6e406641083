"""
trackline - Tool output handlers.

Each handler takes backend records plus the session registry and returns a
ToonResponse (build_*) or encoded text (format_*).

Tools:
- issues: issue and comment listing
- projects: project listing and batch creation
"""

from trackline.tools.issues import build_issues_response, format_issues
from trackline.tools.projects import (
    build_create_projects_response,
    build_projects_response,
    record_created_project,
)

__all__ = [
    "build_issues_response",
    "format_issues",
    "build_projects_response",
    "build_create_projects_response",
    "record_created_project",
]
