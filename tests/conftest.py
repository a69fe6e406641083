"""
Pytest configuration and fixtures for trackline tests.

One small workspace is shared by every test module:

    users     Bob (2023) -> u0, Alice (2024) -> u1, Carol (2025) -> u2,
              Dave is deactivated (metadata only, no key)
    teams     ENG (default), DES
    states    ENG Todo -> s0, ENG Done -> s1, DES Todo -> des:s0
    projects  Website (2024-02) -> pr0, API v2 (2024-05) -> pr1
"""

import os
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

# Set test environment before importing trackline modules
os.environ["TRACKLINE_ENV"] = "development"
os.environ.setdefault("USER_PROFILES_PATH", "./does-not-exist.json")

from trackline.config import get_settings
from trackline.core.registry_builder import build_registry


def uid(n: int) -> str:
    """A well-formed UUID that is easy to read in assertions."""
    return f"00000000-0000-4000-8000-{n:012d}"


IDS = SimpleNamespace(
    bob=uid(1),
    alice=uid(2),
    carol=uid(3),
    dave=uid(4),
    guest=uid(5),
    eng=uid(100),
    des=uid(101),
    todo=uid(10),
    done=uid(11),
    des_todo=uid(12),
    website=uid(20),
    api=uid(21),
)

BUILT_AT = datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ids() -> SimpleNamespace:
    return IDS


@pytest.fixture
def built_at() -> datetime:
    return BUILT_AT


@pytest.fixture
def workspace_data() -> dict:
    """Raw workspace dump in the backend's camelCase shape."""
    return {
        "workspaceId": "ws-1",
        "defaultTeamId": IDS.eng,
        "teams": [
            {"id": IDS.eng, "key": "ENG"},
            {"id": IDS.des, "key": "DES"},
        ],
        "users": [
            {
                "id": IDS.alice,
                "name": "Alice Smith",
                "displayName": "alice",
                "email": "alice@example.com",
                "createdAt": "2024-01-01T00:00:00Z",
            },
            {
                "id": IDS.bob,
                "name": "Bob Jones",
                "displayName": "bob",
                "email": "bob@example.com",
                "role": "Tech Lead",
                "createdAt": "2023-01-01T00:00:00Z",
            },
            {
                "id": IDS.carol,
                "name": "Carol White",
                "displayName": "carol",
                "email": "carol@example.com",
                "createdAt": "2025-03-01T00:00:00Z",
            },
            {
                "id": IDS.dave,
                "name": "Dave Departed",
                "displayName": "dave",
                "email": "dave@example.com",
                "active": False,
                "createdAt": "2022-01-01T00:00:00Z",
            },
        ],
        "states": [
            {"id": IDS.done, "name": "Done", "type": "completed", "teamId": IDS.eng,
             "createdAt": "2023-02-01T00:00:00Z"},
            {"id": IDS.todo, "name": "Todo", "type": "unstarted", "teamId": IDS.eng,
             "createdAt": "2023-01-01T00:00:00Z"},
            {"id": IDS.des_todo, "name": "Todo", "type": "unstarted", "teamId": IDS.des,
             "createdAt": "2023-01-01T00:00:00Z"},
        ],
        "projects": [
            {
                "id": IDS.api,
                "name": "API v2",
                "state": "started",
                "priority": 2,
                "progress": 0.456,
                "leadId": IDS.alice,
                "targetDate": "2026-03-01",
                "slugId": "api-v2-3f2a9c1b",
                "createdAt": "2024-05-01T00:00:00Z",
            },
            {
                "id": IDS.website,
                "name": "Website",
                "state": "planned",
                "leadId": IDS.dave,
                "createdAt": "2024-02-01T00:00:00Z",
            },
        ],
    }


@pytest.fixture
def registry(workspace_data):
    return build_registry(workspace_data, transport="stdio", now=BUILT_AT)
