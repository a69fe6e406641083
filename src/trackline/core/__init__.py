"""
trackline - Short key registry.

Components:
- registry: bidirectional short key <-> UUID maps with metadata
- registry_builder: deterministic build from a workspace dump
- session_store: per-session registry storage with lazy init
- references / fallback / response_context: per-response key assignment
"""

from trackline.core.kinds import EntityKind
from trackline.core.registry import (
    ProjectMetadata,
    Registry,
    StateMetadata,
    UserMetadata,
    try_get_short_key,
    try_resolve_short_key,
)
from trackline.core.registry_builder import RegistryBuildData, build_registry
from trackline.core.session_store import RegistrySessionStore

__all__ = [
    "EntityKind",
    "Registry",
    "UserMetadata",
    "StateMetadata",
    "ProjectMetadata",
    "try_get_short_key",
    "try_resolve_short_key",
    "RegistryBuildData",
    "build_registry",
    "RegistrySessionStore",
]
