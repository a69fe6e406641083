"""
trackline - User profile enrichment.

Teams can describe who does what in a small JSON file (or env var), keyed by
email, case-insensitive:

    {
      "version": 1,
      "profiles": {
        "dev@example.com": {"role": "Senior Developer", "skills": ["Python"], "focusArea": "API"}
      },
      "defaults": {"role": "", "skills": [], "focusArea": ""}
    }

The role shows up in the _users lookup; skills and focus area are kept in
user metadata for callers that want them.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class UserProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    role: str = ""
    skills: list[str] = Field(default_factory=list)
    focus_area: str = ""


class UserProfilesConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = 1
    profiles: dict[str, UserProfile] = Field(default_factory=dict)
    defaults: UserProfile = Field(default_factory=UserProfile)

    def get(self, email: str | None) -> UserProfile:
        """Profile for an email (case-insensitive), else the defaults."""
        if not email:
            return self.defaults
        wanted = email.lower()
        for key, profile in self.profiles.items():
            if key.lower() == wanted:
                return profile
        return self.defaults


# =============================================================================
# Loaders
# =============================================================================


def parse_user_profiles(raw: str) -> UserProfilesConfig:
    """Parse a JSON document; anything invalid logs a warning and yields defaults."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"UserProfiles: Failed to parse JSON: {e}")
        return UserProfilesConfig()

    if not isinstance(data, dict) or not isinstance(data.get("profiles"), dict):
        logger.warning("UserProfiles: Invalid config structure, using defaults")
        return UserProfilesConfig()

    try:
        return UserProfilesConfig.model_validate(data)
    except ValidationError as e:
        logger.warning(f"UserProfiles: Invalid config: {e.error_count()} error(s), using defaults")
        return UserProfilesConfig()


def load_user_profiles_from_file(path: str | Path) -> UserProfilesConfig:
    path = Path(path)
    if not path.exists():
        return UserProfilesConfig()
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"UserProfiles: Failed to read {path}: {e}")
        return UserProfilesConfig()
    return parse_user_profiles(raw)


def load_user_profiles(json_string: str | None = None, path: str | Path | None = None) -> UserProfilesConfig:
    """
    JSON string first (USER_PROFILES_JSON), then the profiles file.

    With no arguments both come from settings.
    """
    if json_string is None and path is None:
        from trackline.config import settings

        json_string, path = settings.user_profiles_json, settings.user_profiles_path

    if json_string:
        return parse_user_profiles(json_string)
    if path:
        return load_user_profiles_from_file(path)
    return UserProfilesConfig()


# =============================================================================
# Enrichment
# =============================================================================


def apply_user_profiles(users: Iterable[dict[str, Any]], config: UserProfilesConfig) -> list[dict[str, Any]]:
    """
    Copy of raw user records with role, skills and focusArea filled in from
    their profile. Values already on the record win.
    """
    enriched = []
    for user in users:
        profile = config.get(user.get("email"))
        enriched.append({
            **user,
            "role": user.get("role") or profile.role,
            "skills": user.get("skills") or list(profile.skills),
            "focusArea": user.get("focusArea") or profile.focus_area,
        })
    return enriched
