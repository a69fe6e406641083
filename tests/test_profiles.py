"""
Tests for user profile loading and enrichment.
"""

import json
import logging

from trackline.core.kinds import EntityKind
from trackline.core.references import ReferencedEntities
from trackline.core.registry_builder import build_registry
from trackline.core.response_context import ResponseContext
from trackline.profiles import (
    UserProfilesConfig,
    apply_user_profiles,
    load_user_profiles,
    load_user_profiles_from_file,
    parse_user_profiles,
)

PROFILES = {
    "version": 1,
    "profiles": {
        "Alice@Example.com": {"role": "Backend Developer", "skills": ["Python", "SQL"], "focusArea": "API"},
    },
    "defaults": {"role": "Engineer"},
}


class TestParse:
    """Invalid input never raises."""

    def test_valid(self):
        config = parse_user_profiles(json.dumps(PROFILES))
        profile = config.get("alice@example.com")
        assert profile.role == "Backend Developer"
        assert profile.skills == ["Python", "SQL"]
        assert profile.focus_area == "API"

    def test_email_case_insensitive(self):
        config = parse_user_profiles(json.dumps(PROFILES))
        assert config.get("ALICE@EXAMPLE.COM").role == "Backend Developer"

    def test_unknown_email_gets_defaults(self):
        config = parse_user_profiles(json.dumps(PROFILES))
        assert config.get("nobody@example.com").role == "Engineer"
        assert config.get(None).role == "Engineer"

    def test_bad_json(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = parse_user_profiles("{not json")
        assert config.profiles == {}
        assert "Failed to parse JSON" in caplog.text

    def test_missing_profiles(self):
        assert parse_user_profiles('{"version": 1}').profiles == {}
        assert parse_user_profiles("[]").profiles == {}

    def test_wrong_types(self):
        config = parse_user_profiles('{"profiles": {"a@b.c": {"skills": "not a list"}}}')
        assert config == UserProfilesConfig()


class TestLoad:
    """JSON string first, then file."""

    def test_from_file(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps(PROFILES), encoding="utf-8")
        assert load_user_profiles_from_file(path).get("alice@example.com").role == "Backend Developer"

    def test_missing_file(self, tmp_path):
        assert load_user_profiles_from_file(tmp_path / "nope.json") == UserProfilesConfig()

    def test_json_string_wins(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps(PROFILES), encoding="utf-8")
        config = load_user_profiles(json_string='{"profiles": {}}', path=path)
        assert config.profiles == {}

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("USER_PROFILES_JSON", json.dumps(PROFILES))
        assert load_user_profiles().get("alice@example.com").role == "Backend Developer"


class TestApply:
    """Profiles fill gaps; record values win."""

    def test_fills_role(self):
        users = [{"id": "1", "email": "alice@example.com"}]
        enriched = apply_user_profiles(users, parse_user_profiles(json.dumps(PROFILES)))
        assert enriched[0]["role"] == "Backend Developer"
        assert enriched[0]["focusArea"] == "API"
        assert "role" not in users[0]

    def test_record_role_wins(self):
        users = [{"id": "1", "email": "alice@example.com", "role": "CTO"}]
        enriched = apply_user_profiles(users, parse_user_profiles(json.dumps(PROFILES)))
        assert enriched[0]["role"] == "CTO"
        assert enriched[0]["skills"] == ["Python", "SQL"]

    def test_role_reaches_users_lookup(self, workspace_data, ids):
        config = parse_user_profiles(json.dumps(PROFILES))
        workspace_data["users"] = apply_user_profiles(workspace_data["users"], config)
        registry = build_registry(workspace_data)

        refs = ReferencedEntities()
        refs.add(EntityKind.USER, ids.alice)
        section = ResponseContext(registry, refs).user_lookup()
        assert section.items[0]["role"] == "Backend Developer"
