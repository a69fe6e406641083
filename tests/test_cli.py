"""
CLI smoke tests.
"""

import json

import pytest
from typer.testing import CliRunner

from trackline.main import app

runner = CliRunner()


@pytest.fixture
def workspace_file(tmp_path, workspace_data):
    path = tmp_path / "workspace.json"
    path.write_text(json.dumps(workspace_data), encoding="utf-8")
    return path


@pytest.fixture
def response_file(tmp_path):
    path = tmp_path / "response.json"
    path.write_text(
        json.dumps({
            "meta": {"fields": ["count"], "values": {"count": 1}},
            "data": [
                {
                    "schema": {"name": "issues", "fields": ["identifier", "title", "estimate"]},
                    "items": [{"identifier": "ENG-1", "title": "Fix login, again", "estimate": 3}],
                }
            ],
        }),
        encoding="utf-8",
    )
    return path


class TestEncode:
    def test_prints_toon(self, response_file):
        result = runner.invoke(app, ["encode", str(response_file)])
        assert result.exit_code == 0
        assert '_meta{count}:\n  1\n\nissues[1]{identifier,title,estimate}:\n  ENG-1,"Fix login, again",e3' in result.output

    def test_strict_rejects_missing_fields(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps({"data": [{"schema": {"name": "issues", "fields": ["identifier", "title"]},
                                  "items": [{"identifier": "ENG-1"}]}]}),
            encoding="utf-8",
        )
        result = runner.invoke(app, ["encode", str(path), "--strict"])
        assert result.exit_code == 1
        assert "missing fields: title" in result.output

    def test_unreadable_file(self, tmp_path):
        result = runner.invoke(app, ["encode", str(tmp_path / "nope.json")])
        assert result.exit_code == 1


class TestRegistry:
    def test_lists_lookups(self, workspace_file):
        result = runner.invoke(app, ["registry", str(workspace_file)])
        assert result.exit_code == 0
        assert "_users[3]{key,name,displayName,email,role}:" in result.output
        assert "u0,Bob Jones,bob,bob@example.com,Tech Lead" in result.output
        assert "_projects[2]" in result.output


class TestResolve:
    def test_short_key(self, workspace_file, ids):
        result = runner.invoke(app, ["resolve", str(workspace_file), "user", "u1"])
        assert result.exit_code == 0
        assert ids.alice in result.output

    def test_unknown_key(self, workspace_file):
        result = runner.invoke(app, ["resolve", str(workspace_file), "user", "u99"])
        assert result.exit_code == 1

    def test_bad_kind(self, workspace_file):
        result = runner.invoke(app, ["resolve", str(workspace_file), "widget", "w0"])
        assert result.exit_code == 1
        assert "Invalid kind" in result.output


class TestHealth:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("TRACKLINE_ENV", "LOG_LEVEL", "TRANSPORT", "DEFAULT_TEAM", "USER_PROFILES_JSON"):
            monkeypatch.delenv(name, raising=False)

    def test_development_defaults(self):
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 0
        assert "Environment: development" in result.output
        assert "Development mode" in result.output
        assert "All checks passed" in result.output

    def test_debug_in_production_warns(self, monkeypatch):
        monkeypatch.setenv("TRACKLINE_ENV", "production")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 0
        assert "Environment: production" in result.output
        assert "DEBUG logging in production" in result.output
        assert "Development mode" not in result.output


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
