"""Tests for settings loading and validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from filegate.api.app import build_checker, create_app
from filegate.config import Settings
from filegate.rbac import ConfigError
from filegate.rbac.presets import file_management
from filegate.storage.database import Database


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("FG_STORAGE", "FG_POLICY_FILE", "FG_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)
        s = Settings()
        assert s.storage == "memory"
        assert s.policy_file is None
        assert s.lookup_timeout_seconds == 5.0
        assert s.log_format == "text"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FG_STORAGE", "SQLite")
        monkeypatch.setenv("FG_LOOKUP_TIMEOUT_SECONDS", "0.5")
        s = Settings()
        assert s.storage == "sqlite"
        assert s.lookup_timeout_seconds == 0.5

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("storage", "postgres"),
            ("log_format", "xml"),
            ("log_level", "LOUD"),
            ("jwt_secret", "short"),
            ("lookup_timeout_seconds", 0),
            ("port", 70000),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_cors_origin_list(self):
        s = Settings(cors_origins="https://a.example, https://b.example,")
        assert s.cors_origin_list == ["https://a.example", "https://b.example"]


class TestStartup:
    def test_builtin_policy_when_unset(self, settings):
        assert build_checker(settings).policy == file_management()

    def test_policy_file(self, tmp_path, settings):
        path = tmp_path / "policy.json"
        path.write_text(file_management().model_dump_json())
        checker = build_checker(settings.model_copy(update={"policy_file": str(path)}))
        assert checker.role_level("admin") == 3

    def test_invalid_policy_aborts_startup(self, tmp_path, settings):
        doc = json.loads(file_management().model_dump_json())
        doc["machine_scope"]["allowed_resources"] = ["bucket"]
        path = tmp_path / "policy.json"
        path.write_text(json.dumps(doc))
        with pytest.raises(ConfigError, match="unknown resource: bucket"):
            create_app(settings=settings.model_copy(update={"policy_file": str(path)}))

    def test_sqlite_backend_selected(self, tmp_path, settings):
        app = create_app(
            settings=settings.model_copy(
                update={"storage": "sqlite", "db_path": str(tmp_path / "fg.db")}
            )
        )
        assert isinstance(app.state.store, Database)
