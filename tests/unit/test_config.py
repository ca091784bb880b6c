"""Tests for project settings loading."""

import json

import pytest

from tstyengine.config import Settings, load_settings
from tstyengine.exceptions import ConfigurationError


class TestLoadSettings:
    def test_defaults_without_config(self, tmp_path) -> None:
        settings = load_settings(tmp_path)
        assert settings.project_root == tmp_path
        assert settings.flows_dir == ".tsty/flows"
        assert settings.playwright.timeout == 30000
        assert settings.viewport_for("desktop").width == 1920
        assert settings.fail_fast is False

    def test_reads_qa_config(self, project_dir) -> None:
        settings = load_settings(project_dir)
        assert settings.base_url == "https://shop.test"
        assert settings.auth.credentials.email == "qa@shop.test"
        assert settings.playwright.wait_until == "load"

    def test_falls_back_to_tsty_config(self, tmp_path) -> None:
        (tmp_path / ".tsty").mkdir()
        (tmp_path / ".tsty" / "config.json").write_text(json.dumps({"failFast": True}))
        assert load_settings(tmp_path).fail_fast is True

    def test_custom_dirs(self, tmp_path) -> None:
        (tmp_path / "qa.config.json").write_text(
            json.dumps({"testDir": "qa", "reportsDir": "/var/reports"})
        )
        settings = load_settings(tmp_path)
        assert settings.flows_dir == "qa/flows"
        assert settings.path(settings.flows_dir) == tmp_path / "qa" / "flows"
        assert str(settings.path(settings.reports_dir)) == "/var/reports"

    def test_custom_viewport_keeps_defaults(self, tmp_path) -> None:
        (tmp_path / "qa.config.json").write_text(
            json.dumps({"viewports": {"mobile": {"width": 390, "height": 844}}})
        )
        settings = load_settings(tmp_path)
        assert settings.viewport_for("mobile").width == 390
        assert settings.viewport_for("desktop").width == 1920

    def test_invalid_json(self, tmp_path) -> None:
        (tmp_path / "qa.config.json").write_text("{oops")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_settings(tmp_path)

    def test_invalid_values(self, tmp_path) -> None:
        (tmp_path / "qa.config.json").write_text(
            json.dumps({"viewports": {"mobile": {"width": 0, "height": 1}}})
        )
        with pytest.raises(ConfigurationError):
            load_settings(tmp_path)

    def test_unknown_wait_until_rejected(self, tmp_path) -> None:
        (tmp_path / "qa.config.json").write_text(
            json.dumps({"playwright": {"waitUntil": "networkIdle"}})
        )
        with pytest.raises(ConfigurationError, match="waitUntil"):
            load_settings(tmp_path)

    def test_project_root_from_env(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("QA_PROJECT_ROOT", str(tmp_path))
        assert load_settings().project_root == tmp_path

    def test_env_overrides(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("TSTY_HEADLESS", "false")
        monkeypatch.setenv("TSTY_FAIL_FAST", "1")
        settings = load_settings(tmp_path)
        assert settings.playwright.headless is False
        assert settings.fail_fast is True


class TestSettings:
    def test_unknown_viewport(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="watch"):
            Settings(project_root=tmp_path).viewport_for("watch")
