"""Project configuration: qa.config.json / .tsty/config.json plus env overrides."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from tstyengine.exceptions import ConfigurationError
from tstyengine.logger import get_logger
from tstyengine.models import CamelModel, WaitUntil

log = get_logger(__name__)

CONFIG_FILENAMES = ("qa.config.json", ".tsty/config.json")


class Viewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class Credentials(BaseModel):
    email: str = ""
    password: str = ""


class AuthConfig(CamelModel):
    login_url: str = ""
    credentials: Credentials = Field(default_factory=Credentials)


class PlaywrightConfig(CamelModel):
    headless: bool = True
    slow_mo: float = 0
    timeout: float = 30000
    wait_until: WaitUntil = "networkidle"


def _default_viewports() -> dict[str, Viewport]:
    return {
        "desktop": Viewport(width=1920, height=1080),
        "mobile": Viewport(width=375, height=667),
        "tablet": Viewport(width=768, height=1024),
    }


class Settings(CamelModel):
    """Resolved project settings."""

    project_root: Path = Field(default_factory=Path.cwd)
    test_dir: str = ".tsty"
    screenshots_dir: str = ""
    reports_dir: str = ""
    actions_dir: str = ""
    flows_dir: str = ""
    base_url: str = ""
    auth: AuthConfig | None = None
    viewports: dict[str, Viewport] = Field(default_factory=_default_viewports)
    playwright: PlaywrightConfig = Field(default_factory=PlaywrightConfig)
    fail_fast: bool = False
    monitor_console: bool = True

    @model_validator(mode="after")
    def _derive_paths(self) -> Settings:
        self.screenshots_dir = self.screenshots_dir or f"{self.test_dir}/screenshots"
        self.reports_dir = self.reports_dir or f"{self.test_dir}/reports"
        self.actions_dir = self.actions_dir or f"{self.test_dir}/actions"
        self.flows_dir = self.flows_dir or f"{self.test_dir}/flows"
        defaults = _default_viewports()
        for name, viewport in defaults.items():
            self.viewports.setdefault(name, viewport)
        return self

    def path(self, relative: str) -> Path:
        """Absolute path for a configured directory."""
        p = Path(relative)
        return p if p.is_absolute() else self.project_root / p

    def viewport_for(self, device: str) -> Viewport:
        try:
            return self.viewports[device]
        except KeyError:
            raise ConfigurationError(f"No viewport configured for device '{device}'")


def _env_flag(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(project_root: str | Path | None = None) -> Settings:
    """Load settings for a project root.

    The root is ``project_root``, else ``QA_PROJECT_ROOT``, else the cwd.
    The first existing file of ``qa.config.json`` and ``.tsty/config.json``
    is merged over the defaults; a project without either runs on defaults.
    """
    root = Path(project_root or os.environ.get("QA_PROJECT_ROOT") or Path.cwd())
    data: dict = {}
    for name in CONFIG_FILENAMES:
        path = root / name
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
            log.info("config_loaded", path=str(path))
            break
    else:
        log.debug("config_defaults", root=str(root))

    data["projectRoot"] = root
    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    headless = _env_flag("TSTY_HEADLESS")
    if headless is not None:
        settings.playwright.headless = headless
    fail_fast = _env_flag("TSTY_FAIL_FAST")
    if fail_fast is not None:
        settings.fail_fast = fail_fast
    return settings
