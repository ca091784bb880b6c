"""``${name}`` variable substitution in primitive fields and step URLs."""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel

from tstyengine.config import Settings

_PATTERN = re.compile(r"\$\{([^}]+)\}")

M = TypeVar("M", bound=BaseModel)


@dataclass
class InterpolationContext:
    """Values available to ``${...}`` placeholders."""

    base_url: str = ""
    email: str = ""
    password: str = ""
    variables: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(
        cls, settings: Settings, base_url: str | None = None, **variables: str
    ) -> InterpolationContext:
        credentials = settings.auth.credentials if settings.auth else None
        return cls(
            base_url=base_url or settings.base_url,
            email=credentials.email if credentials else "",
            password=credentials.password if credentials else "",
            variables=dict(variables),
        )

    def lookup(self, name: str) -> str | None:
        now = datetime.now(tz=timezone.utc)
        builtins = {
            "timestamp": lambda: str(int(time.time() * 1000)),
            "datetime": lambda: now.strftime("%Y-%m-%dT%H-%M-%S"),
            "date": lambda: now.strftime("%Y-%m-%d"),
            "time": lambda: now.strftime("%H-%M-%S"),
            "random": lambda: secrets.token_hex(3),
            "uuid": lambda: secrets.token_hex(4),
            "baseUrl": lambda: self.base_url,
            "credentials.email": lambda: self.email,
            "credentials.password": lambda: self.password,
        }
        if name in builtins:
            return builtins[name]()
        return self.variables.get(name)


def interpolate(text: str, context: InterpolationContext) -> str:
    """Replace every known ``${name}``; unknown names are left untouched."""

    def replacer(match: re.Match) -> str:
        value = context.lookup(match.group(1).strip())
        return match.group(0) if value is None else value

    return _PATTERN.sub(replacer, text)


def interpolate_value(value: Any, context: InterpolationContext) -> Any:
    """Walk strings, lists and dicts, interpolating every string."""
    if isinstance(value, str):
        return interpolate(value, context) if "${" in value else value
    if isinstance(value, list):
        return [interpolate_value(v, context) for v in value]
    if isinstance(value, dict):
        return {k: interpolate_value(v, context) for k, v in value.items()}
    return value


def interpolate_model(model: M, context: InterpolationContext) -> M:
    """Return a copy of ``model`` with placeholders substituted."""
    data = model.model_dump(by_alias=True)
    rendered = interpolate_value(data, context)
    if rendered == data:
        return model
    return type(model).model_validate(rendered)
