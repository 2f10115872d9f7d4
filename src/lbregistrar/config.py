# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Controller settings.

Settings come from, in increasing precedence: defaults, an optional YAML file,
`LBR_*` environment variables and explicit overrides (command line flags).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from lbregistrar.errors import ConfigError

ENV_PREFIX = "LBR_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class Settings:
    # Delay before retrying a failed registration.
    requeue_after: float = 90.0
    # Network load balancer work request polling.
    poll_interval: float = 5.0
    max_poll_attempts: int = 60
    workers: int = 2
    event_namespace: str = "default"
    field_manager: str = "lbregistrar"
    component: str = "lbregistrar-controller"
    log_level: str = "INFO"

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> Settings:
        values: dict[str, Any] = {}
        if path:
            values.update(_read_file(Path(path)))
        environ = os.environ if environ is None else environ
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                values[f.name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(values)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Settings:
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ConfigError(f"unknown settings: {', '.join(unknown)}")

        parsed: dict[str, Any] = {}
        for name, value in values.items():
            default = known[name].default
            try:
                parsed[name] = type(default)(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{name} must be of type {type(default).__name__}") from e

        settings = cls(**parsed)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.requeue_after <= 0:
            raise ConfigError("requeue_after must be positive")
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be positive")
        if self.max_poll_attempts < 1:
            raise ConfigError("max_poll_attempts must be at least 1")
        if self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if not self.event_namespace:
            raise ConfigError("event_namespace must not be empty")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())


def _read_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f"unable to read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"settings file {path} is invalid: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"settings file {path} must contain a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}
