"""Unit tests for settings loading."""

import logging

import pytest

from lbregistrar.config import Settings
from lbregistrar.errors import ConfigError


def test_defaults():
    settings = Settings.load(environ={})

    assert settings.requeue_after == 90.0
    assert settings.poll_interval == 5.0
    assert settings.max_poll_attempts == 60
    assert settings.workers == 2
    assert settings.logging_level == logging.INFO


def test_file_then_environment_then_overrides(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("requeue-after: 30\nworkers: 4\nevent_namespace: lb-system\n")

    settings = Settings.load(
        path,
        environ={"LBR_WORKERS": "8", "LBR_LOG_LEVEL": "debug", "UNRELATED": "x"},
        log_level="WARNING",
        poll_interval=None,
    )

    assert settings.requeue_after == 30.0
    assert settings.workers == 8
    assert settings.event_namespace == "lb-system"
    assert settings.log_level == "WARNING"
    assert settings.poll_interval == 5.0


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")

    assert Settings.load(path, environ={}) == Settings()


@pytest.mark.parametrize(
    "values",
    [
        {"workers": "many"},
        {"workers": 0},
        {"requeue_after": -1},
        {"max_poll_attempts": 0},
        {"log_level": "TRACE"},
        {"event_namespace": ""},
        {"resync": 10},
    ],
)
def test_invalid_settings(values):
    with pytest.raises(ConfigError):
        Settings.from_mapping(values)


def test_unreadable_or_invalid_file(tmp_path):
    with pytest.raises(ConfigError):
        Settings.load(tmp_path / "missing.yaml", environ={})

    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        Settings.load(path, environ={})
