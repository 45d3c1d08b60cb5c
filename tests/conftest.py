"""
Test conftest — isolate delayline from the developer's environment.

DELAYLINE_* variables and local .env files would otherwise leak into
Settings(); the cached settings singleton is dropped between tests.
"""
from __future__ import annotations

import os
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    for var in list(os.environ):
        if var.startswith("DELAYLINE_"):
            monkeypatch.delenv(var, raising=False)

    # Disable .env file loading by patching Settings.model_config
    import delayline.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_prefix="DELAYLINE_",
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)

    settings_module.reset_settings()
    yield
    settings_module.reset_settings()


class Recorder:
    """Collects callback invocations in call order."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def main(self, name: str):
        def _cb(alias, data):
            self.calls.append(("main", name, alias, data))
        return _cb

    def interval(self, name: str):
        def _cb(alias, count, data):
            self.calls.append(("interval", name, alias, count))
        return _cb

    def canceled(self, name: str, returns: Any = None):
        def _cb(alias, waiting, data):
            self.calls.append(("canceled", name, alias, waiting))
            return returns
        return _cb

    def names(self, kind: str | None = None) -> list[str]:
        return [c[1] for c in self.calls if kind is None or c[0] == kind]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def scheduler():
    from delayline.scheduler import Scheduler
    return Scheduler(name="test")
