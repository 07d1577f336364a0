"""
Root conftest — isolate PULSEKIT_* environment variables and the settings
singleton so tests are not affected by a developer's shell or .env file.
"""
import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_pulsekit_env(monkeypatch):
    """Remove PULSEKIT_* env vars and disable .env loading for every test."""
    for var in list(os.environ):
        if var.upper().startswith("PULSEKIT_"):
            monkeypatch.delenv(var, raising=False)

    import pulsekit.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_prefix="PULSEKIT_",
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
