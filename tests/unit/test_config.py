from __future__ import annotations

from pathlib import Path

from agrofacil import config


def test_settings_defaults(monkeypatch) -> None:
    for name in ("DB_HOST", "DB_PORT", "DB_USER", "DB_NAME", "STORAGE_DIR", "REMOTE_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    settings = config.Settings(_env_file=None)

    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_user == "postgres"
    assert settings.db_name == "agrofacil"
    assert settings.storage_dir == Path(".agrofacil")
    assert settings.remote_enabled is True
    assert settings.remote_timeout_seconds > 0
    assert settings.connectivity_probe_interval > 0


def test_settings_read_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("REMOTE_ENABLED", "false")
    monkeypatch.setenv("REMOTE_TIMEOUT_SECONDS", "1.5")

    settings = config.Settings(_env_file=None)

    assert settings.storage_dir == tmp_path
    assert settings.remote_enabled is False
    assert settings.remote_timeout_seconds == 1.5


def test_get_settings_is_cached() -> None:
    config.get_settings.cache_clear()
    try:
        assert config.get_settings() is config.get_settings()
    finally:
        config.get_settings.cache_clear()
