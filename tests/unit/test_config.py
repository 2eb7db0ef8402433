"""Unit tests for configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from zyflow_engine.engine.config import EngineSettings
from zyflow_engine.server.config import ServerSettings


def test_engine_settings_defaults(monkeypatch, tmp_path: Path) -> None:
    """Nothing is required to start."""
    monkeypatch.chdir(tmp_path)
    for name in ("ZYFLOW_STATE_PATH", "CRON_JOB_KEY", "ZYFLOW_REDIS_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = EngineSettings()

    assert settings.log_level == "INFO"
    assert settings.cron_job_api_key == ""
    assert settings.cron_job_base_url == "https://api.cron-job.org"
    assert settings.dedup_ttl_seconds == 600.0
    assert settings.debounce_seconds == 5.0
    assert settings.wait_default_minutes == 1
    assert settings.workflows_state_file == Path("zyflow_state") / "workflows.json"


def test_settings_load_from_env_file(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CRON_JOB_KEY", raising=False)
    monkeypatch.delenv("ZYFLOW_STATE_PATH", raising=False)
    (tmp_path / ".env").write_text(
        "CRON_JOB_KEY=from-dotenv\nZYFLOW_STATE_PATH=/var/lib/zyflow\n", encoding="utf-8"
    )

    settings = EngineSettings()

    assert settings.cron_job_api_key == "from-dotenv"
    assert settings.accounts_state_file == Path("/var/lib/zyflow/accounts.json")


def test_environment_overrides_env_file(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("ZYFLOW_DEBOUNCE_SECONDS=5\n", encoding="utf-8")
    monkeypatch.setenv("ZYFLOW_DEBOUNCE_SECONDS", "2.5")

    assert EngineSettings().debounce_seconds == 2.5


def test_wait_default_must_be_positive(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZYFLOW_WAIT_DEFAULT_MINUTES", "0")

    with pytest.raises(ValidationError):
        EngineSettings()


def test_server_settings_parse_cors_origins(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZYFLOW_CORS_ORIGINS", "https://a.example, ,https://b.example")
    monkeypatch.setenv("ZYFLOW_PORT", "9000")

    settings = ServerSettings()

    assert settings.parsed_cors_origins() == ["https://a.example", "https://b.example"]
    assert settings.port == 9000
