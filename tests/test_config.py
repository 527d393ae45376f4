import json
from pathlib import Path

import pytest

from leadbridge.app.config import ConfigurationError, Settings, load_config
from leadbridge.services.jobs import build_job, job_interval_minutes


def test_from_env_reads_values() -> None:
    settings = Settings.from_env(
        {
            "API_USERNAME": "user",
            "API_PASSWORD": "pass",
            "REPORTS_API_KEY": "key",
            "AFFILIATE_ID": "42",
            "BACKEND_BASE_URL": "https://crm.test/api/",
            "PORT": "8080",
            "DATA_DIR": "/tmp/leadbridge",
            "EMAIL_LOOKUP_TOKENS": "t0, t1,,t2",
            "EMAIL_COOLDOWN_MAX_RETRIES": "3",
            "Monday_Token": "board-token",
        }
    )

    assert settings.backend_base_url == "https://crm.test/api"
    assert settings.port == 8080
    assert settings.data_dir == Path("/tmp/leadbridge")
    assert settings.email_lookup_tokens == ["t0", "t1", "t2"]
    assert settings.cooldown_max_retries == 3
    assert settings.board_api_token == "board-token"
    settings.require_server_settings()
    assert settings.secret_values() == ["pass", "key", "board-token", "t0", "t1", "t2"]


def test_from_env_defaults() -> None:
    settings = Settings.from_env({})

    assert settings.port == 3000
    assert settings.pull_interval_minutes == 15
    assert settings.cooldown_seconds == 60.0
    assert settings.cooldown_max_retries is None
    assert settings.rate_limit_capacity == 60


def test_bad_integer_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="PORT"):
        Settings.from_env({"PORT": "eighty"})


def test_missing_server_settings_are_listed() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        Settings.from_env({"API_USERNAME": "user"}).require_server_settings()

    message = str(excinfo.value)
    assert "API_PASSWORD" in message
    assert "REPORTS_API_KEY" in message
    assert "API_USERNAME" not in message


def test_board_configs(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "boards": {
                    "sales": [{"name": "Sales", "boardId": "1"}],
                    "retention": {"name": "broken"},
                }
            }
        )
    )
    settings = Settings(boards_config_path=config_path)

    assert settings.board_configs("sales") == [{"name": "Sales", "boardId": "1"}]
    assert settings.board_configs("registration") == []
    with pytest.raises(ConfigurationError):
        settings.board_configs("retention")
    assert load_config(tmp_path / "missing.json") == {}


def test_build_job_by_name(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path, boards_config_path=tmp_path / "none.json")

    job = build_job("retention-updater", settings)

    assert job.name == "retention-updater"
    assert job.state.path == tmp_path / "sync_state.json"
    assert job_interval_minutes("retention-updater", settings) == 30
    assert job_interval_minutes("sales-updater", settings) == 15
    with pytest.raises(ValueError):
        build_job("unknown", settings)
