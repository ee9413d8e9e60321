from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from marketsync.config import (
    InvalidConfigurationError,
    MissingConfigurationError,
    get_database_config,
    get_governance_config,
    get_log_level,
    get_redis_config,
    get_settings,
    get_sweep_config,
    require_env_vars,
)

if TYPE_CHECKING:
    from pathlib import Path

LEDGER_ENV = {
    "LEDGER_RPC_URL": "https://rpc.example.test",
    "LEDGER_PROGRAM_ADDRESS": "GovProgram1111111111111111111111111111111",
    "LEDGER_AUTHORITY_KEY": "AAECAwQFBgcICQoLDA0ODxAREhMUFRYXGBkaGxwdHh8=",
}


@pytest.fixture
def ledger_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name, value in LEDGER_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("DATABASE_URI", f"sqlite+pysqlite:///{tmp_path / 'config.db'}")
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FIRST_VAR", raising=False)
    monkeypatch.setenv("SECOND_VAR", "   ")
    monkeypatch.setenv("THIRD_VAR", " value ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["FIRST_VAR", "SECOND_VAR", "THIRD_VAR"])

    assert "FIRST_VAR, SECOND_VAR" in str(exc.value)
    assert require_env_vars(["THIRD_VAR"]) == {"THIRD_VAR": "value"}


def test_governance_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PROPOSAL_THRESHOLD_BPS", "DISPUTE_THRESHOLD_BPS", "RESOLUTION_DELAY_HOURS"):
        monkeypatch.delenv(name, raising=False)

    config = get_governance_config()

    assert config.proposal_threshold_bps == 7000
    assert config.dispute_threshold_bps == 6000
    assert config.resolution_delay == timedelta(hours=48)
    assert config.dispute_window == timedelta(hours=72)


def test_governance_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROPOSAL_THRESHOLD_BPS", "5100")
    monkeypatch.setenv("DISPUTE_WINDOW_HOURS", "1.5")

    config = get_governance_config()

    assert config.proposal_threshold_bps == 5100
    assert config.dispute_window == timedelta(minutes=90)


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PROPOSAL_THRESHOLD_BPS", "10001"),
        ("PROPOSAL_THRESHOLD_BPS", "seventy"),
        ("MIN_VOTES_REQUIRED", "0"),
    ],
)
def test_governance_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(InvalidConfigurationError) as exc:
        get_governance_config()

    assert name in str(exc.value)


def test_sweep_intervals(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIFECYCLE_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("SWEEP_MAX_WORKERS", "8")

    config = get_sweep_config()

    assert config.lifecycle_interval_seconds == 15.0
    assert config.max_workers == 8
    assert config.aggregation_interval_seconds == 300.0


def test_database_uri_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/marketsync")
    monkeypatch.setenv("DATABASE_ECHO", "yes")

    config = get_database_config()

    assert config.uri == "postgresql+psycopg://db/marketsync"
    assert config.echo


def test_database_uri_defaults_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("MARKETSYNC_DATA_DIR", str(tmp_path / "data"))

    config = get_database_config()

    assert config.uri == f"sqlite+pysqlite:///{(tmp_path / 'data').resolve() / 'marketsync.db'}"
    assert (tmp_path / "data").is_dir()


def test_redis_is_optional(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("REDIS_KEY_PREFIX", raising=False)

    config = get_redis_config()

    assert config.url is None
    assert config.key_prefix == "marketsync"


@pytest.mark.usefixtures("ledger_env")
def test_settings_only_require_webhook_secret_when_serving(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    settings = get_settings()
    assert settings.webhook is None
    assert settings.ledger.submit_resilience.retry.total == 0

    with pytest.raises(MissingConfigurationError):
        get_settings(with_webhook=True)

    monkeypatch.setenv("WEBHOOK_SECRET", "s3cret")
    monkeypatch.setenv("WEBHOOK_PORT", "9000")
    webhook = get_settings(with_webhook=True).webhook
    assert webhook is not None
    assert webhook.secret == "s3cret"
    assert webhook.port == 9000


def test_settings_require_ledger(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEDGER_AUTHORITY_KEY", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        get_settings()

    assert "LEDGER_AUTHORITY_KEY" in str(exc.value)


def test_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    assert get_log_level() == logging.INFO

    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert get_log_level() == logging.DEBUG

    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(InvalidConfigurationError):
        get_log_level()
