"""Unit tests for centralized configuration parsing and validation."""

from __future__ import annotations

from typing import Any

import pytest

from infra.config import Settings, ValidationError, clear_settings_cache, get_settings


def test_settings_reads_flat_env_keys() -> None:
    """Flat env keys should map to nested settings models."""
    env = {
        "AWS_REGION": "us-east-1",
        "AWS_MAX_RETRIES": "7",
        "INGEST_BUCKET": "reports-bucket",
        "FILE_DELIMITER": "tab",
        "DYNAMO_BATCH_CAPACITY": "10",
        "REPORTS_TABLE": "campaign_reports",
        "INGEST_LOG_LEVEL": "debug",
        "INGEST_LOG_JSON": "1",
    }
    settings = Settings.from_env(env=env, env_file=".missing.env")

    assert settings.aws.region == "us-east-1"
    assert settings.aws.max_retries == 7
    assert settings.ingest.bucket == "reports-bucket"
    assert settings.ingest.delimiter == "\t"
    assert settings.store.batch_capacity == 10
    assert settings.store.reports_table == "campaign_reports"
    assert settings.logging.level == "DEBUG"
    assert settings.logging.json_logs is True


def test_settings_reads_nested_env_keys() -> None:
    """Nested env keys should be supported with `__` delimiter."""
    env = {
        "INGEST__BUCKET": "nested-bucket",
        "INGEST__DELIMITER": "\t",
        "STORE__RETRY_MAX_ATTEMPTS": "3",
        "STORE__FLUSH_WORKERS": "4",
        "AWS__REGION": "eu-central-1",
    }
    settings = Settings.from_env(env=env, env_file=".missing.env")

    assert settings.ingest.bucket == "nested-bucket"
    assert settings.ingest.delimiter == "\t"
    assert settings.store.retry_max_attempts == 3
    assert settings.store.flush_workers == 4
    assert settings.aws.region == "eu-central-1"


def test_settings_defaults() -> None:
    settings = Settings.from_env(env={}, env_file=".missing.env")

    assert settings.aws.region == "eu-west-2"
    assert settings.ingest.delimiter == ","
    assert settings.store.batch_capacity == 25
    assert settings.store.key_field == "id"
    assert settings.logging.level == "INFO"


@pytest.mark.parametrize("capacity", ["0", "26"])
def test_batch_capacity_is_bounded(capacity: str) -> None:
    """Invalid constrained values should fail schema validation."""
    with pytest.raises(ValidationError):
        Settings.from_env(env={"DYNAMO_BATCH_CAPACITY": capacity}, env_file=".missing.env")


def test_multi_character_delimiter_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings.from_env(env={"INGEST_DELIMITER": ";;"}, env_file=".missing.env")


def test_invalid_log_level_falls_back_to_info() -> None:
    settings = Settings.from_env(env={"INGEST_LOG_LEVEL": "chatty"}, env_file=".missing.env")
    assert settings.logging.level == "INFO"


def test_dotenv_values_are_overridden_by_process_env(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# local defaults\nINGEST_BUCKET='from-dotenv'\nREPORTS_TABLE=dotenv_table\n"
        "export ACCOUNTS_TABLE=accounts_dev  # shared\nnot a setting\n",
        encoding="utf-8",
    )
    settings = Settings.from_env(env={"REPORTS_TABLE": "env_table"}, env_file=str(env_file))

    assert settings.ingest.bucket == "from-dotenv"
    assert settings.store.reports_table == "env_table"
    assert settings.store.accounts_table == "accounts_dev"


def test_get_settings_reload_rebuilds_cache(monkeypatch: Any) -> None:
    """Reload should rebuild cached settings from current process env."""
    clear_settings_cache()
    monkeypatch.setenv("INGEST_BUCKET", "first")
    first = get_settings(reload=True)

    monkeypatch.setenv("INGEST_BUCKET", "second")
    second = get_settings(reload=True)
    cached = get_settings()

    assert first.ingest.bucket == "first"
    assert second.ingest.bucket == "second"
    assert cached is second
    clear_settings_cache()
