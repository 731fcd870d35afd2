"""Centralized application configuration with schema validation.

This module is intentionally compatibility-first:
- Supports flat environment names (for example ``INGEST_BUCKET``).
- Supports nested names (for example ``INGEST__BUCKET``).
- Optionally reads a local ``.env`` file before process env values.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pipeline.batch_persister import DYNAMO_MAX_BATCH_WRITE_ITEM


class AWSConfig(BaseModel):
    """AWS client defaults used by service factories."""

    model_config = ConfigDict(frozen=True)

    region: str = Field(default="eu-west-2")
    max_retries: int = Field(default=10, ge=1, le=25)
    timeout: int = Field(default=60, ge=1, le=300)
    connect_timeout: int = Field(default=5, ge=1, le=60)

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> str:
        text = str(value or "").strip()
        return text or "eu-west-2"


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        if text in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return text
        return "INFO"


class IngestConfig(BaseModel):
    """Where raw reports come from and where artifacts go."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(default="")
    delimiter: str = Field(default=",")
    raw_prefix: str = Field(default="raw/")
    parquet_prefix: str = Field(default="parquet/")
    tmp_dir: str = Field(default="/tmp")

    @field_validator("delimiter", mode="before")
    @classmethod
    def _normalize_delimiter(cls, value: object) -> str:
        text = "," if value is None else str(value)
        if text.lower() in {"tab", "\\t"}:
            return "\t"
        if len(text) != 1:
            raise ValueError("ingest.delimiter must be a single character")
        return text

    @field_validator("bucket", "raw_prefix", "parquet_prefix", "tmp_dir", mode="before")
    @classmethod
    def _normalize_text(cls, value: object) -> str:
        return str(value or "").strip()


class StoreConfig(BaseModel):
    """Key-value store batching and retry settings."""

    model_config = ConfigDict(frozen=True)

    batch_capacity: int = Field(default=DYNAMO_MAX_BATCH_WRITE_ITEM, ge=1, le=DYNAMO_MAX_BATCH_WRITE_ITEM)
    retry_max_attempts: int = Field(default=5, ge=1, le=20)
    retry_base_delay: float = Field(default=0.05, ge=0.0)
    retry_max_delay: float = Field(default=2.0, ge=0.0)
    flush_timeout_seconds: float | None = Field(default=300.0, gt=0.0)
    flush_workers: int = Field(default=0, ge=0, le=32)
    reports_table: str = Field(default="")
    key_field: str = Field(default="id")
    accounts_table: str = Field(default="accounts")

    @field_validator("reports_table", "key_field", "accounts_table", mode="before")
    @classmethod
    def _normalize_text(cls, value: object) -> str:
        return str(value or "").strip()


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    aws: AWSConfig = Field(default_factory=AWSConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from `.env` then environment variables."""
        runtime_env = os.environ if env is None else env
        merged_env = _merge_env(_load_dotenv(Path(env_file)), runtime_env)
        payload = _build_payload(merged_env)
        return cls.model_validate(payload)


def _load_dotenv(path: Path) -> dict[str, str]:
    """Parse a `.env` file: `KEY=value` lines, optional `export ` prefix and quotes."""
    if not path.is_file():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, raw_value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        value = raw_value.strip()
        if value[:1] in {"'", '"'} and value.endswith(value[0]) and len(value) >= 2:
            value = value[1:-1]
        elif " #" in value:
            value = value.split(" #", 1)[0].rstrip()
        values[key] = value
    return values


def _merge_env(dotenv_values: Mapping[str, str], runtime_env: Mapping[str, str]) -> dict[str, str]:
    """Return env map where process env overrides `.env` values."""
    merged = {str(k): str(v) for k, v in dotenv_values.items()}
    for key, value in runtime_env.items():
        merged[str(key)] = str(value)
    return merged


def _first_non_empty(env: Mapping[str, str], *keys: str) -> str | None:
    """Return the first non-empty value for the provided keys."""
    for key in keys:
        value = str(env.get(key, "")).strip()
        if value:
            return value
    return None


def _first_present(env: Mapping[str, str], *keys: str) -> str | None:
    """Like _first_non_empty but keeps whitespace (a tab is a valid delimiter)."""
    for key in keys:
        value = str(env.get(key, ""))
        if value:
            return value
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, object]:
    """Build nested settings payload from env values."""
    aws = {
        "region": _first_non_empty(env, "AWS__REGION", "AWS_REGION", "AWS_DEFAULT_REGION"),
        "max_retries": _first_non_empty(env, "AWS__MAX_RETRIES", "AWS_MAX_RETRIES"),
        "timeout": _first_non_empty(env, "AWS__TIMEOUT", "AWS_TIMEOUT"),
        "connect_timeout": _first_non_empty(env, "AWS__CONNECT_TIMEOUT", "AWS_CONNECT_TIMEOUT"),
    }
    logging_settings = {
        "level": _first_non_empty(env, "LOGGING__LEVEL", "INGEST_LOG_LEVEL"),
        "json_logs": _first_non_empty(env, "LOGGING__JSON_LOGS", "INGEST_LOG_JSON"),
        "override_root_handlers": _first_non_empty(
            env, "LOGGING__OVERRIDE_ROOT_HANDLERS", "INGEST_LOG_OVERRIDE"
        ),
    }
    ingest = {
        "bucket": _first_non_empty(env, "INGEST__BUCKET", "INGEST_BUCKET", "BUCKET"),
        "delimiter": _first_present(env, "INGEST__DELIMITER", "INGEST_DELIMITER", "FILE_DELIMITER"),
        "raw_prefix": _first_non_empty(env, "INGEST__RAW_PREFIX", "RAW_PREFIX"),
        "parquet_prefix": _first_non_empty(env, "INGEST__PARQUET_PREFIX", "PARQUET_PREFIX"),
        "tmp_dir": _first_non_empty(env, "INGEST__TMP_DIR", "INGEST_TMP_DIR"),
    }
    store = {
        "batch_capacity": _first_non_empty(env, "STORE__BATCH_CAPACITY", "DYNAMO_BATCH_CAPACITY"),
        "retry_max_attempts": _first_non_empty(env, "STORE__RETRY_MAX_ATTEMPTS", "DYNAMO_RETRY_MAX_ATTEMPTS"),
        "retry_base_delay": _first_non_empty(env, "STORE__RETRY_BASE_DELAY", "DYNAMO_RETRY_BASE_DELAY"),
        "retry_max_delay": _first_non_empty(env, "STORE__RETRY_MAX_DELAY", "DYNAMO_RETRY_MAX_DELAY"),
        "flush_timeout_seconds": _first_non_empty(
            env, "STORE__FLUSH_TIMEOUT_SECONDS", "DYNAMO_FLUSH_TIMEOUT_SECONDS"
        ),
        "flush_workers": _first_non_empty(env, "STORE__FLUSH_WORKERS", "DYNAMO_FLUSH_WORKERS"),
        "reports_table": _first_non_empty(env, "STORE__REPORTS_TABLE", "REPORTS_TABLE"),
        "key_field": _first_non_empty(env, "STORE__KEY_FIELD", "REPORTS_KEY_FIELD"),
        "accounts_table": _first_non_empty(env, "STORE__ACCOUNTS_TABLE", "ACCOUNTS_TABLE"),
    }
    return {
        "aws": {k: v for k, v in aws.items() if v is not None},
        "logging": {k: v for k, v in logging_settings.items() if v is not None},
        "ingest": {k: v for k, v in ingest.items() if v is not None},
        "store": {k: v for k, v in store.items() if v is not None},
    }


_SETTINGS_LOCK = Lock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Return cached settings, optionally forcing reload from env."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        if reload or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings.from_env()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear in-process settings cache."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


__all__ = [
    "AWSConfig",
    "DYNAMO_MAX_BATCH_WRITE_ITEM",
    "IngestConfig",
    "LoggingSettings",
    "Settings",
    "StoreConfig",
    "get_settings",
    "clear_settings_cache",
    "ValidationError",
]
