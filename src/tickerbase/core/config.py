"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from types import UnionType
from typing import Union, get_args, get_origin
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from tickerbase.core.cron import crontab_trigger
from tickerbase.core.exceptions import ConfigError
from tickerbase.core.models import DATE_RANGE_CONFIGS, PacingStrategy, StorageBackend


class ProviderConfig(BaseModel):
    """Market-data provider access configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com"
    user_agent: str = "Mozilla/5.0 (compatible; tickerbase/0.1)"
    request_timeout: float = 15.0
    max_retries: int = 3

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("max_retries")
    @classmethod
    def retries_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/tickerbase.db"


class IngestionConfig(BaseModel):
    """Batching and pacing of provider calls.

    Reference values respect the provider's unauthenticated rate limits:
    one second between symbols, registration in batches of 10 with a one
    second pause, historical pulls in batches of 5 with a three second pause.
    """

    model_config = ConfigDict(frozen=True)

    symbol_delay: float = 1.0
    registration_batch_size: int = 10
    registration_pause: float = 1.0
    history_batch_size: int = 5
    history_batch_pause: float = 3.0
    daily_batch_size: int = 3
    daily_batch_pause: float = 2.0
    default_range: str = "5y"
    pacing: PacingStrategy = PacingStrategy.FIXED
    fail_on_unpersisted: bool = True

    @field_validator(
        "symbol_delay",
        "registration_pause",
        "history_batch_pause",
        "daily_batch_pause",
    )
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("registration_batch_size", "history_batch_size", "daily_batch_size")
    @classmethod
    def batch_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch sizes must be >= 1")
        return v

    @field_validator("default_range")
    @classmethod
    def range_is_known(cls, v: str) -> str:
        if v not in DATE_RANGE_CONFIGS:
            raise ValueError(
                f"default_range must be one of {sorted(DATE_RANGE_CONFIGS)}, got {v!r}"
            )
        return v


class SchedulerConfig(BaseModel):
    """Recurring job configuration. Cron strings use the 5-field crontab form."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    timezone: str = "UTC"
    market_close_cron: str = "30 21 * * 1-5"
    health_check_cron: str = "0 * * * *"
    misfire_grace_seconds: int = 300

    @field_validator("market_close_cron", "health_check_cron")
    @classmethod
    def cron_parses(cls, v: str) -> str:
        try:
            crontab_trigger(v)
        except ValueError as e:
            raise ValueError(f"invalid cron expression {v!r}: {e}") from e
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v!r}") from e
        return v

    @field_validator("misfire_grace_seconds")
    @classmethod
    def grace_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("misfire_grace_seconds must be >= 1")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str | None = None


class LoggingConfig(BaseModel):
    """Root logger configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class TickerbaseConfig(BaseModel):
    """Root configuration for the entire tickerbase system."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderConfig = ProviderConfig()
    storage: StorageConfig = StorageConfig()
    ingestion: IngestionConfig = IngestionConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "TICKERBASE_",
) -> TickerbaseConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (TICKERBASE_STORAGE__SQLITE_PATH, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        TICKERBASE_INGESTION__SYMBOL_DELAY=2  ->  ingestion.symbol_delay = 2
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return TickerbaseConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("TICKERBASE_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from TICKERBASE_CONFIG not found: {env_path}",
                context={"field": "TICKERBASE_CONFIG", "value": env_path},
            )
        return p

    default = Path("tickerbase.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    Fields declared as strings keep the raw value, so an API key of
    "12345" stays a string.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # TICKERBASE_CONFIG points at the file, it is not a setting
        if parts == ["config"]:
            continue

        cast_value = value if _is_string_field(parts) else _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _is_string_field(parts: list[str]) -> bool:
    """Whether the dotted path names a ``str`` (or optional ``str``) setting."""
    model: type[BaseModel] = TickerbaseConfig
    for i, part in enumerate(parts):
        field = model.model_fields.get(part)
        if field is None:
            return False
        annotation = field.annotation
        if i == len(parts) - 1:
            if get_origin(annotation) in (Union, UnionType):
                return set(get_args(annotation)) == {str, type(None)}
            return annotation is str
        if not (isinstance(annotation, type) and issubclass(annotation, BaseModel)):
            return False
        model = annotation
    return False


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
