import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from outlier.core.errors import ConfigurationError

CONFIG_FILE_ENV = "CONFIG_FILE"


class LoggingSettings(BaseModel):
    level: Literal["trace", "debug", "info", "warn", "error"] = Field(default="info")
    format: Literal["compact", "pretty", "json"] = Field(default="compact")
    output: str = Field(default="stdout", description="'stdout', 'stderr' or a file path")

    @field_validator("level", "format", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("output", mode="before")
    @classmethod
    def _normalize_output(cls, value: object) -> object:
        if value in (None, ""):
            return "stdout"
        if isinstance(value, Path):
            return str(value)
        return value


class ServerSettings(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)


class LimitSettings(BaseModel):
    max_body_bytes: int = Field(default=64 * 1024 * 1024, ge=1, description="Request body ceiling enforced before decoding")
    max_dataset_values: int = Field(default=10_000_000, ge=1, description="Maximum number of values accepted per call")


class Settings(BaseSettings):
    """Strongly typed configuration sourced from a config file and environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OUTLIER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Outlier API")
    environment: Literal["dev", "test", "staging", "prod"] = Field(default="dev")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)

    @computed_field(return_type=bool)
    def is_production(self) -> bool:
        return self.environment == "prod"


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read config file '{path}': {exc}",
            detail={"path": str(path)},
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse config file '{path}': {exc}",
            detail={"path": str(path)},
        ) from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Failed to parse config file '{path}': expected a mapping at top level",
            detail={"path": str(path)},
        )
    return raw


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """Load settings, highest priority first:

    1. ``config_path`` (e.g. the CLI ``--config`` option)
    2. the file named by the ``CONFIG_FILE`` environment variable
    3. ``OUTLIER_*`` environment variables and built-in defaults
    """
    if config_path is None:
        env_path = os.getenv(CONFIG_FILE_ENV)
        config_path = env_path or None
    if config_path is None:
        return Settings()

    path = Path(config_path)
    data = _read_config_file(path)
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid config file '{path}': {exc.error_count()} validation error(s)",
            detail={"path": str(path), "errors": exc.errors(include_url=False)},
        ) from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
