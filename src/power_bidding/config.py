"""Configuration models, loading helpers, and the in-memory config store."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from power_bidding.errors import ConfigValidationError

if TYPE_CHECKING:
    from power_bidding.models import ServiceStatus

LOGGER = logging.getLogger(__name__)

API_URL_ENV = "POWER_BIDDING_API_URL"
DEFAULT_BASE_URL = "https://power-market-api.vercel.app"

ModelId = Literal[
    "random_forest",
    "xgboost",
    "gradient_boosting",
    "linear_regression",
    "ensemble",
]
TimeRange = Literal["1d", "7d", "30d", "all"]


class ServiceConfig(BaseModel):
    """Remote analytics service endpoint settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(30.0, gt=0)
    user_agent: str = "power-bidding-client/0.1"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value


class UploadOptions(BaseModel):
    """Local checks applied to a dataset file before it is uploaded."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    allowed_extensions: tuple[str, ...] = (".xlsx", ".xls", ".csv")
    max_file_mb: float = Field(50.0, gt=0)

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one extension is required")
        return tuple(ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value)


class PredictionConfig(BaseModel):
    """Price prediction request parameters."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    horizon_points: int = Field(96, ge=1, le=168)
    confidence_level: float = Field(0.95, ge=0.80, le=0.99)
    models: tuple[ModelId, ...] = (
        "random_forest",
        "xgboost",
        "gradient_boosting",
        "linear_regression",
    )
    prediction_date: date | None = None

    @field_validator("models")
    @classmethod
    def _unique_models(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one model is required")
        if len(set(value)) != len(value):
            raise ValueError("models must not repeat")
        return value


class OptimizationConfig(BaseModel):
    """Bid optimization cost parameters (currency per MWh)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cost_generation: float = Field(400.0, ge=0)
    cost_upward: float = Field(50.0, ge=0)
    cost_downward: float = Field(30.0, ge=0)


class HistoricalQuery(BaseModel):
    """Historical price series query."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    time_range: TimeRange = "1d"
    include_predictions: bool = False


class AppConfig(BaseModel):
    """Top-level client configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    upload: UploadOptions = Field(default_factory=UploadOptions)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    historical: HistoricalQuery = Field(default_factory=HistoricalQuery)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load raw YAML config into a dictionary."""
    with Path(path).open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML configuration must decode to a mapping object.")
    return data


def build_config(config_path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> AppConfig:
    """Build config with precedence: overrides > environment > YAML > defaults."""
    merged: dict[str, Any] = {}
    if config_path is not None:
        merged.update(load_yaml_config(config_path))
    env_url = os.environ.get(API_URL_ENV)
    if env_url:
        merged = deep_merge(merged, {"service": {"base_url": env_url}})
    if overrides:
        merged = deep_merge(merged, overrides)
    return _validate(merged)


def merge_config(config: AppConfig, overrides: dict[str, Any]) -> AppConfig:
    """Return a new validated config with nested overrides applied."""
    return _validate(deep_merge(config.model_dump(), overrides))


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge nested dictionaries recursively."""
    out = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _validate(data: dict[str, Any]) -> AppConfig:
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "<root>"
        raise ConfigValidationError(field, first["msg"]) from exc


class ConfigStore:
    """Holds the current configuration snapshot for every workflow stage.

    Snapshots are frozen pydantic models. ``update`` validates the whole
    merged tree before swapping it in, so a rejected edit leaves the store
    exactly as it was.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self._config = config if config is not None else AppConfig()

    def get(self) -> AppConfig:
        return self._config

    def update(self, partial: dict[str, Any]) -> AppConfig:
        candidate = merge_config(self._config, partial)
        self._config = candidate
        LOGGER.debug("Config updated: %s", partial)
        return candidate

    def seed_prediction_date(self, status: ServiceStatus) -> AppConfig:
        """Default the prediction date to the last day covered by the service data."""
        if self._config.prediction.prediction_date is not None:
            return self._config
        if status.time_range_end is None:
            return self._config
        seeded = status.time_range_end.date()
        LOGGER.info("Seeding prediction date from service status: %s", seeded)
        return self.update({"prediction": {"prediction_date": seeded}})
