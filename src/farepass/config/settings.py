# src/farepass/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/farepass/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `FAREPASS_STORAGE_BACKEND`, `MONGODB_URI`)
- an external YAML file via `FAREPASS_CONFIG_PATH`

Design rule:
- Tuning knobs (fare rate, minimum fare, GPS noise threshold) live in YAML, not in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from farepass.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `farepass.config`."""
    text = resources.files("farepass.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "FarePass"
    timezone: str = "UTC"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class FareSettings(BaseModel):
    rate_per_km: float = Field(2.0, ge=0)
    minimum_fare: float = Field(5.0, ge=0)
    currency: str = "INR"


class TrackingSettings(BaseModel):
    min_point_separation_m: float = Field(10.0, ge=0)


class UsersSettings(BaseModel):
    default_balance: float = Field(500.0, ge=0)
    name_prefix: str = "User"
    history_limit: int = Field(10, ge=1)


class StorageSettings(BaseModel):
    backend: Literal["memory", "file", "mongo"] = "memory"
    dir: str = ".data/farepass"
    mongo_uri: str | None = None
    mongo_database: str = "smart_bus_fare"
    mongo_timeout_ms: int = 5000


class ApiSettings(BaseModel):
    cors_origins: list[str] = Field(default_factory=list)
    # Without explicit origins, any http(s)://localhost or 127.0.0.1 port may call the API.
    cors_allow_local: bool = True


class BusStop(BaseModel):
    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    fare: FareSettings = Field(default_factory=FareSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    users: UsersSettings = Field(default_factory=UsersSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    stops: list[BusStop] = Field(default_factory=list)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Only the variables listed here are read.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("FAREPASS_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    backend = os.getenv("FAREPASS_STORAGE_BACKEND")
    if backend:
        data.setdefault("storage", {})["backend"] = backend.strip().lower()

    data_dir = os.getenv("FAREPASS_DATA_DIR")
    if data_dir:
        data.setdefault("storage", {})["dir"] = data_dir

    mongo_uri = os.getenv("MONGODB_URI")
    if mongo_uri:
        data.setdefault("storage", {})["mongo_uri"] = mongo_uri

    mongo_db = os.getenv("FAREPASS_MONGO_DATABASE")
    if mongo_db:
        data.setdefault("storage", {})["mongo_database"] = mongo_db

    cors_origins = os.getenv("FAREPASS_CORS_ORIGINS")
    if cors_origins:
        data.setdefault("api", {})["cors_origins"] = [s.strip() for s in cors_origins.split(",") if s.strip()]

    allow_local = os.getenv("FAREPASS_CORS_ALLOW_LOCAL")
    if allow_local:
        data.setdefault("api", {})["cors_allow_local"] = allow_local.strip().lower() in {"1", "true", "yes", "y"}

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("FAREPASS_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
