"""APCollector application configuration.

Loads settings from a single YAML file:
  * apcollector.settings.yaml  — non-secret configuration

The file location can be overridden with the ``APCOLLECTOR_SETTINGS``
environment variable or by passing ``settings_path`` to :func:`load_config`.
Relative storage paths are resolved against the directory holding the
settings file (or its parent when the file lives in a ``config/`` folder).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("apcollector.settings.yaml")
SETTINGS_ENV_VAR = "APCOLLECTOR_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _base_dir_for(settings_path: Path) -> Path:
    """Directory that relative paths in *settings_path* are resolved from."""
    settings_dir = settings_path.resolve().parent
    if settings_dir.name == "config":
        return settings_dir.parent
    return settings_dir


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3001
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )


class StorageSettings(BaseModel):
    """Where the database, uploaded files and cached bundles live."""
    data_dir:      str = "./storage"
    database_file: str = "database.duckdb"
    rooms_dir:     str = "rooms"
    archives_dir:  str = "temp"

    @property
    def database_path(self) -> Path:
        return Path(self.data_dir) / self.database_file

    @property
    def rooms_path(self) -> Path:
        return Path(self.data_dir) / self.rooms_dir

    @property
    def archives_path(self) -> Path:
        return Path(self.data_dir) / self.archives_dir


class RoomSettings(BaseModel):
    retention_hours:        int  = 24
    max_file_size_mb:       int  = 50
    max_files_per_upload:   int  = 100
    creator_only_downloads: bool = True

    @field_validator("retention_hours", "max_file_size_mb", "max_files_per_upload")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class SweeperSettings(BaseModel):
    enabled:          bool = True
    interval_seconds: int  = 3600


class IdentitySettings(BaseModel):
    trust_forwarded_for: bool = True


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    storage:  StorageSettings  = Field(default_factory=StorageSettings)
    rooms:    RoomSettings     = Field(default_factory=RoomSettings)
    sweeper:  SweeperSettings  = Field(default_factory=SweeperSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings into a fresh *AppConfig* object."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)

    config = AppConfig(**_load_yaml(settings_path))

    data_dir = Path(config.storage.data_dir)
    if not data_dir.is_absolute() and settings_path.exists():
        config.storage.data_dir = str(_base_dir_for(settings_path) / data_dir)

    logger.info(
        "Settings loaded (server=%s:%s, data_dir=%s, retention=%sh)",
        config.server.host,
        config.server.port,
        config.storage.data_dir,
        config.rooms.retention_hours,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
