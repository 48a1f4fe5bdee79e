from __future__ import annotations

from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import ConfigError, resolve_config_path
from .config_store import read_raw_toml

DEFAULT_HOME = Path("~/.smsjournal")


class ServerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    path: str = "/twilio"

    @field_validator("path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/"):
            raise ValueError("path must start with '/'")
        return value


class MediaSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: Path = DEFAULT_HOME / "uploads"
    download_timeout_s: float = Field(default=60.0, gt=0)


class JournalSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    database: Path = DEFAULT_HOME / "journal.db"
    timezone: str = "UTC"
    server: ServerSettings = Field(default_factory=ServerSettings)
    media: MediaSettings = Field(default_factory=MediaSettings)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        value = value.strip()
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone {value!r}") from None
        return value

    @property
    def database_path(self) -> Path:
        return self.database.expanduser()

    @property
    def media_root(self) -> Path:
        return self.media.location.expanduser()

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def default_config_data() -> dict[str, Any]:
    return {
        "database": str(DEFAULT_HOME / "journal.db"),
        "timezone": "UTC",
        "server": {"host": "127.0.0.1", "port": 8080, "path": "/twilio"},
        "media": {
            "location": str(DEFAULT_HOME / "uploads"),
            "download_timeout_s": 60,
        },
    }


def validate_settings_data(
    data: dict[str, Any], *, config_path: Path
) -> JournalSettings:
    try:
        return JournalSettings.model_validate(data)
    except ValidationError as exc:
        issues = []
        for error in exc.errors():
            loc = ".".join(str(part) for part in error["loc"]) or "<root>"
            issues.append(f"`{loc}`: {error['msg']}")
        joined = "; ".join(issues)
        raise ConfigError(f"Invalid config in {config_path}: {joined}") from None


def load_settings(path: Path | None = None) -> tuple[JournalSettings, Path]:
    config_path = resolve_config_path(path)
    data = read_raw_toml(config_path)
    return validate_settings_data(data, config_path=config_path), config_path
