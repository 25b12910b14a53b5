from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class LoggingConfig(BaseModel):
    base_dir: Path = Field(Path("logs"))
    level: str = Field("INFO")
    file_name: str = Field("ridetrack.log")
    max_bytes: int = Field(1_048_576, ge=0)
    backup_count: int = Field(3, ge=0, le=50)

    @field_validator("base_dir")
    @classmethod
    def _expand_base_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {value}")
        return level


class TrackingConfig(BaseModel):
    # Minimum displacement between consecutive route points.
    min_distance_km: float = Field(0.001, ge=0.0, le=1.0)
    # Speeds at or below this never raise the trip maximum.
    min_speed_kmh: float = Field(0.25, ge=0.0, le=50.0)
    # Rejected samples still refresh the displayed current speed.
    current_speed_from_rejected: bool = Field(True)


class ProviderConfig(BaseModel):
    host: str = Field("localhost")
    port: int = Field(2947, ge=1, le=65535)
    reconnect_delay: float = Field(5.0, ge=0.0)
    timeout: float = Field(10.0, gt=0.0)
    max_reconnect_attempts: int = Field(0, ge=0)  # 0 = infinite
    # Passed through to the location source, not engine state.
    distance_interval_m: float = Field(1.0, ge=0.0)


class StoreConfig(BaseModel):
    db_path: Path = Field(Path("logs/rides.db"))
    key: str = Field("routes", min_length=1)
    timeout_secs: float = Field(10.0, gt=0.0)

    @field_validator("db_path")
    @classmethod
    def _expand_db_path(cls, value: Path) -> Path:
        return value.expanduser()


class RideTrackConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @property
    def log_file(self) -> Path:
        return self.logging.base_dir / self.logging.file_name


def load_config(path: Path) -> RideTrackConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping: {path}")
    try:
        return RideTrackConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/ridetrack, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("RIDETRACK_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/ridetrack/ridetrack.yml"), Path("configs/ridetrack.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/ridetrack.yml").resolve()


def load_config_or_default(path: Path | None) -> RideTrackConfig:
    """Load the resolved config, falling back to defaults when no file exists."""
    resolved = resolve_config_path(path)
    if not resolved.exists():
        return RideTrackConfig()
    return load_config(resolved)
