from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, model_validator

DEFAULT_START = dt.date(2019, 10, 1)


class ShockConfig(BaseModel):
    start: dt.date = DEFAULT_START
    universe: list[str] = Field(default_factory=list)
    short_window: int = 20
    long_window: int = 60
    z_window: int = 252
    min_z_points: int = 100
    min_assets_floor: int = 6
    min_assets_target: int = 8
    recent_window_days: int = 7
    std_epsilon: float = 1e-10

    @model_validator(mode="after")
    def check_windows(self) -> "ShockConfig":
        if self.short_window <= 0 or self.long_window <= 0 or self.z_window <= 0:
            raise ValueError("short_window, long_window and z_window must be positive")
        if self.short_window >= self.long_window:
            raise ValueError("short_window must be shorter than long_window")
        if self.min_z_points <= 0 or self.min_z_points > self.z_window:
            raise ValueError("min_z_points must be in [1, z_window]")
        if self.min_assets_floor < 2:
            raise ValueError("min_assets_floor must be >= 2")
        if self.min_assets_target < self.min_assets_floor:
            raise ValueError("min_assets_target must be >= min_assets_floor")
        if self.recent_window_days < 0:
            raise ValueError("recent_window_days must be >= 0")
        if self.std_epsilon <= 0:
            raise ValueError("std_epsilon must be positive")
        return self


class GatesConfig(BaseModel):
    start: dt.date = DEFAULT_START
    ma_window: int = 50
    vix_threshold: float = 25.0

    @model_validator(mode="after")
    def check_ma_window(self) -> "GatesConfig":
        if self.ma_window <= 0:
            raise ValueError("ma_window must be positive")
        return self


class GreenBarConfig(BaseModel):
    threshold: float = 2.0


class RetentionConfig(BaseModel):
    """Calendar-day retention per artifact; 0 keeps everything."""

    health_history_days: int = 365
    shock_days: int = 0
    greenbar_days: int = 0


class PathsConfig(BaseModel):
    cache_dir: Path = Path("data/marketstack/eod")
    public_dir: Path = Path("public")

    @property
    def shock_path(self) -> Path:
        return self.public_dir / "turbulence.shock.json"

    @property
    def gates_path(self) -> Path:
        return self.public_dir / "turbulence.gates.json"

    @property
    def greenbar_path(self) -> Path:
        return self.public_dir / "turbulence.greenbar.json"

    @property
    def health_history_path(self) -> Path:
        return self.public_dir / "health-history.json"


class TurbulenceConfig(BaseModel):
    shock: ShockConfig = Field(default_factory=ShockConfig)
    gates: GatesConfig = Field(default_factory=GatesConfig)
    greenbar: GreenBarConfig = Field(default_factory=GreenBarConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    def to_dict(self) -> dict[str, Any]:
        return json.loads(self.model_dump_json())


def load_config_from_yaml(path: str | Path) -> TurbulenceConfig:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return TurbulenceConfig.model_validate(raw)


# env var -> (section, field)
ENV_OPTIONS: dict[str, tuple[str, str]] = {
    "TURBULENCE_SHOCK_START": ("shock", "start"),
    "TURBULENCE_GATES_START": ("gates", "start"),
    "TURBULENCE_SHOCK_Z_THRESHOLD": ("greenbar", "threshold"),
    "HEALTH_HISTORY_RETENTION_DAYS": ("retention", "health_history_days"),
    "TURBULENCE_CACHE_DIR": ("paths", "cache_dir"),
    "TURBULENCE_PUBLIC_DIR": ("paths", "public_dir"),
}


def config_from_env(environ: Mapping[str, str]) -> TurbulenceConfig:
    """Build a config from environment-style options.

    Only the names in ``ENV_OPTIONS`` are recognized; empty values fall back
    to the defaults. The mapping is passed in explicitly so callers decide
    where options come from.
    """
    raw: dict[str, dict[str, Any]] = {}
    for name, (section, field) in ENV_OPTIONS.items():
        value = environ.get(name, "").strip()
        if value:
            raw.setdefault(section, {})[field] = value
    return TurbulenceConfig.model_validate(raw)
