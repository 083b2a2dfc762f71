"""Configuration models and helpers for astrotransit settings."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

LOG = logging.getLogger(__name__)

CURRENT_SETTINGS_SCHEMA_VERSION = 1

ENV_SETTINGS_PATH = "ASTROTRANSIT_SETTINGS"
ENV_EPHE_PATH = "ASTROTRANSIT_EPHE_PATH"
ENV_MAX_WORKERS = "ASTROTRANSIT_MAX_WORKERS"
ENV_DEADLINE = "ASTROTRANSIT_DEADLINE_SECONDS"

# -------------------- Settings Schema --------------------


class EphemerisCfg(BaseModel):
    """Swiss Ephemeris source configuration."""

    ephemeris_path: Optional[str] = None
    prefer_moshier: bool = False


class HorizonCfg(BaseModel):
    """Atmospheric conditions handed to the horizon projector."""

    pressure_hpa: float = 1010.0
    temperature_c: float = 10.0
    refraction: bool = True

    @field_validator("pressure_hpa", mode="before")
    @classmethod
    def _cap_pressure(cls, value: float) -> float:
        return max(0.0, min(1200.0, float(value)))


class SamplingCfg(BaseModel):
    """Coarse sampling grid used by transit searches."""

    body_step_minutes: float = Field(5.0, gt=0.0, le=60.0)
    body_window_days: float = Field(1.0, gt=0.0, le=3.0)
    point_units_per_day: int = Field(144, ge=24, le=1440)
    point_window_days: float = Field(1.25, gt=0.0, le=3.0)
    companion_offset_days: float = Field(0.495, ge=0.0, lt=1.0)
    resample_moon_speed: bool = True


class RefineCfg(BaseModel):
    """Refinement resolution for culminations."""

    resolution_minutes: float = Field(0.25, gt=0.0, le=5.0)
    inner_samples: int = Field(48, ge=4, le=480)


class SearchCfg(BaseModel):
    """Orchestration limits for batches of point searches."""

    max_workers: int = 1
    deadline_seconds: Optional[float] = Field(None, gt=0.0)

    @field_validator("max_workers", mode="before")
    @classmethod
    def _cap_workers(cls, value: int) -> int:
        return max(1, min(16, int(value)))


class Settings(BaseModel):
    """Top-level settings model."""

    schema_version: int = Field(
        default=CURRENT_SETTINGS_SCHEMA_VERSION,
        ge=1,
        description="Version marker for persisted configuration payloads.",
    )
    ephemeris: EphemerisCfg = Field(default_factory=EphemerisCfg)
    horizon: HorizonCfg = Field(default_factory=HorizonCfg)
    sampling: SamplingCfg = Field(default_factory=SamplingCfg)
    refine: RefineCfg = Field(default_factory=RefineCfg)
    search: SearchCfg = Field(default_factory=SearchCfg)

    @model_validator(mode="after")
    def _check_point_window(self) -> "Settings":
        offset = self.sampling.companion_offset_days
        if offset >= self.sampling.point_window_days:
            raise ValueError("companion_offset_days must be shorter than the point window")
        return self


# -------------------- I/O Helpers --------------------


def default_settings() -> Settings:
    """Instantiate a Settings object populated with defaults."""

    return Settings()


def _env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    ephe_path = os.getenv(ENV_EPHE_PATH)
    if ephe_path:
        data.setdefault("ephemeris", {})["ephemeris_path"] = ephe_path
    workers = os.getenv(ENV_MAX_WORKERS)
    if workers:
        data.setdefault("search", {})["max_workers"] = workers
    deadline = os.getenv(ENV_DEADLINE)
    if deadline:
        data.setdefault("search", {})["deadline_seconds"] = deadline
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from YAML, then apply ``ASTROTRANSIT_*`` environment overrides.

    A missing file yields the defaults; the file is never created.
    """

    env_path = os.getenv(ENV_SETTINGS_PATH)
    source_path = Path(path) if path else (Path(env_path) if env_path else None)
    raw: object = {}
    if source_path is not None and source_path.exists():
        with source_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    elif source_path is not None:
        LOG.debug("settings file %s not found; using defaults", source_path)
    if not isinstance(raw, dict):
        LOG.warning(
            "ignoring malformed settings payload in %s",
            source_path,
            extra={"err_code": "SETTINGS_MALFORMED"},
        )
        raw = {}
    return Settings(**_env_overrides(dict(raw)))


def save_settings(settings: Settings, path: Path) -> Path:
    """Persist ``settings`` to ``path`` as YAML."""

    target_path = Path(path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    with target_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(settings.model_dump(), handle, sort_keys=False, allow_unicode=True)
    return target_path


__all__ = [
    "EphemerisCfg",
    "HorizonCfg",
    "RefineCfg",
    "SamplingCfg",
    "SearchCfg",
    "Settings",
    "default_settings",
    "load_settings",
    "save_settings",
]
