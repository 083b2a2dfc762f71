"""Configuration helpers for astrotransit."""

from .settings import (
    EphemerisCfg,
    HorizonCfg,
    RefineCfg,
    SamplingCfg,
    SearchCfg,
    Settings,
    default_settings,
    load_settings,
    save_settings,
)

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
