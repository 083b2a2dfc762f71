from __future__ import annotations

import pytest
import yaml
from pydantic import ValidationError

from astrotransit.config import (
    SearchCfg,
    Settings,
    default_settings,
    load_settings,
    save_settings,
)


def test_defaults_match_sampling_regimes() -> None:
    settings = default_settings()

    assert settings.sampling.body_step_minutes == 5.0
    assert settings.sampling.point_units_per_day == 144
    assert settings.sampling.point_window_days == 1.25
    assert settings.sampling.companion_offset_days == 0.495
    assert settings.refine.resolution_minutes == 0.25
    assert settings.refine.inner_samples == 48
    assert settings.search.max_workers == 1
    assert settings.search.deadline_seconds is None


def test_load_settings_reads_yaml(tmp_path) -> None:
    path = tmp_path / "astrotransit.yaml"
    path.write_text(
        yaml.safe_dump({"sampling": {"body_step_minutes": 2}, "search": {"max_workers": 3}}),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.sampling.body_step_minutes == 2.0
    assert settings.search.max_workers == 3
    assert settings.refine.inner_samples == 48


def test_missing_file_yields_defaults(tmp_path) -> None:
    path = tmp_path / "absent.yaml"

    assert load_settings(path) == default_settings()
    assert not path.exists()


def test_malformed_payload_is_ignored(tmp_path, caplog) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with caplog.at_level("WARNING"):
        settings = load_settings(path)

    assert settings == default_settings()
    assert any(getattr(r, "err_code", None) == "SETTINGS_MALFORMED" for r in caplog.records)


def test_environment_overrides(tmp_path, monkeypatch) -> None:
    path = tmp_path / "env.yaml"
    path.write_text("search:\n  max_workers: 2\n", encoding="utf-8")
    monkeypatch.setenv("ASTROTRANSIT_SETTINGS", str(path))
    monkeypatch.setenv("ASTROTRANSIT_EPHE_PATH", "/srv/ephe")
    monkeypatch.setenv("ASTROTRANSIT_MAX_WORKERS", "6")
    monkeypatch.setenv("ASTROTRANSIT_DEADLINE_SECONDS", "2.5")

    settings = load_settings()

    assert settings.ephemeris.ephemeris_path == "/srv/ephe"
    assert settings.search.max_workers == 6
    assert settings.search.deadline_seconds == 2.5


def test_worker_count_is_capped() -> None:
    assert SearchCfg(max_workers=99).max_workers == 16
    assert SearchCfg(max_workers=0).max_workers == 1


def test_companion_offset_must_fit_point_window() -> None:
    with pytest.raises(ValidationError):
        Settings(sampling={"companion_offset_days": 0.9, "point_window_days": 0.5})


def test_non_positive_step_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(sampling={"body_step_minutes": 0})


def test_save_then_load(tmp_path) -> None:
    settings = Settings(horizon={"pressure_hpa": 5000, "refraction": False})
    path = save_settings(settings, tmp_path / "nested" / "settings.yaml")

    loaded = load_settings(path)

    assert loaded.horizon.pressure_hpa == 1200.0
    assert loaded.horizon.refraction is False
