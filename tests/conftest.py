from __future__ import annotations

import importlib.util
import warnings

import pytest

from astrotransit.config import Settings
from astrotransit.transits import TransitSearchEngine

from tests.fixtures_transits import FakePositions, SinusoidProjector

if importlib.util.find_spec("swisseph") is None:
    warnings.warn(
        "pyswisseph not installed; Swiss-marked tests will be skipped.",
        RuntimeWarning,
        stacklevel=1,
    )


def pytest_collection_modifyitems(config, items):
    """Skip ``swiss`` tests when pyswisseph cannot be imported."""

    if importlib.util.find_spec("swisseph") is not None:
        return
    skip_swiss = pytest.mark.skip(reason="Swiss Ephemeris unavailable (no pyswisseph).")
    for item in items:
        if "swiss" in item.keywords:
            item.add_marker(skip_swiss)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    for name in (
        "ASTROTRANSIT_SETTINGS",
        "ASTROTRANSIT_EPHE_PATH",
        "ASTROTRANSIT_MAX_WORKERS",
        "ASTROTRANSIT_DEADLINE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def projector() -> SinusoidProjector:
    return SinusoidProjector()


@pytest.fixture
def positions() -> FakePositions:
    return FakePositions()


@pytest.fixture
def engine(positions, projector) -> TransitSearchEngine:
    return TransitSearchEngine(positions, projector, Settings())
