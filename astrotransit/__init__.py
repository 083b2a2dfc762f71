"""astrotransit: horizon transits of bodies and derived sensitive points."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version as _get_version

LOG = logging.getLogger(__name__)

try:
    __version__ = _get_version("astrotransit")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.0.0"

from .config import Settings, default_settings, load_settings
from .ephemeris import (
    GeoPosition,
    SphericalHorizonProjector,
    SwissHorizonProjector,
    SwissPositionProvider,
)
from .errors import InvalidInputError, SearchDeadlineExceeded, SourceUnavailableError
from .transits import (
    DerivedPointKey,
    DerivedPointRequest,
    EventKind,
    FixedFrame,
    LiveFrame,
    SearchFailure,
    TransitEventSet,
    TransitSearchEngine,
)


def get_version() -> str:
    """Return the resolved astrotransit package version."""

    return __version__


__all__ = [
    "DerivedPointKey",
    "DerivedPointRequest",
    "EventKind",
    "FixedFrame",
    "GeoPosition",
    "InvalidInputError",
    "LiveFrame",
    "SearchDeadlineExceeded",
    "SearchFailure",
    "Settings",
    "SourceUnavailableError",
    "SphericalHorizonProjector",
    "SwissHorizonProjector",
    "SwissPositionProvider",
    "TransitEventSet",
    "TransitSearchEngine",
    "__version__",
    "default_settings",
    "get_version",
    "load_settings",
]
