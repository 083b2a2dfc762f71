"""Provider interfaces and Swiss Ephemeris backed implementations."""

from __future__ import annotations

from .horizon import (
    CoordinateFrame,
    HorizonProjector,
    HorizontalPosition,
    SphericalHorizonProjector,
    SwissHorizonProjector,
)
from .provider import (
    BodyPosition,
    GeoPosition,
    PositionProvider,
    SwissPositionProvider,
    canonical_body,
)
from .results import ProviderFailure, ProviderResult
from .swe import has_swe

__all__ = [
    "BodyPosition",
    "CoordinateFrame",
    "GeoPosition",
    "HorizonProjector",
    "HorizontalPosition",
    "PositionProvider",
    "ProviderFailure",
    "ProviderResult",
    "SphericalHorizonProjector",
    "SwissHorizonProjector",
    "SwissPositionProvider",
    "canonical_body",
    "has_swe",
]
