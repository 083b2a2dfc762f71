"""Rise, set and culmination searches for bodies and sensitive points."""

from __future__ import annotations

from .derived import DerivedPointResolver, DerivedPosition, ReferenceSet
from .engine import (
    BodyQuery,
    FixedQuery,
    PointQuery,
    SearchQuery,
    TransitSearchEngine,
    midnight_anchor,
    summarize,
)
from .models import (
    ALL_KINDS,
    CrossingEvent,
    CulminationEvent,
    DerivedPointKey,
    DerivedPointRequest,
    EventKind,
    FixedFrame,
    LiveFrame,
    ReferencePoint,
    SearchFailure,
    TimeSample,
    TransitEvent,
    TransitEventSet,
    parse_kinds,
)
from .refine import interpolate_crossing, narrow_point_extremum, refine_extremum
from .sampling import BodySource, PointSource, SampleSeries, StepSize
from .tracker import Bracket, Extremum, TrackerState, advance, track

__all__ = [
    "ALL_KINDS",
    "BodyQuery",
    "BodySource",
    "Bracket",
    "CrossingEvent",
    "CulminationEvent",
    "DerivedPointKey",
    "DerivedPointRequest",
    "DerivedPointResolver",
    "DerivedPosition",
    "EventKind",
    "Extremum",
    "FixedFrame",
    "FixedQuery",
    "LiveFrame",
    "PointQuery",
    "PointSource",
    "ReferencePoint",
    "ReferenceSet",
    "SampleSeries",
    "SearchFailure",
    "SearchQuery",
    "StepSize",
    "TimeSample",
    "TrackerState",
    "TransitEvent",
    "TransitEventSet",
    "TransitSearchEngine",
    "advance",
    "interpolate_crossing",
    "midnight_anchor",
    "narrow_point_extremum",
    "parse_kinds",
    "refine_extremum",
    "summarize",
    "track",
]
