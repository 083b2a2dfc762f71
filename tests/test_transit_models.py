from __future__ import annotations

import math

import pytest

from astrotransit.ephemeris.provider import GeoPosition, canonical_body, require_finite_jd
from astrotransit.ephemeris.results import ProviderResult
from astrotransit.errors import InvalidInputError
from astrotransit.transits.models import (
    ALL_KINDS,
    CrossingEvent,
    CulminationEvent,
    EventKind,
    TransitEventSet,
    parse_kinds,
    wrap360,
)


def test_parse_kinds_accepts_aliases() -> None:
    assert parse_kinds(["as", "DS", "highest", "lowest"]) == ALL_KINDS
    assert parse_kinds("mc") == frozenset({EventKind.MC})
    assert parse_kinds(None) == ALL_KINDS
    assert parse_kinds([]) == ALL_KINDS


def test_parse_kinds_rejects_unknown() -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        parse_kinds(["dawn"])
    assert excinfo.value.field == "kinds"


def test_wrap360_stays_below_full_circle() -> None:
    assert wrap360(-1e-20) == 0.0
    assert wrap360(725.0) == pytest.approx(5.0)
    assert wrap360(-90.0) == pytest.approx(270.0)


def test_event_set_orders_and_serialises() -> None:
    events = TransitEventSet(
        key="mo",
        rise=CrossingEvent(EventKind.RISE, 2460000.9, 10.0),
        set=CrossingEvent(EventKind.SET, 2460000.4, 12.0),
        mc=CulminationEvent(EventKind.MC, 2460000.1, 11.0, 45.0),
    )

    assert [e.kind for e in events.events()] == [EventKind.MC, EventKind.SET, EventKind.RISE]
    assert not events.is_complete
    assert events.get("ic") is None
    assert events.get(EventKind.SET).longitude == 12.0
    payload = events.as_dict()
    assert payload["ic"] is None
    assert payload["mc"] == {
        "type": "mc",
        "jd": 2460000.1,
        "lng": 11.0,
        "alt": 45.0,
        "after": False,
    }
    assert events.with_key("mo2").key == "mo2"


@pytest.mark.parametrize(
    ("lat", "lng"),
    [(91.0, 0.0), (-90.5, 0.0), (0.0, 360.0), (0.0, -181.0), (math.nan, 0.0), (0.0, math.inf)],
)
def test_geo_position_validation(lat: float, lng: float) -> None:
    with pytest.raises(InvalidInputError):
        GeoPosition(latitude=lat, longitude=lng)


def test_geo_position_accepts_east_of_greenwich_up_to_360() -> None:
    geo = GeoPosition(latitude=-33.9, longitude=359.9, altitude_m=12)

    assert geo.as_swe() == (359.9, -33.9, 12.0)


def test_require_finite_jd() -> None:
    assert require_finite_jd(2451545) == 2451545.0
    for bad in (math.nan, "2451545", True, None):
        with pytest.raises(InvalidInputError):
            require_finite_jd(bad)


def test_canonical_body_aliases() -> None:
    assert canonical_body("Ra") == "mean_node"
    assert canonical_body("ketu") == "south_node"
    assert canonical_body("North Node") == "mean_node"
    with pytest.raises(InvalidInputError):
        canonical_body("")


def test_provider_result_is_exclusive() -> None:
    ok = ProviderResult.success(1.5)
    failed = ProviderResult.failure("fake", "position", "no data", jd=2451545.0)

    assert ok.ok and ok.unwrap() == 1.5
    assert not failed.ok
    assert "fake.position at jd=2451545.000000" in failed.error.describe()
    with pytest.raises(LookupError):
        failed.unwrap()
    with pytest.raises(ValueError):
        ProviderResult()
