from __future__ import annotations

import threading
import time

import pytest

from astrotransit.config import SearchCfg, Settings
from astrotransit.errors import (
    InvalidInputError,
    SearchDeadlineExceeded,
    SourceUnavailableError,
)
from astrotransit.transits import (
    BodyQuery,
    CrossingEvent,
    CulminationEvent,
    DerivedPointKey,
    DerivedPointRequest,
    EventKind,
    FixedQuery,
    PointQuery,
    SearchFailure,
    TransitEventSet,
    TransitSearchEngine,
    midnight_anchor,
    summarize,
)

from tests.fixtures_transits import (
    LONDON,
    T0,
    SinusoidProjector,
    TickingClock,
    minutes_between,
)

START = T0 - 0.1


def _assert_sinusoid_day(result: TransitEventSet, t0: float = T0) -> None:
    assert minutes_between(result.rise.jd, t0) < 0.5
    assert minutes_between(result.mc.jd, t0 + 0.25) < 0.5
    assert minutes_between(result.set.jd, t0 + 0.5) < 0.5
    assert minutes_between(result.ic.jd, t0 + 0.75) < 0.5


def test_body_search_locates_all_four_events(engine) -> None:
    result = engine.search_body("sun", START, LONDON)

    assert result.key == "sun"
    assert result.is_complete
    assert not result.partial
    _assert_sinusoid_day(result)
    assert isinstance(result.rise, CrossingEvent)
    assert isinstance(result.mc, CulminationEvent)
    assert result.mc.altitude == pytest.approx(30.0, abs=1e-3)
    assert result.ic.altitude == pytest.approx(-30.0, abs=1e-3)
    assert [event.kind for event in result.events()] == [
        EventKind.RISE,
        EventKind.MC,
        EventKind.SET,
        EventKind.IC,
    ]


def test_body_alias_resolves_to_canonical_key(engine) -> None:
    assert engine.search_body("su", START, LONDON).key == "sun"


def test_searches_are_deterministic(positions, projector) -> None:
    first = TransitSearchEngine(positions, projector).search_body("sun", START, LONDON)
    second = TransitSearchEngine(positions, projector).search_body("sun", START, LONDON)

    assert first == second


def test_missing_origin_position_raises(positions, projector) -> None:
    positions.failing.add("sun")
    engine = TransitSearchEngine(positions, projector)

    with pytest.raises(SourceUnavailableError):
        engine.search_body("sun", START, LONDON)


def test_invalid_input_raised_before_provider_calls(engine, positions, projector) -> None:
    with pytest.raises(InvalidInputError):
        engine.search_body("sun", float("nan"), LONDON)
    with pytest.raises(InvalidInputError):
        engine.search_body("vulcan", START, LONDON)

    assert positions.calls == []
    assert projector.calls == []


def test_fixed_position_needs_no_provider(engine, positions) -> None:
    result = engine.search_fixed("su_natal", START, LONDON, longitude=370.0)

    assert positions.calls == []
    assert result.key == "su_natal"
    assert result.rise.longitude == pytest.approx(10.0)
    _assert_sinusoid_day(result)


def test_single_kind_search_stops_early(engine, projector) -> None:
    result = engine.search_body("sun", START, LONDON, kinds=["as"])

    assert result.set is None and result.mc is None and result.ic is None
    assert minutes_between(result.rise.jd, T0) < 0.5
    assert len(projector.calls) < 40


def test_search_kind_returns_one_event(engine) -> None:
    event = engine.search_kind("set", BodyQuery("sun"), START, LONDON)

    assert event.kind is EventKind.SET
    assert minutes_between(event.jd, T0 + 0.5) < 0.5


def test_search_kind_returns_none_when_absent(engine) -> None:
    short = Settings(sampling={"body_window_days": 0.2})
    engine = TransitSearchEngine(engine.positions, engine.projector, short)

    assert engine.search_kind(EventKind.MC, BodyQuery("sun"), T0 + 0.1, LONDON) is not None
    assert engine.search_kind(EventKind.RISE, BodyQuery("sun"), T0 + 0.1, LONDON) is None


def test_point_search_uses_midnight_window(positions) -> None:
    anchor = 2460000.5
    projector = SinusoidProjector(t0=anchor + 0.1)
    engine = TransitSearchEngine(positions, projector)

    result = engine.search_point(DerivedPointRequest("yogi"), anchor + 0.3, LONDON)

    assert midnight_anchor(anchor + 0.3) == anchor
    assert projector.calls[0][0] == pytest.approx(anchor - 1 / 144, abs=1e-9)
    assert result.key == DerivedPointKey.YOGI.value
    # the window spans 1.25 days, so the second rise replaces the first
    assert minutes_between(result.rise.jd, anchor + 1.1) < 0.5
    assert minutes_between(result.mc.jd, anchor + 0.35) < 0.5
    assert minutes_between(result.set.jd, anchor + 0.6) < 0.5
    assert minutes_between(result.ic.jd, anchor + 0.85) < 0.5


def test_gaps_mark_partial_results(positions) -> None:
    projector = SinusoidProjector(fail_when=lambda jd: T0 + 0.1 < jd < T0 + 0.15)
    engine = TransitSearchEngine(positions, projector)

    result = engine.search_body("sun", START, LONDON)

    assert result.partial
    assert result.gaps > 0
    _assert_sinusoid_day(result)


def test_batch_isolates_failures(positions, projector) -> None:
    positions.failing.add("mars")
    engine = TransitSearchEngine(positions, projector)

    results = engine.search_batch(
        [BodyQuery("sun"), BodyQuery("mars"), PointQuery(DerivedPointRequest("avaYogi"))],
        START,
        LONDON,
    )

    assert list(results) == ["sun", "mars", "avaYogi"]
    assert isinstance(results["sun"], TransitEventSet)
    assert isinstance(results["avaYogi"], TransitEventSet)
    failure = results["mars"]
    assert isinstance(failure, SearchFailure)
    assert failure.reason == "source_unavailable"
    assert summarize(results)["mars"]["error"] == "source_unavailable"


def test_batch_rejects_duplicate_keys(engine) -> None:
    with pytest.raises(InvalidInputError):
        engine.search_batch([BodyQuery("sun"), BodyQuery("su")], START, LONDON)


def test_batch_validates_before_searching(engine, positions) -> None:
    with pytest.raises(InvalidInputError):
        engine.search_batch([BodyQuery("sun")], float("inf"), LONDON)

    assert positions.calls == []


def test_thread_pool_matches_sequential(positions) -> None:
    queries = [
        BodyQuery("sun"),
        BodyQuery("moon"),
        FixedQuery("ma_natal", longitude=12.0, speed=0.5),
        PointQuery(DerivedPointRequest("brghuBindu")),
    ]
    sequential = TransitSearchEngine(positions, SinusoidProjector()).search_batch(
        queries, START, LONDON
    )
    pooled_settings = Settings(search=SearchCfg(max_workers=4))
    pooled = TransitSearchEngine(positions, SinusoidProjector(), pooled_settings).search_batch(
        queries, START, LONDON
    )

    assert pooled == sequential


def test_deadline_reports_unfinished_keys(positions) -> None:
    clock = TickingClock()
    projector = SinusoidProjector(on_call=lambda: clock.advance(0.01))
    engine = TransitSearchEngine(positions, projector, clock=clock)

    results = engine.search_batch(
        [BodyQuery("sun"), BodyQuery("moon"), BodyQuery("mars")],
        START,
        LONDON,
        deadline_seconds=5.0,
    )

    assert isinstance(results["sun"], TransitEventSet)
    assert isinstance(results["moon"], SearchFailure)
    assert results["moon"].reason == "deadline"
    assert results["mars"].reason == "deadline"
    # sun needs 289 samples and two 41-instant grids; moon is cut mid-window
    assert 371 < len(projector.calls) <= 501


def test_deadline_stops_provider_calls_in_the_pool(positions) -> None:
    clock = TickingClock()
    projector = SinusoidProjector(on_call=lambda: clock.advance(0.01))
    settings = Settings(search=SearchCfg(max_workers=2))
    engine = TransitSearchEngine(positions, projector, settings, clock=clock)

    results = engine.search_batch(
        [BodyQuery("sun"), BodyQuery("moon")], START, LONDON, deadline_seconds=1.0
    )
    calls_at_return = len(projector.calls)
    time.sleep(0.05)

    assert {outcome.reason for outcome in results.values()} == {"deadline"}
    assert calls_at_return < 120
    assert len(projector.calls) == calls_at_return
    assert not [t for t in threading.enumerate() if t.name.startswith("astrotransit")]


def test_single_search_honours_checkpoint(engine, projector) -> None:
    def checkpoint() -> None:
        if len(projector.calls) >= 10:
            raise SearchDeadlineExceeded("out of time")

    with pytest.raises(SearchDeadlineExceeded):
        engine.search_body("sun", START, LONDON, checkpoint=checkpoint)

    assert len(projector.calls) == 10


def test_companion_window_suffixes_keys(engine) -> None:
    results = engine.with_companion([BodyQuery("sun")], START, LONDON)

    assert list(results) == ["sun", "sun2"]
    companion = results["sun2"]
    assert companion.key == "sun2"
    assert minutes_between(companion.rise.jd, T0 + 1.0) < 0.5
    assert minutes_between(companion.set.jd, T0 + 0.5) < 0.5


def test_companion_failures_are_suffixed_too(positions, projector) -> None:
    positions.failing.add("mars")
    engine = TransitSearchEngine(positions, projector)

    results = engine.with_companion([BodyQuery("mars")], START, LONDON)

    companion = results["mars2"]
    assert isinstance(companion, SearchFailure)
    assert companion.key == "mars2"
    assert companion.reason == "source_unavailable"


def test_search_points_keys_by_point_name(engine) -> None:
    requests = [DerivedPointRequest(key) for key in DerivedPointKey]

    results = engine.search_points(requests, START, LONDON, kinds=["mc"])

    assert list(results) == [key.value for key in DerivedPointKey]
    for outcome in results.values():
        assert outcome.rise is None
        assert outcome.mc is not None


def test_culminations_on_window_edges_stay_inside(positions, projector) -> None:
    short = Settings(sampling={"body_window_days": 0.25})
    engine = TransitSearchEngine(positions, projector, short)

    result = engine.search_body("sun", START, LONDON)

    # altitude climbs through the whole window: IC on the first sample, MC on the last
    assert result.rise is not None
    assert result.mc.jd == pytest.approx(START + 0.25, abs=1e-8)
    assert result.ic.jd == pytest.approx(START, abs=1e-8)
    assert all(START - 1e-8 <= jd <= START + 0.25 + 1e-8 for jd, *_ in projector.calls)


@pytest.mark.parametrize("geo", [None, (51.5, -0.12), {"latitude": 51.5, "longitude": 0.0}])
def test_single_searches_reject_non_geo_before_provider_calls(
    engine, positions, projector, geo
) -> None:
    searches = [
        lambda: engine.search_body("sun", START, geo),
        lambda: engine.search_fixed("su_natal", START, geo, longitude=10.0),
        lambda: engine.search_point(DerivedPointRequest("yogi"), START, geo),
    ]
    for search in searches:
        with pytest.raises(InvalidInputError) as excinfo:
            search()
        assert excinfo.value.field == "geo"

    assert positions.calls == []
    assert projector.calls == []
