"""Orchestrate sampling, tracking and refinement into transit searches."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Union

from ..config.settings import Settings, default_settings
from ..ephemeris.horizon import HorizonProjector
from ..ephemeris.provider import (
    BodyPosition,
    GeoPosition,
    PositionProvider,
    canonical_body,
    require_finite_jd,
)
from ..errors import InvalidInputError, SearchDeadlineExceeded, SourceUnavailableError
from ..observability import record_search
from .derived import DerivedPointResolver
from .models import (
    MINUTES_PER_DAY,
    CulminationEvent,
    DerivedPointRequest,
    EventKind,
    SearchFailure,
    TransitEvent,
    TransitEventSet,
    parse_kinds,
    wrap360,
)
from .refine import interpolate_crossing, narrow_point_extremum, refine_extremum
from .sampling import BodySource, PointSource, SampleSeries, SampleSource, StepSize
from .tracker import Extremum, track

__all__ = [
    "BatchResult",
    "BodyQuery",
    "FixedQuery",
    "PointQuery",
    "SearchQuery",
    "TransitSearchEngine",
    "midnight_anchor",
    "summarize",
]

LOG = logging.getLogger(__name__)

KindFilter = Union[Iterable[Union[str, EventKind]], str, EventKind, None]
Checkpoint = Callable[[], None]


@dataclass(frozen=True)
class BodyQuery:
    """Real body sampled from its live position."""

    body: str
    key: str | None = None
    kinds: KindFilter = None

    @property
    def label(self) -> str:
        return self.key or canonical_body(self.body)


@dataclass(frozen=True)
class FixedQuery:
    """Natal body position carried through the day at its own speed."""

    key: str
    longitude: float
    latitude: float = 0.0
    speed: float = 0.0
    kinds: KindFilter = None

    @property
    def label(self) -> str:
        return self.key


@dataclass(frozen=True)
class PointQuery:
    request: DerivedPointRequest
    key: str | None = None
    kinds: KindFilter = None

    @property
    def label(self) -> str:
        return self.key or self.request.key.value


SearchQuery = Union[BodyQuery, FixedQuery, PointQuery]
BatchResult = dict[str, Union[TransitEventSet, SearchFailure]]


def midnight_anchor(jd: float) -> float:
    """Julian day of the UTC midnight starting the civil day of ``jd``."""

    return math.floor(jd + 0.5) - 0.5


def _require_geo(geo: object) -> GeoPosition:
    if not isinstance(geo, GeoPosition):
        raise InvalidInputError("geo must be a GeoPosition", field="geo")
    return geo


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, InvalidInputError):
        return "invalid_input"
    if isinstance(exc, SourceUnavailableError):
        return "source_unavailable"
    return "error"


def _query_source(query: SearchQuery) -> str:
    return "point" if isinstance(query, PointQuery) else "body"


class TransitSearchEngine:
    """Find rise, set, MC and IC for bodies and sensitive points.

    Each search samples its own window in strictly increasing time order;
    batches run independent searches either in sequence or on a thread pool
    sized by ``settings.search.max_workers``.
    """

    def __init__(
        self,
        positions: PositionProvider,
        projector: HorizonProjector,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.positions = positions
        self.projector = projector
        self.settings = settings or default_settings()
        self.resolver = DerivedPointResolver(positions, projector)
        self._clock = clock

    # ------------------------------------------------------------------
    # single searches

    def search_body(
        self,
        body: str,
        start_jd: float,
        geo: GeoPosition,
        *,
        kinds: KindFilter = None,
        step_minutes: float | None = None,
        window_days: float | None = None,
        origin: BodyPosition | None = None,
        key: str | None = None,
        checkpoint: Checkpoint | None = None,
    ) -> TransitEventSet:
        """Search a real body, extrapolating from its position at ``start_jd``.

        ``checkpoint`` runs before every provider call of the search and may
        raise (e.g. :class:`SearchDeadlineExceeded`) to abandon it.
        """

        start_jd = require_finite_jd(start_jd, field="start_jd")
        geo = _require_geo(geo)
        name = canonical_body(body)
        selected = parse_kinds(kinds)
        cfg = self.settings.sampling
        step = StepSize.of_minutes(step_minutes or cfg.body_step_minutes)
        if origin is None:
            if checkpoint is not None:
                checkpoint()
            result = self.positions.position(start_jd, name)
            if not result.ok:
                raise SourceUnavailableError(
                    f"cannot locate {name} at jd={start_jd}: {result.error.describe()}",  # type: ignore[union-attr]
                    failure=result.error,
                )
            origin = result.unwrap()
        source = BodySource(
            name,
            origin,
            start_jd,
            geo,
            self.projector,
            positions=self.positions,
            resample_speed=cfg.resample_moon_speed and name == "moon",
        )
        series = SampleSeries(
            start_jd, window_days or cfg.body_window_days, step, source, checkpoint=checkpoint
        )
        return self._run(key or name, series, source, selected, geo, narrow=False)

    def search_fixed(
        self,
        key: str,
        start_jd: float,
        geo: GeoPosition,
        longitude: float,
        latitude: float = 0.0,
        speed: float = 0.0,
        *,
        kinds: KindFilter = None,
        step_minutes: float | None = None,
        checkpoint: Checkpoint | None = None,
    ) -> TransitEventSet:
        """Search a transposed natal position that needs no provider lookups."""

        start_jd = require_finite_jd(start_jd, field="start_jd")
        geo = _require_geo(geo)
        for name, value in (("longitude", longitude), ("latitude", latitude), ("speed", speed)):
            require_finite_jd(value, field=name)
        origin = BodyPosition(
            longitude=wrap360(float(longitude)),
            latitude=float(latitude),
            declination=0.0,
            right_ascension=0.0,
            speed=float(speed),
        )
        source = BodySource(key, origin, start_jd, geo, self.projector)
        cfg = self.settings.sampling
        step = StepSize.of_minutes(step_minutes or cfg.body_step_minutes)
        series = SampleSeries(start_jd, cfg.body_window_days, step, source, checkpoint=checkpoint)
        return self._run(key, series, source, parse_kinds(kinds), geo, narrow=False)

    def search_point(
        self,
        request: DerivedPointRequest,
        start_jd: float,
        geo: GeoPosition,
        *,
        kinds: KindFilter = None,
        key: str | None = None,
        checkpoint: Checkpoint | None = None,
    ) -> TransitEventSet:
        """Search a sensitive point over the window anchored at UTC midnight.

        Sampling begins one step before the midnight preceding ``start_jd``
        and runs for ``sampling.point_window_days``.
        """

        start_jd = require_finite_jd(start_jd, field="start_jd")
        geo = _require_geo(geo)
        cfg = self.settings.sampling
        source = PointSource(self.resolver, request, geo)
        series = SampleSeries(
            midnight_anchor(start_jd),
            cfg.point_window_days,
            StepSize.of_fraction(cfg.point_units_per_day),
            source,
            lead_steps=1,
            checkpoint=checkpoint,
        )
        return self._run(
            key or request.key.value, series, source, parse_kinds(kinds), geo, narrow=True
        )

    def search_points(
        self,
        requests: Iterable[DerivedPointRequest],
        start_jd: float,
        geo: GeoPosition,
        *,
        kinds: KindFilter = None,
        deadline_seconds: float | None = None,
    ) -> BatchResult:
        queries = [PointQuery(request=request, kinds=kinds) for request in requests]
        return self.search_batch(queries, start_jd, geo, deadline_seconds=deadline_seconds)

    def search_kind(
        self,
        kind: EventKind | str,
        query: SearchQuery,
        start_jd: float,
        geo: GeoPosition,
    ) -> TransitEvent | None:
        """Return a single event kind for ``query`` or ``None`` when absent."""

        selected = parse_kinds([kind])
        (only,) = selected
        single = replace(query, kinds=selected)
        return self._dispatch(single, start_jd, geo).get(only)

    # ------------------------------------------------------------------
    # batches

    def search_batch(
        self,
        queries: Sequence[SearchQuery],
        start_jd: float,
        geo: GeoPosition,
        *,
        deadline_seconds: float | None = None,
    ) -> BatchResult:
        """Run independent searches, isolating failures per key.

        A key whose search raises, or which misses the deadline, maps to a
        :class:`SearchFailure`; sibling keys are unaffected.
        """

        start_jd = require_finite_jd(start_jd, field="start_jd")
        geo = _require_geo(geo)
        labels = [query.label for query in queries]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise InvalidInputError(
                f"duplicate point keys in batch: {', '.join(duplicates)}", field="queries"
            )
        deadline = (
            deadline_seconds
            if deadline_seconds is not None
            else self.settings.search.deadline_seconds
        )
        started = self._clock()
        workers = min(self.settings.search.max_workers, max(1, len(queries)))
        if workers <= 1:
            results = self._run_sequential(queries, start_jd, geo, started, deadline)
        else:
            results = self._run_pool(queries, start_jd, geo, started, deadline, workers)
        return {label: results[label] for label in labels}

    def with_companion(
        self,
        queries: Sequence[SearchQuery],
        start_jd: float,
        geo: GeoPosition,
        *,
        offset_days: float | None = None,
        deadline_seconds: float | None = None,
    ) -> BatchResult:
        """Run ``queries`` at ``start_jd`` and again half a day later.

        Companion results are stored under the original key suffixed with
        ``"2"``.
        """

        start_jd = require_finite_jd(start_jd, field="start_jd")
        offset = (
            offset_days if offset_days is not None else self.settings.sampling.companion_offset_days
        )
        primary = self.search_batch(queries, start_jd, geo, deadline_seconds=deadline_seconds)
        companion = self.search_batch(
            queries, start_jd + offset, geo, deadline_seconds=deadline_seconds
        )
        merged: BatchResult = dict(primary)
        for label, outcome in companion.items():
            suffixed = f"{label}2"
            if isinstance(outcome, TransitEventSet):
                merged[suffixed] = outcome.with_key(suffixed)
            else:
                merged[suffixed] = SearchFailure(suffixed, outcome.reason, outcome.message)
        return merged

    # ------------------------------------------------------------------
    # internals

    def _dispatch(
        self,
        query: SearchQuery,
        start_jd: float,
        geo: GeoPosition,
        checkpoint: Checkpoint | None = None,
    ) -> TransitEventSet:
        if isinstance(query, BodyQuery):
            return self.search_body(
                query.body, start_jd, geo, kinds=query.kinds, key=query.key, checkpoint=checkpoint
            )
        if isinstance(query, FixedQuery):
            return self.search_fixed(
                query.key,
                start_jd,
                geo,
                query.longitude,
                query.latitude,
                query.speed,
                kinds=query.kinds,
                checkpoint=checkpoint,
            )
        if isinstance(query, PointQuery):
            return self.search_point(
                query.request,
                start_jd,
                geo,
                kinds=query.kinds,
                key=query.key,
                checkpoint=checkpoint,
            )
        raise InvalidInputError(f"unsupported query {query!r}", field="queries")

    def _guarded(
        self,
        query: SearchQuery,
        start_jd: float,
        geo: GeoPosition,
        checkpoint: Checkpoint | None,
        deadline: float | None,
    ) -> TransitEventSet | SearchFailure:
        label = query.label
        try:
            return self._dispatch(query, start_jd, geo, checkpoint)
        except SearchDeadlineExceeded:
            return self._deadline_failure(query, deadline)
        except Exception as exc:  # isolate one key from its siblings
            LOG.warning(
                "transit search for %s failed: %s",
                label,
                exc,
                extra={"err_code": "SEARCH_FAILED"},
            )
            record_search(_query_source(query), "failed")
            return SearchFailure(label, _failure_reason(exc), str(exc))

    def _expired(self, started: float, deadline: float | None) -> bool:
        return deadline is not None and self._clock() - started >= deadline

    def _deadline_checkpoint(
        self,
        started: float,
        deadline: float | None,
        cancelled: threading.Event | None = None,
    ) -> Checkpoint | None:
        """Callable raising :class:`SearchDeadlineExceeded` once the batch is out of time."""

        if deadline is None and cancelled is None:
            return None

        def check() -> None:
            if (cancelled is not None and cancelled.is_set()) or self._expired(started, deadline):
                raise SearchDeadlineExceeded(f"not finished within {deadline}s")

        return check

    def _deadline_failure(self, query: SearchQuery, deadline: float | None) -> SearchFailure:
        LOG.warning(
            "transit search for %s missed the %ss deadline",
            query.label,
            deadline,
            extra={"err_code": "SEARCH_DEADLINE"},
        )
        record_search(_query_source(query), "deadline")
        return SearchFailure(query.label, "deadline", f"not finished within {deadline}s")

    def _run_sequential(
        self,
        queries: Sequence[SearchQuery],
        start_jd: float,
        geo: GeoPosition,
        started: float,
        deadline: float | None,
    ) -> dict[str, TransitEventSet | SearchFailure]:
        checkpoint = self._deadline_checkpoint(started, deadline)
        results: dict[str, TransitEventSet | SearchFailure] = {}
        for query in queries:
            if self._expired(started, deadline):
                results[query.label] = self._deadline_failure(query, deadline)
                continue
            results[query.label] = self._guarded(query, start_jd, geo, checkpoint, deadline)
        return results

    def _run_pool(
        self,
        queries: Sequence[SearchQuery],
        start_jd: float,
        geo: GeoPosition,
        started: float,
        deadline: float | None,
        workers: int,
    ) -> dict[str, TransitEventSet | SearchFailure]:
        results: dict[str, TransitEventSet | SearchFailure] = {}
        cancelled = threading.Event()
        checkpoint = self._deadline_checkpoint(started, deadline, cancelled)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="astrotransit") as executor:
            pending: dict[Future, SearchQuery] = {
                executor.submit(self._guarded, query, start_jd, geo, checkpoint, deadline): query
                for query in queries
            }
            while pending:
                timeout = None
                if deadline is not None:
                    timeout = max(0.0, deadline - (self._clock() - started))
                done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                if not done:
                    break
                for future in done:
                    results[pending.pop(future).label] = future.result()
            if pending:
                cancelled.set()
                for future in pending:
                    future.cancel()
        # running workers stop at their next checkpoint and are joined above
        for future, query in pending.items():
            if future.cancelled():
                results[query.label] = self._deadline_failure(query, deadline)
            else:
                results[query.label] = future.result()
        return results

    def _run(
        self,
        key: str,
        series: SampleSeries,
        source: SampleSource,
        kinds: frozenset[EventKind],
        geo: GeoPosition,
        *,
        narrow: bool,
    ) -> TransitEventSet:
        started = self._clock()
        state = track(series, kinds)
        result = TransitEventSet(
            key=key,
            rise=interpolate_crossing(state.rise, EventKind.RISE) if state.rise else None,
            set=interpolate_crossing(state.set, EventKind.SET) if state.set else None,
            mc=self._culminate(state.mc, EventKind.MC, source, series, geo, narrow)
            if state.mc
            else None,
            ic=self._culminate(state.ic, EventKind.IC, source, series, geo, narrow)
            if state.ic
            else None,
            gaps=series.gaps,
        )
        record_search(
            source.label,
            "partial" if result.partial else "complete",
            self._clock() - started,
        )
        if result.partial:
            LOG.info(
                "transit search for %s skipped %d samples",
                key,
                result.gaps,
                extra={"err_code": "SAMPLE_GAPS"},
            )
        LOG.debug("transit search for %s: %s", key, result.as_dict())
        return result

    def _culminate(
        self,
        extremum: Extremum,
        kind: EventKind,
        source: SampleSource,
        series: SampleSeries,
        geo: GeoPosition,
        narrow: bool,
    ) -> CulminationEvent:
        cfg = self.settings.refine
        multiplier = series.step.minutes
        if narrow:
            if extremum.predecessor is not None:
                multiplier = (
                    (extremum.sample.jd - extremum.predecessor.jd)
                    / cfg.inner_samples
                    * MINUTES_PER_DAY
                )
            extremum = narrow_point_extremum(
                extremum,
                kind,
                source.sample,
                samples=cfg.inner_samples,
                bounds=series.bounds,
                checkpoint=series.checkpoint,
            )
            multiplier = max(multiplier, cfg.resolution_minutes)
        return refine_extremum(
            extremum,
            kind,
            geo,
            self.projector,
            multiplier_minutes=multiplier,
            resolution_minutes=cfg.resolution_minutes,
            bounds=series.bounds,
            checkpoint=series.checkpoint,
        )


def summarize(results: Mapping[str, TransitEventSet | SearchFailure]) -> dict[str, dict]:
    """Plain-dict view of a batch, suitable for JSON encoding."""

    payload: dict[str, dict] = {}
    for label, outcome in results.items():
        if isinstance(outcome, TransitEventSet):
            payload[label] = outcome.as_dict()
        else:
            payload[label] = {"key": outcome.key, "error": outcome.reason, "message": outcome.message}
    return payload
