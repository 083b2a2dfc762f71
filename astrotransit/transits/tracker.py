"""Fold an ordered sample stream into rise/set brackets and MC/IC candidates.

The tracker is a pure function ``advance(state, sample) -> state`` applied
with :func:`functools.reduce`. Results depend on sample order:

* polarity is ``-1`` below the horizon and ``+1`` otherwise; the initial
  polarity ``0`` never produces a transition, so the first sample can not
  register a rise or a set;
* a ``-1 -> +1`` change is a rise bracket and ``+1 -> -1`` a set bracket;
  a later transition of the same kind replaces an earlier one;
* the first sample seeds MC and IC; strict comparisons keep the earlier
  sample on ties.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from functools import reduce

from .models import ALL_KINDS, EventKind, TimeSample

__all__ = ["Bracket", "Extremum", "TrackerState", "advance", "polarity_of", "track"]


@dataclass(frozen=True)
class Bracket:
    """Consecutive samples on either side of the horizon."""

    before: TimeSample
    after: TimeSample


@dataclass(frozen=True)
class Extremum:
    """Coarse culmination candidate with the sample that preceded it."""

    sample: TimeSample
    predecessor: TimeSample | None


@dataclass(frozen=True)
class TrackerState:
    kinds: frozenset[EventKind] = field(default=ALL_KINDS)
    previous: TimeSample | None = None
    polarity: int = 0
    rise: Bracket | None = None
    set: Bracket | None = None
    mc: Extremum | None = None
    ic: Extremum | None = None
    count: int = 0

    @property
    def stops_early(self) -> bool:
        """True when only a single crossing kind is tracked."""

        return len(self.kinds) == 1 and next(iter(self.kinds)).is_crossing

    @property
    def done(self) -> bool:
        if not self.stops_early:
            return False
        return (self.rise if EventKind.RISE in self.kinds else self.set) is not None


def polarity_of(altitude: float) -> int:
    return -1 if altitude < 0 else 1


def advance(state: TrackerState, sample: TimeSample) -> TrackerState:
    """Return the state after consuming ``sample``."""

    previous = state.previous
    if previous is not None and sample.jd <= previous.jd:
        raise ValueError(
            f"samples must arrive in increasing jd order ({sample.jd} after {previous.jd})"
        )
    polarity = polarity_of(sample.altitude)
    rise, set_ = state.rise, state.set
    if previous is not None:
        if state.polarity == -1 and polarity == 1 and EventKind.RISE in state.kinds:
            rise = Bracket(previous, sample)
        elif state.polarity == 1 and polarity == -1 and EventKind.SET in state.kinds:
            set_ = Bracket(previous, sample)

    mc, ic = state.mc, state.ic
    if EventKind.MC in state.kinds and (mc is None or sample.altitude > mc.sample.altitude):
        mc = Extremum(sample, previous)
    if EventKind.IC in state.kinds and (ic is None or sample.altitude < ic.sample.altitude):
        ic = Extremum(sample, previous)

    return replace(
        state,
        previous=sample,
        polarity=polarity,
        rise=rise,
        set=set_,
        mc=mc,
        ic=ic,
        count=state.count + 1,
    )


def track(
    samples: Iterable[TimeSample],
    kinds: frozenset[EventKind] = ALL_KINDS,
) -> TrackerState:
    """Reduce ``samples`` into a :class:`TrackerState`.

    When a single crossing kind is requested, consumption stops at the first
    matching transition and the remaining samples are never generated.
    """

    initial = TrackerState(kinds=frozenset(kinds))
    if not initial.stops_early:
        return reduce(advance, samples, initial)
    state = initial
    for sample in samples:
        state = advance(state, sample)
        if state.done:
            break
    return state
