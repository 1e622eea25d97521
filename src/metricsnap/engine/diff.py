"""Turn a fresh sample plus the previous baseline into emitted metrics.

Gauges are reported as read.  Counters are reported as a per-second rate
against the baseline, which needs two readings, so the baseline for a plugin
moves through two states::

    NO_BASELINE --(any run)--> HAS_BASELINE --(any run)--> HAS_BASELINE

A counter that went backwards (service restart) is absorbed: nothing is
emitted for it on that run and the lower value becomes the new base.
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .snapshot import PersistedBaseline

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 600.0


class MetricKind(enum.Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


class BaselineState(enum.Enum):
    NO_BASELINE = "no_baseline"
    HAS_BASELINE = "has_baseline"

    @classmethod
    def of(cls, baseline: PersistedBaseline | None) -> "BaselineState":
        return cls.NO_BASELINE if baseline is None else cls.HAS_BASELINE


class CounterOutcome(enum.Enum):
    """What happened to one counter on one run."""

    RATE = "rate"
    NO_BASELINE = "no_baseline"
    NON_POSITIVE_ELAPSED = "non_positive_elapsed"
    STALE_BASELINE = "stale_baseline"
    RESET = "reset"


class MetricKinds:
    """Maps metric names to :class:`MetricKind`.

    Names may be exact or ``fnmatch`` patterns (``iotime_*``).  Exact names
    win over patterns; anything unmatched is a gauge.
    """

    def __init__(self, kinds: Mapping[str, MetricKind] | None = None) -> None:
        self._exact: dict[str, MetricKind] = {}
        self._patterns: list[tuple[str, MetricKind]] = []
        for name, kind in (kinds or {}).items():
            if any(ch in name for ch in "*?["):
                self._patterns.append((name, kind))
            else:
                self._exact[name] = kind

    @classmethod
    def counters(cls, names: Iterable[str]) -> "MetricKinds":
        return cls({name: MetricKind.COUNTER for name in names})

    def kind_of(self, name: str) -> MetricKind:
        kind = self._exact.get(name)
        if kind is not None:
            return kind
        for pattern, kind in self._patterns:
            if fnmatch.fnmatchcase(name, pattern):
                return kind
        return MetricKind.GAUGE


@dataclass
class DiffResult:
    """Output of :meth:`DiffEngine.diff`."""

    emitted: dict[str, float]
    baseline: PersistedBaseline
    state_before: BaselineState
    outcomes: dict[str, CounterOutcome] = field(default_factory=dict)

    @property
    def state_after(self) -> BaselineState:
        return BaselineState.HAS_BASELINE


class DiffEngine:
    """Computes gauge values and counter rates for one invocation.

    *max_age_seconds* bounds how old a baseline may be before counter rates
    are skipped for a run; ``None`` accepts any age.
    """

    def __init__(
        self,
        kinds: MetricKinds,
        max_age_seconds: float | None = DEFAULT_MAX_AGE_SECONDS,
        log: logging.Logger | None = None,
    ) -> None:
        self._kinds = kinds
        self._max_age = max_age_seconds
        self._log = log or logger

    def diff(
        self,
        sample: Mapping[str, float],
        observed_at: float,
        baseline: PersistedBaseline | None,
    ) -> DiffResult:
        state = BaselineState.of(baseline)
        emitted: dict[str, float] = {}
        outcomes: dict[str, CounterOutcome] = {}

        elapsed = 0.0
        if baseline is not None:
            elapsed = observed_at - baseline.observed_at
            if elapsed <= 0:
                self._log.warning(
                    "Non-positive elapsed time since baseline (%.3fs); skipping counter rates",
                    elapsed,
                )
            elif self._max_age is not None and elapsed > self._max_age:
                self._log.info(
                    "Baseline is %.0fs old (limit %.0fs); skipping counter rates",
                    elapsed,
                    self._max_age,
                )

        finite: dict[str, float] = {}
        for name, value in sample.items():
            if not math.isfinite(value):
                self._log.warning("Dropping non-finite value %r for %s", value, name)
                continue
            finite[name] = value

        for name, value in finite.items():
            if self._kinds.kind_of(name) is MetricKind.GAUGE:
                emitted[name] = value
                continue
            outcome, previous = self._counter(name, value, baseline, elapsed)
            outcomes[name] = outcome
            if outcome is CounterOutcome.RATE:
                emitted[name] = (value - previous) / elapsed

        return DiffResult(
            emitted=emitted,
            baseline=PersistedBaseline(sample=finite, observed_at=observed_at),
            state_before=state,
            outcomes=outcomes,
        )

    def _counter(
        self,
        name: str,
        value: float,
        baseline: PersistedBaseline | None,
        elapsed: float,
    ) -> tuple[CounterOutcome, float]:
        """Classify one counter and return it with its baseline value."""
        if baseline is None or name not in baseline.sample:
            return CounterOutcome.NO_BASELINE, 0.0
        previous = baseline.sample[name]
        if elapsed <= 0:
            return CounterOutcome.NON_POSITIVE_ELAPSED, previous
        if self._max_age is not None and elapsed > self._max_age:
            return CounterOutcome.STALE_BASELINE, previous
        if value < previous:
            self._log.info(
                "Counter %s went backwards (%s -> %s); treating as reset",
                name,
                previous,
                value,
            )
            return CounterOutcome.RESET, previous
        return CounterOutcome.RATE, previous
