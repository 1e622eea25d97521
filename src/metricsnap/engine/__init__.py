"""Snapshot persistence and rate differencing."""

from .diff import (
    BaselineState,
    CounterOutcome,
    DiffEngine,
    DiffResult,
    MetricKind,
    MetricKinds,
)
from .snapshot import PersistedBaseline, SnapshotStore

__all__ = [
    "BaselineState",
    "CounterOutcome",
    "DiffEngine",
    "DiffResult",
    "MetricKind",
    "MetricKinds",
    "PersistedBaseline",
    "SnapshotStore",
]
