"""One-shot plugin run: sample, diff against the baseline, persist, export."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..catalog import metric_kinds
from ..engine.diff import DEFAULT_MAX_AGE_SECONDS, DiffEngine, DiffResult
from ..engine.snapshot import SnapshotStore
from ..errors import PersistenceFailure
from ..exporter.base import BaseExporter
from .base import BasePlugin

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_METRICS = 1


class PluginRunner:
    """Runs a plugin once per invocation.

    Instantiate it with a plugin and a :class:`SnapshotStore`, register
    exporters via :meth:`add_exporter`, then call :meth:`run_once`.
    """

    def __init__(
        self,
        plugin: BasePlugin,
        store: SnapshotStore,
        max_age_seconds: float | None = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | None = None,
    ) -> None:
        self._plugin = plugin
        self._store = store
        self._clock = clock
        self._log = log or logger
        self._engine = DiffEngine(metric_kinds(plugin.catalog), max_age_seconds, log=self._log)
        self._exporters: list[BaseExporter] = []
        self.last_result: DiffResult | None = None

    def add_exporter(self, exporter: BaseExporter) -> None:
        """Register an exporter to receive emitted metrics."""
        self._exporters.append(exporter)

    def run_once(self) -> int:
        """Collect, diff, persist and export once.

        Returns :data:`EXIT_OK` if the plugin produced any metric at all,
        :data:`EXIT_NO_METRICS` otherwise.  Counter rates missing on a first
        run do not count as a failure.  A run that produced nothing leaves
        the stored baseline untouched.
        """
        identity = self._plugin.identity
        observed_at = self._clock()
        sample = self._plugin.fetch_sample()
        baseline = self._store.load(identity)

        result = self._engine.diff(sample, observed_at, baseline)
        self.last_result = result
        self._log.debug(
            "%s: %d raw metrics, %d emitted (baseline %s)",
            self._plugin.name,
            len(sample),
            len(result.emitted),
            result.state_before.value,
        )

        # an empty sample means every source failed; keep the last good baseline
        if sample:
            try:
                self._store.save(identity, result.baseline)
            except PersistenceFailure as exc:
                self._log.warning("%s", exc)

        samples = self._plugin.to_samples(result.emitted, observed_at)
        for exporter in self._exporters:
            try:
                exporter.export(samples)
            except Exception:
                self._log.exception("Exporter %s failed", type(exporter).__name__)

        if not sample:
            self._log.error("%s produced no metrics", self._plugin.name)
            return EXIT_NO_METRICS
        return EXIT_OK

    def shutdown(self) -> None:
        for exporter in self._exporters:
            exporter.shutdown()
