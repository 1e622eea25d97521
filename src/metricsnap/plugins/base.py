"""Base interface for metric plugins."""

from __future__ import annotations

import abc
import logging
from typing import Callable

from ..catalog import Catalog, GraphGroup, filter_graph_definitions, group_for, sample_resolver
from ..errors import ParseError, SourceUnavailable
from ..exporter.base import MetricSample

logger = logging.getLogger(__name__)

Sample = dict[str, float]
Extraction = Callable[[], Sample]


def merge_samples(parts: list[tuple[str, Sample]], log: logging.Logger | None = None) -> Sample:
    """Union the samples of independent extractors.

    Extractors own disjoint names; a collision is logged and the first
    value is kept.
    """
    log = log or logger
    merged: Sample = {}
    owner: dict[str, str] = {}
    for source, part in parts:
        for name, value in part.items():
            if name in merged:
                log.error(
                    "Metric %s produced by both %s and %s; keeping %s",
                    name,
                    owner[name],
                    source,
                    owner[name],
                )
                continue
            merged[name] = value
            owner[name] = source
    return merged


class BasePlugin(abc.ABC):
    """Abstract base class for plugins.

    A plugin knows how to acquire raw input for one configured target, which
    extractors turn it into a sample, which graph catalog describes the
    result, and which identity its baseline is stored under.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Plugin name used as the metric prefix and in configuration."""

    @property
    @abc.abstractmethod
    def identity(self) -> str:
        """Stable key for this plugin's persisted baseline."""

    @property
    @abc.abstractmethod
    def catalog(self) -> Catalog:
        """Static graph catalog for every metric this plugin may emit."""

    @abc.abstractmethod
    def extractions(self) -> list[tuple[str, Extraction]]:
        """Return ``(source name, callable)`` pairs, one per independent input."""

    def fetch_sample(self) -> Sample:
        """Run every extraction and merge the results.

        A source that cannot be read or parsed contributes nothing; the
        others still run.
        """
        parts: list[tuple[str, Sample]] = []
        for source, extract in self.extractions():
            try:
                parts.append((source, extract()))
            except (ParseError, SourceUnavailable) as exc:
                self._log.error("Skipping %s: %s", source, exc)
        return merge_samples(parts, self._log)

    def graph_definition(self) -> Catalog:
        """Narrow :attr:`catalog` to the metrics this target actually has."""
        sample = self.fetch_sample()
        return filter_graph_definitions(self.catalog, sample_resolver(sample))

    def group_for(self, metric: str) -> GraphGroup | None:
        return group_for(self.catalog, metric)

    def to_samples(self, emitted: dict[str, float], timestamp: float) -> list[MetricSample]:
        """Attach graph metadata to emitted values for the exporters."""
        samples: list[MetricSample] = []
        for name, value in emitted.items():
            group = self.group_for(name)
            labels = {"plugin": self.name}
            if group is not None:
                labels["graph"] = group.key
            samples.append(MetricSample(
                name=name,
                value=value,
                unit=group.unit if group is not None else "",
                timestamp=timestamp,
                labels=labels,
                description=group.label if group is not None else "",
            ))
        return samples
