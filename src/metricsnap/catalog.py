"""Static graph catalogs and filtering them against a live source."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping

from .engine.diff import MetricKind, MetricKinds
from .errors import KeyNotFound, ParseError, TypeMismatch
from .extractor.document import Node, resolve_path


@dataclass(frozen=True)
class GraphCatalogEntry:
    """One metric in a graph group.

    *name* may be a pattern (``iotime_*``) for per-device metrics.  *path*
    locates the value in a status document; flat sources leave it empty.
    """

    name: str
    label: str
    diff: bool = False
    type: str = "float64"
    scale: float = 1.0
    path: tuple[str, ...] = ()

    @property
    def kind(self) -> MetricKind:
        return MetricKind.COUNTER if self.diff else MetricKind.GAUGE

    def matches(self, metric: str) -> bool:
        return fnmatch.fnmatchcase(metric, self.name)


@dataclass(frozen=True)
class GraphGroup:
    """A named group of metrics drawn on one graph."""

    key: str
    label: str
    unit: str
    metrics: tuple[GraphCatalogEntry, ...] = field(default_factory=tuple)


Catalog = tuple[GraphGroup, ...]


def metric_kinds(catalog: Iterable[GraphGroup]) -> MetricKinds:
    """Build the name -> kind table a :class:`DiffEngine` needs."""
    return MetricKinds({m.name: m.kind for group in catalog for m in group.metrics})


def group_for(catalog: Iterable[GraphGroup], metric: str) -> GraphGroup | None:
    """Return the group that declares *metric*, if any."""
    for group in catalog:
        for entry in group.metrics:
            if entry.matches(metric):
                return group
    return None


def filter_graph_definitions(
    catalog: Iterable[GraphGroup],
    is_resolvable: Callable[[GraphCatalogEntry], bool],
) -> Catalog:
    """Keep only resolvable members; drop groups left with none."""
    kept: list[GraphGroup] = []
    for group in catalog:
        members = tuple(m for m in group.metrics if is_resolvable(m))
        if members:
            kept.append(replace(group, metrics=members))
    return tuple(kept)


def sample_resolver(sample: Mapping[str, float]) -> Callable[[GraphCatalogEntry], bool]:
    """Predicate: the entry's name (or pattern) matches a key in *sample*."""
    names = list(sample)

    def _resolvable(entry: GraphCatalogEntry) -> bool:
        return any(entry.matches(name) for name in names)

    return _resolvable


def document_resolver(document: Node) -> Callable[[GraphCatalogEntry], bool]:
    """Predicate: the entry's path resolves to a number in *document*."""

    def _resolvable(entry: GraphCatalogEntry) -> bool:
        if not entry.path:
            return False
        try:
            resolve_path(document, entry.path)
        except (KeyNotFound, TypeMismatch, ParseError):
            return False
        return True

    return _resolvable


def catalog_to_dict(catalog: Iterable[GraphGroup]) -> dict[str, Any]:
    """Serialize a catalog for the ``graphdef`` command."""
    return {
        group.key: {
            "label": group.label,
            "unit": group.unit,
            "metrics": [
                {
                    "name": m.name,
                    "label": m.label,
                    "diff": m.diff,
                    "type": m.type,
                    "scale": m.scale,
                }
                for m in group.metrics
            ],
        }
        for group in catalog
    }
