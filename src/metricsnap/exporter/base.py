"""Base interface for metric exporters."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MetricSample:
    """A single emitted metric data point."""

    name: str
    value: float
    unit: str
    timestamp: float
    labels: dict[str, str] = field(default_factory=dict)
    description: str = ""

    @property
    def qualified_name(self) -> str:
        """``<graph>.<metric>``, falling back to the plugin name as prefix."""
        prefix = self.labels.get("graph") or self.labels.get("plugin", "")
        return f"{prefix}.{self.name}" if prefix else self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp,
            "labels": self.labels,
        }


class BaseExporter(abc.ABC):
    """Abstract base for exporters that receive emitted metrics."""

    @abc.abstractmethod
    def export(self, samples: list[MetricSample]) -> None:
        """Export a batch of metric samples."""

    @abc.abstractmethod
    def shutdown(self) -> None:
        """Flush and release resources."""
