"""Agent exporter: the line format read by the monitoring agent."""

from __future__ import annotations

import sys
from typing import TextIO

from .base import BaseExporter, MetricSample


def format_line(sample: MetricSample) -> str:
    """``<graph>.<metric>\\t<value>\\t<epoch>``."""
    return f"{sample.qualified_name}\t{sample.value:f}\t{int(sample.timestamp)}"


class AgentExporter(BaseExporter):
    """Writes one tab-separated line per metric to *stream* (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def export(self, samples: list[MetricSample]) -> None:
        stream = self._stream or sys.stdout
        for s in samples:
            stream.write(format_line(s) + "\n")
        stream.flush()

    def shutdown(self) -> None:
        pass
