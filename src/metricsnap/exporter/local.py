"""Local file exporter – appends emitted metrics to JSONL files."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from ..config import LocalExporterConfig
from .base import BaseExporter, MetricSample

logger = logging.getLogger(__name__)


class LocalExporter(BaseExporter):
    """Appends emitted metrics to ``<plugin>-<YYYY-MM-DD>.jsonl`` under *output_dir*.

    The day is taken from the sample timestamp (UTC), so every invocation of
    a plugin lands in the file for the day it sampled.  Files are opened and
    closed per batch; nothing is held between runs.
    """

    def __init__(self, config: LocalExporterConfig) -> None:
        self._config = config
        self._output_dir = Path(config.output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("LocalExporter initialized → %s", self._output_dir)

    def path_for(self, sample: MetricSample) -> Path:
        day = datetime.fromtimestamp(sample.timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
        plugin = sample.labels.get("plugin") or "metrics"
        return self._output_dir / f"{plugin}-{day}.jsonl"

    def export(self, samples: list[MetricSample]) -> None:
        batches: dict[Path, list[MetricSample]] = defaultdict(list)
        for s in samples:
            batches[self.path_for(s)].append(s)
        for path, batch in batches.items():
            with open(path, "a", encoding="utf-8") as fh:
                for s in batch:
                    record = s.to_dict()
                    record["metric"] = s.qualified_name
                    fh.write(json.dumps(record) + "\n")
            logger.debug("Appended %d metrics to %s", len(batch), path)

    def shutdown(self) -> None:
        pass
