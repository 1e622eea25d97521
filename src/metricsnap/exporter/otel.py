"""OpenTelemetry exporter – pushes emitted metrics via OTLP/HTTP."""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from .. import __version__
from ..config import OtelExporterConfig
from .base import BaseExporter, MetricSample

logger = logging.getLogger(__name__)

# catalog units -> UCUM
_UNITS = {
    "integer": "1",
    "float": "1",
    "bytes": "By",
    "percentage": "%",
}


def otlp_reader(config: OtelExporterConfig) -> MetricReader:
    """Build the OTLP/HTTP reader for *config*.

    The periodic interval rarely elapses inside a one-shot run; the data
    leaves on the flush in :meth:`OtelExporter.shutdown`.
    """
    exporter_kwargs: dict[str, Any] = {
        "endpoint": f"{config.endpoint.rstrip('/')}/v1/metrics",
    }
    if config.headers:
        exporter_kwargs["headers"] = config.headers
    return PeriodicExportingMetricReader(
        OTLPMetricExporter(**exporter_kwargs),
        export_interval_millis=config.export_interval_ms,
    )


class OtelExporter(BaseExporter):
    """Records emitted metrics as OpenTelemetry gauges.

    Each metric becomes a gauge named ``<graph>.<metric>`` carrying the
    sample labels as attributes.  Counters arrive here already turned into
    rates.  *reader* defaults to :func:`otlp_reader`; any SDK
    ``MetricReader`` (for instance ``InMemoryMetricReader``) can be given.
    """

    def __init__(self, config: OtelExporterConfig, reader: MetricReader | None = None) -> None:
        self._config = config
        resource = Resource.create({SERVICE_NAME: config.service_name})
        self._provider = MeterProvider(
            resource=resource,
            metric_readers=[reader or otlp_reader(config)],
        )
        self._meter: Meter = self._provider.get_meter("metricsnap", __version__)
        self._gauges: dict[str, Any] = {}

        logger.debug(
            "OtelExporter initialized → %s (service=%s)",
            config.endpoint,
            config.service_name,
        )

    def _get_gauge(self, sample: MetricSample) -> Any:
        name = sample.qualified_name
        if name not in self._gauges:
            self._gauges[name] = self._meter.create_gauge(
                name=name,
                unit=_UNITS.get(sample.unit, sample.unit),
                description=sample.description,
            )
        return self._gauges[name]

    def export(self, samples: list[MetricSample]) -> None:
        for s in samples:
            self._get_gauge(s).set(s.value, attributes=s.labels)

    def shutdown(self) -> None:
        if not self._provider.force_flush():
            logger.warning("OTLP flush to %s did not complete", self._config.endpoint)
        self._provider.shutdown()
