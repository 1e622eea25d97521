"""Exporters hand emitted metrics to the monitoring agent or other sinks."""
