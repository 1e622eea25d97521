"""metricsnap: one-shot host and service metrics with counter rates."""

__version__ = "0.1.0"
