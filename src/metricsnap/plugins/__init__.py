"""Plugins: raw input acquisition, graph catalogs and the one-shot runner."""

from .base import BasePlugin, MetricSample, merge_samples
from .linux import LinuxPlugin
from .mongodb import MongoDBPlugin
from .runner import PluginRunner

__all__ = [
    "BasePlugin",
    "LinuxPlugin",
    "MetricSample",
    "MongoDBPlugin",
    "PluginRunner",
    "merge_samples",
]
