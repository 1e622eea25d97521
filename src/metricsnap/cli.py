"""CLI interface for metricsnap."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from . import __version__
from .config import MetricsnapConfig, load_config
from .engine.snapshot import SnapshotStore
from .exporter.base import BaseExporter


def _build_exporters(cfg: MetricsnapConfig) -> list[BaseExporter]:
    exporters: list[BaseExporter] = []

    if cfg.agent_exporter.enabled:
        from .exporter.agent import AgentExporter
        exporters.append(AgentExporter())

    if cfg.local_exporter.enabled:
        from .exporter.local import LocalExporter
        exporters.append(LocalExporter(cfg.local_exporter))

    if cfg.mode == "online":
        from .exporter.otel import OtelExporter
        exporters.append(OtelExporter(cfg.otel))

    return exporters


def _build_store(cfg: MetricsnapConfig, tempfile: str) -> SnapshotStore:
    if tempfile:
        return SnapshotStore.for_file(tempfile)
    return SnapshotStore(cfg.state.directory or None)


def _run_plugin(cfg: MetricsnapConfig, plugin: Any, tempfile: str) -> int:
    from .plugins.runner import PluginRunner

    runner = PluginRunner(plugin, _build_store(cfg, tempfile), max_age_seconds=cfg.state.max_age_seconds)
    for exporter in _build_exporters(cfg):
        runner.add_exporter(exporter)
    try:
        return runner.run_once()
    finally:
        runner.shutdown()


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate command-line flags into a config overlay."""
    data: dict[str, Any] = {}
    if getattr(args, "state_dir", None):
        data.setdefault("state", {})["directory"] = args.state_dir
    plugin = getattr(args, "plugin", None) or getattr(args, "command", None)
    section: dict[str, Any] = {}
    for flag in ("host", "port", "username", "password", "tempfile"):
        value = getattr(args, flag, None)
        if value is not None:
            section[flag] = value
    if getattr(args, "verbose_status", False):
        section["verbose"] = True
    if section and plugin in ("linux", "mongodb"):
        data[plugin] = section
    return data


def _make_plugin(name: str, cfg: MetricsnapConfig) -> Any:
    if name == "linux":
        from .plugins.linux import LinuxPlugin
        return LinuxPlugin(cfg.linux)
    from .plugins.mongodb import MongoDBPlugin
    return MongoDBPlugin(cfg.mongodb)


def _cmd_linux(args: argparse.Namespace) -> int:
    """Sample Linux host counters once."""
    cfg = load_config(args.config, _overrides(args))
    return _run_plugin(cfg, _make_plugin("linux", cfg), cfg.linux.tempfile)


def _cmd_mongodb(args: argparse.Namespace) -> int:
    """Sample MongoDB serverStatus once."""
    cfg = load_config(args.config, _overrides(args))
    return _run_plugin(cfg, _make_plugin("mongodb", cfg), cfg.mongodb.tempfile)


def _cmd_graphdef(args: argparse.Namespace) -> int:
    """Print the graph definitions this target actually exposes."""
    cfg = load_config(args.config, _overrides(args))

    from .catalog import catalog_to_dict

    graphs = _make_plugin(args.plugin, cfg).graph_definition()

    if args.table:
        from rich.console import Console
        from rich.table import Table

        table = Table(title=f"{args.plugin} graph definitions")
        table.add_column("Graph", style="cyan")
        table.add_column("Unit")
        table.add_column("Metric")
        table.add_column("Label")
        table.add_column("Diff", justify="center")
        for group in graphs:
            for idx, entry in enumerate(group.metrics):
                table.add_row(
                    group.key if idx == 0 else "",
                    group.unit if idx == 0 else "",
                    entry.name,
                    entry.label,
                    "yes" if entry.diff else "",
                )
        Console().print(table)
    else:
        print(json.dumps({"graphs": catalog_to_dict(graphs)}, indent=2))
    return 0 if graphs else 1


def _cmd_version(_args: argparse.Namespace) -> int:
    print(f"metricsnap {__version__}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the metricsnap CLI."""
    parser = argparse.ArgumentParser(
        prog="metricsnap",
        description="Sample host and service counters once and emit metrics",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to metricsnap.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # linux
    linux_p = sub.add_parser("linux", help="Sample Linux host counters")
    linux_p.add_argument("--tempfile", default=None, help="Baseline file path")
    linux_p.add_argument("--state-dir", default=None, help="Directory for baseline files")
    linux_p.set_defaults(func=_cmd_linux)

    # mongodb
    mongo_p = sub.add_parser("mongodb", help="Sample MongoDB serverStatus")
    mongo_p.add_argument("--host", default=None, help="Hostname")
    mongo_p.add_argument("--port", type=int, default=None, help="Port")
    mongo_p.add_argument("--username", default=None, help="Username")
    mongo_p.add_argument("--password", default=None, help="Password (default: $MONGODB_PASSWORD)")
    mongo_p.add_argument("--tempfile", default=None, help="Baseline file path")
    mongo_p.add_argument("--state-dir", default=None, help="Directory for baseline files")
    mongo_p.add_argument("--verbose-status", action="store_true", help="Log the raw serverStatus document")
    mongo_p.set_defaults(func=_cmd_mongodb)

    # graphdef
    graph_p = sub.add_parser("graphdef", help="Print graph definitions for a plugin")
    graph_p.add_argument("plugin", choices=["linux", "mongodb"])
    graph_p.add_argument("--host", default=None, help="MongoDB hostname")
    graph_p.add_argument("--port", type=int, default=None, help="MongoDB port")
    graph_p.add_argument("--username", default=None, help="MongoDB username")
    graph_p.add_argument("--password", default=None, help="MongoDB password (default: $MONGODB_PASSWORD)")
    graph_p.add_argument("--table", action="store_true", help="Render as a table")
    graph_p.set_defaults(func=_cmd_graphdef)

    # version
    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
