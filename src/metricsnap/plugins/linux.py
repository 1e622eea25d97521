"""Linux host plugin: /proc counters, socket states and login sessions."""

from __future__ import annotations

import hashlib
import logging
import re
import subprocess
from pathlib import Path
from typing import Callable

import psutil

from ..catalog import Catalog, GraphCatalogEntry, GraphGroup
from ..config import LinuxConfig
from ..errors import SourceUnavailable
from ..extractor.text import (
    parse_proc_diskstats,
    parse_proc_stat,
    parse_proc_vmstat,
    parse_ss,
    parse_who,
)
from .base import BasePlugin, Extraction

logger = logging.getLogger(__name__)

SS_STATES = (
    "ESTAB",
    "SYN-SENT",
    "SYN-RECV",
    "FIN-WAIT-1",
    "FIN-WAIT-2",
    "TIME-WAIT",
    "UNCONN",
    "CLOSE-WAIT",
    "LAST-ACK",
    "LISTEN",
    "CLOSING",
)

LINUX_CATALOG: Catalog = (
    GraphGroup("linux.users", "Linux Users", "integer", (
        GraphCatalogEntry("users", "Users"),
    )),
    GraphGroup("linux.interrupts", "Linux Interrupts", "integer", (
        GraphCatalogEntry("interrupts", "Interrupts", diff=True, type="uint64"),
    )),
    GraphGroup("linux.context_switches", "Linux Context Switches", "integer", (
        GraphCatalogEntry("context_switches", "Context Switches", diff=True, type="uint64"),
    )),
    GraphGroup("linux.forks", "Linux Forks", "integer", (
        GraphCatalogEntry("forks", "Forks", diff=True, type="uint64"),
    )),
    GraphGroup("linux.paging", "Linux Paging", "integer", (
        GraphCatalogEntry("pgpgin", "Paging In", diff=True, type="uint64"),
        GraphCatalogEntry("pgpgout", "Paging Out", diff=True, type="uint64"),
    )),
    GraphGroup("linux.swap", "Linux Swap Usage", "integer", (
        GraphCatalogEntry("pswpin", "Swap In", diff=True, type="uint64"),
        GraphCatalogEntry("pswpout", "Swap Out", diff=True, type="uint64"),
    )),
    GraphGroup("linux.disk.elapsed", "Linux Disk Elapsed IO Time", "integer", (
        GraphCatalogEntry("iotime_*", "IO Time", diff=True, type="uint64"),
        GraphCatalogEntry("iotime_weighted_*", "IO Time Weighted", diff=True, type="uint64"),
    )),
    GraphGroup("linux.disk.rwtime", "Linux Disk Read/Write Time", "integer", (
        GraphCatalogEntry("tsreading_*", "Read", diff=True, type="uint64"),
        GraphCatalogEntry("tswriting_*", "Write", diff=True, type="uint64"),
    )),
    GraphGroup("linux.ss", "Linux Network Connection States", "integer", tuple(
        GraphCatalogEntry(state, state) for state in SS_STATES
    )),
)


def read_text(path: str | Path) -> str:
    """Read a whole /proc file."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceUnavailable(str(path), exc.strerror or str(exc)) from exc


def run_command(command: list[str], timeout: float) -> str:
    """Run *command* and return its stdout."""
    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError as exc:
        raise SourceUnavailable(command[0], "command not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise SourceUnavailable(command[0], f"timed out after {timeout:.1f}s") from exc
    except subprocess.CalledProcessError as exc:
        raise SourceUnavailable(command[0], f"exited with status {exc.returncode}") from exc
    return proc.stdout


def session_lines() -> str:
    """Render active login sessions one per line, like ``who``."""
    try:
        users = psutil.users()
    except (OSError, psutil.Error) as exc:
        raise SourceUnavailable("sessions", str(exc)) from exc
    return "".join(f"{u.name} {u.terminal or '?'} {u.host or ''}\n" for u in users)


class LinuxPlugin(BasePlugin):
    """Collects host-wide counters from a Linux system.

    The readers are injectable so the plugin can run against fixture text:
    *reader* maps a path to its contents, *runner* runs a command with a
    timeout, *sessions* returns one line per login session.
    """

    def __init__(
        self,
        config: LinuxConfig | None = None,
        reader: Callable[[str], str] = read_text,
        runner: Callable[[list[str], float], str] = run_command,
        sessions: Callable[[], str] = session_lines,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__(log=log or logger)
        self._config = config or LinuxConfig()
        self._reader = reader
        self._runner = runner
        self._sessions = sessions
        self._exclude = re.compile(self._config.disk_exclude) if self._config.disk_exclude else None

    @property
    def name(self) -> str:
        return "linux"

    @property
    def identity(self) -> str:
        defaults = LinuxConfig()
        cfg = self._config
        paths = (cfg.proc_stat, cfg.proc_vmstat, cfg.proc_diskstats)
        if paths == (defaults.proc_stat, defaults.proc_vmstat, defaults.proc_diskstats):
            return "linux"
        digest = hashlib.sha1("\0".join(paths).encode("utf-8")).hexdigest()[:12]
        return f"linux-{digest}"

    @property
    def catalog(self) -> Catalog:
        return LINUX_CATALOG

    def include_device(self, device: str) -> bool:
        return self._exclude is None or not self._exclude.search(device)

    def extractions(self) -> list[tuple[str, Extraction]]:
        cfg = self._config
        return [
            ("who", lambda: parse_who(self._sessions())),
            (cfg.proc_stat, lambda: parse_proc_stat(self._reader(cfg.proc_stat))),
            (cfg.proc_vmstat, lambda: parse_proc_vmstat(self._reader(cfg.proc_vmstat))),
            (
                cfg.proc_diskstats,
                lambda: parse_proc_diskstats(self._reader(cfg.proc_diskstats), self.include_device),
            ),
            ("ss", lambda: parse_ss(self._runner(cfg.ss_command, cfg.ss_timeout_seconds))),
        ]
