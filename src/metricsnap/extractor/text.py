"""Text extractors for /proc files and command output.

Every function here is pure: it receives the raw text and returns a flat
``name -> value`` mapping.  Reading files and running commands is the job of
the plugins in :mod:`metricsnap.plugins`.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Mapping

from ..errors import ParseError

logger = logging.getLogger(__name__)

Sample = dict[str, float]

PROC_STAT_NAMES = {
    "intr": "interrupts",
    "ctxt": "context_switches",
    "processes": "forks",
}

PROC_VMSTAT_NAMES = {
    "pgpgin": "pgpgin",
    "pgpgout": "pgpgout",
    "pswpin": "pswpin",
    "pswpout": "pswpout",
}

# 0-based column offsets in /proc/diskstats
DISKSTATS_COLUMNS = {
    "tsreading": 6,
    "tswriting": 10,
    "iotime": 12,
    "iotime_weighted": 13,
}
_DISKSTATS_MIN_FIELDS = max(DISKSTATS_COLUMNS.values()) + 1


def _as_text(raw: str | bytes, source: str) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"{source}: input is not valid UTF-8 text") from exc
    raise ParseError(f"{source}: expected text, got {type(raw).__name__}")


def _finite(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"non-finite value {token!r}")
    return value


def parse_flat_counters(
    raw: str | bytes,
    names: Mapping[str, str] | None = None,
    source: str = "counters",
) -> Sample:
    """Parse ``key value...`` records.

    Only the first value of each record is kept; ``intr`` lines in
    ``/proc/stat`` carry the total followed by one column per IRQ, and the
    per-IRQ columns are discarded.  With *names*, only the listed keys are
    extracted and renamed; other keys are ignored.
    """
    text = _as_text(raw, source)
    sample: Sample = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        fields = line.split()
        if not fields:
            continue
        key = fields[0]
        if names is not None:
            if key not in names:
                continue
            metric = names[key]
        else:
            metric = key
        if len(fields) < 2:
            logger.warning("%s: no value for %r on line %d", source, key, lineno)
            continue
        try:
            sample[metric] = _finite(fields[1])
        except ValueError:
            logger.warning("%s: non-numeric value %r for %r on line %d", source, fields[1], key, lineno)
    return sample


def parse_proc_stat(raw: str | bytes) -> Sample:
    """Extract interrupts, context switches and forks from ``/proc/stat``."""
    return parse_flat_counters(raw, PROC_STAT_NAMES, source="/proc/stat")


def parse_proc_vmstat(raw: str | bytes) -> Sample:
    """Extract paging and swapping counters from ``/proc/vmstat``."""
    return parse_flat_counters(raw, PROC_VMSTAT_NAMES, source="/proc/vmstat")


def parse_proc_diskstats(
    raw: str | bytes,
    include: Callable[[str], bool] | None = None,
) -> Sample:
    """Extract per-device I/O time counters from ``/proc/diskstats``.

    Each row yields ``<metric>_<device>`` entries for the columns in
    :data:`DISKSTATS_COLUMNS`.  *include* decides which devices are kept.
    """
    text = _as_text(raw, "/proc/diskstats")
    sample: Sample = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        fields = line.split()
        if not fields:
            continue
        if len(fields) < _DISKSTATS_MIN_FIELDS:
            logger.warning("/proc/diskstats: short row on line %d (%d fields)", lineno, len(fields))
            continue
        device = fields[2]
        if include is not None and not include(device):
            continue
        try:
            values = {metric: _finite(fields[idx]) for metric, idx in DISKSTATS_COLUMNS.items()}
        except ValueError:
            logger.warning("/proc/diskstats: non-numeric column for %s on line %d", device, lineno)
            continue
        for metric, value in values.items():
            sample[f"{metric}_{device}"] = value
    return sample


def parse_ss(raw: str | bytes) -> Sample:
    """Count sockets per state from ``ss`` output.

    The state column is located from the header row: ``ss -a`` prints
    ``Netid State ...`` while a single-family listing such as ``ss -t``
    prints ``State ...``.  Without a header the first column is taken.
    The header row itself is not counted.
    """
    text = _as_text(raw, "ss")
    sample: Sample = {}
    column = 0
    for line in text.splitlines():
        fields = line.split()
        if not fields:
            continue
        if "State" in fields[:2]:
            column = fields.index("State")
            continue
        if len(fields) <= column:
            logger.warning("ss: row has no state column: %r", line)
            continue
        state = fields[column]
        sample[state] = sample.get(state, 0.0) + 1.0
    return sample


def parse_who(raw: str | bytes) -> Sample:
    """Count logged-in sessions, one per non-empty line."""
    text = _as_text(raw, "who")
    count = sum(1 for line in text.splitlines() if line.strip())
    return {"users": float(count)}
