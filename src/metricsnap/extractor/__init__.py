"""Raw-value extraction: text formats and nested documents to flat samples."""

from .document import MapNode, Node, Scalar, resolve_path, to_document
from .text import (
    Sample,
    parse_flat_counters,
    parse_proc_diskstats,
    parse_proc_stat,
    parse_proc_vmstat,
    parse_ss,
    parse_who,
)

__all__ = [
    "MapNode",
    "Node",
    "Sample",
    "Scalar",
    "parse_flat_counters",
    "parse_proc_diskstats",
    "parse_proc_stat",
    "parse_proc_vmstat",
    "parse_ss",
    "parse_who",
    "resolve_path",
    "to_document",
]
