"""MongoDB plugin: metrics from the ``serverStatus`` command."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping

import pymongo
from pymongo.errors import PyMongoError

from ..catalog import Catalog, GraphCatalogEntry, GraphGroup, document_resolver, filter_graph_definitions
from ..config import MongoDBConfig
from ..errors import KeyNotFound, ParseError, SourceUnavailable, TypeMismatch
from ..extractor.document import resolve_path, to_document
from .base import BasePlugin, Extraction, Sample

logger = logging.getLogger(__name__)

_MB = 1024.0 * 1024.0


def _m(name: str, label: str, *path: str, diff: bool = False, scale: float = 1.0) -> GraphCatalogEntry:
    return GraphCatalogEntry(name, label, diff=diff, type="uint64", scale=scale, path=path)


# Fields differ by server version and storage engine (MMAPv1 vs WiredTiger);
# the graph definition is narrowed to what the server reports.
MONGODB_CATALOG: Catalog = (
    GraphGroup("mongodb.background_flushing", "MongoDB Command", "float", (
        _m("duration_ms", "Duration in ms", "backgroundFlushing", "total_ms", diff=True),
    )),
    GraphGroup("mongodb.connections", "MongoDB Connections", "integer", (
        _m("connections_current", "current", "connections", "current"),
        _m("connections_available", "available", "connections", "available"),
    )),
    GraphGroup("mongodb.index_counters.btree", "MongoDB Index Counters Btree", "integer", (
        _m("index_hits", "hits", "indexCounters", "hits", diff=True),
        _m("index_btree_hits", "hits", "indexCounters", "btree", "hits", diff=True),
    )),
    GraphGroup("mongodb.opcounters", "MongoDB opcounters", "integer", (
        _m("opcounters_insert", "Insert", "opcounters", "insert", diff=True),
        _m("opcounters_query", "Query", "opcounters", "query", diff=True),
        _m("opcounters_update", "Update", "opcounters", "update", diff=True),
        _m("opcounters_delete", "Delete", "opcounters", "delete", diff=True),
        _m("opcounters_getmore", "Getmore", "opcounters", "getmore", diff=True),
        _m("opcounters_command", "Command", "opcounters", "command", diff=True),
    )),
    GraphGroup("mongodb.globallock", "MongoDB GlobalLock operations", "integer", (
        _m("globallock_client_readers", "ClientReaders", "globalLock", "activeClients", "readers"),
        _m("globallock_client_writers", "ClientWriters", "globalLock", "activeClients", "writers"),
        _m("globallock_queue_readers", "QueueReaders", "globalLock", "currentQueue", "readers"),
        _m("globallock_queue_writers", "QueueWriters", "globalLock", "currentQueue", "writers"),
    )),
    GraphGroup("mongodb.dur_commits", "MongoDB MMAPv1 journal transactions", "integer", (
        _m("dur_commits", "Commits", "dur", "commits"),
    )),
    GraphGroup("mongodb.dur_journaled", "MongoDB MMAPv1 journal size", "bytes", (
        _m("dur_journaled", "JournalSize", "dur", "journaledMB", scale=_MB),
    )),
    GraphGroup("mongodb.memory", "MongoDB Memory", "bytes", (
        _m("mem_virtual", "Virtual", "mem", "virtual", scale=_MB),
        _m("mem_resident", "Resident", "mem", "resident", scale=_MB),
        _m("mem_mapped", "Mapped", "mem", "mapped", scale=_MB),
    )),
    GraphGroup("mongodb.page_faults", "MongoDB Page Faults", "integer", (
        _m("page_faults", "Count", "extra_info", "page_faults"),
    )),
    GraphGroup("mongodb.asserts", "MongoDB Asserts", "integer", (
        _m("asserts_msg", "Msg", "asserts", "msg"),
        _m("asserts_warning", "Warning", "asserts", "warning"),
        _m("asserts_regular", "Regular", "asserts", "regular"),
        _m("asserts_user", "User", "asserts", "user"),
    )),
    GraphGroup("mongodb.wiredtiger_transactions", "MongoDB WiredTiger Transaction Tickets", "integer", (
        _m("wiredtiger_read_out", "ReadOut", "wiredTiger", "concurrentTransactions", "read", "out"),
        _m("wiredtiger_write_out", "WriteOut", "wiredTiger", "concurrentTransactions", "write", "out"),
        _m("wiredtiger_read_avl", "ReadAvailable", "wiredTiger", "concurrentTransactions", "read", "available"),
        _m("wiredtiger_write_avl", "WriteAvailable", "wiredTiger", "concurrentTransactions", "write", "available"),
    )),
    GraphGroup("mongodb.wiredtiger_cache", "MongoDB WiredTiger Caches", "bytes", (
        _m("wiredtiger_cache_bytes", "Current", "wiredTiger", "cache", "bytes currently in the cache"),
        _m("wiredtiger_cache_maximum", "Max", "wiredTiger", "cache", "maximum bytes configured"),
        _m("wiredtiger_cache_tracked", "Tracked", "wiredTiger", "cache", "tracked dirty bytes in the cache"),
        _m("wiredtiger_cache_unmodified", "Unmodified", "wiredTiger", "cache", "unmodified pages evicted"),
        _m("wiredtiger_cache_modified", "Modified", "wiredTiger", "cache", "modified pages evicted"),
    )),
)


def fetch_server_status(config: MongoDBConfig) -> Mapping[str, Any]:
    """Run ``serverStatus`` against the configured server."""
    kwargs: dict[str, Any] = {
        "host": config.host,
        "port": int(config.port),
        "directConnection": True,
        "serverSelectionTimeoutMS": int(config.timeout_seconds * 1000),
        "connectTimeoutMS": int(config.timeout_seconds * 1000),
    }
    if config.username:
        kwargs["username"] = config.username
        kwargs["password"] = config.password
    try:
        with pymongo.MongoClient(**kwargs) as client:
            return client.admin.command("serverStatus")
    except PyMongoError as exc:
        raise SourceUnavailable(f"mongodb://{config.host}:{config.port}", str(exc)) from exc


class MongoDBPlugin(BasePlugin):
    """Collects server metrics from one MongoDB instance.

    *fetcher* returns the raw ``serverStatus`` mapping; it defaults to a
    direct pymongo connection built from *config*.
    """

    def __init__(
        self,
        config: MongoDBConfig | None = None,
        fetcher: Callable[[MongoDBConfig], Mapping[str, Any]] = fetch_server_status,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__(log=log or logger)
        self._config = config or MongoDBConfig()
        self._fetcher = fetcher

    @property
    def name(self) -> str:
        return "mongodb"

    @property
    def identity(self) -> str:
        return f"mongodb-{self._config.host}-{self._config.port}"

    @property
    def catalog(self) -> Catalog:
        return MONGODB_CATALOG

    def fetch_status(self) -> Mapping[str, Any]:
        status = self._fetcher(self._config)
        if self._config.verbose:
            self._log.info("serverStatus: %s", json.dumps(status, default=str))
        return status

    def parse_status(self, status: Any) -> Sample:
        """Extract every catalog metric that resolves in *status*."""
        document = to_document(status)
        sample: Sample = {}
        for group in self.catalog:
            for entry in group.metrics:
                try:
                    sample[entry.name] = resolve_path(document, entry.path)
                except KeyNotFound as exc:
                    self._log.debug("Cannot fetch metric %s %s: %s", entry.name, list(entry.path), exc)
                except (TypeMismatch, ParseError) as exc:
                    self._log.warning("Cannot fetch metric %s %s: %s", entry.name, list(entry.path), exc)
        return sample

    def extractions(self) -> list[tuple[str, Extraction]]:
        return [("serverStatus", lambda: self.parse_status(self.fetch_status()))]

    def graph_definition(self) -> Catalog:
        """Narrow the catalog to fields this server reports.

        The full catalog is returned when the server cannot be queried.
        """
        try:
            document = to_document(self.fetch_status())
        except (SourceUnavailable, ParseError) as exc:
            self._log.warning("Returning full graph definition: %s", exc)
            return self.catalog
        return filter_graph_definitions(self.catalog, document_resolver(document))
