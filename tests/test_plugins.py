"""Tests for the Linux and MongoDB plugins."""

import logging

import pytest

from metricsnap.config import LinuxConfig, MongoDBConfig
from metricsnap.errors import SourceUnavailable
from metricsnap.plugins.base import merge_samples
from metricsnap.plugins.linux import LinuxPlugin, read_text, run_command
from metricsnap.plugins.mongodb import MongoDBPlugin

from test_extractor import PROC_DISKSTATS, PROC_STAT, SS_ALL_OUTPUT, SS_OUTPUT, WHO_OUTPUT

PROC_VMSTAT = "pgpgin 770294\npgpgout 31351354\npswpin 0\npswpout 113\n"

SERVER_STATUS = {
    "host": "db1",
    "version": "4.4.0",
    "connections": {"current": 12, "available": 51188},
    "opcounters": {
        "insert": 10, "query": 200, "update": 30,
        "delete": 4, "getmore": 5, "command": 600,
    },
    "globalLock": {
        "activeClients": {"readers": 0, "writers": 1},
        "currentQueue": {"readers": 2, "writers": 0},
    },
    "mem": {"virtual": 1500, "resident": 80, "mapped": 0},
    "extra_info": {"page_faults": 7},
    "asserts": {"msg": 0, "warning": 0, "regular": 0, "user": 3},
    "dur": 5,
    "wiredTiger": {
        "cache": {
            "bytes currently in the cache": 1024,
            "maximum bytes configured": "8589934592",
            "tracked dirty bytes in the cache": "unknown",
        },
    },
}


def _files(mapping):
    def _reader(path):
        if path not in mapping:
            raise SourceUnavailable(path, "No such file or directory")
        return mapping[path]
    return _reader


def make_linux(files=None, ss=SS_OUTPUT, who=WHO_OUTPUT, config=None):
    if files is None:
        files = {
            "/proc/stat": PROC_STAT,
            "/proc/vmstat": PROC_VMSTAT,
            "/proc/diskstats": PROC_DISKSTATS,
        }
    return LinuxPlugin(
        config or LinuxConfig(),
        reader=_files(files),
        runner=lambda command, timeout: ss,
        sessions=lambda: who,
    )


class TestLinuxPlugin:

    def test_fetch_sample(self):
        sample = make_linux().fetch_sample()
        assert sample["users"] == 3
        assert sample["interrupts"] == 614818624
        assert sample["pgpgout"] == 31351354
        assert sample["iotime_sda"] == 23865772
        assert sample["LISTEN"] == 2
        assert "iotime_ram0" not in sample

    def test_ss_all_families(self):
        plugin = make_linux(ss=SS_ALL_OUTPUT)
        assert LinuxConfig().ss_command == ["ss", "-a"]
        sample = plugin.fetch_sample()
        assert sample["LISTEN"] == 2
        assert sample["ESTAB"] == 2
        assert not {"Netid", "tcp", "u_str", "nl"} & set(sample)
        ss = next(g for g in plugin.graph_definition() if g.key == "linux.ss")
        assert {"LISTEN", "ESTAB", "TIME-WAIT", "UNCONN"} <= {m.name for m in ss.metrics}

    def test_missing_source_is_skipped(self, caplog):
        plugin = make_linux(files={"/proc/stat": PROC_STAT})
        with caplog.at_level(logging.ERROR):
            sample = plugin.fetch_sample()
        assert sample["forks"] == 1959410
        assert "pgpgin" not in sample
        assert "/proc/vmstat" in caplog.text

    def test_identity(self):
        assert make_linux().identity == "linux"
        other = make_linux(config=LinuxConfig(proc_stat="/host/proc/stat"))
        assert other.identity.startswith("linux-")
        assert other.identity != "linux"

    def test_disk_exclude_disabled(self):
        plugin = make_linux(config=LinuxConfig(disk_exclude=""))
        assert "iotime_ram0" in plugin.fetch_sample()

    def test_graph_definition(self):
        graphs = make_linux(ss="").graph_definition()
        keys = [g.key for g in graphs]
        assert "linux.ss" not in keys
        assert "linux.disk.elapsed" in keys
        assert "linux.interrupts" in keys

    def test_to_samples_metadata(self):
        samples = make_linux().to_samples({"forks": 2.5, "LISTEN": 2.0, "other": 1.0}, 1700000000.0)
        by_name = {s.name: s for s in samples}
        assert by_name["forks"].labels == {"plugin": "linux", "graph": "linux.forks"}
        assert by_name["LISTEN"].labels["graph"] == "linux.ss"
        assert by_name["other"].labels == {"plugin": "linux"}
        assert by_name["other"].unit == ""


def test_read_text_missing_file(tmp_path):
    with pytest.raises(SourceUnavailable, match="missing"):
        read_text(tmp_path / "missing")


def test_run_command_not_found():
    with pytest.raises(SourceUnavailable, match="command not found"):
        run_command(["__metricsnap_no_such_command__"], timeout=1.0)


def test_merge_samples_collision(caplog):
    with caplog.at_level(logging.ERROR):
        merged = merge_samples([("a", {"x": 1.0, "y": 2.0}), ("b", {"x": 9.0, "z": 3.0})])
    assert merged == {"x": 1.0, "y": 2.0, "z": 3.0}
    assert "produced by both a and b" in caplog.text


class TestMongoDBPlugin:

    def make(self, status=SERVER_STATUS, **config):
        return MongoDBPlugin(MongoDBConfig(**config), fetcher=lambda cfg: status)

    def test_parse_status(self):
        plugin = self.make()
        sample = plugin.fetch_sample()
        assert sample["connections_current"] == 12.0
        assert sample["opcounters_command"] == 600.0
        assert sample["globallock_queue_readers"] == 2.0
        assert sample["page_faults"] == 7.0
        assert sample["wiredtiger_cache_bytes"] == 1024.0
        assert sample["wiredtiger_cache_maximum"] == 8589934592.0
        assert "duration_ms" not in sample
        assert "dur_commits" not in sample
        assert "wiredtiger_cache_tracked" not in sample

    def test_parse_status_log_levels(self, caplog):
        plugin = self.make()
        with caplog.at_level(logging.DEBUG, logger="metricsnap.plugins.mongodb"):
            plugin.fetch_sample()
        levels = {r.getMessage().split()[3]: r.levelno for r in caplog.records if r.getMessage().startswith("Cannot fetch")}
        assert levels["duration_ms"] == logging.DEBUG
        assert levels["dur_commits"] == logging.WARNING
        assert levels["wiredtiger_cache_tracked"] == logging.WARNING

    def test_unreachable_server(self):
        def _fail(cfg):
            raise SourceUnavailable("mongodb://db1:27017", "timed out")

        plugin = MongoDBPlugin(MongoDBConfig(host="db1"), fetcher=_fail)
        assert plugin.fetch_sample() == {}
        assert plugin.graph_definition() == plugin.catalog

    def test_graph_definition_filters_absent_groups(self):
        graphs = self.make().graph_definition()
        keys = {g.key for g in graphs}
        assert "mongodb.connections" in keys
        assert "mongodb.wiredtiger_cache" in keys
        assert "mongodb.background_flushing" not in keys
        assert "mongodb.dur_commits" not in keys
        assert "mongodb.wiredtiger_transactions" not in keys
        cache = next(g for g in graphs if g.key == "mongodb.wiredtiger_cache")
        assert [m.name for m in cache.metrics] == ["wiredtiger_cache_bytes", "wiredtiger_cache_maximum"]

    def test_identity(self):
        assert self.make(host="db1", port=27018).identity == "mongodb-db1-27018"
