"""Tests for the command-line interface."""

import json

import yaml

from metricsnap import __version__
from metricsnap.cli import main

from test_extractor import PROC_DISKSTATS, PROC_STAT, SS_OUTPUT


def _write_config(tmp_path):
    (tmp_path / "stat").write_text(PROC_STAT)
    (tmp_path / "vmstat").write_text("pgpgin 1\npgpgout 2\npswpin 3\npswpout 4\n")
    (tmp_path / "diskstats").write_text(PROC_DISKSTATS)
    (tmp_path / "ss.txt").write_text(SS_OUTPUT)
    config = {
        "linux": {
            "proc_stat": str(tmp_path / "stat"),
            "proc_vmstat": str(tmp_path / "vmstat"),
            "proc_diskstats": str(tmp_path / "diskstats"),
            "ss_command": ["cat", str(tmp_path / "ss.txt")],
        },
    }
    path = tmp_path / "metricsnap.yaml"
    path.write_text(yaml.dump(config))
    return str(path)


def test_version(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out.strip() == f"metricsnap {__version__}"


def test_no_command(capsys):
    assert main([]) == 1


def test_linux_two_invocations(tmp_path, capsys):
    config = _write_config(tmp_path)
    state = tmp_path / "state"

    assert main(["-c", config, "linux", "--state-dir", str(state)]) == 0
    first = capsys.readouterr().out
    assert "linux.ss.LISTEN\t2.000000\t" in first
    assert "linux.forks.forks" not in first
    assert len(list(state.glob("metricsnap-linux-*.json"))) == 1

    assert main(["-c", config, "linux", "--state-dir", str(state)]) == 0
    second = capsys.readouterr().out
    assert "linux.forks.forks\t0.000000\t" in second
    assert "linux.disk.elapsed.iotime_sda\t0.000000\t" in second


def test_linux_tempfile_flag(tmp_path, capsys):
    config = _write_config(tmp_path)
    target = tmp_path / "custom.json"
    assert main(["-c", config, "linux", "--tempfile", str(target)]) == 0
    saved = json.loads(target.read_text())
    assert saved["sample"]["interrupts"] == 614818624.0


def test_graphdef_linux(tmp_path, capsys):
    config = _write_config(tmp_path)
    assert main(["-c", config, "graphdef", "linux"]) == 0
    graphs = json.loads(capsys.readouterr().out)["graphs"]
    assert graphs["linux.interrupts"]["metrics"][0]["diff"] is True
    assert [m["name"] for m in graphs["linux.ss"]["metrics"]] == ["ESTAB", "TIME-WAIT", "LISTEN"]


def test_graphdef_table(tmp_path, capsys):
    config = _write_config(tmp_path)
    assert main(["-c", config, "graphdef", "linux", "--table"]) == 0
    assert "linux graph definitions" in capsys.readouterr().out


def test_graphdef_mongodb_credentials(tmp_path, monkeypatch, capsys):
    import metricsnap.cli as cli
    from metricsnap.plugins.mongodb import MongoDBPlugin

    seen = {}

    def _fetch(cfg):
        seen.update(host=cfg.host, username=cfg.username, password=cfg.password)
        return {"connections": {"current": 3, "available": 10}}

    monkeypatch.setattr(cli, "_make_plugin", lambda name, cfg: MongoDBPlugin(cfg.mongodb, fetcher=_fetch))
    config = _write_config(tmp_path)
    argv = ["-c", config, "graphdef", "mongodb", "--host", "db1", "--username", "admin", "--password", "secret"]
    assert main(argv) == 0
    assert seen == {"host": "db1", "username": "admin", "password": "secret"}
    graphs = json.loads(capsys.readouterr().out)["graphs"]
    assert list(graphs) == ["mongodb.connections"]
