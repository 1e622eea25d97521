"""Tests for baseline persistence."""

import json
import logging
import os
from pathlib import Path

import pytest

from metricsnap.engine.snapshot import PersistedBaseline, SnapshotStore, identity_slug
from metricsnap.errors import PersistenceFailure


def test_load_missing_returns_none(tmp_path, caplog):
    store = SnapshotStore(tmp_path)
    with caplog.at_level(logging.DEBUG, logger="metricsnap.engine.snapshot"):
        assert store.load("linux") is None
    assert "No baseline" in caplog.text


def test_save_then_load(tmp_path):
    store = SnapshotStore(tmp_path)
    baseline = PersistedBaseline(sample={"forks": 10.0, "users": 2.0}, observed_at=1700000000.5)
    path = store.save("linux", baseline)
    assert path == tmp_path / "metricsnap-linux.json"
    assert store.load("linux") == baseline


def test_save_leaves_no_temporary_files(tmp_path):
    store = SnapshotStore(tmp_path)
    store.save("linux", PersistedBaseline({"a": 1.0}, 1.0))
    store.save("linux", PersistedBaseline({"a": 2.0}, 2.0))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["metricsnap-linux.json"]
    assert store.load("linux").sample == {"a": 2.0}


@pytest.mark.parametrize("content", [
    "",
    "{not json",
    "[]",
    '{"sample": {"a": 1}}',
    '{"observed_at": "yesterday", "sample": {"a": 1}}',
    '{"observed_at": 1.0, "sample": []}',
    '{"observed_at": 1.0, "sample": {"a": "1"}}',
    '{"observed_at": true, "sample": {}}',
    '{"observed_at": 1.0, "sample": {"a": NaN}}',
    '{"observed_at": 1.0, "sample": {"a": Infinity}}',
    '{"observed_at": Infinity, "sample": {}}',
])
def test_load_malformed_returns_none(tmp_path, content):
    store = SnapshotStore(tmp_path)
    store.path_for("x").write_text(content, encoding="utf-8")
    assert store.load("x") is None


def test_identities_do_not_collide(tmp_path):
    store = SnapshotStore(tmp_path)
    store.save("mongodb-db1-27017", PersistedBaseline({"a": 1.0}, 1.0))
    store.save("mongodb-db2-27017", PersistedBaseline({"a": 2.0}, 1.0))
    assert store.load("mongodb-db1-27017").sample == {"a": 1.0}
    assert store.load("mongodb-db2-27017").sample == {"a": 2.0}


def test_identity_slug():
    assert identity_slug("mongodb-db1-27017") == "mongodb-db1-27017"
    assert identity_slug("mongodb-db1:27017").startswith("mongodb-db1_27017-")
    assert identity_slug("../etc/passwd").startswith(".._etc_passwd-")
    assert "/" not in identity_slug("../etc/passwd")
    assert identity_slug("").startswith("-")


def test_substituted_identities_do_not_collide(tmp_path):
    assert identity_slug("mongodb-::1-27017") != identity_slug("mongodb-__1-27017")
    store = SnapshotStore(tmp_path)
    store.save("mongodb-::1-27017", PersistedBaseline({"a": 1.0}, 1.0))
    store.save("mongodb-__1-27017", PersistedBaseline({"a": 2.0}, 1.0))
    assert store.load("mongodb-::1-27017").sample == {"a": 1.0}
    assert store.load("mongodb-__1-27017").sample == {"a": 2.0}


def test_for_file_uses_explicit_path(tmp_path):
    target = tmp_path / "nested" / "state.json"
    store = SnapshotStore.for_file(target)
    store.save("ignored", PersistedBaseline({"a": 3.0}, 5.0))
    assert target.exists()
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data == {"observed_at": 5.0, "sample": {"a": 3.0}}
    assert store.load("anything").sample == {"a": 3.0}


def test_failed_save_keeps_previous_baseline(tmp_path, monkeypatch):
    store = SnapshotStore(tmp_path)
    store.save("linux", PersistedBaseline({"a": 1.0}, 1.0))

    def _broken_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", _broken_replace)
    with pytest.raises(PersistenceFailure):
        store.save("linux", PersistedBaseline({"a": 2.0}, 2.0))
    monkeypatch.undo()

    assert store.load("linux") == PersistedBaseline({"a": 1.0}, 1.0)
    assert [p.name for p in tmp_path.iterdir()] == ["metricsnap-linux.json"]


def test_save_into_unwritable_location(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    store = SnapshotStore(Path(blocker) / "sub")
    with pytest.raises(PersistenceFailure):
        store.save("linux", PersistedBaseline({"a": 1.0}, 1.0))
