"""Tests for the JSON snapshot store and atomic writes."""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgscope.errors import SnapshotError
from pkgscope.fs import atomic_write
from pkgscope.models import TrackingRecord
from pkgscope.snapshot import JsonSnapshotStore


def test_missing_file_is_empty_snapshot(tmp_path: Path) -> None:
    assert JsonSnapshotStore(tmp_path / "db.json").load() == {}


def test_save_then_load(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "db.json")
    record = TrackingRecord(
        load_deps=frozenset({"json", "glue"}),
        native_deps={"z": True},
        autoloads={"fast": "glue_fast"},
    )
    store.save({"linux64": {"glue": {"glue.tree": record}}})
    assert store.load() == {"linux64": {"glue": {"glue.tree": record}}}


def test_output_is_deterministic(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "db.json")
    record = TrackingRecord(load_deps=frozenset({"c", "a", "b"}))
    store.save({"osx64": {}, "linux64": {"glue": {"glue": record}}})
    first = store.path.read_bytes()
    store.save({"linux64": {"glue": {"glue": record}}, "osx64": {}})
    assert store.path.read_bytes() == first
    assert b'["a","b","c"]' in first


def test_corrupt_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError):
        JsonSnapshotStore(path).load()


def test_wrong_shape_raises(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text('{"linux64": ["glue"]}', encoding="utf-8")
    with pytest.raises(SnapshotError):
        JsonSnapshotStore(path).load()


def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.txt"
    atomic_write(target, "first")
    atomic_write(target, "second")
    assert target.read_text(encoding="utf-8") == "second"
    assert [p.name for p in target.parent.iterdir()] == ["out.txt"]
