"""Tests for gridcalc.persist LocalStore."""

from __future__ import annotations

import json
from pathlib import Path

from gridcalc import Grid
from gridcalc.persist import LocalStore


class TestLocalStore:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert LocalStore(tmp_path / "none.json").load() is None

    def test_save_and_load(self, tmp_path: Path) -> None:
        grid = Grid(2, 2)
        grid["A1"].value = "$5"
        grid["B2"].value = "10"
        grid["B2"].formula = "=A1*2"
        store = LocalStore(tmp_path / "sheet.json")
        store.save(grid.snapshot())
        loaded = store.load()
        assert loaded == grid.snapshot()
        assert Grid.from_snapshot(loaded, 2, 2).snapshot() == grid.snapshot()

    def test_overwrites(self, tmp_path: Path) -> None:
        store = LocalStore(tmp_path / "sheet.json")
        store.save({"A1": {"value": "1", "formula": None}})
        store.save({"A1": {"value": "2", "formula": None}})
        assert store.load() == {"A1": {"value": "2", "formula": None}}
        assert [p.name for p in tmp_path.iterdir()] == ["sheet.json"]

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        store = LocalStore(tmp_path / "nested" / "dir" / "sheet.json")
        store.save({})
        assert store.load() == {}

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        path.write_text("{not json", encoding="utf-8")
        assert LocalStore(path).load() is None

    def test_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "sheet.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        assert LocalStore(path).load() is None

    def test_clear(self, tmp_path: Path) -> None:
        store = LocalStore(tmp_path / "sheet.json")
        store.save({})
        store.clear()
        assert store.load() is None
        store.clear()
