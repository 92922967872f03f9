"""Tests for gridcalc Session: the editing lifecycle end to end."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from gridcalc import ErrorState, Level, RecordingNotifier, Session, Settings
from gridcalc.persist import LocalStore, PersistenceManager, SaveClient


async def _no_sleep(delay: float) -> None:
    return None


def _done(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"status": "DONE"})


def _session(
    tmp_path: Path,
    *,
    rows: int = 5,
    columns: int = 3,
    notifier: RecordingNotifier | None = None,
    handler: Callable[[httpx.Request], httpx.Response] = _done,
) -> Session:
    notifier = notifier if notifier is not None else RecordingNotifier()
    settings = Settings(_env_file=None, rows=rows, columns=columns)
    client = SaveClient("http://save.test", transport=httpx.MockTransport(handler))
    persistence = PersistenceManager(client, notifier, debounce=0.01, sleep=_no_sleep)
    return Session(
        settings,
        notifier=notifier,
        store=LocalStore(tmp_path / "sheet.json"),
        persistence=persistence,
    )


class TestLoad:
    def test_empty_start(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        grid = session.load()
        assert session.initialized
        assert (grid.rows, grid.columns) == (5, 3)
        assert all(c.is_empty for c in grid.cells())

    def test_restores_and_reconciles(self, tmp_path: Path) -> None:
        (tmp_path / "sheet.json").write_text(
            json.dumps({
                "A1": {"value": "3", "formula": None},
                "B1": {"value": "0", "formula": "=A1*3"},
            }),
            encoding="utf-8",
        )
        session = _session(tmp_path)
        session.load()
        assert session.grid["B1"].value == "9"
        assert LocalStore(tmp_path / "sheet.json").load()["B1"]["value"] == "9"  # type: ignore[index]

    def test_edit_before_load(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        with pytest.raises(RuntimeError):
            session.commit("A1", "1")

    def test_reload_roundtrip(self, tmp_path: Path) -> None:
        first = _session(tmp_path)
        first.load()
        first.commit("A1", "$1000")
        first.commit("B1", "15%")
        first.commit("C1", "=A1*B1")

        second = _session(tmp_path)
        second.load()
        assert second.grid.snapshot() == first.grid.snapshot()
        assert second.grid["C1"].formula == "=A1*B1"


class TestCommitScenarios:
    def test_currency_times_percent(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "$1000")
        session.commit("B1", "15%")
        session.commit("C1", "=A1*B1")
        assert session.grid["C1"].value == "150"

    def test_mutual_cycle(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "=B1")
        session.commit("B1", "=A1")
        assert session.grid["A1"].value == "#CIRCULAR_REF"
        assert session.grid["B1"].value == "#CIRCULAR_REF"
        assert session.grid["A1"].error is ErrorState.CIRCULAR_REF

    def test_invalid_literal_notifies(self, tmp_path: Path) -> None:
        notifier = RecordingNotifier()
        session = _session(tmp_path, notifier=notifier)
        session.load()
        session.commit("A1", "abc")
        assert session.grid["A1"].value == "#ERROR"
        assert session.is_error("A1")
        assert notifier.messages(Level.ERROR) == ["Invalid value format in A1: 'abc'"]

    def test_unknown_reference(self, tmp_path: Path) -> None:
        notifier = RecordingNotifier()
        session = _session(tmp_path, notifier=notifier)
        session.load()
        session.commit("A1", "=Z99")
        assert session.grid["A1"].value == "#ERROR"
        assert any("Z99" in m for m in notifier.messages(Level.ERROR))

    def test_sweep_updates_dependents(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "$1000")
        session.commit("B1", "15%")
        session.commit("C1", "=A1*B1")
        session.commit("B1", "20%")
        assert session.grid["C1"].value == "200"

    def test_clear(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "5")
        session.commit("B1", "=A1+1")
        session.clear("A1")
        assert session.grid["A1"].is_empty
        assert session.grid["B1"].value == "1"

    def test_local_snapshot_written(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A2", "7")
        stored = LocalStore(tmp_path / "sheet.json").load()
        assert stored is not None
        assert stored["A2"] == {"value": "7", "formula": None}


class TestFocusAndEdit:
    def test_formula_cell_shows_formula(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "2")
        session.commit("B1", "=A1*2")
        assert session.focus("B1") == "=A1*2"
        assert session.focused_cell == "B1"
        assert session.editing_text == "=A1*2"

    def test_literal_cell_shows_value(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "$5")
        assert session.focus("a1") == "$5"
        assert session.focused_cell == "A1"

    def test_error_literal_cleared_on_focus(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "oops")
        assert session.focus("A1") == ""
        assert not session.is_error("A1")
        assert session.grid["A1"].value == ""
        stored = LocalStore(tmp_path / "sheet.json").load()
        assert stored is not None
        assert stored["A1"]["value"] == ""

    def test_error_formula_keeps_formula(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "=1/0")
        assert session.focus("A1") == "=1/0"
        assert not session.is_error("A1")
        assert session.grid["A1"].formula == "=1/0"
        session.commit()
        assert session.grid["A1"].value == "#ERROR"

    def test_circular_formula_cleared_on_focus(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.commit("A1", "=B1")
        session.commit("B1", "=A1")
        assert session.focus("B1") == "=A1"
        assert not session.is_error("B1")
        assert session.is_error("A1")
        session.commit("B1", "5")
        assert session.grid["A1"].value == "5"
        assert not session.grid.has_errors()

    def test_edit_accepts_prefixes(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        assert session.edit("A1", "$")
        assert session.edit("A1", "12.")
        assert session.editing_text == "12."
        assert session.edit("A1", "=A")
        assert session.edit("A1", "")

    def test_edit_rejects_invalid(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.edit("A1", "12")
        assert not session.edit("A1", "12x")
        assert session.editing_text == "12"
        assert not session.is_error("A1")

    def test_commit_focused_buffer(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.focus("A1")
        session.edit("A1", "42")
        result = session.commit()
        assert result.value == "42"
        assert session.focused_cell is None
        assert session.editing_text == ""

    def test_focus_elsewhere_commits(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.edit("A1", "5")
        session.focus("B1")
        assert session.grid["A1"].value == "5"
        assert session.focused_cell == "B1"

    def test_commit_without_target(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        with pytest.raises(ValueError):
            session.commit()

    def test_no_sweep_while_focused(self, tmp_path: Path) -> None:
        session = _session(tmp_path)
        session.load()
        session.focus("A1")
        assert not session.reconcile().ran


class TestRemoteSave:
    @pytest.mark.asyncio
    async def test_commit_schedules_save(self, tmp_path: Path) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"status": "DONE"})

        notifier = RecordingNotifier()
        async with _session(tmp_path, rows=2, notifier=notifier, handler=handler) as session:
            session.commit("A1", "$1000")
            session.commit("B1", "15%")
            session.commit("C1", "=A1*B1")
            await session.persistence.flush()
        assert len(requests) == 1
        assert json.loads(requests[0].content) == {"data": "$1000,15%,150\n,,"}
        assert notifier.messages(Level.SUCCESS) == ["Spreadsheet saved successfully!"]

    @pytest.mark.asyncio
    async def test_save_suppressed_while_errors(self, tmp_path: Path) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"status": "DONE"})

        async with _session(tmp_path, handler=handler) as session:
            session.commit("A1", "1")
            session.commit("B1", "abc")
            assert session.save() is False
            await session.persistence.flush()
            assert requests == []

            session.clear("B1")
            assert session.save() is True
            await session.persistence.flush()
        assert len(requests) == 1
