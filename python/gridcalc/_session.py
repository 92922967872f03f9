"""Session: owns the grid and funnels every mutation through one path.

Cell lifecycle::

    Idle(display) --focus--> Editing(buffer) --commit--> Evaluating --> Idle(display | sentinel)

``focus`` exposes the formula text (not the display) for formula cells and
clears any error sentinel; a formula that still fails shows it again on
commit.  ``commit`` evaluates, propagates to dependents, writes the local
snapshot, runs the reconciliation sweep and schedules the debounced remote
save.
"""

from __future__ import annotations

import logging

from gridcalc import _notify
from gridcalc._cell import ErrorState
from gridcalc._config import Settings
from gridcalc._grid import Grid
from gridcalc._notify import LoggingNotifier, Notifier
from gridcalc.calc._evaluator import FormulaEvaluator
from gridcalc.calc._protocol import CommitResult, SweepResult
from gridcalc.calc._scheduler import RecalcScheduler
from gridcalc.calc._validation import validate_partial
from gridcalc.persist._local import LocalStore
from gridcalc.persist._manager import PersistenceManager
from gridcalc.persist._remote import SaveClient

logger = logging.getLogger(__name__)


class Session:
    """One interactive spreadsheet session.

    Usage::

        async with Session(Settings(rows=10, columns=3)) as session:
            session.commit("A1", "$1000")
            session.commit("B1", "15%")
            session.commit("C1", "=A1*B1")
            session.grid["C1"].value  # "150"
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        notifier: Notifier | None = None,
        store: LocalStore | None = None,
        persistence: PersistenceManager | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._notifier = notifier or LoggingNotifier()
        self._store = store or LocalStore(self._settings.storage_path)
        if persistence is None:
            client = SaveClient(
                self._settings.api_base_url, timeout=self._settings.request_timeout,
            )
            persistence = PersistenceManager(
                client,
                self._notifier,
                debounce=self._settings.save_debounce_seconds,
                initial_backoff=self._settings.backoff_initial_seconds,
                max_retries=self._settings.max_retries,
            )
        self._persistence = persistence
        self._evaluator = FormulaEvaluator()
        self._grid = Grid(self._settings.rows, self._settings.columns)
        self._scheduler = RecalcScheduler(self._grid, self._evaluator)
        self._initialized = False
        self._focused: str | None = None
        self._buffer = ""

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def grid(self) -> Grid:
        return self._grid

    @property
    def rows(self) -> int:
        return self._grid.rows

    @property
    def columns(self) -> int:
        return self._grid.columns

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def focused_cell(self) -> str | None:
        return self._focused

    @property
    def editing_text(self) -> str:
        """Edit buffer of the focused cell ("" when nothing is focused)."""
        return self._buffer

    @property
    def is_saving(self) -> bool:
        return self._persistence.is_saving

    @property
    def persistence(self) -> PersistenceManager:
        return self._persistence

    def is_error(self, address: str) -> bool:
        return self._grid[address].is_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> Grid:
        """Populate the grid from the local snapshot, or start empty."""
        rows, columns = self._settings.rows, self._settings.columns
        snapshot = self._store.load()
        if snapshot is not None:
            self._grid = Grid.from_snapshot(snapshot, rows, columns)
            logger.info("Loaded grid from %s", self._store.path)
        else:
            self._grid = Grid(rows, columns)
            logger.info("Initialized new %dx%d grid", rows, columns)
        self._scheduler = RecalcScheduler(self._grid, self._evaluator)
        self._focused = None
        self._buffer = ""
        self._initialized = True
        if self._scheduler.reconcile().changed:
            self._persist_local()
        return self._grid

    async def dispose(self) -> None:
        """Drop pending saves and release the HTTP client."""
        await self._persistence.aclose()
        self._initialized = False

    async def __aenter__(self) -> Session:
        self.load()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.dispose()

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Call load() before editing the session")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def focus(self, address: str) -> str:
        """Enter editing mode for *address* and return the edit buffer.

        Focusing a different cell first commits the one being edited.
        """
        self._require_initialized()
        cell = self._grid[address]
        if self._focused is not None and self._focused != cell.address:
            self.commit(self._focused)

        if cell.formula is not None:
            buffer = cell.formula
            if cell.is_error:
                # The formula stays; the sentinel returns on commit if still failing.
                cell.value = ""
                cell.error = ErrorState.NONE
                self._persist_local()
        elif cell.is_error:
            cell.reset()
            self._persist_local()
            buffer = ""
        else:
            buffer = cell.value

        self._focused = cell.address
        self._buffer = buffer
        return buffer

    def edit(self, address: str, text: str) -> bool:
        """Live keystroke update of the edit buffer.

        Formulas and empty text are always accepted; anything else must be a
        prefix of a valid literal.  Rejected text leaves the buffer unchanged.
        """
        self._require_initialized()
        cell = self._grid[address]
        if self._focused != cell.address:
            self.focus(cell.address)
        if text.startswith("=") or not text.strip() or validate_partial(text):
            self._buffer = text
            return True
        logger.debug("Rejected keystroke input %r for %s", text, cell.address)
        return False

    def commit(self, address: str | None = None, text: str | None = None) -> CommitResult:
        """Commit *text* (default: the edit buffer) to *address* (default: focused cell)."""
        self._require_initialized()
        target = address if address is not None else self._focused
        if target is None:
            raise ValueError("No cell is focused and no address was given")
        cell = self._grid[target]
        if text is None:
            if self._focused == cell.address:
                text = self._buffer
            else:
                text = cell.formula if cell.formula is not None else cell.value
        if self._focused == cell.address:
            self._focused = None
            self._buffer = ""

        result = self._scheduler.commit(cell.address, text)
        if result.error_message:
            self._notifier.notify(_notify.error(result.error_message))

        sweep = self.reconcile()
        self._persist_local()
        if result.changed or sweep.changed:
            self.save()
        return result

    def clear(self, address: str) -> CommitResult:
        """Reset a cell to empty through the commit pipeline."""
        return self.commit(address, "")

    def reconcile(self) -> SweepResult:
        """Run the reconciliation sweep if no cell is focused."""
        self._require_initialized()
        if self._focused is not None:
            return SweepResult(ran=False)
        return self._scheduler.reconcile()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Schedule the debounced remote save.

        Suppressed (returns ``False``) while any cell is in an error state.
        """
        self._require_initialized()
        if self._grid.has_errors():
            logger.info(
                "Remote save suppressed: %d cell(s) in error",
                len(self._grid.error_cells()),
            )
            return False
        return self._persistence.schedule(self._csv_for_save)

    def _csv_for_save(self) -> str | None:
        if self._grid.has_errors():
            return None
        return self._grid.to_csv()

    def _persist_local(self) -> None:
        if not self._initialized:
            return
        try:
            self._store.save(self._grid.snapshot())
        except OSError as e:
            logger.error("Cannot write local snapshot %s: %s", self._store.path, e)
            self._notifier.notify(_notify.error("Unable to save changes locally"))
