"""PersistenceManager: debounced remote save with polling and retry backoff.

Suspension happens only at three points: the debounce timer, the HTTP
request, and the backoff sleep.  A new trigger cancels a pending (unfired)
timer but never an in-flight request or poll.  Each save gets a generation
number; a completion whose generation is no longer the latest is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from gridcalc import _notify
from gridcalc._errors import PersistenceError
from gridcalc._notify import LoggingNotifier, Notification, Notifier
from gridcalc.persist._remote import SaveClient, SaveResponse, SaveStatus

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class PersistenceManager:
    """Drives remote saves for a session.

    ``debounce`` and ``initial_backoff`` are in seconds.  Status polling waits
    ``initial_backoff * 2**n`` before the n-th poll and continues for as long
    as the server reports ``IN_PROGRESS``.  A failed request is retried up to
    ``max_retries`` times with the same backoff schedule.
    """

    def __init__(
        self,
        client: SaveClient,
        notifier: Notifier | None = None,
        *,
        debounce: float = 1.0,
        initial_backoff: float = 5.0,
        max_retries: int = 3,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._notifier = notifier or LoggingNotifier()
        self._debounce = debounce
        self._initial_backoff = initial_backoff
        self._max_retries = max_retries
        self._sleep = sleep
        self._timer: asyncio.TimerHandle | None = None
        self._pending: Callable[[], str | None] | None = None
        self._tasks: set[asyncio.Task[SaveStatus | None]] = set()
        self._generation = 0
        self._is_saving = False
        self.last_status: SaveStatus | None = None
        self.last_done_at: str | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def has_pending(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------

    def schedule(self, csv_provider: Callable[[], str | None]) -> bool:
        """(Re)start the debounce window; the save fires once it elapses.

        *csv_provider* is called when the timer fires and may return ``None``
        to skip the save (e.g. the grid has error cells by then).  Returns
        ``False`` when there is no running event loop to schedule on.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; remote save not scheduled")
            return False
        if self._timer is not None:
            self._timer.cancel()
        self._pending = csv_provider
        self._timer = loop.call_later(self._debounce, self._fire)
        return True

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None

    def _fire(self) -> None:
        provider = self._pending
        self._timer = None
        self._pending = None
        if provider is None:
            return
        csv_data = provider()
        if csv_data is None:
            logger.info("Remote save skipped: grid has errors")
            return
        task = asyncio.ensure_future(self.save_now(csv_data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Fire a pending save immediately and wait for all saves to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def aclose(self) -> None:
        self.cancel_pending()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Save protocol
    # ------------------------------------------------------------------

    async def save_now(self, csv_data: str) -> SaveStatus | None:
        """Post *csv_data*, poll until done, return ``DONE``.

        Returns ``None`` when the save was abandoned after exhausting retries
        or superseded by a newer save.
        """
        self._generation += 1
        generation = self._generation
        self._is_saving = True
        try:
            response = await self._with_retry(
                lambda: self._client.save(csv_data), generation,
            )
            if response is None:
                return None
            if response.status is SaveStatus.IN_PROGRESS:
                self._notify(_notify.info("Save in progress. Please wait..."), generation)
                response = await self._poll(response.id or "", generation)
                if response is None:
                    return None
            if not self._is_current(generation):
                logger.info(
                    "Discarding stale save completion (generation %d, latest %d)",
                    generation, self._generation,
                )
                return None
            self.last_status = SaveStatus.DONE
            self.last_done_at = response.done_at
            logger.info("Spreadsheet saved (generation %d)", generation)
            self._notify(_notify.success("Spreadsheet saved successfully!"), generation)
            return SaveStatus.DONE
        finally:
            if self._is_current(generation):
                self._is_saving = False

    async def _poll(self, job_id: str, generation: int) -> SaveResponse | None:
        attempt = 0
        while True:
            delay = self._initial_backoff * 2 ** attempt
            logger.debug("Save %s in progress; polling in %.1fs", job_id, delay)
            await self._sleep(delay)
            response = await self._with_retry(
                lambda: self._client.get_status(job_id), generation,
            )
            if response is None or response.status is SaveStatus.DONE:
                return response
            self._notify(_notify.info("Save in progress. Please wait..."), generation)
            attempt += 1

    async def _with_retry(
        self,
        call: Callable[[], Awaitable[SaveResponse]],
        generation: int,
    ) -> SaveResponse | None:
        attempt = 0
        while True:
            try:
                return await call()
            except PersistenceError as e:
                if attempt >= self._max_retries:
                    logger.error("Save request failed after %d attempt(s): %s", attempt + 1, e)
                    self.last_status = None
                    self._notify(
                        _notify.error("Unable to complete the request. Please try again later."),
                        generation,
                    )
                    return None
                delay = self._initial_backoff * 2 ** attempt
                logger.warning("Save request failed (%s); retrying in %.1fs", e, delay)
                self._notify(_notify.info("Retrying request..."), generation)
                await self._sleep(delay)
                attempt += 1

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _notify(self, notification: Notification, generation: int) -> None:
        if self._is_current(generation):
            self._notifier.notify(notification)
