"""HTTP client for the remote save endpoint.

    POST /save              {"data": "<csv>"}
    GET  /get-status?id=...

Both return ``{"id"?: str, "status": "DONE" | "IN_PROGRESS", "done_at"?: str}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from gridcalc._errors import PersistenceError

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    DONE = "DONE"
    IN_PROGRESS = "IN_PROGRESS"


@dataclass(frozen=True)
class SaveResponse:
    status: SaveStatus
    id: str | None = None
    done_at: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> SaveResponse:
        if not isinstance(data, dict):
            raise PersistenceError("Unexpected response body")
        try:
            status = SaveStatus(data.get("status"))
        except ValueError:
            raise PersistenceError(f"Unexpected status: {data.get('status')!r}") from None
        job_id = data.get("id")
        if status is SaveStatus.IN_PROGRESS and not job_id:
            raise PersistenceError("Save in progress without a job id")
        return cls(
            status=status,
            id=str(job_id) if job_id else None,
            done_at=data.get("done_at"),
        )


class SaveClient:
    """Thin async wrapper over :class:`httpx.AsyncClient`.

    Every failure (transport error, non-2xx status, malformed body) is raised
    as :class:`~gridcalc.PersistenceError`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport,
        )

    async def save(self, csv_data: str) -> SaveResponse:
        return await self._request("POST", "/save", json={"data": csv_data})

    async def get_status(self, job_id: str) -> SaveResponse:
        return await self._request("GET", "/get-status", params={"id": job_id})

    async def _request(self, method: str, url: str, **kwargs: Any) -> SaveResponse:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Request to {url} failed: {e}") from e
        if response.is_error:
            raise PersistenceError(
                f"Server error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError(f"Invalid JSON from {url}") from e
        logger.debug("%s %s -> %s", method, url, data)
        return SaveResponse.from_json(data)

    async def aclose(self) -> None:
        await self._client.aclose()
