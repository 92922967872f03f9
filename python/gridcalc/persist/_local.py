"""Local snapshot storage: one JSON file, rewritten after every committed change."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gridcalc._grid import Snapshot

logger = logging.getLogger(__name__)


class LocalStore:
    """Durable local copy of the grid, keyed by address."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot | None:
        """Return the stored snapshot, or ``None`` if absent or unreadable."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read snapshot %s: %s", self._path, e)
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt snapshot %s: %s", self._path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring snapshot %s: expected an object", self._path)
            return None
        return data

    def save(self, snapshot: Snapshot) -> None:
        """Write *snapshot* atomically (temp file + rename)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
