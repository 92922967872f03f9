"""gridcalc.persist - Local snapshots and the debounced remote save pipeline."""

from gridcalc.persist._local import LocalStore
from gridcalc.persist._manager import PersistenceManager
from gridcalc.persist._remote import SaveClient, SaveResponse, SaveStatus

__all__ = [
    "LocalStore",
    "PersistenceManager",
    "SaveClient",
    "SaveResponse",
    "SaveStatus",
]
