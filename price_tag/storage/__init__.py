"""Local and cloud design storage"""

from price_tag.storage.local_store import LocalStore, JsonTable, HISTORY_LIMIT
from price_tag.storage.remote_store import RemoteStore, Principal
from price_tag.storage.sync import (
    Synchronizer,
    MergedDesigns,
    SyncTally,
    merged_view
)

__all__ = [
    "LocalStore",
    "JsonTable",
    "HISTORY_LIMIT",
    "RemoteStore",
    "Principal",
    "Synchronizer",
    "MergedDesigns",
    "SyncTally",
    "merged_view"
]
