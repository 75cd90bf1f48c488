"""Synchronizer service package.

Re-exports all public symbols::

    from waitroom.services.synchronizer import QueueSynchronizer, SynchronizerConfig
"""

from .configs import RECONCILE_INTERVAL_SECONDS, SynchronizerConfig
from .service import QueueSynchronizer
from .utils import (
    SyncCounters,
    apply_change,
    entries_from_snapshot,
    mark_entry_seen,
    remove_entry,
    replace_entry,
    upsert_entry,
)


__all__ = [
    "RECONCILE_INTERVAL_SECONDS",
    "QueueSynchronizer",
    "SyncCounters",
    "SynchronizerConfig",
    "apply_change",
    "entries_from_snapshot",
    "mark_entry_seen",
    "remove_entry",
    "replace_entry",
    "upsert_entry",
]
