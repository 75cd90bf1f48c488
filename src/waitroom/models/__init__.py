"""Pure frozen dataclasses with zero I/O for the waiting-room queue.

The models layer is the foundation of the package. It has **no
dependencies** on any other waitroom package, only the Python standard
library. Every model uses ``@dataclass(frozen=True, slots=True)`` and
validates itself in ``__post_init__`` so invalid instances never escape
the constructor.

Attributes:
    QueueEntry: One student's help request (id, created_at, student_name,
        topic_area, status).
    QueueState: Immutable, ordered snapshot of the client-side queue plus
        load and mutation status.
    Notification: Tagged union of normalized change notifications
        (insert, update, delete, reload).
    Session: A signed-in tutor.
    EntryStatus: ``waiting`` / ``seen`` lifecycle enum.
    ChangeKind: ``INSERT`` / ``UPDATE`` / ``DELETE`` enum.

See Also:
    [waitroom.models.notification][]: Normalization of raw notification payloads.
    [waitroom.core][]: Backing store and service infrastructure built on these models.
"""

from .constants import (
    ALL_CHANGE_KINDS,
    QUEUE_TABLE,
    ChangeKind,
    EntryStatus,
    ServiceName,
)
from .notification import (
    DeleteNotification,
    InsertNotification,
    Notification,
    ReloadNotification,
    UpdateNotification,
    parse_notification,
)
from .queue_entry import QueueEntry
from .queue_state import QueueState, sort_entries
from .session import Session


__all__ = [
    "ALL_CHANGE_KINDS",
    "QUEUE_TABLE",
    "ChangeKind",
    "DeleteNotification",
    "EntryStatus",
    "InsertNotification",
    "Notification",
    "QueueEntry",
    "QueueState",
    "ReloadNotification",
    "ServiceName",
    "Session",
    "UpdateNotification",
    "parse_notification",
    "sort_entries",
]
