"""Shared constants for the models layer.

Defines the enumerations used by queue entries, change notifications and
service identifiers. Placing them here avoids circular dependencies between
the models, core and services layers.

See Also:
    [waitroom.models.queue_entry][]: Uses [EntryStatus][waitroom.models.constants.EntryStatus]
        for the lifecycle of a help request.
    [waitroom.models.notification][]: Uses [ChangeKind][waitroom.models.constants.ChangeKind]
        to classify change notifications.
"""

from __future__ import annotations

from enum import StrEnum


QUEUE_TABLE = "queue_requests"
"""Name of the backing collection holding queue entries."""


class EntryStatus(StrEnum):
    """Lifecycle status of a [QueueEntry][waitroom.models.queue_entry.QueueEntry].

    An entry is created ``waiting`` and moves to ``seen`` when a tutor picks
    it up. There is no reverse transition and no other state; entries leave
    the queue only through explicit deletion.

    Attributes:
        WAITING: The student is waiting for help.
        SEEN: A tutor has acknowledged the request.
    """

    WAITING = "waiting"
    SEEN = "seen"

    @classmethod
    def can_transition(cls, current: EntryStatus, target: EntryStatus) -> bool:
        """Return ``True`` if ``current -> target`` is an allowed transition.

        Identity transitions are allowed so that repeated acknowledgements
        stay idempotent.
        """
        return current == target or (current is cls.WAITING and target is cls.SEEN)


class ChangeKind(StrEnum):
    """Kinds of row change carried by a notification.

    Attributes:
        INSERT: A new entry was submitted.
        UPDATE: An existing entry changed (status acknowledgement).
        DELETE: An entry was completed or removed.
    """

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_CHANGE_KINDS: frozenset[ChangeKind] = frozenset(ChangeKind)
"""Subscription scope covering every change kind."""


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        SYNCHRONIZER: Tutor-side live queue synchronizer
            ([QueueSynchronizer][waitroom.services.synchronizer.QueueSynchronizer]).
    """

    SYNCHRONIZER = "synchronizer"
