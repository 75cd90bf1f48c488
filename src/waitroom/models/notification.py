"""Change notifications and their normalization.

The notification transport does not guarantee a single field naming or
casing scheme: different client versions deliver the change kind under
``eventType``, ``type`` or ``op``, and the row images under ``new``,
``record``, ``payload.new`` or ``after``. [parse_notification][waitroom.models.notification.parse_notification]
is the only place that knows about these shapes. It maps every raw payload
to one of four tagged variants (or ``None``) before anything reaches the
synchronizer's apply logic.

```text
raw payload ──> parse_notification ──> InsertNotification(entry)
                                   ├─> UpdateNotification(entry)
                                   ├─> DeleteNotification(entry_id)
                                   ├─> ReloadNotification(reason)
                                   └─> None  (malformed / unrecognized)
```

Examples:
    ```python
    parse_notification({"eventType": "delete", "old": {"id": "a"}})
    # DeleteNotification(entry_id='a')

    parse_notification('{"type": "INSERT", "new": null}')
    # ReloadNotification(reason='insert without new record')
    ```
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from .constants import ChangeKind
from .queue_entry import QueueEntry


logger = logging.getLogger(__name__)


KIND_KEYS: tuple[str, ...] = ("eventType", "type", "event_type", "event", "kind", "op", "operation")
NEW_RECORD_PATHS: tuple[tuple[str, ...], ...] = (("new",), ("record",), ("payload", "new"), ("after",))
OLD_RECORD_PATHS: tuple[tuple[str, ...], ...] = (
    ("old",),
    ("old_record",),
    ("payload", "old"),
    ("before",),
)


@dataclass(frozen=True, slots=True)
class InsertNotification:
    """A new entry was submitted (or re-delivered)."""

    kind: ClassVar[ChangeKind] = ChangeKind.INSERT
    entry: QueueEntry


@dataclass(frozen=True, slots=True)
class UpdateNotification:
    """An existing entry changed."""

    kind: ClassVar[ChangeKind] = ChangeKind.UPDATE
    entry: QueueEntry


@dataclass(frozen=True, slots=True)
class DeleteNotification:
    """An entry was completed or removed."""

    kind: ClassVar[ChangeKind] = ChangeKind.DELETE
    entry_id: str


@dataclass(frozen=True, slots=True)
class ReloadNotification:
    """The stream signalled a change it could not describe; reload everything."""

    kind: ClassVar[ChangeKind] = ChangeKind.INSERT
    reason: str


Notification = InsertNotification | UpdateNotification | DeleteNotification | ReloadNotification


def decode_payload(raw: Any) -> Mapping[str, Any] | None:
    """Return *raw* as a mapping, decoding JSON text if necessary.

    ``NOTIFY`` payloads arrive as text; in-process transports pass dicts.
    Anything that is not (or does not decode to) a mapping yields ``None``.
    """
    if isinstance(raw, bytes | bytearray):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("notification_invalid_json length=%d", len(raw))
            return None
    if isinstance(raw, Mapping):
        return raw
    return None


def _lookup(payload: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def extract_kind(payload: Mapping[str, Any]) -> ChangeKind | None:
    """Return the change kind carried by *payload*, compared case-insensitively.

    The first value among [KIND_KEYS][waitroom.models.notification.KIND_KEYS]
    that names a [ChangeKind][waitroom.models.constants.ChangeKind] wins; keys
    holding other values (a transport-level ``type`` such as
    ``"postgres_changes"``) are skipped. ``None`` means no key names a kind.
    """
    for key in KIND_KEYS:
        value = payload.get(key)
        if value:
            try:
                return ChangeKind(str(value).strip().upper())
            except ValueError:
                continue
    return None


def _first_record(
    payload: Mapping[str, Any], paths: tuple[tuple[str, ...], ...]
) -> Mapping[str, Any] | None:
    for path in paths:
        value = _lookup(payload, path)
        if isinstance(value, Mapping) and value:
            return value
    return None


def extract_new_record(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Return the new-value row image, or ``None`` if no candidate field holds one."""
    return _first_record(payload, NEW_RECORD_PATHS)


def extract_old_record(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Return the old-value row image, or ``None`` if no candidate field holds one."""
    return _first_record(payload, OLD_RECORD_PATHS)


def extract_deleted_id(payload: Mapping[str, Any]) -> str | None:
    """Return the id of a deleted row.

    Prefers the primary old-value record and falls back to the alternate
    old-value fields when the primary one has no ``id``.
    """
    for path in OLD_RECORD_PATHS:
        record = _lookup(payload, path)
        if not isinstance(record, Mapping):
            continue
        value = record.get("id")
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _parse_entry(record: Mapping[str, Any]) -> QueueEntry | None:
    try:
        return QueueEntry.from_record(record)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("notification_invalid_record error=%s", e)
        return None


def parse_notification(raw: Any) -> Notification | None:
    """Normalize a raw change notification into a tagged variant.

    Rules:

    * INSERT with a usable new-value record: ``InsertNotification``.
    * INSERT without one (missing or unparseable): ``ReloadNotification``,
      since the stream knows something changed but not what.
    * UPDATE with a usable new-value record: ``UpdateNotification``;
      otherwise ``None``.
    * DELETE with a resolvable id: ``DeleteNotification``; otherwise ``None``.
    * Anything else (unknown kind, non-mapping payload): ``None``.

    Never raises for malformed input.
    """
    payload = decode_payload(raw)
    if payload is None:
        return None

    kind = extract_kind(payload)

    if kind is ChangeKind.INSERT:
        record = extract_new_record(payload)
        if record is None:
            return ReloadNotification(reason="insert without new record")
        entry = _parse_entry(record)
        if entry is None:
            return ReloadNotification(reason="insert with unparseable record")
        return InsertNotification(entry=entry)

    if kind is ChangeKind.UPDATE:
        record = extract_new_record(payload)
        if record is None:
            return None
        entry = _parse_entry(record)
        return UpdateNotification(entry=entry) if entry is not None else None

    if kind is ChangeKind.DELETE:
        entry_id = extract_deleted_id(payload)
        return DeleteNotification(entry_id=entry_id) if entry_id else None

    return None
