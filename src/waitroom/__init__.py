r"""waitroom -- live waiting-room queue for a tutoring help desk.

Students submit help requests; tutors watch an ordered queue that stays in
sync with a shared PostgreSQL table through ``LISTEN``/``NOTIFY`` change
notifications and periodic full reloads.

Imports flow strictly downward:

```text
   services      Synchronizer, request actions, auth gate
      |
    core         Pool, queue store, base service, logging, metrics
      |
   models        Frozen dataclasses and notification parsing (zero I/O)
```

Note:
    Top-level imports (``from waitroom import QueueSynchronizer``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("waitroom")

__all__ = [
    "ActionResult",
    "BaseService",
    "EntryStatus",
    "Logger",
    "Pool",
    "PoolConfig",
    "QueueEntry",
    "QueueState",
    "QueueStore",
    "QueueSynchronizer",
    "Session",
    "StaticAuthGate",
    "StoreConfig",
    "SynchronizerConfig",
    "parse_notification",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("waitroom.core", "BaseService"),
    "Logger": ("waitroom.core", "Logger"),
    "Pool": ("waitroom.core", "Pool"),
    "PoolConfig": ("waitroom.core", "PoolConfig"),
    "QueueStore": ("waitroom.core", "QueueStore"),
    "StoreConfig": ("waitroom.core", "StoreConfig"),
    "EntryStatus": ("waitroom.models", "EntryStatus"),
    "QueueEntry": ("waitroom.models", "QueueEntry"),
    "QueueState": ("waitroom.models", "QueueState"),
    "Session": ("waitroom.models", "Session"),
    "parse_notification": ("waitroom.models", "parse_notification"),
    "ActionResult": ("waitroom.services", "ActionResult"),
    "QueueSynchronizer": ("waitroom.services", "QueueSynchronizer"),
    "StaticAuthGate": ("waitroom.services", "StaticAuthGate"),
    "SynchronizerConfig": ("waitroom.services", "SynchronizerConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'waitroom' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
