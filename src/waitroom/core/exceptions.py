"""Waitroom exception hierarchy.

Typed exceptions let callers tell transient store failures from permanent
ones and keep ``CancelledError`` out of broad error boundaries.

Exception hierarchy:

```text
WaitroomError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── StoreError               -- backing store failures
│   ├── ConnectionPoolError  -- transient: pool exhausted, network blip
│   └── QueryError           -- permanent: bad SQL, constraint violation
├── SubscriptionError        -- change stream could not be opened
└── AuthenticationError      -- no tutor session / sign-in rejected
```

See Also:
    [Pool][waitroom.core.pool.Pool]: Raises ``ConnectionError`` on exhausted
        connection retries.
    [QueueStore][waitroom.core.store.QueueStore]: Raises
        [QueryError][waitroom.core.exceptions.QueryError] and
        [SubscriptionError][waitroom.core.exceptions.SubscriptionError].
    [QueueSynchronizer][waitroom.services.synchronizer.QueueSynchronizer]:
        Converts store failures into visible error state.
"""

from __future__ import annotations


class WaitroomError(Exception):
    """Base exception for all waitroom errors. Never raised directly."""


class ConfigurationError(WaitroomError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


class StoreError(WaitroomError):
    """Base for all backing store errors."""


class ConnectionPoolError(StoreError, ConnectionError):
    """Transient store error: pool exhausted, connection refused, network blip.

    Also a builtin ``ConnectionError`` so transport-level boundaries catch
    it. Callers may retry after a backoff.
    """


class QueryError(StoreError):
    """Permanent store error: bad SQL, constraint violation, rejected value.

    Callers should NOT retry.
    """


class SubscriptionError(WaitroomError):
    """The change-notification stream could not be opened."""


class AuthenticationError(WaitroomError):
    """A tutor session is required but absent, or sign-in was rejected."""
