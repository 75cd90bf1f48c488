"""Authentication gate for the tutor dashboard.

The dashboard (and therefore the
[QueueSynchronizer][waitroom.services.synchronizer.QueueSynchronizer]) is
only reachable while a tutor session exists. How credentials are checked is
not this package's concern: [StaticAuthGate][waitroom.services.common.auth.StaticAuthGate]
delegates the decision to an injected verifier.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

from waitroom.core.exceptions import AuthenticationError
from waitroom.core.logger import Logger
from waitroom.models import Session


CredentialVerifier = Callable[[str, str], bool]


class AuthGate(Protocol):
    """Session query plus sign-in / sign-out."""

    def current_session(self) -> Session | None: ...

    def sign_in(self, user: str, secret: str) -> Session: ...

    def sign_out(self) -> None: ...


class StaticAuthGate:
    """In-process gate holding at most one session.

    Args:
        verifier: Returns ``True`` when ``(user, secret)`` is acceptable.
        session: Pre-existing session (e.g. restored by the caller).
        clock: Source of Unix time for ``Session.signed_in_at``.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        session: Session | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._verifier = verifier
        self._session = session
        self._clock = clock
        self._logger = Logger("auth")

    def current_session(self) -> Session | None:
        return self._session

    def sign_in(self, user: str, secret: str) -> Session:
        """Open a session for *user*.

        Raises:
            AuthenticationError: If the verifier rejects the credentials.
        """
        user = (user or "").strip()
        if not user or not self._verifier(user, secret):
            self._logger.warning("sign_in_rejected", user=user or "<empty>")
            raise AuthenticationError("Invalid login credentials")
        self._session = Session(user=user, signed_in_at=int(self._clock()))
        self._logger.info("signed_in", user=user)
        return self._session

    def sign_out(self) -> None:
        if self._session is not None:
            self._logger.info("signed_out", user=self._session.user)
        self._session = None


def require_session(gate: AuthGate) -> Session:
    """Return the current session or raise ``AuthenticationError``."""
    session = gate.current_session()
    if session is None:
        raise AuthenticationError("A signed-in tutor session is required")
    return session
