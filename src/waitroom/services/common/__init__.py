"""Shared service building blocks: request actions and the auth gate."""

from .actions import (
    STUDENT_NAME_REQUIRED,
    ActionResult,
    create_request,
    delete_request,
    mark_seen,
)
from .auth import AuthGate, CredentialVerifier, StaticAuthGate, require_session


__all__ = [
    "STUDENT_NAME_REQUIRED",
    "ActionResult",
    "AuthGate",
    "CredentialVerifier",
    "StaticAuthGate",
    "create_request",
    "delete_request",
    "mark_seen",
    "require_session",
]
