"""Authenticated tutor session."""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_str_not_empty, validate_timestamp


@dataclass(frozen=True, slots=True)
class Session:
    """A signed-in tutor.

    Attributes:
        user: Identifier the tutor signed in with (typically an email).
        signed_in_at: Unix timestamp of the sign-in.
    """

    user: str
    signed_in_at: int

    def __post_init__(self) -> None:
        validate_str_not_empty(self.user, "user")
        validate_timestamp(self.signed_in_at, "signed_in_at")
