"""Username validation, claim handshake and local token custody."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .remote import RemoteProgressClient, RemoteResultKind
from .storage import KeyValueStorage
from .telemetry import emit_event

logger = logging.getLogger(__name__)

USERNAME_KEY = "kidsLearnUsername"
TOKEN_KEY = "kidsLearnToken"
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,20}$")

UNREACHABLE_MESSAGE = "Could not reach server. Try again later."
REQUEST_FAILED_MESSAGE = "Request failed."


def validate_username(value: str) -> Optional[str]:
    """Return None when the username is acceptable, otherwise a message for the learner."""
    trimmed = value.strip()
    if not trimmed:
        return "Please enter a username."
    if len(trimmed) < 3:
        return "Username must be at least 3 characters."
    if len(trimmed) > 20:
        return "Username must be 20 characters or fewer."
    if not USERNAME_PATTERN.match(trimmed):
        return "Only letters, numbers, hyphens, and underscores are allowed."
    return None


def normalize_username(value: str) -> str:
    return value.strip().lower()


class IdentityStore:
    """Persists the claimed username and its write token in local storage."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._storage.get_item(key) or None
        except OSError:
            logger.exception("Failed to read %s from local storage", key)
            return None

    def get_username(self) -> Optional[str]:
        return self._read(USERNAME_KEY)

    def get_token(self) -> Optional[str]:
        return self._read(TOKEN_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self.get_username() is not None and self.get_token() is not None

    def set_identity(self, username: str, token: Optional[str]) -> None:
        try:
            self._storage.set_item(USERNAME_KEY, normalize_username(username))
            if token:
                self._storage.set_item(TOKEN_KEY, token)
            else:
                self._storage.remove_item(TOKEN_KEY)
        except OSError:
            logger.exception("Failed to persist identity for %s", username)

    def clear(self) -> None:
        try:
            self._storage.remove_item(USERNAME_KEY)
            self._storage.remove_item(TOKEN_KEY)
        except OSError:
            logger.exception("Failed to clear stored identity")


class ClaimStatus(str, Enum):
    CREATED = "created"
    EXISTS = "exists"
    ERROR = "error"


@dataclass(frozen=True)
class ClaimResult:
    status: ClaimStatus
    username: Optional[str] = None
    message: Optional[str] = None


async def claim_username(
    name: str,
    client: RemoteProgressClient,
    identity: IdentityStore,
) -> ClaimResult:
    """Create or resume an identity with one round trip to the remote store."""
    validation_error = validate_username(name)
    if validation_error is not None:
        return ClaimResult(status=ClaimStatus.ERROR, message=validation_error)

    normalized = normalize_username(name)
    result = await client.claim_username(normalized)
    if result.kind is RemoteResultKind.UNREACHABLE:
        outcome = ClaimResult(status=ClaimStatus.ERROR, message=UNREACHABLE_MESSAGE)
    elif not result.ok or result.value is None:
        outcome = ClaimResult(status=ClaimStatus.ERROR, message=result.message or REQUEST_FAILED_MESSAGE)
    elif result.value.exists:
        outcome = ClaimResult(status=ClaimStatus.EXISTS, username=normalized)
    elif result.value.created:
        outcome = ClaimResult(status=ClaimStatus.CREATED, username=normalized)
    else:
        outcome = ClaimResult(status=ClaimStatus.ERROR, message=REQUEST_FAILED_MESSAGE)

    if outcome.status is not ClaimStatus.ERROR:
        identity.set_identity(normalized, result.value.token if result.value else None)
    emit_event("username_claim", username=normalized, status=outcome.status)
    return outcome


__all__ = [
    "ClaimResult",
    "ClaimStatus",
    "IdentityStore",
    "TOKEN_KEY",
    "USERNAME_KEY",
    "claim_username",
    "normalize_username",
    "validate_username",
]
