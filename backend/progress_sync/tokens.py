"""Opaque write tokens bound to a normalized username."""

from __future__ import annotations

import hashlib
import hmac


def issue_token(username: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), username.strip().lower().encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def verify_token(username: str, token: str, secret: str) -> bool:
    return hmac.compare_digest(issue_token(username, secret), token)


__all__ = ["issue_token", "verify_token"]
