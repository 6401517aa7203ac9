"""HTTP client for the remote progress store.

Calls never raise for transport or protocol failures; they return a
``RemoteResult`` whose ``kind`` lets the sync policy decide how to degrade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .models import CurriculumProgress, parse_progress

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteResultKind(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
    INVALID_PAYLOAD = "invalid_payload"


@dataclass(frozen=True)
class RemoteResult(Generic[T]):
    kind: RemoteResultKind
    value: Optional[T] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is RemoteResultKind.OK


class ClaimResponse(BaseModel):
    created: bool = False
    exists: bool = False
    username: Optional[str] = None
    token: Optional[str] = None


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str):
            return message
    return None


def _failure(response: httpx.Response) -> RemoteResult[Any]:
    if response.status_code == 404:
        kind = RemoteResultKind.NOT_FOUND
    elif response.status_code in (401, 403):
        kind = RemoteResultKind.UNAUTHORIZED
    else:
        kind = RemoteResultKind.REJECTED
    return RemoteResult(kind=kind, message=_error_message(response) or f"HTTP {response.status_code}")


class RemoteProgressClient:
    """Async client for ``/api/username`` and ``/api/progress``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = client is None

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response | RemoteResult[Any]:
        try:
            return await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Remote progress %s %s failed: %s", method, path, exc)
            return RemoteResult(kind=RemoteResultKind.UNREACHABLE, message=str(exc))

    async def claim_username(self, username: str) -> RemoteResult[ClaimResponse]:
        response = await self._request("POST", "/api/username", json={"username": username.lower()})
        if isinstance(response, RemoteResult):
            return response
        if not response.is_success:
            return _failure(response)
        try:
            claim = ClaimResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            return RemoteResult(kind=RemoteResultKind.INVALID_PAYLOAD, message=str(exc))
        return RemoteResult(kind=RemoteResultKind.OK, value=claim)

    async def fetch_progress(self, username: str) -> RemoteResult[CurriculumProgress]:
        response = await self._request("GET", "/api/progress", params={"username": username.lower()})
        if isinstance(response, RemoteResult):
            return response
        if not response.is_success:
            return _failure(response)
        try:
            data = response.json()
        except ValueError as exc:
            return RemoteResult(kind=RemoteResultKind.INVALID_PAYLOAD, message=str(exc))
        progress = parse_progress(data, strict=False)
        if progress is None:
            return RemoteResult(kind=RemoteResultKind.INVALID_PAYLOAD, message="Remote progress has an invalid shape.")
        return RemoteResult(kind=RemoteResultKind.OK, value=progress)

    async def push_progress(
        self,
        username: str,
        progress: CurriculumProgress,
        token: str,
    ) -> RemoteResult[None]:
        payload: Dict[str, Any] = {
            "username": username.lower(),
            "progress": progress.to_payload(),
            "token": token,
        }
        response = await self._request("PUT", "/api/progress", json=payload)
        if isinstance(response, RemoteResult):
            return response
        if not response.is_success:
            return _failure(response)
        return RemoteResult(kind=RemoteResultKind.OK)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = [
    "ClaimResponse",
    "RemoteProgressClient",
    "RemoteResult",
    "RemoteResultKind",
]
