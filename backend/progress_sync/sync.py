"""Scheduling around the merge function: fetch-merge, debounced push and teardown.

The coordinator never mutates a stale copy. Every merge reads the current local
record through ``get_current`` at the moment it runs, writes the result back via
``set_current`` and persists it, so interleaved fetches, manual merges and
pushes converge on the same value.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Set

from .identity import IdentityStore, normalize_username
from .merge import merge
from .models import CurriculumProgress
from .progress_store import ProgressStore
from .remote import RemoteProgressClient, RemoteResultKind
from .telemetry import emit_event

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class PushOutcome(str, Enum):
    PUSHED = "pushed"
    SKIPPED_UNAUTHENTICATED = "skipped_unauthenticated"
    SKIPPED_UNSYNCED = "skipped_unsynced"
    FAILED = "failed"


class FetchOutcome(str, Enum):
    MERGED = "merged"
    NO_REMOTE = "no_remote"
    ALREADY_LOADED = "already_loaded"
    FAILED = "failed"


class SyncCoordinator:
    """Owns the remote side of a progress session."""

    def __init__(
        self,
        client: RemoteProgressClient,
        identity: IdentityStore,
        store: ProgressStore,
        *,
        get_current: Callable[[], CurriculumProgress],
        set_current: Callable[[CurriculumProgress], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._client = client
        self._identity = identity
        self._store = store
        self._get_current = get_current
        self._set_current = set_current
        self._debounce_seconds = max(debounce_seconds, 0.0)
        self._pending: Optional[asyncio.Task[None]] = None
        self._in_flight: Set[asyncio.Task[PushOutcome]] = set()
        self._loaded_identities: Set[str] = set()
        # identities whose remote record has been folded in; only these may push
        self._synced_identities: Set[str] = set()
        self._closed = False

    @property
    def has_pending_push(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def is_loaded(self, username: str) -> bool:
        return normalize_username(username) in self._loaded_identities

    def is_synced(self, username: str) -> bool:
        return normalize_username(username) in self._synced_identities

    def mark_synced(self, username: str) -> None:
        """Record that the remote copy for ``username`` holds nothing the local record lacks."""
        normalized = normalize_username(username)
        self._loaded_identities.add(normalized)
        self._synced_identities.add(normalized)

    async def on_identity(self, username: str) -> FetchOutcome:
        """Fetch and merge the remote record, at most once per identity per process."""
        normalized = normalize_username(username)
        if normalized in self._loaded_identities:
            return FetchOutcome.ALREADY_LOADED
        self._loaded_identities.add(normalized)

        result = await self._client.fetch_progress(normalized)
        if result.kind is RemoteResultKind.NOT_FOUND:
            self._synced_identities.add(normalized)
            outcome = FetchOutcome.NO_REMOTE
        elif not result.ok or result.value is None:
            # a later identity acquisition may try again
            self._loaded_identities.discard(normalized)
            logger.warning(
                "Remote progress fetch for %s failed (%s); continuing local-only",
                normalized,
                result.kind.value,
            )
            outcome = FetchOutcome.FAILED
        else:
            self._apply_remote(result.value)
            self._synced_identities.add(normalized)
            outcome = FetchOutcome.MERGED
        emit_event("progress_fetch_merge", username=normalized, outcome=outcome)
        return outcome

    def manual_merge(self, remote: CurriculumProgress, *, username: Optional[str] = None) -> CurriculumProgress:
        """Merge a remote snapshot gathered during first login into the local record."""
        merged = self._apply_remote(remote)
        owner = username or self._identity.get_username()
        if owner:
            self.mark_synced(owner)
        return merged

    def _apply_remote(self, remote: CurriculumProgress) -> CurriculumProgress:
        merged = merge(self._get_current(), remote)
        self._set_current(merged)
        self._store.save(merged)
        return merged

    def schedule_push(self) -> None:
        """Restart the quiet-period timer; the push fires once mutations stop."""
        if self._closed:
            return
        self.cancel_pending()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; progress stays local until the next mutation")
            return
        self._pending = loop.create_task(self._debounced_push())

    def cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced_push(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        current = asyncio.current_task()
        if self._pending is current:
            self._pending = None
        task = asyncio.ensure_future(self.push_now())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def push_now(self) -> PushOutcome:
        """Push the current local record in full.

        The remote store replaces the whole record, so nothing is sent for an
        identity whose remote copy has not been merged in yet.
        """
        username = self._identity.get_username()
        token = self._identity.get_token()
        if not username or not token:
            logger.debug("No stored identity/token; skipping remote progress push")
            return PushOutcome.SKIPPED_UNAUTHENTICATED
        if not self.is_synced(username):
            logger.info("Remote progress for %s not merged yet; holding push", username)
            return PushOutcome.SKIPPED_UNSYNCED

        snapshot = self._get_current().model_copy(deep=True)
        result = await self._client.push_progress(username, snapshot, token)
        if result.ok:
            outcome = PushOutcome.PUSHED
        else:
            logger.warning(
                "Remote progress push for %s failed (%s): %s",
                username,
                result.kind.value,
                result.message,
            )
            outcome = PushOutcome.FAILED
        emit_event("progress_push", username=username, outcome=outcome, xp=snapshot.xp)
        return outcome

    async def flush(self) -> Optional[PushOutcome]:
        """Push immediately if a debounced push is waiting."""
        if not self.has_pending_push:
            return None
        self.cancel_pending()
        return await self.push_now()

    def clear_identity(self) -> None:
        self.cancel_pending()
        self._identity.clear()

    async def close(self) -> None:
        """Cancel any waiting push and let pushes already on the wire finish."""
        self._closed = True
        pending = self._pending
        self.cancel_pending()
        if pending is not None:
            try:
                await pending
            except asyncio.CancelledError:
                pass
        await self.drain()

    async def drain(self) -> None:
        """Wait for pushes already on the wire."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "FetchOutcome",
    "PushOutcome",
    "SyncCoordinator",
]
