"""Session facade: mutation entry points and derived getters for content collaborators."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from . import analytics
from .catalog import Catalog, QuizMeta, load_catalog
from .config import Settings, get_settings
from .identity import ClaimResult, ClaimStatus, IdentityStore, claim_username
from .merge import later_timestamp, merge
from .migration import LegacyMigrator
from .models import CurriculumProgress, QuizAttempt, TopicProgress
from .progress_store import ProgressStore
from .remote import RemoteProgressClient
from .storage import JsonFileStorage, KeyValueStorage
from .sync import DEFAULT_DEBOUNCE_SECONDS, FetchOutcome, SyncCoordinator

logger = logging.getLogger(__name__)

XP_QUIZ_FIRST_TRY = 100
XP_QUIZ_RETRY = 50
XP_ESSAY_FIRST_SAVE = 75


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _visit_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def next_streak(streak_days: int, last_visit: str, now: datetime) -> int:
    previous = _visit_date(last_visit)
    if previous is None or streak_days <= 0:
        return max(streak_days, 1)
    gap = now.astimezone(timezone.utc).date() - previous.date()
    if gap <= timedelta(0):
        return streak_days
    if gap == timedelta(days=1):
        return streak_days + 1
    return 1


class ProgressTracker:
    """Holds the in-memory progress record for one session.

    Mutations arrive one at a time from the host's event loop, so the record is
    updated in place without locking. Every mutation is persisted and then
    (when a remote store is configured) schedules a debounced push.
    """

    def __init__(
        self,
        store: ProgressStore,
        catalog: Catalog,
        *,
        client: Optional[RemoteProgressClient] = None,
        identity: Optional[IdentityStore] = None,
        migrator: Optional[LegacyMigrator] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        owns_client: bool = False,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._client = client
        self._owns_client = owns_client
        self._identity = identity or IdentityStore(store.storage)
        self._migrator = migrator or LegacyMigrator(store)
        self._progress = store.load()
        self._sync: Optional[SyncCoordinator] = None
        if client is not None:
            self._sync = SyncCoordinator(
                client,
                self._identity,
                store,
                get_current=lambda: self._progress,
                set_current=self._replace,
                debounce_seconds=debounce_seconds,
            )

    @property
    def progress(self) -> CurriculumProgress:
        return self._progress

    @property
    def xp(self) -> int:
        return self._progress.xp

    @property
    def identity(self) -> IdentityStore:
        return self._identity

    @property
    def sync(self) -> Optional[SyncCoordinator]:
        return self._sync

    def _replace(self, progress: CurriculumProgress) -> None:
        self._progress = progress

    def _commit(self) -> None:
        self._store.save(self._progress)
        if self._sync is not None:
            self._sync.schedule_push()

    def _topic(self, topic_id: str) -> TopicProgress:
        topic = self._progress.topics.get(topic_id)
        if topic is None:
            topic = TopicProgress()
            self._progress.topics[topic_id] = topic
        return topic

    # -- session lifecycle -------------------------------------------------

    def start_session(self, now: Optional[datetime] = None) -> CurriculumProgress:
        """Run the legacy import and stamp the visit."""
        moment = now or datetime.now(timezone.utc)
        self._progress = self._migrator.migrate(self._progress)
        self._progress.streak_days = next_streak(self._progress.streak_days, self._progress.last_visit, moment)
        self._progress.last_visit = later_timestamp(self._progress.last_visit, _iso(moment))
        self._store.save(self._progress)
        return self._progress

    async def resume_identity(self) -> Optional[FetchOutcome]:
        """Fetch-merge for a previously stored identity, if any."""
        username = self._identity.get_username()
        if self._sync is None or username is None:
            return None
        return await self._sync.on_identity(username)

    async def login(self, name: str) -> ClaimResult:
        """Claim or resume ``name`` and fold any remote progress into the local record."""
        if self._client is None or self._sync is None:
            return ClaimResult(status=ClaimStatus.ERROR, message="Cloud sync is not configured.")
        result = await claim_username(name, self._client, self._identity)
        if result.status is ClaimStatus.ERROR or result.username is None:
            return result
        if result.status is ClaimStatus.CREATED:
            self._sync.mark_synced(result.username)
        elif not self._sync.is_loaded(result.username):
            await self._sync.on_identity(result.username)
        if self._sync.is_synced(result.username):
            self._sync.schedule_push()
        else:
            logger.warning("Remote progress for %s could not be merged; staying local-only", result.username)
        return result

    def merge_remote(self, remote: CurriculumProgress, *, username: Optional[str] = None) -> CurriculumProgress:
        """Explicit first-login merge of a remote snapshot the caller already holds."""
        if self._sync is not None:
            merged = self._sync.manual_merge(remote, username=username)
            self._sync.schedule_push()
            return merged
        self._progress = merge(self._progress, remote)
        self._store.save(self._progress)
        return self._progress

    def logout(self) -> None:
        if self._sync is not None:
            self._sync.clear_identity()
        else:
            self._identity.clear()

    async def close(self) -> None:
        if self._sync is not None:
            await self._sync.close()
        if self._client is not None and self._owns_client:
            await self._client.aclose()

    # -- mutations ---------------------------------------------------------

    def record_quiz_attempt(self, topic_id: str, quiz_id: str, is_correct: bool) -> int:
        """Record an answer and return the XP it earned."""
        topic = self._topic(topic_id)
        existing = topic.quiz_attempts.get(quiz_id)
        quiz = self._quiz_meta(topic_id, quiz_id)
        xp_gain = 0
        if existing is None:
            topic.quiz_attempts[quiz_id] = QuizAttempt(
                correct=is_correct,
                attempts=1,
                first_try_correct=is_correct,
            )
            if is_correct:
                xp_gain = quiz.xp_correct_first_try if quiz else XP_QUIZ_FIRST_TRY
        else:
            if is_correct and not existing.correct:
                xp_gain = quiz.xp_correct_retry if quiz else XP_QUIZ_RETRY
            existing.attempts += 1
            existing.correct = existing.correct or is_correct
        self._progress.xp += xp_gain
        self._commit()
        return xp_gain

    def record_essay_save(self, topic_id: str, text: str, char_count: int) -> int:
        topic = self._topic(topic_id)
        xp_gain = 0
        if not topic.essay_submitted:
            meta = self._catalog.topic(topic_id)
            xp_gain = meta.essay_xp if meta else XP_ESSAY_FIRST_SAVE
        topic.essay_submitted = True
        topic.essay_text = text
        topic.essay_char_count = max(char_count, 0)
        self._progress.xp += xp_gain
        self._commit()
        return xp_gain

    def record_essay_draft(self, topic_id: str, text: str, char_count: int) -> None:
        """Keep an in-progress draft; does not submit and earns no XP.

        Once an essay has been submitted its character count never goes down,
        so a shorter draft cannot take back an unlocked reward.
        """
        topic = self._topic(topic_id)
        topic.essay_text = text
        if topic.essay_submitted:
            topic.essay_char_count = max(topic.essay_char_count, char_count)
        else:
            topic.essay_char_count = max(char_count, 0)
        self._commit()

    def mark_reward_unlocked(self, topic_id: str) -> None:
        self._topic(topic_id).reward_unlocked = True
        self._commit()

    def reset_progress(self) -> CurriculumProgress:
        self._progress = self._store.reset()
        if self._sync is not None:
            self._sync.schedule_push()
        return self._progress

    # -- derived values ----------------------------------------------------

    def get_topic_progress(self, topic_id: str) -> TopicProgress:
        topic = self._progress.topics.get(topic_id)
        return topic.model_copy(deep=True) if topic else TopicProgress()

    def get_topic_completion(self, topic_id: str) -> int:
        return analytics.topic_completion(topic_id, self._progress, self._catalog)

    def get_lesson_completion(self, lesson_id: str) -> int:
        return analytics.lesson_completion(lesson_id, self._progress, self._catalog)

    def get_curriculum_completion(self) -> int:
        return analytics.curriculum_completion(self._progress, self._catalog)

    def get_accuracy(self, topic_id: Optional[str] = None) -> int:
        return analytics.accuracy(self._progress, topic_id)

    def is_reward_unlockable(self, topic_id: str) -> bool:
        return analytics.reward_unlockable(topic_id, self._progress, self._catalog)

    def _quiz_meta(self, topic_id: str, quiz_id: str) -> Optional[QuizMeta]:
        meta = self._catalog.topic(topic_id)
        return meta.quiz(quiz_id) if meta else None


def create_tracker(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[KeyValueStorage] = None,
    catalog: Optional[Catalog] = None,
    client: Optional[RemoteProgressClient] = None,
) -> ProgressTracker:
    """Build a tracker from configuration; without a remote URL it runs local-only."""
    resolved = settings or get_settings()
    backing = storage or JsonFileStorage(resolved.storage_path)
    owns_client = False
    if client is None and resolved.remote_url:
        client = RemoteProgressClient(resolved.remote_url, timeout_seconds=resolved.http_timeout_seconds)
        owns_client = True
    return ProgressTracker(
        ProgressStore(backing),
        catalog or load_catalog(resolved.catalog_path),
        client=client,
        debounce_seconds=resolved.debounce_seconds,
        owns_client=owns_client,
    )


__all__ = [
    "ProgressTracker",
    "XP_ESSAY_FIRST_SAVE",
    "XP_QUIZ_FIRST_TRY",
    "XP_QUIZ_RETRY",
    "create_tracker",
    "next_streak",
]
