"""Progress record models shared by the local store, the sync engine and the server."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QuizAttempt(_CamelModel):
    """Outcome history for a single quiz within a topic."""

    correct: bool = False
    attempts: int = Field(default=1, ge=0)
    first_try_correct: bool = Field(default=False, alias="firstTryCorrect")


class TopicProgress(_CamelModel):
    """Learner progress for one topic, created lazily on first interaction."""

    quiz_attempts: Dict[str, QuizAttempt] = Field(default_factory=dict, alias="quizAttempts")
    essay_submitted: bool = Field(default=False, alias="essaySubmitted")
    essay_char_count: int = Field(default=0, ge=0, alias="essayCharCount")
    essay_text: str = Field(default="", alias="essayText")
    reward_unlocked: bool = Field(default=False, alias="rewardUnlocked")


class CurriculumProgress(_CamelModel):
    """Root progress record persisted locally and mirrored remotely."""

    topics: Dict[str, TopicProgress] = Field(default_factory=dict)
    xp: int = Field(default=0, ge=0)
    streak_days: int = Field(default=0, ge=0, alias="streakDays")
    last_visit: str = Field(default_factory=_now_iso, alias="lastVisit")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def create_empty_progress() -> CurriculumProgress:
    return CurriculumProgress()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def has_progress_shape(data: Any, *, strict: bool = True) -> bool:
    """Return True when the payload carries the required root fields with the right types.

    Remote snapshots are checked with ``strict=False``: only ``topics`` and ``xp``
    are required there and the remaining root fields fall back to defaults.
    """
    if not isinstance(data, dict):
        return False
    if not (isinstance(data.get("topics"), dict) and _is_number(data.get("xp"))):
        return False
    if not strict:
        return True
    return _is_number(data.get("streakDays")) and isinstance(data.get("lastVisit"), str)


def parse_progress(data: Any, *, strict: bool = True) -> CurriculumProgress | None:
    """Validate a decoded payload, returning None when it is not a usable record."""
    if not has_progress_shape(data, strict=strict):
        return None
    try:
        return CurriculumProgress.model_validate(data)
    except ValidationError:
        return None


__all__ = [
    "CurriculumProgress",
    "QuizAttempt",
    "TopicProgress",
    "create_empty_progress",
    "has_progress_shape",
    "parse_progress",
]
