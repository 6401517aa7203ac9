"""Conflict-free merge of two progress records.

Every field merges with a rule that is associative, commutative and idempotent,
so two diverged copies converge regardless of the order they are combined in
and no earned progress is ever lost. The one asymmetry is the essay text tie
break: equal-length drafts keep the local side.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from .models import CurriculumProgress, QuizAttempt, TopicProgress


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


_UNPARSED = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_rank(value: str) -> Tuple[bool, datetime, str]:
    # unparsable values rank below every real instant; the raw string breaks ties
    parsed = _parse_timestamp(value)
    if parsed is None:
        return False, _UNPARSED, value
    return True, parsed, value


def later_timestamp(a: str, b: str) -> str:
    """Pick the later of two ISO-8601 timestamps; naive values are read as UTC."""
    return a if _timestamp_rank(a) >= _timestamp_rank(b) else b


def merge_quiz_attempt(a: QuizAttempt, b: QuizAttempt) -> QuizAttempt:
    return QuizAttempt(
        correct=a.correct or b.correct,
        attempts=max(a.attempts, b.attempts),
        first_try_correct=a.first_try_correct or b.first_try_correct,
    )


def merge_quiz_attempts(
    a: Dict[str, QuizAttempt],
    b: Dict[str, QuizAttempt],
) -> Dict[str, QuizAttempt]:
    merged: Dict[str, QuizAttempt] = {}
    for quiz_id in list(a) + [key for key in b if key not in a]:
        left = a.get(quiz_id)
        right = b.get(quiz_id)
        if left is not None and right is not None:
            merged[quiz_id] = merge_quiz_attempt(left, right)
        else:
            merged[quiz_id] = (left or right).model_copy(deep=True)  # type: ignore[union-attr]
    return merged


def merge_topic(local: TopicProgress, remote: TopicProgress) -> TopicProgress:
    local_text = local.essay_text or ""
    remote_text = remote.essay_text or ""
    return TopicProgress(
        quiz_attempts=merge_quiz_attempts(local.quiz_attempts, remote.quiz_attempts),
        essay_submitted=local.essay_submitted or remote.essay_submitted,
        essay_char_count=max(local.essay_char_count, remote.essay_char_count),
        essay_text=local_text if len(local_text) >= len(remote_text) else remote_text,
        reward_unlocked=local.reward_unlocked or remote.reward_unlocked,
    )


def merge(local: CurriculumProgress, remote: CurriculumProgress) -> CurriculumProgress:
    """Join two progress records; ``local`` wins essay-text ties."""
    topics: Dict[str, TopicProgress] = {}
    for topic_id in list(local.topics) + [key for key in remote.topics if key not in local.topics]:
        left = local.topics.get(topic_id)
        right = remote.topics.get(topic_id)
        if left is not None and right is not None:
            topics[topic_id] = merge_topic(left, right)
        else:
            topics[topic_id] = (left or right).model_copy(deep=True)  # type: ignore[union-attr]

    return CurriculumProgress(
        topics=topics,
        xp=max(local.xp, remote.xp),
        streak_days=max(local.streak_days, remote.streak_days),
        last_visit=later_timestamp(local.last_visit, remote.last_visit),
    )


__all__ = [
    "later_timestamp",
    "merge",
    "merge_quiz_attempt",
    "merge_quiz_attempts",
    "merge_topic",
]
