"""Derived, read-only analytics over a progress snapshot and the content catalog."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from .catalog import Catalog, QuizMeta, TopicMeta
from .models import CurriculumProgress, QuizAttempt, TopicProgress

QUIZ_WEIGHT = 80
ESSAY_WEIGHT = 20


def _round_percent(value: float) -> int:
    # half-up, so 62.5 becomes 63 rather than banker's 62
    return int(math.floor(value + 0.5))


def _mean(values: Iterable[int]) -> int:
    collected = list(values)
    if not collected:
        return 0
    return _round_percent(sum(collected) / len(collected))


def _correct_quiz_count(topic: TopicProgress, meta: TopicMeta) -> int:
    return sum(
        1
        for quiz_id in meta.quiz_ids
        if quiz_id in topic.quiz_attempts and topic.quiz_attempts[quiz_id].correct
    )


def topic_completion(topic_id: str, progress: CurriculumProgress, catalog: Catalog) -> int:
    """Percentage (0-100): 80% correct quizzes, 20% submitted essay."""
    meta = catalog.topic(topic_id)
    topic = progress.topics.get(topic_id)
    if meta is None or topic is None:
        return 0
    total = len(meta.quiz_ids)
    if total == 0:
        return 0
    quiz_portion = _correct_quiz_count(topic, meta) / total * QUIZ_WEIGHT
    essay_portion = ESSAY_WEIGHT if topic.essay_submitted else 0
    return _round_percent(quiz_portion + essay_portion)


def lesson_completion(lesson_id: str, progress: CurriculumProgress, catalog: Catalog) -> int:
    """Mean completion of the lesson's active topics; unpublished topics are left out."""
    return _mean(
        topic_completion(topic_id, progress, catalog)
        for topic_id in catalog.active_topic_ids(lesson_id)
    )


def curriculum_completion(progress: CurriculumProgress, catalog: Catalog) -> int:
    return _mean(
        lesson_completion(lesson_id, progress, catalog)
        for lesson_id in catalog.active_lesson_ids()
    )


def accuracy(progress: CurriculumProgress, topic_id: Optional[str] = None) -> int:
    """Correct share of attempted quizzes, as a percentage.

    Quizzes with zero attempts are left out of both sides of the ratio, so
    "not tried" never counts as "tried and wrong".
    """
    topic_ids = [topic_id] if topic_id is not None else list(progress.topics)
    attempted = 0
    correct = 0
    for current_id in topic_ids:
        topic = progress.topics.get(current_id)
        if topic is None:
            continue
        for attempt in topic.quiz_attempts.values():
            if attempt.attempts > 0:
                attempted += 1
                if attempt.correct:
                    correct += 1
    if attempted == 0:
        return 0
    return _round_percent(correct / attempted * 100)


def reward_unlockable(topic_id: str, progress: CurriculumProgress, catalog: Catalog) -> bool:
    meta = catalog.topic(topic_id)
    topic = progress.topics.get(topic_id)
    if meta is None or topic is None or not meta.has_reward:
        return False
    all_correct = all(
        quiz_id in topic.quiz_attempts and topic.quiz_attempts[quiz_id].correct
        for quiz_id in meta.quiz_ids
    )
    essay_met = topic.essay_submitted and topic.essay_char_count >= meta.essay_min_chars
    return all_correct and essay_met


def xp_for_quiz(attempt: QuizAttempt, quiz: QuizMeta) -> int:
    if not attempt.correct:
        return 0
    return quiz.xp_correct_first_try if attempt.first_try_correct else quiz.xp_correct_retry


__all__ = [
    "ESSAY_WEIGHT",
    "QUIZ_WEIGHT",
    "accuracy",
    "curriculum_completion",
    "lesson_completion",
    "reward_unlockable",
    "topic_completion",
    "xp_for_quiz",
]
