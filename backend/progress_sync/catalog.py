"""Read-only content catalog consumed by the completion evaluator."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_CATALOG_PATH = DATA_DIR / "catalog.json"

ContentStatus = Literal["active", "coming-soon"]


class QuizMeta(BaseModel):
    quiz_id: str
    xp_correct_first_try: int = Field(default=100, ge=0)
    xp_correct_retry: int = Field(default=50, ge=0)


class TopicMeta(BaseModel):
    topic_id: str
    title: str = ""
    status: ContentStatus = "active"
    quizzes: List[QuizMeta] = Field(default_factory=list)
    essay_min_chars: int = Field(default=0, ge=0)
    essay_xp: int = Field(default=75, ge=0)
    has_reward: bool = True

    @property
    def quiz_ids(self) -> List[str]:
        return [quiz.quiz_id for quiz in self.quizzes]

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def quiz(self, quiz_id: str) -> Optional[QuizMeta]:
        return next((quiz for quiz in self.quizzes if quiz.quiz_id == quiz_id), None)


class LessonMeta(BaseModel):
    lesson_id: str
    title: str = ""
    status: ContentStatus = "active"
    topic_ids: List[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Catalog(BaseModel):
    """Lessons and topic metadata keyed by identifier."""

    lessons: Dict[str, LessonMeta] = Field(default_factory=dict)
    topics: Dict[str, TopicMeta] = Field(default_factory=dict)

    def topic(self, topic_id: str) -> Optional[TopicMeta]:
        return self.topics.get(topic_id)

    def active_topic_ids(self, lesson_id: str) -> List[str]:
        lesson = self.lessons.get(lesson_id)
        if lesson is None:
            return []
        return [
            topic_id
            for topic_id in lesson.topic_ids
            if topic_id in self.topics and self.topics[topic_id].is_active
        ]

    def active_lesson_ids(self) -> List[str]:
        return [lesson_id for lesson_id, lesson in self.lessons.items() if lesson.is_active]


def load_catalog(path: Optional[Path] = None) -> Catalog:
    """Load a catalog JSON document. Raises ``ValueError`` when it cannot be used."""
    target = path or DEFAULT_CATALOG_PATH
    try:
        with target.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except OSError as exc:
        raise ValueError(f"Catalog file {target} could not be read: {exc}") from exc
    try:
        catalog = Catalog.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Catalog file {target} is invalid: {exc}") from exc
    logger.debug("Loaded catalog with %d lessons and %d topics", len(catalog.lessons), len(catalog.topics))
    return catalog


__all__ = [
    "Catalog",
    "ContentStatus",
    "DEFAULT_CATALOG_PATH",
    "LessonMeta",
    "QuizMeta",
    "TopicMeta",
    "load_catalog",
]
