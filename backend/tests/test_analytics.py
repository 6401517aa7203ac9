from __future__ import annotations

import pytest

from progress_sync.analytics import (
    accuracy,
    curriculum_completion,
    lesson_completion,
    reward_unlockable,
    topic_completion,
    xp_for_quiz,
)
from progress_sync.catalog import Catalog, LessonMeta, QuizMeta, TopicMeta, load_catalog
from progress_sync.models import CurriculumProgress, QuizAttempt, TopicProgress


def _catalog() -> Catalog:
    return Catalog(
        lessons={
            "history": LessonMeta(lesson_id="history", topic_ids=["nile", "tiber", "indus", "missing"]),
            "later": LessonMeta(lesson_id="later", status="coming-soon", topic_ids=["tiber"]),
        },
        topics={
            "nile": TopicMeta(
                topic_id="nile",
                quizzes=[QuizMeta(quiz_id=f"n{index}") for index in range(1, 5)],
                essay_min_chars=100,
            ),
            "tiber": TopicMeta(topic_id="tiber", quizzes=[QuizMeta(quiz_id="t1"), QuizMeta(quiz_id="t2")]),
            "indus": TopicMeta(topic_id="indus", status="coming-soon", quizzes=[QuizMeta(quiz_id="i1")]),
            "no-quizzes": TopicMeta(topic_id="no-quizzes"),
        },
    )


def _attempt(correct: bool, attempts: int = 1) -> QuizAttempt:
    return QuizAttempt(correct=correct, attempts=attempts, first_try_correct=correct and attempts == 1)


def _progress_with_nile(correct: int, essay: bool, char_count: int = 150) -> CurriculumProgress:
    quizzes = {f"n{index}": _attempt(index <= correct) for index in range(1, 5)}
    return CurriculumProgress(
        topics={
            "nile": TopicProgress(
                quiz_attempts=quizzes,
                essay_submitted=essay,
                essay_char_count=char_count if essay else 0,
            )
        }
    )


def test_topic_completion_weights_quizzes_and_essay() -> None:
    progress = _progress_with_nile(correct=3, essay=True)
    assert topic_completion("nile", progress, _catalog()) == 80


def test_topic_completion_rounds_half_up() -> None:
    catalog = Catalog(
        topics={"eight": TopicMeta(topic_id="eight", quizzes=[QuizMeta(quiz_id=f"q{i}") for i in range(8)])}
    )
    quizzes = {f"q{i}": _attempt(True) for i in range(5)}
    progress = CurriculumProgress(topics={"eight": TopicProgress(quiz_attempts=quizzes)})

    assert topic_completion("eight", progress, catalog) == 50

    catalog.topics["eight"] = TopicMeta(topic_id="eight", quizzes=[QuizMeta(quiz_id=f"q{i}") for i in range(32)])
    progress.topics["eight"].quiz_attempts = {f"q{i}": _attempt(True) for i in range(25)}
    # 25/32 * 80 == 62.5
    assert topic_completion("eight", progress, catalog) == 63


def test_topic_completion_is_zero_for_unknown_or_untouched_topics() -> None:
    progress = _progress_with_nile(correct=4, essay=True)
    catalog = _catalog()

    assert topic_completion("unknown", progress, catalog) == 0
    assert topic_completion("tiber", progress, catalog) == 0
    progress.topics["no-quizzes"] = TopicProgress(essay_submitted=True)
    assert topic_completion("no-quizzes", progress, catalog) == 0


def test_topic_completion_ignores_attempts_outside_catalog() -> None:
    progress = _progress_with_nile(correct=0, essay=False)
    progress.topics["nile"].quiz_attempts["retired-quiz"] = _attempt(True)

    assert topic_completion("nile", progress, _catalog()) == 0


def test_lesson_completion_averages_active_topics_only() -> None:
    progress = _progress_with_nile(correct=4, essay=True)
    progress.topics["indus"] = TopicProgress(quiz_attempts={"i1": _attempt(True)}, essay_submitted=True)

    # nile 100, tiber 0; indus is coming soon and "missing" has no metadata
    assert lesson_completion("history", progress, _catalog()) == 50
    assert lesson_completion("nowhere", progress, _catalog()) == 0


def test_curriculum_completion_averages_active_lessons() -> None:
    progress = _progress_with_nile(correct=4, essay=True)
    assert curriculum_completion(progress, _catalog()) == 50
    assert curriculum_completion(CurriculumProgress(), Catalog()) == 0


def test_accuracy_excludes_unattempted_quizzes() -> None:
    progress = CurriculumProgress(
        topics={
            "nile": TopicProgress(
                quiz_attempts={
                    "n1": _attempt(True),
                    "n2": _attempt(False, attempts=2),
                    "n3": QuizAttempt(correct=False, attempts=0),
                }
            ),
            "tiber": TopicProgress(quiz_attempts={"t1": _attempt(True, attempts=3)}),
        }
    )

    assert accuracy(progress) == 67
    assert accuracy(progress, "nile") == 50
    assert accuracy(progress, "tiber") == 100
    assert accuracy(progress, "unknown") == 0
    assert accuracy(CurriculumProgress()) == 0


@pytest.mark.parametrize(
    ("correct", "essay", "char_count", "expected"),
    [
        (4, True, 150, True),
        (4, True, 99, False),
        (3, True, 150, False),
        (4, False, 0, False),
    ],
)
def test_reward_unlockable_requires_every_quiz_and_long_enough_essay(
    correct: int, essay: bool, char_count: int, expected: bool
) -> None:
    progress = _progress_with_nile(correct=correct, essay=essay, char_count=char_count)
    assert reward_unlockable("nile", progress, _catalog()) is expected


def test_reward_unlockable_respects_topics_without_rewards() -> None:
    catalog = _catalog()
    catalog.topics["nile"] = catalog.topics["nile"].model_copy(update={"has_reward": False})
    progress = _progress_with_nile(correct=4, essay=True)

    assert reward_unlockable("nile", progress, catalog) is False
    assert reward_unlockable("unknown", progress, catalog) is False


def test_xp_for_quiz_uses_catalog_values() -> None:
    quiz = QuizMeta(quiz_id="n1", xp_correct_first_try=120, xp_correct_retry=40)

    assert xp_for_quiz(QuizAttempt(correct=True, attempts=1, first_try_correct=True), quiz) == 120
    assert xp_for_quiz(QuizAttempt(correct=True, attempts=3), quiz) == 40
    assert xp_for_quiz(QuizAttempt(correct=False, attempts=3), quiz) == 0


def test_bundled_catalog_loads_published_topics() -> None:
    catalog = load_catalog()

    assert catalog.active_lesson_ids() == ["ancient-civilizations"]
    assert catalog.active_topic_ids("ancient-civilizations") == ["ancient-egypt", "ancient-rome"]
    assert len(catalog.topics["ancient-egypt"].quizzes) == 10
    assert len(catalog.topics["ancient-rome"].quizzes) == 11


def test_load_catalog_rejects_unreadable_files(tmp_path) -> None:
    broken = tmp_path / "catalog.json"
    broken.write_text('{"topics": {"x": {"status": "draft"}}}', encoding="utf-8")

    with pytest.raises(ValueError):
        load_catalog(broken)
    with pytest.raises(ValueError):
        load_catalog(tmp_path / "absent.json")
