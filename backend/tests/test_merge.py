"""Tests for the conflict-free progress merge."""

from __future__ import annotations

from progress_sync.merge import later_timestamp, merge, merge_quiz_attempt
from progress_sync.models import CurriculumProgress, QuizAttempt, TopicProgress


def _progress(**overrides) -> CurriculumProgress:
    base = {"topics": {}, "xp": 0, "streakDays": 0, "lastVisit": "2024-03-01T10:00:00.000Z"}
    base.update(overrides)
    return CurriculumProgress.model_validate(base)


def _sample_pair() -> tuple[CurriculumProgress, CurriculumProgress]:
    local = _progress(
        xp=220,
        streakDays=2,
        lastVisit="2024-03-02T08:00:00.000Z",
        topics={
            "ancient-egypt": {
                "quizAttempts": {
                    "egypt-q1a": {"correct": True, "attempts": 2, "firstTryCorrect": False},
                    "egypt-q1b": {"correct": False, "attempts": 1, "firstTryCorrect": False},
                },
                "essaySubmitted": False,
                "essayCharCount": 40,
                "essayText": "The Nile flooded every year and helped.",
                "rewardUnlocked": False,
            },
            "ancient-rome": {"quizAttempts": {}, "essaySubmitted": True, "essayCharCount": 5, "essayText": "Roads"},
        },
    )
    remote = _progress(
        xp=300,
        streakDays=5,
        lastVisit="2024-03-01T12:00:00.000Z",
        topics={
            "ancient-egypt": {
                "quizAttempts": {
                    "egypt-q1a": {"correct": True, "attempts": 1, "firstTryCorrect": True},
                    "egypt-q2a": {"correct": True, "attempts": 3, "firstTryCorrect": False},
                },
                "essaySubmitted": True,
                "essayCharCount": 12,
                "essayText": "Pyramids!!",
                "rewardUnlocked": True,
            },
        },
    )
    return local, remote


def _dump(progress: CurriculumProgress) -> dict:
    return progress.to_payload()


def test_quiz_attempt_merge_keeps_best_of_each_field() -> None:
    local = QuizAttempt(correct=True, attempts=2, first_try_correct=False)
    remote = QuizAttempt(correct=True, attempts=1, first_try_correct=True)

    merged = merge_quiz_attempt(local, remote)

    assert merged == QuizAttempt(correct=True, attempts=2, first_try_correct=True)


def test_xp_takes_maximum_and_remerge_is_stable() -> None:
    local = _progress(xp=120)
    remote = _progress(xp=300)

    merged = merge(local, remote)

    assert merged.xp == 300
    assert merge(merged, local).xp == 300
    assert merge(merged, remote).xp == 300


def test_local_only_topic_survives_merge_untouched() -> None:
    local = _progress(
        topics={"ancient-rome": {"quizAttempts": {"rome-q1a": {"correct": True, "attempts": 1, "firstTryCorrect": True}}}}
    )
    remote = _progress(topics={})

    merged = merge(local, remote)

    assert merged.topics["ancient-rome"] == local.topics["ancient-rome"]
    assert merged.topics["ancient-rome"] is not local.topics["ancient-rome"]


def test_merge_is_idempotent() -> None:
    local, _ = _sample_pair()
    assert _dump(merge(local, local)) == _dump(local)


def test_merge_is_commutative_for_everything_but_equal_length_essays() -> None:
    local, remote = _sample_pair()
    assert _dump(merge(local, remote)) == _dump(merge(remote, local))


def test_merge_is_associative() -> None:
    local, remote = _sample_pair()
    third = _progress(
        xp=10,
        streakDays=9,
        lastVisit="2024-03-05T00:00:00.000Z",
        topics={"ancient-egypt": {"quizAttempts": {"egypt-q1b": {"correct": True, "attempts": 4}}}},
    )

    left = merge(merge(local, remote), third)
    right = merge(local, merge(remote, third))

    assert _dump(left) == _dump(right)


def test_sticky_fields_never_revert() -> None:
    local, remote = _sample_pair()

    merged = merge(local, remote)
    egypt = merged.topics["ancient-egypt"]

    assert egypt.essay_submitted is True
    assert egypt.reward_unlocked is True
    assert egypt.quiz_attempts["egypt-q1a"].first_try_correct is True
    assert egypt.quiz_attempts["egypt-q2a"].correct is True
    assert egypt.quiz_attempts["egypt-q1b"].correct is False


def test_root_fields_take_maxima() -> None:
    local, remote = _sample_pair()

    merged = merge(local, remote)

    assert merged.xp == 300
    assert merged.streak_days == 5
    assert merged.last_visit == "2024-03-02T08:00:00.000Z"


def test_longer_essay_text_wins_and_char_count_is_max() -> None:
    local, remote = _sample_pair()

    egypt = merge(local, remote).topics["ancient-egypt"]

    assert egypt.essay_text == "The Nile flooded every year and helped."
    assert egypt.essay_char_count == 40


def test_equal_length_essays_keep_local_text() -> None:
    local = _progress(topics={"ancient-rome": {"essayText": "alpha"}})
    remote = _progress(topics={"ancient-rome": {"essayText": "omega"}})

    assert merge(local, remote).topics["ancient-rome"].essay_text == "alpha"
    assert merge(remote, local).topics["ancient-rome"].essay_text == "omega"


def test_merge_does_not_mutate_inputs() -> None:
    local, remote = _sample_pair()
    before_local = _dump(local)
    before_remote = _dump(remote)

    merged = merge(local, remote)
    merged.topics["ancient-rome"].essay_text = "changed"

    assert _dump(local) == before_local
    assert _dump(remote) == before_remote


def test_later_timestamp_compares_instants_not_strings() -> None:
    assert later_timestamp("2024-03-01T10:00:00Z", "2024-03-01T09:00:00-02:00") == "2024-03-01T09:00:00-02:00"
    assert later_timestamp("2024-03-01T10:00:00.000Z", "2024-02-28T23:59:59.000Z") == "2024-03-01T10:00:00.000Z"


def test_later_timestamp_ranks_unparsable_values_lowest() -> None:
    assert later_timestamp("not-a-date", "2024-01-01T00:00:00Z") == "2024-01-01T00:00:00Z"
    assert later_timestamp("2024-01-01T00:00:00Z", "not-a-date") == "2024-01-01T00:00:00Z"
    assert later_timestamp("garbage", "not-a-date") == "not-a-date"


def test_later_timestamp_reads_naive_values_as_utc() -> None:
    assert later_timestamp("2024-03-01T09:30:00", "2024-03-01T10:00:00Z") == "2024-03-01T10:00:00Z"
    assert later_timestamp("2024-03-01T10:30:00", "2024-03-01T10:00:00Z") == "2024-03-01T10:30:00"


def test_last_visit_merge_is_associative_across_offsets() -> None:
    values = ["2024-03-01T10:00:00Z", "2024-03-01T09:00:00-02:00", "2024-03-01T09:30:00", "not-a-date"]
    records = [_progress(lastVisit=value) for value in values]

    for a in records:
        for b in records:
            for c in records:
                left = merge(merge(a, b), c).last_visit
                right = merge(a, merge(b, c)).last_visit
                assert left == right
    assert merge(merge(records[0], records[1]), records[2]).last_visit == "2024-03-01T09:00:00-02:00"


def test_topic_merge_without_quizzes_on_either_side() -> None:
    local = _progress(topics={"ancient-egypt": TopicProgress().model_dump(by_alias=True)})
    remote = _progress(topics={"ancient-egypt": {"essaySubmitted": True}})

    merged = merge(local, remote).topics["ancient-egypt"]

    assert merged.quiz_attempts == {}
    assert merged.essay_submitted is True
