# tests/test_sm2.py
from datetime import datetime, timedelta, timezone

import pytest

from flash_tutor.errors import InvalidQuality
from flash_tutor.models import CardProgress, LearningState
from flash_tutor.sm2 import compute_next_review

from conftest import NOW


def due(result):
    return datetime.fromisoformat(result.next_review_date)


def test_first_review_incorrect():
    """New card rated incorrect goes to learning for one minute."""
    result = compute_next_review(1, None, now=NOW)
    assert result.learning_state == LearningState.LEARNING
    assert result.interval == 1
    assert result.ease_factor == 2.5
    assert due(result) == NOW + timedelta(minutes=1)


def test_learning_card_graduates():
    prior = CardProgress(learning_state=LearningState.LEARNING, interval=1, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.learning_state == LearningState.REVIEW
    assert result.interval == 1
    assert result.ease_factor == 2.5
    assert due(result) == NOW + timedelta(days=1)


@pytest.mark.parametrize("state", [LearningState.NEW, LearningState.LEARNING])
def test_graduation_from_new_or_learning(state):
    prior = CardProgress(learning_state=state, interval=7, ease_factor=1.9)
    result = compute_next_review(2, prior, now=NOW)
    assert result.learning_state == LearningState.REVIEW
    assert result.interval == 1


def test_review_correct_grows_interval():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=10, ease_factor=2.6)
    result = compute_next_review(2, prior, now=NOW)
    assert result.ease_factor == 2.7
    assert result.interval == 27
    assert due(result) == NOW + timedelta(days=27)


def test_review_incorrect_demotes_without_ease_penalty():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=30, ease_factor=2.8)
    result = compute_next_review(1, prior, now=NOW)
    assert result.learning_state == LearningState.LEARNING
    assert result.interval == 1
    assert result.ease_factor == 2.8
    assert due(result) == NOW + timedelta(minutes=1)


def test_corrupt_interval_over_cap_resets_before_multiplying():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=400, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.interval == 3  # round(1 * 2.6), not 400 * 2.6


def test_half_rounds_up():
    """round(1 * 2.5) is 3, not Python's banker's 2."""
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=1, ease_factor=2.4)
    result = compute_next_review(2, prior, now=NOW)
    assert result.ease_factor == 2.5
    assert result.interval == 3


@pytest.mark.parametrize("bad_interval", [None, float("nan"), float("inf"), "ten"])
def test_invalid_interval_sanitized(bad_interval):
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=bad_interval, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.interval == 3
    assert due(result) == NOW + timedelta(days=3)


@pytest.mark.parametrize("bad_ease", [None, float("nan"), float("-inf"), 1e308])
def test_invalid_ease_sanitized(bad_ease):
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=10, ease_factor=bad_ease)
    result = compute_next_review(2, prior, now=NOW)
    assert result.ease_factor == 2.6
    assert result.interval == 26


def test_ease_below_floor_is_raised_to_floor():
    """The floor is restored even on a demotion, which otherwise keeps ease."""
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=10, ease_factor=0.5)
    result = compute_next_review(1, prior, now=NOW)
    assert result.ease_factor == 1.3


def test_interval_capped_at_365():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=300, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.interval == 365
    assert due(result) == NOW + timedelta(days=365)


def test_zero_interval_review_card_gets_at_least_one_day():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=0, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.interval == 1


def test_repeated_successes_stay_within_bounds():
    """Ease never falls below the floor and intervals stay in [1, 365]."""
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=1, ease_factor=1.3)
    for _ in range(40):
        result = compute_next_review(2, prior, now=NOW)
        assert result.ease_factor >= 1.3
        assert 1 <= result.interval <= 365
        assert result.ease_factor >= prior.ease_factor
        prior = CardProgress(
            learning_state=result.learning_state, interval=result.interval, ease_factor=result.ease_factor,
        )


def test_unknown_learning_state_treated_as_new():
    prior = CardProgress(learning_state="mastered", interval=10, ease_factor=2.5)
    result = compute_next_review(2, prior, now=NOW)
    assert result.learning_state == LearningState.REVIEW
    assert result.interval == 1


@pytest.mark.parametrize("quality", [0, 3, 5, -1, 1.5, "2", None, True])
def test_invalid_quality_rejected(quality):
    with pytest.raises(InvalidQuality):
        compute_next_review(quality, None, now=NOW)


def test_due_date_overflow_falls_back_to_one_day():
    edge = datetime(9999, 12, 30, tzinfo=timezone.utc)
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=10, ease_factor=2.5)
    result = compute_next_review(2, prior, now=edge)
    assert result.interval == 26
    assert due(result) == edge + timedelta(days=1)


def test_due_date_fallback_clamped_at_max_date():
    edge = datetime.max.replace(tzinfo=timezone.utc) - timedelta(hours=1)
    result = compute_next_review(2, None, now=edge)
    assert result.interval == 1
    assert due(result) == datetime.max.replace(tzinfo=timezone.utc)


def test_huge_ease_never_overflows_interval():
    prior = CardProgress(learning_state=LearningState.REVIEW, interval=365, ease_factor=1e300)
    result = compute_next_review(2, prior, now=NOW)
    assert result.ease_factor == 2.6
    assert 1 <= result.interval <= 365


def test_naive_now_treated_as_utc():
    result = compute_next_review(2, None, now=datetime(2024, 3, 1, 12, 0))
    assert due(result) == NOW + timedelta(days=1)


def test_defaults_to_current_time():
    before = datetime.now(timezone.utc)
    result = compute_next_review(1)
    assert before + timedelta(minutes=1) <= due(result) <= datetime.now(timezone.utc) + timedelta(minutes=1)
