"""SM-2 spaced repetition with learning steps and a binary quality scale."""
import math
from datetime import datetime, timedelta, timezone

import structlog

from flash_tutor.config import (
    DEFAULT_EASE_FACTOR, EASE_STEP, GRADUATING_INTERVAL_DAYS, MAX_EASE_FACTOR, MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR, RETRY_MINUTES,
)
from flash_tutor.errors import InvalidQuality
from flash_tutor.models import CardProgress, LearningState, NextState, Quality

logger = structlog.get_logger()

FALLBACK_DELAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _validate_quality(quality) -> Quality:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQuality(quality)
    try:
        return Quality(quality)
    except ValueError:
        raise InvalidQuality(quality) from None


def _prior_state(prior: CardProgress | None) -> LearningState:
    if prior is None:
        return LearningState.NEW
    try:
        return LearningState(prior.learning_state)
    except ValueError:
        logger.warning("invalid_prior_state", field="learning_state", value=repr(prior.learning_state))
        return LearningState.NEW


def _prior_ease(prior: CardProgress | None) -> float:
    """Stored ease, repaired. A sub-floor ease is lifted to the floor even when
    the card is being demoted, so the floor wins over "failures keep ease"."""
    if prior is None:
        return DEFAULT_EASE_FACTOR
    ease = prior.ease_factor
    if not _is_finite_number(ease) or ease > MAX_EASE_FACTOR:
        logger.warning("invalid_prior_state", field="ease_factor", value=repr(ease))
        return DEFAULT_EASE_FACTOR
    if ease < MIN_EASE_FACTOR:
        logger.warning("invalid_prior_state", field="ease_factor", value=ease)
        return MIN_EASE_FACTOR
    return ease


def _review_interval(prior: CardProgress | None) -> float:
    """Interval (days) to multiply; corrupt or out-of-range values restart at 1."""
    interval = prior.interval if prior is not None else None
    if not _is_finite_number(interval) or interval > MAX_INTERVAL_DAYS:
        logger.warning("invalid_prior_state", field="interval", value=repr(interval))
        return 1
    return interval


def _due_date(now: datetime, delay: timedelta) -> str:
    try:
        due = now + delay
        stamp = due.isoformat()
        datetime.fromisoformat(stamp)
    except (OverflowError, ValueError) as e:
        logger.warning("due_date_fallback", delay=str(delay), error=str(e))
        try:
            stamp = (now + FALLBACK_DELAY).isoformat()
        except OverflowError:
            stamp = datetime.max.replace(tzinfo=timezone.utc).isoformat()
    return stamp


def compute_next_review(
    quality: int,
    prior: CardProgress | None = None,
    now: datetime | None = None,
) -> NextState:
    """Calculate the next learning state for a rated card.

    Args:
        quality: 1 (incorrect) or 2 (correct)
        prior: The card's current progress, or None for a first review
        now: Reference instant; defaults to the current UTC time

    Returns:
        NextState with learning_state, interval (minutes while learning,
        days in review), ease_factor and next_review_date (ISO-8601).

    Raises:
        InvalidQuality: quality is not 1 or 2.
    """
    quality = _validate_quality(quality)
    if now is None:
        now = utcnow()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    state = _prior_state(prior)
    ease = _prior_ease(prior)

    if quality == Quality.INCORRECT:
        # Failures never touch ease, whatever state the card was in
        return NextState(
            learning_state=LearningState.LEARNING,
            interval=RETRY_MINUTES,
            ease_factor=ease,
            next_review_date=_due_date(now, timedelta(minutes=RETRY_MINUTES)),
        )

    if state in (LearningState.NEW, LearningState.LEARNING):
        return NextState(
            learning_state=LearningState.REVIEW,
            interval=GRADUATING_INTERVAL_DAYS,
            ease_factor=ease,
            next_review_date=_due_date(now, timedelta(days=GRADUATING_INTERVAL_DAYS)),
        )

    new_ef = round(max(MIN_EASE_FACTOR, ease + EASE_STEP), 2)
    if not _is_finite_number(new_ef):
        new_ef = DEFAULT_EASE_FACTOR

    raw_interval = _review_interval(prior) * new_ef
    if not _is_finite_number(raw_interval):
        logger.warning("invalid_next_interval", value=repr(raw_interval))
        raw_interval = 1
    new_interval = min(max(_round_half_up(raw_interval), 1), MAX_INTERVAL_DAYS)

    return NextState(
        learning_state=LearningState.REVIEW,
        interval=new_interval,
        ease_factor=new_ef,
        next_review_date=_due_date(now, timedelta(days=new_interval)),
    )
