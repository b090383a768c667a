"""Due-card selection for study sessions."""
import math
import random
from datetime import datetime, timezone

import structlog

from flash_tutor.config import DueFallback
from flash_tutor.models import (
    Card, CardProgress, EpochMillis, ExternalTimestamp, IsoString, Timestamp,
)
from flash_tutor.sm2 import utcnow

logger = structlog.get_logger()


def to_timestamp(value) -> Timestamp:
    """Tag a raw stored date value with the variant it represents.

    Raises ValueError for values of no known shape.
    """
    if isinstance(value, (IsoString, EpochMillis, ExternalTimestamp)):
        return value
    if isinstance(value, datetime):
        return IsoString(value.isoformat())
    if isinstance(value, str):
        return IsoString(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EpochMillis(value)
    if isinstance(value, dict) and "seconds" in value:
        return ExternalTimestamp(int(value["seconds"]), int(value.get("nanoseconds", 0)))
    if hasattr(value, "seconds") and hasattr(value, "nanoseconds"):
        return ExternalTimestamp(int(value.seconds), int(value.nanoseconds))
    raise ValueError(f"unsupported timestamp value: {value!r}")


def to_instant(ts: Timestamp) -> datetime:
    """Normalize a timestamp variant to an aware UTC datetime."""
    try:
        if isinstance(ts, IsoString):
            text = ts.value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            instant = datetime.fromisoformat(text)
        elif isinstance(ts, EpochMillis):
            if not math.isfinite(ts.value):
                raise ValueError(f"non-finite epoch value: {ts.value!r}")
            instant = datetime.fromtimestamp(ts.value / 1000, tz=timezone.utc)
        else:
            instant = ts.to_datetime()
    except (OverflowError, OSError, TypeError) as e:
        raise ValueError(str(e)) from e
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def is_due(next_review, now: datetime | None = None) -> bool:
    """True when the review date has passed, is missing, or cannot be read."""
    if next_review is None or next_review == "":
        return True
    if now is None:
        now = utcnow()
    try:
        instant = to_instant(to_timestamp(next_review))
    except ValueError:
        logger.warning("unparseable_due_date", value=repr(next_review))
        return True
    return instant <= now


def select_due(
    cards: list[Card],
    progress: dict[str, CardProgress] | None,
    now: datetime | None = None,
    fallback: DueFallback = DueFallback.ALL_CARDS,
    rng: random.Random | None = None,
) -> list[Card]:
    """Return the cards due for study, shuffled.

    Cards with no progress record are always due. When nothing is due in a
    non-empty deck, `fallback` decides whether every card is offered instead.
    """
    progress = progress or {}
    if now is None:
        now = utcnow()
    due = [
        card for card in cards
        if card.id not in progress or is_due(progress[card.id].next_review_date, now)
    ]
    if not due and cards and fallback == DueFallback.ALL_CARDS:
        logger.info("nothing_due_using_all_cards", cards=len(cards))
        due = list(cards)
    (rng or random).shuffle(due)
    return due


def time_until_review(next_review, now: datetime | None = None) -> str:
    """Human-readable wait, e.g. "in 5 minutes" or "in 2 days"."""
    if next_review is None:
        return "now"
    if now is None:
        now = utcnow()
    try:
        instant = to_instant(to_timestamp(next_review))
    except ValueError:
        return "now"
    seconds = (instant - now).total_seconds()
    if seconds <= 0:
        return "now"
    minutes = max(1, int(seconds // 60))
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    return f"in {days} day{'s' if days != 1 else ''}"
