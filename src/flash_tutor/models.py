"""Data classes for the study domain model."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional, Union

from flash_tutor.errors import InvalidPriorState


class LearningState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"


class Quality(IntEnum):
    INCORRECT = 1
    CORRECT = 2


QUALITY_LABELS = {
    Quality.INCORRECT: "Incorrect",
    Quality.CORRECT: "Correct",
}


@dataclass(frozen=True)
class Card:
    id: str
    front: str
    back: str
    hint: Optional[str] = None


@dataclass
class Deck:
    id: str
    title: str
    subject: str = ""
    cards: list[Card] = field(default_factory=list)


@dataclass
class CardProgress:
    learning_state: LearningState = LearningState.NEW
    interval: float = 0
    ease_factor: float = 2.5
    next_review_date: Optional[str] = None
    review_count: int = 0
    last_reviewed: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "learningState": self.learning_state.value,
            "interval": self.interval,
            "easeFactor": self.ease_factor,
            "nextReviewDate": self.next_review_date,
            "reviewCount": self.review_count,
            "lastReviewed": self.last_reviewed,
        }

    @classmethod
    def from_dict(cls, data) -> "CardProgress":
        """Build a record from its stored shape.

        Field values are taken as-is (the scheduler heals bad numbers); only a
        record that is not a mapping or names an unknown state is rejected.
        """
        if not isinstance(data, dict):
            raise InvalidPriorState(f"progress record must be a mapping, got {type(data).__name__}")
        raw_state = data.get("learningState", LearningState.NEW.value)
        try:
            state = LearningState(raw_state)
        except ValueError:
            raise InvalidPriorState(f"unknown learning state: {raw_state!r}") from None
        return cls(
            learning_state=state,
            interval=data.get("interval", 0),
            ease_factor=data.get("easeFactor", 2.5),
            next_review_date=data.get("nextReviewDate"),
            review_count=data.get("reviewCount") or 0,
            last_reviewed=data.get("lastReviewed"),
        )


@dataclass
class NextState:
    learning_state: LearningState
    interval: int
    ease_factor: float
    next_review_date: str


@dataclass
class RoundStats:
    correct: int = 0
    incorrect: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.incorrect


@dataclass
class SessionState:
    card_order: list[str]
    current_card_index: int = 0
    current_round: int = 1
    round_stats: RoundStats = field(default_factory=RoundStats)
    cards_to_retry: list[str] = field(default_factory=list)
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "cardOrder": list(self.card_order),
            "currentCardIndex": self.current_card_index,
            "currentRound": self.current_round,
            "roundStats": {
                "correct": self.round_stats.correct,
                "incorrect": self.round_stats.incorrect,
            },
            "cardsToRetry": list(self.cards_to_retry),
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        stats = data.get("roundStats") or {}
        return cls(
            card_order=list(data.get("cardOrder") or []),
            current_card_index=int(data.get("currentCardIndex", 0)),
            current_round=max(1, int(data.get("currentRound", 1))),
            round_stats=RoundStats(
                correct=int(stats.get("correct", 0)),
                incorrect=int(stats.get("incorrect", 0)),
            ),
            cards_to_retry=list(data.get("cardsToRetry") or []),
            updated_at=data.get("updatedAt"),
        )


# Timestamp variants accepted by the due check. Everything is normalized to an
# aware UTC datetime before comparison.


@dataclass(frozen=True)
class IsoString:
    value: str


@dataclass(frozen=True)
class EpochMillis:
    value: float


@dataclass(frozen=True)
class ExternalTimestamp:
    """A seconds/nanoseconds pair as handed out by document stores."""
    seconds: int
    nanoseconds: int = 0

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds + self.nanoseconds / 1e9, tz=timezone.utc)


Timestamp = Union[IsoString, EpochMillis, ExternalTimestamp]
