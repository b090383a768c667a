"""Study session orchestration: card order, rounds, checkpoints and study time."""
import random
from datetime import datetime
from enum import Enum
from typing import Callable

import structlog

from flash_tutor.config import StudySettings
from flash_tutor.errors import PersistenceFailure, SessionStateMismatch, SessionTransitionError
from flash_tutor.flashcards import select_due
from flash_tutor.models import Card, CardProgress, Quality, RoundStats, SessionState
from flash_tutor.sm2 import compute_next_review, utcnow
from flash_tutor.store import StudyStore
from flash_tutor.timer import ActivityTimer

logger = structlog.get_logger()


class SessionStatus(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    ROUND_COMPLETE = "round_complete"
    FINISHED = "finished"


class StudySession:
    """One user's pass through one deck, spanning one or more rounds.

    Cards rated incorrect are queued for the next round; the session is
    finished once a round ends with nothing left to retry. Progress is
    checkpointed after every rating so an interrupted session can be resumed,
    but only when the caller explicitly asks for it (see `load`).
    """

    def __init__(
        self,
        store: StudyStore,
        user_id: str,
        deck_id: str,
        settings: StudySettings | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        timer: ActivityTimer | None = None,
    ):
        self.store = store
        self.user_id = user_id
        self.deck_id = deck_id
        self.settings = settings or StudySettings()
        self._now = clock or utcnow
        self._rng = rng or random.Random()
        self.timer = timer or ActivityTimer(
            idle_timeout_ms=self.settings.idle_timeout_ms,
            poll_interval_ms=self.settings.poll_interval_ms,
        )
        self.status = SessionStatus.LOADING
        self.deck_cards: list[Card] = []
        self.cards: dict[str, Card] = {}
        self.progress: dict[str, CardProgress] = {}
        self.pending_resume: SessionState | None = None
        self.card_order: list[str] = []
        self.current_card_index = 0
        self.current_round = 1
        self.round_stats = RoundStats()
        self.cards_to_retry: list[str] = []
        self.cards_studied = 0
        self._unlogged = False

    # -- store access -----------------------------------------------------

    async def _persist(self, operation: str, call, *args):
        try:
            return await call(*args)
        except PersistenceFailure:
            raise
        except Exception as e:
            logger.error("persistence_failure", operation=operation, deck_id=self.deck_id, error=str(e))
            raise PersistenceFailure(operation, e) from e

    async def _best_effort(self, operation: str, call, *args) -> bool:
        try:
            await call(*args)
        except Exception as e:
            logger.warning("best_effort_write_failed", operation=operation, deck_id=self.deck_id, error=str(e))
            return False
        return True

    # -- lifecycle --------------------------------------------------------

    async def load(self) -> SessionState | None:
        """Fetch the deck and the user's progress.

        Returns the saved checkpoint when one exists; the session then waits
        in LOADING until `resume()` or `discard_saved()` is called. Without a
        checkpoint a fresh round over the due cards starts immediately.
        """
        if self.status != SessionStatus.LOADING:
            raise SessionTransitionError(f"cannot load while {self.status.value}")
        self.deck_cards = await self._persist("get_deck_cards", self.store.get_deck_cards, self.deck_id)
        self.cards = {card.id: card for card in self.deck_cards}
        self.progress = await self._persist(
            "get_card_progress", self.store.get_card_progress, self.user_id, self.deck_id,
        ) or {}
        saved = await self._persist("get_session_state", self.store.get_session_state, self.user_id, self.deck_id)
        if saved is not None and saved.card_order:
            logger.info(
                "saved_session_found", deck_id=self.deck_id,
                round=saved.current_round, index=saved.current_card_index, cards=len(saved.card_order),
            )
            self.pending_resume = saved
            return saved
        self._begin(self._due_cards())
        return None

    async def resume(self) -> None:
        """Continue from the saved checkpoint, in its exact card order."""
        if self.status != SessionStatus.LOADING or self.pending_resume is None:
            raise SessionTransitionError("no saved session to resume")
        saved = self.pending_resume
        self.pending_resume = None
        order, index = self._reconcile(saved)
        if not order:
            logger.info("saved_session_empty", deck_id=self.deck_id)
            await self._best_effort("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)
            self._begin(self._due_cards())
            return
        self.card_order = order
        self.current_card_index = index
        self.current_round = saved.current_round
        self.round_stats = RoundStats(saved.round_stats.correct, saved.round_stats.incorrect)
        self.cards_to_retry = [cid for cid in saved.cards_to_retry if cid in self.cards]
        self.cards_studied = 0
        self._activate()
        logger.info("session_resumed", deck_id=self.deck_id, round=self.current_round, index=index)
        if self.current_card_index >= len(self.card_order):
            await self._finish_round()

    async def discard_saved(self) -> None:
        """Drop the saved checkpoint and start over on the due cards."""
        if self.status != SessionStatus.LOADING or self.pending_resume is None:
            raise SessionTransitionError("no saved session to discard")
        await self._persist("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)
        self.pending_resume = None
        self._begin(self._due_cards())

    def _reconcile(self, saved: SessionState) -> tuple[list[str], int]:
        """Drop ids no longer in the deck, keeping the cursor on the same card."""
        index = min(max(saved.current_card_index, 0), len(saved.card_order))
        stale = [cid for cid in saved.card_order if cid not in self.cards]
        if stale:
            mismatch = SessionStateMismatch(stale)
            logger.warning("session_state_mismatch", deck_id=self.deck_id, stale_ids=stale, error=str(mismatch))
        kept_before = sum(1 for cid in saved.card_order[:index] if cid in self.cards)
        order = [cid for cid in saved.card_order if cid in self.cards]
        return order, kept_before

    def _due_cards(self) -> list[Card]:
        return select_due(
            self.deck_cards, self.progress, now=self._now(),
            fallback=self.settings.due_fallback, rng=self._rng,
        )

    def _begin(self, cards: list[Card]) -> None:
        self.card_order = [card.id for card in cards]
        self.current_card_index = 0
        self.current_round = 1
        self.round_stats = RoundStats()
        self.cards_to_retry = []
        self.cards_studied = 0
        if not self.card_order:
            self.status = SessionStatus.FINISHED
            logger.info("nothing_to_study", deck_id=self.deck_id)
            return
        self._activate()
        logger.info("session_started", deck_id=self.deck_id, cards=len(self.card_order))

    def _activate(self) -> None:
        self.status = SessionStatus.ACTIVE
        self.timer.reset()
        self.timer.start_polling()
        self._unlogged = True

    # -- rating -----------------------------------------------------------

    @property
    def current_card(self) -> Card | None:
        if self.status != SessionStatus.ACTIVE:
            return None
        return self.cards[self.card_order[self.current_card_index]]

    @property
    def cards_remaining(self) -> int:
        return max(0, len(self.card_order) - self.current_card_index)

    def record_activity(self) -> None:
        self.timer.record_activity()

    def snapshot(self) -> SessionState:
        return SessionState(
            card_order=list(self.card_order),
            current_card_index=self.current_card_index,
            current_round=self.current_round,
            round_stats=RoundStats(self.round_stats.correct, self.round_stats.incorrect),
            cards_to_retry=list(self.cards_to_retry),
            updated_at=self._now().isoformat(),
        )

    async def rate(self, quality: int, hint_used: bool = False) -> CardProgress:
        """Rate the current card, save its new progress and move to the next one.

        Raises:
            InvalidQuality: quality is not 1 or 2; nothing is saved.
            PersistenceFailure: the progress write failed; the same card stays
                current so the rating can be retried.
        """
        if self.status != SessionStatus.ACTIVE:
            raise SessionTransitionError(f"cannot rate while {self.status.value}")
        card = self.current_card
        now = self._now()
        prior = self.progress.get(card.id)
        result = compute_next_review(quality, prior, now=now)
        self.timer.record_activity()

        updated = CardProgress(
            learning_state=result.learning_state,
            interval=result.interval,
            ease_factor=result.ease_factor,
            next_review_date=result.next_review_date,
            review_count=(prior.review_count if prior else 0) + 1,
            last_reviewed=now.isoformat(),
        )
        await self._persist(
            "put_card_progress", self.store.put_card_progress, self.user_id, self.deck_id, card.id, updated,
        )
        self.progress[card.id] = updated
        logger.info(
            "card_rated", deck_id=self.deck_id, card_id=card.id, quality=int(quality), hint_used=hint_used,
            learning_state=updated.learning_state.value, interval=updated.interval,
        )

        if quality == Quality.INCORRECT:
            if card.id not in self.cards_to_retry:
                self.cards_to_retry.append(card.id)
            self.round_stats.incorrect += 1
        else:
            self.round_stats.correct += 1
        self.current_card_index += 1
        self.cards_studied += 1

        # Progress is already saved; a lost checkpoint only costs resumability
        await self._best_effort(
            "put_session_state", self.store.put_session_state, self.user_id, self.deck_id, self.snapshot(),
        )
        if self.current_card_index >= len(self.card_order):
            await self._finish_round()
        return updated

    # -- rounds -----------------------------------------------------------

    async def _finish_round(self) -> None:
        self.status = SessionStatus.ROUND_COMPLETE
        await self.timer.stop_polling()
        await self._flush_log()
        logger.info(
            "round_complete", deck_id=self.deck_id, round=self.current_round,
            correct=self.round_stats.correct, incorrect=self.round_stats.incorrect,
        )
        if not self.cards_to_retry:
            self.status = SessionStatus.FINISHED
            await self._best_effort("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)

    async def next_round(self) -> None:
        """Start the next round over this round's incorrect cards, reshuffled."""
        if self.status != SessionStatus.ROUND_COMPLETE or not self.cards_to_retry:
            raise SessionTransitionError(f"no round to start while {self.status.value}")
        await self._best_effort("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)
        order = list(self.cards_to_retry)
        self._rng.shuffle(order)
        self.card_order = order
        self.current_card_index = 0
        self.current_round += 1
        self.round_stats = RoundStats()
        self.cards_to_retry = []
        self.cards_studied = 0
        self._activate()
        logger.info("round_started", deck_id=self.deck_id, round=self.current_round, cards=len(order))

    async def review_again(self) -> None:
        """After finishing, start a new session over every card in the deck."""
        if self.status != SessionStatus.FINISHED:
            raise SessionTransitionError(f"cannot review again while {self.status.value}")
        self.deck_cards = await self._persist("get_deck_cards", self.store.get_deck_cards, self.deck_id)
        self.cards = {card.id: card for card in self.deck_cards}
        cards = list(self.deck_cards)
        self._rng.shuffle(cards)
        self._begin(cards)

    async def restart(self) -> None:
        """Abandon the current pass and start fresh on the due cards."""
        if self.status == SessionStatus.LOADING:
            raise SessionTransitionError("cannot restart before loading")
        await self.timer.stop_polling()
        await self._flush_log()
        await self._persist("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)
        self._begin(self._due_cards())

    # -- teardown ---------------------------------------------------------

    async def _flush_log(self) -> bool:
        if not self._unlogged:
            return False
        self._unlogged = False
        duration_ms = self.timer.finalize()
        studied = self.cards_studied
        self.cards_studied = 0
        if duration_ms < self.settings.min_session_ms:
            logger.debug("study_time_not_logged", deck_id=self.deck_id, duration_ms=duration_ms)
            return False
        return await self._best_effort(
            "append_study_session_log", self.store.append_study_session_log,
            self.user_id, self.deck_id, duration_ms, studied, self._now().isoformat(),
        )

    async def close(self) -> None:
        """Stop the timer and flush study time. The checkpoint is kept for a later resume."""
        await self.timer.stop_polling()
        await self._flush_log()

    async def abandon(self) -> None:
        """Close the session and forget its checkpoint."""
        await self.close()
        await self._best_effort("clear_session_state", self.store.clear_session_state, self.user_id, self.deck_id)
        self.status = SessionStatus.FINISHED
