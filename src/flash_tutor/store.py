"""Persistence interface used by study sessions, and its SQLite implementation."""
import asyncio
import json
from datetime import datetime
from typing import Protocol

import structlog

from flash_tutor.db import get_connection
from flash_tutor.decks import get_cards
from flash_tutor.errors import InvalidPriorState
from flash_tutor.models import Card, CardProgress, SessionState

logger = structlog.get_logger()


class StudyStore(Protocol):
    """Everything the study core reads or writes. Failures are raised."""

    async def get_card_progress(self, user_id: str, deck_id: str) -> dict[str, CardProgress] | None: ...

    async def put_card_progress(self, user_id: str, deck_id: str, card_id: str, progress: CardProgress) -> None: ...

    async def get_session_state(self, user_id: str, deck_id: str) -> SessionState | None: ...

    async def put_session_state(self, user_id: str, deck_id: str, state: SessionState) -> None: ...

    async def clear_session_state(self, user_id: str, deck_id: str) -> None: ...

    async def append_study_session_log(
        self, user_id: str, deck_id: str, duration_ms: int, cards_studied: int, timestamp: str,
    ) -> None: ...

    async def get_deck_cards(self, deck_id: str) -> list[Card]: ...


def load_card_progress(db_path: str, user_id: str, deck_id: str) -> dict[str, CardProgress] | None:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT card_id, data FROM card_progress WHERE user_id = ? AND deck_id = ?",
        (user_id, deck_id),
    ).fetchall()
    conn.close()
    if not rows:
        return None
    progress = {}
    for row in rows:
        try:
            progress[row["card_id"]] = CardProgress.from_dict(json.loads(row["data"]))
        except (json.JSONDecodeError, InvalidPriorState) as e:
            # Unreadable record: the card is treated as never studied
            logger.warning("invalid_prior_state", card_id=row["card_id"], deck_id=deck_id, error=str(e))
    return progress


def save_card_progress(db_path: str, user_id: str, deck_id: str, card_id: str, progress: CardProgress) -> None:
    data = json.dumps(progress.to_dict())
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO card_progress (user_id, deck_id, card_id, data) VALUES (?, ?, ?, ?)
        ON CONFLICT(user_id, deck_id, card_id) DO UPDATE SET data=excluded.data""",
        (user_id, deck_id, card_id, data),
    )
    conn.commit()
    conn.close()


def load_session_state(db_path: str, user_id: str, deck_id: str) -> SessionState | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT data FROM session_state WHERE user_id = ? AND deck_id = ?", (user_id, deck_id)
    ).fetchone()
    conn.close()
    if not row:
        return None
    try:
        return SessionState.from_dict(json.loads(row["data"]))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning("unreadable_session_state", deck_id=deck_id, error=str(e))
        return None


def save_session_state(db_path: str, user_id: str, deck_id: str, state: SessionState) -> None:
    data = json.dumps(state.to_dict())
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO session_state (user_id, deck_id, data) VALUES (?, ?, ?)
        ON CONFLICT(user_id, deck_id) DO UPDATE SET data=excluded.data""",
        (user_id, deck_id, data),
    )
    conn.commit()
    conn.close()


def delete_session_state(db_path: str, user_id: str, deck_id: str) -> None:
    conn = get_connection(db_path)
    conn.execute("DELETE FROM session_state WHERE user_id = ? AND deck_id = ?", (user_id, deck_id))
    conn.commit()
    conn.close()


def insert_study_session(
    db_path: str, user_id: str, deck_id: str, duration_ms: int, cards_studied: int, timestamp: str,
) -> None:
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO study_sessions (user_id, deck_id, duration_ms, cards_studied, timestamp)
        VALUES (?, ?, ?, ?, ?)""",
        (user_id, deck_id, duration_ms, cards_studied, timestamp),
    )
    conn.commit()
    conn.close()


class SqliteStore:
    """StudyStore backed by the local SQLite database.

    Each call opens its own connection on a worker thread so the event loop
    (and the activity timer polling on it) keeps running during I/O.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def get_card_progress(self, user_id, deck_id):
        return await asyncio.to_thread(load_card_progress, self.db_path, user_id, deck_id)

    async def put_card_progress(self, user_id, deck_id, card_id, progress):
        await asyncio.to_thread(save_card_progress, self.db_path, user_id, deck_id, card_id, progress)

    async def get_session_state(self, user_id, deck_id):
        return await asyncio.to_thread(load_session_state, self.db_path, user_id, deck_id)

    async def put_session_state(self, user_id, deck_id, state):
        await asyncio.to_thread(save_session_state, self.db_path, user_id, deck_id, state)

    async def clear_session_state(self, user_id, deck_id):
        await asyncio.to_thread(delete_session_state, self.db_path, user_id, deck_id)

    async def append_study_session_log(self, user_id, deck_id, duration_ms, cards_studied, timestamp):
        if isinstance(timestamp, datetime):
            timestamp = timestamp.isoformat()
        await asyncio.to_thread(
            insert_study_session, self.db_path, user_id, deck_id, duration_ms, cards_studied, timestamp,
        )

    async def get_deck_cards(self, deck_id):
        return await asyncio.to_thread(get_cards, self.db_path, deck_id)
