"""Deck progress summaries and study-time statistics."""
from collections import defaultdict
from datetime import date, datetime, timedelta

from flash_tutor.db import get_connection
from flash_tutor.decks import get_cards
from flash_tutor.flashcards import is_due
from flash_tutor.models import LearningState
from flash_tutor.sm2 import utcnow
from flash_tutor.store import load_card_progress


def get_activity_color(minutes: float) -> str:
    if not minutes:
        return "grey23"
    if minutes < 15:
        return "dark_green"
    elif minutes < 30:
        return "green4"
    elif minutes < 60:
        return "green3"
    return "pale_green1"


def get_deck_summary(db_path: str, user_id: str, deck_id: str, now: datetime | None = None) -> dict:
    """Card counts per learning state, plus how many are due right now."""
    now = now or utcnow()
    cards = get_cards(db_path, deck_id)
    progress = load_card_progress(db_path, user_id, deck_id) or {}
    counts = {state.value: 0 for state in LearningState}
    due = 0
    for card in cards:
        record = progress.get(card.id)
        counts[record.learning_state.value if record else LearningState.NEW.value] += 1
        if record is None or is_due(record.next_review_date, now):
            due += 1
    return {"deck_id": deck_id, "total": len(cards), "due": due, **counts}


def get_daily_study_minutes(db_path: str, user_id: str, days: int = 365, today: date | None = None) -> dict[str, float]:
    """Active study minutes per local calendar day over the last `days` days."""
    today = today or date.today()
    start = today - timedelta(days=days - 1)
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT duration_ms, timestamp FROM study_sessions WHERE user_id = ?", (user_id,)
    ).fetchall()
    conn.close()
    totals = defaultdict(float)
    for row in rows:
        try:
            stamp = datetime.fromisoformat(row["timestamp"])
        except ValueError:
            continue
        day = stamp.astimezone().date() if stamp.tzinfo else stamp.date()
        if start <= day <= today:
            totals[day.isoformat()] += row["duration_ms"] / 60000
    return {day: round(minutes, 1) for day, minutes in sorted(totals.items())}


def get_study_stats(db_path: str, user_id: str) -> dict:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT COUNT(*) as sessions, COALESCE(SUM(duration_ms), 0) as total_ms,
            COALESCE(SUM(cards_studied), 0) as cards
        FROM study_sessions WHERE user_id = ?""",
        (user_id,),
    ).fetchone()
    conn.close()
    return {
        "sessions": row["sessions"],
        "total_minutes": round(row["total_ms"] / 60000, 1),
        "cards_studied": row["cards"],
    }
