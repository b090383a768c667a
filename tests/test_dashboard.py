from datetime import date, timedelta

from flash_tutor.dashboard import (
    get_activity_color, get_daily_study_minutes, get_deck_summary, get_study_stats,
)
from flash_tutor.db import get_connection, init_db
from flash_tutor.models import CardProgress, LearningState
from flash_tutor.store import insert_study_session, save_card_progress

from conftest import NOW


def test_activity_color_buckets():
    assert get_activity_color(0) == "grey23"
    assert get_activity_color(10) == "dark_green"
    assert get_activity_color(20) == "green4"
    assert get_activity_color(45) == "green3"
    assert get_activity_color(90) == "pale_green1"


def test_deck_summary_fresh_deck(deck_db):
    summary = get_deck_summary(deck_db, "u1", "d1", now=NOW)
    assert summary == {"deck_id": "d1", "total": 3, "due": 3, "new": 3, "learning": 0, "review": 0}


def test_deck_summary_counts_states(deck_db):
    save_card_progress(deck_db, "u1", "d1", "c1", CardProgress(
        learning_state=LearningState.REVIEW, interval=3,
        next_review_date=(NOW + timedelta(days=3)).isoformat(), review_count=2,
    ))
    save_card_progress(deck_db, "u1", "d1", "c2", CardProgress(
        learning_state=LearningState.LEARNING, interval=1,
        next_review_date=(NOW - timedelta(minutes=5)).isoformat(), review_count=1,
    ))
    summary = get_deck_summary(deck_db, "u1", "d1", now=NOW)
    assert summary["review"] == 1
    assert summary["learning"] == 1
    assert summary["new"] == 1
    assert summary["due"] == 2


def test_daily_study_minutes(tmp_db):
    init_db(tmp_db)
    insert_study_session(tmp_db, "u1", "d1", 30 * 60000, 20, "2024-03-01T09:00:00")
    insert_study_session(tmp_db, "u1", "d2", 15 * 60000, 10, "2024-03-01T18:00:00")
    insert_study_session(tmp_db, "u1", "d1", 6 * 60000, 4, "2024-02-28T09:00:00")
    insert_study_session(tmp_db, "u1", "d1", 60000, 1, "2023-01-01T09:00:00")
    insert_study_session(tmp_db, "u2", "d1", 60000, 1, "2024-03-01T09:00:00")
    minutes = get_daily_study_minutes(tmp_db, "u1", today=date(2024, 3, 1))
    assert minutes == {"2024-02-28": 6.0, "2024-03-01": 45.0}


def test_daily_study_minutes_skips_bad_timestamps(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute(
        "INSERT INTO study_sessions (user_id, deck_id, duration_ms, cards_studied, timestamp) VALUES (?, ?, ?, ?, ?)",
        ("u1", "d1", 60000, 1, "yesterday"),
    )
    conn.commit()
    conn.close()
    assert get_daily_study_minutes(tmp_db, "u1", today=date(2024, 3, 1)) == {}


def test_get_study_stats_empty(tmp_db):
    init_db(tmp_db)
    assert get_study_stats(tmp_db, "u1") == {"sessions": 0, "total_minutes": 0, "cards_studied": 0}


def test_get_study_stats(tmp_db):
    init_db(tmp_db)
    insert_study_session(tmp_db, "u1", "d1", 90_000, 12, NOW.isoformat())
    insert_study_session(tmp_db, "u1", "d1", 30_000, 3, NOW.isoformat())
    stats = get_study_stats(tmp_db, "u1")
    assert stats == {"sessions": 2, "total_minutes": 2.0, "cards_studied": 15}
