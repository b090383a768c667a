from datetime import datetime, timezone

import pytest

from flash_tutor.db import init_db
from flash_tutor.decks import add_cards, create_deck
from flash_tutor.models import Card

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_study.db")
    return db_path


@pytest.fixture
def deck_db(tmp_db):
    """Initialized database holding deck 'd1' with cards c1, c2, c3."""
    init_db(tmp_db)
    create_deck(tmp_db, "d1", "Test Deck", "Testing")
    add_cards(tmp_db, "d1", [
        Card(id="c1", front="Q1", back="A1"),
        Card(id="c2", front="Q2", back="A2", hint="H2"),
        Card(id="c3", front="Q3", back="A3"),
    ])
    return tmp_db


@pytest.fixture
def fake_clock():
    return FakeClock()
