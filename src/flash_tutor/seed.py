"""Seed the database with the bundled sample decks."""
import json
from pathlib import Path

from flash_tutor.db import get_connection
from flash_tutor.decks import add_cards, create_deck
from flash_tutor.models import Card

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds any deck."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM decks").fetchone()[0]
    conn.close()
    return count > 0


def seed_decks(db_path: str) -> int:
    """Insert the sample decks from decks.json. Returns the number of decks."""
    data = json.loads((CONTENT_DIR / "decks.json").read_text())
    for deck in data["decks"]:
        create_deck(db_path, deck["id"], deck["title"], deck.get("subject", ""))
        add_cards(db_path, deck["id"], [
            Card(id=c["id"], front=c["front"], back=c["back"], hint=c.get("hint"))
            for c in deck["cards"]
        ])
    return len(data["decks"])


def seed_all(db_path: str) -> None:
    """Seed sample content on first run only."""
    if is_seeded(db_path):
        return
    seed_decks(db_path)
