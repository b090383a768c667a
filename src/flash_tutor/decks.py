"""Deck and card storage."""
from flash_tutor.db import get_connection
from flash_tutor.models import Card, Deck


def create_deck(db_path: str, deck_id: str, title: str, subject: str = "") -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO decks (id, title, subject) VALUES (?, ?, ?) "
        "ON CONFLICT(id) DO UPDATE SET title=excluded.title, subject=excluded.subject",
        (deck_id, title, subject),
    )
    conn.commit()
    conn.close()


def add_cards(db_path: str, deck_id: str, cards: list[Card]) -> int:
    """Append cards to a deck, replacing any with the same id. Returns count written."""
    conn = get_connection(db_path)
    start = conn.execute(
        "SELECT COALESCE(MAX(position), -1) + 1 FROM cards WHERE deck_id = ?", (deck_id,)
    ).fetchone()[0]
    for offset, card in enumerate(cards):
        conn.execute(
            """INSERT INTO cards (deck_id, id, position, front, back, hint) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(deck_id, id) DO UPDATE SET front=excluded.front, back=excluded.back, hint=excluded.hint""",
            (deck_id, card.id, start + offset, card.front, card.back, card.hint),
        )
    conn.commit()
    conn.close()
    return len(cards)


def get_cards(db_path: str, deck_id: str) -> list[Card]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT id, front, back, hint FROM cards WHERE deck_id = ? ORDER BY position", (deck_id,)
    ).fetchall()
    conn.close()
    return [Card(id=r["id"], front=r["front"], back=r["back"], hint=r["hint"]) for r in rows]


def get_deck(db_path: str, deck_id: str) -> Deck | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
    conn.close()
    if not row:
        return None
    return Deck(id=row["id"], title=row["title"], subject=row["subject"] or "", cards=get_cards(db_path, deck_id))


def list_decks(db_path: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT d.id, d.title, d.subject, COUNT(c.id) as card_count
        FROM decks d LEFT JOIN cards c ON c.deck_id = d.id
        GROUP BY d.id ORDER BY d.title"""
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]
