"""Import cards into a deck from various file formats."""
import csv
import hashlib
import io
import json
from pathlib import Path

from flash_tutor.decks import add_cards, create_deck, get_deck
from flash_tutor.models import Card

TEXT_SEPARATORS = ("\t", " :: ", " | ")


def _card_id(front: str) -> str:
    return "card-" + hashlib.sha1(front.strip().encode("utf-8")).hexdigest()[:10]


def _card_from_mapping(item: dict) -> Card | None:
    front = str(item.get("front") or "").strip()
    back = str(item.get("back") or "").strip()
    if not front or not back:
        return None
    hint = item.get("hint")
    return Card(id=str(item.get("id") or _card_id(front)), front=front, back=back, hint=str(hint) if hint else None)


def _cards_from_data(data) -> list[Card]:
    if isinstance(data, dict):
        data = data.get("cards", [])
    if not isinstance(data, list):
        return []
    cards = [_card_from_mapping(item) for item in data if isinstance(item, dict)]
    return [c for c in cards if c is not None]


def _cards_from_csv(text: str) -> list[Card]:
    rows = [row for row in csv.reader(io.StringIO(text)) if row]
    if rows and [cell.strip().lower() for cell in rows[0][:2]] == ["front", "back"]:
        header = [cell.strip().lower() for cell in rows[0]]
        return _cards_from_data([dict(zip(header, row)) for row in rows[1:]])
    return _cards_from_data([
        {"front": row[0], "back": row[1], "hint": row[2] if len(row) > 2 else None}
        for row in rows if len(row) >= 2
    ])


def _cards_from_text(text: str) -> list[Card]:
    items = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        for sep in TEXT_SEPARATORS:
            if sep in line:
                front, back = line.split(sep, 1)
                items.append({"front": front, "back": back})
                break
    return _cards_from_data(items)


def read_cards(file_path: str) -> list[Card]:
    path = Path(file_path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        return _cards_from_data(json.loads(text))
    elif suffix in (".yaml", ".yml"):
        import yaml
        return _cards_from_data(yaml.safe_load(text))
    elif suffix == ".csv":
        return _cards_from_csv(text)
    else:
        # Plain text: one "front<sep>back" pair per line
        return _cards_from_text(text)


def import_file(db_path: str, file_path: str, deck_id: str | None = None, title: str | None = None) -> dict:
    """Import cards from a file into a deck, creating the deck if needed."""
    cards = read_cards(file_path)
    deck_id = deck_id or Path(file_path).stem.lower().replace(" ", "-")
    if get_deck(db_path, deck_id) is None:
        create_deck(db_path, deck_id, title or Path(file_path).stem)
    count = add_cards(db_path, deck_id, cards)
    return {"filename": Path(file_path).name, "deck_id": deck_id, "cards": count}
