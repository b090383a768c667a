"""Scheduling constants and user-tunable study settings."""
import os
from dataclasses import dataclass
from enum import Enum

from flash_tutor.db import get_connection

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 100.0
EASE_STEP = 0.1
MAX_INTERVAL_DAYS = 365
RETRY_MINUTES = 1
GRADUATING_INTERVAL_DAYS = 1

IDLE_TIMEOUT_MS = 2 * 60 * 1000
POLL_INTERVAL_MS = 10 * 1000
MIN_SESSION_MS = 1000

DB_PATH_ENV = "FLASH_TUTOR_DB"
DEFAULT_USER_ID = "local"


class DueFallback(str, Enum):
    """What to present when a non-empty deck has nothing due."""
    ALL_CARDS = "all"
    NONE = "none"


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


@dataclass
class StudySettings:
    idle_timeout_ms: int = IDLE_TIMEOUT_MS
    poll_interval_ms: int = POLL_INTERVAL_MS
    min_session_ms: int = MIN_SESSION_MS
    due_fallback: DueFallback = DueFallback.ALL_CARDS

    @classmethod
    def load(cls, db_path: str) -> "StudySettings":
        """Read settings from the user_settings table, falling back to defaults."""
        return cls(
            idle_timeout_ms=int(get_setting(db_path, "idle_timeout_ms", str(IDLE_TIMEOUT_MS))),
            poll_interval_ms=int(get_setting(db_path, "poll_interval_ms", str(POLL_INTERVAL_MS))),
            min_session_ms=int(get_setting(db_path, "min_session_ms", str(MIN_SESSION_MS))),
            due_fallback=DueFallback(get_setting(db_path, "due_fallback", DueFallback.ALL_CARDS.value)),
        )

    def save(self, db_path: str) -> None:
        set_setting(db_path, "idle_timeout_ms", str(self.idle_timeout_ms))
        set_setting(db_path, "poll_interval_ms", str(self.poll_interval_ms))
        set_setting(db_path, "min_session_ms", str(self.min_session_ms))
        set_setting(db_path, "due_fallback", self.due_fallback.value)


def resolve_db_path(default: str) -> str:
    return os.environ.get(DB_PATH_ENV) or default
