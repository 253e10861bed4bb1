from __future__ import annotations

import logging
import os
import sqlite3
from typing import Iterable

logger = logging.getLogger(__name__)


class SeenStore:
    """Snapshot of event keys seen on the last successful check.

    The snapshot is replaced as a whole, never merged.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def init_db(self) -> None:
        folder = os.path.dirname(os.path.abspath(self._db_path))
        if folder and not os.path.exists(folder):
            os.makedirs(folder, exist_ok=True)

        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS last_dates (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        date_time TEXT NOT NULL UNIQUE
                    )
                    """
                )
        finally:
            conn.close()

    def load(self) -> set[str]:
        conn = self._connect()
        try:
            try:
                rows = conn.execute("SELECT date_time FROM last_dates").fetchall()
            except sqlite3.OperationalError as e:
                if "no such table" not in str(e):
                    raise
                return set()
        finally:
            conn.close()
        return {row[0] for row in rows}

    def replace(self, keys: Iterable[str]) -> None:
        unique = list(dict.fromkeys(keys))

        conn = self._connect()
        try:
            # `with conn` commits on success and rolls back on any error.
            with conn:
                conn.execute("DELETE FROM last_dates")
                conn.executemany(
                    "INSERT INTO last_dates (date_time) VALUES (?)",
                    [(k,) for k in unique],
                )
        finally:
            conn.close()

        logger.info("Seen-set replaced with %d keys", len(unique))
