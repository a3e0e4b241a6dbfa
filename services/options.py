"""
services/options.py

Host key-value option store.

Every piece of persisted state that is not a route lives here: business
info settings, activation timestamps, installed endpoint records, strategy
preferences and the metadata of files written into the web root. Values are
stored as JSON; concurrent writers are last-writer-wins.
"""

import json
import logging
from services.database import get_db

logger = logging.getLogger(__name__)


class OptionStore:
    """JSON values keyed by name, backed by the options table"""

    def __init__(self, db_path):
        self.db_path = db_path

    def get(self, name, default=None):
        conn = get_db(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM options WHERE name = ?", (name,))
            row = cursor.fetchone()
        finally:
            conn.close()

        if row is None:
            return default
        return json.loads(row[0])

    def set(self, name, value):
        conn = get_db(self.db_path)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO options (name, value, updated_at)
                VALUES (?, ?, datetime('now'))
                """,
                (name, json.dumps(value)),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, name):
        """Delete an option. Returns True if it existed."""
        conn = get_db(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM options WHERE name = ?", (name,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def items(self, prefix=""):
        """All (name, value) pairs whose name starts with prefix, sorted by name"""
        conn = get_db(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT name, value FROM options
                WHERE substr(name, 1, ?) = ?
                ORDER BY name
                """,
                (len(prefix), prefix),
            )
            rows = cursor.fetchall()
        finally:
            conn.close()

        return [(name, json.loads(value)) for name, value in rows]
