"""
services/route_table.py

Virtual route table for the dynamic route strategy.

Routes registered here are rendered by the application on every request.
The table is persisted so every worker process serves the same routes.
Each process keeps an in-memory snapshot; a registration only becomes
visible once the table is flushed with reload(), which bumps a shared
version number that every snapshot checks on lookup.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Dict, List, Optional

from services.database import get_db

logger = logging.getLogger(__name__)

VERSION_OPTION = "rewrite_routes_version"


@dataclass(frozen=True)
class DynamicRoute:
    path: str
    endpoint: Optional[str]
    content: bytes
    content_type: str
    transient: bool = False


def normalize_path(path):
    """'/llms.txt/' -> '/llms.txt', 'ask' -> '/ask'"""
    path = "/" + path.lstrip("/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


class RouteTable:
    def __init__(self, store):
        self.store = store
        self._routes: Dict[str, DynamicRoute] = {}
        self._version = None

    def register(self, path, content=b"", content_type="text/plain", endpoint=None, transient=False):
        """Add or replace a route. Call reload() to make it live."""
        path = normalize_path(path)
        if isinstance(content, str):
            content = content.encode("utf-8")

        conn = get_db(self.store.db_path)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO rewrite_routes
                (path, endpoint, content, content_type, transient, created_at)
                VALUES (?, ?, ?, ?, ?, datetime('now'))
                """,
                (path, endpoint, sqlite3.Binary(content), content_type, 1 if transient else 0),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"✅ Route registered: {path} ({'transient' if transient else endpoint or 'static content'})")
        return DynamicRoute(path, endpoint, content, content_type, transient)

    def unregister(self, path):
        """Remove a route. Returns True if it existed. Call reload() to make it live."""
        path = normalize_path(path)
        conn = get_db(self.store.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM rewrite_routes WHERE path = ?", (path,))
            conn.commit()
            removed = cursor.rowcount > 0
        finally:
            conn.close()

        if removed:
            logger.info(f"✅ Route unregistered: {path}")
        return removed

    def is_registered(self, path):
        """Whether a route row exists, regardless of the snapshot"""
        conn = get_db(self.store.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM rewrite_routes WHERE path = ?", (normalize_path(path),))
            return cursor.fetchone() is not None
        finally:
            conn.close()

    def reload(self):
        """Flush the route table for every process and rebuild this snapshot"""
        version = int(self.store.get(VERSION_OPTION, 0)) + 1
        self.store.set(VERSION_OPTION, version)
        self._load(version)

    def lookup(self, path) -> Optional[DynamicRoute]:
        version = self.store.get(VERSION_OPTION, 0)
        if version != self._version:
            self._load(version)
        return self._routes.get(normalize_path(path))

    def all(self) -> List[DynamicRoute]:
        return [route for _, route in sorted(self._fetch_all().items())]

    def _load(self, version):
        self._routes = self._fetch_all()
        self._version = version

    def _fetch_all(self):
        conn = get_db(self.store.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT path, endpoint, content, content_type, transient FROM rewrite_routes"
            )
            rows = cursor.fetchall()
        finally:
            conn.close()

        return {
            r[0]: DynamicRoute(
                path=r[0],
                endpoint=r[1],
                content=bytes(r[2] or b""),
                content_type=r[3],
                transient=bool(r[4]),
            )
            for r in rows
        }
