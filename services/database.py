"""Database operations"""

import os
import sqlite3
import logging
from config.settings import CONFIG

logger = logging.getLogger(__name__)


def init_database(db_path=None):
    """Initialize SQLite database with all tables"""
    db_path = db_path or CONFIG["database_path"]
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL")
    cursor = conn.cursor()

    cursor.executescript(
        """
        -- ═══════════════════════════════════════════════════════════
        -- Host configuration (settings, strategy records, file metadata)
        -- ═══════════════════════════════════════════════════════════

        CREATE TABLE IF NOT EXISTS options (
            name TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        -- ═══════════════════════════════════════════════════════════
        -- Virtual routes rendered by the application
        -- ═══════════════════════════════════════════════════════════

        CREATE TABLE IF NOT EXISTS rewrite_routes (
            path TEXT PRIMARY KEY,
            endpoint TEXT,
            content BLOB,
            content_type TEXT NOT NULL DEFAULT 'text/plain',
            transient BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        -- ═══════════════════════════════════════════════════════════
        -- Environment probe diagnostics (ring buffer)
        -- ═══════════════════════════════════════════════════════════

        CREATE TABLE IF NOT EXISTS probe_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            path TEXT NOT NULL,
            test_path TEXT,
            recommended_strategy TEXT NOT NULL,
            dynamic_route_works BOOLEAN DEFAULT FALSE,
            static_file_works BOOLEAN DEFAULT FALSE,
            errors TEXT DEFAULT '[]',
            warnings TEXT DEFAULT '[]',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_rewrite_routes_transient ON rewrite_routes(transient);
        CREATE INDEX IF NOT EXISTS idx_probe_logs_path ON probe_logs(path);
    """
    )

    conn.commit()
    conn.close()

    logger.info(f"✅ Database initialized: {db_path}")
    logger.info("   - Tables: options, rewrite_routes, probe_logs")


def get_db(db_path=None):
    """Get database connection"""
    return sqlite3.connect(db_path or CONFIG["database_path"], timeout=30.0)
