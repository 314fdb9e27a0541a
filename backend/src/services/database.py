"""SQLite database helpers for the storyline schema."""

from __future__ import annotations

from pathlib import Path
import sqlite3
from typing import Iterable

from .config import get_config

DDL_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS side_story_lines (
        story_line_id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        root_node_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS side_story_nodes (
        store_node_id TEXT NOT NULL,
        store_line_ids TEXT NOT NULL,
        title TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL DEFAULT '',
        next_story_node_id TEXT,
        branch_node_ids TEXT,
        PRIMARY KEY (store_line_ids, store_node_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_nodes_line ON side_story_nodes(store_line_ids)",
)


class DatabaseService:
    """Manage SQLite connections and schema initialization."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else get_config().db_path

    def _ensure_directory(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        """Return a sqlite3 connection with the proper data directory created."""
        self._ensure_directory()
        # Connections may be handed to a worker thread by the request deadline.
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self, statements: Iterable[str] | None = None) -> Path:
        """Create all schema artifacts required by the story store."""
        conn = self.connect()
        try:
            with conn:  # Transactional apply of DDL
                for statement in statements or DDL_STATEMENTS:
                    conn.execute(statement)
        finally:
            conn.close()
        return self.db_path


def init_database(db_path: str | Path | None = None) -> Path:
    """Convenience wrapper used at startup."""
    return DatabaseService(db_path).initialize()


__all__ = ["DatabaseService", "init_database", "DDL_STATEMENTS"]
