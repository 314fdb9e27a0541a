"""Seed the database with a demo storyline."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Iterable, Mapping, Optional

from .database import DatabaseService, init_database

logger = logging.getLogger(__name__)

DEMO_STORY_LINE_ID = "demo-side-quest"

# Main path 1 -> 2 -> 5 with a choice on node 2 and a loop back from 4.
DEMO_STORY_LINE = {
    "story_line_id": DEMO_STORY_LINE_ID,
    "title": "The Lost Brew Recipe",
    "root_node_id": "1",
}

DEMO_NODES = [
    {
        "store_node_id": "1",
        "title": "A Strange Letter",
        "description": "The brewmaster receives a letter with half a recipe.",
        "next_story_node_id": "2",
        "branch_node_ids": None,
    },
    {
        "store_node_id": "2",
        "title": "The Crossroads Tavern",
        "description": "A stranger offers help, for a price.",
        "next_story_node_id": "5",
        "branch_node_ids": ["3", "4"],
    },
    {
        "store_node_id": "3",
        "title": "Accept the Offer",
        "description": "The stranger leads the way into the hills.",
        "next_story_node_id": "5",
        "branch_node_ids": None,
    },
    {
        "store_node_id": "4",
        "title": "Refuse and Wait",
        "description": "Nothing happens. The tavern fills up again.",
        "next_story_node_id": None,
        "branch_node_ids": ["2"],
    },
    {
        "store_node_id": "5",
        "title": "The Hidden Cellar",
        "description": "The missing half of the recipe is found.",
        "next_story_node_id": None,
        "branch_node_ids": None,
    },
]


def _encode_branches(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(list(value))


def insert_story_line(
    conn: sqlite3.Connection,
    story_line_id: str,
    title: str,
    root_node_id: Optional[str],
) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO side_story_lines (story_line_id, title, root_node_id) "
        "VALUES (?, ?, ?)",
        (story_line_id, title, root_node_id),
    )


def insert_nodes(
    conn: sqlite3.Connection, story_line_id: str, nodes: Iterable[Mapping[str, Any]]
) -> int:
    """Insert node rows; ``branch_node_ids`` lists are stored as JSON text."""
    count = 0
    for node in nodes:
        conn.execute(
            """
            INSERT OR REPLACE INTO side_story_nodes (
                store_node_id, store_line_ids, title, description,
                next_story_node_id, branch_node_ids
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(node["store_node_id"]),
                story_line_id,
                node.get("title", ""),
                node.get("description", ""),
                node.get("next_story_node_id"),
                _encode_branches(node.get("branch_node_ids")),
            ),
        )
        count += 1
    return count


def seed_demo_story_line(db_service: DatabaseService | None = None) -> int:
    """
    Insert the demo storyline and its nodes.

    Returns the number of nodes written.
    """
    db_service = db_service or DatabaseService()
    conn = db_service.connect()
    try:
        with conn:
            insert_story_line(conn, **DEMO_STORY_LINE)
            created = insert_nodes(conn, DEMO_STORY_LINE_ID, DEMO_NODES)
    finally:
        conn.close()
    logger.info(f"Seeded demo storyline {DEMO_STORY_LINE_ID} with {created} nodes")
    return created


def init_and_seed(seed_demo: bool = False) -> None:
    """Initialize the schema and optionally seed the demo storyline."""
    db_path = init_database()
    logger.info(f"Database initialized at: {db_path}")
    if seed_demo:
        seed_demo_story_line()


__all__ = [
    "DEMO_STORY_LINE_ID",
    "insert_story_line",
    "insert_nodes",
    "seed_demo_story_line",
    "init_and_seed",
]
