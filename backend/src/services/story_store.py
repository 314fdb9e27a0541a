"""Read-only access to storylines and their nodes in SQLite."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Any, Optional

from .database import DatabaseService
from .errors import StoryLineNotFound, UpstreamFetchFailure
from .graph_builder import NodeFetcher, NodeId, StoryLine, StoryNode

logger = logging.getLogger(__name__)

NODE_COLUMNS = (
    "store_node_id, title, description, next_story_node_id, branch_node_ids"
)


def _normalize_id(value: Any) -> Optional[str]:
    """Store ids are compared as text; blank references count as absent."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _row_to_node(row: sqlite3.Row) -> StoryNode:
    return StoryNode(
        id=_normalize_id(row["store_node_id"]) or "",
        title=row["title"] or "",
        description=row["description"] or "",
        next_id=_normalize_id(row["next_story_node_id"]),
        branch_ids=row["branch_node_ids"],
    )


class StoryNodeIndex(dict):
    """Node set keyed by text id; ``get`` accepts ints from branch JSON."""

    def get(self, node_id: Any, default: Optional[StoryNode] = None) -> Optional[StoryNode]:
        key = _normalize_id(node_id)
        if key is None:
            return default
        return super().get(key, default)


class StoryStore:
    """Data-access collaborator used by the story graph endpoint."""

    def __init__(self, db_service: DatabaseService | None = None) -> None:
        self.db_service = db_service or DatabaseService()

    def resolve_story_line(self, story_line_id: str) -> StoryLine:
        """Return the storyline header or raise StoryLineNotFound."""
        try:
            conn = self.db_service.connect()
            try:
                row = conn.execute(
                    "SELECT story_line_id, title, root_node_id FROM side_story_lines "
                    "WHERE story_line_id = ?",
                    (story_line_id,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise UpstreamFetchFailure(
                f"Failed to load storyline {story_line_id}: {exc}"
            ) from exc

        if row is None:
            raise StoryLineNotFound(
                f"Story line '{story_line_id}' does not exist",
                detail={"story_line_id": story_line_id},
            )
        return StoryLine(
            story_line_id=row["story_line_id"],
            title=row["title"] or "",
            root_node_id=_normalize_id(row["root_node_id"]),
        )

    def fetch_nodes(self, story_line_id: str) -> StoryNodeIndex:
        """Load every node of a storyline in one query, keyed by node id."""
        try:
            conn = self.db_service.connect()
            try:
                rows = conn.execute(
                    f"SELECT {NODE_COLUMNS} FROM side_story_nodes WHERE store_line_ids = ?",
                    (story_line_id,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise UpstreamFetchFailure(
                f"Failed to load nodes for storyline {story_line_id}: {exc}"
            ) from exc

        nodes = StoryNodeIndex()
        for row in rows:
            node = _row_to_node(row)
            nodes[node.id] = node
        logger.debug(
            "Fetched story nodes",
            extra={"story_line_id": story_line_id, "node_count": len(nodes)},
        )
        return nodes

    def fetch_node(self, story_line_id: str, node_id: NodeId) -> Optional[StoryNode]:
        """Load a single node, or None when it is not part of the storyline."""
        key = _normalize_id(node_id)
        if key is None:
            return None
        try:
            conn = self.db_service.connect()
            try:
                row = conn.execute(
                    f"SELECT {NODE_COLUMNS} FROM side_story_nodes "
                    "WHERE store_line_ids = ? AND store_node_id = ?",
                    (story_line_id, key),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise UpstreamFetchFailure(
                f"Failed to load node {key} of storyline {story_line_id}: {exc}"
            ) from exc
        return _row_to_node(row) if row is not None else None

    def node_fetcher(self, story_line_id: str) -> NodeFetcher:
        """Async per-node fetcher for ``build_lazy``; each call runs in a worker thread."""

        async def fetch(node_id: NodeId) -> Optional[StoryNode]:
            return await asyncio.to_thread(self.fetch_node, story_line_id, node_id)

        return fetch


__all__ = ["StoryStore", "StoryNodeIndex"]
