from pathlib import Path

import pytest

from backend.src.api.middleware.rate_limit import get_rate_limiter
from backend.src.services.database import DatabaseService
from backend.src.services.seed import insert_nodes, insert_story_line
from backend.src.services.story_store import StoryStore

BRANCHING_NODES = [
    {"store_node_id": "1", "title": "Opening", "description": "It begins", "next_story_node_id": "2"},
    {"store_node_id": "2", "title": "Choice", "description": "Pick one", "branch_node_ids": [3, 4]},
    {"store_node_id": "3", "title": "Left", "description": "Went left"},
    {"store_node_id": "4", "title": "Right", "description": "Went right"},
]


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Each test starts with fresh rate limit buckets."""
    get_rate_limiter.cache_clear()
    yield
    get_rate_limiter.cache_clear()


@pytest.fixture()
def branching_nodes() -> list:
    return [dict(node) for node in BRANCHING_NODES]


@pytest.fixture()
def db_service(tmp_path: Path) -> DatabaseService:
    service = DatabaseService(tmp_path / "story.db")
    service.initialize()
    return service


@pytest.fixture()
def add_story_line(db_service: DatabaseService):
    """Insert a storyline with its nodes into the temporary database."""

    def _add(story_line_id: str, title: str, root_node_id, nodes) -> None:
        conn = db_service.connect()
        try:
            with conn:
                insert_story_line(conn, story_line_id, title, root_node_id)
                insert_nodes(conn, story_line_id, nodes)
        finally:
            conn.close()

    return _add


@pytest.fixture()
def story_store(db_service: DatabaseService) -> StoryStore:
    return StoryStore(db_service=db_service)
