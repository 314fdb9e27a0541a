import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.src.api import main as api_main
from backend.src.api.main import app
from backend.src.api.middleware import rate_limit
from backend.src.api.middleware.rate_limit import ClientRateLimiter
from backend.src.api.routes.graph import get_story_store
from backend.src.services.config import AppConfig, get_config
from backend.src.services.errors import UpstreamFetchFailure
from backend.src.services.graph_builder import StoryLine
from backend.src.services.story_store import StoryStore

client = TestClient(app)


@pytest.fixture
def configure(tmp_path: Path):
    """Point the app at a store and config for the duration of a test."""

    def _configure(store, **overrides) -> AppConfig:
        config = AppConfig(db_path=tmp_path / "story.db", **overrides)
        app.dependency_overrides[get_story_store] = lambda: store
        app.dependency_overrides[get_config] = lambda: config
        return config

    yield _configure
    app.dependency_overrides = {}


@pytest.fixture
def seeded_store(add_story_line, story_store: StoryStore, branching_nodes) -> StoryStore:
    add_story_line("quest-1", "First Quest", "1", branching_nodes)
    return story_store


def test_get_story_graph_success(configure, seeded_store) -> None:
    configure(seeded_store)

    response = client.get("/story-graph/quest-1")

    assert response.status_code == 200
    data = response.json()
    assert data["storyLine"] == {"story_line_id": "quest-1", "title": "First Quest"}
    assert data["warnings"] == []
    assert data["elements"] == [
        {"data": {"id": "N1", "name": "Opening", "description": "It begins"}},
        {"data": {"id": "E1-2", "source": "N1", "target": "N2"}},
        {"data": {"id": "N2", "name": "Choice", "description": "Pick one"}},
        {"data": {"id": "E2-3", "source": "N2", "target": "N3"}},
        {"data": {"id": "N3", "name": "Left", "description": "Went left"}},
        {"data": {"id": "E2-4", "source": "N2", "target": "N4"}},
        {"data": {"id": "N4", "name": "Right", "description": "Went right"}},
    ]


def test_lazy_fetch_mode_returns_same_graph(configure, seeded_store) -> None:
    configure(seeded_store)
    bulk = client.get("/story-graph/quest-1").json()

    configure(seeded_store, graph_fetch_mode="lazy")
    lazy = client.get("/story-graph/quest-1").json()

    assert lazy == bulk


def test_story_line_id_is_trimmed(configure, seeded_store) -> None:
    configure(seeded_store)

    response = client.get("/story-graph/%20quest-1%20")

    assert response.status_code == 200
    assert response.json()["storyLine"]["story_line_id"] == "quest-1"


@pytest.mark.parametrize("story_line_id", ["%20%20%20", "x" * 256])
def test_invalid_story_line_id_returns_400(configure, seeded_store, story_line_id) -> None:
    configure(seeded_store)

    response = client.get(f"/story-graph/{story_line_id}")

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_max_length_story_line_id_is_accepted(configure, seeded_store) -> None:
    configure(seeded_store)

    response = client.get(f"/story-graph/{'x' * 255}")

    assert response.status_code == 404


def test_unknown_story_line_returns_404(configure, seeded_store) -> None:
    configure(seeded_store)

    response = client.get("/story-graph/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "story_line_not_found"


def test_story_line_without_root_returns_404(configure, add_story_line, story_store) -> None:
    add_story_line("draft", "Draft", None, [])
    configure(story_store)

    response = client.get("/story-graph/draft")

    assert response.status_code == 404
    assert response.json()["error"] == "root_node_not_found"


def test_root_missing_from_node_set_returns_404(configure, add_story_line, story_store) -> None:
    add_story_line("broken", "Broken", "7", [{"store_node_id": "1", "title": "Orphan"}])
    configure(story_store)

    response = client.get("/story-graph/broken")

    assert response.status_code == 404
    assert response.json()["error"] == "root_node_not_found"


def test_malformed_branches_are_reported(configure, add_story_line, story_store) -> None:
    add_story_line(
        "messy",
        "Messy",
        "1",
        [
            {"store_node_id": "1", "title": "A", "next_story_node_id": "2"},
            {"store_node_id": "2", "title": "B", "branch_node_ids": "3; 4"},
            {"store_node_id": "3", "title": "C"},
        ],
    )
    configure(story_store)

    response = client.get("/story-graph/messy")

    assert response.status_code == 200
    data = response.json()
    assert [e["data"]["id"] for e in data["elements"]] == ["N1", "E1-2", "N2"]
    assert len(data["warnings"]) == 1
    assert data["warnings"][0]["code"] == "malformed_branch_data"
    assert data["warnings"][0]["node_id"] == "2"


class FailingStore:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def resolve_story_line(self, story_line_id: str) -> StoryLine:
        return StoryLine(story_line_id=story_line_id, title="T", root_node_id="1")

    def fetch_nodes(self, story_line_id: str):
        raise self.exc


def test_upstream_failure_returns_500(configure) -> None:
    configure(FailingStore(UpstreamFetchFailure("connection lost")))

    response = client.get("/story-graph/quest-1")

    assert response.status_code == 500
    assert response.json()["error"] == "upstream_fetch_failure"


def test_unexpected_failure_returns_500(configure) -> None:
    configure(FailingStore(RuntimeError("boom")))

    response = client.get("/story-graph/quest-1")

    assert response.status_code == 500
    assert "Failed to build story graph" in response.json()["message"]


class SlowStore:
    def resolve_story_line(self, story_line_id: str) -> StoryLine:
        time.sleep(0.5)
        return StoryLine(story_line_id=story_line_id, title="T", root_node_id="1")


def test_deadline_exceeded_returns_504(configure) -> None:
    configure(SlowStore(), request_timeout_seconds=0.05)

    response = client.get("/story-graph/quest-1")

    assert response.status_code == 504
    assert response.json()["error"] == "timeout"


def test_rate_limit_returns_429(configure, seeded_store, monkeypatch) -> None:
    configure(seeded_store)
    limiter = ClientRateLimiter(2, 60, time_fn=lambda: 100.0)
    monkeypatch.setattr(rate_limit, "get_rate_limiter", lambda: limiter)

    statuses = [client.get("/story-graph/quest-1").status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    blocked = client.get("/story-graph/quest-1")
    assert blocked.json()["error"] == "rate_limited"
    assert blocked.headers["Retry-After"] == "30"


def test_cors_allows_configured_origin(configure, seeded_store) -> None:
    configure(seeded_store)
    origin = api_main.config.cors_allowed_origins[0]

    response = client.get("/story-graph/quest-1", headers={"Origin": origin})

    assert response.headers["access-control-allow-origin"] == origin


def test_cors_rejects_unknown_origin(configure, seeded_store) -> None:
    configure(seeded_store)

    response = client.get("/story-graph/quest-1", headers={"Origin": "https://evil.example"})

    assert "access-control-allow-origin" not in response.headers


def test_health() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
