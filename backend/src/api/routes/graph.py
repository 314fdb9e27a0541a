"""HTTP route serving story graphs for the graph viewer."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Tuple

from fastapi import APIRouter, Depends, HTTPException, status

from ...models.graph import StoryGraphResponse
from ...services.config import AppConfig, get_config
from ...services.errors import InvalidInput, RootNodeNotFound, StoryGraphError
from ...services.graph_builder import GraphResult, StoryLine, build, build_lazy
from ...services.story_store import StoryStore
from ..middleware.rate_limit import enforce_rate_limit

logger = logging.getLogger(__name__)

MAX_STORY_LINE_ID_LENGTH = 255

router = APIRouter()


def get_story_store() -> StoryStore:
    return StoryStore()


def validate_story_line_id(raw: str) -> str:
    story_line_id = (raw or "").strip()
    if not story_line_id:
        raise InvalidInput("story_line_id must not be empty")
    if len(story_line_id) > MAX_STORY_LINE_ID_LENGTH:
        raise InvalidInput(
            f"story_line_id must be at most {MAX_STORY_LINE_ID_LENGTH} characters",
            detail={"length": len(story_line_id)},
        )
    return story_line_id


def _build_bulk(store: StoryStore, story_line: StoryLine) -> GraphResult:
    nodes = store.fetch_nodes(story_line.story_line_id)
    return build(story_line.root_node_id, nodes)


async def load_story_graph(
    store: StoryStore, story_line_id: str, fetch_mode: str
) -> Tuple[StoryLine, GraphResult]:
    """Resolve the storyline and build its graph with the configured fetch mode."""
    story_line = await asyncio.to_thread(store.resolve_story_line, story_line_id)
    if story_line.root_node_id is None:
        raise RootNodeNotFound(
            f"Story line '{story_line_id}' has no root node",
            detail={"story_line_id": story_line_id},
        )
    if fetch_mode == "lazy":
        result = await build_lazy(story_line.root_node_id, store.node_fetcher(story_line_id))
    else:
        result = await asyncio.to_thread(_build_bulk, store, story_line)
    return story_line, result


@router.get(
    "/story-graph/{story_line_id}",
    response_model=StoryGraphResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def get_story_graph(
    story_line_id: str,
    store: Annotated[StoryStore, Depends(get_story_store)],
    config: Annotated[AppConfig, Depends(get_config)],
) -> StoryGraphResponse:
    """Reconstruct the node/edge graph of a storyline from its root."""
    story_line_id = validate_story_line_id(story_line_id)
    try:
        story_line, result = await asyncio.wait_for(
            load_story_graph(store, story_line_id, config.graph_fetch_mode),
            timeout=config.request_timeout_seconds,
        )
    except StoryGraphError:
        raise
    except asyncio.TimeoutError as exc:
        logger.warning(
            "Story graph build exceeded deadline",
            extra={"story_line_id": story_line_id, "timeout": config.request_timeout_seconds},
        )
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Building the graph took longer than {config.request_timeout_seconds}s",
        ) from exc
    except Exception as exc:
        logger.exception("Failed to build story graph for %s", story_line_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build story graph: {exc}",
        ) from exc

    for warning in result.warnings:
        logger.warning(
            "Story graph warning: %s",
            warning.message,
            extra={
                "story_line_id": story_line_id,
                "node_id": warning.node_id,
                "code": warning.code,
            },
        )
    return StoryGraphResponse.from_result(story_line, result)


__all__ = ["router", "get_story_store", "validate_story_line_id", "load_story_graph"]
