"""Service layer: configuration, storage access and graph building."""

from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .errors import (
    InvalidInput,
    MalformedBranchData,
    RootNodeNotFound,
    StoryGraphError,
    StoryLineNotFound,
    UpstreamFetchFailure,
)
from .graph_builder import (
    EdgeElement,
    GraphResult,
    GraphWarning,
    NodeElement,
    StoryLine,
    StoryNode,
    build,
    build_lazy,
    parse_branch_ids,
)
from .story_store import StoryNodeIndex, StoryStore

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "StoryGraphError",
    "InvalidInput",
    "StoryLineNotFound",
    "RootNodeNotFound",
    "MalformedBranchData",
    "UpstreamFetchFailure",
    "StoryLine",
    "StoryNode",
    "NodeElement",
    "EdgeElement",
    "GraphWarning",
    "GraphResult",
    "build",
    "build_lazy",
    "parse_branch_ids",
    "StoryStore",
    "StoryNodeIndex",
]
