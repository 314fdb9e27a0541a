"""Domain errors raised while resolving and building story graphs."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class StoryGraphError(Exception):
    """Base error carrying the HTTP mapping used by the API layer."""

    error = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InvalidInput(StoryGraphError):
    """Identifier is empty or too long."""

    error = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class StoryLineNotFound(StoryGraphError):
    error = "story_line_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class RootNodeNotFound(StoryGraphError):
    """The storyline has no root, or its root id is absent from the node set."""

    error = "root_node_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class MalformedBranchData(StoryGraphError):
    """
    A node's branch list could not be parsed.

    Recoverable: the builder catches this and reports it as a warning.
    """

    error = "malformed_branch_data"

    def __init__(self, node_id: Any, raw: Any, reason: str) -> None:
        super().__init__(
            f"Malformed branch data on node {node_id}: {reason}",
            detail={"node_id": node_id, "raw": repr(raw)},
        )
        self.node_id = node_id
        self.raw = raw
        self.reason = reason


class UpstreamFetchFailure(StoryGraphError):
    """The data store failed while resolving storyline or node data."""

    error = "upstream_fetch_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "StoryGraphError",
    "InvalidInput",
    "StoryLineNotFound",
    "RootNodeNotFound",
    "MalformedBranchData",
    "UpstreamFetchFailure",
]
