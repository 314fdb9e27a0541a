"""Pydantic models for data validation and serialization."""

from .graph import (
    EdgeData,
    EdgeElementModel,
    GraphWarningModel,
    NodeData,
    NodeElementModel,
    StoryGraphResponse,
    StoryLineSummary,
)

__all__ = [
    "StoryLineSummary",
    "NodeData",
    "EdgeData",
    "NodeElementModel",
    "EdgeElementModel",
    "GraphWarningModel",
    "StoryGraphResponse",
]
