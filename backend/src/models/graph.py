"""Story graph response models."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..services.graph_builder import EdgeElement, GraphResult, GraphWarning, NodeElement, StoryLine


class StoryLineSummary(BaseModel):
    """Storyline header echoed back with the graph."""
    story_line_id: str = Field(..., description="Storyline identifier")
    title: str = Field(..., description="Display title")


class NodeData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Node id")
    name: Optional[str] = Field(default=None, description="Node title")
    description: Optional[str] = Field(default=None, description="Node description")


class EdgeData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Synthetic edge id, E<source>-<target>")
    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")


class NodeElementModel(BaseModel):
    data: NodeData


class EdgeElementModel(BaseModel):
    data: EdgeData


class GraphWarningModel(BaseModel):
    """Non-fatal problem found while building the graph."""
    code: str
    node_id: str
    message: str


class StoryGraphResponse(BaseModel):
    """The top-level payload returned by the story graph endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    story_line: StoryLineSummary = Field(..., alias="storyLine")
    elements: List[Union[NodeElementModel, EdgeElementModel]]
    warnings: List[GraphWarningModel] = Field(default_factory=list)

    @classmethod
    def from_result(cls, story_line: StoryLine, result: GraphResult) -> "StoryGraphResponse":
        elements: List[Union[NodeElementModel, EdgeElementModel]] = []
        for element in result.elements:
            if isinstance(element, NodeElement):
                elements.append(
                    NodeElementModel(
                        data=NodeData(
                            id=element.id, name=element.name, description=element.description
                        )
                    )
                )
            elif isinstance(element, EdgeElement):
                elements.append(
                    EdgeElementModel(
                        data=EdgeData(id=element.id, source=element.source, target=element.target)
                    )
                )
        return cls(
            story_line=StoryLineSummary(
                story_line_id=story_line.story_line_id, title=story_line.title
            ),
            elements=elements,
            warnings=[_warning_model(warning) for warning in result.warnings],
        )


def _warning_model(warning: GraphWarning) -> GraphWarningModel:
    return GraphWarningModel(
        code=warning.code, node_id=str(warning.node_id), message=warning.message
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
