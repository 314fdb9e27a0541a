"""Story graph reconstruction.

Walks a storyline's node relationships breadth-first from its root and
produces the node/edge element list consumed by the graph viewer.
Supports a pre-fetched lookup (``build``) and lazy per-node fetching
(``build_lazy``); both emit identical output for identical data.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    List,
    Optional,
    Protocol,
    Set,
    Tuple,
    Union,
)

from .errors import MalformedBranchData, RootNodeNotFound

logger = logging.getLogger(__name__)

NodeId = Union[int, str]

NEXT = "next"
BRANCH = "branch"

MALFORMED_BRANCH_DATA = "malformed_branch_data"
MISSING_NODE_REFERENCE = "missing_node_reference"
MALFORMED_NEXT_REFERENCE = "malformed_next_reference"


@dataclass(frozen=True)
class StoryLine:
    """Storyline header row; ``root_node_id`` may be None."""
    story_line_id: str
    title: str
    root_node_id: Optional[NodeId] = None


@dataclass(frozen=True)
class StoryNode:
    """Narrative node as read from the store.

    ``branch_ids`` is kept raw (list, JSON text or None) and only parsed
    during traversal so a bad blob affects a single node.
    """
    id: NodeId
    title: str = ""
    description: str = ""
    next_id: Optional[NodeId] = None
    branch_ids: Any = None


class NodeLookup(Protocol):
    """Anything with a dict-style ``get``; a plain dict qualifies."""

    def get(self, node_id: NodeId) -> Optional[StoryNode]: ...


NodeFetcher = Callable[[NodeId], Awaitable[Optional[StoryNode]]]


@dataclass(frozen=True)
class NodeElement:
    id: str
    name: str
    description: str


@dataclass(frozen=True)
class EdgeElement:
    id: str
    source: str
    target: str
    kind: str = NEXT


@dataclass(frozen=True)
class GraphWarning:
    """Non-fatal problem found on a single node."""
    code: str
    node_id: NodeId
    message: str


GraphElement = Union[NodeElement, EdgeElement]


@dataclass(frozen=True)
class GraphResult:
    elements: Tuple[GraphElement, ...]
    warnings: Tuple[GraphWarning, ...] = ()

    @property
    def nodes(self) -> List[NodeElement]:
        return [e for e in self.elements if isinstance(e, NodeElement)]

    @property
    def edges(self) -> List[EdgeElement]:
        return [e for e in self.elements if isinstance(e, EdgeElement)]


def _is_node_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return isinstance(value, int)


def parse_branch_ids(node_id: NodeId, raw: Any) -> List[NodeId]:
    """
    Normalize a node's branch blob into an ordered list of ids.

    Accepts None, an empty string, a list/tuple of ids, or JSON text encoding
    such a list. Raises MalformedBranchData for anything else.
    """
    if raw is None:
        return []
    value = raw
    if isinstance(raw, (bytes, bytearray)):
        value = raw.decode("utf-8", errors="replace")
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise MalformedBranchData(node_id, raw, f"invalid JSON ({exc.msg})") from exc
        if value is None:
            return []
    if not isinstance(value, (list, tuple)):
        raise MalformedBranchData(
            node_id, raw, f"expected a list of ids, got {type(value).__name__}"
        )
    for item in value:
        if not _is_node_id(item):
            raise MalformedBranchData(node_id, raw, f"invalid branch id {item!r}")
    return list(value)


def _escape_id(value: NodeId) -> str:
    return str(value).replace("\\", "\\\\").replace("-", "\\-")


def node_element_id(node_id: NodeId) -> str:
    return f"N{node_id}"


def edge_id(source: NodeId, target: NodeId, kind: str = NEXT) -> str:
    """
    Element id for an edge. Node ids are escaped so the unescaped hyphens
    only separate source, target and kind; node elements use the ``N``
    prefix, so no edge id can equal a node id.
    """
    base = f"E{_escape_id(source)}-{_escape_id(target)}"
    return base if kind == NEXT else f"{base}-{kind}"


@dataclass
class _Traversal:
    """Per-invocation traversal state; never shared between builds."""

    queue: Deque[NodeId] = field(default_factory=deque)
    visited: Set[NodeId] = field(default_factory=set)
    emitted: Dict[NodeId, StoryNode] = field(default_factory=dict)
    edge_keys: Set[Tuple[NodeId, NodeId, str]] = field(default_factory=set)
    elements: List[GraphElement] = field(default_factory=list)
    warnings: List[GraphWarning] = field(default_factory=list)

    def start(self, node: StoryNode) -> None:
        self._emit_node(node.id, node)

    def pop(self) -> Optional[StoryNode]:
        """Dequeue the next node to expand, or None if it must be skipped."""
        node_id = self.queue.popleft()
        if node_id in self.visited:
            return None
        self.visited.add(node_id)
        return self.emitted.get(node_id)

    def successors(self, node: StoryNode) -> List[Tuple[str, NodeId]]:
        """Outgoing references in emission order: next first, then branches."""
        refs: List[Tuple[str, NodeId]] = []
        if _is_node_id(node.next_id):
            refs.append((NEXT, node.next_id))
        elif node.next_id is not None:
            self.warnings.append(
                GraphWarning(
                    MALFORMED_NEXT_REFERENCE,
                    node.id,
                    f"invalid next id {node.next_id!r}",
                )
            )
        try:
            branch_ids = parse_branch_ids(node.id, node.branch_ids)
        except MalformedBranchData as exc:
            self.warnings.append(GraphWarning(MALFORMED_BRANCH_DATA, node.id, exc.message))
            branch_ids = []
        refs.extend((BRANCH, target) for target in branch_ids)
        return refs

    def expand(
        self,
        node: StoryNode,
        refs: List[Tuple[str, NodeId]],
        resolve: Callable[[NodeId], Optional[StoryNode]],
    ) -> None:
        for kind, target in refs:
            target_node = self.emitted.get(target) or resolve(target)
            if target_node is None:
                self.warnings.append(
                    GraphWarning(
                        MISSING_NODE_REFERENCE,
                        node.id,
                        f"{kind} reference to unknown node {target}",
                    )
                )
                continue
            # The resolved record's id is canonical, so "3" and 3 cannot split a node.
            target = target_node.id
            self._emit_edge(node.id, target, kind)
            if target not in self.emitted:
                self._emit_node(target, target_node)

    def result(self) -> GraphResult:
        return GraphResult(tuple(self.elements), tuple(self.warnings))

    def _emit_node(self, node_id: NodeId, node: StoryNode) -> None:
        self.emitted[node_id] = node
        self.queue.append(node_id)
        self.elements.append(
            NodeElement(
                id=node_element_id(node_id),
                name=node.title or "",
                description=node.description or "",
            )
        )

    def _emit_edge(self, source: NodeId, target: NodeId, kind: str) -> None:
        key = (source, target, kind)
        if key in self.edge_keys:
            return
        self.edge_keys.add(key)
        # A branch that duplicates the next edge keeps its own id.
        needs_suffix = kind != NEXT and (source, target, NEXT) in self.edge_keys
        self.elements.append(
            EdgeElement(
                id=edge_id(source, target, kind if needs_suffix else NEXT),
                source=node_element_id(source),
                target=node_element_id(target),
                kind=kind,
            )
        )


def build(root: NodeId, lookup: NodeLookup) -> GraphResult:
    """
    Build the element list for the graph reachable from ``root``.

    Raises RootNodeNotFound if ``root`` does not resolve in ``lookup``.
    Malformed branch lists and references to unknown nodes are reported in
    ``GraphResult.warnings``; any error raised by ``lookup`` propagates.
    """
    root_node = lookup.get(root)
    if root_node is None:
        raise RootNodeNotFound(f"Root node {root} not found", detail={"node_id": root})

    traversal = _Traversal()
    traversal.start(root_node)
    while traversal.queue:
        node = traversal.pop()
        if node is None:
            continue
        traversal.expand(node, traversal.successors(node), lookup.get)

    result = traversal.result()
    logger.debug(
        "Built story graph from root %s: %d nodes, %d edges, %d warnings",
        root,
        len(traversal.emitted),
        len(result.elements) - len(traversal.emitted),
        len(result.warnings),
    )
    return result


async def _fetch_all(fetch: NodeFetcher, node_ids: List[NodeId]) -> List[Optional[StoryNode]]:
    """Fetch concurrently; on any failure cancel and reap the rest before raising."""
    tasks = [asyncio.ensure_future(fetch(node_id)) for node_id in node_ids]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def build_lazy(root: NodeId, fetch: NodeFetcher) -> GraphResult:
    """
    Same traversal as ``build`` but resolving nodes through an async fetcher.

    The targets of one node are fetched concurrently and joined before that
    node's elements are emitted, so ordering matches ``build``. Each id is
    fetched at most once per invocation.
    """
    root_node = await fetch(root)
    if root_node is None:
        raise RootNodeNotFound(f"Root node {root} not found", detail={"node_id": root})

    cache: Dict[NodeId, Optional[StoryNode]] = {root: root_node, root_node.id: root_node}
    traversal = _Traversal()
    traversal.start(root_node)
    while traversal.queue:
        node = traversal.pop()
        if node is None:
            continue
        refs = traversal.successors(node)
        pending: List[NodeId] = []
        for _, target in refs:
            if target not in cache and target not in pending:
                pending.append(target)
        if pending:
            fetched = await _fetch_all(fetch, pending)
            cache.update(zip(pending, fetched))
        traversal.expand(node, refs, cache.get)

    return traversal.result()


__all__ = [
    "NodeId",
    "StoryLine",
    "StoryNode",
    "NodeLookup",
    "NodeFetcher",
    "NodeElement",
    "EdgeElement",
    "GraphWarning",
    "GraphResult",
    "parse_branch_ids",
    "node_element_id",
    "edge_id",
    "build",
    "build_lazy",
    "MALFORMED_BRANCH_DATA",
    "MISSING_NODE_REFERENCE",
    "MALFORMED_NEXT_REFERENCE",
]
