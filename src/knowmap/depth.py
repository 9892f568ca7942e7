"""
Hierarchical depth for knowmap nodes.

A node's depth is its distance, counted in ``dependency``/``hierarchy``
edges, from the furthest root above it:

  - a node with no incoming structural edge is a root (depth 0)
  - otherwise depth = 1 + max(depth(parent)) over its structural parents

Knowledge maps come from text generation and are not guaranteed to be
acyclic.  Cycles collapse into a single tier: every node on a cycle gets the
same depth, equal to one more than the deepest parent feeding the cycle from
outside (or 0 when nothing outside feeds it).  Edges inside a cycle, self-loops
included, never add depth.  Nodes hanging off a cycle are still placed
relative to it, so ``A -> B -> C -> D -> B`` with ``D -> E`` gives
``A=0, B=C=D=1, E=2``.

The traversal walks parent links with an explicit stack instead of Python
recursion.  A node is marked "on stack" when the walk enters it and unmarked
when the cycle it belongs to has been fully explored, so a node reached again
through a different, non-cyclic path is credited with its real depth.
Finished results are cached per resolver, which keeps a full pass linear in
the size of the graph.

Chains longer than ``max_depth`` raise ``GraphTooDeep``; callers fall back
to treating every node as a root.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from .models import MapEdge, MapNode

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 1000


class LayoutError(Exception):
    """Base class for errors raised by the layout functions."""


class GraphTooDeep(LayoutError):
    """The walk above ``node_id`` went deeper than ``limit`` edges."""

    def __init__(self, node_id: str, limit: int):
        self.node_id = node_id
        self.limit = limit
        super().__init__(
            f"Depth resolution for node '{node_id}' exceeded the limit of {limit} levels"
        )


class DepthResolver:
    """Resolve depths over one fixed set of edges.

    Args:
        edges: All edges of the map.  Non-structural edges are ignored.
        node_ids: Known node ids.  When given, edges whose source or target
            is not a known node are skipped.  When omitted every id that
            appears in an edge is considered known.
        max_depth: Maximum length of the parent chain the walk may follow.
    """

    def __init__(
        self,
        edges: Iterable[MapEdge],
        node_ids: Optional[Iterable[str]] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        self.max_depth = max_depth

        known = set(node_ids) if node_ids is not None else None
        self._parents: dict[str, list[str]] = {}
        skipped = 0
        for edge in edges:
            if not edge.is_structural():
                continue
            if known is not None and (edge.source not in known or edge.target not in known):
                skipped += 1
                continue
            parents = self._parents.setdefault(edge.target, [])
            if edge.source not in parents:
                parents.append(edge.source)
        if skipped:
            logger.debug("Skipped %d structural edge(s) with dangling endpoints", skipped)

        # Walk state (Tarjan-style index/lowlink bookkeeping)
        self._index: dict[str, int] = {}
        self._lowlink: dict[str, int] = {}
        self._on_stack: set[str] = set()
        self._open: list[str] = []
        self._counter = 0

        # Finished results
        self._depth: dict[str, int] = {}

    def parents(self, node_id: str) -> list[str]:
        """Structural parents of ``node_id`` in edge order."""
        return self._parents.get(node_id, [])

    def depth(self, node_id: str) -> int:
        """Return the depth of ``node_id`` (0 for unknown or isolated nodes)."""
        cached = self._depth.get(node_id)
        if cached is not None:
            return cached
        try:
            self._walk(node_id)
        except GraphTooDeep:
            self._discard_partial()
            raise
        return self._depth[node_id]

    def depths(self, node_ids: Iterable[str]) -> dict[str, int]:
        """Return depths for several nodes, preserving the given order."""
        return {node_id: self.depth(node_id) for node_id in node_ids}

    # -----------------------------------------------------------------------
    # Walk
    # -----------------------------------------------------------------------

    def _enter(self, node_id: str) -> None:
        self._index[node_id] = self._counter
        self._lowlink[node_id] = self._counter
        self._counter += 1
        self._open.append(node_id)
        self._on_stack.add(node_id)

    def _walk(self, start: str) -> None:
        self._enter(start)
        stack: list[tuple[str, Iterator[str]]] = [(start, iter(self.parents(start)))]

        while stack:
            node_id, pending = stack[-1]

            descended = False
            for parent in pending:
                if parent not in self._index:
                    self._enter(parent)
                    stack.append((parent, iter(self.parents(parent))))
                    if len(stack) > self.max_depth + 1:
                        raise GraphTooDeep(start, self.max_depth)
                    descended = True
                    break
                if parent in self._on_stack:
                    # Back edge into the current walk: part of a cycle
                    self._lowlink[node_id] = min(self._lowlink[node_id], self._index[parent])
            if descended:
                continue

            stack.pop()
            if stack:
                child = stack[-1][0]
                self._lowlink[child] = min(self._lowlink[child], self._lowlink[node_id])

            if self._lowlink[node_id] == self._index[node_id]:
                self._close_tier(node_id)

    def _close_tier(self, head: str) -> None:
        """Pop the cycle rooted at ``head`` off the open list and score it."""
        members: list[str] = []
        while True:
            member = self._open.pop()
            self._on_stack.discard(member)
            members.append(member)
            if member == head:
                break

        member_set = set(members)
        outside = [
            self._depth[parent]
            for member in members
            for parent in self.parents(member)
            if parent not in member_set
        ]
        depth = 1 + max(outside) if outside else 0

        if len(members) > 1:
            logger.debug("Collapsed cycle of %d nodes to depth %d: %s", len(members), depth, sorted(members))
        for member in members:
            self._depth[member] = depth

    def _discard_partial(self) -> None:
        """Forget walk state for nodes that never got a depth."""
        for node_id in list(self._index):
            if node_id not in self._depth:
                del self._index[node_id]
                del self._lowlink[node_id]
        self._on_stack.clear()
        self._open.clear()


def compute_depth(
    node_id: str,
    edges: Iterable[MapEdge],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> int:
    """Compute the depth of a single node from scratch."""
    return DepthResolver(edges, max_depth=max_depth).depth(node_id)


def compute_depths(
    nodes: Iterable[MapNode],
    edges: Iterable[MapEdge],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, int]:
    """Compute depths for every node.

    Edges that reference unknown node ids are ignored.
    """
    node_list = list(nodes)
    resolver = DepthResolver(edges, node_ids=[n.id for n in node_list], max_depth=max_depth)
    return resolver.depths(n.id for n in node_list)
