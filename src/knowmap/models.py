"""
Data models for knowmap: the knowledge map document.

A knowledge map is a flat document with three collections that reference
each other by id:

    KnowledgeMap
    ├── nodes        - labelled concepts (the atomic unit)
    ├── edges        - directed, typed relationships between nodes
    └── territories  - named rectangles that contain a subset of nodes

Territories own their members through an explicit ``node_ids`` list.  A node
may also carry a ``territory_id`` hint; the membership list is authoritative
when both are present.

This module also defines the two closed vocabularies of the wire format:

Node types                      Edge types
    concept   - an idea            relationship - generic association
    entity    - a thing            dependency   - target needs source first
    event     - something that     similarity   - the two are alike
                happens            hierarchy    - source contains target
    location  - a place
    person    - a person

Only ``dependency`` and ``hierarchy`` edges are *structural*: they decide a
node's depth in the hierarchical layout.  Every other edge type is carried
through untouched.

Field names follow Python conventions; the camelCase names used by the
browser client (``territoryId``, ``nodeIds``) are accepted on input and
produced by ``to_wire()``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

NodeType = Literal["concept", "entity", "event", "location", "person"]
EdgeType = Literal["relationship", "dependency", "similarity", "hierarchy"]
NodeStatus = Literal["todo", "in-progress", "done"]

NODE_TYPES: tuple[str, ...] = ("concept", "entity", "event", "location", "person")
EDGE_TYPES: tuple[str, ...] = ("relationship", "dependency", "similarity", "hierarchy")

# Edge types that participate in depth computation
STRUCTURAL_EDGE_TYPES: frozenset[str] = frozenset({"dependency", "hierarchy"})


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class Point(BaseModel):
    """A position in world coordinates."""
    x: float = 0.0
    y: float = 0.0


class Rect(BaseModel):
    """An axis-aligned rectangle given by its top-left corner and size."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def contains_rect(self, other: "Rect") -> bool:
        """True when ``other`` lies entirely inside this rectangle."""
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------

class MapNode(BaseModel):
    """A node: a single labelled point in the knowledge map.

    ``x`` and ``y`` are outputs of the layout functions: every layout pass
    overwrites them, and a drag gesture mutates them continuously.

    ``type`` is optional.  Untyped nodes share a single default bucket when
    the hierarchical layout groups nodes by type.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    x: float = 0.0
    y: float = 0.0
    type: Optional[NodeType] = None
    territory_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("territory_id", "territoryId"),
        serialization_alias="territoryId",
    )
    note: str = ""
    status: NodeStatus = "todo"
    size: Optional[float] = None
    color: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def get_label(self) -> str:
        """Return ``label`` if set, otherwise the id."""
        return self.label if self.label else self.id


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------

class MapEdge(BaseModel):
    """A directed, typed relationship between two nodes.

    Self-loops (``source == target``) are rejected by upstream validation,
    but the layout functions tolerate them.
    """
    id: str
    source: str
    target: str
    type: Optional[EdgeType] = None
    label: Optional[str] = None
    weight: Optional[float] = None
    color: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def is_structural(self) -> bool:
        """True for the edge types that decide hierarchical depth."""
        return self.type in STRUCTURAL_EDGE_TYPES


# ---------------------------------------------------------------------------
# Territory
# ---------------------------------------------------------------------------

class TerritoryInput(BaseModel):
    """A territory as produced by map generation: a name and its members.

    Ids and geometry are assigned by the territory packer.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(validation_alias=AliasChoices("name", "label"))
    node_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("node_ids", "nodeIds"),
        serialization_alias="nodeIds",
    )
    color: Optional[str] = None
    description: Optional[str] = None


class Territory(BaseModel):
    """A territory: a named rectangular container for a subset of nodes.

    Membership
    ----------
    ``node_ids`` is ordered.  The territory packer uses the position of a
    node id in this list as the node's slot in the territory's card grid.

    Geometry
    --------
    ``x``/``y`` is the top-left corner, ``w``/``h`` the size.  The top
    ``header`` pixels hold the territory title; nodes live in the padded
    interior below it (see ``interior()``).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = Field(default="", validation_alias=AliasChoices("label", "name"))
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0
    node_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("node_ids", "nodeIds"),
        serialization_alias="nodeIds",
    )
    color: Optional[str] = None
    description: Optional[str] = None

    def get_label(self) -> str:
        """Return ``label`` if set, otherwise the id."""
        return self.label if self.label else self.id

    def contains_node(self, node_id: str) -> bool:
        return node_id in self.node_ids

    def bounds(self) -> Rect:
        return Rect(x=self.x, y=self.y, w=self.w, h=self.h)

    def interior(self, padding: float, header: float) -> Rect:
        """The rectangle member cards must stay inside."""
        return Rect(
            x=self.x + padding,
            y=self.y + header + padding,
            w=self.w - 2 * padding,
            h=self.h - header - 2 * padding,
        )


# ---------------------------------------------------------------------------
# Map (root document)
# ---------------------------------------------------------------------------

class MapMetadata(BaseModel):
    """Optional descriptive metadata attached by map generation."""
    title: Optional[str] = None
    description: Optional[str] = None
    created: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    version: Optional[str] = None


class KnowledgeMap(BaseModel):
    """The root document: nodes, edges and territories.

    The layout functions borrow the node list and mutate coordinates in
    place; they never add or remove entries.  Structural edits (adding and
    deleting nodes) go through the helpers below so edges and territory
    memberships stay consistent.
    """
    nodes: list[MapNode] = Field(default_factory=list)
    edges: list[MapEdge] = Field(default_factory=list)
    territories: list[Territory] = Field(default_factory=list)
    metadata: Optional[MapMetadata] = None
    theme: str = "dark"  # "dark" or "light"

    def get_title(self) -> str:
        if self.metadata and self.metadata.title:
            return self.metadata.title
        return "Knowledge Map"

    def get_node(self, node_id: str) -> Optional[MapNode]:
        """Look up a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_territory(self, territory_id: str) -> Optional[Territory]:
        """Look up a territory by id."""
        for territory in self.territories:
            if territory.id == territory_id:
                return territory
        return None

    def territory_for_node(self, node_id: str) -> Optional[Territory]:
        """Return the first territory whose membership lists ``node_id``."""
        for territory in self.territories:
            if territory.contains_node(node_id):
                return territory
        return None

    def add_node(self, node: MapNode) -> MapNode:
        """Append a node, registering it with its territory if it names one."""
        if self.get_node(node.id) is not None:
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes.append(node)
        if node.territory_id:
            territory = self.get_territory(node.territory_id)
            if territory and not territory.contains_node(node.id):
                territory.node_ids.append(node.id)
        return node

    def delete_node(self, node_id: str) -> bool:
        """Delete a node, every edge touching it, and its memberships.

        Returns False if no node has that id.
        """
        node = self.get_node(node_id)
        if node is None:
            return False

        self.nodes.remove(node)
        self.edges = [
            e for e in self.edges
            if e.source != node_id and e.target != node_id
        ]
        for territory in self.territories:
            territory.node_ids = [nid for nid in territory.node_ids if nid != node_id]
        return True

    def to_wire(self) -> dict[str, Any]:
        """Dump using the browser client's camelCase field names."""
        return self.model_dump(by_alias=True, exclude_none=True)
