"""
Drag constraint for knowmap nodes.

While a node is being dragged, every pointer move produces a candidate
card centre ``pointer - grab_offset``, where the grab offset is the distance
from the pointer to the card's centre captured once when the drag starts.

If a territory lists the node as a member, the candidate centre is clamped
to the territory interior so the whole card stays inside:

    x in [t.x + padding + card_width / 2,  t.x + t.w - card_width / 2 - padding]
    y in [t.y + header + padding + card_height / 2,
          t.y + t.h - card_height / 2 - padding]

``clamp_to_territory`` and ``clamp_drag`` work on card centres.
``DragSession`` works on a ``KnowledgeMap`` whose node ``x``/``y`` are the
card's top-left corner (the convention of the territory packer and the
renderer) and converts at the edges.

Nodes outside every territory move freely.  Territory lookup is a scan over
the territory list; the clamp itself is constant time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .models import KnowledgeMap, MapNode, Point, Territory
from .territories import CARD_HEIGHT, CARD_WIDTH, TERRITORY_HEADER, TERRITORY_PADDING

logger = logging.getLogger(__name__)


@dataclass
class DragOptions:
    """Card footprint and territory chrome used by the clamp."""
    card_width: float = CARD_WIDTH
    card_height: float = CARD_HEIGHT
    padding: float = TERRITORY_PADDING
    header: float = TERRITORY_HEADER


def find_owning_territory(node_id: str, territories: Iterable[Territory]) -> Optional[Territory]:
    """Return the first territory whose membership lists ``node_id``."""
    for territory in territories:
        if territory.contains_node(node_id):
            return territory
    return None


def _clamp(value: float, low: float, high: float) -> float:
    # A territory narrower than a card pins the card to the low edge
    return max(low, min(value, high))


def clamp_to_territory(
    x: float,
    y: float,
    territory: Territory,
    options: Optional[DragOptions] = None,
) -> tuple[float, float, bool]:
    """Clamp a card centre into ``territory``.

    Returns ``(x, y, clamped)`` where ``clamped`` tells whether the point
    had to move.
    """
    opts = options or DragOptions()
    half_w = opts.card_width / 2
    half_h = opts.card_height / 2

    cx = _clamp(
        x,
        territory.x + opts.padding + half_w,
        territory.x + territory.w - half_w - opts.padding,
    )
    cy = _clamp(
        y,
        territory.y + opts.header + opts.padding + half_h,
        territory.y + territory.h - half_h - opts.padding,
    )
    return (cx, cy, cx != x or cy != y)


def clamp_drag(
    node: MapNode,
    territories: Iterable[Territory],
    pointer: Point,
    grab_offset: Point,
    options: Optional[DragOptions] = None,
) -> Point:
    """Compute the constrained card centre of ``node`` for one pointer move.

    ``pointer``, ``grab_offset`` and the result are in centre coordinates.
    """
    x = pointer.x - grab_offset.x
    y = pointer.y - grab_offset.y

    territory = find_owning_territory(node.id, territories)
    if territory is None:
        return Point(x=x, y=y)

    cx, cy, _ = clamp_to_territory(x, y, territory, options)
    return Point(x=cx, y=cy)


BoundaryCallback = Callable[[MapNode, Territory], None]


class DragSession:
    """State of a single drag gesture over a knowledge map.

    ``start`` captures the grab offset, ``move`` applies the clamped
    position to the node, ``end`` commits it.  When a move hits a territory
    boundary, ``on_boundary_hit`` fires once; it stays quiet until the node
    moves back inside or the drag ends.

    Node coordinates are card top-left corners, so a drag that does not move
    the pointer leaves a node exactly where the packer put it.  The grab
    offset is taken from the card centre, which is what gets clamped.

    The node is looked up by id on every move, so deleting it mid-drag is
    safe: moves become no-ops and ``end`` still clears the boundary state.
    """

    def __init__(
        self,
        knowledge_map: KnowledgeMap,
        options: Optional[DragOptions] = None,
        on_boundary_hit: Optional[BoundaryCallback] = None,
    ):
        self.map = knowledge_map
        self.options = options or DragOptions()
        self.on_boundary_hit = on_boundary_hit
        self.node_id: Optional[str] = None
        self.grab_offset = Point()
        self._at_boundary: set[str] = set()

    @property
    def active(self) -> bool:
        return self.node_id is not None

    def is_at_boundary(self, node_id: str) -> bool:
        return node_id in self._at_boundary

    def _centre(self, node: MapNode) -> Point:
        return Point(
            x=node.x + self.options.card_width / 2,
            y=node.y + self.options.card_height / 2,
        )

    def _place(self, node: MapNode, cx: float, cy: float) -> Point:
        node.x = cx - self.options.card_width / 2
        node.y = cy - self.options.card_height / 2
        return Point(x=node.x, y=node.y)

    def start(self, node_id: str, pointer: Point) -> bool:
        """Begin dragging ``node_id``.  Returns False for an unknown node."""
        node = self.map.get_node(node_id)
        if node is None:
            logger.warning("Cannot drag unknown node %s", node_id)
            return False
        if self.active:
            self.end()
        self.node_id = node_id
        centre = self._centre(node)
        self.grab_offset = Point(x=pointer.x - centre.x, y=pointer.y - centre.y)
        return True

    def move(self, pointer: Point) -> Optional[Point]:
        """Move the dragged node towards ``pointer``.

        Returns the node's new top-left corner, or None when no drag is
        active or the node no longer exists.
        """
        if self.node_id is None:
            return None
        node = self.map.get_node(self.node_id)
        if node is None:
            return None

        cx = pointer.x - self.grab_offset.x
        cy = pointer.y - self.grab_offset.y

        territory = self.map.territory_for_node(node.id)
        if territory is None:
            self._at_boundary.discard(node.id)
            return self._place(node, cx, cy)

        cx, cy, clamped = clamp_to_territory(cx, cy, territory, self.options)
        position = self._place(node, cx, cy)
        if clamped:
            if node.id not in self._at_boundary:
                self._at_boundary.add(node.id)
                logger.info(
                    "Node '%s' reached the edge of territory '%s'",
                    node.get_label(), territory.get_label(),
                )
                if self.on_boundary_hit:
                    self.on_boundary_hit(node, territory)
        else:
            self._at_boundary.discard(node.id)
        return position

    def end(self) -> Optional[Point]:
        """Finish the drag.  Returns the node's top-left corner, if it still exists."""
        node_id = self.node_id
        self.node_id = None
        self.grab_offset = Point()
        if node_id is None:
            return None
        self._at_boundary.discard(node_id)

        node = self.map.get_node(node_id)
        if node is None:
            return None
        return Point(x=node.x, y=node.y)
