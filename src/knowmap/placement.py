"""
Hierarchical placement for knowmap.

Two passes over the node list:

  1. Y-axis: hierarchical depth (see ``depth.py``).  Every node at depth
     ``d`` sits on the tier ``start_y + d * vertical_spacing``.
  2. X-axis: semantic grouping.  Within a tier, nodes are partitioned into
     groups and the groups are laid out left to right:

         x = start_x
             + group_index * group_spacing
             + (nodes_in_earlier_groups + index_within_group) * horizontal_spacing

Grouping key:
  - If any node in the map has territory membership, nodes are grouped by
    their *first* territory id; nodes without one share a catch-all group.
  - Otherwise nodes are grouped by ``type`` (untyped nodes share the
    ``"default"`` bucket).

Group order is first-encounter order while scanning the tier in the
original node order, never alphabetical.  Nodes within a group keep their
original order.  The formula gives every node of a tier a distinct slot, so
x values in a tier never collide.

Spacing constants:
  - 150px between tiers, 200px between neighbouring nodes
  - 100px extra between groups
  - first node at (100, 100)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .depth import DEFAULT_MAX_DEPTH, compute_depths
from .models import MapEdge, MapNode, Territory

logger = logging.getLogger(__name__)


# --- Spacing constants ---

VERTICAL_SPACING = 150
HORIZONTAL_SPACING = 200
GROUP_SPACING = 100
START_X = 100
START_Y = 100

DEFAULT_GROUP = "default"


@dataclass
class LayoutOptions:
    """Layout options for the hierarchical placement."""
    vertical_spacing: float = VERTICAL_SPACING
    horizontal_spacing: float = HORIZONTAL_SPACING
    group_spacing: float = GROUP_SPACING
    start_x: float = START_X
    start_y: float = START_Y
    max_depth: int = DEFAULT_MAX_DEPTH


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def build_membership(
    nodes: Iterable[MapNode],
    territories: Optional[Iterable[Territory]] = None,
) -> dict[str, list[str]]:
    """Map each node id to the ordered list of territories it belongs to.

    Territory membership lists come first, in territory order.  A node's own
    ``territory_id`` is appended after them.  When ``territories`` is given,
    ids that do not name a known territory are dropped; without it the
    node's ``territory_id`` is taken as is.
    """
    node_list = list(nodes)
    node_ids = {n.id for n in node_list}
    membership: dict[str, list[str]] = {}

    known: Optional[set[str]] = None
    if territories is not None:
        territory_list = list(territories)
        known = {t.id for t in territory_list}
        for territory in territory_list:
            for node_id in territory.node_ids:
                if node_id not in node_ids:
                    continue
                owned = membership.setdefault(node_id, [])
                if territory.id not in owned:
                    owned.append(territory.id)

    for node in node_list:
        territory_id = node.territory_id
        if not territory_id:
            continue
        if known is not None and territory_id not in known:
            logger.debug("Node %s names unknown territory %s", node.id, territory_id)
            continue
        owned = membership.setdefault(node.id, [])
        if territory_id not in owned:
            owned.append(territory_id)

    return membership


def group_key(
    node: MapNode,
    membership: dict[str, list[str]],
    group_by_territory: bool,
) -> tuple[str, Optional[str]]:
    """The key of the group ``node`` falls into."""
    if group_by_territory:
        owned = membership.get(node.id)
        return ("territory", owned[0] if owned else None)
    return ("type", node.type or DEFAULT_GROUP)


def group_nodes(
    nodes: Iterable[MapNode],
    membership: dict[str, list[str]],
    group_by_territory: bool,
) -> list[list[MapNode]]:
    """Partition nodes into groups, in first-encounter order."""
    groups: dict[tuple[str, Optional[str]], list[MapNode]] = {}
    for node in nodes:
        key = group_key(node, membership, group_by_territory)
        groups.setdefault(key, []).append(node)
    return list(groups.values())


def tier_positions(
    tier_nodes: list[MapNode],
    membership: dict[str, list[str]],
    group_by_territory: bool,
    options: LayoutOptions,
) -> dict[str, float]:
    """Compute x for every node of a single tier."""
    positions: dict[str, float] = {}
    nodes_before = 0
    for group_index, group in enumerate(group_nodes(tier_nodes, membership, group_by_territory)):
        group_offset = group_index * options.group_spacing
        for index_in_group, node in enumerate(group):
            slot = nodes_before + index_in_group
            positions.setdefault(
                node.id,
                options.start_x + group_offset + slot * options.horizontal_spacing,
            )
        nodes_before += len(group)
    return positions


def compute_x(
    node: MapNode,
    same_depth_nodes: list[MapNode],
    membership: Optional[dict[str, list[str]]] = None,
    group_by_territory: Optional[bool] = None,
    options: Optional[LayoutOptions] = None,
) -> float:
    """Compute the x position of ``node`` within its tier.

    Args:
        node: The node to place.
        same_depth_nodes: Snapshot of every node on the same tier, in the
            original node order.  ``node`` is appended if missing.
        membership: Territory membership (see ``build_membership``).
            Defaults to the ``territory_id`` values of the tier alone, so the
            territory-or-type choice then only looks at this tier.  To get
            the whole-map rule that ``place_nodes`` applies, pass
            ``build_membership(all_nodes, territories)``.
        group_by_territory: Whether to group by territory rather than type.
            Defaults to "some node in ``membership`` has a territory".
        options: Spacing options.
    """
    opts = options or LayoutOptions()
    tier = list(same_depth_nodes)
    if all(n.id != node.id for n in tier):
        tier.append(node)
    if membership is None:
        membership = build_membership(tier)
    if group_by_territory is None:
        group_by_territory = any(membership.values())
    return tier_positions(tier, membership, group_by_territory, opts)[node.id]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_depths(
    nodes: list[MapNode],
    depths: dict[str, int],
    territories: Optional[Iterable[Territory]] = None,
    options: Optional[LayoutOptions] = None,
) -> list[MapNode]:
    """Set y from precomputed depths, then x from grouping.

    Nodes missing from ``depths`` are placed on the root tier.
    """
    opts = options or LayoutOptions()

    tiers: dict[int, list[MapNode]] = {}
    for node in nodes:
        depth = depths.get(node.id, 0)
        node.y = opts.start_y + depth * opts.vertical_spacing
        tiers.setdefault(depth, []).append(node)

    membership = build_membership(nodes, territories)
    group_by_territory = any(membership.values())

    for tier in tiers.values():
        positions = tier_positions(tier, membership, group_by_territory, opts)
        for node in tier:
            node.x = positions[node.id]

    logger.debug(
        "Placed %d nodes on %d tiers (grouped by %s)",
        len(nodes), len(tiers), "territory" if group_by_territory else "type",
    )
    return nodes


def place_nodes(
    nodes: list[MapNode],
    edges: list[MapEdge],
    territories: Optional[Iterable[Territory]] = None,
    options: Optional[LayoutOptions] = None,
) -> list[MapNode]:
    """Position every node by depth (y) and group (x), in place.

    Returns the same node objects.  Raises ``GraphTooDeep`` when a parent
    chain is longer than ``options.max_depth``.
    """
    opts = options or LayoutOptions()
    depths = compute_depths(nodes, edges, max_depth=opts.max_depth)
    return apply_depths(nodes, depths, territories, opts)
