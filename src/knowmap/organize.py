"""
Organize a whole knowledge map.

Picks one of the two layout paths and runs it over a ``KnowledgeMap`` in
place:

  - ``territories``  boxes are sized and arranged, and every member card
    is placed inside its box (see ``territories.py``).
  - ``hierarchy``    depth tiers on y and grouping on x
    (see ``placement.py``).  If the parent chains are too deep to resolve,
    the map is laid out as if every node were a root.
  - ``auto``         ``territories`` when the map has any territory,
    ``hierarchy`` otherwise.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from .depth import GraphTooDeep
from .models import KnowledgeMap
from .placement import LayoutOptions, apply_depths, place_nodes
from .territories import ClampCallback, ClampEvent, PackOptions, pack_territories

logger = logging.getLogger(__name__)

LAYOUT_MODES = ("auto", "hierarchy", "territories")


@dataclass
class OrganizeReport:
    """What ``organize_map`` did."""
    mode: str
    node_count: int
    depth_fallback: bool = False
    clamp_events: list[ClampEvent] = field(default_factory=list)
    orphan_ids: list[str] = field(default_factory=list)


def resolve_mode(knowledge_map: KnowledgeMap, mode: str = "auto") -> str:
    """Turn ``auto`` into a concrete layout mode."""
    if mode not in LAYOUT_MODES:
        valid = ", ".join(LAYOUT_MODES)
        raise ValueError(f"Unknown layout mode '{mode}'. Valid modes: {valid}")
    if mode == "auto":
        return "territories" if knowledge_map.territories else "hierarchy"
    return mode


def organize_map(
    knowledge_map: KnowledgeMap,
    mode: str = "auto",
    layout_options: Optional[LayoutOptions] = None,
    pack_options: Optional[PackOptions] = None,
    on_clamp: Optional[ClampCallback] = None,
    rng: Optional[random.Random] = None,
) -> OrganizeReport:
    """Lay out ``knowledge_map`` in place and report what happened.

    Args:
        knowledge_map: The map to organize.
        mode: "auto", "hierarchy" or "territories".
        layout_options: Spacing for the hierarchy path.
        pack_options: Geometry for the territory path.
        on_clamp: Called for every member card pulled back into its territory.
        rng: Random source for the orphan fallback of the territory path.
    """
    chosen = resolve_mode(knowledge_map, mode)
    report = OrganizeReport(mode=chosen, node_count=len(knowledge_map.nodes))

    if not knowledge_map.nodes and chosen == "hierarchy":
        return report

    if chosen == "territories":
        result = pack_territories(
            knowledge_map.territories,
            knowledge_map.nodes,
            options=pack_options,
            on_clamp=on_clamp,
            rng=rng,
        )
        knowledge_map.territories = result.territories
        report.clamp_events = result.clamp_events
        report.orphan_ids = result.orphan_ids
        return report

    opts = layout_options or LayoutOptions()
    try:
        place_nodes(knowledge_map.nodes, knowledge_map.edges, knowledge_map.territories, opts)
    except GraphTooDeep as e:
        logger.warning("%s; placing every node on the root tier", e)
        apply_depths(knowledge_map.nodes, {}, knowledge_map.territories, opts)
        report.depth_fallback = True

    return report
