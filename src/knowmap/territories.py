"""
Territory packing for knowmap.

Used after map generation, when the map arrives as raw nodes plus a list of
named territories with member ids but no geometry.  Three steps:

  1. Size: every territory is a 2-column grid of fixed-size node cards:

         width  = 2 * card_width + card_gap_x + 2 * padding     (>= 400)
         height = header + 2 * padding
                  + rows * card_height + (rows - 1) * card_gap_y  (>= 350)

     where ``rows = ceil(member_count / 2)``.

  2. Arrange: territories fill a 3-column grid left to right, then top to
     bottom.  Each column starts after the widest box of the columns before
     it, each row after the tallest box of the rows above it, plus 50px of
     spacing.  The first territory sits at (100, 100).

  3. Place members: the node at index ``i`` of a territory's ``node_ids``
     takes column ``i % 2`` and row ``i // 2``.  The position is then
     clamped so the whole card stays inside the padded interior.  Clamping
     is reported (log + optional callback) but never raised.

Nodes no territory claims are dropped somewhere inside the fallback region
(x in [100, 900), y in [100, 700)).  That fallback is random on purpose.

Node coordinates produced here are the card's top-left corner.
"""

from __future__ import annotations

import logging
import math
import random
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

from .models import MapNode, Rect, Territory, TerritoryInput

logger = logging.getLogger(__name__)


# --- Card and container constants ---

CARD_WIDTH = 180
CARD_HEIGHT = 80
CARD_GAP_X = 20
CARD_GAP_Y = 20
CARD_COLUMNS = 2

TERRITORY_PADDING = 20
TERRITORY_HEADER = 60
TERRITORY_MIN_WIDTH = 400
TERRITORY_MIN_HEIGHT = 350
TERRITORY_SPACING = 50
TERRITORY_COLUMNS = 3
TERRITORY_ORIGIN_X = 100
TERRITORY_ORIGIN_Y = 100

# Generation is asked for at most this many members per territory
MAX_TERRITORY_MEMBERS = 12

FALLBACK_REGION = Rect(x=100, y=100, w=800, h=600)


@dataclass
class PackOptions:
    """Geometry options for the territory packer."""
    card_width: float = CARD_WIDTH
    card_height: float = CARD_HEIGHT
    card_gap_x: float = CARD_GAP_X
    card_gap_y: float = CARD_GAP_Y
    card_columns: int = CARD_COLUMNS
    padding: float = TERRITORY_PADDING
    header: float = TERRITORY_HEADER
    min_width: float = TERRITORY_MIN_WIDTH
    min_height: float = TERRITORY_MIN_HEIGHT
    territory_spacing: float = TERRITORY_SPACING
    territory_columns: int = TERRITORY_COLUMNS
    origin_x: float = TERRITORY_ORIGIN_X
    origin_y: float = TERRITORY_ORIGIN_Y
    max_members: int = MAX_TERRITORY_MEMBERS
    fallback_region: Rect = field(default_factory=lambda: FALLBACK_REGION.model_copy())


@dataclass
class ClampEvent:
    """A member card that had to be pulled back inside its territory."""
    node_id: str
    territory_id: str
    original: tuple[float, float]
    clamped: tuple[float, float]


@dataclass
class PackResult:
    """Result of ``pack_territories``."""
    territories: list[Territory]
    nodes: list[MapNode]
    clamp_events: list[ClampEvent] = field(default_factory=list)
    orphan_ids: list[str] = field(default_factory=list)


ClampCallback = Callable[[ClampEvent], None]


# ---------------------------------------------------------------------------
# Sizing and arrangement
# ---------------------------------------------------------------------------

def territory_dimensions(
    member_count: int,
    options: Optional[PackOptions] = None,
) -> tuple[float, float]:
    """Return the (width, height) of a territory holding ``member_count`` cards."""
    opts = options or PackOptions()
    columns = max(1, opts.card_columns)
    rows = math.ceil(max(0, member_count) / columns)

    width = (
        opts.padding * 2
        + columns * opts.card_width
        + (columns - 1) * opts.card_gap_x
    )
    height = (
        opts.header
        + opts.padding * 2
        + rows * opts.card_height
        + max(0, rows - 1) * opts.card_gap_y
    )
    return (max(width, opts.min_width), max(height, opts.min_height))


def _territory_name(territory: Union[TerritoryInput, Territory]) -> str:
    if isinstance(territory, TerritoryInput):
        return territory.name
    return territory.label


def arrange_territories(
    territories: Iterable[Union[TerritoryInput, Territory]],
    options: Optional[PackOptions] = None,
) -> list[Territory]:
    """Size every territory and lay them out on the territory grid.

    Returns new ``Territory`` objects.  Inputs without an id get a fresh
    UUID; existing geometry is discarded.
    """
    opts = options or PackOptions()
    inputs = list(territories)
    columns = max(1, opts.territory_columns)

    dims = [territory_dimensions(len(t.node_ids), opts) for t in inputs]

    col_widths: dict[int, float] = {}
    row_heights: dict[int, float] = {}
    for index, (width, height) in enumerate(dims):
        col, row = index % columns, index // columns
        col_widths[col] = max(col_widths.get(col, 0), width)
        row_heights[row] = max(row_heights.get(row, 0), height)

    laid_out: list[Territory] = []
    for index, (source, (width, height)) in enumerate(zip(inputs, dims)):
        col, row = index % columns, index // columns
        x = opts.origin_x + sum(col_widths[c] for c in range(col)) + col * opts.territory_spacing
        y = opts.origin_y + sum(row_heights[r] for r in range(row)) + row * opts.territory_spacing

        if len(source.node_ids) > opts.max_members:
            logger.warning(
                "Territory '%s' has %d members (expected at most %d)",
                _territory_name(source), len(source.node_ids), opts.max_members,
            )

        territory = Territory(
            id=source.id or str(uuid.uuid4()),
            label=_territory_name(source),
            x=x,
            y=y,
            w=width,
            h=height,
            node_ids=list(source.node_ids),
            color=source.color,
            description=source.description,
        )
        laid_out.append(territory)
        logger.debug(
            "Territory '%s': %d nodes, %gx%g at (%g, %g)",
            territory.get_label(), len(territory.node_ids), width, height, x, y,
        )

    return laid_out


# ---------------------------------------------------------------------------
# Member placement
# ---------------------------------------------------------------------------

def position_node_in_territory(
    node: MapNode,
    territory: Territory,
    index: int,
    options: Optional[PackOptions] = None,
    on_clamp: Optional[ClampCallback] = None,
) -> tuple[float, float]:
    """Compute the top-left corner of ``node``'s card inside ``territory``.

    ``index`` is the node's slot in the territory's card grid.  The result
    keeps the card's far edges at least ``padding`` inside the territory.
    If the territory is too small to fit a card at all, the card is pinned
    to the interior's top-left corner.
    """
    opts = options or PackOptions()
    columns = max(1, opts.card_columns)
    col = index % columns
    row = index // columns

    x = territory.x + opts.padding + col * (opts.card_width + opts.card_gap_x)
    y = territory.y + opts.header + opts.padding + row * (opts.card_height + opts.card_gap_y)

    min_x = territory.x + opts.padding
    min_y = territory.y + opts.header + opts.padding
    max_x = territory.x + territory.w - opts.card_width - opts.padding
    max_y = territory.y + territory.h - opts.card_height - opts.padding

    final_x = max(min_x, min(x, max_x))
    final_y = max(min_y, min(y, max_y))

    if final_x != x or final_y != y:
        event = ClampEvent(
            node_id=node.id,
            territory_id=territory.id,
            original=(x, y),
            clamped=(final_x, final_y),
        )
        logger.warning(
            "Node '%s' clamped in territory '%s': (%g, %g) -> (%g, %g)",
            node.get_label(), territory.get_label(), x, y, final_x, final_y,
        )
        if on_clamp:
            on_clamp(event)

    return (final_x, final_y)


def fallback_position(
    options: Optional[PackOptions] = None,
    rng: Optional[random.Random] = None,
) -> tuple[float, float]:
    """A random spot inside the fallback region."""
    opts = options or PackOptions()
    region = opts.fallback_region
    source = rng or random
    return (
        region.x + source.random() * region.w,
        region.y + source.random() * region.h,
    )


def pack_territories(
    territories: Iterable[Union[TerritoryInput, Territory]],
    nodes: list[MapNode],
    options: Optional[PackOptions] = None,
    on_clamp: Optional[ClampCallback] = None,
    rng: Optional[random.Random] = None,
) -> PackResult:
    """Size and arrange territories, then place every node.

    Members are placed on their territory's card grid and get their
    ``territory_id`` set.  A node listed by several territories belongs to
    the first one.  Nodes no territory claims land at a random point of the
    fallback region and lose any stale ``territory_id``.  Nodes are mutated
    in place.
    """
    opts = options or PackOptions()
    laid_out = arrange_territories(territories, opts)

    owner: dict[str, tuple[Territory, int]] = {}
    for territory in laid_out:
        for index, node_id in enumerate(territory.node_ids):
            owner.setdefault(node_id, (territory, index))

    result = PackResult(territories=laid_out, nodes=nodes)

    def record(event: ClampEvent) -> None:
        result.clamp_events.append(event)
        if on_clamp:
            on_clamp(event)

    for node in nodes:
        owned = owner.get(node.id)
        if owned:
            territory, index = owned
            node.x, node.y = position_node_in_territory(node, territory, index, opts, record)
            node.territory_id = territory.id
        else:
            node.x, node.y = fallback_position(opts, rng)
            node.territory_id = None
            result.orphan_ids.append(node.id)
            logger.warning("Node '%s' has no territory assignment", node.get_label())

    logger.info(
        "Packed %d territories: %d nodes placed, %d outside territories",
        len(laid_out), len(nodes) - len(result.orphan_ids), len(result.orphan_ids),
    )
    return result
