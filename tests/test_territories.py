"""Tests for territories.py: sizing, grid arrangement and member placement."""

from __future__ import annotations

import logging
import math
import random

from knowmap.models import MapNode, Rect, Territory, TerritoryInput
from knowmap.territories import (
    CARD_HEIGHT,
    CARD_WIDTH,
    TERRITORY_HEADER,
    TERRITORY_PADDING,
    PackOptions,
    arrange_territories,
    fallback_position,
    pack_territories,
    position_node_in_territory,
    territory_dimensions,
)


def make_nodes(*ids: str) -> list[MapNode]:
    return [MapNode(id=i, label=i.upper()) for i in ids]


def member_ids(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i}" for i in range(count)]


def card(node: MapNode) -> Rect:
    return Rect(x=node.x, y=node.y, w=CARD_WIDTH, h=CARD_HEIGHT)


# ─── Sizing ───────────────────────────────────────────────────────────────────


def test_empty_territory_uses_minimum_size():
    assert territory_dimensions(0) == (400, 350)


def test_single_member_territory():
    # 2 * 180 + 20 + 2 * 20 = 420 wide; one row stays under the minimum height
    assert territory_dimensions(1) == (420, 350)


def test_height_grows_with_rows():
    assert territory_dimensions(8) == (420, 480)
    assert territory_dimensions(12) == (420, 680)


def test_odd_member_count_rounds_rows_up():
    assert territory_dimensions(7) == territory_dimensions(8)


# ─── Arrangement ──────────────────────────────────────────────────────────────


def test_territories_fill_three_column_grid():
    inputs = [
        TerritoryInput(name="Two", node_ids=member_ids("a", 2)),
        TerritoryInput(name="Twelve", node_ids=member_ids("b", 12)),
        TerritoryInput(name="One", node_ids=member_ids("c", 1)),
        TerritoryInput(name="Four", node_ids=member_ids("d", 4)),
    ]
    laid_out = arrange_territories(inputs)

    assert [(t.x, t.y) for t in laid_out] == [
        (100, 100),
        (570, 100),
        (1040, 100),
        # second row starts below the tallest box of the first row
        (100, 830),
    ]
    assert [(t.w, t.h) for t in laid_out] == [(420, 350), (420, 680), (420, 350), (420, 350)]


def test_arranged_territories_do_not_overlap():
    inputs = [TerritoryInput(name=f"T{i}", node_ids=member_ids(f"t{i}-", i * 2)) for i in range(7)]
    boxes = [t.bounds() for t in arrange_territories(inputs)]
    for i, a in enumerate(boxes):
        for b in boxes[i + 1:]:
            separated = a.right <= b.x or b.right <= a.x or a.bottom <= b.y or b.bottom <= a.y
            assert separated


def test_arrange_assigns_missing_ids_and_keeps_existing():
    inputs = [
        TerritoryInput(name="Fresh"),
        TerritoryInput(id="keep-me", name="Named"),
        TerritoryInput(name="Also fresh"),
    ]
    laid_out = arrange_territories(inputs)
    assert laid_out[1].id == "keep-me"
    assert laid_out[0].id and laid_out[2].id
    assert laid_out[0].id != laid_out[2].id
    assert [t.label for t in laid_out] == ["Fresh", "Named", "Also fresh"]


def test_arrange_accepts_placed_territories():
    stale = Territory(id="t1", label="Old", x=9999, y=9999, w=1, h=1, node_ids=["a"])
    (fresh,) = arrange_territories([stale])
    assert (fresh.x, fresh.y, fresh.w, fresh.h) == (100, 100, 420, 350)
    assert fresh.node_ids == ["a"]
    assert stale.x == 9999


def test_oversized_territory_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="knowmap.territories"):
        arrange_territories([TerritoryInput(name="Crowded", node_ids=member_ids("n", 14))])
    assert "Crowded" in caplog.text


# ─── Member placement ─────────────────────────────────────────────────────────


def test_member_slots_follow_card_grid():
    territory = Territory(id="t", x=100, y=100, w=420, h=480, node_ids=member_ids("n", 8))
    node = MapNode(id="n0")
    assert position_node_in_territory(node, territory, 0) == (120, 180)
    assert position_node_in_territory(node, territory, 1) == (320, 180)
    assert position_node_in_territory(node, territory, 3) == (320, 280)


def test_members_fit_inside_interior():
    for count in (1, 2, 5, 12):
        ids = member_ids("n", count)
        nodes = make_nodes(*ids)
        result = pack_territories([TerritoryInput(name="Box", node_ids=ids)], nodes)
        (territory,) = result.territories
        interior = territory.interior(TERRITORY_PADDING, TERRITORY_HEADER)

        assert result.clamp_events == []
        for n in nodes:
            assert interior.contains_rect(card(n)), (count, n.id)


def test_clamped_member_is_reported_not_raised(caplog):
    territory = Territory(id="small", label="Small", x=0, y=0, w=420, h=350)
    node = MapNode(id="late", label="Late Member")
    events = []

    with caplog.at_level(logging.WARNING, logger="knowmap.territories"):
        position = position_node_in_territory(node, territory, 6, on_clamp=events.append)

    assert position == (20, 250)
    assert len(events) == 1
    assert events[0].node_id == "late"
    assert events[0].territory_id == "small"
    assert events[0].original == (20, 380)
    assert events[0].clamped == (20, 250)
    assert "Late Member" in caplog.text


def test_territory_smaller_than_card_pins_to_interior_corner():
    territory = Territory(id="tiny", x=0, y=0, w=50, h=50)
    assert position_node_in_territory(MapNode(id="n"), territory, 0) == (20, 80)


# ─── pack_territories ─────────────────────────────────────────────────────────


def test_pack_sets_territory_id_on_members():
    nodes = make_nodes("a", "b", "c")
    result = pack_territories(
        [TerritoryInput(id="t1", name="One", node_ids=["a", "b"]), TerritoryInput(id="t2", name="Two", node_ids=["c"])],
        nodes,
    )
    assert [n.territory_id for n in nodes] == ["t1", "t1", "t2"]
    assert result.nodes is nodes
    assert result.orphan_ids == []


def test_node_in_two_territories_belongs_to_first():
    nodes = make_nodes("shared")
    result = pack_territories(
        [TerritoryInput(id="first", name="First", node_ids=["shared"]),
         TerritoryInput(id="second", name="Second", node_ids=["shared"])],
        nodes,
    )
    first = result.territories[0]
    assert nodes[0].territory_id == "first"
    assert first.interior(TERRITORY_PADDING, TERRITORY_HEADER).contains_rect(card(nodes[0]))


def test_orphans_land_in_fallback_region():
    nodes = make_nodes("a", "lost1", "lost2")
    nodes[1].territory_id = "stale"
    result = pack_territories(
        [TerritoryInput(name="Only", node_ids=["a"])],
        nodes,
        rng=random.Random(42),
    )

    assert result.orphan_ids == ["lost1", "lost2"]
    for n in nodes[1:]:
        assert math.isfinite(n.x) and math.isfinite(n.y)
        assert 100 <= n.x < 900
        assert 100 <= n.y < 700
        assert n.territory_id is None


def test_fallback_is_reproducible_with_seeded_rng():
    assert fallback_position(rng=random.Random(3)) == fallback_position(rng=random.Random(3))


def test_fallback_respects_custom_region():
    options = PackOptions(fallback_region=Rect(x=0, y=0, w=10, h=10))
    x, y = fallback_position(options, random.Random(1))
    assert 0 <= x < 10 and 0 <= y < 10


def test_dangling_member_ids_are_harmless():
    nodes = make_nodes("a")
    result = pack_territories([TerritoryInput(name="T", node_ids=["ghost", "a"])], nodes)
    (territory,) = result.territories
    # "a" keeps slot 1 of the card grid
    assert (nodes[0].x, nodes[0].y) == (territory.x + 220, territory.y + 80)
    assert territory.node_ids == ["ghost", "a"]

