"""Tests for renderer.py: PNG output."""

from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from knowmap.models import KnowledgeMap, MapEdge, MapMetadata, MapNode, Territory
from knowmap.renderer import MapRenderer, _resolve, _shade

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def sample_map(theme: str = "dark") -> KnowledgeMap:
    return KnowledgeMap(
        metadata=MapMetadata(title="Render Test"),
        theme=theme,
        nodes=[
            MapNode(id="a", label="Alpha", type="concept"),
            MapNode(id="b", label="A rather long label that will not fit on a card", type="event"),
            MapNode(id="c", label="Gamma"),
        ],
        edges=[
            MapEdge(id="ab", source="a", target="b", type="dependency"),
            MapEdge(id="bc", source="b", target="c", type="similarity"),
            MapEdge(id="cc", source="c", target="c", type="relationship"),
            MapEdge(id="dangling", source="a", target="ghost", type="hierarchy"),
        ],
        territories=[Territory(id="t", label="Greek", node_ids=["a", "b"])],
    )


def test_render_writes_png(tmp_path):
    output = tmp_path / "map.png"
    data = MapRenderer(scale=1.0).render(sample_map(), output_path=str(output), organize=True)

    assert data.startswith(PNG_SIGNATURE)
    assert output.read_bytes() == data


def test_render_organizes_before_drawing():
    kmap = sample_map()
    MapRenderer(scale=1.0).render(kmap, organize=True, mode="hierarchy")
    assert [n.y for n in kmap.nodes] == [100, 250, 100]


def test_light_theme():
    data = MapRenderer(scale=1.0).render(sample_map("light"), organize=True)
    assert data.startswith(PNG_SIGNATURE)


def test_empty_map_renders_placeholder_canvas():
    data = MapRenderer(scale=1.0).render(KnowledgeMap())
    with Image.open(BytesIO(data)) as img:
        assert img.size == (400, 300)


def test_scale_multiplies_image_size():
    small = MapRenderer(scale=1.0).render(KnowledgeMap())
    large = MapRenderer(scale=2.0).render(KnowledgeMap())
    with Image.open(BytesIO(small)) as a, Image.open(BytesIO(large)) as b:
        assert b.size == (a.size[0] * 2, a.size[1] * 2)


def test_unknown_theme_rejected():
    with pytest.raises(ValueError):
        MapRenderer().render(sample_map("neon"))


# ─── Colours ──────────────────────────────────────────────────────────────────


def test_named_and_invalid_colours_render():
    kmap = sample_map()
    kmap.nodes[0].color = "red"
    kmap.nodes[1].color = "not-a-colour"
    kmap.nodes[2].color = "#zzz"
    kmap.territories[0].color = "bogus"
    data = MapRenderer(scale=1.0).render(kmap, organize=True)
    assert data.startswith(PNG_SIGNATURE)


def test_resolve_keeps_parseable_colours():
    assert _resolve("red", "#000000") == "red"
    assert _resolve("#abc", "#000000") == "#abc"
    assert _resolve(None, "#123456") == "#123456"


def test_resolve_falls_back_on_garbage():
    assert _resolve("not-a-colour", "#123456") == "#123456"
    assert _resolve("#zzz", "#123456") == "#123456"


def test_shade_accepts_named_colour():
    assert _shade("red", 0.5) == "#7f0000"
