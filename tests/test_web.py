"""Tests for web.py: the aiohttp layout API."""

from __future__ import annotations

import asyncio

from aiohttp import test_utils

from knowmap.config import Settings
from knowmap.web import create_app

CHAIN = {
    "nodes": [
        {"id": "a", "label": "A", "type": "concept"},
        {"id": "b", "label": "B", "type": "concept"},
    ],
    "edges": [{"id": "ab", "source": "a", "target": "b", "type": "dependency"}],
}


def request(method: str, path: str, settings: Settings | None = None, **kwargs) -> tuple[int, dict]:
    async def go():
        app = create_app(settings or Settings())
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.request(method, path, **kwargs)
            return resp.status, await resp.json()

    return asyncio.run(go())


def test_health():
    status, body = request("GET", "/api/health")
    assert status == 200
    assert body["success"] is True
    assert body["status"] == "healthy"


def test_validate_accepts_good_map():
    status, body = request("POST", "/api/validate", json=CHAIN)
    assert status == 200
    assert body["success"] is True
    assert body["data"]["nodes"][0]["id"] == "a"


def test_validate_rejects_bad_node_type():
    status, body = request("POST", "/api/validate", json={"nodes": [{"id": "a", "type": "spaceship"}]})
    assert status == 400
    assert body["success"] is False
    assert body["error"] == "Invalid map structure"
    assert body["details"]


def test_layout_hierarchy():
    status, body = request("POST", "/api/layout", json=CHAIN)
    assert status == 200
    nodes = {n["id"]: n for n in body["data"]["nodes"]}
    assert (nodes["a"]["x"], nodes["a"]["y"]) == (100, 100)
    assert (nodes["b"]["x"], nodes["b"]["y"]) == (100, 250)
    assert body["metadata"]["mode"] == "hierarchy"
    assert body["metadata"]["depthFallback"] is False


def test_layout_mode_from_query():
    payload = dict(CHAIN, territories=[{"id": "t", "name": "T", "nodeIds": ["a", "b"]}])
    status, body = request("POST", "/api/layout?mode=hierarchy", json=payload)
    assert status == 200
    assert body["metadata"]["mode"] == "hierarchy"


def test_layout_falls_back_when_too_deep():
    status, body = request("POST", "/api/layout", settings=Settings(max_depth=0), json=CHAIN)
    assert status == 200
    assert body["metadata"]["depthFallback"] is True
    assert {n["y"] for n in body["data"]["nodes"]} == {100}


def test_layout_rejects_unknown_mode():
    status, body = request("POST", "/api/layout", json=dict(CHAIN, mode="spiral"))
    assert status == 400
    assert "spiral" in body["error"]


def test_layout_rejects_invalid_json():
    status, body = request(
        "POST", "/api/layout", data="{not json", headers={"Content-Type": "application/json"},
    )
    assert status == 400
    assert body["success"] is False


def test_layout_rejects_non_object_body():
    status, body = request("POST", "/api/layout", json=[1, 2, 3])
    assert status == 400
    assert body["success"] is False


def test_pack():
    payload = {
        "nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}, {"id": "c", "label": "C"}],
        "territories": [{"name": "Pair", "nodeIds": ["a", "b"]}],
    }
    status, body = request("POST", "/api/pack", json=payload)
    assert status == 200
    (territory,) = body["data"]["territories"]
    assert (territory["x"], territory["y"], territory["w"], territory["h"]) == (100, 100, 420, 350)
    assert territory["label"] == "Pair"
    nodes = {n["id"]: n for n in body["data"]["nodes"]}
    assert nodes["a"]["territoryId"] == territory["id"]
    assert body["metadata"]["orphans"] == ["c"]


def test_pack_rejects_bad_territory():
    status, body = request("POST", "/api/pack", json={"nodes": [], "territories": [{"nodeIds": []}]})
    assert status == 400
    assert body["details"]


def test_drag_clamps_member():
    payload = {
        "node": {"id": "a"},
        "territories": [{"id": "t", "name": "T", "x": 100, "y": 100, "w": 420, "h": 350, "nodeIds": ["a"]}],
        "pointer": {"x": 5000, "y": -5000},
        "grabOffset": {"x": 0, "y": 0},
    }
    status, body = request("POST", "/api/drag", json=payload)
    assert status == 200
    assert body["data"] == {"x": 410, "y": 220}


def test_drag_requires_pointer():
    status, body = request("POST", "/api/drag", json={"node": {"id": "a"}, "territories": []})
    assert status == 400
    assert body["success"] is False


def test_layout_rejects_undecodable_body():
    status, body = request(
        "POST", "/api/layout", data=b"\xff\xfe{", headers={"Content-Type": "application/json; charset=utf-8"},
    )
    assert status == 400
    assert body["success"] is False
    assert body["error"] == "Request body must be JSON"
