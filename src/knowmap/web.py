#!/usr/bin/env python3
"""
knowmap HTTP API: layout endpoints for the browser client.

Routes:
    GET  /api/health    service status
    POST /api/validate  check a map document against the schema
    POST /api/layout    lay out a map (query/body "mode": auto|hierarchy|territories)
    POST /api/pack      pack generated territories and their nodes
    POST /api/drag      clamp one drag step of a node

Usage:
    knowmap-web [--port 8766] [--host 0.0.0.0]
"""

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone

from aiohttp import web
from pydantic import TypeAdapter, ValidationError

from .config import Settings, configure_logging, load_settings
from .depth import LayoutError
from .drag import clamp_drag
from .models import MapNode, Point, Territory, TerritoryInput
from .organize import organize_map
from .parser import parse_map, validate_map
from .placement import LayoutOptions
from .territories import pack_territories

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)

_nodes_adapter = TypeAdapter(list[MapNode])
_territories_adapter = TypeAdapter(list[TerritoryInput])
_placed_territories_adapter = TypeAdapter(list[Territory])


def _error_response(message: str, status: int = 400, details=None) -> web.Response:
    payload = {"success": False, "error": message}
    if details is not None:
        payload["details"] = details
    return web.json_response(payload, status=status)


def _validation_details(e: ValidationError) -> list[dict]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in e.errors()
    ]


async def _read_json(request: web.Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "Request body must be JSON"}),
            content_type="application/json",
        )
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "Request body must be a JSON object"}),
            content_type="application/json",
        )
    return body


async def handle_health(request):
    """Health check."""
    return web.json_response({
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


async def handle_validate(request):
    """Validate a map document without laying it out."""
    body = await _read_json(request)
    result = validate_map(body)
    if not result.success:
        return _error_response("Invalid map structure", details=result.errors)
    return web.json_response({
        "success": True,
        "message": "Map structure is valid",
        "data": result.data.to_wire(),
    })


async def handle_layout(request):
    """Lay out a map and return it with coordinates set."""
    body = await _read_json(request)
    mode = request.query.get("mode") or body.pop("mode", "auto")

    try:
        knowledge_map = parse_map(body)
    except ValidationError as e:
        return _error_response("Invalid map structure", details=_validation_details(e))
    except ValueError as e:
        return _error_response(str(e))

    settings = request.app[SETTINGS_KEY]
    try:
        report = organize_map(
            knowledge_map,
            mode=mode,
            layout_options=LayoutOptions(max_depth=settings.max_depth),
        )
    except ValueError as e:
        return _error_response(str(e))
    except LayoutError as e:
        logger.error(f"Layout error: {e}")
        return _error_response(str(e), status=500)

    logger.info(f"Laid out {report.node_count} nodes ({report.mode})")
    return web.json_response({
        "success": True,
        "data": knowledge_map.to_wire(),
        "metadata": {
            "mode": report.mode,
            "depthFallback": report.depth_fallback,
            "clamped": len(report.clamp_events),
            "orphans": report.orphan_ids,
        },
    })


async def handle_pack(request):
    """Pack generated territories (name + nodeIds) and place their nodes."""
    body = await _read_json(request)
    try:
        nodes = _nodes_adapter.validate_python(body.get("nodes", []))
        territories = _territories_adapter.validate_python(body.get("territories", []))
    except ValidationError as e:
        return _error_response("Invalid request body", details=_validation_details(e))

    result = pack_territories(territories, nodes)
    return web.json_response({
        "success": True,
        "data": {
            "territories": [t.model_dump(by_alias=True, exclude_none=True) for t in result.territories],
            "nodes": [n.model_dump(by_alias=True, exclude_none=True) for n in result.nodes],
        },
        "metadata": {
            "clamped": len(result.clamp_events),
            "orphans": result.orphan_ids,
        },
    })


async def handle_drag(request):
    """Clamp one pointer move of a dragged node.

    Body: {"node": {...}, "territories": [...], "pointer": {x, y}, "grabOffset": {x, y}}
    """
    body = await _read_json(request)
    try:
        node = MapNode.model_validate(body.get("node"))
        territories = _placed_territories_adapter.validate_python(body.get("territories", []))
        pointer = Point.model_validate(body.get("pointer"))
        grab_offset = Point.model_validate(body.get("grabOffset") or {"x": 0, "y": 0})
    except ValidationError as e:
        return _error_response("Invalid request body", details=_validation_details(e))

    position = clamp_drag(node, territories, pointer, grab_offset)
    return web.json_response({"success": True, "data": {"x": position.x, "y": position.y}})


def create_app(settings: Settings | None = None):
    """Create the aiohttp application."""
    app = web.Application(client_max_size=20 * 1024 * 1024)
    app[SETTINGS_KEY] = settings or load_settings()

    app.router.add_get('/api/health', handle_health)
    app.router.add_post('/api/validate', handle_validate)
    app.router.add_post('/api/layout', handle_layout)
    app.router.add_post('/api/pack', handle_pack)
    app.router.add_post('/api/drag', handle_drag)

    return app


async def main(host: str = '0.0.0.0', port: int = 8766, settings: Settings | None = None):
    """Run the web server."""
    app = create_app(settings)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"knowmap API running at http://{host}:{port}")

    # Keep running
    while True:
        await asyncio.sleep(3600)


def run():
    """Console entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(description='knowmap HTTP API')
    parser.add_argument('--host', default=settings.host, help='Host to bind to')
    parser.add_argument('--port', type=int, default=settings.port, help='Port to listen on')
    args = parser.parse_args()

    configure_logging(settings.log_level)
    try:
        asyncio.run(main(host=args.host, port=args.port, settings=settings))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == '__main__':
    run()
