"""knowmap MCP server: tools for laying out and rendering knowledge maps."""

from __future__ import annotations

import json
import logging
import uuid

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import TypeAdapter, ValidationError

from .config import configure_logging, load_settings
from .depth import LayoutError
from .drag import clamp_drag
from .models import MapNode, Point, TerritoryInput
from .organize import LAYOUT_MODES, organize_map
from .parser import parse_text
from .placement import LayoutOptions
from .renderer import MapRenderer
from .territories import pack_territories

logger = logging.getLogger(__name__)

SETTINGS = load_settings()

server = Server("knowmap")

_MAP_DESCRIPTION = (
    "Knowledge map as a JSON or YAML string with 'nodes', 'edges' and optional "
    "'territories' and 'metadata'. Example:\n"
    "nodes:\n"
    "  - {id: start, label: Begin IELTS Prep, type: event}\n"
    "  - {id: reading, label: Reading Skills, type: concept}\n"
    "edges:\n"
    "  - {id: e1, source: start, target: reading, type: dependency}\n"
    "\n"
    "Node types: concept, entity, event, location, person\n"
    "Edge types: relationship, dependency, similarity, hierarchy"
)

_POINT_SCHEMA = {
    "type": "object",
    "properties": {"x": {"type": "number"}, "y": {"type": "number"}},
    "required": ["x", "y"],
}

_nodes_adapter = TypeAdapter(list[MapNode])
_territories_adapter = TypeAdapter(list[TerritoryInput])


def _error(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=message)]


def _json(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="layout_map",
            description=(
                "Compute node positions for a knowledge map. Maps with territories are "
                "packed territory by territory; maps without are laid out in dependency "
                "tiers (dependency/hierarchy edges) grouped by node type. Returns the "
                "positioned map as JSON."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "map": {"type": "string", "description": _MAP_DESCRIPTION},
                    "mode": {
                        "type": "string",
                        "enum": list(LAYOUT_MODES),
                        "description": "Layout path: 'auto' (default), 'hierarchy' or 'territories'.",
                        "default": "auto",
                    },
                },
                "required": ["map"],
            },
        ),
        Tool(
            name="pack_territories",
            description=(
                "Size and arrange generated territories and place their member nodes "
                "inside them. Territories only need a name and nodeIds; ids and geometry "
                "are assigned. Returns territories and nodes as JSON."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "nodes": {
                        "type": "array",
                        "description": "Nodes with at least 'id' and 'label'.",
                        "items": {"type": "object"},
                    },
                    "territories": {
                        "type": "array",
                        "description": "Territories with 'name' and 'nodeIds'.",
                        "items": {"type": "object"},
                    },
                },
                "required": ["nodes", "territories"],
            },
        ),
        Tool(
            name="render_map",
            description=(
                "Render a knowledge map to PNG. Returns the path to the rendered file."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "map": {"type": "string", "description": _MAP_DESCRIPTION},
                    "organize": {
                        "type": "boolean",
                        "description": "Lay the map out before rendering. Default: true.",
                        "default": True,
                    },
                    "mode": {
                        "type": "string",
                        "enum": list(LAYOUT_MODES),
                        "default": "auto",
                    },
                    "scale": {
                        "type": "number",
                        "description": "Render scale factor (default 2.0)",
                        "default": 2.0,
                    },
                    "filename": {
                        "type": "string",
                        "description": "Output filename (without extension). Default: auto-generated.",
                    },
                },
                "required": ["map"],
            },
        ),
        Tool(
            name="clamp_drag",
            description=(
                "Constrain a dragged node to its territory. Given the pointer position and "
                "the grab offset captured at drag start, returns the clamped node centre."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "map": {"type": "string", "description": _MAP_DESCRIPTION},
                    "node_id": {"type": "string"},
                    "pointer": _POINT_SCHEMA,
                    "grab_offset": _POINT_SCHEMA,
                },
                "required": ["map", "node_id", "pointer"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    if name == "layout_map":
        return await _layout_map(arguments)
    elif name == "pack_territories":
        return await _pack_territories(arguments)
    elif name == "render_map":
        return await _render_map(arguments)
    elif name == "clamp_drag":
        return await _clamp_drag(arguments)
    else:
        return _error(f"Unknown tool: {name}")


async def _layout_map(args: dict) -> list[TextContent]:
    """Lay out a map and return it as JSON."""
    try:
        knowledge_map = parse_text(args["map"])
    except (ValueError, KeyError) as e:
        return _error(f"Failed to parse map: {e}")

    try:
        report = organize_map(
            knowledge_map,
            mode=args.get("mode", "auto"),
            layout_options=LayoutOptions(max_depth=SETTINGS.max_depth),
        )
    except (ValueError, LayoutError) as e:
        return _error(f"Layout failed: {e}")

    return _json({
        "status": "success",
        "mode": report.mode,
        "nodes": report.node_count,
        "depth_fallback": report.depth_fallback,
        "clamped": len(report.clamp_events),
        "orphans": report.orphan_ids,
        "map": knowledge_map.to_wire(),
    })


async def _pack_territories(args: dict) -> list[TextContent]:
    """Pack generated territories and their member nodes."""
    try:
        nodes = _nodes_adapter.validate_python(args.get("nodes", []))
        territories = _territories_adapter.validate_python(args.get("territories", []))
    except ValidationError as e:
        return _error(f"Invalid input: {e}")

    result = pack_territories(territories, nodes)
    return _json({
        "status": "success",
        "territories": [t.model_dump(by_alias=True, exclude_none=True) for t in result.territories],
        "nodes": [n.model_dump(by_alias=True, exclude_none=True) for n in result.nodes],
        "clamped": len(result.clamp_events),
        "orphans": result.orphan_ids,
    })


async def _render_map(args: dict) -> list[TextContent]:
    """Render a map to PNG."""
    output_dir = SETTINGS.ensure_output_dir()

    try:
        knowledge_map = parse_text(args["map"])
    except (ValueError, KeyError) as e:
        return _error(f"Failed to parse map: {e}")

    scale = args.get("scale", SETTINGS.render_scale)
    filename = args.get("filename", str(uuid.uuid4())[:8])
    output_path = str(output_dir / f"{filename}.png")

    renderer = MapRenderer(scale=scale)
    try:
        renderer.render(
            knowledge_map,
            output_path=output_path,
            organize=args.get("organize", True),
            mode=args.get("mode", "auto"),
        )
    except (ValueError, LayoutError, OSError) as e:
        logger.error(f"Render error: {e}")
        return _error(f"Rendering failed: {e}")

    return _json({
        "status": "success",
        "path": output_path,
        "title": knowledge_map.get_title(),
        "nodes": len(knowledge_map.nodes),
        "edges": len(knowledge_map.edges),
        "territories": len(knowledge_map.territories),
    })


async def _clamp_drag(args: dict) -> list[TextContent]:
    """Clamp one drag step of a node."""
    try:
        knowledge_map = parse_text(args["map"])
        pointer = Point.model_validate(args["pointer"])
        grab_offset = Point.model_validate(args.get("grab_offset") or {"x": 0, "y": 0})
    except (ValueError, KeyError) as e:
        return _error(f"Invalid input: {e}")

    node = knowledge_map.get_node(args["node_id"])
    if node is None:
        return _error(f"Node not found: {args['node_id']}")

    position = clamp_drag(node, knowledge_map.territories, pointer, grab_offset)
    return _json({"status": "success", "x": position.x, "y": position.y})


def main():
    """Entry point for the MCP server."""
    import asyncio
    configure_logging(SETTINGS.log_level)
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
