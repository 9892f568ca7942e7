"""Map renderer using Pillow: produces knowledge map PNG images."""

from __future__ import annotations

import logging
import math
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .models import KnowledgeMap, MapEdge, MapNode, Territory
from .organize import organize_map
from .territories import CARD_HEIGHT, CARD_WIDTH, TERRITORY_HEADER
from .themes import ThemePalette, get_theme, node_color

logger = logging.getLogger(__name__)


# --- Fonts ---

_FONT_CANDIDATES = {
    False: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    ),
    True: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    ),
}


def _font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """First installed TrueType font of the requested weight, else Pillow's default."""
    candidates = _FONT_CANDIDATES[bold] + (_FONT_CANDIDATES[False] if bold else ())
    for candidate in candidates:
        if Path(candidate).exists():
            return ImageFont.truetype(candidate, max(1, size))
    return ImageFont.load_default()


# --- Colors ---

def _rgb(color: str) -> tuple[int, int, int]:
    """Any colour Pillow understands (hex, CSS name, ``rgb()``) to an RGB tuple."""
    return ImageColor.getrgb(color)[:3]


def _resolve(color: Optional[str], fallback: str) -> str:
    """``color`` if Pillow can parse it, else ``fallback``."""
    if not color:
        return fallback
    try:
        _rgb(color)
    except ValueError:
        logger.debug("Unrecognised colour %r, using %s", color, fallback)
        return fallback
    return color


def _rgba(color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    return (*_rgb(color), alpha)


def _shade(color: str, factor: float) -> str:
    """Scale every channel of ``color`` by ``factor``, as ``#rrggbb``."""
    return "#" + "".join(f"{int(c * factor):02x}" for c in _rgb(color))


# --- Primitives ---

def _arrow(
    draw: ImageDraw.ImageDraw,
    tail: tuple[float, float],
    head: tuple[float, float],
    color: str,
    width: int,
    head_size: float,
):
    """Straight shaft from ``tail`` to ``head`` with a filled triangular tip."""
    draw.line([tail, head], fill=color, width=width)

    length = math.dist(tail, head)
    if length == 0:
        return
    ux = (head[0] - tail[0]) / length
    uy = (head[1] - tail[1]) / length

    base_x = head[0] - head_size * ux
    base_y = head[1] - head_size * uy
    half = head_size / 2
    draw.polygon(
        [head, (base_x + half * uy, base_y - half * ux), (base_x - half * uy, base_y + half * ux)],
        fill=color,
    )


def _fit_text(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont, max_width: float) -> str:
    """Truncate text with an ellipsis so it fits within max_width pixels."""
    bbox = font.getbbox(text)
    if bbox[2] - bbox[0] <= max_width:
        return text
    while text:
        text = text[:-1]
        bbox = font.getbbox(text + "...")
        if bbox[2] - bbox[0] <= max_width:
            return text + "..."
    return ""


def _border_point(node: MapNode, toward: tuple[float, float], w: float, h: float) -> tuple[float, float]:
    """Point where the ray from a card's centre toward ``toward`` leaves the card."""
    cx = node.x + w / 2
    cy = node.y + h / 2
    dx = toward[0] - cx
    dy = toward[1] - cy
    if dx == 0 and dy == 0:
        return (cx, cy)
    scale = min(
        (w / 2) / abs(dx) if dx else math.inf,
        (h / 2) / abs(dy) if dy else math.inf,
    )
    return (cx + dx * scale, cy + dy * scale)


# --- Main renderer ---

class MapRenderer:
    """Renders a KnowledgeMap to a PNG image.

    Node coordinates are treated as the top-left corner of a fixed-size
    card, the convention used by the territory packer.
    """

    PADDING = 60
    TITLE_HEIGHT = 50
    CARD_WIDTH = CARD_WIDTH
    CARD_HEIGHT = CARD_HEIGHT
    CARD_RADIUS = 10
    CARD_BAR = 6
    TERRITORY_RADIUS = 14
    TERRITORY_HEADER = TERRITORY_HEADER

    def __init__(self, scale: float = 1.0):
        self.scale = scale
        self.font_label = _font(int(16 * scale), bold=True)
        self.font_title = _font(int(28 * scale), bold=True)
        self.font_territory = _font(int(18 * scale), bold=True)
        self.font_small = _font(int(12 * scale))
        self.theme: ThemePalette = get_theme("dark")

    def render(
        self,
        knowledge_map: KnowledgeMap,
        output_path: Optional[str] = None,
        organize: bool = False,
        mode: str = "auto",
    ) -> bytes:
        """Render the map to PNG bytes. Optionally save to file.

        Args:
            knowledge_map: The map to render.
            output_path: Optional path to save the PNG.
            organize: If True, lay the map out with ``organize_map`` first.
            mode: Layout mode passed to ``organize_map``.
        """
        self.theme = get_theme(knowledge_map.theme)

        if organize:
            organize_map(knowledge_map, mode=mode)

        bounds = self._calculate_bounds(knowledge_map)
        img_width = max(1, int(bounds["width"] * self.scale))
        img_height = max(1, int(bounds["height"] * self.scale))

        img = Image.new("RGBA", (img_width, img_height), _rgba(self.theme.background))
        draw = ImageDraw.Draw(img, "RGBA")

        ox = -bounds["min_x"]
        oy = -bounds["min_y"]

        self._draw_title(draw, knowledge_map.get_title(), img_width)

        for territory in knowledge_map.territories:
            self._draw_territory(draw, territory, ox, oy)

        nodes_by_id = {n.id: n for n in knowledge_map.nodes}
        for edge in knowledge_map.edges:
            self._draw_edge(draw, edge, nodes_by_id, ox, oy)

        for node in knowledge_map.nodes:
            self._draw_node(draw, node, ox, oy)

        buf = BytesIO()
        img.save(buf, format="PNG", optimize=True)
        png_bytes = buf.getvalue()

        if output_path:
            Path(output_path).write_bytes(png_bytes)

        return png_bytes

    def _calculate_bounds(self, knowledge_map: KnowledgeMap) -> dict:
        """Bounding box of all cards and territories, plus margins and title space."""
        xs: list[float] = []
        ys: list[float] = []
        for node in knowledge_map.nodes:
            if not (math.isfinite(node.x) and math.isfinite(node.y)):
                continue
            xs += [node.x, node.x + self.CARD_WIDTH]
            ys += [node.y, node.y + self.CARD_HEIGHT]
        for territory in knowledge_map.territories:
            xs += [territory.x, territory.x + territory.w]
            ys += [territory.y, territory.y + territory.h]

        if not xs:
            return {"min_x": 0, "min_y": 0, "width": 400, "height": 300}

        min_x = min(xs) - self.PADDING
        min_y = min(ys) - self.PADDING - self.TITLE_HEIGHT
        max_x = max(xs) + self.PADDING
        max_y = max(ys) + self.PADDING

        return {
            "min_x": min_x,
            "min_y": min_y,
            "width": max_x - min_x,
            "height": max_y - min_y,
        }

    def _draw_title(self, draw: ImageDraw.ImageDraw, title: str, img_width: int):
        """Draw the map title centered at the top."""
        bbox = self.font_title.getbbox(title)
        tw = bbox[2] - bbox[0]
        x = (img_width - tw) / 2
        draw.text((x, 15 * self.scale), title, fill=self.theme.title_color, font=self.font_title)

    def _draw_territory(self, draw: ImageDraw.ImageDraw, territory: Territory, ox: float, oy: float):
        """Draw a territory container with its title in the header band."""
        s = self.scale
        x1 = (territory.x + ox) * s
        y1 = (territory.y + oy) * s
        x2 = (territory.x + territory.w + ox) * s
        y2 = (territory.y + territory.h + oy) * s

        border = _resolve(territory.color, self.theme.territory_border)
        draw.rounded_rectangle(
            [x1, y1, x2, y2],
            radius=int(self.TERRITORY_RADIUS * s),
            fill=_rgba(self.theme.territory_fill, self.theme.territory_fill_alpha),
            outline=border,
            width=max(1, int(2 * s)),
        )

        label = _fit_text(territory.get_label(), self.font_territory, (territory.w - 32) * s)
        draw.text(
            (x1 + 16 * s, y1 + (self.TERRITORY_HEADER / 2 - 10) * s),
            label,
            fill=self.theme.territory_label,
            font=self.font_territory,
        )

    def _draw_edge(
        self,
        draw: ImageDraw.ImageDraw,
        edge: MapEdge,
        nodes_by_id: dict[str, MapNode],
        ox: float,
        oy: float,
    ):
        """Draw an edge between the borders of two cards."""
        source = nodes_by_id.get(edge.source)
        target = nodes_by_id.get(edge.target)
        if not source or not target or source.id == target.id:
            return

        w, h = self.CARD_WIDTH, self.CARD_HEIGHT
        target_centre = (target.x + w / 2, target.y + h / 2)
        source_centre = (source.x + w / 2, source.y + h / 2)
        sx, sy = _border_point(source, target_centre, w, h)
        ex, ey = _border_point(target, source_centre, w, h)

        s = self.scale
        _arrow(
            draw,
            ((sx + ox) * s, (sy + oy) * s),
            ((ex + ox) * s, (ey + oy) * s),
            color=self.theme.edge_color(edge.type),
            width=max(1, int(2 * s)),
            head_size=12 * s,
        )

    def _draw_node(self, draw: ImageDraw.ImageDraw, node: MapNode, ox: float, oy: float):
        """Draw a single node card: accent bar, label and type badge."""
        if not (math.isfinite(node.x) and math.isfinite(node.y)):
            return

        s = self.scale
        accent = _resolve(node.color, node_color(node.type))
        x = (node.x + ox) * s
        y = (node.y + oy) * s
        w = self.CARD_WIDTH * s
        h = self.CARD_HEIGHT * s

        draw.rounded_rectangle(
            [x, y, x + w, y + h],
            radius=int(self.CARD_RADIUS * s),
            fill=self.theme.node_fill,
            outline=accent,
            width=max(1, int(2 * s)),
        )
        draw.rounded_rectangle(
            [x + 2, y + 2, x + w - 2, y + self.CARD_BAR * s + 2],
            radius=int(self.CARD_RADIUS * s),
            fill=accent,
        )

        label = _fit_text(node.get_label(), self.font_label, w - 24 * s)
        draw.text((x + 12 * s, y + 20 * s), label, fill=self.theme.node_label, font=self.font_label)

        if node.type:
            bbox = self.font_small.getbbox(node.type)
            badge_w = bbox[2] - bbox[0] + 12
            badge_h = bbox[3] - bbox[1] + 6
            bx = x + w - badge_w - 8 * s
            by = y + h - badge_h - 8 * s
            draw.rounded_rectangle([bx, by, bx + badge_w, by + badge_h], radius=4, fill=_shade(accent, 0.3))
            draw.text((bx + 6, by + 2), node.type, fill=accent, font=self.font_small)
