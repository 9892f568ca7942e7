"""
Theme definitions for knowmap.

Dark and light palettes for the PNG renderer. A palette covers:
- Map background and title
- Territory containers (fill, border, label)
- Node cards
- Edges, per edge type
Node accent colors are shared by both themes and keyed by node type.
"""

from __future__ import annotations
from dataclasses import dataclass, field


@dataclass
class ThemePalette:
    """Colors the renderer needs for one theme."""

    # Map
    background: str
    title_color: str
    muted_text_color: str

    # Territory containers
    territory_fill: str
    territory_fill_alpha: int
    territory_border: str
    territory_label: str

    # Node cards
    node_fill: str
    node_label: str

    # Edges, keyed by edge type ("default" for untyped edges)
    edge_colors: dict[str, str] = field(default_factory=dict)

    def edge_color(self, edge_type: str | None) -> str:
        return self.edge_colors.get(edge_type or "default", self.edge_colors["default"])


# Accent colors per node type (Catppuccin)
NODE_TYPE_COLORS: dict[str, str] = {
    "concept":  "#89b4fa",  # Blue
    "entity":   "#a6e3a1",  # Green
    "event":    "#fab387",  # Peach
    "location": "#94e2d5",  # Teal
    "person":   "#cba6f7",  # Mauve
    "default":  "#9399b2",  # Overlay
}


def node_color(node_type: str | None) -> str:
    """Accent color for a node type, falling back to the default accent."""
    return NODE_TYPE_COLORS.get(node_type or "default", NODE_TYPE_COLORS["default"])


# Catppuccin Mocha (dark theme) - default
DARK_THEME = ThemePalette(
    background="#11111b",
    title_color="#cdd6f4",
    muted_text_color="#6c7086",
    territory_fill="#181825",
    territory_fill_alpha=160,
    territory_border="#45475a",
    territory_label="#a6adc8",
    node_fill="#1e1e2e",
    node_label="#cdd6f4",
    edge_colors={
        "relationship": "#7f849c",
        "dependency": "#f38ba8",
        "similarity": "#94e2d5",
        "hierarchy": "#f9e2af",
        "default": "#585b70",
    },
)


# Catppuccin Latte (light theme)
LIGHT_THEME = ThemePalette(
    background="#ffffff",
    title_color="#1e1e2e",
    muted_text_color="#6c6f85",
    territory_fill="#e6e9ef",
    territory_fill_alpha=200,
    territory_border="#9ca0b0",
    territory_label="#4c4f69",
    node_fill="#eff1f5",
    node_label="#1e1e2e",
    edge_colors={
        "relationship": "#8c8fa1",
        "dependency": "#d20f39",
        "similarity": "#179299",
        "hierarchy": "#df8e1d",
        "default": "#acb0be",
    },
)


THEMES: dict[str, ThemePalette] = {
    "dark": DARK_THEME,
    "light": LIGHT_THEME,
}


def get_theme(name: str) -> ThemePalette:
    """Palette registered under ``name``; raises ``ValueError`` for unknown names."""
    try:
        return THEMES[name]
    except KeyError:
        raise ValueError(
            f"Unknown theme '{name}'. Valid themes: {', '.join(THEMES)}"
        ) from None
