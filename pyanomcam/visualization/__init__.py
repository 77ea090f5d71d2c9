"""Heatmap overlays drawn on top of the analysed frame."""

from __future__ import annotations

from .heatmap import (
    draw_label,
    format_label,
    grid_side,
    heatmap_color,
    heatmap_colors,
    render_heatmap_overlay,
    render_result,
    save_overlay_image,
)

__all__ = [
    "draw_label",
    "format_label",
    "grid_side",
    "heatmap_color",
    "heatmap_colors",
    "render_heatmap_overlay",
    "render_result",
    "save_overlay_image",
]
