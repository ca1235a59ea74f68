"""
Planet Generator - Visualization Utilities
Equirectangular maps of a generated surface.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from planetgen.config import (  # noqa: E402
    FROZEN_TYPES,
    HILL_TYPES,
    LAKE_TYPES,
    MOUNTAIN_TYPES,
    SEA_TYPES,
    VOLCANIC_TYPES,
    Season,
    SurfaceType,
)
from planetgen.rendering import SurfaceView  # noqa: E402

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]

# Surface families and their map colors, checked in order
_FAMILY_COLORS = (
    (SEA_TYPES, (0.12, 0.30, 0.62)),
    (LAKE_TYPES, (0.25, 0.50, 0.80)),
    (frozenset({SurfaceType.LAVA_OCEAN}), (0.85, 0.25, 0.05)),
    (VOLCANIC_TYPES, (0.45, 0.12, 0.08)),
    (FROZEN_TYPES, (0.93, 0.95, 0.98)),
    (MOUNTAIN_TYPES, (0.50, 0.45, 0.40)),
    (HILL_TYPES, (0.55, 0.62, 0.35)),
)

_SURFACE_COLORS: Dict[SurfaceType, RGB] = {
    SurfaceType.PLAINS: (0.60, 0.72, 0.40),
    SurfaceType.PLAINS_GRASS: (0.55, 0.75, 0.35),
    SurfaceType.GRASSLAND: (0.55, 0.75, 0.35),
    SurfaceType.PLAINS_FOREST: (0.20, 0.50, 0.20),
    SurfaceType.FOREST: (0.15, 0.45, 0.18),
    SurfaceType.RAINFOREST: (0.05, 0.35, 0.12),
    SurfaceType.SAVANNA: (0.75, 0.72, 0.38),
    SurfaceType.DRY_SAVANNA: (0.80, 0.74, 0.45),
    SurfaceType.SWAMP: (0.30, 0.42, 0.30),
    SurfaceType.MUD_SWAMP: (0.40, 0.36, 0.26),
    SurfaceType.TUNDRA: (0.66, 0.70, 0.62),
    SurfaceType.PERMAFROST: (0.75, 0.78, 0.76),
    SurfaceType.COAST_SANDY: (0.93, 0.86, 0.60),
    SurfaceType.COAST_ROCKY: (0.55, 0.52, 0.48),
    SurfaceType.REGOLITH: (0.62, 0.60, 0.58),
    SurfaceType.CRATERED_SURFACE: (0.48, 0.46, 0.44),
    SurfaceType.BASIN_DRY: (0.82, 0.72, 0.52),
}
_DESERT_COLOR = (0.88, 0.78, 0.50)
_DEFAULT_COLOR = (0.60, 0.60, 0.55)


def surface_color(surface_type: SurfaceType) -> RGB:
    """Map color for a surface type."""
    if surface_type in _SURFACE_COLORS:
        return _SURFACE_COLORS[surface_type]
    for family, color in _FAMILY_COLORS:
        if surface_type in family:
            return color
    if "DESERT" in surface_type.name:
        return _DESERT_COLOR
    return _DEFAULT_COLOR


def render_surface_map(
    view: SurfaceView,
    path: Union[str, Path],
    layer: str = "surface",
    season: Season = Season.INTERSEASON,
    dpi: int = 150,
    show_rivers: bool = True,
) -> Path:
    """
    Draw an equirectangular scatter map of the surface.

    Args:
        view: Read view over the tiles
        path: Output image file
        layer: "surface", "elevation", "temperature" or "precipitation"
        season: Season for climate layers
        dpi: Resolution in dots per inch
        show_rivers: Overlay river segments on the surface layer

    Returns:
        Path of the written image
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    n = len(view)
    lons = np.array([view.tile(i).lon for i in range(n)])
    lats = np.array([view.tile(i).lat for i in range(n)])
    point_size = max(1.0, 60000.0 / max(1, n))

    fig, ax = plt.subplots(figsize=(14, 7))
    title, colorbar_label = _draw_layer(ax, view, layer, season, lons, lats, point_size)
    if colorbar_label:
        plt.colorbar(ax.collections[0], ax=ax, label=colorbar_label, shrink=0.8)

    if show_rivers and layer == "surface":
        _draw_rivers(ax, view)

    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(title, fontsize=16, fontweight='bold')

    plt.tight_layout()
    plt.savefig(path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)

    logger.info("Saved %s map to %s", layer, path)
    return path


def _draw_layer(ax, view: SurfaceView, layer: str, season: Season,
                lons: np.ndarray, lats: np.ndarray, size: float) -> Tuple[str, Optional[str]]:
    n = len(view)
    if layer == "surface":
        colors = [surface_color(view.surface_type(i)) for i in range(n)]
        ax.scatter(lons, lats, c=colors, s=size, marker='s', linewidths=0)
        return "Surface Types", None
    if layer == "elevation":
        values = [view.elevation(i) for i in range(n)]
        ax.scatter(lons, lats, c=values, cmap='terrain', s=size, marker='s', linewidths=0)
        return "Elevation", "Elevation (100 m units)"
    if layer == "temperature":
        values = [view.temperature(i, season) for i in range(n)]
        ax.scatter(lons, lats, c=values, cmap='RdYlBu_r', s=size, marker='s', linewidths=0)
        return f"Temperature ({season.name.lower()})", "Temperature (°C)"
    if layer == "precipitation":
        values = [view.precipitation(i, season) for i in range(n)]
        ax.scatter(lons, lats, c=values, cmap='Blues', s=size, marker='s', linewidths=0)
        return f"Precipitation ({season.name.lower()})", "Precipitation (kg/m²/day)"
    raise ValueError(f"Unknown map layer: {layer}")


def _draw_rivers(ax, view: SurfaceView) -> None:
    for i in range(len(view)):
        downstream = view.river_downstream(i)
        if downstream is None:
            continue
        a, b = view.tile(i), view.tile(downstream)
        # Skip segments wrapping the date line
        if abs(a.lon - b.lon) > 180:
            continue
        ax.plot([a.lon, b.lon], [a.lat, b.lat], color=(0.10, 0.35, 0.85), linewidth=0.8)
