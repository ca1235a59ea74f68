"""
Planet Generator - Stage: Erosion
Thermal, hydraulic and aeolian erosion over the tile mesh.

EROSION MODEL:
Each land tile sheds material toward its lowest neighbor:
- Thermal: slope above the talus angle collapses (talus shrinks with gravity)
- Hydraulic: wash-off proportional to precipitation × slope
- Aeolian: dry windy tiles lose material that is carried away

Softer rock erodes faster. Hardness is seeded from the plate type and
volcanism. Part of the thermal and hydraulic material is deposited on the
lowest neighbor; wind-blown material is not. Elevation stays within 0..255.
"""

import logging
from typing import List

import numpy as np

from planetgen.config import (
    ELEVATION_MAX,
    ELEVATION_MIN,
    GeneratorSettings,
    PlanetConfig,
    StageId,
    SurfaceType,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.tile import Tile
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import neighbor_matrix

logger = logging.getLogger(__name__)

RELIEF_REFRESH_INTERVAL = 5
MAX_LOSS_SHARE = 0.10  # at most 10% of a tile's height per iteration

_NOT_ERODED = frozenset({SurfaceType.OCEAN, SurfaceType.LAVA_OCEAN})
_RELIEF_TYPES = frozenset({SurfaceType.PLAINS, SurfaceType.HILLS, SurfaceType.MOUNTAINS})


def seed_hardness(tiles: List[Tile]) -> None:
    """Continental crust is harder than oceanic; volcanic rock adds hardness."""
    for t in tiles:
        hardness = 0.65 if t.plate_type == 1 else 0.45
        hardness += (t.volcanism / 100.0) * 0.20
        t.rock_hardness = min(1.0, max(0.0, hardness))


def update_relief_types(tiles: List[Tile], settings: GeneratorSettings) -> None:
    """Re-derive PLAINS/HILLS/MOUNTAINS from elevation; other types are kept."""
    for t in tiles:
        if t.surface_type not in _RELIEF_TYPES:
            continue
        if t.elevation >= settings.mountain_min_elevation:
            t.surface_type = SurfaceType.MOUNTAINS
        elif t.elevation >= settings.hill_min_elevation:
            t.surface_type = SurfaceType.HILLS
        else:
            t.surface_type = SurfaceType.PLAINS


def erode(tiles: List[Tile], planet: PlanetConfig, settings: GeneratorSettings) -> None:
    """
    Run ``settings.erosion_iterations`` erosion steps in place.

    Args:
        tiles: Tiles with neighbors, precipitation and wind
        planet: Planet configuration (gravity)
        settings: Erosion coefficients and relief thresholds
    """
    n = len(tiles)
    if n == 0:
        return

    for t in tiles:
        t.elevation = max(ELEVATION_MIN, min(ELEVATION_MAX, t.elevation))
    seed_hardness(tiles)

    g = max(0.1, planet.gravity)
    talus = settings.talus_base / np.sqrt(g)

    indices, mask = neighbor_matrix([t.neighbors for t in tiles])
    has_neighbors = mask.any(axis=1)
    erodible = np.array([t.surface_type not in _NOT_ERODED for t in tiles]) & has_neighbors
    mobility = 1.0 - np.clip(np.array([t.rock_hardness for t in tiles]), 0.0, 1.0)
    precip = np.clip(np.array([t.precip_avg or 0.0 for t in tiles], dtype=np.float64), 0.0, 100.0)
    wind = np.array([t.wind_magnitude for t in tiles])
    dryness = 1.0 - precip / 100.0
    rows = np.arange(n)

    elevation = np.array([t.elevation for t in tiles], dtype=np.int64)
    for iteration in range(settings.erosion_iterations):
        neighbor_elev = np.where(mask, elevation[indices], np.iinfo(np.int64).max)
        low_slot = neighbor_elev.argmin(axis=1)
        low = indices[rows, low_slot]
        delta = (elevation - elevation[low]).astype(np.float64)
        active = erodible & (delta > 0)

        thermal = np.where(delta > talus, (delta - talus) * settings.thermal_k * mobility, 0.0)
        water = settings.water_k * (precip / 100.0) * delta * (1.0 / g) * mobility
        aeolian = settings.wind_k * wind * dryness * mobility

        loss = np.minimum(thermal + water + aeolian, np.maximum(1.0, elevation * MAX_LOSS_SHARE))
        deposit = np.minimum((thermal + water) * settings.deposition_k, loss)
        loss = np.where(active & (thermal + water + aeolian > 0), loss, 0.0)
        deposit = np.where(loss > 0, deposit, 0.0)

        change = -loss
        np.add.at(change, low, deposit)
        elevation = np.clip(np.rint(elevation + change), ELEVATION_MIN, ELEVATION_MAX).astype(np.int64)

        if (iteration + 1) % RELIEF_REFRESH_INTERVAL == 0:
            _write_elevation(tiles, elevation)
            update_relief_types(tiles, settings)

    _write_elevation(tiles, elevation)
    update_relief_types(tiles, settings)


def _write_elevation(tiles: List[Tile], elevation: np.ndarray) -> None:
    for t, value in zip(tiles, elevation):
        t.elevation = int(value)


class ErosionStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.EROSION,
            name="Erosion",
            description="Thermal, hydraulic and wind erosion",
            requires=[StageId.NEIGHBORS, StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        before = sum(t.elevation for t in context.tiles)
        erode(context.tiles, context.planet, context.settings)
        after = sum(t.elevation for t in context.tiles)
        logger.debug(
            "Erosion: %d iterations, total relief %d -> %d",
            context.settings.erosion_iterations, before, after
        )
