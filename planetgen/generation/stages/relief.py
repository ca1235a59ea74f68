"""
Planet Generator - Stage: Relief Landforms
Overlays canyons, ridges and basin floors on the classified biomes.

Each landform keeps the biome it replaces as a suffix (RIDGE_FOREST,
BASIN_DRY, ...). Water, coasts, ice, volcanic and cratered tiles are never
touched, and tiles that already carry a landform are left alone so the stage
can be re-run.
"""

import logging
from typing import Dict, List

from planetgen.config import (
    FROZEN_TYPES,
    RiverBaseType,
    StageId,
    SurfaceType,
    VOLCANIC_TYPES,
    WATER_SURFACE_TYPES,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.rivers import max_slope
from planetgen.models.tile import Tile, dry_out_wetlands
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import percentile_sorted

logger = logging.getLogger(__name__)

RIDGE_MIN_SLOPE = 6
BASIN_MAX_SLOPE = 1.5
BASIN_MIN_DEPTH = 1.0
CANYON_MIN_DEPTH = 2

LANDFORM_TYPES = frozenset({
    SurfaceType.CANYON, SurfaceType.RIDGE, SurfaceType.BASIN_FLOOR,
    SurfaceType.RIDGE_ROCK, SurfaceType.RIDGE_SNOW, SurfaceType.RIDGE_TUNDRA,
    SurfaceType.RIDGE_GRASS, SurfaceType.RIDGE_FOREST, SurfaceType.RIDGE_DESERT,
    SurfaceType.CANYON_ROCK, SurfaceType.CANYON_TUNDRA, SurfaceType.CANYON_GRASS,
    SurfaceType.CANYON_FOREST, SurfaceType.CANYON_DESERT,
    SurfaceType.BASIN_GRASS, SurfaceType.BASIN_FOREST, SurfaceType.BASIN_DRY,
    SurfaceType.BASIN_SWAMP, SurfaceType.BASIN_TUNDRA,
})

_EXCLUDED = (
    WATER_SURFACE_TYPES
    | FROZEN_TYPES
    | VOLCANIC_TYPES
    | LANDFORM_TYPES
    | {SurfaceType.COAST_SANDY, SurfaceType.COAST_ROCKY,
       SurfaceType.REGOLITH, SurfaceType.CRATERED_SURFACE}
)

_RIDGE_HOSTS = frozenset({
    SurfaceType.MOUNTAINS, SurfaceType.HIGH_MOUNTAINS, SurfaceType.MOUNTAINS_SNOW,
    SurfaceType.MOUNTAINS_FOREST, SurfaceType.MOUNTAINS_RAINFOREST, SurfaceType.MOUNTAINS_TUNDRA,
    SurfaceType.MOUNTAINS_ALPINE, SurfaceType.HIGHLANDS, SurfaceType.PLATEAU,
})

_BASIN_HOSTS = frozenset({
    SurfaceType.PLAINS, SurfaceType.PLAINS_GRASS, SurfaceType.PLAINS_FOREST,
    SurfaceType.GRASSLAND, SurfaceType.SAVANNA, SurfaceType.DRY_SAVANNA,
    SurfaceType.FOREST, SurfaceType.RAINFOREST, SurfaceType.HILLS_RAINFOREST,
    SurfaceType.MOUNTAINS_RAINFOREST,
    SurfaceType.DESERT_SAND, SurfaceType.DESERT_ROCKY, SurfaceType.DESERT,
    SurfaceType.ROCKY_DESERT, SurfaceType.SAND_DESERT, SurfaceType.ROCK_DESERT,
    SurfaceType.COLD_DESERT,
    SurfaceType.TUNDRA, SurfaceType.PERMAFROST, SurfaceType.SWAMP, SurfaceType.MUD_SWAMP,
})

# -----------------------------------------------------------------------------
# Biome families
# -----------------------------------------------------------------------------

_TUNDRA = frozenset({SurfaceType.TUNDRA, SurfaceType.PERMAFROST, SurfaceType.HILLS_TUNDRA})
_FORESTS = frozenset({
    SurfaceType.PLAINS_FOREST, SurfaceType.FOREST, SurfaceType.RAINFOREST,
    SurfaceType.HILLS_FOREST, SurfaceType.HILLS_RAINFOREST,
    SurfaceType.MOUNTAINS_FOREST, SurfaceType.MOUNTAINS_RAINFOREST,
})
_GRASS = frozenset({
    SurfaceType.PLAINS_GRASS, SurfaceType.GRASSLAND, SurfaceType.SAVANNA,
    SurfaceType.HILLS_GRASS, SurfaceType.HILLS_SAVANNA,
})
_LOWLAND_DESERTS = frozenset({
    SurfaceType.DESERT_SAND, SurfaceType.DESERT_ROCKY, SurfaceType.DESERT,
    SurfaceType.ROCKY_DESERT, SurfaceType.SAND_DESERT, SurfaceType.ROCK_DESERT,
    SurfaceType.COLD_DESERT,
})
_DESERTS = _LOWLAND_DESERTS | {SurfaceType.HILLS_DESERT, SurfaceType.MOUNTAINS_DESERT}


def _by_family(base: SurfaceType, mapping: Dict[frozenset, SurfaceType], default: SurfaceType) -> SurfaceType:
    for family, landform in mapping.items():
        if base in family:
            return landform
    return default


_RIDGE_BY_FAMILY = {
    frozenset({SurfaceType.MOUNTAINS_SNOW}): SurfaceType.RIDGE_SNOW,
    _TUNDRA: SurfaceType.RIDGE_TUNDRA,
    _FORESTS: SurfaceType.RIDGE_FOREST,
    _GRASS: SurfaceType.RIDGE_GRASS,
    _DESERTS: SurfaceType.RIDGE_DESERT,
}

_CANYON_BY_FAMILY = {
    frozenset({SurfaceType.MOUNTAINS, SurfaceType.HIGH_MOUNTAINS,
               SurfaceType.MOUNTAINS_ALPINE, SurfaceType.MOUNTAINS_SNOW}): SurfaceType.CANYON_ROCK,
    _TUNDRA: SurfaceType.CANYON_TUNDRA,
    _FORESTS: SurfaceType.CANYON_FOREST,
    _GRASS: SurfaceType.CANYON_GRASS,
    _DESERTS: SurfaceType.CANYON_DESERT,
}

# MOUNTAINS_FOREST is absent: a basin never forms under a mountain forest
_BASIN_BY_FAMILY = {
    frozenset({SurfaceType.SWAMP, SurfaceType.MUD_SWAMP}): SurfaceType.BASIN_SWAMP,
    _LOWLAND_DESERTS: SurfaceType.BASIN_DRY,
    _FORESTS - {SurfaceType.MOUNTAINS_FOREST}: SurfaceType.BASIN_FOREST,
    _GRASS | _TUNDRA | {SurfaceType.DRY_SAVANNA, SurfaceType.HILLS_DRY_SAVANNA}: SurfaceType.BASIN_GRASS,
}


def ridge_type(base: SurfaceType) -> SurfaceType:
    return _by_family(base, _RIDGE_BY_FAMILY, SurfaceType.RIDGE_ROCK)


def canyon_type(base: SurfaceType) -> SurfaceType:
    return _by_family(base, _CANYON_BY_FAMILY, SurfaceType.CANYON)


def basin_type(t: Tile) -> SurfaceType:
    if t.temperature <= 0:
        return SurfaceType.BASIN_TUNDRA
    return _by_family(t.surface_type, _BASIN_BY_FAMILY, SurfaceType.BASIN_FLOOR)


def local_depression(t: Tile, tiles: List[Tile]) -> float:
    """How far a tile sits below the mean of its neighbors."""
    if not t.neighbors:
        return 0.0
    mean = sum(tiles[n].elevation for n in t.neighbors) / len(t.neighbors)
    return mean - t.elevation


# =============================================================================
# CLASSIFIER
# =============================================================================

class ReliefClassifier:
    """
    Relief landform classification.

    Canyons follow river incision only; ridges take the highest and
    steepest mountain tiles (at least ``mountain_min_elevation`` and the
    85th elevation percentile); basins take the lowest flat depressions
    (10th percentile).
    """

    def __init__(self, mountain_min_elevation: int):
        self.mountain_min_elevation = mountain_min_elevation

    def apply(self, tiles: List[Tile]) -> Dict[str, int]:
        """
        Classify landforms in place.

        Returns:
            Number of canyon, ridge and basin tiles written
        """
        counts = {"canyon": 0, "ridge": 0, "basin": 0}
        candidates = [t for t in tiles if t.surface_type not in _EXCLUDED]
        if not candidates:
            return counts

        elevations = sorted(t.elevation for t in candidates)
        p10 = percentile_sorted(elevations, 0.10)
        p85 = percentile_sorted(elevations, 0.85)
        ridge_floor = max(self.mountain_min_elevation, p85)

        for t in candidates:
            if self._is_canyon(t):
                t.surface_type = canyon_type(t.surface_type)
                counts["canyon"] += 1
                continue

            slope = max_slope(t, tiles)
            if t.is_river:
                continue
            if t.elevation >= ridge_floor and slope >= RIDGE_MIN_SLOPE and t.surface_type in _RIDGE_HOSTS:
                t.surface_type = ridge_type(t.surface_type)
                counts["ridge"] += 1
            elif (t.elevation <= p10 and slope <= BASIN_MAX_SLOPE
                  and t.surface_type in _BASIN_HOSTS
                  and local_depression(t, tiles) >= BASIN_MIN_DEPTH):
                t.surface_type = basin_type(t)
                counts["basin"] += 1
        return counts

    @staticmethod
    def _is_canyon(t: Tile) -> bool:
        return (t.canyon_depth >= CANYON_MIN_DEPTH
                or t.river_base_type in (RiverBaseType.CANYON, RiverBaseType.WATERFALL))


class ReliefStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.RELIEF,
            name="Relief",
            description="Canyons, ridges and basin floors",
            requires=[StageId.NEIGHBORS, StageId.WATER_CLASSIFY],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        classifier = ReliefClassifier(context.settings.mountain_min_elevation)
        counts = classifier.apply(context.tiles)

        # Basin swamps on a world without liquid water dry out like the biome
        # stage's swamps do
        dried = dry_out_wetlands(context.tiles, (SurfaceType.BASIN_SWAMP,))
        logger.debug(
            "Relief: %d canyons, %d ridges, %d basins, %d dried",
            counts["canyon"], counts["ridge"], counts["basin"], len(dried),
        )
