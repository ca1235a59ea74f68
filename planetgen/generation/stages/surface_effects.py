"""
Planet Generator - Stages: Surface Effects
Impact cratering, ice cover and lava-world surfaces.
"""

import logging
from collections import deque
from typing import List

import numpy as np

from planetgen.config import (
    IMPACT_SEED_OFFSET,
    LAVA_SEED_OFFSET,
    StageId,
    SurfaceType,
    WaterCoverage,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.tectonics import is_plate_boundary
from planetgen.models.tile import Tile
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import angular_distance_deg

logger = logging.getLogger(__name__)

_MASK_64 = (1 << 64) - 1
_MOLTEN_OR_SEA = frozenset({SurfaceType.OCEAN, SurfaceType.LAVA_OCEAN})


def hash01(seed: int, key: int) -> float:
    """Stateless uniform value in [0, 1] for a (seed, key) pair."""
    x = (seed + key * 0x9E3779B97F4A7C15) & _MASK_64
    x ^= x >> 27
    x = (x * 0x3C79AC492BA7B653) & _MASK_64
    x ^= x >> 33
    x = (x * 0x1C69B3F74AC4AE35) & _MASK_64
    x ^= x >> 27
    return (x & 0xFFFFFFFF) / 0xFFFFFFFF


# =============================================================================
# IMPACTS
# =============================================================================

CRATER_KM_PER_STEP = 100.0
RIM_FACTOR = 1.35


def bfs_layers(tiles: List[Tile], center: int, max_rings: int) -> List[List[int]]:
    """Rings of tile ids around ``center`` by neighbor hops, center first."""
    layers = []
    visited = {center}
    queue = deque([center])
    while queue and len(layers) <= max_rings:
        layer = []
        for _ in range(len(queue)):
            current = queue.popleft()
            layer.append(current)
            for n in tiles[current].neighbors:
                if n not in visited:
                    visited.add(n)
                    queue.append(n)
        layers.append(layer)
    return layers


def _crater_radius_steps(rng: np.random.Generator) -> int:
    x = rng.random()
    if x < 0.60:
        return 1
    if x < 0.85:
        return 2
    if x < 0.95:
        return 3
    return 4


def apply_impacts(tiles: List[Tile], has_atmosphere: bool, radius_km: float, seed: int) -> int:
    """
    Stamp craters; airless bodies get four times as many plus regolith rims.

    Returns:
        Number of craters
    """
    n = len(tiles)
    if n == 0:
        return 0
    rng = np.random.default_rng(seed + IMPACT_SEED_OFFSET)
    rate = 0.01 if has_atmosphere else 0.04
    crater_count = max(1, int(round(n * rate)))
    km_per_degree = np.radians(1.0) * radius_km

    for _ in range(crater_count):
        center = int(rng.integers(n))
        steps = _crater_radius_steps(rng)
        depth = 1 + int(rng.integers(2 + steps))

        crater_km = steps * CRATER_KM_PER_STEP
        rim_km = crater_km * RIM_FACTOR
        crater_seed = seed + center * 92821 + steps * 31
        c = tiles[center]

        for layer in bfs_layers(tiles, center, steps + 3):
            for tile_id in layer:
                t = tiles[tile_id]
                dist_km = float(angular_distance_deg(c.lat, c.lon, t.lat, t.lon)) * km_per_degree
                effective = crater_km * (1.0 + (hash01(crater_seed, t.id) - 0.5) * 0.25)
                if dist_km <= effective:
                    norm = min(1.0, dist_km / max(1.0, effective))
                    t.elevation = max(0, t.elevation - max(1, int(round(depth * (1.0 - norm)))))
                    if t.surface_type not in _MOLTEN_OR_SEA:
                        t.surface_type = SurfaceType.CRATERED_SURFACE
                elif dist_km <= rim_km and not has_atmosphere and t.surface_type not in _MOLTEN_OR_SEA:
                    t.surface_type = SurfaceType.REGOLITH
    return crater_count


class ImpactStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.IMPACTS,
            name="Impacts",
            description="Impact craters and regolith",
            requires=[StageId.NEIGHBORS, StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        planet = context.planet
        count = apply_impacts(context.tiles, planet.has_atmosphere, planet.radius_km, context.settings.seed)
        logger.debug("Impacts: %d craters", count)


# =============================================================================
# ICE
# =============================================================================

def subsurface_ice_thickness(planet) -> float:
    """Rough ice shell over a subsurface ocean, in meters."""
    base = 0
    if planet.water_coverage >= WaterCoverage.SEAS:
        base = 500
    if planet.volcanism > 50:
        base -= 200
    if planet.tidal_locked:
        base -= 150
    if planet.base_temperature_k() < 200:
        base += 500
    return float(max(0, base))


def apply_ice(tiles: List[Tile], planet) -> None:
    """Freeze tiles from their annual temperature range."""
    for t in tiles:
        warm = t.temperature if t.temp_max is None else t.temp_max
        cold = t.temperature if t.temp_min is None else t.temp_min

        if t.surface_type == SurfaceType.OCEAN:
            if warm < 0.0:
                t.surface_type = SurfaceType.ICE_OCEAN
            continue

        if warm < 0.0 or cold < -10.0:
            if cold < -20.0:
                t.surface_type = SurfaceType.ICE_SHEET
            elif cold < -5.0:
                t.surface_type = SurfaceType.GLACIER
            else:
                t.surface_type = SurfaceType.TUNDRA
        elif cold < 0.0:
            t.surface_type = SurfaceType.PERMAFROST

    # Volatile ices on the coldest ground
    methane, ammonia = planet.methane_ice_frac, planet.ammonia_ice_frac
    if methane + ammonia <= 0.05:
        return
    for t in tiles:
        cold = t.temperature if t.temp_min is None else t.temp_min
        if cold > -20:
            continue
        if methane > ammonia and cold < -30:
            t.surface_type = SurfaceType.METHANE_ICE
        elif ammonia >= methane and cold < -25:
            t.surface_type = SurfaceType.AMMONIA_ICE
        elif cold < -40 and planet.co2_ice_frac > 0.0:
            t.surface_type = SurfaceType.CO2_ICE


class IceStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.ICE,
            name="Ice",
            description="Ice sheets, glaciers, tundra, permafrost and volatile ices",
            requires=[StageId.CLIMATE],
        )

    def apply(self, context: WorldContext) -> None:
        apply_ice(context.tiles, context.planet)
        context.planet.subsurface_ice_thickness_m = subsurface_ice_thickness(context.planet)
        frozen = sum(1 for t in context.tiles if t.surface_type in (
            SurfaceType.ICE_SHEET, SurfaceType.GLACIER, SurfaceType.ICE_OCEAN
        ))
        logger.debug("Ice: %d frozen tiles", frozen)


# =============================================================================
# LAVA
# =============================================================================

def apply_lava(tiles: List[Tile], seed: int) -> None:
    """Molten surface with volcanic terrain where volcanism and stress are high."""
    rng = np.random.default_rng(seed + LAVA_SEED_OFFSET)
    for t in tiles:
        t.surface_type = SurfaceType.LAVA_OCEAN

    for t in tiles:
        boundary = is_plate_boundary(t, tiles)
        score = (t.volcanism / 100.0) * 0.6 + (t.tectonic_stress / 100.0) * 0.4 + (0.2 if boundary else 0.0)
        if score > 0.7 and rng.random() < 0.6:
            t.surface_type = SurfaceType.VOLCANO
        elif score > 0.5 and rng.random() < 0.6:
            t.surface_type = SurfaceType.VOLCANIC_FIELD
        elif score > 0.3 and rng.random() < 0.5:
            t.surface_type = SurfaceType.LAVA_PLAINS
        elif rng.random() < 0.05:
            t.surface_type = SurfaceType.LAVA_ISLANDS


class LavaStage(GenerationStage):
    """Only changes lava worlds; other planets pass through untouched."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.LAVA,
            name="Lava",
            description="Lava oceans and volcanic terrain on lava worlds",
            requires=[StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        if not context.planet.lava_world:
            return
        apply_lava(context.tiles, context.settings.seed)
