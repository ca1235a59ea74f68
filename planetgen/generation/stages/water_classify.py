"""
Planet Generator - Stage: Water Classification
Turns the generic base-surface water into open sea, sea ice, steam seas and
lakes, and marks coasts.

Water tiles are the ones that were OCEAN or ICE_OCEAN in the base-surface
snapshot, not the current surface types: stages between the base surface
and this one may have reclassified relief on top of the water.
"""

import logging
import math
from collections import deque
from typing import List, Sequence, Set

import numpy as np

from planetgen.config import (
    COAST_TILE_SEED_STRIDE,
    HEIGHT_LAPSE_RATE,
    METERS_PER_ELEVATION_UNIT,
    PlanetConfig,
    StageId,
    SurfaceType,
    WaterCoverage,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.tectonics import is_plate_boundary
from planetgen.models.tile import Tile, is_liquid_water
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import angular_distance_deg

logger = logging.getLogger(__name__)

_BASE_WATER = frozenset({SurfaceType.OCEAN, SurfaceType.ICE_OCEAN})

_OCEAN_SURFACES = frozenset({
    SurfaceType.OCEAN,
    SurfaceType.ICE_OCEAN,
    SurfaceType.LAVA_OCEAN,
    SurfaceType.OPEN_WATER_SHALLOW,
    SurfaceType.OPEN_WATER_DEEP,
    SurfaceType.SEA_ICE_SHALLOW,
    SurfaceType.SEA_ICE_DEEP,
})

# Land that never turns into a beach
_NO_COAST = frozenset({
    SurfaceType.VOLCANIC,
    SurfaceType.VOLCANIC_FIELD,
    SurfaceType.VOLCANO,
    SurfaceType.ACTIVE_VOLCANO,
    SurfaceType.LAVA_PLAINS,
    SurfaceType.LAVA_ISLANDS,
    SurfaceType.LAVA,
    SurfaceType.ICE,
    SurfaceType.ICE_SHEET,
    SurfaceType.GLACIER,
    SurfaceType.METHANE_ICE,
    SurfaceType.AMMONIA_ICE,
    SurfaceType.CO2_ICE,
    SurfaceType.CRATERED_SURFACE,
    SurfaceType.REGOLITH,
    SurfaceType.SWAMP,
    SurfaceType.MUD_SWAMP,
})

TERMINATOR_BAND = (65.0, 115.0)
LAPSE_PER_ELEVATION_UNIT = HEIGHT_LAPSE_RATE * METERS_PER_ELEVATION_UNIT


def boiling_point_c(pressure_bar: float) -> float:
    """Boiling point of water from the Antoine equation."""
    p_mmhg = max(0.01, pressure_bar) * 750.062
    return 1810.94 / (8.14019 - math.log10(p_mmhg)) - 244.485


def is_water_surface(surface_type: SurfaceType) -> bool:
    """Liquid water bodies plus steam seas."""
    return is_liquid_water(surface_type) or surface_type == SurfaceType.STEAM_SEA


def water_components(tiles: List[Tile], is_water: Sequence[bool]) -> List[List[int]]:
    """Connected water bodies, each a list of tile ids in BFS order."""
    visited = [False] * len(tiles)
    components = []
    for start in range(len(tiles)):
        if not is_water[start] or visited[start]:
            continue
        visited[start] = True
        component = []
        queue = deque([start])
        while queue:
            current = queue.popleft()
            component.append(current)
            for n in tiles[current].neighbors:
                if is_water[n] and not visited[n]:
                    visited[n] = True
                    queue.append(n)
        components.append(component)
    return components


class WaterClassifier:
    """
    Classifies water bodies from the base-surface snapshot.

    Args:
        seed: Run seed; per-tile draws use seed + id * COAST_TILE_SEED_STRIDE
    """

    def __init__(self, seed: int):
        self.seed = seed

    def _tile_rng(self, tile_id: int) -> np.random.Generator:
        return np.random.default_rng(self.seed + tile_id * COAST_TILE_SEED_STRIDE)

    def apply(self, tiles: List[Tile], planet: PlanetConfig, base: List[SurfaceType]) -> None:
        is_water = [st in _BASE_WATER for st in base]
        if not any(is_water):
            return

        if not planet.has_atmosphere:
            self._freeze_airless(tiles, base, is_water)
            return

        land_fraction = sum(1 for w in is_water if not w) / len(base)
        components = water_components(tiles, is_water)
        ocean_ids: Set[int] = set(max(components, key=len))
        boil = boiling_point_c(planet.atmosphere_density)

        for t in tiles:
            t.boiling_point_c = boil
            if not is_water[t.id]:
                continue
            shallow = self._is_shallow(t, tiles, is_water, land_fraction)
            in_ocean = t.id in ocean_ids

            if t.temperature <= 0.0:
                if in_ocean or t.surface_type == SurfaceType.ICE_OCEAN:
                    t.surface_type = SurfaceType.SEA_ICE_SHALLOW if shallow else SurfaceType.SEA_ICE_DEEP
                else:
                    t.surface_type = SurfaceType.ICE_SHEET if t.temperature < -12.0 else SurfaceType.GLACIER
            elif t.surface_type == SurfaceType.ICE_OCEAN:
                t.surface_type = SurfaceType.SEA_ICE_SHALLOW if shallow else SurfaceType.SEA_ICE_DEEP
            elif planet.tidal_locked and not _in_terminator_band(t):
                t.surface_type = _fallback_land(t, tiles, base)
            elif t.temperature > boil + 1.5:
                t.surface_type = _fallback_land(t, tiles, base)
            elif t.temperature >= boil - 5.0:
                t.surface_type = SurfaceType.STEAM_SEA
            elif in_ocean:
                t.surface_type = SurfaceType.OPEN_WATER_SHALLOW if shallow else SurfaceType.OPEN_WATER_DEEP
            else:
                t.surface_type = _lake_type(t, planet)

        self._mark_coasts(tiles)
        _apply_underwater_elevation(tiles)

    def _freeze_airless(self, tiles: List[Tile], base: List[SurfaceType], is_water: List[bool]) -> None:
        """No liquid water without an atmosphere: freeze it or dry it out."""
        for t in tiles:
            if not is_water_surface(t.surface_type) and not is_water[t.id]:
                continue
            t.surface_type = SurfaceType.ICE if t.temperature <= 0 else _fallback_land(t, tiles, base)

    def _is_shallow(self, t: Tile, tiles: List[Tile], is_water: List[bool], land_fraction: float) -> bool:
        if any(not is_water[n] for n in t.neighbors):
            return True
        rng = self._tile_rng(t.id)
        if is_plate_boundary(t, tiles) and rng.random() < 0.35:
            return True
        if land_fraction < 0.02:
            # Ocean planets rarely have shelves
            return rng.random() < 0.08
        return rng.random() < 0.6

    def _mark_coasts(self, tiles: List[Tile]) -> None:
        for t in tiles:
            if is_water_surface(t.surface_type) or t.surface_type in _NO_COAST:
                continue
            water_neighbors = sum(1 for n in t.neighbors if is_liquid_water(tiles[n].surface_type))
            if water_neighbors == 0:
                continue

            slope = max((abs(t.elevation - tiles[n].elevation) for n in t.neighbors), default=0)
            ocean_adjacent = any(tiles[n].surface_type in _OCEAN_SURFACES for n in t.neighbors)
            chance = 0.08 if ocean_adjacent else 0.03
            if water_neighbors >= 3:
                chance *= 1.6
            if water_neighbors == 1:
                chance *= 0.7
            if slope >= 6:
                chance *= 0.5
            if slope <= 2:
                chance *= 1.3
            if self._tile_rng(t.id).random() > chance:
                continue
            sandy = t.rock_hardness < 0.45 and slope <= 4
            t.surface_type = SurfaceType.COAST_SANDY if sandy else SurfaceType.COAST_ROCKY


def _lake_type(t: Tile, planet: PlanetConfig) -> SurfaceType:
    precip = 0.0 if t.precip_avg is None else t.precip_avg
    dry_world = planet.water_coverage <= WaterCoverage.LAKES
    salt_score = _clamp01((t.temperature - 15.0) / 20.0) * _clamp01((40.0 - precip) / 40.0)
    if dry_world:
        salt_score += 0.1
    if salt_score <= 0.45:
        return SurfaceType.LAKE_FRESH
    if _is_acid_world(planet):
        return SurfaceType.LAKE_ACID
    if t.temperature > 35 or precip < 25 or dry_world:
        return SurfaceType.LAKE_BRINE
    return SurfaceType.LAKE_SALT


def _is_acid_world(planet: PlanetConfig) -> bool:
    if not planet.has_atmosphere or planet.has_life or planet.o2_pct > 1.0:
        return False
    if planet.atmosphere_density < 5.0:
        return False
    return planet.base_temperature_k() > 330 or planet.greenhouse_delta_k > 30


def _in_terminator_band(t: Tile) -> bool:
    distance = float(angular_distance_deg(t.lat, t.lon, 0.0, 0.0))
    return TERMINATOR_BAND[0] <= distance <= TERMINATOR_BAND[1]


def _fallback_land(t: Tile, tiles: List[Tile], base: List[SurfaceType]) -> SurfaceType:
    """Land type for water that cannot stay liquid: its base type or the most common land around it."""
    own = base[t.id]
    if not is_water_surface(own):
        return own
    counts = {}
    for n in t.neighbors:
        neighbor_type = base[n]
        if not is_water_surface(neighbor_type):
            counts[neighbor_type] = counts.get(neighbor_type, 0) + 1
    if not counts:
        return SurfaceType.PLAINS
    return max(sorted(counts), key=lambda st: counts[st])


def _apply_underwater_elevation(tiles: List[Tile]) -> None:
    """
    Keep the sea-floor height and put water surfaces at elevation 0.

    The climate model cooled those tiles by the lapse rate for their old
    height; that cooling is added back.
    """
    for t in tiles:
        if is_water_surface(t.surface_type):
            if t.elevation != 0:
                old = t.elevation
                t.underwater_elevation = float(old)
                t.elevation = 0
                if old > 0:
                    t.temperature += int(round(old * LAPSE_PER_ELEVATION_UNIT))
        else:
            t.underwater_elevation = 0.0


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class WaterClassifyStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.WATER_CLASSIFY,
            name="Water Classification",
            description="Open water, sea ice, steam seas, lakes and coasts",
            requires=[StageId.NEIGHBORS, StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        base = context.require_base_surface(self.stage_id)
        context.require_neighbors(self.stage_id)
        WaterClassifier(context.settings.seed).apply(context.tiles, context.planet, base)

        water = sum(1 for t in context.tiles if is_liquid_water(t.surface_type))
        logger.debug("Water classification: %d liquid water tiles", water)
