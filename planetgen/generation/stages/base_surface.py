"""
Planet Generator - Stage: Base Surface
Lays out the first land/water split, keyed on the planet's water regime.

Water grows as basins from weighted seeds; land on water-dominated worlds
grows as islands. Seeds prefer latitudes that suit the planet's climate:
temperate worlds pool water near the equator, hot worlds toward the poles,
and tidally locked worlds along the terminator ring.
"""

import logging
from typing import List, Optional, Set

import numpy as np

from planetgen.config import (
    BASE_SURFACE_SEED_OFFSET,
    PlanetConfig,
    StageId,
    SurfaceType,
    WaterCoverage,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import angular_distance_deg

logger = logging.getLogger(__name__)

OCEAN_TARGET_HALF_STEP = 5  # percent either side of the nominal coverage
BASIN_SEED_MIN_DISTANCE = 8.0
HOT_WORLD_K = 300.0
TERMINATOR_SIGMA = 25.0


class BaseSurfaceGenerator:
    """
    Seeded land/water layout.

    Args:
        seed: Run seed; the layout draws from seed + BASE_SURFACE_SEED_OFFSET
        adjacency: Neighbor ids per tile used for basin growth
    """

    def __init__(self, seed: int, adjacency: List[List[int]]):
        self.rng = np.random.default_rng(seed + BASE_SURFACE_SEED_OFFSET)
        self.adjacency = adjacency

    def generate(self, tiles, planet: PlanetConfig, ocean_percent: float) -> None:
        ocean_target = self.target_water_tiles(len(tiles), ocean_percent)
        coverage = planet.water_coverage

        if coverage in (WaterCoverage.ARCHIPELAGOS, WaterCoverage.OCEAN_PLANET):
            _fill(tiles, SurfaceType.OCEAN)
        else:
            _fill(tiles, SurfaceType.PLAINS)

        if coverage == WaterCoverage.DRY:
            pass
        elif coverage == WaterCoverage.LAKES:
            self._scatter(tiles, planet, ocean_target, 3, 12.0, SurfaceType.OCEAN)
        elif coverage == WaterCoverage.SEAS:
            self._grow_basins(tiles, planet, ocean_target, int(self.rng.integers(2, 4)))
        elif coverage == WaterCoverage.OCEAN:
            self._grow_basins(tiles, planet, ocean_target, 1)
        elif coverage == WaterCoverage.OCEANS:
            self._grow_basins(tiles, planet, ocean_target, 2)
        elif coverage == WaterCoverage.MANY_OCEANS:
            self._grow_basins(tiles, planet, ocean_target, 3)
        elif coverage == WaterCoverage.ARCHIPELAGOS:
            self._scatter(tiles, planet, len(tiles) - ocean_target, 3, 6.0, SurfaceType.PLAINS)
        elif coverage == WaterCoverage.OCEAN_PLANET:
            # Rare peaks of land
            if self.rng.integers(100) < 40:
                self._scatter(tiles, planet, max(1, len(tiles) // 200), 2, 10.0, SurfaceType.PLAINS)

    def target_water_tiles(self, total: int, ocean_percent: float) -> int:
        """Water tile count drawn uniformly within ±5 % of the nominal coverage."""
        ocean = int(round(max(0.0, min(100.0, ocean_percent))))
        low = max(0, ocean - OCEAN_TARGET_HALF_STEP)
        high = min(100, ocean + OCEAN_TARGET_HALF_STEP)
        target = ocean if low == high else int(self.rng.integers(low, high + 1))
        return int(round(total * target / 100.0))

    # -------------------------------------------------------------------------
    # Layout helpers
    # -------------------------------------------------------------------------

    def _grow_basins(self, tiles, planet: PlanetConfig, water_tiles: int, basins: int) -> None:
        if water_tiles <= 0:
            return
        water: Set[int] = set()
        seeds: List[int] = []
        remaining = water_tiles
        for b in range(basins):
            if remaining <= 0:
                break
            target = max(1, remaining // (basins - b))
            seed = self._pick_weighted(tiles, planet, for_water=True)
            if not _far_enough(tiles, seed, seeds, BASIN_SEED_MIN_DISTANCE):
                continue
            seeds.append(seed)
            remaining -= self._grow_from_seed(tiles, seed, target, water, SurfaceType.OCEAN)

    def _scatter(self, tiles, planet: PlanetConfig, count: int, max_size: int,
                 min_seed_distance: float, surface: SurfaceType) -> None:
        """Small patches (lakes or islands) until ``count`` tiles are converted."""
        if count <= 0:
            return
        for_water = surface == SurfaceType.OCEAN
        placed: Set[int] = set()
        seeds: List[int] = []
        attempts = 0
        while len(placed) < count and attempts < len(tiles) * 5:
            seed = self._pick_weighted(tiles, planet, for_water)
            attempts += 1
            if not _far_enough(tiles, seed, seeds, min_seed_distance):
                continue
            seeds.append(seed)
            size = 1 + int(self.rng.integers(max_size))
            self._grow_from_seed(tiles, seed, size, placed, surface)

    def _grow_from_seed(self, tiles, seed: int, target: int, visited: Set[int], surface: SurfaceType) -> int:
        """Random-frontier flood fill. Returns the number of tiles converted."""
        if seed in visited:
            return 0
        added = 0
        frontier = [seed]
        while frontier and added < target:
            current = frontier.pop(int(self.rng.integers(len(frontier))))
            if current in visited:
                continue
            visited.add(current)
            tiles[current].surface_type = surface
            added += 1
            frontier.extend(n for n in self.adjacency[current] if n not in visited)
        return added

    def _pick_weighted(self, tiles, planet: PlanetConfig, for_water: bool) -> int:
        weights = climate_weights(tiles, planet, for_water)
        total = weights.sum()
        if total <= 0.0:
            return int(self.rng.integers(len(tiles)))
        return int(self.rng.choice(len(tiles), p=weights / total))


def climate_weights(tiles, planet: PlanetConfig, for_water: bool) -> np.ndarray:
    """Seed preference per tile; land prefers what water avoids."""
    lat = np.array([t.lat for t in tiles], dtype=np.float64)
    if planet.tidal_locked:
        lon = np.array([t.lon for t in tiles], dtype=np.float64)
        offset = angular_distance_deg(lat, lon, 0.0, 0.0) - 90.0
        weights = np.exp(-(offset * offset) / (2.0 * TERMINATOR_SIGMA ** 2))
    else:
        lat_share = np.abs(lat) / 90.0
        hot = planet.base_temperature_k() > HOT_WORLD_K
        weights = 0.3 + 0.7 * (lat_share if hot else 1.0 - lat_share)
    if not for_water:
        weights = 1.0 / (0.2 + weights)
    return weights


def _fill(tiles, surface: SurfaceType) -> None:
    for t in tiles:
        t.surface_type = surface


def _far_enough(tiles, seed: int, others: List[int], min_distance_deg: float) -> bool:
    t = tiles[seed]
    return all(
        angular_distance_deg(t.lat, t.lon, tiles[o].lat, tiles[o].lon) >= min_distance_deg
        for o in others
    )


def ocean_percent(context: WorldContext) -> float:
    """Nominal ocean coverage in percent: the settings override, else the water regime."""
    override: Optional[float] = context.settings.ocean_coverage
    if override is not None:
        return override * 100.0
    return context.planet.ocean_fraction * 100.0


class BaseSurfaceStage(GenerationStage):
    """Base land/water layout plus the snapshot read by water classification."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.BASE_SURFACE,
            name="Base Surface",
            description="Initial land/water split from the water regime",
        )

    def apply(self, context: WorldContext) -> None:
        generator = BaseSurfaceGenerator(context.settings.seed, context.adjacency())
        generator.generate(context.tiles, context.planet, ocean_percent(context))
        context.snapshot_base_surface()

        water = sum(1 for t in context.tiles if t.surface_type == SurfaceType.OCEAN)
        logger.debug(
            "Base surface: %d/%d water tiles (%s)",
            water, len(context.tiles), context.planet.water_coverage.name
        )
