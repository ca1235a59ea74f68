"""
Planet Generator - Stage: Water Rebalance
Corrects the land/water layout on low-water worlds against the precipitation
the wind model produced: dry ocean tiles are drained and wet land is flooded.
"""

import logging
from typing import List, Tuple

import numpy as np

from planetgen.config import (
    StageId,
    SurfaceType,
    WATER_REBALANCE_SEED_OFFSET,
    WaterCoverage,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.tile import Tile
from planetgen.models.world import WorldContext

logger = logging.getLogger(__name__)

DRY_OCEAN_PRECIP = 25.0
WET_LAND_PRECIP = 45.0


def rebalance_candidates(tiles: List[Tile]) -> Tuple[List[Tile], List[Tile]]:
    """
    Split tiles into dry ocean and wet land.

    Returns:
        (dry ocean tiles, wet land tiles); absent precipitation counts as 0
    """
    dry_ocean, wet_land = [], []
    for t in tiles:
        precip = 0.0 if t.precip_avg is None else t.precip_avg
        if t.surface_type == SurfaceType.OCEAN:
            if precip < DRY_OCEAN_PRECIP:
                dry_ocean.append(t)
        elif precip > WET_LAND_PRECIP:
            wet_land.append(t)
    return dry_ocean, wet_land


def swap_water(dry_ocean: List[Tile], wet_land: List[Tile], rng: np.random.Generator) -> int:
    """
    Random drain/flood pairs, min(|dry|, |wet|) draws.

    A draw that picks the same tile twice is skipped.

    Returns:
        Number of swaps performed
    """
    if not dry_ocean or not wet_land:
        return 0
    swaps = 0
    for _ in range(min(len(dry_ocean), len(wet_land))):
        source = dry_ocean[int(rng.integers(len(dry_ocean)))]
        target = wet_land[int(rng.integers(len(wet_land)))]
        if source is target:
            continue
        source.surface_type = SurfaceType.PLAINS
        target.surface_type = SurfaceType.OCEAN
        swaps += 1
    return swaps


class WaterRebalanceStage(GenerationStage):
    """Runs only on worlds with an atmosphere and LAKES or SEAS water."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.WATER_REBALANCE,
            name="Water Rebalance",
            description="Swap dry ocean with wet land on low-water worlds",
            requires=[StageId.WIND],
        )

    @staticmethod
    def applies_to(context: WorldContext) -> bool:
        planet = context.planet
        return planet.has_atmosphere and WaterCoverage.LAKES <= planet.water_coverage < WaterCoverage.OCEAN

    def apply(self, context: WorldContext) -> None:
        if not self.applies_to(context):
            return
        dry_ocean, wet_land = rebalance_candidates(context.tiles)
        rng = np.random.default_rng(context.settings.seed + WATER_REBALANCE_SEED_OFFSET)
        swaps = swap_water(dry_ocean, wet_land, rng)
        logger.debug(
            "Water rebalance: %d swaps (%d dry ocean, %d wet land)",
            swaps, len(dry_ocean), len(wet_land)
        )
