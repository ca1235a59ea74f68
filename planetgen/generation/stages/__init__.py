"""
Planet Generator - Generation Stages
One module per stage family; default_stages() lists them in canonical order.
"""

from typing import List

from planetgen.generation.base_stage import GenerationStage
from planetgen.generation.stages.base_surface import BaseSurfaceStage
from planetgen.generation.stages.biomes import BiomeStage
from planetgen.generation.stages.climate import ClimateRecalcStage, ClimateStage, WindStage
from planetgen.generation.stages.erosion import ErosionStage
from planetgen.generation.stages.neighbors import BuildNeighborsStage
from planetgen.generation.stages.relief import ReliefStage
from planetgen.generation.stages.resources import ResourceStage
from planetgen.generation.stages.rivers import RiverStage
from planetgen.generation.stages.seasonal_climate import SeasonalClimateStage
from planetgen.generation.stages.surface_effects import IceStage, ImpactStage, LavaStage
from planetgen.generation.stages.tectonics import (
    MountainsStage,
    OrogenesisStage,
    PlatesStage,
    StressStage,
    VolcanoStage,
)
from planetgen.generation.stages.water_classify import WaterClassifyStage
from planetgen.generation.stages.water_rebalance import WaterRebalanceStage


def default_stages() -> List[GenerationStage]:
    """Fresh instances of every stage, in STAGE_ORDER."""
    return [
        BuildNeighborsStage(),
        BaseSurfaceStage(),
        PlatesStage(),
        StressStage(),
        OrogenesisStage(),
        MountainsStage(),
        VolcanoStage(),
        ClimateStage(),
        WindStage(),
        WaterRebalanceStage(),
        ErosionStage(),
        ClimateRecalcStage(),
        SeasonalClimateStage(),
        ImpactStage(),
        IceStage(),
        LavaStage(),
        WaterClassifyStage(),
        RiverStage(),
        BiomeStage(),
        ReliefStage(),
        ResourceStage(),
    ]


__all__ = ["default_stages"]
