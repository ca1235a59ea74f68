"""
Planet Generator - Stages: Annual Climate
Temperature and pressure, then wind and moisture transport, then the
annual climate summary. The recalc stage reruns all three over eroded relief.
"""

import logging

from planetgen.config import StageId
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.world import WorldContext
from planetgen.simulation.climate import ClimateGenerator
from planetgen.simulation.sampler import ClimateSampler
from planetgen.simulation.wind import WindGenerator

logger = logging.getLogger(__name__)


def wind_generator_for(context: WorldContext) -> WindGenerator:
    """Wind model with the coupling coefficients from the run settings."""
    settings = context.settings
    return WindGenerator(settings.wind_alpha, settings.wind_beta, settings.wind_gamma)


def run_wind_and_sample(context: WorldContext, seasonal_shift_lat: float = 0.0) -> None:
    """Wind and moisture transport followed by the climate summary."""
    wind_generator_for(context).generate(
        context.tiles,
        context.planet,
        seasonal_shift_lat,
        context.settings.seed,
        context.settings.climate_model_mode,
    )
    ClimateSampler.sample(context.tiles, context.planet)


class ClimateStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.CLIMATE,
            name="Climate",
            description="Annual temperature and pressure",
            requires=[StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        ClimateGenerator().generate(context.tiles, context.planet)


class WindStage(GenerationStage):
    """Wind, heat and moisture transport; samples the annual summary right after."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.WIND,
            name="Wind",
            description="Wind field, moisture cycle and climate summary",
            requires=[StageId.NEIGHBORS, StageId.CLIMATE],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        run_wind_and_sample(context)


class ClimateRecalcStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.CLIMATE_RECALC,
            name="Climate Recalc",
            description="Rerun climate, wind and summary over eroded relief",
            requires=[StageId.NEIGHBORS, StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        ClimateGenerator().generate(context.tiles, context.planet)
        run_wind_and_sample(context)
