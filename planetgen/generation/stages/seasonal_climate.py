"""
Planet Generator - Stage: Seasonal Climate
Derives two opposite seasons from the annual climate without disturbing it.

The climate and wind models are run twice more, once with the thermal
equator shifted to +tilt and once to -tilt. Each run starts from the same
annual state, and that state is put back afterwards, so the stage changes
no annual field. It writes four seasonal views:

- interseason: the annual values, copied before any seasonal run
- global warm/cold: the +tilt run is always "warm" and the -tilt run
  always "cold" (hemisphere-fixed, for planet-wide summer/winter display)
- local warm/cold (``biome_*``): per tile, whichever run was hotter there;
  ``biome_warm_from_positive_tilt`` records which run that was. Equal
  temperatures resolve to the +tilt run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from planetgen.config import StageId
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.climate import run_wind_and_sample
from planetgen.models.tile import ANNUAL_CLIMATE_FIELDS, Tile
from planetgen.models.world import WorldContext
from planetgen.simulation.climate import ClimateGenerator

logger = logging.getLogger(__name__)


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass
class AnnualState:
    """Every annual climate field of every tile, by tile position."""

    values: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def capture(cls, tiles: List[Tile]) -> "AnnualState":
        return cls([{name: getattr(t, name) for name in ANNUAL_CLIMATE_FIELDS} for t in tiles])

    def restore(self, tiles: List[Tile]) -> None:
        """Write the captured values back exactly as they were."""
        for t, saved in zip(tiles, self.values):
            for name, value in saved.items():
                setattr(t, name, value)


@dataclass
class SeasonSnapshot:
    """Climate quantities of one seasonal run, by tile position."""

    temp: List[float] = field(default_factory=list)
    temp_min: List[float] = field(default_factory=list)
    temp_max: List[float] = field(default_factory=list)
    wind_avg: List[Optional[float]] = field(default_factory=list)
    wind_max: List[Optional[float]] = field(default_factory=list)
    wind_x: List[float] = field(default_factory=list)
    wind_y: List[float] = field(default_factory=list)
    precip: List[Optional[float]] = field(default_factory=list)
    evap: List[Optional[float]] = field(default_factory=list)
    moisture: List[Optional[float]] = field(default_factory=list)
    sunny_days: List[int] = field(default_factory=list)
    precip_kg_m2_day: List[Optional[float]] = field(default_factory=list)
    evap_kg_m2_day: List[Optional[float]] = field(default_factory=list)
    runoff_kg_m2_day: List[Optional[float]] = field(default_factory=list)

    @classmethod
    def capture(cls, tiles: List[Tile]) -> "SeasonSnapshot":
        snapshot = cls()
        for t in tiles:
            snapshot.temp.append(t.temperature)
            # A run that left no range counts as a single value
            snapshot.temp_min.append(t.temperature if t.temp_min is None else t.temp_min)
            snapshot.temp_max.append(t.temperature if t.temp_max is None else t.temp_max)
            snapshot.wind_avg.append(t.wind_avg)
            snapshot.wind_max.append(t.wind_max)
            snapshot.wind_x.append(t.wind_x)
            snapshot.wind_y.append(t.wind_y)
            snapshot.precip.append(t.precip_avg)
            snapshot.evap.append(t.evap_avg)
            snapshot.moisture.append(t.moisture)
            snapshot.sunny_days.append(t.sunny_days)
            snapshot.precip_kg_m2_day.append(t.precip_kg_m2_day)
            snapshot.evap_kg_m2_day.append(t.evap_kg_m2_day)
            snapshot.runoff_kg_m2_day.append(t.surface_runoff_kg_m2_day)
        return snapshot

    def __len__(self) -> int:
        return len(self.temp)


# =============================================================================
# VIEWS
# =============================================================================

def write_interseason(tiles: List[Tile]) -> None:
    """Copy the annual values into the season-agnostic reference fields."""
    for t in tiles:
        t.biome_temp_interseason = t.temperature
        t.biome_precip_interseason = t.precip_avg
        t.biome_evap_interseason = t.evap_avg
        t.biome_moisture_interseason = t.moisture
        t.temp_min_interseason = t.temperature if t.temp_min is None else t.temp_min
        t.temp_max_interseason = t.temperature if t.temp_max is None else t.temp_max
        t.precip_kg_m2_day_interseason = t.precip_kg_m2_day
        t.evap_kg_m2_day_interseason = t.evap_kg_m2_day
        t.surface_runoff_kg_m2_day_interseason = t.surface_runoff_kg_m2_day


def apply_global_view(tiles: List[Tile], warm: SeasonSnapshot, cold: SeasonSnapshot) -> None:
    """Hemisphere-fixed view: no temperature comparison."""
    for i, t in enumerate(tiles):
        t.temp_warm = warm.temp[i]
        t.wind_warm = warm.wind_avg[i]
        t.wind_max_warm = warm.wind_max[i]
        t.precip_warm = warm.precip[i]
        t.evap_warm = warm.evap[i]
        t.sunny_warm = warm.sunny_days[i]
        t.moisture_warm = warm.moisture[i]
        t.wind_x_warm = warm.wind_x[i]
        t.wind_y_warm = warm.wind_y[i]
        t.temp_min_warm = warm.temp_min[i]
        t.temp_max_warm = warm.temp_max[i]
        t.precip_kg_m2_day_warm = warm.precip_kg_m2_day[i]
        t.evap_kg_m2_day_warm = warm.evap_kg_m2_day[i]
        t.surface_runoff_kg_m2_day_warm = warm.runoff_kg_m2_day[i]

        t.temp_cold = cold.temp[i]
        t.wind_cold = cold.wind_avg[i]
        t.wind_max_cold = cold.wind_max[i]
        t.precip_cold = cold.precip[i]
        t.evap_cold = cold.evap[i]
        t.sunny_cold = cold.sunny_days[i]
        t.moisture_cold = cold.moisture[i]
        t.wind_x_cold = cold.wind_x[i]
        t.wind_y_cold = cold.wind_y[i]
        t.temp_min_cold = cold.temp_min[i]
        t.temp_max_cold = cold.temp_max[i]
        t.precip_kg_m2_day_cold = cold.precip_kg_m2_day[i]
        t.evap_kg_m2_day_cold = cold.evap_kg_m2_day[i]
        t.surface_runoff_kg_m2_day_cold = cold.runoff_kg_m2_day[i]


def apply_local_view(tiles: List[Tile], season_a: SeasonSnapshot, season_b: SeasonSnapshot) -> None:
    """
    Per-tile warm/cold used by biome classification.

    Args:
        tiles: Tile collection
        season_a: The +tilt run; wins ties
        season_b: The -tilt run
    """
    for i, t in enumerate(tiles):
        a_is_warm = season_a.temp[i] >= season_b.temp[i]
        warm, cold = (season_a, season_b) if a_is_warm else (season_b, season_a)

        t.biome_temp_warm = warm.temp[i]
        t.biome_precip_warm = warm.precip[i]
        t.biome_evap_warm = warm.evap[i]
        t.biome_moisture_warm = warm.moisture[i]
        t.biome_warm_from_positive_tilt = a_is_warm

        t.biome_temp_cold = cold.temp[i]
        t.biome_precip_cold = cold.precip[i]
        t.biome_evap_cold = cold.evap[i]
        t.biome_moisture_cold = cold.moisture[i]


def _clear_temp_range(tiles: List[Tile]) -> None:
    for t in tiles:
        t.temp_min = None
        t.temp_max = None


# =============================================================================
# STAGE
# =============================================================================

class SeasonalClimateStage(GenerationStage):
    """Two seasonal runs around the annual baseline; annual fields end unchanged."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.SEASONAL_CLIMATE,
            name="Seasonal Climate",
            description="Warm and cold seasons from opposite axial tilt",
            requires=[StageId.NEIGHBORS, StageId.BASE_SURFACE],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        tiles = context.tiles

        annual = AnnualState.capture(tiles)
        write_interseason(tiles)

        tilt = context.planet.clamped_tilt()
        season_a = self.run_season(context, tilt)

        # Season B starts from the annual state, never from season A's
        annual.restore(tiles)
        season_b = self.run_season(context, -tilt)

        apply_global_view(tiles, season_a, season_b)
        apply_local_view(tiles, season_a, season_b)

        annual.restore(tiles)

        flipped = sum(1 for t in tiles if t.biome_warm_from_positive_tilt is False)
        logger.debug(
            "Seasonal climate: tilt %.1f°, %d/%d tiles warmer under -tilt",
            tilt, flipped, len(tiles)
        )

    @staticmethod
    def run_season(context: WorldContext, shift_lat: float) -> SeasonSnapshot:
        """One seasonal run of climate, wind and summary, captured afterwards."""
        tiles = context.tiles
        _clear_temp_range(tiles)
        ClimateGenerator().generate_season(tiles, context.planet, shift_lat)
        run_wind_and_sample(context, shift_lat)
        return SeasonSnapshot.capture(tiles)
