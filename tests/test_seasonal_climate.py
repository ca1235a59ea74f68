"""
Seasonal Climate Tests
Two-run seasonal climate around an untouched annual baseline.
"""

import pytest

from planetgen.config import GeneratorSettings, PlanetConfig, StageId
from planetgen.generation.pipeline import create_pipeline
from planetgen.generation.profiles import StageProfile
from planetgen.generation.stages.seasonal_climate import (
    AnnualState,
    SeasonSnapshot,
    SeasonalClimateStage,
    apply_global_view,
    apply_local_view,
)
from planetgen.models.tile import ANNUAL_CLIMATE_FIELDS, Tile
from planetgen.topology import icosphere_template

ANNUAL_PROFILE = StageProfile.of("annual", [
    StageId.NEIGHBORS, StageId.BASE_SURFACE, StageId.PLATES, StageId.CLIMATE, StageId.WIND,
])

SEASONAL_PROFILE = StageProfile.of("seasonal", [
    StageId.NEIGHBORS, StageId.BASE_SURFACE, StageId.PLATES, StageId.SEASONAL_CLIMATE,
])


def _annual_context(tilt=23.5, seed=42):
    planet = PlanetConfig(axial_tilt=tilt)
    return create_pipeline(ANNUAL_PROFILE).run(icosphere_template(2), planet, GeneratorSettings(seed=seed))


def _annual_values(tiles):
    return [[getattr(t, name) for name in ANNUAL_CLIMATE_FIELDS] for t in tiles]


class TestBaselineInvariance:
    """Annual fields come out of the seasonal stage exactly as they went in"""

    @pytest.mark.parametrize("tilt", [23.5, 0.0, -40.0, 90.0])
    def test_annual_fields_unchanged(self, tilt):
        """Test every annual field is restored after both seasonal runs"""
        context = _annual_context(tilt)
        before = _annual_values(context.tiles)

        SeasonalClimateStage().apply(context)

        assert _annual_values(context.tiles) == before

    def test_interseason_copies_annual(self):
        """Test interseason fields hold the pre-seasonal annual values"""
        context = _annual_context()
        SeasonalClimateStage().apply(context)
        for t in context.tiles:
            assert t.biome_temp_interseason == t.temperature
            assert t.biome_precip_interseason == t.precip_avg
            assert t.precip_kg_m2_day_interseason == t.precip_kg_m2_day

    def test_restore_round_trip(self):
        """Test AnnualState puts back values overwritten in between"""
        tiles = [Tile(0, 10.0, 0.0), Tile(1, -10.0, 0.0)]
        tiles[0].temperature = 12
        tiles[1].moisture = 40.0
        state = AnnualState.capture(tiles)

        tiles[0].temperature = 99
        tiles[1].moisture = None
        state.restore(tiles)

        assert tiles[0].temperature == 12
        assert tiles[1].moisture == 40.0


class TestLocalView:
    """Per-tile warm/cold ordering"""

    def test_local_warm_not_colder(self):
        """Test local warm temperature is never below local cold"""
        context = _annual_context()
        SeasonalClimateStage().apply(context)
        for t in context.tiles:
            assert t.biome_temp_warm >= t.biome_temp_cold
            assert t.biome_warm_from_positive_tilt is not None

    def test_zero_tilt_ties_resolve_to_positive_run(self):
        """Test identical seasons at tilt 0 pick the +tilt run everywhere"""
        context = _annual_context(tilt=0.0)
        SeasonalClimateStage().apply(context)
        for t in context.tiles:
            assert t.biome_warm_from_positive_tilt is True
            assert t.biome_temp_warm == t.biome_temp_cold == t.temp_warm
            assert t.temp_warm == t.temp_cold

    def test_missing_tilt_runs_as_zero(self):
        """Test an absent axial tilt behaves like tilt 0"""
        context = _annual_context(tilt=None)
        SeasonalClimateStage().apply(context)
        assert all(t.temp_warm == t.temp_cold for t in context.tiles)

    def test_views_from_snapshots(self):
        """Test global view is fixed by run while local view compares temperatures"""
        tiles = [Tile(0, 45.0, 0.0), Tile(1, -45.0, 0.0)]
        season_a = SeasonSnapshot(temp=[20.0, 5.0], temp_min=[15.0, 0.0], temp_max=[25.0, 10.0],
                                  wind_avg=[3.0, 4.0], wind_max=[6.0, 8.0], wind_x=[1.0, 1.0],
                                  wind_y=[0.0, 0.0], precip=[30.0, 50.0], evap=[20.0, 10.0],
                                  moisture=[40.0, 60.0], sunny_days=[200, 150],
                                  precip_kg_m2_day=[3.0, 6.0], evap_kg_m2_day=[2.0, 1.0],
                                  runoff_kg_m2_day=[1.0, 5.0])
        season_b = SeasonSnapshot(temp=[8.0, 18.0], temp_min=[3.0, 13.0], temp_max=[13.0, 23.0],
                                  wind_avg=[5.0, 2.0], wind_max=[9.0, 4.0], wind_x=[0.0, 0.0],
                                  wind_y=[1.0, 1.0], precip=[10.0, 20.0], evap=[5.0, 25.0],
                                  moisture=[20.0, 30.0], sunny_days=[250, 220],
                                  precip_kg_m2_day=[1.0, 2.0], evap_kg_m2_day=[0.5, 3.0],
                                  runoff_kg_m2_day=[0.5, 0.0])

        apply_global_view(tiles, season_a, season_b)
        apply_local_view(tiles, season_a, season_b)

        # Global: the +tilt run is always warm
        assert tiles[1].temp_warm == 5.0
        assert tiles[1].temp_cold == 18.0

        # Local: whichever run was hotter at the tile
        assert tiles[0].biome_temp_warm == 20.0
        assert tiles[0].biome_warm_from_positive_tilt is True
        assert tiles[1].biome_temp_warm == 18.0
        assert tiles[1].biome_precip_warm == 20.0
        assert tiles[1].biome_temp_cold == 5.0
        assert tiles[1].biome_warm_from_positive_tilt is False


class TestSeasonalScenario:
    """Seasonal climate straight after the tectonic setup, tilt 23.5, seed 42"""

    def test_positive_tilt_warmer_tiles(self, planet, settings):
        """Test tiles warmer under +tilt take their local warm from that run"""
        context = create_pipeline(SEASONAL_PROFILE).run(icosphere_template(2), planet, settings)

        warmer = [t for t in context.tiles if t.temp_warm > t.temp_cold]
        assert warmer
        for t in warmer:
            assert t.biome_warm_from_positive_tilt is True
            assert t.biome_temp_warm == t.temp_warm

    def test_hemispheres_swap_seasons(self, planet, settings):
        """Test the two hemispheres are warm in opposite runs"""
        context = create_pipeline(SEASONAL_PROFILE).run(icosphere_template(2), planet, settings)
        north = [t for t in context.tiles if t.lat > 30.0]
        south = [t for t in context.tiles if t.lat < -30.0]
        assert all(t.biome_warm_from_positive_tilt for t in north)
        assert not any(t.biome_warm_from_positive_tilt for t in south)
