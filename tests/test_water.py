"""
Water Tests
Liquid water predicate, wetland drying, water rebalance and classification.
"""

import numpy as np
import pytest

from planetgen.config import (
    LIQUID_WATER_TYPES,
    PlanetConfig,
    SurfaceType,
    WaterCoverage,
)
from planetgen.generation.stages.biomes import BiomeStage
from planetgen.generation.stages.relief import ReliefStage
from planetgen.generation.stages.water_rebalance import (
    WaterRebalanceStage,
    rebalance_candidates,
    swap_water,
)
from planetgen.models.tile import Tile, dry_out_wetlands, has_liquid_water, is_liquid_water


def _tile(i, surface, precip=None):
    t = Tile(i, 0.0, float(i))
    t.surface_type = surface
    t.precip_avg = precip
    return t


class TestLiquidWaterPredicate:
    """Tests for the shared water predicate"""

    def test_water_types(self):
        """Test every liquid water type is recognized and land is not"""
        for surface in LIQUID_WATER_TYPES:
            assert is_liquid_water(surface)
        assert not is_liquid_water(SurfaceType.PLAINS)
        assert not is_liquid_water(SurfaceType.SWAMP)

    def test_has_liquid_water_reads_current_types(self):
        """Test the predicate follows reclassification"""
        tiles = [_tile(0, SurfaceType.PLAINS), _tile(1, SurfaceType.LAKE_FRESH)]
        assert has_liquid_water(tiles)
        tiles[1].surface_type = SurfaceType.DESERT
        assert not has_liquid_water(tiles)

    def test_dry_out_only_without_water(self):
        """Test wetlands survive while any water body remains"""
        tiles = [_tile(0, SurfaceType.SWAMP), _tile(1, SurfaceType.OCEAN)]
        assert dry_out_wetlands(tiles, [SurfaceType.SWAMP]) == []
        assert tiles[0].surface_type == SurfaceType.SWAMP

        tiles[1].surface_type = SurfaceType.PLAINS
        assert dry_out_wetlands(tiles, [SurfaceType.SWAMP]) == [0]
        assert tiles[0].surface_type == SurfaceType.BASIN_DRY


class TestWetlandsWithoutWater:
    """Biome and relief stages dry wetlands out the same way"""

    def _wetland_context(self, make_context, with_lake=False):
        context = make_context(SurfaceType.PLAINS)
        for t in context.tiles:
            if t.id % 7 == 0:
                t.surface_type = SurfaceType.SWAMP
            elif t.id % 7 == 3:
                t.surface_type = SurfaceType.BASIN_SWAMP
        if with_lake:
            context.tiles[1].surface_type = SurfaceType.LAKE_FRESH
        return context

    def test_both_stages_dry_out_their_wetlands(self, make_context):
        """Test swamps and basin swamps all end as dry basins"""
        context = self._wetland_context(make_context)
        swamps = {t.id for t in context.tiles if t.surface_type == SurfaceType.SWAMP}
        basin_swamps = {t.id for t in context.tiles if t.surface_type == SurfaceType.BASIN_SWAMP}

        BiomeStage().apply(context)
        after_biomes = {t.id for t in context.tiles if t.surface_type == SurfaceType.BASIN_DRY}
        assert swamps <= after_biomes

        ReliefStage().apply(context)
        dry = {t.id for t in context.tiles if t.surface_type == SurfaceType.BASIN_DRY}
        assert swamps | basin_swamps <= dry
        wet = {SurfaceType.SWAMP, SurfaceType.MUD_SWAMP, SurfaceType.BASIN_SWAMP}
        assert not any(t.surface_type in wet for t in context.tiles)

    def test_stages_agree_tile_for_tile(self, make_context):
        """Test each stage converts exactly the wetlands the other would"""
        wetlands = (SurfaceType.SWAMP, SurfaceType.BASIN_SWAMP)
        first = self._wetland_context(make_context)
        second = self._wetland_context(make_context)

        by_biome_rule = dry_out_wetlands(first.tiles, wetlands)
        BiomeStage().apply(second)
        ReliefStage().apply(second)
        by_stages = [i for i in by_biome_rule if second.tiles[i].surface_type == SurfaceType.BASIN_DRY]

        assert by_biome_rule
        assert by_stages == by_biome_rule

    def test_water_present_keeps_wetlands(self, make_context):
        """Test one lake is enough to keep every wetland"""
        context = self._wetland_context(make_context, with_lake=True)
        basin_swamps = [t.id for t in context.tiles if t.surface_type == SurfaceType.BASIN_SWAMP]

        BiomeStage().apply(context)
        ReliefStage().apply(context)

        assert all(context.tiles[i].surface_type == SurfaceType.BASIN_SWAMP for i in basin_swamps)


class TestWaterRebalance:
    """Tests for the dry-ocean/wet-land swap"""

    def test_candidates(self):
        """Test dry ocean and wet land selection, absent precipitation as 0"""
        tiles = [
            _tile(0, SurfaceType.OCEAN, 10.0),
            _tile(1, SurfaceType.OCEAN, 60.0),
            _tile(2, SurfaceType.PLAINS, 80.0),
            _tile(3, SurfaceType.PLAINS, 20.0),
            _tile(4, SurfaceType.OCEAN, None),
        ]
        dry, wet = rebalance_candidates(tiles)
        assert [t.id for t in dry] == [0, 4]
        assert [t.id for t in wet] == [2]

    @pytest.mark.parametrize("dry_precip,wet_precip", [(60.0, 80.0), (10.0, 20.0)])
    def test_no_eligible_tiles_no_swaps(self, make_context, dry_precip, wet_precip):
        """Test an empty candidate set leaves every surface untouched"""
        planet = PlanetConfig(water_coverage=WaterCoverage.SEAS)
        context = make_context(SurfaceType.PLAINS, planet_config=planet)
        for t in context.tiles:
            if t.id % 2:
                t.surface_type = SurfaceType.OCEAN
                t.precip_avg = dry_precip
            else:
                t.precip_avg = wet_precip
        before = [t.surface_type for t in context.tiles]

        WaterRebalanceStage().apply(context)

        assert [t.surface_type for t in context.tiles] == before

    def test_swap_counts_and_self_swap(self):
        """Test swaps are bounded and never fail on a repeated tile"""
        dry = [_tile(i, SurfaceType.OCEAN, 5.0) for i in range(3)]
        wet = [_tile(10 + i, SurfaceType.PLAINS, 90.0) for i in range(5)]
        swaps = swap_water(dry, wet, np.random.default_rng(7))
        assert swaps == 3

        same = _tile(20, SurfaceType.OCEAN, 5.0)
        assert swap_water([same], [same], np.random.default_rng(0)) == 0
        assert same.surface_type == SurfaceType.OCEAN

    def test_rebalance_is_deterministic(self, make_context):
        """Test the same seed reproduces the same swaps"""
        planet = PlanetConfig(water_coverage=WaterCoverage.LAKES)
        results = []
        for _ in range(2):
            context = make_context(SurfaceType.PLAINS, planet_config=planet, seed=9)
            for t in context.tiles:
                if t.id % 3 == 0:
                    t.surface_type = SurfaceType.OCEAN
                    t.precip_avg = 5.0
                else:
                    t.precip_avg = 70.0
            WaterRebalanceStage().apply(context)
            results.append([t.surface_type for t in context.tiles])
        assert results[0] == results[1]

    def test_only_low_water_worlds(self, make_context):
        """Test ocean worlds are never rebalanced"""
        context = make_context(SurfaceType.PLAINS)
        assert not WaterRebalanceStage.applies_to(context)
        dry_world = make_context(SurfaceType.PLAINS, planet_config=PlanetConfig(water_coverage=WaterCoverage.DRY))
        assert not WaterRebalanceStage.applies_to(dry_world)
