"""
Stage Tests
Tectonics, erosion, surface effects, water classification, rivers, relief,
biomes and resources.
"""

import numpy as np
import pytest

from planetgen.config import (
    ELEVATION_MAX,
    LIQUID_WATER_TYPES,
    PlanetConfig,
    ResourceLayer,
    ResourceType,
    RiverBaseType,
    StageId,
    SurfaceType,
    VOLCANIC_TYPES,
    WaterCoverage,
)
from planetgen.generation.pipeline import create_pipeline
from planetgen.generation.profiles import StageProfile
from planetgen.generation.stages.biomes import aridity_index, greener_by_one_step
from planetgen.generation.stages.erosion import erode, seed_hardness, update_relief_types
from planetgen.generation.stages.relief import basin_type, canyon_type, local_depression, ridge_type
from planetgen.generation.stages.resources import (
    ResourceGenerator,
    compute_solar,
    compute_tides,
    merge_presence,
    tidal_forcing,
)
from planetgen.generation.stages.rivers import RiverGenerator, max_slope, river_order, size_base_type
from planetgen.generation.stages.surface_effects import (
    LavaStage,
    apply_ice,
    apply_impacts,
    bfs_layers,
    hash01,
    subsurface_ice_thickness,
)
from planetgen.generation.stages.tectonics import (
    CONVERGENT_STRESS,
    DIVERGENT_STRESS,
    apply_orogenesis,
    compute_stress,
    generate_plates,
    is_plate_boundary,
    mountain_cap,
)
from planetgen.generation.stages.water_classify import WaterClassifyStage, boiling_point_c
from planetgen.models.tile import ResourcePresence, Tile
from planetgen.models.world import TectonicPlate

LAVA_SURFACES = VOLCANIC_TYPES | {SurfaceType.LAVA_OCEAN}


def _two_plates(context, drift_b):
    """Northern tiles on plate 0 drifting east, southern on plate 1."""
    plates = [
        TectonicPlate(plate_id=0, continental=True, drift_x=1.0, drift_y=0.0, seed_tile=0),
        TectonicPlate(plate_id=1, continental=False, drift_x=drift_b, drift_y=0.0, seed_tile=1),
    ]
    for t in context.tiles:
        t.plate_id = 0 if t.lat >= 0.0 else 1
    return plates


class TestTectonics:
    """Tests for plates, stress and uplift"""

    def test_every_tile_on_a_plate(self, make_context):
        """Test the flood fill reaches every tile and seeds keep their plate"""
        context = make_context()
        plates = generate_plates(context.tiles, context.adjacency(), 12, np.random.default_rng(3))
        assert len(plates) == 12
        assert all(0 <= t.plate_id < 12 for t in context.tiles)
        for plate in plates:
            assert context.tiles[plate.seed_tile].plate_id == plate.plate_id

    def test_plate_count_capped_by_tiles(self):
        tiles = [Tile(0, 0.0, 0.0), Tile(1, 0.0, 90.0)]
        plates = generate_plates(tiles, [[1], [0]], 12, np.random.default_rng(0))
        assert len(plates) == 2

    @pytest.mark.parametrize("drift_b,expected", [(-1.0, CONVERGENT_STRESS), (1.0, DIVERGENT_STRESS)])
    def test_boundary_stress(self, make_context, drift_b, expected):
        """Test opposing drift converges and parallel drift diverges"""
        context = make_context()
        plates = _two_plates(context, drift_b)
        compute_stress(context.tiles, plates)
        for t in context.tiles:
            if is_plate_boundary(t, context.tiles):
                assert t.tectonic_stress == expected
            else:
                assert t.tectonic_stress == 0

    def test_orogenesis_needs_stress(self):
        stressed, calm = Tile(0, 0.0, 0.0), Tile(1, 0.0, 1.0)
        stressed.tectonic_stress, calm.tectonic_stress = 80, 20
        stressed.elevation = calm.elevation = 10
        apply_orogenesis([stressed, calm], gravity=1.0)
        assert stressed.elevation == 14
        assert calm.elevation == 10

    def test_mountain_cap(self):
        """Test peak height scales inversely with gravity inside the clamp"""
        assert mountain_cap(1.0) == 95
        assert mountain_cap(0.01) == 180
        assert mountain_cap(100.0) == 35
        assert mountain_cap(0.5) > mountain_cap(2.0)


class TestErosion:
    """Tests for erosion and relief refresh"""

    def test_relief_types_from_elevation(self, settings):
        tiles = [Tile(i, 0.0, float(i)) for i in range(4)]
        for t, elevation in zip(tiles, (25, 10, 3, 40)):
            t.surface_type = SurfaceType.PLAINS
            t.elevation = elevation
        tiles[3].surface_type = SurfaceType.DESERT

        update_relief_types(tiles, settings)

        assert [t.surface_type for t in tiles] == [
            SurfaceType.MOUNTAINS, SurfaceType.HILLS, SurfaceType.PLAINS, SurfaceType.DESERT,
        ]

    def test_hardness(self):
        t = Tile(0, 0.0, 0.0)
        t.plate_type = 1
        t.volcanism = 100
        seed_hardness([t])
        assert t.rock_hardness == pytest.approx(0.85)

    def test_elevation_clamped_and_ocean_kept(self, make_context):
        """Test heights stay in range and ocean floors never lose height"""
        context = make_context()
        context.tiles[0].elevation = 400
        ocean = context.tiles[20]
        ocean.surface_type = SurfaceType.OCEAN
        ocean.elevation = 30
        for t in context.tiles:
            t.precip_avg = 80.0

        erode(context.tiles, context.planet, context.settings)

        assert all(0 <= t.elevation <= ELEVATION_MAX for t in context.tiles)
        assert ocean.elevation >= 30
        assert ocean.surface_type == SurfaceType.OCEAN


class TestSurfaceEffects:
    """Tests for impacts, ice and lava"""

    def test_hash01(self):
        values = [hash01(42, k) for k in range(50)]
        assert all(0.0 <= v < 1.0 for v in values)
        assert values == [hash01(42, k) for k in range(50)]

    def test_bfs_layers(self, make_context):
        context = make_context()
        layers = bfs_layers(context.tiles, 0, 2)
        assert layers[0] == [0]
        assert set(layers[1]) == set(context.tiles[0].neighbors)
        assert len(layers) == 3

    def test_airless_bodies_get_more_craters(self, make_context):
        """Test crater counts and cratered ground on an airless body"""
        context = make_context()
        n = len(context.tiles)
        assert apply_impacts(context.tiles, True, 6371.0, 1) == max(1, round(n * 0.01))
        airless = make_context()
        assert apply_impacts(airless.tiles, False, 1700.0, 1) == max(1, round(n * 0.04))
        assert any(t.surface_type == SurfaceType.CRATERED_SURFACE for t in airless.tiles)

    def test_ice_from_temperature_range(self):
        ocean, sheet, glacier, frost, temperate = (Tile(i, 0.0, float(i)) for i in range(5))
        ocean.surface_type = SurfaceType.OCEAN
        ocean.temp_max = -5.0
        sheet.temp_max, sheet.temp_min = -2.0, -25.0
        glacier.temp_max, glacier.temp_min = 5.0, -15.0
        frost.temp_max, frost.temp_min = 10.0, -3.0
        temperate.temperature = 15
        for t in (sheet, glacier, frost, temperate):
            t.surface_type = SurfaceType.PLAINS

        apply_ice([ocean, sheet, glacier, frost, temperate], PlanetConfig())

        assert ocean.surface_type == SurfaceType.ICE_OCEAN
        assert sheet.surface_type == SurfaceType.ICE_SHEET
        assert glacier.surface_type == SurfaceType.GLACIER
        assert frost.surface_type == SurfaceType.PERMAFROST
        assert temperate.surface_type == SurfaceType.PLAINS

    def test_volatile_ices(self):
        t = Tile(0, 80.0, 0.0)
        t.surface_type = SurfaceType.PLAINS
        t.temperature = -60
        apply_ice([t], PlanetConfig(methane_ice_frac=0.4, ammonia_ice_frac=0.1))
        assert t.surface_type == SurfaceType.METHANE_ICE

    def test_subsurface_ice(self):
        assert subsurface_ice_thickness(PlanetConfig(mean_temperature_k=288.0)) == 500.0
        locked = PlanetConfig(mean_temperature_k=288.0, volcanism=60, tidal_locked=True)
        assert subsurface_ice_thickness(locked) == 150.0
        assert subsurface_ice_thickness(PlanetConfig(mean_temperature_k=288.0,
                                                     water_coverage=WaterCoverage.DRY)) == 0.0

    def test_lava_only_on_lava_worlds(self, make_context):
        """Test the lava stage leaves other planets untouched"""
        context = make_context()
        LavaStage().apply(context)
        assert all(t.surface_type == SurfaceType.PLAINS for t in context.tiles)

        molten = make_context(planet_config=PlanetConfig(lava_world=True))
        LavaStage().apply(molten)
        assert all(t.surface_type in LAVA_SURFACES for t in molten.tiles)


class TestWaterClassification:
    """Tests for water bodies from the base surface snapshot"""

    def _half_ocean(self, make_context, planet_config=None):
        context = make_context(planet_config=planet_config)
        for t in context.tiles:
            t.temperature = 15
            if t.lat > 0.0:
                t.surface_type = SurfaceType.OCEAN
        context.snapshot_base_surface()
        return context

    def test_boiling_point(self):
        """Test 1 bar boils just under 100 °C and 1 atm at 100 °C"""
        assert boiling_point_c(1.0) == pytest.approx(99.47, abs=0.05)
        assert boiling_point_c(1.01325) == pytest.approx(100.0, abs=0.6)
        assert boiling_point_c(0.1) < boiling_point_c(1.0) < boiling_point_c(5.0)

    def test_open_ocean(self, make_context):
        """Test the connected ocean becomes open water at elevation 0"""
        context = self._half_ocean(make_context)
        ocean_ids = [t.id for t in context.tiles if t.surface_type == SurfaceType.OCEAN]

        WaterClassifyStage().apply(context)

        for i in ocean_ids:
            t = context.tiles[i]
            assert t.surface_type in (SurfaceType.OPEN_WATER_SHALLOW, SurfaceType.OPEN_WATER_DEEP)
            assert t.elevation == 0
            assert t.underwater_elevation == 10.0
        for i, t in enumerate(context.tiles):
            if i not in ocean_ids:
                assert t.surface_type not in LIQUID_WATER_TYPES

    def test_airless_water_does_not_stay_liquid(self, make_context):
        context = self._half_ocean(make_context, PlanetConfig(has_atmosphere=False))
        WaterClassifyStage().apply(context)
        assert not any(t.surface_type in LIQUID_WATER_TYPES for t in context.tiles)


class TestRivers:
    """Tests for river sizing and the no-water short cut"""

    def test_order_bands(self):
        assert river_order(100_000.0) == 0
        assert river_order(500_000.0) == 2
        assert river_order(1_000_000.0) == 3
        assert river_order(2_000_000.0) == 4
        assert river_order(9_000_000.0) == 5

    def test_size_base_type(self):
        assert size_base_type(100_000.0) == RiverBaseType.SMALL_RIVER
        assert size_base_type(500_000.0) == RiverBaseType.MEDIUM_RIVER
        assert size_base_type(1_000_000.0) == RiverBaseType.LARGE_RIVER
        assert size_base_type(5_000_000.0) == RiverBaseType.VERY_LARGE_RIVER

    def test_no_rivers_without_water(self, make_context):
        """Test a world with no liquid water routes nothing"""
        context = make_context()
        assert RiverGenerator(1).generate(context.tiles, context.planet) == 0
        assert not any(t.is_river for t in context.tiles)

    def test_max_slope(self, make_context):
        context = make_context()
        context.tiles[context.tiles[0].neighbors[0]].elevation = 25
        assert max_slope(context.tiles[0], context.tiles) == 15


class TestReliefHelpers:
    """Tests for landform type selection"""

    def test_ridge_and_canyon_by_family(self):
        assert ridge_type(SurfaceType.MOUNTAINS_SNOW) == SurfaceType.RIDGE_SNOW
        assert ridge_type(SurfaceType.MOUNTAINS) == SurfaceType.RIDGE_ROCK
        assert canyon_type(SurfaceType.FOREST) == SurfaceType.CANYON_FOREST
        assert canyon_type(SurfaceType.HIGH_MOUNTAINS) == SurfaceType.CANYON_ROCK

    def test_basin_type(self):
        t = Tile(0, 0.0, 0.0)
        t.surface_type = SurfaceType.SWAMP
        t.temperature = 20
        assert basin_type(t) == SurfaceType.BASIN_SWAMP
        t.temperature = -4
        assert basin_type(t) == SurfaceType.BASIN_TUNDRA

    def test_local_depression(self, make_context):
        context = make_context()
        context.tiles[0].elevation = 4
        assert local_depression(context.tiles[0], context.tiles) == pytest.approx(6.0)
        assert local_depression(Tile(0, 0.0, 0.0), []) == 0.0


class TestBiomes:
    """Tests for biome helpers and the classifier on a real run"""

    def test_aridity_index(self):
        assert aridity_index(0.0, 0.0) == pytest.approx(1.0)
        assert aridity_index(1.0, 4.0) < 1.0 < aridity_index(4.0, 1.0)

    def test_greener_by_one_step(self):
        assert greener_by_one_step(SurfaceType.SAVANNA) == SurfaceType.GRASSLAND
        assert greener_by_one_step(SurfaceType.OCEAN) == SurfaceType.OCEAN

    def test_full_run_never_outputs_swamp(self, template, planet, settings):
        """Test the classifier leaves no plain swamp on an Earth-like world"""
        context = create_pipeline(StageProfile.full()).run(template, planet, settings)
        assert StageId.BIOMES in context.completed_stages
        assert not any(t.surface_type == SurfaceType.SWAMP for t in context.tiles)
        for t in context.tiles:
            if t.biome_preferred_season is not None:
                assert t.biome_temp_warm is not None


class TestResources:
    """Tests for deposits, solar potential and tides"""

    def test_merge_presence(self):
        t = Tile(0, 0.0, 0.0)
        merge_presence(t, ResourcePresence(type=ResourceType.Fe_MAG, layer=ResourceLayer.DEEP,
                                           quality=40, saturation=60, amount=10, tonnes=1.0e6))
        merge_presence(t, ResourcePresence(type=ResourceType.Fe_MAG, layer=ResourceLayer.DEEP,
                                           quality=70, saturation=20, amount=5, tonnes=2.0e6))
        merge_presence(t, ResourcePresence(type=ResourceType.Fe_MAG, layer=ResourceLayer.SURFACE,
                                           quality=10, saturation=10, amount=1))
        assert len(t.resources) == 2
        merged = t.resources[0]
        assert (merged.quality, merged.saturation, merged.amount) == (70, 60, 10)
        assert merged.tonnes == pytest.approx(3.0e6)

    def test_solar_peaks_at_equator(self):
        """Test the equator gets more interseason sun than the pole"""
        planet = PlanetConfig(axial_tilt=23.5)
        equator, pole = Tile(0, 0.0, 0.0), Tile(1, 85.0, 0.0)
        compute_solar(equator, planet)
        compute_solar(pole, planet)
        assert equator.solar_kwh_day_inter > pole.solar_kwh_day_inter
        assert pole.solar_kwh_day_warm > pole.solar_kwh_day_cold

    def test_solar_scales_with_star(self):
        t_bright, t_dim = Tile(0, 20.0, 0.0), Tile(1, 20.0, 0.0)
        compute_solar(t_bright, PlanetConfig(star_luminosity=2.0))
        compute_solar(t_dim, PlanetConfig(star_luminosity=1.0))
        assert t_bright.solar_kwh_day_inter == pytest.approx(2.0 * t_dim.solar_kwh_day_inter)

    def test_tidal_forcing(self):
        """Test the Earth-Moon system gives about a metre of open-ocean tide twice a day"""
        forcing = tidal_forcing(PlanetConfig())
        assert forcing.open_ocean_range_m == pytest.approx(1.08, rel=0.01)
        assert forcing.period_hours == pytest.approx(12.4, rel=0.02)
        assert tidal_forcing(PlanetConfig(moon_mass_earth=0.0)) is None

    def test_tides_need_water(self, make_context):
        """Test tide fields are cleared and absent on a dry surface"""
        context = make_context()
        context.tiles[0].tidal_range_m = 3.0
        assert compute_tides(context.tiles, context.planet) == {}
        assert context.tiles[0].tidal_range_m is None

    def test_tides_on_coasts(self, make_context):
        context = make_context()
        context.tiles[0].surface_type = SurfaceType.OCEAN
        fetch = compute_tides(context.tiles, context.planet)
        assert set(fetch) == {0, *context.tiles[0].neighbors}
        assert context.tiles[0].tidal_range_m > 0.0

    def test_generator_is_deterministic(self, make_context):
        """Test the same seed places the same deposits"""
        runs = []
        for _ in range(2):
            context = make_context()
            context.tiles[0].surface_type = SurfaceType.OCEAN
            total = ResourceGenerator(5).generate(context.tiles, context.planet)
            runs.append((total, [[(r.type, r.layer, r.amount) for r in t.resources] for t in context.tiles]))
        assert runs[0] == runs[1]
        assert runs[0][0] > 0
