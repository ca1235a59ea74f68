"""
Topology Tests
Icosphere template, neighbor graph and world statistics.
"""

import pytest

from planetgen.config import ResourceLayer, ResourceType, SurfaceType
from planetgen.errors import TopologyError
from planetgen.generation.stages.neighbors import BuildNeighborsStage
from planetgen.models.stats import WATER_DISTANCE_BUCKETS, WorldStats, distance_to_water, resource_summary
from planetgen.models.tile import ResourcePresence, Tile
from planetgen.models.world import WorldContext
from planetgen.topology import (
    PENTAGON_COUNT,
    build_neighbors,
    expected_neighbor_count,
    icosphere_points,
    icosphere_template,
)


class TestIcosphere:
    """Tests for the geodesic tile template"""

    @pytest.mark.parametrize("subdivisions", [0, 1, 2, 3])
    def test_tile_count(self, subdivisions):
        """Test the template has 10 * 4^n + 2 tiles with ids equal to positions"""
        tiles = icosphere_template(subdivisions)
        assert len(tiles) == 10 * 4 ** subdivisions + 2
        assert [t.id for t in tiles] == list(range(len(tiles)))
        assert all(not t.neighbors for t in tiles)

    def test_coordinates_in_range(self):
        """Test latitudes and longitudes are valid degrees"""
        for t in icosphere_template(2):
            assert -90.0 <= t.lat <= 90.0
            assert -180.0 <= t.lon <= 180.0

    def test_negative_subdivisions(self):
        with pytest.raises(ValueError):
            icosphere_points(-1)


class TestNeighbors:
    """Tests for the neighbor graph built from geometry"""

    def test_pentagons_and_hexagons(self, template):
        """Test ids below 12 get 5 neighbors and the rest 6"""
        build_neighbors(template)
        for t in template:
            assert len(t.neighbors) == expected_neighbor_count(t.id)
        assert sum(1 for t in template if len(t.neighbors) == 5) == PENTAGON_COUNT

    def test_relation_is_symmetric(self, template):
        """Test every neighbor lists the tile back"""
        build_neighbors(template)
        for t in template:
            assert t.id not in t.neighbors
            for n in t.neighbors:
                assert t.id in template[n].neighbors

    def test_too_few_tiles(self):
        """Test a single tile cannot form a neighbor graph"""
        with pytest.raises(TopologyError):
            build_neighbors([Tile(0, 0.0, 0.0)])

    def test_adjacency_fallback_not_stored(self, template, planet, settings):
        """Test geometric adjacency is offered without writing neighbors"""
        context = WorldContext(template, planet, settings)
        adjacency = context.adjacency()
        assert len(adjacency) == len(template)
        assert all(len(row) == 6 for row in adjacency)
        assert not context.has_neighbors

    def test_neighbors_built_only_by_stage(self, template, planet, settings):
        """Test hand-filled neighbor lists do not count as a built relation"""
        for t in template:
            t.neighbors = [(t.id + 1) % len(template)]
        context = WorldContext(template, planet, settings)
        assert not context.has_neighbors

        BuildNeighborsStage().apply(context)
        assert context.has_neighbors
        assert len(template[0].neighbors) == 5


class TestWorldStats:
    """Tests for post-run statistics"""

    def test_distance_to_water(self, make_context):
        """Test hop counts grow away from the only water tile"""
        context = make_context(SurfaceType.PLAINS)
        context.tiles[0].surface_type = SurfaceType.OCEAN
        distance = distance_to_water(context.tiles)
        assert distance[0] == 0
        for n in context.tiles[0].neighbors:
            assert distance[n] == 1

    def test_compute(self, make_context):
        """Test counts, ranges and buckets over a hand-built surface"""
        context = make_context(SurfaceType.PLAINS)
        context.tiles[0].surface_type = SurfaceType.OCEAN
        context.tiles[5].elevation = 40

        stats = WorldStats.compute(context.tiles)

        assert stats.tile_count == len(context.tiles)
        assert stats.pentagon_count == PENTAGON_COUNT
        assert stats.hexagon_count == len(context.tiles) - PENTAGON_COUNT
        assert stats.elevation.maximum == 40
        assert stats.surface_counts[SurfaceType.OCEAN] == 1
        assert stats.precipitation.mean is None
        assert sum(stats.water_distance_count) == len(context.tiles)
        assert len(stats.water_distance_precip) == WATER_DISTANCE_BUCKETS

    def test_summary_lines(self, make_context):
        lines = WorldStats.compute(make_context(SurfaceType.PLAINS).tiles).summary_lines()
        assert lines[0].startswith("Tiles:")
        assert any("PLAINS" in line for line in lines)
        assert any("n/a" in line for line in lines)

    def test_resource_summary(self):
        """Test per-type tonnage totals skip deposits without reserves"""
        def deposit(kind, tonnes):
            return ResourcePresence(type=kind, layer=ResourceLayer.DEEP, quality=50,
                                    saturation=50, amount=10, tonnes=tonnes)

        tiles = [Tile(i, 0.0, float(i)) for i in range(3)]
        tiles[0].resources = [deposit(ResourceType.Fe_MAG, 1.0e6), deposit(ResourceType.Fe_MAG, 3.0e6)]
        tiles[1].resources = [deposit(ResourceType.Fe_MAG, 2.0e6), deposit(ResourceType.SOLAR_PWR, 0.0)]

        totals = resource_summary(tiles)
        assert [r.resource for r in totals] == [ResourceType.Fe_MAG]
        iron = totals[0]
        assert (iron.entries, iron.tiles) == (3, 2)
        assert iron.total == pytest.approx(6.0e6)
        assert iron.minimum == 1.0e6 and iron.maximum == 3.0e6
        assert iron.p50 == pytest.approx(2.0e6)
        assert iron.p95 == pytest.approx(2.9e6)

        lines = WorldStats.compute(tiles).resource_lines()
        assert lines[0] == "Resources (tonnes):"
        assert "Fe_MAG" in lines[1] and "6.000e+06" in lines[1]

    def test_no_resources_line(self, make_context):
        assert WorldStats.compute(make_context().tiles).resource_lines() == ["Resources:     none"]
