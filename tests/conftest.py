"""
Shared fixtures for the generator test suite.
"""

import pytest

from planetgen.config import GeneratorSettings, PlanetConfig, SurfaceType
from planetgen.models.world import WorldContext
from planetgen.topology import build_neighbors, icosphere_template

# 162 tiles: large enough for every stage, small enough to run in seconds
TEST_SUBDIVISIONS = 2


@pytest.fixture
def template():
    """Tile template without neighbors"""
    return icosphere_template(TEST_SUBDIVISIONS)


@pytest.fixture
def planet():
    """Earth-like planet"""
    return PlanetConfig(name="Testworld", axial_tilt=23.5)


@pytest.fixture
def settings():
    return GeneratorSettings(seed=42)


@pytest.fixture
def make_context(planet, settings):
    """
    Factory for a context over a fresh mesh with neighbors built.

    Every tile starts as PLAINS at elevation 10 unless ``surface`` says
    otherwise.
    """
    def _make(surface=SurfaceType.PLAINS, planet_config=None, seed=None, subdivisions=TEST_SUBDIVISIONS):
        tiles = icosphere_template(subdivisions)
        build_neighbors(tiles)
        for t in tiles:
            t.surface_type = surface
            t.elevation = 10
        run_settings = settings if seed is None else GeneratorSettings(seed=seed)
        context = WorldContext(tiles, planet_config or planet, run_settings)
        context.neighbors_built = True
        return context
    return _make
