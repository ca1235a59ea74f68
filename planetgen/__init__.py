"""
Planet Generator
Procedural synthesis of a planet's surface on a tile mesh: tectonics,
relief, hydrology, annual and seasonal climate, rivers, biomes and
resources.
"""

from planetgen.config import GeneratorSettings, PlanetConfig, StageId, SurfaceType
from planetgen.errors import PlanetGenError

__version__ = "0.1.0"

__all__ = [
    "GeneratorSettings",
    "PlanetConfig",
    "PlanetGenError",
    "StageId",
    "SurfaceType",
    "__version__",
]
