"""
Planet Generator - Data Models
Tiles, the shared world context and run statistics.
"""

from planetgen.models.tile import (
    ANNUAL_CLIMATE_FIELDS,
    ResourcePresence,
    Tile,
    dry_out_wetlands,
    has_liquid_water,
    is_liquid_water,
)
from planetgen.models.world import TectonicPlate, WorldContext
from planetgen.models.stats import WorldStats

__all__ = [
    "ANNUAL_CLIMATE_FIELDS",
    "ResourcePresence",
    "Tile",
    "TectonicPlate",
    "WorldContext",
    "WorldStats",
    "dry_out_wetlands",
    "has_liquid_water",
    "is_liquid_water",
]
