"""
Planet Generator - Tile Data Model
Per-cell record of the planet surface mesh.

Physical scalars that may not have been computed yet are ``None`` rather than
a magic number: readers check ``is None`` and fall back to a less specific
source (see planetgen.io.fallback).
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from planetgen.config import (
    BiomeModifier,
    BiomeRegime,
    LIQUID_WATER_TYPES,
    ResourceLayer,
    ResourceType,
    RiverBaseType,
    Season,
    SurfaceType,
)


# =============================================================================
# RESOURCES
# =============================================================================

class ResourcePresence(BaseModel):
    """A resource deposit found on a tile."""
    type: ResourceType
    layer: ResourceLayer
    quality: int = Field(ge=1, le=100, description="Purity 1..100")
    saturation: int = Field(ge=1, le=100, description="Concentration 1..100")
    amount: int = Field(ge=1, le=100, description="Relative reserves 1..100")
    tonnes: float = Field(0.0, ge=0.0, description="Estimated reserves in tonnes")


# =============================================================================
# FIELD GROUPS
# =============================================================================

# Fields the climate, wind and sampler models write. The seasonal stage
# snapshots exactly these and restores them after its two seasonal runs.
ANNUAL_CLIMATE_FIELDS = (
    "temperature",
    "pressure",
    "wind_x",
    "wind_y",
    "moisture",
    "atm_moist",
    "temp_min",
    "temp_max",
    "wind_avg",
    "wind_max",
    "precip_avg",
    "evap_avg",
    "precip_kg_m2_day",
    "evap_kg_m2_day",
    "surface_runoff_kg_m2_day",
    "sunny_days",
)


class Tile:
    """
    One cell of the planet surface mesh.

    Identity (id, lat, lon) never changes. ``neighbors`` holds neighbor ids,
    which equal their positions in the tile collection, and is filled once by
    the neighbor stage. Everything else is written by the generation stages.
    """

    def __init__(self, tile_id: int, lat: float, lon: float):
        self.id = tile_id
        self.lat = lat
        self.lon = lon
        self.neighbors: List[int] = []

        self.surface_type: SurfaceType = SurfaceType.UNKNOWN

        # Tectonics
        self.plate_id: int = -1
        self.plate_type: int = 0  # 0 = oceanic, 1 = continental
        self.tectonic_stress: int = 0  # 0..100

        # Relief
        self.elevation: int = 0  # 1 unit = 100 m, 0..255
        self.underwater_elevation: Optional[float] = None
        self.volcanism: int = 0  # 0..100
        self.ice: bool = False
        self.rock_hardness: float = 0.5
        self.canyon_depth: int = 0

        # Annual climate
        self._temperature: int = 0  # °C
        self.has_climate: bool = False  # set once anything writes temperature
        self.pressure: int = 1  # 1000 = 1 atm
        self.moisture: Optional[float] = None  # soil moisture index 0..100
        self.atm_moist: Optional[float] = None  # g/kg
        self.wind_x: float = 0.0  # m/s, east
        self.wind_y: float = 0.0  # m/s, north
        self.boiling_point_c: Optional[float] = None

        # Annual extremes and averages
        self.temp_min: Optional[float] = None
        self.temp_max: Optional[float] = None
        self.wind_avg: Optional[float] = None
        self.wind_max: Optional[float] = None
        self.precip_avg: Optional[float] = None  # index 0..100
        self.evap_avg: Optional[float] = None  # index 0..100
        self.sunny_days: int = 0

        # Physical fluxes, kg/m²/day
        self.precip_kg_m2_day: Optional[float] = None
        self.evap_kg_m2_day: Optional[float] = None
        self.surface_runoff_kg_m2_day: Optional[float] = None
        self.precip_kg_m2_day_interseason: Optional[float] = None
        self.evap_kg_m2_day_interseason: Optional[float] = None
        self.surface_runoff_kg_m2_day_interseason: Optional[float] = None
        self.precip_kg_m2_day_warm: Optional[float] = None
        self.evap_kg_m2_day_warm: Optional[float] = None
        self.surface_runoff_kg_m2_day_warm: Optional[float] = None
        self.precip_kg_m2_day_cold: Optional[float] = None
        self.evap_kg_m2_day_cold: Optional[float] = None
        self.surface_runoff_kg_m2_day_cold: Optional[float] = None

        # Global seasonal view: warm = positive tilt run, cold = negative tilt run
        self.temp_warm: Optional[float] = None
        self.temp_cold: Optional[float] = None
        self.wind_warm: Optional[float] = None
        self.wind_cold: Optional[float] = None
        self.wind_max_warm: Optional[float] = None
        self.wind_max_cold: Optional[float] = None
        self.precip_warm: Optional[float] = None
        self.precip_cold: Optional[float] = None
        self.evap_warm: Optional[float] = None
        self.evap_cold: Optional[float] = None
        self.moisture_warm: Optional[float] = None
        self.moisture_cold: Optional[float] = None
        self.wind_x_warm: Optional[float] = None
        self.wind_y_warm: Optional[float] = None
        self.wind_x_cold: Optional[float] = None
        self.wind_y_cold: Optional[float] = None
        self.sunny_warm: int = 0
        self.sunny_cold: int = 0

        # Temperature range per season
        self.temp_min_interseason: Optional[float] = None
        self.temp_max_interseason: Optional[float] = None
        self.temp_min_warm: Optional[float] = None
        self.temp_max_warm: Optional[float] = None
        self.temp_min_cold: Optional[float] = None
        self.temp_max_cold: Optional[float] = None

        # Local view: per tile, warm = whichever seasonal run was hotter here
        self.biome_temp_interseason: Optional[float] = None
        self.biome_precip_interseason: Optional[float] = None
        self.biome_evap_interseason: Optional[float] = None
        self.biome_moisture_interseason: Optional[float] = None
        self.biome_temp_warm: Optional[float] = None
        self.biome_precip_warm: Optional[float] = None
        self.biome_evap_warm: Optional[float] = None
        self.biome_moisture_warm: Optional[float] = None
        self.biome_temp_cold: Optional[float] = None
        self.biome_precip_cold: Optional[float] = None
        self.biome_evap_cold: Optional[float] = None
        self.biome_moisture_cold: Optional[float] = None
        # True: local warm came from the positive tilt run, False: from the
        # negative tilt run, None: undetermined
        self.biome_warm_from_positive_tilt: Optional[bool] = None

        # Biome diagnostics
        self.biome_preferred_season: Optional[Season] = None
        self.biome_regime: BiomeRegime = BiomeRegime.UNKNOWN
        self.biome_modifier_mask: BiomeModifier = BiomeModifier.NONE

        # Rivers
        self.river_flow: float = 0.0
        self.river_order: int = 0
        self.is_river: bool = False
        self.river_type: int = 0
        self.river_to: int = -1
        self.river_from: List[int] = []
        self.river_base_type: RiverBaseType = RiverBaseType.NONE
        self.river_discharge_kg_s: float = 0.0

        # Resources
        self.resources: List[ResourcePresence] = []

        # Solar and tides
        self.solar_kwh_day_inter: Optional[float] = None
        self.solar_kwh_day_warm: Optional[float] = None
        self.solar_kwh_day_cold: Optional[float] = None
        self.tidal_range_m: Optional[float] = None
        self.tidal_period_hours: Optional[float] = None

    @property
    def temperature(self) -> int:
        """Annual temperature in °C. Reads 0 until a climate model writes it."""
        return self._temperature

    @temperature.setter
    def temperature(self, value: int) -> None:
        self._temperature = value
        self.has_climate = True

    @property
    def wind_magnitude(self) -> float:
        """Current annual wind speed."""
        return math.hypot(self.wind_x, self.wind_y)

    @property
    def is_liquid_water(self) -> bool:
        return self.surface_type in LIQUID_WATER_TYPES

    def copy_template(self) -> "Tile":
        """Fresh tile carrying only this tile's identity."""
        return Tile(self.id, self.lat, self.lon)

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation of every field, used for diffs and dumps."""
        return {name.lstrip("_"): _plain(value) for name, value in vars(self).items()}

    def __repr__(self) -> str:
        return (
            f"<Tile {self.id} ({self.lat:.2f}, {self.lon:.2f}) "
            f"{self.surface_type.name} elev={self.elevation}>"
        )


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return int(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


# =============================================================================
# WATER PREDICATE
# =============================================================================

def is_liquid_water(surface_type: SurfaceType) -> bool:
    return surface_type in LIQUID_WATER_TYPES


def has_liquid_water(tiles: Iterable[Tile]) -> bool:
    """
    Whether any tile currently holds a liquid water body.

    Always evaluated on current surface types: stages between producers and
    consumers may reclassify water, so callers must not cache the result.
    """
    return any(t.surface_type in LIQUID_WATER_TYPES for t in tiles)


def dry_out_wetlands(tiles: List[Tile], wetland_types: Iterable[SurfaceType]) -> List[int]:
    """
    Convert wetland tiles to BASIN_DRY when the world has no liquid water.

    Args:
        tiles: Tile collection
        wetland_types: Surface types to convert

    Returns:
        Ids of converted tiles, in tile order
    """
    if has_liquid_water(tiles):
        return []
    wetlands = frozenset(wetland_types)
    converted = []
    for t in tiles:
        if t.surface_type in wetlands:
            t.surface_type = SurfaceType.BASIN_DRY
            converted.append(t.id)
    return converted
