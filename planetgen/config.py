"""
Planet Generator - Configuration and Constants
Contains enumerations, physical constants and generation settings
shared by every stage of the surface pipeline.
"""

import math
from enum import Enum, IntEnum, IntFlag
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

# =============================================================================
# RELIEF UNITS
# =============================================================================

ELEVATION_MIN = 0
ELEVATION_MAX = 255
METERS_PER_ELEVATION_UNIT = 100.0  # 1 elevation unit = 100 m
PRESSURE_PER_ATM = 1000  # pressure 1000 = 1 atm

# =============================================================================
# SERIALIZATION
# =============================================================================

SURFACE_SCHEMA_VERSION = 2
GENERATOR_VERSION = "2026-02-17"

# =============================================================================
# SEED OFFSETS
# =============================================================================

# Every stochastic stage derives its own random stream from the run seed.
BASE_SURFACE_SEED_OFFSET = 11
PLATES_SEED_OFFSET = 101
MOUNTAINS_SEED_OFFSET = 202
VOLCANO_SEED_OFFSET = 303
WIND_SEED_OFFSET = 7919
WATER_REBALANCE_SEED_OFFSET = 1337
IMPACT_SEED_OFFSET = 4242
LAVA_SEED_OFFSET = 2025
BIOME_NOISE_SEED_OFFSET = 5150
COAST_TILE_SEED_STRIDE = 131
RESOURCE_TILE_SEED_STRIDE = 31
RIVER_SEED_OFFSET = 8080


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Season(IntEnum):
    """Season slots used by seasonal triples and the preferred biome season"""
    INTERSEASON = 0
    WARM = 1
    COLD = 2


class ClimateModelMode(str, Enum):
    """Climate and wind model variant"""
    ENHANCED = "enhanced"            # Heuristic orographic/coastal corrections
    PHYSICAL = "physical"            # Reduced heuristics, fixed physical ranges


class WaterCoverage(IntEnum):
    """Planet-level water regime"""
    DRY = 0
    LAKES = 1
    SEAS = 2
    OCEAN = 3
    OCEANS = 4
    MANY_OCEANS = 5
    ARCHIPELAGOS = 6
    OCEAN_PLANET = 7


class SurfaceType(IntEnum):
    """Surface classification of a tile. Values are serialized, never renumber."""
    UNKNOWN = 0

    # Base water
    OCEAN = 1
    ICE_OCEAN = 2
    LAVA_OCEAN = 3

    # Base land and relief
    PLAINS = 4
    PLAINS_GRASS = 5
    PLAINS_FOREST = 6
    HILLS = 7
    HILLS_GRASS = 8
    HILLS_FOREST = 9
    MOUNTAINS = 10
    MOUNTAINS_SNOW = 11
    DESERT_SAND = 12
    DESERT_ROCKY = 13
    ICE = 14
    GLACIER = 15

    # Volcanic
    VOLCANIC_FIELD = 16
    VOLCANIC = 17
    VOLCANO = 18
    LAVA_PLAINS = 19
    LAVA_ISLANDS = 20

    DESERT = 21
    ROCKY_DESERT = 22
    TUNDRA = 23
    LAVA = 24
    SHALLOW_SEA = 25
    ICE_SHEET = 26
    ACTIVE_VOLCANO = 27
    HIGH_MOUNTAINS = 28
    PLATEAU = 29
    HIGHLANDS = 30
    SAND_DESERT = 31
    ROCK_DESERT = 32
    COLD_DESERT = 33

    # Earth-like biomes
    GRASSLAND = 34
    SAVANNA = 35
    DRY_SAVANNA = 36
    FOREST = 37
    RAINFOREST = 38
    SWAMP = 39
    PERMAFROST = 40

    # Airless bodies
    REGOLITH = 41
    CRATERED_SURFACE = 42

    # Volatile ices
    METHANE_ICE = 43
    AMMONIA_ICE = 44
    CO2_ICE = 45

    # Classified water
    OPEN_WATER_SHALLOW = 46
    OPEN_WATER_DEEP = 47
    LAKE_FRESH = 48
    LAKE_SALT = 49
    COAST_SANDY = 50
    COAST_ROCKY = 51
    SEA_ICE_SHALLOW = 52
    SEA_ICE_DEEP = 53

    # Relief + biome
    HILLS_SAVANNA = 54
    HILLS_DRY_SAVANNA = 55
    HILLS_DESERT = 56
    HILLS_TUNDRA = 57
    MOUNTAINS_FOREST = 58
    MOUNTAINS_TUNDRA = 59
    MOUNTAINS_DESERT = 60
    MOUNTAINS_ALPINE = 61
    ALPINE_MEADOW = 62

    # Landforms
    RIDGE = 63
    CANYON = 64
    BASIN_FLOOR = 65
    RIDGE_ROCK = 66
    RIDGE_SNOW = 67
    RIDGE_TUNDRA = 68
    RIDGE_GRASS = 69
    RIDGE_FOREST = 70
    RIDGE_DESERT = 71
    CANYON_ROCK = 72
    CANYON_TUNDRA = 73
    CANYON_GRASS = 74
    CANYON_FOREST = 75
    CANYON_DESERT = 76
    BASIN_GRASS = 77
    BASIN_FOREST = 78
    BASIN_DRY = 79
    BASIN_SWAMP = 80
    BASIN_TUNDRA = 81

    # Extreme water
    STEAM_SEA = 82
    LAKE_BRINE = 83
    LAKE_ACID = 84

    HILLS_RAINFOREST = 85
    MOUNTAINS_RAINFOREST = 86
    MUD_SWAMP = 87


class BiomeRegime(IntEnum):
    """Seasonal climate regime assigned by the biome stage"""
    UNKNOWN = 0
    CRYO = 1
    BOREAL_CONTINENTAL = 2
    TEMPERATE_BALANCED = 3
    MONSOONAL = 4
    ARID_STABLE = 5
    ARID_SEASONAL = 6
    TROPICAL_HUMID = 7
    TROPICAL_DRYWET = 8


class BiomeModifier(IntFlag):
    """Diagnostic flags explaining a biome choice"""
    NONE = 0
    HIGH_SEASONALITY = 1 << 0
    COLD_WINTER = 1 << 1
    SEVERE_WINTER = 1 << 2
    MONSOONAL = 1 << 3
    WET_SUMMER_DRY_WINTER = 1 << 4
    DRY_SUMMER_WET_WINTER = 1 << 5
    FROST_RISK = 1 << 6
    HEAT_STRESS = 1 << 7
    RIVER_FED = 1 << 8
    COASTAL_BUFFERED = 1 << 9


class RiverBaseType(IntEnum):
    """River segment morphology"""
    NONE = 0
    SOURCE = 1
    SMALL_RIVER = 2
    MEDIUM_RIVER = 3
    LARGE_RIVER = 4
    VERY_LARGE_RIVER = 5
    VALLEY = 6
    CANYON = 7
    WATERFALL = 8
    DELTA = 9


class ResourceLayer(IntEnum):
    """Depth band of a resource deposit"""
    SURFACE = 0
    MIDDLE = 1
    DEEP = 2


class ResourceType(IntEnum):
    """Resource kinds. Values are the serialized resource ids."""
    # Energy
    WIND_PWR = 1
    SOLAR_PWR = 2
    GEO_HEAT = 3
    HYDRO_PWR = 4
    TIDAL_PWR = 5

    # Water
    H2O_FRESH = 10
    H2O_SALT = 11
    H2O_ICE_RES = 12
    Na_BRINE = 13

    # Atmosphere
    ATM_AIR = 20
    ATM_CO2 = 21
    ATM_H2S = 22

    # Ores
    Fe_MAG = 30
    Fe_HEM = 31
    Cu_PORP = 32
    Au_QUAR = 33
    Au_PLAC = 34
    S_NATIVE = 35
    Ni_SULF = 36

    # Hydrocarbons and coal
    HC_OIL_L = 40
    HC_GAS = 41
    C_COAL = 42

    # Biological and soil
    BIO_MAT = 50
    FERTILITY = 51

    # Exotic
    CH4_ICE_RES = 60
    CO2_ICE_RES = 61
    IMPACT_GLASS = 62
    CRYO_VOLATILES = 63


class StageId(IntEnum):
    """Stable stage identities, numbered in canonical run order"""
    NEIGHBORS = 1
    BASE_SURFACE = 2
    PLATES = 3
    STRESS = 4
    OROGENESIS = 5
    MOUNTAINS = 6
    VOLCANISM = 7
    CLIMATE = 8
    WIND = 9
    WATER_REBALANCE = 10
    EROSION = 11
    CLIMATE_RECALC = 12
    SEASONAL_CLIMATE = 13
    IMPACTS = 14
    ICE = 15
    LAVA = 16
    WATER_CLASSIFY = 17
    RIVERS = 18
    BIOMES = 19
    RELIEF = 20
    RESOURCES = 21


# =============================================================================
# STAGE CONFIGURATION
# =============================================================================

STAGE_ORDER = [
    StageId.NEIGHBORS,
    StageId.BASE_SURFACE,
    StageId.PLATES,
    StageId.STRESS,
    StageId.OROGENESIS,
    StageId.MOUNTAINS,
    StageId.VOLCANISM,
    StageId.CLIMATE,
    StageId.WIND,
    StageId.WATER_REBALANCE,
    StageId.EROSION,
    StageId.CLIMATE_RECALC,
    StageId.SEASONAL_CLIMATE,
    StageId.IMPACTS,
    StageId.ICE,
    StageId.LAVA,
    StageId.WATER_CLASSIFY,
    StageId.RIVERS,
    StageId.BIOMES,
    StageId.RELIEF,
    StageId.RESOURCES,
]

# Stage weights for progress calculation
STAGE_WEIGHTS = {
    StageId.NEIGHBORS: 3,
    StageId.BASE_SURFACE: 4,
    StageId.PLATES: 3,
    StageId.STRESS: 2,
    StageId.OROGENESIS: 1,
    StageId.MOUNTAINS: 2,
    StageId.VOLCANISM: 1,
    StageId.CLIMATE: 3,
    StageId.WIND: 8,
    StageId.WATER_REBALANCE: 1,
    StageId.EROSION: 12,
    StageId.CLIMATE_RECALC: 10,
    StageId.SEASONAL_CLIMATE: 20,
    StageId.IMPACTS: 1,
    StageId.ICE: 2,
    StageId.LAVA: 1,
    StageId.WATER_CLASSIFY: 4,
    StageId.RIVERS: 6,
    StageId.BIOMES: 6,
    StageId.RELIEF: 2,
    StageId.RESOURCES: 5,
}

# =============================================================================
# SURFACE TYPE GROUPS
# =============================================================================

# Surfaces that hold liquid (or frozen-over liquid) water bodies
LIQUID_WATER_TYPES = frozenset({
    SurfaceType.OCEAN,
    SurfaceType.ICE_OCEAN,
    SurfaceType.LAVA_OCEAN,
    SurfaceType.OPEN_WATER_SHALLOW,
    SurfaceType.OPEN_WATER_DEEP,
    SurfaceType.LAKE_FRESH,
    SurfaceType.LAKE_SALT,
    SurfaceType.LAKE_BRINE,
    SurfaceType.LAKE_ACID,
    SurfaceType.SEA_ICE_SHALLOW,
    SurfaceType.SEA_ICE_DEEP,
})

# Everything the climate model treats as an open water surface
WATER_SURFACE_TYPES = LIQUID_WATER_TYPES | {SurfaceType.STEAM_SEA, SurfaceType.SHALLOW_SEA}

SEA_TYPES = frozenset({
    SurfaceType.OCEAN,
    SurfaceType.ICE_OCEAN,
    SurfaceType.OPEN_WATER_SHALLOW,
    SurfaceType.OPEN_WATER_DEEP,
    SurfaceType.SEA_ICE_SHALLOW,
    SurfaceType.SEA_ICE_DEEP,
    SurfaceType.STEAM_SEA,
    SurfaceType.SHALLOW_SEA,
})

LAKE_TYPES = frozenset({
    SurfaceType.LAKE_FRESH,
    SurfaceType.LAKE_SALT,
    SurfaceType.LAKE_BRINE,
    SurfaceType.LAKE_ACID,
})

MOUNTAIN_TYPES = frozenset({
    SurfaceType.MOUNTAINS,
    SurfaceType.HIGH_MOUNTAINS,
    SurfaceType.MOUNTAINS_SNOW,
    SurfaceType.MOUNTAINS_FOREST,
    SurfaceType.MOUNTAINS_RAINFOREST,
    SurfaceType.MOUNTAINS_TUNDRA,
    SurfaceType.MOUNTAINS_DESERT,
    SurfaceType.MOUNTAINS_ALPINE,
    SurfaceType.HIGHLANDS,
    SurfaceType.PLATEAU,
})

HILL_TYPES = frozenset({
    SurfaceType.HILLS,
    SurfaceType.HILLS_GRASS,
    SurfaceType.HILLS_FOREST,
    SurfaceType.HILLS_SAVANNA,
    SurfaceType.HILLS_DRY_SAVANNA,
    SurfaceType.HILLS_DESERT,
    SurfaceType.HILLS_TUNDRA,
    SurfaceType.HILLS_RAINFOREST,
})

FROZEN_TYPES = frozenset({
    SurfaceType.ICE,
    SurfaceType.ICE_SHEET,
    SurfaceType.GLACIER,
    SurfaceType.METHANE_ICE,
    SurfaceType.AMMONIA_ICE,
    SurfaceType.CO2_ICE,
})

VOLCANIC_TYPES = frozenset({
    SurfaceType.VOLCANIC,
    SurfaceType.VOLCANIC_FIELD,
    SurfaceType.VOLCANO,
    SurfaceType.ACTIVE_VOLCANO,
    SurfaceType.LAVA_PLAINS,
    SurfaceType.LAVA_ISLANDS,
    SurfaceType.LAVA,
})

# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

SOLAR_CONSTANT = 1361.0  # W/m^2
EARTH_RADIUS_KM = 6371.0
KELVIN_OFFSET = 273.15
HEIGHT_LAPSE_RATE = 0.0065  # °C per meter
DAY_SECONDS = 86_400.0


# =============================================================================
# ENVIRONMENT SETTINGS
# =============================================================================

class EnvironmentSettings(BaseSettings):
    """Process-level settings loaded from environment variables."""

    climate_model: str = "enhanced"
    tile_set_dir: str = "tiles"
    log_level: str = "INFO"

    class Config:
        env_prefix = "PLANETGEN_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_environment() -> EnvironmentSettings:
    """Get cached environment settings instance."""
    return EnvironmentSettings()


def parse_climate_model_mode(raw) -> ClimateModelMode:
    """Parse a model selector, falling back to ENHANCED on anything unknown."""
    if isinstance(raw, ClimateModelMode):
        return raw
    if raw is None:
        return ClimateModelMode.ENHANCED
    try:
        return ClimateModelMode(str(raw).strip().lower())
    except ValueError:
        return ClimateModelMode.ENHANCED


def _climate_mode_from_environment() -> ClimateModelMode:
    return parse_climate_model_mode(get_environment().climate_model)


# =============================================================================
# GENERATION PARAMETERS
# =============================================================================

class GeneratorSettings(BaseModel):
    """
    Immutable generation settings for one run.
    The climate model variant is resolved when the settings are built
    and stays fixed for the whole run.
    """
    seed: int = Field(42, description="Random seed for deterministic generation")

    # World shape
    ocean_coverage: Optional[float] = Field(
        None, ge=0.0, le=1.0,
        description="Ocean fraction override; derived from the water regime when unset"
    )
    continent_bias: float = Field(0.5, ge=0.0, le=1.0, description="Preference for large land masses")
    island_bias: float = Field(0.2, ge=0.0, le=1.0, description="Preference for small islands")
    archipelago_bias: float = Field(0.2, ge=0.0, le=1.0, description="Preference for island chains")

    # Erosion
    erosion_iterations: int = Field(25, ge=0, le=500, description="Erosion simulation iterations")
    thermal_k: float = Field(0.35, ge=0.0, description="Thermal (talus) erosion coefficient")
    water_k: float = Field(0.02, ge=0.0, description="Hydraulic erosion coefficient")
    deposition_k: float = Field(0.6, ge=0.0, le=1.0, description="Share of eroded material deposited downhill")
    wind_k: float = Field(0.003, ge=0.0, description="Aeolian erosion coefficient")
    talus_base: float = Field(3.0, gt=0.0, description="Stable slope in elevation units")

    # Relief thresholds
    hill_min_elevation: int = Field(8, ge=0, le=255, description="Minimum elevation for hills")
    mountain_min_elevation: int = Field(20, ge=0, le=255, description="Minimum elevation for mountains")

    # Wind model coupling
    wind_alpha: float = Field(0.6, description="Pressure-gradient forcing")
    wind_beta: float = Field(0.3, description="Thermal-gradient forcing")
    wind_gamma: float = Field(0.25, description="Neighbor coupling during relaxation")

    climate_model_mode: ClimateModelMode = Field(
        default_factory=_climate_mode_from_environment,
        description="Climate/wind model variant"
    )

    class Config:
        frozen = True

    @field_validator("climate_model_mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value):
        return parse_climate_model_mode(value)


class PlanetConfig(BaseModel):
    """
    Planet-level parameters read by the stages.
    Temperatures fall back through several sources, see base_temperature_k().
    """
    name: str = Field("Unnamed", description="Planet display name")

    # Temperature
    mean_temperature_c: float = Field(15.0, description="Mean surface temperature in Celsius")
    mean_temperature_k: Optional[float] = Field(None, description="Mean surface temperature in Kelvin")
    min_temperature_k: Optional[float] = Field(None, description="Minimum surface temperature in Kelvin")
    max_temperature_k: Optional[float] = Field(None, description="Maximum surface temperature in Kelvin")
    equilibrium_temperature_k: Optional[float] = Field(None, description="Radiative equilibrium temperature")
    greenhouse_delta_k: float = Field(0.0, description="Greenhouse warming in Kelvin")

    # Physical
    gravity: float = Field(1.0, gt=0.0, description="Surface gravity in g")
    radius_km: float = Field(6371.0, gt=0.0, description="Planet radius in kilometers")
    atmosphere_density: float = Field(1.0, ge=0.0, description="Surface pressure relative to Earth (0..2 typical)")
    has_atmosphere: bool = Field(True, description="Whether the planet holds an atmosphere")

    # Water
    water_coverage: WaterCoverage = Field(WaterCoverage.OCEANS, description="Water regime")

    # Orbit and rotation
    tidal_locked: bool = Field(False, description="Synchronous rotation")
    axial_tilt: Optional[float] = Field(23.5, description="Axial tilt in degrees")
    rotation_period_hours: float = Field(24.0, gt=0.0, description="Sidereal day length in hours")
    rotation_prograde: bool = Field(True, description="Rotation direction")
    orbit_au: float = Field(1.0, gt=0.0, description="Orbital distance in AU")
    star_luminosity: float = Field(1.0, gt=0.0, description="Star luminosity relative to the Sun")

    # Geology
    volcanism: int = Field(20, ge=0, le=100, description="Volcanic activity 0..100")
    lava_world: bool = Field(False, description="Surface dominated by molten rock")

    # Ices
    methane_ice_frac: float = Field(0.0, ge=0.0, le=1.0, description="Share of methane in surface ices")
    ammonia_ice_frac: float = Field(0.0, ge=0.0, le=1.0, description="Share of ammonia in surface ices")
    co2_ice_frac: float = Field(0.0, ge=0.0, le=1.0, description="Share of CO2 in surface ices")
    subsurface_ice_thickness_m: float = Field(0.0, ge=0.0, description="Computed by the ice stage")

    # Life
    has_life: bool = Field(True, description="Biosphere present")
    has_surface_life: bool = Field(True, description="Biosphere reaches the surface")
    o2_pct: float = Field(21.0, ge=0.0, le=100.0, description="Atmospheric oxygen percent")

    # Tides
    moon_mass_earth: float = Field(0.0123, ge=0.0, description="Dominant moon mass in Earth masses")
    moon_distance_au: float = Field(0.00257, gt=0.0, description="Dominant moon distance in AU")

    def base_temperature_k(self, with_greenhouse: bool = True) -> float:
        """
        Resolve the base surface temperature in Kelvin.

        Order: mean K, (min + max) / 2, equilibrium + greenhouse,
        mean Celsius + 273.15, then 273.15.
        """
        if self.mean_temperature_k and self.mean_temperature_k > 0.0:
            return self.mean_temperature_k

        t_min = self.min_temperature_k or 0.0
        t_max = self.max_temperature_k or 0.0
        if t_min > 0.0 or t_max > 0.0:
            if t_min <= 0.0:
                t_min = t_max
            if t_max <= 0.0:
                t_max = t_min
            return (t_min + t_max) * 0.5

        if self.equilibrium_temperature_k and self.equilibrium_temperature_k > 0.0:
            greenhouse = self.greenhouse_delta_k if with_greenhouse else 0.0
            base = self.equilibrium_temperature_k + greenhouse
            if base > 0.0:
                return base

        if self.mean_temperature_c != 0.0:
            base = self.mean_temperature_c + KELVIN_OFFSET
            if base > 0.0:
                return base

        return KELVIN_OFFSET

    def clamped_tilt(self) -> float:
        """Axial tilt clamped to [-90, 90]; absent or NaN tilt counts as 0."""
        tilt = self.axial_tilt
        if tilt is None or math.isnan(tilt):
            return 0.0
        return max(-90.0, min(90.0, tilt))

    @property
    def ocean_fraction(self) -> float:
        """Nominal ocean share for the water regime."""
        return WATER_COVERAGE_FRACTIONS[self.water_coverage]


# =============================================================================
# LOOKUP TABLES
# =============================================================================

WATER_COVERAGE_FRACTIONS = {
    WaterCoverage.DRY: 0.0,
    WaterCoverage.LAKES: 0.08,
    WaterCoverage.SEAS: 0.25,
    WaterCoverage.OCEAN: 0.45,
    WaterCoverage.OCEANS: 0.65,
    WaterCoverage.MANY_OCEANS: 0.75,
    WaterCoverage.ARCHIPELAGOS: 0.82,
    WaterCoverage.OCEAN_PLANET: 0.97,
}
