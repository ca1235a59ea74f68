"""
Planet Generator - Stage Profiles
Named sets of enabled stages and the world-type classification that picks one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable

from planetgen.config import PlanetConfig, STAGE_ORDER, StageId, WaterCoverage

_TECTONICS = (
    StageId.NEIGHBORS,
    StageId.BASE_SURFACE,
    StageId.PLATES,
    StageId.STRESS,
    StageId.OROGENESIS,
    StageId.MOUNTAINS,
    StageId.VOLCANISM,
)

AIRLESS_PRESSURE_BAR = 0.05
ICE_MAX_K = 273.0
VOLATILE_MEAN_K = 180.0
VOLATILE_ICE_THRESHOLD = 0.10


@dataclass(frozen=True)
class StageProfile:
    """A named set of enabled stages. Order always comes from the pipeline."""

    name: str
    enabled: FrozenSet[StageId]

    def is_enabled(self, stage_id: StageId) -> bool:
        return stage_id in self.enabled

    @classmethod
    def of(cls, name: str, stages: Iterable[StageId]) -> "StageProfile":
        return cls(name, frozenset(stages))

    # -------------------------------------------------------------------------
    # Built-in profiles
    # -------------------------------------------------------------------------

    @classmethod
    def full(cls) -> "StageProfile":
        return cls.of("full", STAGE_ORDER)

    @classmethod
    def tectonics_only(cls) -> "StageProfile":
        return cls.of("tectonics_only", _TECTONICS)

    @classmethod
    def up_to_wind(cls) -> "StageProfile":
        return cls.of("up_to_wind", _TECTONICS + (
            StageId.CLIMATE,
            StageId.WIND,
            StageId.WATER_REBALANCE,
            StageId.WATER_CLASSIFY,
            StageId.SEASONAL_CLIMATE,
            StageId.RIVERS,
            StageId.RELIEF,
            StageId.RESOURCES,
        ))

    @classmethod
    def up_to_erosion(cls) -> "StageProfile":
        return cls.of("up_to_erosion", _TECTONICS + (
            StageId.CLIMATE,
            StageId.WIND,
            StageId.WATER_REBALANCE,
            StageId.EROSION,
            StageId.WATER_CLASSIFY,
            StageId.SEASONAL_CLIMATE,
            StageId.RIVERS,
            StageId.RELIEF,
            StageId.BIOMES,
            StageId.RESOURCES,
        ))

    @classmethod
    def up_to_erosion_with_recalc(cls) -> "StageProfile":
        return cls.of("up_to_erosion_with_recalc", _TECTONICS + (
            StageId.CLIMATE,
            StageId.WIND,
            StageId.WATER_REBALANCE,
            StageId.EROSION,
            StageId.CLIMATE_RECALC,
            StageId.SEASONAL_CLIMATE,
            StageId.ICE,
            StageId.WATER_CLASSIFY,
            StageId.RIVERS,
            StageId.RELIEF,
            StageId.BIOMES,
            StageId.RESOURCES,
        ))

    @classmethod
    def up_to_climate(cls) -> "StageProfile":
        return cls.of("up_to_climate", _TECTONICS + (
            StageId.CLIMATE,
            StageId.SEASONAL_CLIMATE,
        ))

    @classmethod
    def surface_and_climate(cls) -> "StageProfile":
        """Base surface plus climate, wind and erosion; no tectonics."""
        return cls.of("surface_and_climate", (
            StageId.NEIGHBORS,
            StageId.BASE_SURFACE,
            StageId.CLIMATE,
            StageId.WIND,
            StageId.WATER_REBALANCE,
            StageId.ICE,
            StageId.EROSION,
            StageId.WATER_CLASSIFY,
            StageId.SEASONAL_CLIMATE,
            StageId.RIVERS,
            StageId.RELIEF,
            StageId.BIOMES,
            StageId.RESOURCES,
        ))

    @classmethod
    def airless(cls) -> "StageProfile":
        return cls.of("airless", _TECTONICS + (
            StageId.CLIMATE,
            StageId.IMPACTS,
            StageId.WATER_CLASSIFY,
            StageId.RESOURCES,
        ))

    @classmethod
    def ice_world(cls, with_recalc: bool = False) -> "StageProfile":
        return cls.of("ice_world", (
            StageId.NEIGHBORS,
            StageId.BASE_SURFACE,
            StageId.CLIMATE,
            StageId.WIND,
            StageId.WATER_REBALANCE,
            StageId.ICE,
            StageId.EROSION,
            StageId.CLIMATE_RECALC if with_recalc else StageId.CLIMATE,
            StageId.WATER_CLASSIFY,
            StageId.SEASONAL_CLIMATE,
            StageId.RIVERS,
            StageId.RELIEF,
            StageId.BIOMES,
            StageId.RESOURCES,
        ))

    @classmethod
    def lava_world(cls) -> "StageProfile":
        return cls.of("lava_world", _TECTONICS + (
            StageId.LAVA,
            StageId.WATER_CLASSIFY,
            StageId.RELIEF,
            StageId.BIOMES,
            StageId.RESOURCES,
        ))

    @classmethod
    def named(cls, name: str) -> "StageProfile":
        """Look up a built-in profile by name."""
        factories = {
            "full": cls.full,
            "tectonics_only": cls.tectonics_only,
            "up_to_wind": cls.up_to_wind,
            "up_to_erosion": cls.up_to_erosion,
            "up_to_erosion_with_recalc": cls.up_to_erosion_with_recalc,
            "up_to_climate": cls.up_to_climate,
            "surface_and_climate": cls.surface_and_climate,
            "airless": cls.airless,
            "ice_world": cls.ice_world,
            "lava_world": cls.lava_world,
        }
        if name not in factories:
            raise ValueError(f"Unknown stage profile '{name}'. Known: {', '.join(sorted(factories))}")
        return factories[name]()

    @classmethod
    def for_planet(cls, planet: PlanetConfig) -> "StageProfile":
        """Pick the profile suited to a planet's world type."""
        world_type = classify_world(planet)
        wants_recalc = planet.has_life or (
            planet.has_atmosphere and planet.water_coverage >= WaterCoverage.SEAS
        )
        if world_type is WorldType.AIRLESS:
            return cls.airless()
        if world_type is WorldType.LAVA_WORLD:
            return cls.lava_world()
        if world_type is WorldType.ICE_VOLATILE:
            return cls.ice_world(wants_recalc)
        return cls.up_to_erosion_with_recalc() if wants_recalc else cls.up_to_erosion()


# =============================================================================
# WORLD TYPES
# =============================================================================

class WorldType(str, Enum):
    """Broad planet class used to choose a stage profile"""
    ROCKY_TECTONIC = "rocky_tectonic"
    ICE_ROCKY = "ice_rocky"
    ICE_VOLATILE = "ice_volatile"
    AIRLESS = "airless"
    LAVA_WORLD = "lava_world"


def classify_world(planet: PlanetConfig) -> WorldType:
    """Classify a planet from its surface conditions."""
    if planet.lava_world:
        return WorldType.LAVA_WORLD
    if not planet.has_atmosphere or planet.atmosphere_density < AIRLESS_PRESSURE_BAR:
        return WorldType.AIRLESS

    max_k = planet.max_temperature_k or 0.0
    if 0.0 < max_k < ICE_MAX_K:
        mean_k = planet.mean_temperature_k or 0.0
        volatile_rich = (planet.methane_ice_frac + planet.ammonia_ice_frac) >= VOLATILE_ICE_THRESHOLD
        if 0.0 < mean_k < VOLATILE_MEAN_K or volatile_rich:
            return WorldType.ICE_VOLATILE
        return WorldType.ICE_ROCKY
    return WorldType.ROCKY_TECTONIC
