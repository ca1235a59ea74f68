"""
Planet Generator - Stage: Biomes
Assigns land biomes from the seasonal climate.

BIOME MODEL:
For each land tile the three seasons (interseason, local warm, local cold)
are scored for how favorable they are to vegetation, and the best one
drives classification (``biome_preferred_season``). Alongside it:

- Regime: a coarse climate class (``BiomeRegime``) from seasonal
  temperatures, aridity and monsoon strength
- Modifiers: a bit mask (``BiomeModifier``) of notable traits such as hard
  winters, monsoons, frost, heat stress, rivers and coasts
- Surface type: deserts forced by heat or hyper-aridity, abiotic types on
  lifeless or too hot worlds, otherwise the best-matching biome profile for
  the tile's relief class

River tiles end one step greener than their climate alone would give.
Seasonal inputs come through the shared fallback chain, so the stage also
works on pipelines that skipped the seasonal stage.
"""

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from pydantic import BaseModel

from planetgen.config import (
    BIOME_NOISE_SEED_OFFSET,
    BiomeModifier,
    BiomeRegime,
    ClimateModelMode,
    PlanetConfig,
    Season,
    StageId,
    SurfaceType,
    VOLCANIC_TYPES,
    WATER_SURFACE_TYPES,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.rivers import max_slope
from planetgen.generation.stages.surface_effects import hash01
from planetgen.generation.stages.water_classify import boiling_point_c
from planetgen.io.fallback import Quantity, resolve
from planetgen.models.tile import Tile, dry_out_wetlands, has_liquid_water
from planetgen.models.world import WorldContext
from planetgen.utils.spatial import percentile_sorted

logger = logging.getLogger(__name__)

LIFE_MAX_TEMP_C = 120.0
INDEX_PER_KG = 8.0  # precipitation/evaporation index units per kg/m²/day
PROFILE_MIN_SCORE = -8.5

_COASTS = frozenset({SurfaceType.COAST_SANDY, SurfaceType.COAST_ROCKY})
_WATER_LIKE = WATER_SURFACE_TYPES | _COASTS
_ELEVATION_EXCLUDED = frozenset({SurfaceType.OCEAN, SurfaceType.ICE_OCEAN, SurfaceType.LAVA_OCEAN})

# Surfaces the biome pass leaves as they are
_FIXED = _WATER_LIKE | VOLCANIC_TYPES | {
    SurfaceType.CRATERED_SURFACE,
    SurfaceType.REGOLITH,
    SurfaceType.METHANE_ICE,
    SurfaceType.AMMONIA_ICE,
    SurfaceType.CO2_ICE,
    SurfaceType.ICE_SHEET,
    SurfaceType.GLACIER,
    SurfaceType.BASIN_DRY,
    SurfaceType.BASIN_SWAMP,
}
_SWAMPS = frozenset({SurfaceType.SWAMP, SurfaceType.MUD_SWAMP})
_MOUNTAIN_SURFACES = frozenset({SurfaceType.MOUNTAINS, SurfaceType.HIGH_MOUNTAINS, SurfaceType.MOUNTAINS_SNOW})
_HILL_SURFACES = frozenset({
    SurfaceType.HILLS,
    SurfaceType.HILLS_GRASS,
    SurfaceType.HILLS_FOREST,
    SurfaceType.HILLS_RAINFOREST,
    SurfaceType.HIGHLANDS,
    SurfaceType.PLATEAU,
})


# =============================================================================
# SEASON FAVORABILITY
# =============================================================================

class SeasonFavorability(BaseModel):
    """Weights for scoring how favorable a season is to vegetation."""
    temp_center_c: float = 18.0
    temp_half_range_c: float = 38.0
    liquid_min_c: float = -2.0
    liquid_max_c: float = 38.0
    liquid_bonus: float = 0.30
    liquid_penalty: float = -0.25
    ai_offset: float = 0.45
    ai_scale: float = 1.25
    ai_min: float = -0.60
    ai_max: float = 0.90
    moisture_offset: float = 22.0
    moisture_scale: float = 68.0
    moisture_min: float = -0.40
    moisture_max: float = 0.60
    frost_start_c: float = -12.0
    frost_range_c: float = 26.0
    heat_start_c: float = 38.0
    heat_range_c: float = 22.0
    weight_temp: float = 0.70
    weight_ai: float = 0.40
    weight_moisture: float = 0.28
    weight_frost: float = 0.55
    weight_heat: float = 0.50


class SeasonChoice(NamedTuple):
    season: Season
    temp: float
    precip: float  # kg/m²/day
    evap: float  # kg/m²/day
    moisture: float
    ai: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def aridity_index(precip: float, evap: float) -> float:
    """Precipitation over evaporation, smoothed near zero; below 1 is dry."""
    return (precip + 0.2) / (evap + 0.2)


def season_favorability(temp_c: float, ai: float, moisture: float, favor: SeasonFavorability) -> float:
    comfort = _clamp(1.0 - abs(temp_c - favor.temp_center_c) / max(1e-6, favor.temp_half_range_c), -1.0, 1.0)
    liquid = favor.liquid_bonus if favor.liquid_min_c < temp_c < favor.liquid_max_c else favor.liquid_penalty
    ai_score = _clamp((ai - favor.ai_offset) / max(1e-6, favor.ai_scale), favor.ai_min, favor.ai_max)
    moist_score = _clamp(
        (moisture - favor.moisture_offset) / max(1e-6, favor.moisture_scale),
        favor.moisture_min, favor.moisture_max
    )
    frost = 0.0
    if temp_c < favor.frost_start_c:
        frost = _clamp((favor.frost_start_c - temp_c) / max(1e-6, favor.frost_range_c), 0.0, 1.0)
    heat = 0.0
    if temp_c > favor.heat_start_c:
        heat = _clamp((temp_c - favor.heat_start_c) / max(1e-6, favor.heat_range_c), 0.0, 1.0)
    return (
        favor.weight_temp * comfort
        + favor.weight_ai * ai_score
        + favor.weight_moisture * moist_score
        + liquid
        - favor.weight_frost * frost
        - favor.weight_heat * heat
    )


def pick_favorable_season(choices: List[SeasonChoice], favor: SeasonFavorability) -> SeasonChoice:
    """Highest favorability; earlier choices win ties."""
    best = choices[0]
    best_score = season_favorability(best.temp, best.ai, best.moisture, favor)
    for choice in choices[1:]:
        score = season_favorability(choice.temp, choice.ai, choice.moisture, favor)
        if score > best_score + 1e-9:
            best, best_score = choice, score
    return best


# =============================================================================
# REGIME AND MODIFIERS
# =============================================================================

def classify_regime(temp_warm: float, temp_cold: float, ai_ann: float,
                    ai_warm: float, ai_cold: float, monsoon: float) -> BiomeRegime:
    if temp_warm < 6.0:
        return BiomeRegime.CRYO
    if ai_ann < 0.38:
        if monsoon > 0.35 or abs(ai_warm - ai_cold) > 0.35:
            return BiomeRegime.ARID_SEASONAL
        return BiomeRegime.ARID_STABLE
    if monsoon > 0.45:
        return BiomeRegime.MONSOONAL
    if temp_warm >= 24.0:
        return BiomeRegime.TROPICAL_HUMID if ai_ann >= 1.15 else BiomeRegime.TROPICAL_DRYWET
    if temp_warm - temp_cold >= 30.0 and temp_cold <= -10.0:
        return BiomeRegime.BOREAL_CONTINENTAL
    return BiomeRegime.TEMPERATE_BALANCED


def climate_modifiers(temp_range: float, temp_warm: float, temp_cold: float,
                      monsoon: float, ai_warm: float, ai_cold: float) -> BiomeModifier:
    mask = BiomeModifier.NONE
    if temp_range >= 25.0:
        mask |= BiomeModifier.HIGH_SEASONALITY
    if temp_cold <= -15.0:
        mask |= BiomeModifier.COLD_WINTER
    if temp_cold <= -25.0:
        mask |= BiomeModifier.SEVERE_WINTER
    if monsoon >= 0.45:
        mask |= BiomeModifier.MONSOONAL
    if ai_warm > 1.1 and ai_cold < 0.65:
        mask |= BiomeModifier.WET_SUMMER_DRY_WINTER
    if ai_warm < 0.65 and ai_cold > 1.1:
        mask |= BiomeModifier.DRY_SUMMER_WET_WINTER
    if temp_cold < 0.0:
        mask |= BiomeModifier.FROST_RISK
    if temp_warm > 35.0:
        mask |= BiomeModifier.HEAT_STRESS
    return mask


# =============================================================================
# BIOME PROFILES
# =============================================================================

LOWLAND, HILL, MOUNTAIN = "lowland", "hill", "mountain"


@dataclass(frozen=True)
class BiomeProfile:
    """Climate envelope of one biome: centers with tolerances."""
    surface: SurfaceType
    relief: str
    temp: float
    temp_tol: float
    ai: float
    ai_tol: float
    soil: float
    soil_tol: float
    precip: float
    precip_tol: float
    monsoon: float
    monsoon_tol: float
    min_cold_temp: float
    max_warm_temp: float
    river_affinity: float
    coastal_affinity: float


@dataclass(frozen=True)
class BiomeFeatures:
    temp: float
    precip: float
    soil: float
    ai: float
    temp_warm: float
    temp_cold: float
    monsoon: float
    river_fed: bool
    coastal: bool


def _p(surface, relief, *values) -> BiomeProfile:
    return BiomeProfile(surface, relief, *values)


BIOME_PROFILES = [
    _p(SurfaceType.RAINFOREST, LOWLAND, 28, 10, 1.45, 0.85, 82, 26, 24, 18, 0.45, 0.35, 6, 46, 0.12, 0.08),
    _p(SurfaceType.PLAINS_FOREST, LOWLAND, 20, 11, 1.00, 0.60, 58, 24, 12, 12, 0.25, 0.35, -12, 42, 0.08, 0.08),
    _p(SurfaceType.SAVANNA, LOWLAND, 26, 10, 0.70, 0.45, 38, 20, 8, 8, 0.40, 0.35, -8, 46, 0.10, 0.06),
    _p(SurfaceType.DRY_SAVANNA, LOWLAND, 24, 11, 0.45, 0.35, 24, 16, 4, 6, 0.30, 0.35, -12, 48, 0.08, 0.04),
    _p(SurfaceType.GRASSLAND, LOWLAND, 14, 10, 0.62, 0.35, 36, 18, 7, 7, 0.20, 0.40, -18, 40, 0.06, 0.06),
    _p(SurfaceType.PLAINS_GRASS, LOWLAND, 10, 12, 0.72, 0.40, 42, 20, 8, 8, 0.20, 0.40, -22, 36, 0.04, 0.04),
    _p(SurfaceType.TUNDRA, LOWLAND, -1, 11, 0.75, 0.45, 30, 18, 4, 5, 0.18, 0.45, -60, 20, 0.02, 0.02),
    _p(SurfaceType.COLD_DESERT, LOWLAND, 2, 12, 0.28, 0.22, 8, 8, 1.0, 2.5, 0.18, 0.45, -70, 24, -0.02, -0.02),
    _p(SurfaceType.DESERT_ROCKY, LOWLAND, 30, 12, 0.22, 0.22, 10, 10, 1.5, 3.0, 0.15, 0.45, -35, 60, -0.02, -0.02),

    _p(SurfaceType.HILLS_RAINFOREST, HILL, 24, 10, 1.35, 0.75, 72, 24, 18, 14, 0.40, 0.35, 2, 42, 0.10, 0.06),
    _p(SurfaceType.HILLS_FOREST, HILL, 18, 10, 0.95, 0.55, 54, 22, 11, 10, 0.22, 0.35, -15, 38, 0.07, 0.07),
    _p(SurfaceType.HILLS_SAVANNA, HILL, 23, 10, 0.65, 0.40, 35, 18, 7, 7, 0.35, 0.35, -10, 42, 0.08, 0.04),
    _p(SurfaceType.HILLS_DRY_SAVANNA, HILL, 21, 11, 0.45, 0.32, 24, 15, 4, 6, 0.28, 0.35, -14, 46, 0.06, 0.03),
    _p(SurfaceType.HILLS_GRASS, HILL, 12, 10, 0.65, 0.35, 36, 16, 6, 7, 0.20, 0.40, -22, 34, 0.05, 0.04),
    _p(SurfaceType.HILLS_TUNDRA, HILL, -4, 10, 0.70, 0.40, 28, 16, 3, 4, 0.18, 0.45, -65, 16, 0.01, 0.01),
    _p(SurfaceType.HILLS_DESERT, HILL, 27, 12, 0.22, 0.22, 9, 9, 1.2, 2.8, 0.16, 0.45, -35, 58, -0.02, -0.03),

    _p(SurfaceType.MOUNTAINS_RAINFOREST, MOUNTAIN, 20, 10, 1.20, 0.70, 60, 20, 14, 12, 0.30, 0.35, -5, 36, 0.06, 0.05),
    _p(SurfaceType.MOUNTAINS_FOREST, MOUNTAIN, 12, 10, 0.95, 0.55, 50, 18, 10, 9, 0.20, 0.40, -20, 30, 0.05, 0.05),
    _p(SurfaceType.ALPINE_MEADOW, MOUNTAIN, 8, 8, 0.70, 0.35, 38, 16, 6, 7, 0.20, 0.40, -22, 24, 0.03, 0.03),
    _p(SurfaceType.MOUNTAINS_TUNDRA, MOUNTAIN, -6, 8, 0.75, 0.40, 24, 14, 3, 4, 0.18, 0.45, -80, 14, 0.01, 0.01),
    _p(SurfaceType.MOUNTAINS_SNOW, MOUNTAIN, -16, 8, 0.65, 0.45, 18, 14, 2, 3, 0.15, 0.45, -90, 8, 0.00, 0.00),
    _p(SurfaceType.MOUNTAINS, MOUNTAIN, 10, 12, 0.55, 0.35, 28, 16, 5, 7, 0.20, 0.45, -30, 32, 0.03, 0.03),
    _p(SurfaceType.MOUNTAINS_DESERT, MOUNTAIN, 20, 12, 0.22, 0.22, 8, 8, 1, 3, 0.15, 0.45, -40, 55, -0.03, -0.03),
]


def _distance(value: float, center: float, tol: float) -> float:
    return abs(value - center) / max(1e-6, tol)


def biome_score(profile: BiomeProfile, f: BiomeFeatures) -> float:
    """Negative weighted distance from the profile envelope; higher is better."""
    score = -_distance(f.temp, profile.temp, profile.temp_tol)
    score -= _distance(_clamp(f.ai, 0.0, 3.0), profile.ai, profile.ai_tol)
    score -= 0.85 * _distance(f.soil, profile.soil, profile.soil_tol)
    score -= 0.55 * _distance(min(f.precip, 30.0), profile.precip, profile.precip_tol)
    score -= 0.45 * _distance(f.monsoon, profile.monsoon, profile.monsoon_tol)
    if f.river_fed:
        score += profile.river_affinity
    if f.coastal:
        score += profile.coastal_affinity
    if f.temp_cold < profile.min_cold_temp:
        score -= _clamp((profile.min_cold_temp - f.temp_cold) / 10.0, 0.0, 3.5)
    if f.temp_warm > profile.max_warm_temp:
        score -= _clamp((f.temp_warm - profile.max_warm_temp) / 10.0, 0.0, 3.5)
    return score


def select_by_profiles(relief: str, features: BiomeFeatures) -> Optional[SurfaceType]:
    """Best-matching profile for the relief class, None when nothing fits."""
    candidates = [p for p in BIOME_PROFILES if p.relief == relief]
    if not candidates:
        return None
    scored = [(biome_score(p, features), p) for p in candidates]
    best_score, best = max(scored, key=lambda item: item[0])
    if best_score < PROFILE_MIN_SCORE:
        return None
    return best.surface


# -----------------------------------------------------------------------------
# Heuristic fallbacks
# -----------------------------------------------------------------------------

def hill_biome(temp: float, moist: float) -> SurfaceType:
    if temp < -5:
        return SurfaceType.HILLS_TUNDRA
    if moist < -15:
        return SurfaceType.HILLS_DESERT
    if temp > 24:
        if moist > 12:
            return SurfaceType.HILLS_RAINFOREST
        if moist > 5:
            return SurfaceType.HILLS_FOREST
        if moist > -8:
            return SurfaceType.HILLS_SAVANNA
        return SurfaceType.HILLS_DRY_SAVANNA
    if moist > 10:
        return SurfaceType.HILLS_FOREST
    if moist > -4:
        return SurfaceType.HILLS_GRASS
    return SurfaceType.HILLS_DRY_SAVANNA


def mountain_biome(temp: float, moist: float) -> SurfaceType:
    if temp < -15:
        return SurfaceType.MOUNTAINS_SNOW
    if temp < 4:
        return SurfaceType.MOUNTAINS_TUNDRA
    if moist < -15:
        return SurfaceType.MOUNTAINS_DESERT
    if temp > 22 and moist > 12:
        return SurfaceType.MOUNTAINS_RAINFOREST
    if moist > 8:
        return SurfaceType.MOUNTAINS_FOREST
    if temp < 12:
        return SurfaceType.ALPINE_MEADOW
    return SurfaceType.MOUNTAINS


def lowland_biome(temp: float, moist: float) -> SurfaceType:
    if temp > 24:
        if moist > 12:
            return SurfaceType.RAINFOREST
        return SurfaceType.SAVANNA if moist > 5 else SurfaceType.DRY_SAVANNA
    return SurfaceType.GRASSLAND if temp > 8 else SurfaceType.PLAINS_GRASS


def abiotic_biome(temp: float, moist: float, relief: str) -> SurfaceType:
    """Bare ground: frozen, desert or plain rock by relief."""
    if temp < -5:
        if relief == MOUNTAIN:
            return SurfaceType.MOUNTAINS_SNOW if temp < -15 else SurfaceType.MOUNTAINS_TUNDRA
        return SurfaceType.HILLS_TUNDRA if relief == HILL else SurfaceType.TUNDRA
    if moist < -5:
        return _desert_for(relief, SurfaceType.DESERT_ROCKY)
    return {MOUNTAIN: SurfaceType.MOUNTAINS, HILL: SurfaceType.HILLS}.get(relief, SurfaceType.PLAINS)


def _desert_for(relief: str, lowland: SurfaceType) -> SurfaceType:
    if relief == HILL:
        return SurfaceType.HILLS_DESERT
    if relief == MOUNTAIN:
        return SurfaceType.MOUNTAINS_DESERT
    return lowland


GREENER = {
    SurfaceType.DESERT_SAND: SurfaceType.DRY_SAVANNA,
    SurfaceType.DESERT_ROCKY: SurfaceType.DRY_SAVANNA,
    SurfaceType.ROCKY_DESERT: SurfaceType.DRY_SAVANNA,
    SurfaceType.ROCK_DESERT: SurfaceType.DRY_SAVANNA,
    SurfaceType.COLD_DESERT: SurfaceType.DRY_SAVANNA,
    SurfaceType.HILLS_DESERT: SurfaceType.HILLS_DRY_SAVANNA,
    SurfaceType.MOUNTAINS_DESERT: SurfaceType.MOUNTAINS,
    SurfaceType.DRY_SAVANNA: SurfaceType.SAVANNA,
    SurfaceType.HILLS_DRY_SAVANNA: SurfaceType.HILLS_SAVANNA,
    SurfaceType.SAVANNA: SurfaceType.GRASSLAND,
    SurfaceType.HILLS_SAVANNA: SurfaceType.HILLS_GRASS,
    SurfaceType.MOUNTAINS: SurfaceType.MOUNTAINS_FOREST,
    SurfaceType.GRASSLAND: SurfaceType.PLAINS_FOREST,
    SurfaceType.PLAINS_GRASS: SurfaceType.PLAINS_FOREST,
    SurfaceType.HILLS_GRASS: SurfaceType.HILLS_FOREST,
    SurfaceType.MOUNTAINS_FOREST: SurfaceType.MOUNTAINS_RAINFOREST,
    SurfaceType.ALPINE_MEADOW: SurfaceType.MOUNTAINS_FOREST,
    SurfaceType.PLAINS_FOREST: SurfaceType.RAINFOREST,
    SurfaceType.FOREST: SurfaceType.RAINFOREST,
    SurfaceType.HILLS_FOREST: SurfaceType.HILLS_RAINFOREST,
}


def greener_by_one_step(surface_type: SurfaceType) -> SurfaceType:
    return GREENER.get(surface_type, surface_type)


def life_temperature_limit(t: Tile, planet: PlanetConfig) -> float:
    """Hottest temperature life tolerates here: species limit or local boiling."""
    pressure_bar = max(0.05, max(0.0, planet.atmosphere_density), max(0, t.pressure) / 1000.0)
    return min(LIFE_MAX_TEMP_C, boiling_point_c(pressure_bar))


def _river_fed(t: Tile) -> bool:
    return t.river_flow > 0.03 or t.river_discharge_kg_s > 200_000.0


# =============================================================================
# CLASSIFIER
# =============================================================================

class BiomeClassifier:
    """
    Biome assignment over a finished climate.

    Args:
        seed: Run seed; boundary jitter uses seed + BIOME_NOISE_SEED_OFFSET
        mode: PHYSICAL normalizes water balance on fixed ranges and
            reclassifies swamps; ENHANCED uses planet percentiles
        favor: Season favorability weights
    """

    def __init__(self, seed: int, mode: ClimateModelMode = ClimateModelMode.ENHANCED,
                 favor: Optional[SeasonFavorability] = None):
        self.seed = seed + BIOME_NOISE_SEED_OFFSET
        self.physical = mode == ClimateModelMode.PHYSICAL
        self.favor = favor or SeasonFavorability()

    def jitter(self, tile_id: int) -> float:
        """Deterministic -1..1 noise for ragged biome borders."""
        n1 = hash01(self.seed, tile_id) * 2.0 - 1.0
        n2 = hash01(self.seed + 911382, tile_id * 3) * 2.0 - 1.0
        return n1 * 0.7 + n2 * 0.3

    def lowland_desert(self, tile_id: int) -> SurfaceType:
        """Rocky deserts outnumber sandy ones four to one."""
        roll = hash01(self.seed ^ 0x5DEECE66D, tile_id * 17 + 11)
        return SurfaceType.DESERT_SAND if roll < 0.20 else SurfaceType.DESERT_ROCKY

    def apply(self, tiles: List[Tile], planet: PlanetConfig) -> int:
        """
        Classify land biomes in place.

        Returns:
            Number of classified tiles
        """
        liquid_water = has_liquid_water(tiles)
        has_life = planet.has_surface_life

        elevations = sorted(t.elevation for t in tiles if t.surface_type not in _ELEVATION_EXCLUDED)
        p70 = percentile_sorted(elevations, 0.70)
        p85 = percentile_sorted(elevations, 0.85)
        min_elev = elevations[0] if elevations else 0
        max_elev = elevations[-1] if elevations else 1

        land = [t for t in tiles if t.surface_type not in _WATER_LIKE]
        balance = sorted(_flux(t, Quantity.PRECIP_FLUX) - _flux(t, Quantity.EVAP_FLUX) for t in land)
        soils = sorted(t.moisture or 0.0 for t in land)
        pe_range = (percentile_sorted(balance, 0.10), percentile_sorted(balance, 0.90))
        soil_range = (percentile_sorted(soils, 0.10), percentile_sorted(soils, 0.90))

        classified = 0
        for t in tiles:
            t.biome_regime = BiomeRegime.UNKNOWN
            t.biome_modifier_mask = BiomeModifier.NONE
            t.biome_preferred_season = None
            if t.surface_type in _FIXED or (not self.physical and t.surface_type in _SWAMPS):
                continue

            slope = max_slope(t, tiles)
            mountain = t.surface_type in _MOUNTAIN_SURFACES or (t.elevation >= p85 and slope >= 4)
            hill = t.surface_type in _HILL_SURFACES or (not mountain and t.elevation >= p70 and slope >= 2)
            relief = MOUNTAIN if mountain else (HILL if hill else LOWLAND)
            elev_norm = (t.elevation - min_elev) / (max_elev - min_elev) if max_elev > min_elev else 0.0

            t.surface_type = self._classify(
                t, tiles, planet, relief, elev_norm, pe_range, soil_range, liquid_water, has_life
            )
            classified += 1

        # River tiles one step greener
        for t in tiles:
            if not t.is_river and t.river_discharge_kg_s <= 0.0:
                continue
            if t.surface_type in _WATER_LIKE:
                continue
            if has_life and self._thermal_peak(t) > life_temperature_limit(t, planet):
                continue
            t.surface_type = greener_by_one_step(t.surface_type)
        return classified

    @staticmethod
    def _thermal_peak(t: Tile) -> float:
        return max(resolve(t, Quantity.TEMPERATURE, season) for season in Season)

    def _seasons(self, t: Tile) -> List[SeasonChoice]:
        choices = []
        for season in (Season.INTERSEASON, Season.WARM, Season.COLD):
            precip = resolve(t, Quantity.PRECIP, season) / INDEX_PER_KG
            evap = resolve(t, Quantity.EVAP, season) / INDEX_PER_KG
            choices.append(SeasonChoice(
                season,
                resolve(t, Quantity.TEMPERATURE, season),
                precip,
                evap,
                resolve(t, Quantity.SOIL_MOISTURE, season),
                aridity_index(precip, evap),
            ))
        return choices

    def _classify(self, t, tiles, planet, relief, elev_norm, pe_range, soil_range,
                  liquid_water, has_life) -> SurfaceType:
        inter, warm, cold = self._seasons(t)
        favored = pick_favorable_season([inter, warm, cold], self.favor)
        t.biome_preferred_season = favored.season

        precip_ann = _flux(t, Quantity.PRECIP_FLUX)
        evap_ann = _flux(t, Quantity.EVAP_FLUX)
        ai_ann = aridity_index(precip_ann, evap_ann)
        monsoon = abs(warm.precip - cold.precip) / (warm.precip + cold.precip + 1.0)
        temp_range = max(0.0, warm.temp - cold.temp)

        temp_adj = favored.temp - elev_norm * 12.0
        temp_warm = warm.temp - elev_norm * 10.0
        temp_cold = cold.temp - elev_norm * 10.0
        temp_inter = inter.temp - elev_norm * 10.0

        pe_fav = favored.precip - favored.evap
        if self.physical:
            pe_norm = _normalize(pe_fav, -1.0, 8.0)
            soil_norm = _normalize(favored.moisture, 0.0, 100.0)
        else:
            pe_norm = _normalize(pe_fav, *pe_range)
            soil_norm = _normalize(favored.moisture, *soil_range)
        moist_adj = ((pe_norm * 0.45 + soil_norm * 0.55) - 0.45) * 32.0 - elev_norm * 6.0

        mask = BiomeModifier.NONE
        coastal = any(tiles[n].surface_type in _WATER_LIKE for n in t.neighbors)
        if coastal:
            moist_adj += 4.5
            mask |= BiomeModifier.COASTAL_BUFFERED
        river_fed = _river_fed(t)
        if river_fed:
            moist_adj += 5.0
            mask |= BiomeModifier.RIVER_FED

        t.biome_regime = classify_regime(temp_warm, temp_cold, ai_ann, warm.ai, cold.ai, monsoon)
        mask |= climate_modifiers(temp_range, temp_warm, temp_cold, monsoon, warm.ai, cold.ai)
        t.biome_modifier_mask = mask

        noise = self.jitter(t.id)
        temp_adj += noise * 1.2
        temp_inter += noise * 1.2
        temp_warm += noise * 1.2
        moist_adj += noise * 2.0
        if not liquid_water:
            moist_adj = min(moist_adj, 35.0)

        if pe_fav < -0.2:
            if favored.ai < 0.50:
                moist_adj -= 6.0
            elif favored.ai < 0.70:
                moist_adj -= 3.0

        # Hard winters cap how green a seasonal climate can get
        winter = 0.0
        if temp_range >= 30.0:
            winter += 2.0
        if temp_cold <= -15.0:
            winter += 3.0
        if temp_cold <= -25.0:
            winter += 3.0
        if cold.ai < 0.55:
            winter += 1.5
        temp_adj -= winter * 0.35
        moist_adj -= winter
        if monsoon > 0.45 and warm.ai > 0.9:
            moist_adj += 2.0
        if monsoon > 0.45 and cold.ai < 0.5:
            moist_adj -= 1.5

        hot_and_dry = favored.ai < 1.0 or favored.moisture < 45.0 or pe_fav < 0.0
        if max(temp_warm, temp_inter, temp_adj) > 50.0 and hot_and_dry:
            return _desert_for(relief, SurfaceType.DESERT_ROCKY)

        if self._hyper_arid(t, inter, warm, cold):
            if relief != LOWLAND:
                return _desert_for(relief, SurfaceType.DESERT_ROCKY)
            return SurfaceType.COLD_DESERT if temp_adj <= 10.0 else self.lowland_desert(t.id)

        if not has_life:
            return abiotic_biome(temp_adj, moist_adj, relief)

        thermal_peak = max(warm.temp, inter.temp, float(t.temperature), cold.temp)
        if thermal_peak > life_temperature_limit(t, planet):
            t.biome_modifier_mask |= BiomeModifier.HEAT_STRESS
            return abiotic_biome(temp_adj, moist_adj, relief)

        features = BiomeFeatures(
            temp=temp_adj,
            precip=favored.precip,
            soil=favored.moisture,
            ai=favored.ai,
            temp_warm=temp_warm,
            temp_cold=temp_cold,
            monsoon=monsoon,
            river_fed=river_fed,
            coastal=coastal,
        )
        selected = select_by_profiles(relief, features)
        if selected == SurfaceType.DESERT_ROCKY and relief == LOWLAND:
            return self.lowland_desert(t.id)
        if selected is not None:
            return selected

        if relief == HILL:
            return hill_biome(temp_adj, moist_adj)
        if relief == MOUNTAIN:
            return mountain_biome(temp_adj, moist_adj)
        return lowland_biome(temp_adj, moist_adj)

    @staticmethod
    def _hyper_arid(t: Tile, inter: SeasonChoice, warm: SeasonChoice, cold: SeasonChoice) -> bool:
        """No meaningful rain in any season and soil dry even at its best."""
        p_max = max(
            resolve(t, Quantity.PRECIP_FLUX, season) for season in (Season.WARM, Season.INTERSEASON, Season.COLD)
        )
        soil_max = max(inter.moisture, warm.moisture, cold.moisture)
        if p_max < 0.15 and soil_max < 4.0:
            return True
        return p_max < 0.05 and inter.moisture < 6.0 and soil_max < 6.5


def _flux(t: Tile, quantity: Quantity) -> float:
    return resolve(t, quantity, Season.INTERSEASON)


def _normalize(value: float, low: float, high: float) -> float:
    if high <= low + 1e-9:
        return 0.5
    return _clamp((value - low) / (high - low), 0.0, 1.0)


class BiomeStage(GenerationStage):
    """Dries out swamps on worlds without liquid water, then classifies biomes."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.BIOMES,
            name="Biomes",
            description="Seasonal biome classification",
            requires=[StageId.NEIGHBORS, StageId.WATER_CLASSIFY],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        dried = dry_out_wetlands(context.tiles, (SurfaceType.SWAMP, SurfaceType.MUD_SWAMP))
        if dried:
            logger.debug("Biomes: no liquid water, %d swamps dried to basins", len(dried))

        classifier = BiomeClassifier(context.settings.seed, context.settings.climate_model_mode)
        count = classifier.apply(context.tiles, context.planet)
        logger.debug("Biomes: %d tiles classified", count)
