"""
Planet Generator - Stage: Rivers
Routes rivers from wet high ground to the nearest water and accumulates
discharge along the way.

RIVER MODEL:
1. Every land tile gets a potential flow from its wetness (soil moisture,
   precipitation, humidity, slope) and its surface runoff
2. The top fraction of elevated tiles by potential flow become sources
3. Each source walks downhill toward the closest water, preferring steps
   that do not increase the distance to water and tolerating small climbs
   (carving); a path ends on water or on an existing channel
4. Discharge is accumulated in topological order, exchanging water with the
   soil on the way
5. Channel tiles get an order (Strahler-like, from discharge) and a base type

Rivers need an atmosphere, a non-DRY world and some liquid water on the
surface. Wet land with no outlet becomes swamp.
"""

import logging
import math
from collections import deque
from typing import List, Optional, Sequence, Set

import numpy as np

from planetgen.config import (
    DAY_SECONDS,
    LAKE_TYPES,
    RIVER_SEED_OFFSET,
    SEA_TYPES,
    PlanetConfig,
    RiverBaseType,
    StageId,
    SurfaceType,
    WATER_SURFACE_TYPES,
    WaterCoverage,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.stages.climate import run_wind_and_sample
from planetgen.generation.stages.water_classify import boiling_point_c
from planetgen.models.tile import Tile, has_liquid_water
from planetgen.models.world import WorldContext

logger = logging.getLogger(__name__)

FALLBACK_TILE_AREA_M2 = 9.35e9
SOIL_INDEX_PER_KG_M2 = 1.8
ROUTE_FLUX_SCALE = 1.4e-4  # kg/s per m² of wet catchment
RIVER_START_KG_S = 480_000.0
SOURCE_TOP_POTENTIAL_FLOW_FRACTION = 0.20
SOURCE_MIN_ELEVATION = 2
MAX_CARVE_UPHILL = 2
PLATEAU_DEVIATION_PROB = 0.40
DELTA_MIN_KG_S = 2_500_000.0
SWAMP_WETNESS = 0.78
FAR = 1_000_000

_SEA = SEA_TYPES | {SurfaceType.LAVA_OCEAN}
_FROZEN_LAND = frozenset({SurfaceType.ICE, SurfaceType.ICE_SHEET, SurfaceType.GLACIER})
_SWAMPS = frozenset({SurfaceType.SWAMP, SurfaceType.MUD_SWAMP, SurfaceType.BASIN_SWAMP})
_DESERTS = frozenset({SurfaceType.DESERT_SAND, SurfaceType.DESERT_ROCKY, SurfaceType.ROCKY_DESERT})
_VALLEY_TERRAIN = frozenset({
    SurfaceType.HILLS,
    SurfaceType.HILLS_GRASS,
    SurfaceType.HILLS_FOREST,
    SurfaceType.HILLS_RAINFOREST,
    SurfaceType.HIGHLANDS,
    SurfaceType.PLATEAU,
    SurfaceType.BASIN_FLOOR,
})

# Legacy numeric river type per base type
_LEGACY_TYPE = {
    RiverBaseType.DELTA: 6,
    RiverBaseType.WATERFALL: 5,
    RiverBaseType.CANYON: 4,
    RiverBaseType.VALLEY: 3,
    RiverBaseType.VERY_LARGE_RIVER: 2,
    RiverBaseType.LARGE_RIVER: 2,
    RiverBaseType.MEDIUM_RIVER: 2,
    RiverBaseType.SMALL_RIVER: 1,
    RiverBaseType.SOURCE: 1,
}


def _is_water(surface_type: SurfaceType) -> bool:
    return surface_type in WATER_SURFACE_TYPES


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _or(value: Optional[float], default: float) -> float:
    return default if value is None else value


# =============================================================================
# HELPERS
# =============================================================================

def tile_area_m2(tile_count: int, planet: PlanetConfig) -> float:
    """Mean tile area from the planet radius."""
    if planet.radius_km > 10.0 and tile_count > 0:
        r = planet.radius_km * 1000.0
        return 4.0 * math.pi * r * r / tile_count
    return FALLBACK_TILE_AREA_M2


def water_distance(tiles: List[Tile]) -> List[int]:
    """Neighbor hops to the nearest water tile (FAR when unreachable)."""
    dist = [FAR] * len(tiles)
    queue = deque()
    for t in tiles:
        if _is_water(t.surface_type):
            dist[t.id] = 0
            queue.append(t.id)
    while queue:
        current = queue.popleft()
        for n in tiles[current].neighbors:
            if dist[current] + 1 < dist[n]:
                dist[n] = dist[current] + 1
                queue.append(n)
    return dist


def max_slope(t: Tile, tiles: List[Tile]) -> int:
    return max((abs(t.elevation - tiles[n].elevation) for n in t.neighbors), default=0)


def wetness_index(t: Tile, tiles: List[Tile]) -> float:
    """How readily a tile feeds surface water, 0.05..1.15."""
    moist = _clamp(_or(t.moisture, 35.0) / 100.0, 0.0, 1.0)
    precip = t.precip_kg_m2_day if _valid_flux(t.precip_kg_m2_day) else _or(t.precip_avg, 0.0)
    precip_norm = _clamp(precip / 28.0, 0.0, 1.0)
    atm = _clamp(_or(t.atm_moist, 0.0) / 28.0, 0.0, 1.0)
    slope_penalty = _clamp(max_slope(t, tiles) / 25.0, 0.0, 0.45)
    wet = 0.16 + moist * 0.56 + precip_norm * 0.20 + atm * 0.10 - slope_penalty * 0.12
    if t.surface_type in LAKE_TYPES:
        wet += 0.10
    return _clamp(wet, 0.05, 1.15)


def can_sustain_liquid(t: Tile, planet: PlanetConfig) -> bool:
    """Whether the warmest known temperature stays below boiling."""
    pressure_bar = max(0.05, planet.atmosphere_density, max(0, t.pressure) / 1000.0)
    warmest = next(
        (v for v in (t.temp_max_interseason, t.temp_max, t.temp_warm, t.biome_temp_warm) if v is not None),
        t.temperature,
    )
    return warmest <= boiling_point_c(pressure_bar) + 1.5


def river_order(discharge_kg_s: float) -> int:
    """
    Order 0..5 from discharge; 0 below the river threshold.

    The threshold sits above the order-1 band, so a counted river starts
    at order 2.
    """
    if discharge_kg_s < RIVER_START_KG_S:
        return 0
    if discharge_kg_s < 600_000.0:
        return 2
    if discharge_kg_s < 1_500_000.0:
        return 3
    if discharge_kg_s < 3_500_000.0:
        return 4
    return 5


def size_base_type(discharge_kg_s: float) -> RiverBaseType:
    if discharge_kg_s < 250_000.0:
        return RiverBaseType.SMALL_RIVER
    if discharge_kg_s < 900_000.0:
        return RiverBaseType.MEDIUM_RIVER
    if discharge_kg_s < DELTA_MIN_KG_S:
        return RiverBaseType.LARGE_RIVER
    return RiverBaseType.VERY_LARGE_RIVER


def classify_base_type(t: Tile, tiles: List[Tile], downstream: int, discharge: float) -> RiverBaseType:
    big = t.river_order >= 3
    if downstream >= 0:
        below = tiles[downstream]
        if below.surface_type in _SEA and discharge >= DELTA_MIN_KG_S:
            return RiverBaseType.DELTA
        if t.elevation - below.elevation >= 5 and discharge >= RIVER_START_KG_S * 1.5:
            return RiverBaseType.WATERFALL
    if t.canyon_depth >= 2 and big:
        return RiverBaseType.CANYON
    if t.surface_type in _VALLEY_TERRAIN and big:
        return RiverBaseType.VALLEY
    if not t.river_from:
        return RiverBaseType.SOURCE
    return size_base_type(discharge)


def reset_river_state(tiles: List[Tile]) -> None:
    for t in tiles:
        t.river_flow = 0.0
        t.river_order = 0
        t.is_river = False
        t.canyon_depth = 0
        t.river_type = 0
        t.river_to = -1
        t.river_from = []
        t.river_base_type = RiverBaseType.NONE
        t.river_discharge_kg_s = 0.0


def _valid_flux(value: Optional[float]) -> bool:
    return value is not None and 0.0 <= value <= 20_000.0


# =============================================================================
# GENERATOR
# =============================================================================

class RiverGenerator:
    """
    Source selection, routing and discharge accumulation.

    Args:
        seed: Run seed; route deviations draw from seed + RIVER_SEED_OFFSET
    """

    def __init__(self, seed: int):
        self.rng = np.random.default_rng(seed + RIVER_SEED_OFFSET)

    def generate(self, tiles: List[Tile], planet: PlanetConfig) -> int:
        """
        Route rivers over the tiles in place.

        Returns:
            Number of river tiles
        """
        reset_river_state(tiles)
        if not planet.has_atmosphere or planet.water_coverage == WaterCoverage.DRY:
            return 0
        if not has_liquid_water(tiles):
            return 0

        n = len(tiles)
        area = tile_area_m2(n, planet)
        wetness = [wetness_index(t, tiles) for t in tiles]
        blocked = [False] * n
        base_flow = [0.0] * n
        runoff_flow = [0.0] * n

        for t in tiles:
            if t.surface_type in _SEA or t.surface_type in _FROZEN_LAND:
                continue
            if not _is_water(t.surface_type) and not can_sustain_liquid(t, planet):
                blocked[t.id] = True
                continue
            runoff = t.surface_runoff_kg_m2_day if _valid_flux(t.surface_runoff_kg_m2_day) else 0.0
            runoff_flow[t.id] = runoff * area / DAY_SECONDS
            base_flow[t.id] = area * wetness[t.id] * ROUTE_FLUX_SCALE + runoff_flow[t.id]

        sources = self._pick_sources(tiles, base_flow, blocked)
        source_set = set(sources)
        dist = water_distance(tiles)

        downstream = [-1] * n
        channel = [False] * n
        canyon = [0] * n
        routed = 0
        for src in sources:
            if self._trace(src, tiles, dist, source_set, blocked, channel, downstream, canyon):
                routed += 1
        logger.debug("River routing: %d/%d sources reached water", routed, len(sources))

        upstream = [[] for _ in range(n)]
        for i in range(n):
            dn = downstream[i]
            if channel[i] and dn >= 0 and channel[dn]:
                upstream[dn].append(i)

        discharge = self._accumulate(tiles, channel, downstream, upstream, source_set, base_flow, runoff_flow, area)

        max_land_q = max(
            (discharge[i] for i in range(n)
             if channel[i] and not _is_water(tiles[i].surface_type) and tiles[i].surface_type not in _FROZEN_LAND),
            default=0.0,
        )
        if max_land_q <= 1e-9:
            max_land_q = 1.0

        for t in tiles:
            i = t.id
            t.canyon_depth += canyon[i]
            if not channel[i]:
                continue
            t.is_river = True
            t.river_to = downstream[i]
            t.river_from = list(upstream[i])
            t.river_discharge_kg_s = discharge[i]
            t.river_flow = _clamp(discharge[i] / max_land_q, 0.0, 1.0)
            t.river_order = river_order(max(discharge[i], base_flow[i] if i in source_set else 0.0))
            t.river_base_type = classify_base_type(t, tiles, downstream[i], discharge[i])
            t.river_type = _LEGACY_TYPE.get(t.river_base_type, 1 if t.river_order > 0 else 0)

        self._swamp_closed_basins(tiles, wetness, downstream, dist, blocked)
        return sum(channel)

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def _pick_sources(self, tiles: List[Tile], base_flow: List[float], blocked: List[bool]) -> List[int]:
        """Elevated land in the top potential-flow fraction, highest first."""
        eligible = [
            t.id for t in tiles
            if not _is_water(t.surface_type)
            and t.surface_type not in _FROZEN_LAND
            and not blocked[t.id]
            and t.elevation >= SOURCE_MIN_ELEVATION
        ]
        if not eligible:
            return []
        values = sorted(base_flow[i] for i in eligible)
        start = int(math.floor((1.0 - SOURCE_TOP_POTENTIAL_FLOW_FRACTION) * (len(values) - 1)))
        cutoff = values[max(0, min(len(values) - 1, start))]
        sources = [i for i in eligible if base_flow[i] >= cutoff]
        sources.sort(key=lambda i: (tiles[i].elevation, base_flow[i], i), reverse=True)
        return sources

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def _trace(
        self,
        source: int,
        tiles: List[Tile],
        dist: List[int],
        sources: Set[int],
        blocked: List[bool],
        channel: List[bool],
        downstream: List[int],
        canyon: List[int],
    ) -> bool:
        """Depth-first walk from a source to water or an existing channel."""
        n = len(tiles)
        path = [source]
        on_path = {source}
        tried = {}
        reached = False
        guard = 0

        while path and guard < n * 4:
            guard += 1
            current = path[-1]
            t = tiles[current]
            if _is_water(t.surface_type) or (channel[current] and current != source):
                reached = True
                break
            if t.surface_type in _FROZEN_LAND:
                return False

            seen = tried.setdefault(current, set())
            nxt = self._next_step(t, tiles, dist, source, sources, blocked, on_path, seen)
            if nxt < 0:
                on_path.discard(current)
                path.pop()
                continue
            seen.add(nxt)
            path.append(nxt)
            on_path.add(nxt)
            if not _is_water(tiles[nxt].surface_type) and channel[nxt]:
                reached = True
                break

        if not reached or len(path) < 2:
            return False

        for frm, to in zip(path, path[1:]):
            downstream[frm] = to
            channel[frm] = True
            if tiles[to].elevation > tiles[frm].elevation:
                canyon[frm] += 1
            if _is_water(tiles[to].surface_type) or (channel[to] and to != source):
                break
        return True

    def _next_step(
        self,
        t: Tile,
        tiles: List[Tile],
        dist: List[int],
        source: int,
        sources: Set[int],
        blocked: List[bool],
        on_path: Set[int],
        tried: Set[int],
    ) -> int:
        lower, equal, higher = [], [], []
        for j in t.neighbors:
            if j in tried or j in on_path:
                continue
            nb = tiles[j]
            if not _is_water(nb.surface_type):
                if (j in sources and j != source) or blocked[j] or nb.surface_type in _FROZEN_LAND:
                    continue
            if nb.elevation < t.elevation:
                lower.append(j)
            elif nb.elevation == t.elevation:
                equal.append(j)
            elif nb.elevation - t.elevation <= MAX_CARVE_UPHILL:
                higher.append(j)

        def order(j):
            return (dist[j], tiles[j].elevation, j)

        groups = [sorted(g, key=order) for g in (lower, equal, higher)]
        # Non-worsening steps first; moving away from water only as a last resort
        for no_worse in (True, False):
            for group in groups:
                pick = self._pick_near_best(group, dist, dist[t.id], no_worse)
                if pick >= 0:
                    return pick
        return -1

    def _pick_near_best(self, ranked: Sequence[int], dist: List[int], current_dist: int, no_worse: bool) -> int:
        """Usually the best candidate, sometimes another within 150% of its distance."""
        band = []
        nearest = None
        for j in ranked:
            if no_worse and dist[j] > current_dist:
                continue
            if nearest is None:
                nearest = dist[j]
            if dist[j] > nearest + round(nearest * 1.5):
                break
            band.append(j)
            if len(band) >= 5:
                break
        if not band:
            return -1
        if len(band) == 1 or self.rng.random() >= PLATEAU_DEVIATION_PROB:
            return band[0]
        return band[int(self.rng.integers(len(band)))]

    # -------------------------------------------------------------------------
    # Discharge
    # -------------------------------------------------------------------------

    def _accumulate(
        self,
        tiles: List[Tile],
        channel: List[bool],
        downstream: List[int],
        upstream: List[List[int]],
        sources: Set[int],
        base_flow: List[float],
        runoff_flow: List[float],
        area: float,
    ) -> List[float]:
        """Discharge per channel tile, upstream before downstream."""
        n = len(tiles)
        indegree = [len(up) for up in upstream]
        inflow = [0.0] * n
        discharge = [0.0] * n
        processed = [False] * n

        def process(i: int) -> None:
            processed[i] = True
            q_in = (base_flow[i] if i in sources else 0.0) + inflow[i] + runoff_flow[i]
            exchange = _soil_exchange(tiles[i], q_in, base_flow[i])
            _apply_exchange(tiles[i], exchange, area)
            discharge[i] = max(0.0, q_in + exchange)
            dn = downstream[i]
            if dn >= 0 and channel[dn]:
                inflow[dn] += discharge[i]
                indegree[dn] = max(0, indegree[dn] - 1)
                if indegree[dn] == 0:
                    queue.append(dn)

        queue = deque(i for i in range(n) if channel[i] and indegree[i] == 0)
        while queue:
            i = queue.popleft()
            if not processed[i]:
                process(i)

        # Route cycles are rare; their tiles are processed once in id order
        cycles = 0
        for i in range(n):
            if channel[i] and not processed[i]:
                cycles += 1
                process(i)
        if cycles:
            logger.debug("River discharge: %d tiles on route cycles", cycles)
        return discharge

    def _swamp_closed_basins(
        self,
        tiles: List[Tile],
        wetness: List[float],
        downstream: List[int],
        dist: List[int],
        blocked: List[bool],
    ) -> None:
        """Very wet land with no outlet or no river nearby becomes swamp."""
        for t in tiles:
            if _is_water(t.surface_type) or t.surface_type in _FROZEN_LAND or t.is_river:
                continue
            has_outlet = downstream[t.id] >= 0 and dist[t.id] < FAR
            near_river = any(tiles[n].is_river for n in t.neighbors)
            if wetness[t.id] > SWAMP_WETNESS and (not has_outlet or not near_river) and not blocked[t.id]:
                t.surface_type = SurfaceType.MUD_SWAMP if t.temperature > 100 else SurfaceType.SWAMP


def _soil_exchange(t: Tile, q_in: float, base_flow: float) -> float:
    """Water the river gains from (positive) or loses to (negative) the soil, kg/s."""
    if _is_water(t.surface_type) or t.surface_type in _FROZEN_LAND:
        return 0.0
    soil = _clamp(_or(t.moisture, 35.0), 0.0, 100.0)
    surplus = _clamp((soil - 55.0) / 45.0, 0.0, 1.0)
    deficit = _clamp((40.0 - soil) / 40.0, 0.0, 1.0)
    gain = (0.58 * base_flow + 0.12 * q_in) * surplus
    loss = (0.12 * q_in + 0.05 * base_flow) * deficit
    if t.surface_type in _SWAMPS:
        gain *= 1.18
        loss *= 0.75
    elif t.surface_type in _DESERTS:
        gain *= 0.60
        loss *= 1.25
    return _clamp(gain - loss, -q_in * 0.45, max(base_flow * 1.15, q_in * 0.55))


def _apply_exchange(t: Tile, exchange_kg_s: float, area: float) -> None:
    if _is_water(t.surface_type) or t.surface_type in _FROZEN_LAND or area <= 1e-9:
        return
    kg_m2_day = exchange_kg_s * DAY_SECONDS / area
    delta = _clamp(-kg_m2_day * SOIL_INDEX_PER_KG_M2, -18.0, 18.0)
    t.moisture = _clamp(_or(t.moisture, 40.0) + delta, 0.0, 100.0)


class RiverStage(GenerationStage):
    """Rivers, then wind and climate summary again over the new soil moisture."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.RIVERS,
            name="Rivers",
            description="River sources, routing, discharge and types",
            requires=[StageId.NEIGHBORS, StageId.WATER_CLASSIFY],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        count = RiverGenerator(context.settings.seed).generate(context.tiles, context.planet)
        run_wind_and_sample(context)
        logger.debug("Rivers: %d river tiles", count)
