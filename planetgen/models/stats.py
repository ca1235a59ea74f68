"""
Planet Generator - World Statistics
Aggregate diagnostics computed after a pipeline run.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from planetgen.config import ResourceType, SurfaceType
from planetgen.models.tile import Tile

WATER_DISTANCE_BUCKETS = 7  # 0..5 and 6+


@dataclass
class FieldRange:
    """Min/max/mean of one scalar field; None when no tile had a value."""
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    mean: Optional[float] = None

    @classmethod
    def of(cls, values: List[Optional[float]]) -> "FieldRange":
        present = np.array([v for v in values if v is not None], dtype=float)
        if present.size == 0:
            return cls()
        return cls(float(present.min()), float(present.max()), float(present.mean()))

    def format(self, digits: int = 1) -> str:
        if self.mean is None:
            return "n/a"
        return f"{self.minimum:.{digits}f} .. {self.maximum:.{digits}f} (avg {self.mean:.{digits}f})"

    @property
    def is_constant(self) -> bool:
        return self.mean is not None and self.minimum == self.maximum


@dataclass
class WorldStats:
    """Summary of a generated surface."""
    tile_count: int = 0
    elevation: FieldRange = field(default_factory=FieldRange)
    temperature: FieldRange = field(default_factory=FieldRange)
    pressure: FieldRange = field(default_factory=FieldRange)
    precipitation: FieldRange = field(default_factory=FieldRange)
    evaporation: FieldRange = field(default_factory=FieldRange)
    atm_moisture: FieldRange = field(default_factory=FieldRange)
    wind: FieldRange = field(default_factory=FieldRange)
    surface_counts: Dict[SurfaceType, int] = field(default_factory=dict)
    pentagon_count: int = 0
    hexagon_count: int = 0
    river_count: int = 0
    water_distance_count: List[int] = field(default_factory=lambda: [0] * WATER_DISTANCE_BUCKETS)
    water_distance_precip: List[float] = field(default_factory=lambda: [0.0] * WATER_DISTANCE_BUCKETS)
    resources: List["ResourceTotals"] = field(default_factory=list)

    @classmethod
    def compute(cls, tiles: List[Tile]) -> "WorldStats":
        """
        Compute statistics over a tile collection.

        Args:
            tiles: Tiles with ids equal to their positions

        Returns:
            Populated WorldStats
        """
        stats = cls(tile_count=len(tiles))
        stats.elevation = FieldRange.of([t.elevation for t in tiles])
        stats.temperature = FieldRange.of([t.temperature if t.has_climate else None for t in tiles])
        stats.pressure = FieldRange.of([t.pressure for t in tiles])
        stats.precipitation = FieldRange.of([t.precip_avg for t in tiles])
        stats.evaporation = FieldRange.of([t.evap_avg for t in tiles])
        stats.atm_moisture = FieldRange.of([t.atm_moist for t in tiles])
        stats.wind = FieldRange.of([t.wind_magnitude for t in tiles])

        stats.surface_counts = dict(Counter(t.surface_type for t in tiles))
        stats.pentagon_count = sum(1 for t in tiles if len(t.neighbors) == 5)
        stats.hexagon_count = sum(1 for t in tiles if len(t.neighbors) == 6)
        stats.river_count = sum(1 for t in tiles if t.is_river)

        precip_sum = [0.0] * WATER_DISTANCE_BUCKETS
        for tile, distance in zip(tiles, distance_to_water(tiles)):
            bucket = min(distance, WATER_DISTANCE_BUCKETS - 1)
            stats.water_distance_count[bucket] += 1
            precip_sum[bucket] += tile.precip_avg or 0.0
        stats.water_distance_precip = [
            precip_sum[i] / stats.water_distance_count[i] if stats.water_distance_count[i] else 0.0
            for i in range(WATER_DISTANCE_BUCKETS)
        ]
        stats.resources = resource_summary(tiles)
        return stats

    def top_surfaces(self, limit: int = 8) -> List[Tuple[SurfaceType, int]]:
        return sorted(self.surface_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]

    def summary_lines(self) -> List[str]:
        """Human-readable summary block."""
        lines = [
            f"Tiles:         {self.tile_count} ({self.pentagon_count} pentagons, {self.hexagon_count} hexagons)",
            f"Elevation:     {self.elevation.format(0)}",
            f"Temperature:   {self.temperature.format(1)} °C",
            f"Pressure:      {self.pressure.format(0)}",
            f"Precipitation: {self.precipitation.format(1)}",
            f"Evaporation:   {self.evaporation.format(1)}",
            f"Atm moisture:  {self.atm_moisture.format(1)}",
            f"Wind:          {self.wind.format(2)} m/s",
            f"River tiles:   {self.river_count}",
            "Surfaces:",
        ]
        for surface, count in self.top_surfaces():
            share = 100.0 * count / max(1, self.tile_count)
            lines.append(f"  {surface.name:24s} {count:6d} ({share:5.1f}%)")
        lines.append("Precipitation by distance to water:")
        for bucket, count in enumerate(self.water_distance_count):
            label = f"{bucket}+" if bucket == WATER_DISTANCE_BUCKETS - 1 else str(bucket)
            lines.append(f"  {label:>3s}: {count:6d} tiles, avg {self.water_distance_precip[bucket]:.1f}")
        lines.extend(self.resource_lines())
        return lines

    def resource_lines(self) -> List[str]:
        """Tonnage block, one line per resource type with reserves."""
        if not self.resources:
            return ["Resources:     none"]
        lines = ["Resources (tonnes):"]
        for r in self.resources:
            lines.append(
                f"  {r.resource.name:16s} {r.entries:5d} deposits on {r.tiles:5d} tiles, "
                f"total {r.total:.3e}, min {r.minimum:.3e}, p50 {r.p50:.3e}, "
                f"p95 {r.p95:.3e}, max {r.maximum:.3e}"
            )
        return lines


def distance_to_water(tiles: List[Tile]) -> List[int]:
    """
    Breadth-first hop count from every tile to the nearest liquid water tile.
    Tiles unreachable from water get a large distance.
    """
    far = len(tiles) + 1
    distance = [far] * len(tiles)
    queue = deque()
    for t in tiles:
        if t.is_liquid_water:
            distance[t.id] = 0
            queue.append(t.id)
    while queue:
        current = queue.popleft()
        for n in tiles[current].neighbors:
            if distance[n] > distance[current] + 1:
                distance[n] = distance[current] + 1
                queue.append(n)
    return distance


@dataclass
class ResourceTotals:
    """Reserve statistics for one resource type."""
    resource: ResourceType
    entries: int
    tiles: int
    total: float
    minimum: float
    p50: float
    p95: float
    maximum: float


def resource_summary(tiles: List[Tile]) -> List[ResourceTotals]:
    """
    Per-type deposit counts and tonnage distribution.

    Deposits without a positive finite tonnage are left out. Types are
    listed in id order; types with no counted deposit are omitted.
    """
    tonnes: Dict[ResourceType, List[float]] = {}
    tile_ids: Dict[ResourceType, set] = {}
    for t in tiles:
        for r in t.resources:
            if not (np.isfinite(r.tonnes) and r.tonnes > 0.0):
                continue
            tonnes.setdefault(r.type, []).append(r.tonnes)
            tile_ids.setdefault(r.type, set()).add(t.id)

    totals = []
    for resource in sorted(tonnes):
        values = np.array(tonnes[resource], dtype=np.float64)
        p50, p95 = np.percentile(values, [50, 95])
        totals.append(ResourceTotals(
            resource=resource,
            entries=len(values),
            tiles=len(tile_ids[resource]),
            total=float(values.sum()),
            minimum=float(values.min()),
            p50=float(p50),
            p95=float(p95),
            maximum=float(values.max()),
        ))
    return totals
