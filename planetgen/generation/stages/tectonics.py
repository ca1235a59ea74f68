"""
Planet Generator - Stages: Tectonics
Plate layout, boundary stress, orogenesis, mountain ranges and volcanism.

Every stage past PLATES reads ``plate_id`` on tiles and the plate list on the
context, and fails with PreconditionError when the plates are missing.
"""

import logging
from typing import List

import numpy as np

from planetgen.config import (
    MOUNTAINS_SEED_OFFSET,
    PLATES_SEED_OFFSET,
    VOLCANO_SEED_OFFSET,
    StageId,
    SurfaceType,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.tile import Tile
from planetgen.models.world import TectonicPlate, WorldContext

logger = logging.getLogger(__name__)

CONTINENTAL_CHANCE = 0.4

# Boundary stress by relative drift
CONVERGENT_STRESS = 80
DIVERGENT_STRESS = 40
TRANSFORM_STRESS = 60
DRIFT_DOT_THRESHOLD = 0.3

OROGENY_MIN_STRESS = 30
MOUNTAIN_HEIGHT_LIMIT = 220


# =============================================================================
# ALGORITHMS
# =============================================================================

def generate_plates(tiles: List[Tile], adjacency: List[List[int]], plate_count: int,
                    rng: np.random.Generator) -> List[TectonicPlate]:
    """
    Assign every tile to a plate.

    Plate seeds are the first ``plate_count`` tiles of a shuffled order;
    plates then grow by multi-source flood fill over ``adjacency``. Tiles no
    flood reaches (disconnected meshes) join a random plate.

    Returns:
        Plates indexed by plate id
    """
    plate_count = max(1, min(plate_count, len(tiles)))
    order = rng.permutation(len(tiles))
    plates = []
    for i in range(plate_count):
        continental = bool(rng.random() < CONTINENTAL_CHANCE)
        drift_x = float(rng.random() * 2.0 - 1.0)
        drift_y = float(rng.random() * 2.0 - 1.0)
        plates.append(TectonicPlate(
            plate_id=i,
            continental=continental,
            drift_x=drift_x,
            drift_y=drift_y,
            seed_tile=int(order[i]),
        ))

    assignment = [-1] * len(tiles)
    for plate in plates:
        assignment[plate.seed_tile] = plate.plate_id

    changed = True
    while changed:
        changed = False
        for i in range(len(tiles)):
            if assignment[i] >= 0:
                continue
            for n in adjacency[i]:
                if assignment[n] >= 0:
                    assignment[i] = assignment[n]
                    changed = True
                    break

    orphans = 0
    for i, t in enumerate(tiles):
        if assignment[i] < 0:
            assignment[i] = int(rng.integers(plate_count))
            orphans += 1
        t.plate_id = assignment[i]
        t.plate_type = 1 if plates[assignment[i]].continental else 0

    if orphans:
        logger.warning("%d tiles were unreachable from any plate seed", orphans)
    return plates


def is_plate_boundary(tile: Tile, tiles: List[Tile]) -> bool:
    return any(tiles[n].plate_id != tile.plate_id for n in tile.neighbors)


def compute_stress(tiles: List[Tile], plates: List[TectonicPlate]) -> None:
    """Boundary stress from relative plate drift, the strongest contact wins."""
    for t in tiles:
        t.tectonic_stress = 0
        mine = plates[t.plate_id]
        for n in t.neighbors:
            other_id = tiles[n].plate_id
            if other_id == t.plate_id:
                continue
            other = plates[other_id]
            dot = mine.drift_x * other.drift_x + mine.drift_y * other.drift_y
            if dot < -DRIFT_DOT_THRESHOLD:
                stress = CONVERGENT_STRESS
            elif dot > DRIFT_DOT_THRESHOLD:
                stress = DIVERGENT_STRESS
            else:
                stress = TRANSFORM_STRESS
            t.tectonic_stress = max(t.tectonic_stress, stress)


def apply_orogenesis(tiles: List[Tile], gravity: float) -> None:
    """Uplift stressed crust; stronger gravity keeps it lower."""
    for t in tiles:
        if t.tectonic_stress < OROGENY_MIN_STRESS:
            continue
        t.elevation += int((t.tectonic_stress // 20) / gravity)


def mountain_cap(gravity: float) -> int:
    """Highest random peak for the planet's gravity; 95 units at 1 g."""
    g = max(0.25, gravity)
    return int(max(35, min(180, round(95.0 * (1.0 / g) ** 0.70))))


def raise_mountains(tiles: List[Tile], gravity: float, rng: np.random.Generator) -> int:
    """
    Build ranges along plate boundaries.

    Returns:
        Number of tiles turned into MOUNTAINS
    """
    cap = mountain_cap(gravity)
    mountain_height = max(45, int(round(cap * 0.65)))
    mountains = 0
    for t in tiles:
        if not is_plate_boundary(t, tiles):
            continue
        stress_boost = max(0, t.tectonic_stress - 30) // 2
        height = min(MOUNTAIN_HEIGHT_LIMIT, int(rng.integers(cap + 1)) + stress_boost)
        if height <= 0 or t.surface_type == SurfaceType.OCEAN:
            continue

        # Grow on top of orogenic uplift instead of replacing it
        t.elevation = max(0, min(255, max(t.elevation, height)))
        if height >= mountain_height:
            t.surface_type = SurfaceType.MOUNTAINS
            mountains += 1
        else:
            t.surface_type = SurfaceType.HILLS
    return mountains


def place_volcanism(tiles: List[Tile], volcanism: int, rng: np.random.Generator) -> int:
    """
    Two eruption rolls per boundary tile, each with chance volcanism / 2 %.

    Returns:
        Number of tiles marked VOLCANIC by the second roll
    """
    chance = volcanism // 2
    erupted = 0
    for t in tiles:
        if not is_plate_boundary(t, tiles):
            continue
        if rng.integers(100) < chance:
            t.volcanism = int(rng.integers(100))
            if t.volcanism > 70:
                t.surface_type = SurfaceType.VOLCANIC
        if rng.integers(100) < chance:
            t.volcanism = int(rng.integers(100))
            t.surface_type = SurfaceType.VOLCANIC
            erupted += 1
    return erupted


# =============================================================================
# STAGES
# =============================================================================

class PlatesStage(GenerationStage):
    """Plate layout; works before or after the neighbor graph is built."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.PLATES,
            name="Tectonic Plates",
            description="Seed plates and flood-fill them over the mesh",
        )

    def apply(self, context: WorldContext) -> None:
        rng = np.random.default_rng(context.settings.seed + PLATES_SEED_OFFSET)
        context.plates = generate_plates(context.tiles, context.adjacency(), context.plate_count, rng)
        continental = sum(1 for p in context.plates if p.continental)
        logger.debug("Plates: %d total, %d continental", len(context.plates), continental)


class StressStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.STRESS,
            name="Tectonic Stress",
            description="Stress at plate boundaries from relative drift",
            requires=[StageId.NEIGHBORS, StageId.PLATES],
        )

    def apply(self, context: WorldContext) -> None:
        plates = context.require_plates(self.stage_id)
        context.require_neighbors(self.stage_id)
        compute_stress(context.tiles, plates)


class OrogenesisStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.OROGENESIS,
            name="Orogenesis",
            description="Uplift of stressed crust",
            requires=[StageId.STRESS],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_plates(self.stage_id)
        apply_orogenesis(context.tiles, context.planet.gravity)


class MountainsStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.MOUNTAINS,
            name="Mountains",
            description="Mountain ranges and hills along plate boundaries",
            requires=[StageId.STRESS],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_plates(self.stage_id)
        context.require_neighbors(self.stage_id)
        rng = np.random.default_rng(context.settings.seed + MOUNTAINS_SEED_OFFSET)
        count = raise_mountains(context.tiles, context.planet.gravity, rng)
        logger.debug("Mountains: %d tiles (cap %d)", count, mountain_cap(context.planet.gravity))


class VolcanoStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.VOLCANISM,
            name="Volcanism",
            description="Volcanic activity along plate boundaries",
            requires=[StageId.NEIGHBORS, StageId.PLATES],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_plates(self.stage_id)
        context.require_neighbors(self.stage_id)
        rng = np.random.default_rng(context.settings.seed + VOLCANO_SEED_OFFSET)
        erupted = place_volcanism(context.tiles, context.planet.volcanism, rng)
        logger.debug("Volcanism: %d volcanic tiles", erupted)
