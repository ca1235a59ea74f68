"""
Planet Generator - World Data Models
Shared mutable state threaded through the generation pipeline.
"""

from typing import Dict, List, Optional

import numpy as np
from pydantic import BaseModel

from planetgen.config import GeneratorSettings, PlanetConfig, StageId, SurfaceType
from planetgen.errors import PreconditionError
from planetgen.models.tile import Tile
from planetgen.utils.spatial import k_nearest, lat_lon_to_unit


# =============================================================================
# TECTONIC DATA
# =============================================================================

class TectonicPlate(BaseModel):
    """Individual tectonic plate information"""
    plate_id: int
    continental: bool
    drift_x: float  # unit-less drift, -1..1
    drift_y: float
    seed_tile: int


# =============================================================================
# WORLD CONTEXT
# =============================================================================

class WorldContext:
    """
    Complete state of one generation run.

    Every stage mutates ``tiles`` in place; no stage receives a private copy.
    ``plates`` stays None until the plates stage runs,
    ``base_surface_type`` until the base surface stage runs, and
    ``neighbors_built`` False until the neighbor stage runs. The snapshot is
    indexed by tile position, so tile order must not change during a run.
    """

    def __init__(
        self,
        tiles: List[Tile],
        planet: PlanetConfig,
        settings: GeneratorSettings,
        plate_count: int = 12
    ):
        self.tiles = tiles
        self.planet = planet
        self.settings = settings
        self.plate_count = plate_count
        self.rng = np.random.default_rng(settings.seed)

        # Filled mid-pipeline
        self.plates: Optional[List[TectonicPlate]] = None
        self.base_surface_type: Optional[List[SurfaceType]] = None
        self.neighbors_built = False

        # Run bookkeeping
        self.completed_stages: List[StageId] = []
        self.stage_timings: Dict[StageId, float] = {}
        self.stats = None

    def __len__(self) -> int:
        return len(self.tiles)

    def neighbors_of(self, tile: Tile) -> List[Tile]:
        """Resolve a tile's neighbor ids to tiles."""
        return [self.tiles[n] for n in tile.neighbors]

    @property
    def has_neighbors(self) -> bool:
        return self.neighbors_built

    def adjacency(self) -> List[List[int]]:
        """
        Neighbor ids per tile for flood fills.

        Uses the built neighbor relation when present, otherwise the 6
        geometrically nearest tiles. The fallback is never stored on tiles.
        """
        if self.has_neighbors:
            return [list(t.neighbors) for t in self.tiles]
        if len(self.tiles) < 2:
            return [[] for _ in self.tiles]
        points = lat_lon_to_unit(
            np.array([t.lat for t in self.tiles]),
            np.array([t.lon for t in self.tiles]),
        )
        _, nearest = k_nearest(points, min(6, len(self.tiles) - 1))
        return [[int(j) for j in row] for row in nearest]

    def snapshot_base_surface(self) -> None:
        """Record current surface types by position for the water classifier."""
        self.base_surface_type = [t.surface_type for t in self.tiles]

    def first_id_mismatch(self) -> Optional[int]:
        """
        Position of the first tile whose id differs from its index.

        Returns:
            Offending position, or None when ids equal positions
        """
        for index, tile in enumerate(self.tiles):
            if tile.id != index:
                return index
        return None

    # -------------------------------------------------------------------------
    # Preconditions
    # -------------------------------------------------------------------------

    def require_neighbors(self, stage_id: StageId) -> None:
        if not self.has_neighbors:
            raise PreconditionError(stage_id, "tile neighbors have not been built")

    def require_plates(self, stage_id: StageId) -> List[TectonicPlate]:
        if self.plates is None:
            raise PreconditionError(stage_id, "plates have not been generated")
        return self.plates

    def require_base_surface(self, stage_id: StageId) -> List[SurfaceType]:
        if self.base_surface_type is None:
            raise PreconditionError(stage_id, "base surface snapshot is missing")
        if len(self.base_surface_type) != len(self.tiles):
            raise PreconditionError(
                stage_id,
                f"base surface snapshot has {len(self.base_surface_type)} entries "
                f"for {len(self.tiles)} tiles"
            )
        return self.base_surface_type
