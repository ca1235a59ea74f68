"""
Planet Generator - Stage: Neighbor Graph
Builds the tile neighbor relation from geometry.
"""

from planetgen.config import StageId
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.models.world import WorldContext
from planetgen.topology import build_neighbors


class BuildNeighborsStage(GenerationStage):
    """Fills ``neighbors`` once; every later neighbor-walking stage reads it."""

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.NEIGHBORS,
            name="Neighbor Graph",
            description="Build the symmetric tile neighbor relation",
        )

    def apply(self, context: WorldContext) -> None:
        build_neighbors(context.tiles)
        context.neighbors_built = True
