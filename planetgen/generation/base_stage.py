"""
Base classes for generation stages.
Provides the common interface every pipeline stage implements.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from planetgen.config import STAGE_WEIGHTS, StageId
from planetgen.models.world import WorldContext


@dataclass
class StageConfig:
    """Configuration for a generation stage."""

    stage_id: StageId
    """Stable identity, used in diagnostics and ordering audits"""

    name: str
    """Display name (e.g., 'Seasonal Climate')"""

    description: str
    """Brief description of what this stage does"""

    requires: List[StageId] = field(default_factory=list)
    """Stages whose output must exist before this stage runs"""

    weight: Optional[float] = None
    """Relative computational weight (for progress reporting)"""

    def __post_init__(self):
        if self.weight is None:
            self.weight = float(STAGE_WEIGHTS.get(self.stage_id, 1))


class GenerationStage(ABC):
    """
    Base class for all generation stages.

    A stage reads fields already present on the context, computes, and
    writes fields back. ``apply`` returns nothing: its effect is the
    mutation of the shared context. Missing upstream data must raise
    PreconditionError instead of silently doing nothing.
    """

    def __init__(self):
        self._duration: Optional[float] = None

    @property
    @abstractmethod
    def config(self) -> StageConfig:
        """Return the configuration for this stage."""

    @abstractmethod
    def apply(self, context: WorldContext) -> None:
        """
        Apply the stage to the world.

        Args:
            context: The world context to modify

        Raises:
            PreconditionError: If required upstream data is absent
        """

    @property
    def stage_id(self) -> StageId:
        return self.config.stage_id

    @property
    def name(self) -> str:
        return self.config.name

    def run(self, context: WorldContext) -> float:
        """
        Apply the stage and time it.

        Returns:
            Elapsed seconds

        Raises:
            Exception: Anything raised by apply(), unchanged
        """
        start = time.perf_counter()
        try:
            self.apply(context)
        finally:
            self._duration = time.perf_counter() - start
        return self._duration

    @property
    def duration(self) -> Optional[float]:
        """Duration of the last run in seconds."""
        return self._duration

    def __str__(self) -> str:
        return f"Stage {self.config.stage_id.value}: {self.config.name}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.config.stage_id.name}>"
