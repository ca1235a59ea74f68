"""
Planet Generator - Error Types
Exceptions raised by the pipeline, its stages and the I/O layer.
"""

from typing import Optional

from planetgen.config import StageId


class PlanetGenError(Exception):
    """Base class for all generator errors."""


class PreconditionError(PlanetGenError):
    """A stage ran before the upstream data it needs was produced."""

    def __init__(self, stage_id: StageId, message: str):
        self.stage_id = stage_id
        super().__init__(f"Precondition not met for {stage_id.name}: {message}")


class StageValidationError(PlanetGenError):
    """A stage produced output that breaks a post-condition."""

    def __init__(self, stage_id: StageId, message: str):
        self.stage_id = stage_id
        super().__init__(f"Validation failed after {stage_id.name}: {message}")


class StageFailedError(PlanetGenError):
    """
    Raised by the pipeline when any stage fails.
    The originating exception is chained and kept on ``cause``.
    """

    def __init__(self, stage_id: StageId, stage_name: str, cause: Optional[BaseException] = None):
        self.stage_id = stage_id
        self.stage_name = stage_name
        self.cause = cause
        message = f"Generation failed at stage: {stage_id.name} - {stage_name}"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)

    @property
    def is_precondition_failure(self) -> bool:
        """True when the run aborted because of a stage ordering problem."""
        return isinstance(self.cause, PreconditionError)


class TileDataError(PlanetGenError):
    """Malformed tile template input."""


class TopologyError(PlanetGenError):
    """Neighbor relation could not be built."""


class EncodingError(PlanetGenError):
    """Serialization could not produce a valid payload."""
