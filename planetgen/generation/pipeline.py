"""
Planet Generator - Generation Pipeline
Main orchestrator for surface generation.
Runs every enabled stage in order against one shared world context.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from planetgen.config import GeneratorSettings, PlanetConfig, StageId
from planetgen.errors import StageFailedError, TileDataError
from planetgen.generation.base_stage import GenerationStage
from planetgen.generation.profiles import StageProfile
from planetgen.generation.validation import validate_stage
from planetgen.models.stats import WorldStats
from planetgen.models.tile import Tile
from planetgen.models.world import WorldContext

logger = logging.getLogger(__name__)


class StageListener:
    """Receives stage lifecycle events. Methods are no-ops by default."""

    def on_stage_start(self, stage: GenerationStage, progress: float) -> None:
        pass

    def on_stage_end(self, stage: GenerationStage, elapsed_ms: float) -> None:
        pass

    def on_stage_skipped(self, stage: GenerationStage) -> None:
        pass


class LoggingStageListener(StageListener):
    """Default listener: reports stage progress through logging."""

    def on_stage_start(self, stage: GenerationStage, progress: float) -> None:
        logger.info("[%5.1f%%] Executing %s...", progress, stage.name)

    def on_stage_end(self, stage: GenerationStage, elapsed_ms: float) -> None:
        logger.info("        Completed %s in %.1f ms", stage.stage_id.name, elapsed_ms)

    def on_stage_skipped(self, stage: GenerationStage) -> None:
        logger.info("Skipping %s (disabled by profile)", stage.name)


class GenerationPipeline:
    """
    Ordered list of stages run sequentially against one WorldContext.

    The first failing stage aborts the run; the failure is re-raised as
    StageFailedError carrying the stage identity and the original error.
    """

    def __init__(
        self,
        stages: Optional[List[GenerationStage]] = None,
        profile: Optional[StageProfile] = None,
        listener: Optional[StageListener] = None,
        progress_callback: Optional[Callable[[str, float], None]] = None,
        validate: bool = True
    ):
        """
        Initialize generation pipeline.

        Args:
            stages: Stages in run order
            profile: Enabled stage set; all stages run when omitted
            listener: Stage lifecycle listener (logging by default)
            progress_callback: Optional callback for progress updates (stage_name, percent)
            validate: Whether to run post-stage validation
        """
        self._stages: List[GenerationStage] = []
        self.profile = profile or StageProfile.full()
        self.listener = listener or LoggingStageListener()
        self.progress_callback = progress_callback
        self.validate = validate

        self.status = "pending"
        self.error_message: Optional[str] = None
        self.completed_at: Optional[datetime] = None
        self.stage_timings: Dict[StageId, float] = {}

        for stage in stages or []:
            self.register_stage(stage)

    def register_stage(self, stage: GenerationStage) -> None:
        """
        Append a stage to the run order.

        Raises:
            ValueError: If a stage with the same id is already registered
        """
        if any(s.stage_id == stage.stage_id for s in self._stages):
            raise ValueError(f"Stage {stage.stage_id.name} already registered")
        self._stages.append(stage)

    @property
    def stages(self) -> List[GenerationStage]:
        return list(self._stages)

    def enabled_stages(self) -> List[GenerationStage]:
        return [s for s in self._stages if self.profile.is_enabled(s.stage_id)]

    def audit_order(self) -> List[str]:
        """
        Check declared stage requirements against the enabled run order.

        Returns:
            One message per requirement that is missing or scheduled later
        """
        problems = []
        seen = set()
        for stage in self.enabled_stages():
            for required in stage.config.requires:
                if required not in seen:
                    problems.append(
                        f"{stage.stage_id.name} requires {required.name}, "
                        f"which does not run before it"
                    )
            seen.add(stage.stage_id)
        return problems

    def run(
        self,
        tiles: List[Tile],
        planet: PlanetConfig,
        settings: GeneratorSettings,
        plate_count: int = 12
    ) -> WorldContext:
        """
        Build a context around ``tiles`` and run every enabled stage.

        The tiles are mutated in place and returned through the context.
        """
        context = WorldContext(tiles, planet, settings, plate_count)
        return self.run_context(context)

    def run_context(self, context: WorldContext) -> WorldContext:
        """
        Run every enabled stage against an existing context.

        Returns:
            The same context, fully generated

        Raises:
            TileDataError: If tile ids do not equal their positions
            StageFailedError: If any stage or its validation fails
        """
        mismatch = context.first_id_mismatch()
        if mismatch is not None:
            raise TileDataError(
                f"Tile at position {mismatch} has id {context.tiles[mismatch].id}; ids must equal positions"
            )

        self.status = "generating"
        self.error_message = None
        self.stage_timings = {}
        start_time = time.perf_counter()

        logger.info("=" * 60)
        logger.info("Starting surface generation")
        logger.info("Seed: %d  Tiles: %d  Profile: %s", context.settings.seed, len(context.tiles), self.profile.name)
        logger.info("Climate model: %s", context.settings.climate_model_mode.value)
        logger.info("=" * 60)

        for problem in self.audit_order():
            logger.warning("Stage order: %s", problem)

        enabled = self.enabled_stages()
        total_weight = sum(s.config.weight for s in enabled) or 1.0
        accumulated_weight = 0.0

        for stage in self._stages:
            if not self.profile.is_enabled(stage.stage_id):
                self.listener.on_stage_skipped(stage)
                continue

            progress = (accumulated_weight / total_weight) * 100
            self.listener.on_stage_start(stage, progress)

            try:
                elapsed = stage.run(context)
                if self.validate:
                    validate_stage(stage.stage_id, context)
            except Exception as exc:
                self.status = "failed"
                self.error_message = str(exc)
                logger.error("Generation failed at stage %s - %s: %s", stage.stage_id.name, stage.name, exc)
                raise StageFailedError(stage.stage_id, stage.name, exc) from exc

            self.stage_timings[stage.stage_id] = elapsed
            context.stage_timings[stage.stage_id] = elapsed
            context.completed_stages.append(stage.stage_id)
            self.listener.on_stage_end(stage, elapsed * 1000.0)

            accumulated_weight += stage.config.weight
            if self.progress_callback:
                self.progress_callback(stage.name, (accumulated_weight / total_weight) * 100)

        context.stats = WorldStats.compute(context.tiles)

        self.status = "ready"
        self.completed_at = datetime.now(timezone.utc)
        total_time = time.perf_counter() - start_time

        logger.info("=" * 60)
        logger.info("Surface generation complete in %.2fs", total_time)
        logger.info("=" * 60)
        for line in context.stats.summary_lines():
            logger.info(line)

        logger.info("Stage timings:")
        for stage_id, duration in self.stage_timings.items():
            percentage = (duration / total_time) * 100 if total_time > 0 else 0.0
            logger.info("  %-24s %8.3fs (%5.1f%%)", stage_id.name, duration, percentage)

        return context


def create_pipeline(
    profile: Optional[StageProfile] = None,
    listener: Optional[StageListener] = None,
    progress_callback: Optional[Callable[[str, float], None]] = None
) -> GenerationPipeline:
    """
    Factory function to create a pipeline with every stage in canonical order.

    Args:
        profile: Enabled stage set (all stages when omitted)
        listener: Stage lifecycle listener
        progress_callback: Optional progress callback

    Returns:
        Configured GenerationPipeline ready to run
    """
    from planetgen.generation.stages import default_stages

    return GenerationPipeline(
        stages=default_stages(),
        profile=profile,
        listener=listener,
        progress_callback=progress_callback,
    )
