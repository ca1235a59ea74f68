"""
Planet Generator - Generation Service
Runs full generations against a shared tile template.

Each run works on its own copy of the template, so one service can serve
several generations at once from a thread pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from planetgen.config import GeneratorSettings, PlanetConfig
from planetgen.generation.pipeline import StageListener, create_pipeline
from planetgen.generation.profiles import StageProfile
from planetgen.io.serializer import to_payload
from planetgen.models.tile import Tile
from planetgen.models.world import WorldContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 2


@dataclass
class GenerationResult:
    """A finished generation and its serialized form."""
    context: WorldContext
    payload: Dict[str, Any]

    @property
    def tiles(self) -> List[Tile]:
        return self.context.tiles


class PlanetGenerationService:
    """
    Generates planet surfaces from one tile template.

    The template is never mutated; stages only ever see per-run copies
    carrying the template's ids and coordinates.
    """

    def __init__(self, template_tiles: Sequence[Tile], max_workers: int = DEFAULT_MAX_WORKERS):
        self.template = [t.copy_template() for t in template_tiles]
        self.max_workers = max_workers

    def fresh_tiles(self) -> List[Tile]:
        return [t.copy_template() for t in self.template]

    def generate(
        self,
        planet: PlanetConfig,
        settings: Optional[GeneratorSettings] = None,
        profile: Optional[StageProfile] = None,
        listener: Optional[StageListener] = None,
        progress_callback: Optional[Callable[[str, float], None]] = None,
        plate_count: int = 12
    ) -> GenerationResult:
        """
        Run one generation.

        Args:
            planet: Planet parameters; copied, so stages writing derived
                values (subsurface ice) leave the caller's object alone
            settings: Generation settings (defaults when omitted)
            profile: Enabled stages; chosen from the planet when omitted
            listener: Stage lifecycle listener
            progress_callback: Optional callback for progress updates (stage_name, percent)
            plate_count: Number of tectonic plates

        Returns:
            GenerationResult with the finished context and payload

        Raises:
            StageFailedError: If any stage fails
        """
        planet = planet.model_copy(deep=True)
        settings = settings or GeneratorSettings()
        profile = profile or StageProfile.for_planet(planet)

        logger.info("Generating '%s' (seed %d, profile %s)", planet.name, settings.seed, profile.name)
        pipeline = create_pipeline(profile, listener, progress_callback)
        context = pipeline.run(self.fresh_tiles(), planet, settings, plate_count)
        return GenerationResult(context, to_payload(context.tiles, context.planet))

    def generate_many(
        self,
        runs: Sequence[Tuple[PlanetConfig, GeneratorSettings]],
        profile: Optional[StageProfile] = None
    ) -> List[GenerationResult]:
        """
        Run several generations concurrently.

        Results come back in the order of ``runs``; a failed run re-raises
        its StageFailedError.
        """
        if not runs:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="planet_gen") as executor:
            futures = [
                executor.submit(self.generate, planet, settings, profile)
                for planet, settings in runs
            ]
            return [f.result() for f in futures]
