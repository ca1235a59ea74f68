"""
Planet Generator - Stage Validation
Post-conditions checked by the pipeline after each stage.
Fatal checks raise StageValidationError; soft checks only log a warning.
"""

import logging
from typing import Callable, Dict

from planetgen.config import ELEVATION_MAX, ELEVATION_MIN, StageId, SurfaceType
from planetgen.errors import StageValidationError
from planetgen.models.world import WorldContext
from planetgen.topology import expected_neighbor_count

logger = logging.getLogger(__name__)


def check_id_index(stage_id: StageId, context: WorldContext) -> None:
    """Every tile id must equal its position, before and after every stage."""
    mismatch = context.first_id_mismatch()
    if mismatch is not None:
        raise StageValidationError(
            stage_id,
            f"tile at position {mismatch} has id {context.tiles[mismatch].id}"
        )


def after_neighbors(context: WorldContext) -> None:
    tiles = context.tiles
    for t in tiles:
        expected = expected_neighbor_count(t.id)
        if len(t.neighbors) != expected:
            raise StageValidationError(
                StageId.NEIGHBORS,
                f"tile {t.id} has {len(t.neighbors)} neighbors, expected {expected}"
            )
        for n in t.neighbors:
            if not 0 <= n < len(tiles) or n == t.id:
                raise StageValidationError(StageId.NEIGHBORS, f"tile {t.id} has invalid neighbor {n}")

    asymmetric = sum(1 for t in tiles for n in t.neighbors if t.id not in tiles[n].neighbors)
    if asymmetric:
        logger.warning("Neighbor relation has %d one-way links", asymmetric)


def after_base_surface(context: WorldContext) -> None:
    unknown = [t.id for t in context.tiles if t.surface_type == SurfaceType.UNKNOWN]
    if unknown:
        raise StageValidationError(
            StageId.BASE_SURFACE,
            f"{len(unknown)} tiles left UNKNOWN (first: {unknown[0]})"
        )
    context.require_base_surface(StageId.BASE_SURFACE)


def after_plates(context: WorldContext) -> None:
    plates = context.plates
    if not plates:
        raise StageValidationError(StageId.PLATES, "no plates generated")
    plate_ids = set()
    for t in context.tiles:
        if not 0 <= t.plate_id < len(plates):
            raise StageValidationError(
                StageId.PLATES,
                f"tile {t.id} has plate id {t.plate_id} outside 0..{len(plates) - 1}"
            )
        plate_ids.add(t.plate_id)
    if len(plate_ids) == 1 and len(context.tiles) > 1:
        logger.warning("All tiles belong to a single plate")


def after_stress(context: WorldContext) -> None:
    out_of_range = sum(1 for t in context.tiles if not 0 <= t.tectonic_stress <= 100)
    if out_of_range:
        logger.warning("%d tiles have tectonic stress outside 0..100", out_of_range)
    if not any(t.tectonic_stress > 0 for t in context.tiles):
        logger.warning("No tectonic stress anywhere")


def after_relief_change(stage_id: StageId) -> Callable[[WorldContext], None]:
    def check(context: WorldContext) -> None:
        negative = sum(1 for t in context.tiles if t.elevation < ELEVATION_MIN)
        if negative:
            logger.warning("%s left %d tiles below elevation %d", stage_id.name, negative, ELEVATION_MIN)
    return check


def after_volcanism(context: WorldContext) -> None:
    for t in context.tiles:
        if not 0 <= t.volcanism <= 100:
            raise StageValidationError(
                StageId.VOLCANISM,
                f"tile {t.id} has volcanism {t.volcanism} outside 0..100"
            )


def after_climate(context: WorldContext) -> None:
    pressures = {t.pressure for t in context.tiles}
    if len(pressures) == 1 and context.planet.has_atmosphere and len(context.tiles) > 1:
        logger.warning("Pressure is constant (%s) across the planet", next(iter(pressures)))


def after_wind(context: WorldContext) -> None:
    precip = {t.precip_avg for t in context.tiles}
    if len(precip) == 1 and len(context.tiles) > 1:
        logger.warning("Precipitation is constant across the planet")
    winds = {round(t.wind_magnitude, 6) for t in context.tiles}
    if len(winds) == 1 and len(context.tiles) > 1:
        logger.warning("Wind speed is constant across the planet")


def after_erosion(context: WorldContext) -> None:
    for t in context.tiles:
        if not ELEVATION_MIN <= t.elevation <= ELEVATION_MAX:
            raise StageValidationError(
                StageId.EROSION,
                f"tile {t.id} has elevation {t.elevation} outside {ELEVATION_MIN}..{ELEVATION_MAX}"
            )


STAGE_VALIDATORS: Dict[StageId, Callable[[WorldContext], None]] = {
    StageId.NEIGHBORS: after_neighbors,
    StageId.BASE_SURFACE: after_base_surface,
    StageId.PLATES: after_plates,
    StageId.STRESS: after_stress,
    StageId.OROGENESIS: after_relief_change(StageId.OROGENESIS),
    StageId.MOUNTAINS: after_relief_change(StageId.MOUNTAINS),
    StageId.VOLCANISM: after_volcanism,
    StageId.CLIMATE: after_climate,
    StageId.WIND: after_wind,
    StageId.EROSION: after_erosion,
}


def validate_stage(stage_id: StageId, context: WorldContext) -> None:
    """
    Run the post-conditions registered for a stage.

    Raises:
        StageValidationError: If a fatal check fails
    """
    check_id_index(stage_id, context)
    validator = STAGE_VALIDATORS.get(stage_id)
    if validator is not None:
        validator(context)
