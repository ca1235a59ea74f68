"""
Planet Generator - Surface Serialization
Compact short-key JSON payload of a finished surface, optionally gzipped.

Payload layout::

    {
        "sv": schema version,
        "gv": generator version,
        "p":  {"si": subsurface ice thickness (m), "tc": tile count},
        "h":  [hex, ...]
    }

Each hex is a positional array::

    [id, surface, preferred season, regime, modifier mask, elevation,
     "tMin", "tMax", "precip", "soil", "evap", "wind", "sunny",
     river block, resources block, "tide", "solar", owner id, neighbors]

Quoted entries are ``warm|inter|cold`` triples (tide is ``range|period``).
The river block is ``[river type, downstream id, discharge, *upstream ids]``
and each resource ``[type id, layer, quality, saturation, tonnes]``.
Every value goes through the shared fallback chain, so absent fields never
leak out as NaN: they resolve to a less specific value or round as 0.
"""

import gzip
import json
import logging
from typing import Any, Dict, List, Sequence

from planetgen.config import GENERATOR_VERSION, SURFACE_SCHEMA_VERSION, PlanetConfig
from planetgen.errors import EncodingError
from planetgen.io.fallback import Quantity, resolve_triple, round_value
from planetgen.models.tile import Tile

logger = logging.getLogger(__name__)

OWNER_NONE = 0

# (quantity, decimal places) for the climate triples, in payload order
CLIMATE_TRIPLES = (
    (Quantity.TEMP_MIN, 1),
    (Quantity.TEMP_MAX, 1),
    (Quantity.PRECIP_FLUX, 2),
    (Quantity.SOIL_MOISTURE, 2),
    (Quantity.EVAP_FLUX, 2),
    (Quantity.WIND, 2),
)


def format_triple(values: Sequence[float], digits: int) -> str:
    return "|".join(str(round_value(v, digits)) for v in values)


def format_int_triple(values: Sequence[float]) -> str:
    return "|".join(str(int(round(round_value(v, 0)))) for v in values)


def river_block(t: Tile) -> List[Any]:
    upstream = [int(s) for s in t.river_from]
    return [int(t.river_type), int(t.river_to), round_value(t.river_discharge_kg_s, 2), *upstream]


def resources_block(t: Tile) -> List[List[Any]]:
    return [
        [int(r.type), int(r.layer), r.quality, r.saturation, round_value(r.tonnes, 2)]
        for r in t.resources
    ]


def tide_block(t: Tile) -> str:
    return f"{round_value(t.tidal_range_m, 2)}|{round_value(t.tidal_period_hours, 2)}"


def solar_block(t: Tile) -> str:
    return format_triple((t.solar_kwh_day_warm, t.solar_kwh_day_inter, t.solar_kwh_day_cold), 3)


def encode_hex(t: Tile, planet: PlanetConfig) -> List[Any]:
    """One tile as a positional payload array."""
    preferred = None if t.biome_preferred_season is None else int(t.biome_preferred_season)
    hex_row: List[Any] = [
        t.id,
        int(t.surface_type),
        preferred,
        int(t.biome_regime),
        int(t.biome_modifier_mask),
        int(t.elevation),
    ]
    for quantity, digits in CLIMATE_TRIPLES:
        hex_row.append(format_triple(resolve_triple(t, quantity, planet), digits))
    hex_row.append(format_int_triple(resolve_triple(t, Quantity.SUNNY_DAYS, planet)))
    hex_row.extend([
        river_block(t),
        resources_block(t),
        tide_block(t),
        solar_block(t),
        OWNER_NONE,
        [int(n) for n in t.neighbors],
    ])
    return hex_row


def to_payload(tiles: List[Tile], planet: PlanetConfig) -> Dict[str, Any]:
    """
    Build the payload dictionary.

    Args:
        tiles: Finished tiles
        planet: Planet the tiles belong to

    Returns:
        JSON-ready payload
    """
    return {
        "sv": SURFACE_SCHEMA_VERSION,
        "gv": GENERATOR_VERSION,
        "p": {
            "si": planet.subsurface_ice_thickness_m,
            "tc": len(tiles),
        },
        "h": [encode_hex(t, planet) for t in tiles],
    }


def to_json(tiles: List[Tile], planet: PlanetConfig) -> str:
    """
    Serialize a surface to compact JSON.

    Raises:
        EncodingError: A value could not be encoded (non-finite number or
            unsupported type)
    """
    payload = to_payload(tiles, planet)
    try:
        text = json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Failed to encode surface payload: {e}") from e
    logger.debug("Encoded %d tiles into %d characters", len(tiles), len(text))
    return text


def gzip_payload(tiles: List[Tile], planet: PlanetConfig) -> bytes:
    """Gzipped UTF-8 JSON, the storage form of a surface."""
    return gzip.compress(to_json(tiles, planet).encode("utf-8"))


def read_payload(data: bytes) -> Dict[str, Any]:
    """
    Decode a stored payload, gzipped or plain.

    Raises:
        EncodingError: The data is neither valid gzip nor valid JSON
    """
    try:
        if data[:2] == b"\x1f\x8b":
            data = gzip.decompress(data)
        payload = json.loads(data.decode("utf-8"))
    except (OSError, EOFError, UnicodeDecodeError, ValueError) as e:
        raise EncodingError(f"Failed to decode surface payload: {e}") from e
    if not isinstance(payload, dict) or "h" not in payload:
        raise EncodingError("Surface payload has no hex list")
    return payload
