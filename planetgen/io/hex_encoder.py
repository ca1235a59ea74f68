"""
Planet Generator - Hex Data Encoding
Minimal per-tile JSON used by the map viewer.

Each tile becomes
``[id, neighbor count, [neighbor ids], lat, lon, surface, temperature,
elevation, wind speed]``.
"""

import json
from typing import List

from planetgen.errors import EncodingError
from planetgen.models.tile import Tile


def hex_row(t: Tile) -> list:
    return [
        t.id,
        len(t.neighbors),
        [int(n) for n in t.neighbors],
        float(t.lat),
        float(t.lon),
        int(t.surface_type),
        int(t.temperature),
        int(t.elevation),
        t.wind_magnitude,
    ]


def encode_hex_data(tiles: List[Tile]) -> str:
    try:
        return json.dumps([hex_row(t) for t in tiles], allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Failed to encode hex data: {e}") from e
