"""
Planet Generator - Tile Template Loading
Reads tile mesh templates (id, lat, lon) from CSV files.

Template files have a header row, then one tile per row with the id in the
second column and latitude and longitude in the third and fourth. Values may
be quoted. Ids must equal row positions: stages index tiles by id.
"""

import csv
import logging
import math
from pathlib import Path
from typing import List, Union

from planetgen.errors import TileDataError
from planetgen.models.tile import Tile

logger = logging.getLogger(__name__)

# Template files per planet radius bracket, smallest mesh first
TILE_SET_RADII_KM = (340.0, 650.0, 1300.0, 2600.0, 5200.0)
TILE_SET_FILES = (
    "LatLongTileID2_v2.txt",
    "LatLongTileID3_v2.txt",
    "LatLongTileID4_v2.txt",
    "LatLongTileID5_v2.txt",
    "LatLongTileID6_v2.txt",
)
# The largest mesh is not shipped yet; its bracket uses the next one down
_MISSING_TILE_SETS = {4: 3}
_FALLBACK_TILE_SET = 3


def _field(value: str) -> str:
    return value.strip().strip('"')


def load_tile_csv(path: Union[str, Path]) -> List[Tile]:
    """
    Load a tile template.

    Args:
        path: CSV file

    Returns:
        Tiles with identity only, in file order

    Raises:
        TileDataError: Unreadable file, malformed row or id out of sequence
    """
    path = Path(path)
    tiles: List[Tile] = []
    try:
        with path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            next(reader, None)  # header
            for row in reader:
                line = reader.line_num
                if not row or all(not cell.strip() for cell in row):
                    continue
                try:
                    tile_id = int(_field(row[1]))
                    lat = float(_field(row[2]))
                    lon = float(_field(row[3]))
                except (IndexError, ValueError) as e:
                    raise TileDataError(f"{path}:{line}: malformed tile row {row!r}") from e
                if tile_id != len(tiles):
                    raise TileDataError(
                        f"{path}:{line}: tile id {tile_id} does not match position {len(tiles)}"
                    )
                if not (math.isfinite(lat) and math.isfinite(lon)):
                    raise TileDataError(f"{path}:{line}: non-finite coordinates")
                tiles.append(Tile(tile_id, lat, lon))
    except OSError as e:
        raise TileDataError(f"Cannot read tile template {path}: {e}") from e

    logger.debug("Loaded %d tiles from %s", len(tiles), path)
    return tiles


def select_tile_set(radius_km: float, directory: Union[str, Path] = ".") -> Path:
    """Template file whose radius bracket is nearest to ``radius_km``."""
    if radius_km is None or math.isnan(radius_km) or radius_km <= 0:
        index = _FALLBACK_TILE_SET
    else:
        index = min(range(len(TILE_SET_RADII_KM)), key=lambda i: abs(radius_km - TILE_SET_RADII_KM[i]))
        index = _MISSING_TILE_SETS.get(index, index)
    return Path(directory) / TILE_SET_FILES[index]
