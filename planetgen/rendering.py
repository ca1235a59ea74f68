"""
Planet Generator - Rendering Read Access
Read view over a finished surface for map renderers and editors.

Seasonal values come through the same fallback chain the serializer uses,
so a renderer shows exactly what gets stored. The only write is
``set_surface_type``, the editor's manual override; it bypasses the pipeline
and no stage re-runs after it.
"""

from typing import List, Optional

from planetgen.config import PlanetConfig, ResourceType, Season, SurfaceType
from planetgen.io.fallback import Quantity, resolve
from planetgen.models.tile import ResourcePresence, Tile


class SurfaceView:
    """
    Read access to a tile collection by tile id.

    Args:
        tiles: Finished tiles, ids equal to positions
        planet: Planet, used for estimated values where nothing was simulated
    """

    def __init__(self, tiles: List[Tile], planet: Optional[PlanetConfig] = None):
        self.tiles = tiles
        self.planet = planet

    def __len__(self) -> int:
        return len(self.tiles)

    def tile(self, tile_id: int) -> Tile:
        return self.tiles[tile_id]

    # -------------------------------------------------------------------------
    # Surface
    # -------------------------------------------------------------------------

    def surface_type(self, tile_id: int) -> SurfaceType:
        return self.tiles[tile_id].surface_type

    def elevation(self, tile_id: int) -> int:
        return self.tiles[tile_id].elevation

    def set_surface_type(self, tile_id: int, surface_type: SurfaceType) -> None:
        """Manual edit; the tile keeps every other field."""
        self.tiles[tile_id].surface_type = SurfaceType(surface_type)

    # -------------------------------------------------------------------------
    # Climate
    # -------------------------------------------------------------------------

    def _resolve(self, tile_id: int, quantity: Quantity, season: Season) -> float:
        return resolve(self.tiles[tile_id], quantity, season, self.planet)

    def temperature(self, tile_id: int, season: Season = Season.INTERSEASON) -> float:
        return self._resolve(tile_id, Quantity.TEMPERATURE, season)

    def precipitation(self, tile_id: int, season: Season = Season.INTERSEASON) -> float:
        """Precipitation in kg/m²/day."""
        return self._resolve(tile_id, Quantity.PRECIP_FLUX, season)

    def soil_moisture(self, tile_id: int, season: Season = Season.INTERSEASON) -> float:
        return self._resolve(tile_id, Quantity.SOIL_MOISTURE, season)

    def wind(self, tile_id: int, season: Season = Season.INTERSEASON) -> float:
        return self._resolve(tile_id, Quantity.WIND, season)

    # -------------------------------------------------------------------------
    # Rivers and resources
    # -------------------------------------------------------------------------

    def river_downstream(self, tile_id: int) -> Optional[int]:
        """Next tile down the river, None where no river leaves this tile."""
        target = self.tiles[tile_id].river_to
        return target if target >= 0 else None

    def river_upstream(self, tile_id: int) -> List[int]:
        return list(self.tiles[tile_id].river_from)

    def resources(self, tile_id: int) -> List[ResourcePresence]:
        return list(self.tiles[tile_id].resources)

    def has_resource(self, tile_id: int, resource: ResourceType) -> bool:
        return any(r.type == resource for r in self.tiles[tile_id].resources)
