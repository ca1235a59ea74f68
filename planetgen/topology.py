"""
Planet Generator - Mesh Topology
Builds the tile template for a geodesic sphere and the tile neighbor graph.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np

from planetgen.errors import TopologyError
from planetgen.models.tile import Tile
from planetgen.utils.spatial import k_nearest, lat_lon_to_unit, unit_to_lat_lon

logger = logging.getLogger(__name__)

# The 12 original icosahedron vertices keep ids 0..11 and are the only
# tiles with 5 neighbors.
PENTAGON_COUNT = 12

_PHI = (1.0 + 5.0 ** 0.5) / 2.0

_ICOSAHEDRON_VERTICES = [
    (-1, _PHI, 0), (1, _PHI, 0), (-1, -_PHI, 0), (1, -_PHI, 0),
    (0, -1, _PHI), (0, 1, _PHI), (0, -1, -_PHI), (0, 1, -_PHI),
    (_PHI, 0, -1), (_PHI, 0, 1), (-_PHI, 0, -1), (-_PHI, 0, 1),
]

_ICOSAHEDRON_FACES = [
    (0, 11, 5), (0, 5, 1), (0, 1, 7), (0, 7, 10), (0, 10, 11),
    (1, 5, 9), (5, 11, 4), (11, 10, 2), (10, 7, 6), (7, 1, 8),
    (3, 9, 4), (3, 4, 2), (3, 2, 6), (3, 6, 8), (3, 8, 9),
    (4, 9, 5), (2, 4, 11), (6, 2, 10), (8, 6, 7), (9, 8, 1),
]


def icosphere_points(subdivisions: int) -> np.ndarray:
    """
    Vertices of a geodesic icosphere on the unit sphere.

    Args:
        subdivisions: Number of midpoint subdivision rounds (0 = icosahedron)

    Returns:
        (10 * 4**subdivisions + 2, 3) array; rows 0..11 are the icosahedron
    """
    if subdivisions < 0:
        raise ValueError("subdivisions must be non-negative")

    vertices = [np.array(v, dtype=np.float64) / np.linalg.norm(v) for v in _ICOSAHEDRON_VERTICES]
    faces = list(_ICOSAHEDRON_FACES)

    for _ in range(subdivisions):
        midpoint_cache: Dict[Tuple[int, int], int] = {}

        def midpoint(a: int, b: int) -> int:
            key = (a, b) if a < b else (b, a)
            if key not in midpoint_cache:
                mid = vertices[a] + vertices[b]
                vertices.append(mid / np.linalg.norm(mid))
                midpoint_cache[key] = len(vertices) - 1
            return midpoint_cache[key]

        next_faces = []
        for a, b, c in faces:
            ab = midpoint(a, b)
            bc = midpoint(b, c)
            ca = midpoint(c, a)
            next_faces.extend([(a, ab, ca), (b, bc, ab), (c, ca, bc), (ab, bc, ca)])
        faces = next_faces

    return np.array(vertices)


def icosphere_template(subdivisions: int) -> List[Tile]:
    """
    Ordered tile template for a geodesic sphere.

    Returns:
        Tiles with ids equal to positions and no neighbors yet
    """
    lat, lon = unit_to_lat_lon(icosphere_points(subdivisions))
    return [Tile(i, float(lat[i]), float(lon[i])) for i in range(len(lat))]


def expected_neighbor_count(tile_id: int) -> int:
    return 5 if tile_id < PENTAGON_COUNT else 6


def build_neighbors(tiles: List[Tile]) -> None:
    """
    Fill ``neighbors`` for every tile from geometry alone.

    Takes the 6 nearest tiles on the unit sphere, makes the relation
    symmetric, then keeps the closest 5 (ids 0..11) or 6 candidates,
    nearest first.

    Raises:
        TopologyError: If a tile has fewer candidates than it needs
    """
    n = len(tiles)
    if n < 2:
        raise TopologyError(f"Cannot build neighbors for {n} tile(s)")

    points = lat_lon_to_unit(
        np.array([t.lat for t in tiles]),
        np.array([t.lon for t in tiles]),
    )
    k = min(6, n - 1)
    _, nearest = k_nearest(points, k)

    candidates: List[set] = [set(int(j) for j in row) for row in nearest]
    for i, row in enumerate(nearest):
        for j in row:
            candidates[int(j)].add(i)

    for i, tile in enumerate(tiles):
        need = expected_neighbor_count(tile.id)
        ordered = sorted(
            candidates[i],
            key=lambda j: (float(np.linalg.norm(points[j] - points[i])), j),
        )
        if len(ordered) < need:
            raise TopologyError(
                f"Tile {tile.id} has {len(ordered)} neighbor candidates, needs {need}"
            )
        tile.neighbors = ordered[:need]

    logger.debug("Built neighbor graph for %d tiles", n)
