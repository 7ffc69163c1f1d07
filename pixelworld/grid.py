"""
World grid storage and neighbourhood queries.

Fixed-size 2D store holding at most one entity per tile. Coordinates are
0-based (x, y) with x along the width and y along the height; tiles are
scanned row-major (y outer, x inner).

Contract: callers are internal behavior code that checks bounds and
occupancy before placing. Violations raise GridError subclasses instead
of silently corrupting the single-owner invariant.
"""

import numpy as np
from typing import Dict, Iterator, List, Optional, Tuple

from .entity import Entity, EntityKind, kind_of

Coord = Tuple[int, int]

# 8-neighbourhood, row-major order (first-match scans depend on this order)
NEIGHBOR_OFFSETS_8: Tuple[Coord, ...] = (
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1), (0, 1), (1, 1),
)

# Forward half of the 8-neighbourhood: visiting these from every tile
# enumerates each unordered adjacent pair exactly once
NEIGHBOR_OFFSETS_4: Tuple[Coord, ...] = ((1, 0), (0, 1), (1, 1), (-1, 1))


class GridError(Exception):
    """Raised when grid access violates the bounds/occupancy contract"""
    pass


class OutOfBoundsError(GridError):
    """Raised for coordinates outside the grid"""
    pass


class OccupiedCellError(GridError):
    """Raised when placing onto a tile that already holds an entity"""
    pass


class WorldGrid:
    """
    Exclusive owner of all entity instances.

    Args:
        width: Number of columns (x range)
        height: Number of rows (y range)
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise GridError(f"Grid dimensions must be positive, got {width}x{height}")

        self.width = width
        self.height = height
        self._tiles: List[List[Optional[Entity]]] = [[None] * width for _ in range(height)]

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _check(self, x: int, y: int):
        if not self.in_bounds(x, y):
            raise OutOfBoundsError(f"({x}, {y}) outside {self.width}x{self.height} grid")

    # ------------------------------------------------------------------
    # Tile access
    # ------------------------------------------------------------------

    def get(self, x: int, y: int) -> Optional[Entity]:
        self._check(x, y)
        return self._tiles[y][x]

    def set(self, x: int, y: int, entity: Optional[Entity]):
        """
        Overwrite a tile unconditionally.

        Used for in-place transformations (particle -> resource, cell ->
        predator, resource -> particle) and for clearing. Use place() when
        the tile is expected to be empty.
        """
        self._check(x, y)
        if entity is not None:
            kind_of(entity)  # Rejects non-entities
        self._tiles[y][x] = entity

    def place(self, x: int, y: int, entity: Entity):
        """
        Put an entity on an empty tile.

        Raises:
            OccupiedCellError: If the tile already holds an entity
        """
        self._check(x, y)
        if self._tiles[y][x] is not None:
            raise OccupiedCellError(
                f"({x}, {y}) already holds {self._tiles[y][x]!r}; clear it first"
            )
        self.set(x, y, entity)

    def clear(self, x: int, y: int) -> Optional[Entity]:
        """Empty a tile and return what it held."""
        self._check(x, y)
        entity = self._tiles[y][x]
        self._tiles[y][x] = None
        return entity

    def move(self, src: Coord, dst: Coord):
        """
        Move the entity at src to dst (clear source, then place destination).

        Raises:
            GridError: If src is empty or dst is occupied
        """
        entity = self.get(*src)
        if entity is None:
            raise GridError(f"No entity to move at {src}")
        self._check(*dst)
        if self._tiles[dst[1]][dst[0]] is not None:
            raise OccupiedCellError(f"Move target {dst} is occupied")

        self.clear(*src)
        self.place(dst[0], dst[1], entity)

    def is_empty(self, x: int, y: int) -> bool:
        return self.get(x, y) is None

    def clear_all(self):
        for row in self._tiles:
            for x in range(self.width):
                row[x] = None

    # ------------------------------------------------------------------
    # Neighbourhoods
    # ------------------------------------------------------------------

    def neighbors8(self, x: int, y: int) -> Iterator[Coord]:
        """In-bounds 8-neighbours in row-major offset order."""
        for dx, dy in NEIGHBOR_OFFSETS_8:
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny):
                yield nx, ny

    def neighbors4(self, x: int, y: int) -> Iterator[Coord]:
        """In-bounds forward neighbours (see NEIGHBOR_OFFSETS_4)."""
        for dx, dy in NEIGHBOR_OFFSETS_4:
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny):
                yield nx, ny

    def empty_neighbors(self, x: int, y: int) -> List[Coord]:
        return [(nx, ny) for nx, ny in self.neighbors8(x, y) if self._tiles[ny][nx] is None]

    def block(self, x: int, y: int, radius: int) -> Iterator[Coord]:
        """In-bounds tiles of the (2r+1)^2 square centred on (x, y), row-major."""
        for ny in range(y - radius, y + radius + 1):
            for nx in range(x - radius, x + radius + 1):
                if self.in_bounds(nx, ny):
                    yield nx, ny

    # ------------------------------------------------------------------
    # Full scans
    # ------------------------------------------------------------------

    def scan(self) -> Iterator[Tuple[int, int, Optional[Entity]]]:
        """Row-major scan over every tile."""
        for y, row in enumerate(self._tiles):
            for x, entity in enumerate(row):
                yield x, y, entity

    def occupied(self) -> Iterator[Tuple[int, int, Entity]]:
        """Row-major scan over non-empty tiles."""
        for x, y, entity in self.scan():
            if entity is not None:
                yield x, y, entity

    def count_by_kind(self) -> Dict[EntityKind, int]:
        counts = {kind: 0 for kind in EntityKind if kind != EntityKind.EMPTY}
        for _, _, entity in self.occupied():
            counts[kind_of(entity)] += 1
        return counts

    def kind_array(self) -> np.ndarray:
        """
        Snapshot of tile kinds for renderers.

        Returns:
            (height, width) int8 array of EntityKind codes
        """
        kinds = np.zeros((self.height, self.width), dtype=np.int8)
        for x, y, entity in self.occupied():
            kinds[y, x] = kind_of(entity)
        return kinds
