from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Iterator

GRID_SIZE = 2160
GRID_CELL_SIZE = 8.0
GRID_ORIGIN_OFFSET = 1080.0
GRID_MAX_INDEX = GRID_SIZE - 1


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    def sqr_distance(self, other: Vector3) -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return (dx * dx) + (dy * dy) + (dz * dz)


def grid_coordinate(world_coordinate: float) -> int:
    """Map a world coordinate onto an (unclamped) grid coordinate.

    Truncates toward zero like the host's int cast, so coordinates just past the
    negative world edge still land on cell 0 before clamping.
    """
    return int((world_coordinate / GRID_CELL_SIZE) + GRID_ORIGIN_OFFSET)


def cell_index(x: int, z: int) -> int:
    return (z * GRID_SIZE) + x


@dataclass(frozen=True)
class GridBounds:
    min_x: int
    max_x: int
    min_z: int
    max_z: int

    @property
    def cell_count(self) -> int:
        if self.max_x < self.min_x or self.max_z < self.min_z:
            return 0
        return (self.max_x - self.min_x + 1) * (self.max_z - self.min_z + 1)

    def cells(self) -> Iterator[tuple[int, int]]:
        """Yield (z, x) pairs, z outer and x inner, both inclusive."""
        for z in range(self.min_z, self.max_z + 1):
            for x in range(self.min_x, self.max_x + 1):
                yield z, x


def grid_bounds_for_range(center: Vector3, radius: float) -> GridBounds:
    """Clamped bounding box in grid cells around ``center`` on the X and Z axes."""
    return GridBounds(
        min_x=max(grid_coordinate(center.x - radius), 0),
        max_x=min(grid_coordinate(center.x + radius), GRID_MAX_INDEX),
        min_z=max(grid_coordinate(center.z - radius), 0),
        max_z=min(grid_coordinate(center.z + radius), GRID_MAX_INDEX),
    )
