"""
Navigation Grid for altitude-aware path planning.

Discretizes the world XZ plane into square cells and stores, for every cell,
whether an obstacle covers it and the tallest obstacle top found there.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ObstacleFootprint:
    """Axis-aligned obstacle footprint on the XZ plane with its top height."""
    min_x: float
    max_x: float
    min_z: float
    max_z: float
    top_y: float

    @classmethod
    def from_center(cls, x: float, z: float, width: float, depth: float,
                    height: float, base_y: float = 0.0) -> "ObstacleFootprint":
        """Build a footprint from a box center, size and base level."""
        return cls(
            min_x=x - width / 2.0,
            max_x=x + width / 2.0,
            min_z=z - depth / 2.0,
            max_z=z + depth / 2.0,
            top_y=base_y + height,
        )

    def intersects_box(self, box_min: np.ndarray, box_max: np.ndarray,
                       ground_level: float = 0.0) -> bool:
        """
        Check overlap against a 3D box given as (x, y, z) corners.

        The obstacle volume spans from ground level to its top. Touching
        faces count as an intersection.
        """
        return not (
            box_max[0] < self.min_x or box_min[0] > self.max_x or
            box_max[1] < ground_level or box_min[1] > self.top_y or
            box_max[2] < self.min_z or box_min[2] > self.max_z
        )


@dataclass(frozen=True)
class GridCell:
    """Read-only view of a single grid cell."""
    i: int
    j: int
    world_x: float
    world_z: float
    is_obstacle: bool
    max_obstacle_height: float


class SearchInProgressError(RuntimeError):
    """Raised when a second search tries to use a grid's scratch records."""


class SearchScratch:
    """
    Per-cell A* working records, indexed by linear cell id.

    Allocated once per grid and cleared at the start of every search. Only
    one search may hold the records at a time.
    """

    def __init__(self, cell_count: int):
        self.cell_count = cell_count
        self.g_cost = np.empty(cell_count, dtype=float)
        self.h_cost = np.empty(cell_count, dtype=float)
        self.f_cost = np.empty(cell_count, dtype=float)
        self.parent = np.empty(cell_count, dtype=np.int64)
        self.fly_y = np.empty(cell_count, dtype=float)
        self.in_use = False
        self.reset()

    def reset(self):
        """Clear every record to its pre-search value."""
        self.g_cost.fill(np.inf)
        self.h_cost.fill(np.inf)
        self.f_cost.fill(np.inf)
        self.parent.fill(-1)
        self.fly_y.fill(0.0)

    @contextmanager
    def acquire(self) -> Iterator["SearchScratch"]:
        """Hold the records for one search, cleared on entry."""
        if self.in_use:
            raise SearchInProgressError("Grid search records are already held by another search")
        self.in_use = True
        try:
            self.reset()
            yield self
        finally:
            self.in_use = False


class NavigationGrid:
    """
    2D occupancy grid annotated with per-cell obstacle height.

    The world is centered on the origin: X spans [-width/2, width/2) and Z
    spans [-depth/2, depth/2). Dimensions are fixed at construction; only
    occupancy and height change, and only through populate_obstacles().
    """

    # Orthogonal first, then diagonal
    NEIGHBOR_OFFSETS = (
        (-1, 0), (1, 0), (0, -1), (0, 1),
        (-1, -1), (-1, 1), (1, -1), (1, 1),
    )

    def __init__(self, world_width: float, world_depth: float,
                 cell_size: float, ground_level: float = 0.0):
        """
        Initialize the grid.

        Args:
            world_width: Extent of the navigable area along X
            world_depth: Extent of the navigable area along Z
            cell_size: Edge length of one square cell
            ground_level: Base Y level of the ground
        """
        if cell_size <= 0:
            raise ValueError(f"Invalid cell size: {cell_size}. Must be > 0")

        self.world_width = float(world_width)
        self.world_depth = float(world_depth)
        self.cell_size = float(cell_size)
        self.ground_level = float(ground_level)

        self.cells_x = int(np.floor(self.world_width / self.cell_size))
        self.cells_z = int(np.floor(self.world_depth / self.cell_size))
        if self.cells_x <= 0 or self.cells_z <= 0:
            raise ValueError(
                f"World {world_width}x{world_depth} is smaller than one cell of size {cell_size}"
            )

        self.logger = logging.getLogger("NavigationGrid")

        # Cell centers, never modified after construction
        ii, jj = np.meshgrid(np.arange(self.cells_x), np.arange(self.cells_z), indexing='ij')
        self._center_x = (ii + 0.5) * self.cell_size - self.world_width / 2.0
        self._center_z = (jj + 0.5) * self.cell_size - self.world_depth / 2.0
        self._center_x.setflags(write=False)
        self._center_z.setflags(write=False)

        self.is_obstacle = np.zeros((self.cells_x, self.cells_z), dtype=bool)
        self.max_obstacle_height = np.full((self.cells_x, self.cells_z), self.ground_level)

        self.scratch = SearchScratch(self.cell_count)

    @property
    def cell_count(self) -> int:
        return self.cells_x * self.cells_z

    def in_bounds(self, i: int, j: int) -> bool:
        return 0 <= i < self.cells_x and 0 <= j < self.cells_z

    def linear_index(self, i: int, j: int) -> int:
        """Linear cell id used by the search records."""
        return i * self.cells_z + j

    def grid_index(self, cell_id: int) -> Tuple[int, int]:
        return divmod(int(cell_id), self.cells_z)

    def world_to_grid(self, x: float, z: float) -> Optional[Tuple[int, int]]:
        """Convert world coordinates to grid indices, None if outside the grid."""
        i = int(np.floor((x + self.world_width / 2.0) / self.cell_size))
        j = int(np.floor((z + self.world_depth / 2.0) / self.cell_size))
        if self.in_bounds(i, j):
            return i, j
        return None

    def grid_to_world(self, i: int, j: int) -> Optional[Tuple[float, float]]:
        """Convert grid indices to the world coordinates of the cell center."""
        if not self.in_bounds(i, j):
            return None
        return float(self._center_x[i, j]), float(self._center_z[i, j])

    def cell(self, i: int, j: int) -> Optional[GridCell]:
        if not self.in_bounds(i, j):
            return None
        return GridCell(
            i=i,
            j=j,
            world_x=float(self._center_x[i, j]),
            world_z=float(self._center_z[i, j]),
            is_obstacle=bool(self.is_obstacle[i, j]),
            max_obstacle_height=float(self.max_obstacle_height[i, j]),
        )

    def populate_obstacles(self, footprints: Iterable[ObstacleFootprint]):
        """
        Rebuild occupancy and height from a complete obstacle list.

        Every cell whose index range overlaps a footprint's rectangle is
        marked as an obstacle, even when only partially covered. Cell heights
        take the tallest overlapping obstacle.

        Args:
            footprints: All obstacles in the world
        """
        self.is_obstacle.fill(False)
        self.max_obstacle_height.fill(self.ground_level)

        marked = 0
        for footprint in footprints:
            i_min = int(np.floor((footprint.min_x + self.world_width / 2.0) / self.cell_size))
            i_max = int(np.floor((footprint.max_x + self.world_width / 2.0) / self.cell_size))
            j_min = int(np.floor((footprint.min_z + self.world_depth / 2.0) / self.cell_size))
            j_max = int(np.floor((footprint.max_z + self.world_depth / 2.0) / self.cell_size))

            # Clamp to grid boundaries
            i_min = max(0, i_min)
            j_min = max(0, j_min)
            i_max = min(self.cells_x - 1, i_max)
            j_max = min(self.cells_z - 1, j_max)
            if i_min > i_max or j_min > j_max:
                continue

            self.is_obstacle[i_min:i_max + 1, j_min:j_max + 1] = True
            region = self.max_obstacle_height[i_min:i_max + 1, j_min:j_max + 1]
            np.maximum(region, footprint.top_y, out=region)
            marked += 1

        self.logger.info(
            f"Navigation grid populated: {marked} obstacles, "
            f"{int(self.is_obstacle.sum())}/{self.cell_count} cells blocked"
        )

    def neighbors(self, i: int, j: int) -> List[Tuple[int, int]]:
        """Get in-bounds, obstacle-free cells adjacent to (i, j) (8-connected)."""
        result = []
        for di, dj in self.NEIGHBOR_OFFSETS:
            ni, nj = i + di, j + dj
            if self.in_bounds(ni, nj) and not self.is_obstacle[ni, nj]:
                result.append((ni, nj))
        return result
