"""
Altitude-aware A* Pathfinder.

Searches a NavigationGrid for a route between two world points. The cost of
each step is the planar move length plus a penalty proportional to the change
in planned flight altitude, so routes prefer staying at one height over
repeatedly climbing over obstacles.
"""

import heapq
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence, Tuple

from .navigation_grid import NavigationGrid, SearchScratch


class Point3(NamedTuple):
    """A 3D world point (Y is up)."""
    x: float
    y: float
    z: float


Path = Tuple[Point3, ...]


def as_point(value: Sequence[float]) -> Point3:
    """Coerce any 3-element sequence (tuple, list, numpy array) to a Point3."""
    return Point3(float(value[0]), float(value[1]), float(value[2]))


class PathStatus(Enum):
    """Outcome of a planning request."""
    FOUND = "found"
    OUT_OF_BOUNDS = "out_of_bounds"
    BLOCKED_ENDPOINT = "blocked_endpoint"
    UNREACHABLE = "unreachable"
    EMPTY_MISSION = "empty_mission"


@dataclass(frozen=True)
class PathResult:
    """Planning outcome: the path when one exists, and why it is missing otherwise."""
    status: PathStatus
    path: Optional[Path] = None
    expanded: int = 0

    @property
    def ok(self) -> bool:
        return self.path is not None


class Pathfinder:
    """
    Stateless A* search service.

    Holds no per-search state of its own; the working records live in the
    grid's SearchScratch and are cleared at the start of every search.
    """

    DEFAULT_SAFETY_MARGIN = 1.0
    DEFAULT_ALTITUDE_PENALTY = 1.5

    def __init__(self):
        self.logger = logging.getLogger("Pathfinder")

    def find_path(self, grid: NavigationGrid, start: Sequence[float], end: Sequence[float],
                  safety_margin: float = DEFAULT_SAFETY_MARGIN,
                  altitude_penalty: float = DEFAULT_ALTITUDE_PENALTY) -> Optional[Path]:
        """
        Find a path from start to end.

        Args:
            grid: Navigation grid to search
            start: (x, y, z) start position in world coordinates
            end: (x, y, z) goal position in world coordinates
            safety_margin: Minimum clearance to keep above obstacle tops
            altitude_penalty: Cost factor applied to altitude changes

        Returns:
            Tuple of 3D points from start cell to goal cell, or None if no path found
        """
        return self.search(grid, start, end, safety_margin, altitude_penalty).path

    def search(self, grid: NavigationGrid, start: Sequence[float], end: Sequence[float],
               safety_margin: float = DEFAULT_SAFETY_MARGIN,
               altitude_penalty: float = DEFAULT_ALTITUDE_PENALTY) -> PathResult:
        """Same as find_path() but reports the failure kind."""
        start_time = time.time()
        start = as_point(start)
        end = as_point(end)

        start_idx = grid.world_to_grid(start.x, start.z)
        end_idx = grid.world_to_grid(end.x, end.z)

        if start_idx is None or end_idx is None:
            self.logger.warning(f"Start {tuple(start)} or goal {tuple(end)} is out of grid bounds")
            return PathResult(PathStatus.OUT_OF_BOUNDS)

        if grid.is_obstacle[start_idx] or grid.is_obstacle[end_idx]:
            self.logger.warning(f"Start {tuple(start)} or goal {tuple(end)} is inside an obstacle cell")
            return PathResult(PathStatus.BLOCKED_ENDPOINT)

        with grid.scratch.acquire() as scratch:
            goal_id, expanded = self._astar(grid, scratch, start_idx, end_idx, start, end,
                                            safety_margin, altitude_penalty)
            if goal_id is None:
                self.logger.warning(
                    f"No path found from {tuple(start)} to {tuple(end)} ({expanded} cells expanded)"
                )
                return PathResult(PathStatus.UNREACHABLE, expanded=expanded)

            path = self._reconstruct_path(grid, scratch, goal_id, end.y, safety_margin)

        elapsed = (time.time() - start_time) * 1000
        self.logger.debug(f"Path planning took {elapsed:.1f}ms, {expanded} cells expanded, {len(path)} points")
        return PathResult(PathStatus.FOUND, path=path, expanded=expanded)

    def _astar(self, grid: NavigationGrid, scratch: SearchScratch,
               start_idx: Tuple[int, int], end_idx: Tuple[int, int],
               start: Point3, end: Point3,
               safety_margin: float, altitude_penalty: float) -> Tuple[Optional[int], int]:
        """
        A* over grid indices.

        Returns:
            (goal cell id or None, number of expanded cells)
        """
        start_id = grid.linear_index(*start_idx)
        goal_id = grid.linear_index(*end_idx)
        goal_x, goal_z = grid.grid_to_world(*end_idx)

        end_fly_y = max(end.y, grid.max_obstacle_height[end_idx] + safety_margin)

        scratch.g_cost[start_id] = 0.0
        scratch.fly_y[start_id] = max(start.y, grid.max_obstacle_height[start_idx] + safety_margin)
        scratch.h_cost[start_id] = self._heuristic(grid, start_idx, scratch.fly_y[start_id],
                                                   goal_x, goal_z, end_fly_y)
        scratch.f_cost[start_id] = scratch.g_cost[start_id] + scratch.h_cost[start_id]

        # Priority queue: (f_cost, first insertion order, cell id). Cells keep
        # their first insertion order when re-queued with a better cost.
        insertion_order = {start_id: 0}
        open_set = [(scratch.f_cost[start_id], 0, start_id)]
        closed_set = set()
        diagonal_cost = grid.cell_size * math.sqrt(2.0)

        while open_set:
            current_f, _, current = heapq.heappop(open_set)

            # Skip stale queue entries
            if current in closed_set or current_f > scratch.f_cost[current]:
                continue

            if current == goal_id:
                return current, len(closed_set)

            closed_set.add(current)
            ci, cj = grid.grid_index(current)

            for ni, nj in grid.neighbors(ci, cj):
                neighbor = grid.linear_index(ni, nj)
                if neighbor in closed_set:
                    continue

                # All intermediate cells aim for the destination height
                neighbor_fly_y = max(end.y, grid.max_obstacle_height[ni, nj] + safety_margin)
                scratch.fly_y[neighbor] = neighbor_fly_y

                move_cost = diagonal_cost if (ni != ci and nj != cj) else grid.cell_size
                altitude_change = abs(neighbor_fly_y - scratch.fly_y[current])
                tentative_g = scratch.g_cost[current] + move_cost + altitude_change * altitude_penalty

                if tentative_g < scratch.g_cost[neighbor]:
                    scratch.parent[neighbor] = current
                    scratch.g_cost[neighbor] = tentative_g
                    scratch.h_cost[neighbor] = self._heuristic(grid, (ni, nj), neighbor_fly_y,
                                                               goal_x, goal_z, end_fly_y)
                    scratch.f_cost[neighbor] = tentative_g + scratch.h_cost[neighbor]

                    if neighbor not in insertion_order:
                        insertion_order[neighbor] = len(insertion_order)
                    heapq.heappush(open_set, (scratch.f_cost[neighbor], insertion_order[neighbor], neighbor))

        return None, len(closed_set)

    @staticmethod
    def _heuristic(grid: NavigationGrid, idx: Tuple[int, int], fly_y: float,
                   goal_x: float, goal_z: float, goal_fly_y: float) -> float:
        """3D Euclidean distance between a cell at its flight altitude and the goal."""
        x, z = grid.grid_to_world(*idx)
        return math.sqrt((goal_x - x) ** 2 + (goal_fly_y - fly_y) ** 2 + (goal_z - z) ** 2)

    @staticmethod
    def _reconstruct_path(grid: NavigationGrid, scratch: SearchScratch, goal_id: int,
                          target_y: float, safety_margin: float) -> Path:
        """Walk parent links back to the start, placing every node at the target's flight altitude."""
        points = []
        current = goal_id
        while current != -1:
            i, j = grid.grid_index(current)
            x, z = grid.grid_to_world(i, j)
            fly_y = max(target_y, float(grid.max_obstacle_height[i, j]) + safety_margin)
            points.append(Point3(x, fly_y, z))
            current = int(scratch.parent[current])
        points.reverse()
        return tuple(points)
