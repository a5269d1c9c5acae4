"""
Waypoint Navigator: stitches per-leg Pathfinder results into one route.
"""

import logging
from typing import Optional, Sequence

from .navigation_grid import NavigationGrid
from .pathfinder import Path, PathResult, PathStatus, Pathfinder, as_point


class WaypointNavigator:
    """
    Plans a continuous path through an ordered list of waypoints.

    Each leg starts where the previous leg actually ended (the snapped grid
    point, not the nominal waypoint). A single unreachable leg fails the
    whole request.
    """

    def __init__(self, pathfinder: Pathfinder, grid: NavigationGrid):
        """
        Initialize the navigator.

        Args:
            pathfinder: Search service used for every leg
            grid: Navigation grid shared by all legs
        """
        self.pathfinder = pathfinder
        self.grid = grid
        self.logger = logging.getLogger("WaypointNavigator")

    def generate_path(self, start: Sequence[float], waypoints: Sequence[Sequence[float]],
                      safety_margin: float = Pathfinder.DEFAULT_SAFETY_MARGIN,
                      altitude_penalty: float = Pathfinder.DEFAULT_ALTITUDE_PENALTY) -> Optional[Path]:
        """
        Generate a complete path visiting every waypoint in order.

        Returns:
            The stitched path, a single-point path at start when there are no
            waypoints, or None if any leg cannot be planned
        """
        return self.plan(start, waypoints, safety_margin, altitude_penalty).path

    def plan(self, start: Sequence[float], waypoints: Sequence[Sequence[float]],
             safety_margin: float = Pathfinder.DEFAULT_SAFETY_MARGIN,
             altitude_penalty: float = Pathfinder.DEFAULT_ALTITUDE_PENALTY) -> PathResult:
        """Same as generate_path() but reports the failing leg's status."""
        start = as_point(start)
        waypoints = [as_point(waypoint) for waypoint in waypoints]

        if not waypoints:
            self.logger.info("No waypoints provided, route is the start position")
            return PathResult(PathStatus.EMPTY_MISSION, path=(start,))

        full_path = []
        current_position = start
        expanded = 0

        for index, waypoint in enumerate(waypoints):
            self.logger.debug(f"Planning leg {index + 1}/{len(waypoints)}: {tuple(current_position)} -> {tuple(waypoint)}")

            leg = self.pathfinder.search(self.grid, current_position, waypoint,
                                         safety_margin, altitude_penalty)
            expanded += leg.expanded

            if not leg.ok:
                self.logger.warning(
                    f"Failed to plan leg to waypoint {index + 1} {tuple(waypoint)}: {leg.status.value}"
                )
                return PathResult(leg.status, expanded=expanded)

            # First leg kept whole; later legs drop their duplicated start point
            full_path.extend(leg.path if index == 0 else leg.path[1:])
            current_position = leg.path[-1]

        self.logger.info(f"Route generated through {len(waypoints)} waypoints: {len(full_path)} points")
        return PathResult(PathStatus.FOUND, path=tuple(full_path), expanded=expanded)
