"""
Navigation package for altitude-aware route planning.

- navigation_grid: obstacle occupancy and height grid
- pathfinder: A* search with altitude-change penalty
- waypoint_navigator: multi-waypoint route stitching
"""

from .navigation_grid import (
    GridCell,
    NavigationGrid,
    ObstacleFootprint,
    SearchInProgressError,
    SearchScratch,
)
from .pathfinder import Path, PathResult, PathStatus, Pathfinder, Point3, as_point
from .waypoint_navigator import WaypointNavigator

__all__ = [
    # navigation_grid
    'GridCell',
    'NavigationGrid',
    'ObstacleFootprint',
    'SearchInProgressError',
    'SearchScratch',
    # pathfinder
    'Path',
    'PathResult',
    'PathStatus',
    'Pathfinder',
    'Point3',
    'as_point',
    # waypoint_navigator
    'WaypointNavigator',
]
