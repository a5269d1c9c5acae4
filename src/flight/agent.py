"""
Flight agent: one simulated drone with its mission and flight mode.

Composes the kinematic state, the steering controller, the mode state
machine and the mission (waypoint queue plus the active leg's path).
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from navigation.navigation_grid import NavigationGrid, ObstacleFootprint
from navigation.pathfinder import Path, PathStatus, Pathfinder, Point3, as_point
from navigation.waypoint_navigator import WaypointNavigator
from .input_state import Command, InputState, NO_INPUT
from .modes import FlightMode, ModeStateMachine
from .steering_controller import KinematicState, SteeringController


@dataclass(frozen=True)
class AgentSnapshot:
    """Per-tick view of an agent for rendering and dashboards."""
    name: str
    position: Tuple[float, float, float]
    heading: float
    tilt: Tuple[float, float]
    crashed: bool
    mode: FlightMode
    is_active: bool
    speed: float
    tilt_magnitude: float
    path: Optional[Path] = None

    @property
    def altitude(self) -> float:
        return self.position[1]

    def dashboard(self) -> Dict[str, float]:
        """Scalar values shown on the flight dashboard."""
        return {
            'altitude': self.altitude,
            'speed': self.speed,
            'heading': self.heading,
            'tilt': self.tilt_magnitude,
        }


class Agent:
    """
    A single simulated drone.

    Features:
    - Manual flight from discrete input commands
    - Autonomous flight along planned paths, one mission waypoint per leg
    - Formation following when driven by the fleet coordinator
    - Obstacle collision with a sticky crashed state until reset
    """

    DEFAULT_HALF_EXTENTS = (1.0, 0.25, 1.0)

    def __init__(
        self,
        name: str,
        position: Sequence[float] = (0.0, 10.0, 0.0),
        grid: Optional[NavigationGrid] = None,
        controller: Optional[SteeringController] = None,
        navigator: Optional[WaypointNavigator] = None,
        obstacles: Sequence[ObstacleFootprint] = (),
        safety_margin: float = Pathfinder.DEFAULT_SAFETY_MARGIN,
        altitude_penalty: float = Pathfinder.DEFAULT_ALTITUDE_PENALTY,
        half_extents: Sequence[float] = DEFAULT_HALF_EXTENTS,
    ):
        """
        Initialize the agent.

        Args:
            name: Display name, also used in log records
            position: Initial (x, y, z) position
            grid: Navigation grid for path planning (None disables autonomy)
            controller: Steering controller (default parameters if omitted)
            navigator: Route planner (built on the grid if omitted)
            obstacles: Obstacle volumes for collision checks
            safety_margin: Clearance above obstacle tops for planned paths
            altitude_penalty: Altitude-change cost factor for planned paths
            half_extents: Half size of the agent's bounding box (x, y, z)
        """
        self.name = name
        self.state = KinematicState(position)
        self.controller = controller or SteeringController()
        self.grid = grid
        if navigator is None and grid is not None:
            navigator = WaypointNavigator(Pathfinder(), grid)
        self.navigator = navigator
        self.obstacles: List[ObstacleFootprint] = list(obstacles)
        self.safety_margin = safety_margin
        self.altitude_penalty = altitude_penalty
        self.half_extents = tuple(half_extents)

        self.modes = ModeStateMachine(name)
        self.is_active = False
        self.sim_time = 0.0

        # Mission
        self.waypoints: List[Point3] = []
        self.current_waypoint_index = -1
        self.current_path: Optional[Path] = None
        self.path_node_index = -1
        self.last_plan_status: Optional[PathStatus] = None

        self.logger = logging.getLogger(f"Agent.{name}")

    @property
    def mode(self) -> FlightMode:
        return self.modes.current_mode

    @property
    def effective_mode(self) -> FlightMode:
        """Mode as reported to collaborators; a crash overrides everything."""
        return FlightMode.CRASHED if self.state.crashed else self.modes.current_mode

    @property
    def is_flying(self) -> bool:
        return self.mode != FlightMode.IDLE

    @property
    def is_autonomous(self) -> bool:
        return self.mode == FlightMode.AUTONOMOUS

    @property
    def in_formation(self) -> bool:
        return self.mode == FlightMode.FORMATION

    @property
    def remaining_waypoints(self) -> List[Point3]:
        return self.waypoints[max(self.current_waypoint_index, 0):]

    @property
    def current_target(self) -> Optional[Point3]:
        """Path node currently steered toward, if any."""
        if self.current_path is None or self.path_node_index < 0:
            return None
        return self.current_path[self.path_node_index]

    @property
    def ground_level(self) -> float:
        return self.grid.ground_level if self.grid is not None else 0.0

    def start_flying(self) -> bool:
        if self.is_flying:
            return False
        return self.modes.transition_to(FlightMode.MANUAL, "flight start")

    def set_active(self, is_active: bool):
        """Mark this agent as the fleet's manually controlled leader."""
        self.is_active = is_active
        if is_active and self.in_formation:
            self.exit_formation("selected as leader")

    # --- Per-tick updates ---

    def update(self, dt: float, inputs: InputState = NO_INPUT):
        """
        Advance one tick in manual or autonomous mode.

        Args:
            dt: Tick length in seconds
            inputs: Commands held this tick (only used in manual mode)
        """
        if not self.is_flying:
            return

        self.sim_time += dt

        if inputs.is_held(Command.RESET):
            self.reset()

        if self.is_autonomous:
            self._update_autonomous(dt)
        else:
            self.controller.update(self.state, dt, inputs, sim_time=self.sim_time)

        self._check_collision()

    def follow_formation(self, target_position: Sequence[float], target_heading: float, dt: float):
        """Advance one tick toward a formation slot computed by the fleet."""
        if not self.in_formation:
            return

        self.sim_time += dt
        self.controller.follow_formation(self.state, target_position, target_heading, dt)
        self._check_collision()

    def _update_autonomous(self, dt: float):
        if self.current_waypoint_index >= len(self.waypoints):
            self.logger.info("All waypoints reached")
            self.exit_autonomous("mission complete")
            self.controller.update(self.state, dt, NO_INPUT, sim_time=self.sim_time)
            return

        if self.current_path is None:
            # A failed leg is not retried until autonomy is re-requested
            if self.last_plan_status in (None, PathStatus.FOUND):
                self._plan_current_leg()
            if self.current_path is None:
                self.controller.update(self.state, dt, NO_INPUT, sim_time=self.sim_time)
                return

        target = self.current_path[self.path_node_index]
        self.controller.update(self.state, dt, target=target, sim_time=self.sim_time)

        if not self.state.crashed and self.controller.has_reached(self.state, target):
            self._advance_path_node()

    def _advance_path_node(self):
        self.path_node_index += 1
        if self.path_node_index < len(self.current_path):
            return

        self.logger.info(f"Reached waypoint {self.current_waypoint_index}")
        self.current_waypoint_index += 1
        self._clear_path()

        if self.current_waypoint_index >= len(self.waypoints):
            self.logger.info("All waypoints completed")
            self.exit_autonomous("mission complete")

    def _check_collision(self):
        if self.controller.check_collision(self.state, self.obstacles,
                                           self.half_extents, self.ground_level):
            self.logger.warning(f"Crashed at {self.state.position.round(2).tolist()}")

    # --- Mission and mode management ---

    def set_waypoints(self, waypoints: Sequence[Sequence[float]]):
        """
        Replace the mission.

        Progress is reset; if already autonomous, the first leg is planned
        immediately.
        """
        self.waypoints = [as_point(waypoint) for waypoint in waypoints]
        self.current_waypoint_index = 0
        self._clear_path()
        self.last_plan_status = None
        self.logger.info(f"Waypoints set: {len(self.waypoints)}")

        if self.is_autonomous and self.waypoints:
            self._plan_current_leg()

    def enter_autonomous(self, reason: str = "requested") -> bool:
        if not self.remaining_waypoints:
            self.logger.warning("Cannot enter autonomous mode without queued waypoints")
            return False

        if not self.modes.transition_to(FlightMode.AUTONOMOUS, reason):
            return False

        self.last_plan_status = None
        if self.current_path is None:
            self._plan_current_leg()
        return True

    def exit_autonomous(self, reason: str = "requested", to_mode: FlightMode = FlightMode.MANUAL) -> bool:
        """Leave autonomous mode, discarding the current path and progress immediately."""
        if not self.is_autonomous:
            return False
        if not self.modes.transition_to(to_mode, reason):
            return False
        self._clear_path()
        return True

    def toggle_autonomous(self) -> bool:
        """
        Switch autonomous mode on or off.

        Returns:
            True if the agent is autonomous after the call
        """
        if self.is_autonomous:
            self.exit_autonomous("toggled off")
        else:
            self.enter_autonomous("toggled on")
        return self.is_autonomous

    def enter_formation(self, reason: str = "requested") -> bool:
        if self.is_active:
            self.logger.warning("The active agent cannot follow a formation")
            return False
        if self.in_formation:
            return True
        if self.is_autonomous:
            return self.exit_autonomous(reason, to_mode=FlightMode.FORMATION)
        return self.modes.transition_to(FlightMode.FORMATION, reason)

    def exit_formation(self, reason: str = "requested") -> bool:
        if not self.in_formation:
            return False
        return self.modes.transition_to(FlightMode.MANUAL, reason)

    def reset(self):
        """Restore the default pose and clear a crash."""
        self.controller.reset(self.state)
        if self.is_autonomous:
            # Replan from the new position on the next tick
            self._clear_path()
            self.last_plan_status = None
        self.logger.info("Reset to default position")

    def mission_route(self) -> Optional[Path]:
        """Full route through the remaining waypoints, for visualization."""
        if self.navigator is None:
            return None
        return self.navigator.generate_path(self.state.position, self.remaining_waypoints,
                                            self.safety_margin, self.altitude_penalty)

    def _plan_current_leg(self):
        waypoint = self.waypoints[self.current_waypoint_index]

        if self.navigator is None:
            self.logger.warning("Cannot calculate path: no navigation grid")
            self.last_plan_status = PathStatus.UNREACHABLE
            return

        self.logger.info(f"Calculating path to waypoint {self.current_waypoint_index}: {tuple(waypoint)}")
        result = self.navigator.plan(self.state.position, [waypoint],
                                     self.safety_margin, self.altitude_penalty)
        self.last_plan_status = result.status

        if result.ok:
            self.current_path = result.path
            self.path_node_index = 0
            self.logger.info(f"Path found with {len(result.path)} nodes")
        else:
            self._clear_path()
            self.logger.warning(
                f"No path to waypoint {self.current_waypoint_index} ({result.status.value}), hovering"
            )

    def _clear_path(self):
        self.current_path = None
        self.path_node_index = -1

    def snapshot(self) -> AgentSnapshot:
        return AgentSnapshot(
            name=self.name,
            position=tuple(float(v) for v in self.state.position),
            heading=float(self.state.heading),
            tilt=(float(self.state.tilt[0]), float(self.state.tilt[1])),
            crashed=self.state.crashed,
            mode=self.effective_mode,
            is_active=self.is_active,
            speed=self.state.speed,
            tilt_magnitude=self.state.tilt_magnitude,
            path=self.current_path,
        )
