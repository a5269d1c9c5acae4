"""
Fleet Coordinator for managing multiple simulated drones.

This module owns the set of agents, tracks which one is the active
(manually controlled) leader, and drives followers into formation slots
computed from the leader's pose.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from flight.agent import Agent, AgentSnapshot
from flight.input_state import Command, InputState, NO_INPUT, SELECT_COMMANDS
from flight.steering_controller import PhysicsParameters, SteeringController
from navigation.navigation_grid import NavigationGrid, ObstacleFootprint
from navigation.pathfinder import Pathfinder
from navigation.waypoint_navigator import WaypointNavigator
from .formation import FormationController, FormationPattern, FormationTarget


class FleetCoordinator:
    """
    Coordinator for a fleet of drones.

    Handles agent creation and removal, leader selection, formation mode
    and per-tick updates. The leader's state is only read here, never
    mutated on behalf of followers.
    """

    def __init__(
        self,
        grid: Optional[NavigationGrid] = None,
        obstacles: Sequence[ObstacleFootprint] = (),
        formation_pattern: FormationPattern = FormationPattern.V,
        formation_spacing: float = 5.0,
        physics: Optional[PhysicsParameters] = None,
        rng: Optional[np.random.Generator] = None,
        safety_margin: float = Pathfinder.DEFAULT_SAFETY_MARGIN,
        altitude_penalty: float = Pathfinder.DEFAULT_ALTITUDE_PENALTY,
    ):
        """
        Initialize fleet coordinator.

        Args:
            grid: Shared navigation grid
            obstacles: Obstacle volumes for collision checks
            formation_pattern: Initial formation pattern
            formation_spacing: Distance between formation slots
            physics: Flight model constants shared by all agents
            rng: Random source shared by all agents' controllers
            safety_margin: Clearance above obstacles for planned paths
            altitude_penalty: Altitude-change cost factor for planned paths
        """
        self.grid = grid
        self.obstacles: List[ObstacleFootprint] = list(obstacles)
        self.physics = physics or PhysicsParameters()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.safety_margin = safety_margin
        self.altitude_penalty = altitude_penalty
        self.navigator = WaypointNavigator(Pathfinder(), grid) if grid is not None else None

        self.formation = FormationController(formation_pattern, formation_spacing)
        self.formation_mode = False

        self.agents: List[Agent] = []
        self.active_index = -1
        self._previous_inputs = NO_INPUT

        self.logger = logging.getLogger("FleetCoordinator")

    # --- Fleet membership ---

    def add_agent(self, name: Optional[str] = None,
                  position: Sequence[float] = (0.0, 10.0, 0.0)) -> int:
        """
        Create a new agent.

        The first agent added becomes the active one.

        Returns:
            Index of the new agent
        """
        agent = Agent(
            name=name or f"Drone {len(self.agents) + 1}",
            position=position,
            grid=self.grid,
            controller=SteeringController(self.physics, self.rng),
            navigator=self.navigator,
            obstacles=self.obstacles,
            safety_margin=self.safety_margin,
            altitude_penalty=self.altitude_penalty,
        )
        self.agents.append(agent)
        self.logger.info(f"Added agent '{agent.name}' at {tuple(position)}")

        if len(self.agents) == 1 and self.active_index == -1:
            self.set_active(0)

        return len(self.agents) - 1

    def remove_agent(self, index: int) -> bool:
        """
        Remove an agent.

        Returns:
            Whether the operation was successful
        """
        if index < 0 or index >= len(self.agents):
            self.logger.warning(f"Cannot remove unknown agent index {index}")
            return False

        removed = self.agents.pop(index)
        self.logger.info(f"Removed agent '{removed.name}'")

        if self.active_index == index:
            if self.agents:
                self.active_index = min(index, len(self.agents) - 1)
                self.agents[self.active_index].set_active(True)
            else:
                self.active_index = -1
        elif self.active_index > index:
            self.active_index -= 1

        return True

    def set_active(self, index: int) -> bool:
        """
        Select the active (leader) agent.

        The new leader leaves formation; the previous leader rejoins the
        followers on the next update if formation mode is on.
        """
        if index < 0 or index >= len(self.agents) or index == self.active_index:
            return False

        current = self.get_active()
        if current is not None:
            current.set_active(False)

        self.active_index = index
        self.agents[index].set_active(True)
        self.logger.info(f"Active agent: '{self.agents[index].name}'")
        return True

    def get_active(self) -> Optional[Agent]:
        if self.active_index == -1:
            return None
        return self.agents[self.active_index]

    def set_obstacles(self, obstacles: Sequence[ObstacleFootprint]):
        """Replace the collision set for every agent."""
        self.obstacles = list(obstacles)
        for agent in self.agents:
            agent.obstacles = self.obstacles

    # --- Formation ---

    def set_formation_mode(self, enabled: bool):
        """Engage or release formation following for all non-leader agents."""
        self.formation_mode = enabled
        self.logger.info(f"Formation mode {'on' if enabled else 'off'}")

        if enabled:
            self._engage_followers()
        else:
            for agent in self.agents:
                agent.exit_formation("formation mode off")

    def set_formation_pattern(self, pattern: FormationPattern):
        self.formation.set_pattern(pattern)

    def cycle_formation_pattern(self) -> FormationPattern:
        self.formation.set_pattern(self.formation.pattern.next())
        return self.formation.pattern

    def formation_targets(self) -> List[FormationTarget]:
        """Compute world-space slots for every follower from the leader's pose."""
        leader = self.get_active()
        if not self.formation_mode or leader is None or len(self.agents) <= 1:
            return []

        follower_indices = [i for i in range(len(self.agents)) if i != self.active_index]
        return self.formation.compute_targets(
            leader.state.position, leader.state.heading, follower_indices
        )

    def _engage_followers(self):
        for index, agent in enumerate(self.agents):
            if index != self.active_index and agent.is_flying and not agent.in_formation:
                agent.enter_formation("formation mode on")

    # --- Per-tick update ---

    def start_all(self):
        """Start flying every agent."""
        for agent in self.agents:
            agent.start_flying()

    def update(self, dt: float, inputs: InputState = NO_INPUT):
        """
        Advance every agent by one tick.

        Args:
            dt: Tick length in seconds
            inputs: Commands held this tick; applied to the active agent
        """
        if not self.agents:
            return

        for index, command in enumerate(SELECT_COMMANDS[:len(self.agents)]):
            if inputs.is_held(command):
                self.set_active(index)
                break

        if inputs.pressed_since(self._previous_inputs, Command.TOGGLE_FORMATION):
            self.set_formation_mode(not self.formation_mode)
        if inputs.pressed_since(self._previous_inputs, Command.CYCLE_PATTERN):
            self.cycle_formation_pattern()
        self._previous_inputs = inputs

        active = self.get_active()
        if active is not None:
            active.update(dt, inputs)

        if self.formation_mode and len(self.agents) > 1:
            self._engage_followers()
            for target in self.formation_targets():
                follower = self.agents[target.agent_index]
                if follower.in_formation:
                    follower.follow_formation(target.position, target.heading, dt)
                else:
                    follower.update(dt, NO_INPUT)
        else:
            for index, agent in enumerate(self.agents):
                if index != self.active_index:
                    agent.update(dt, NO_INPUT)

    def snapshots(self) -> List[AgentSnapshot]:
        return [agent.snapshot() for agent in self.agents]
