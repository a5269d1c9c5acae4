"""
Simulation Session: top-level owner of the grid and the fleet.

Drives the tick loop with a capped step size, turns per-tick command maps
into InputState values, and handles the autonomous-mode toggle for the
active agent.
"""

import logging
from pathlib import Path as FilePath
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from fleet.fleet_coordinator import FleetCoordinator
from fleet.formation import FormationPattern
from flight.agent import AgentSnapshot
from flight.input_state import Command, InputState, NO_INPUT
from flight.steering_controller import PhysicsParameters
from navigation.navigation_grid import NavigationGrid, ObstacleFootprint
from navigation.pathfinder import Path
from .config import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH, load_config, merge_config, obstacles_from_config


class SimulationSession:
    """
    One simulation run.

    Owns the NavigationGrid for its whole lifetime and the FleetCoordinator
    with its agents. Single-threaded: at most one path search runs at a time.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the session.

        Args:
            config: Configuration dictionary, merged over DEFAULT_CONFIG
        """
        self.config = merge_config(DEFAULT_CONFIG, config or {})
        self.logger = logging.getLogger("SimulationSession")

        world = self.config['world']
        self.grid = NavigationGrid(
            world['width'], world['depth'], world['cell_size'], world['ground_level']
        )
        self.obstacles = obstacles_from_config(self.config['obstacles'])
        self.grid.populate_obstacles(self.obstacles)

        sim = self.config['simulation']
        self.max_step = float(sim['max_step'])
        self.tick_rate = float(sim['tick_rate'])
        self.duration = float(sim['duration'])

        navigation = self.config['navigation']
        fleet_config = self.config['fleet']
        self.fleet = FleetCoordinator(
            grid=self.grid,
            obstacles=self.obstacles,
            formation_pattern=FormationPattern(fleet_config['formation_pattern']),
            formation_spacing=float(fleet_config['formation_spacing']),
            physics=PhysicsParameters.from_config(self.config['physics']),
            rng=np.random.default_rng(sim.get('seed')),
            safety_margin=float(navigation['safety_margin']),
            altitude_penalty=float(navigation['altitude_penalty']),
        )
        for agent_config in fleet_config['agents']:
            self.fleet.add_agent(agent_config.get('name'),
                                 agent_config.get('position', (0.0, 10.0, 0.0)))

        self.mission_waypoints = [tuple(float(v) for v in waypoint)
                                  for waypoint in self.config['mission']['waypoints']]

        self.elapsed = 0.0
        self.tick_count = 0
        self._previous_inputs = NO_INPUT

        self.logger.info(
            f"Session ready: grid {self.grid.cells_x}x{self.grid.cells_z}, "
            f"{len(self.obstacles)} obstacles, {len(self.fleet.agents)} agents"
        )

    @classmethod
    def from_file(cls, config_path: Union[str, FilePath] = DEFAULT_CONFIG_PATH) -> "SimulationSession":
        return cls(load_config(config_path))

    def start(self):
        """Start flying every agent."""
        self.fleet.start_all()

    def set_obstacles(self, obstacles: Sequence[ObstacleFootprint]):
        """Replace the obstacle set: full grid repopulation plus new collision volumes."""
        self.obstacles = list(obstacles)
        self.grid.populate_obstacles(self.obstacles)
        self.fleet.set_obstacles(self.obstacles)

    def toggle_autonomous(self) -> bool:
        """
        Toggle autonomous flight on the active agent.

        Turning it on assigns the configured mission first.

        Returns:
            True if the active agent is autonomous after the call
        """
        agent = self.fleet.get_active()
        if agent is None:
            self.logger.warning("No active agent to toggle autonomous mode")
            return False

        if not agent.is_autonomous:
            agent.set_waypoints(self.mission_waypoints)
        return agent.toggle_autonomous()

    def step(self, elapsed: float, commands: Union[InputState, Mapping[str, bool], None] = None) -> List[AgentSnapshot]:
        """
        Advance the simulation by one tick.

        Args:
            elapsed: Wall time since the previous tick; capped at max_step
            commands: Commands held this tick, as an InputState or a name -> bool map

        Returns:
            Snapshot of every agent after the tick
        """
        dt = min(self.max_step, max(0.0, elapsed))
        inputs = commands if isinstance(commands, InputState) else InputState.from_mapping(commands)

        if inputs.pressed_since(self._previous_inputs, Command.TOGGLE_AUTONOMOUS):
            self.toggle_autonomous()
        self._previous_inputs = inputs

        self.fleet.update(dt, inputs)

        self.elapsed += dt
        self.tick_count += 1
        return self.fleet.snapshots()

    def run(self, ticks: Optional[int] = None, dt: Optional[float] = None,
            commands: Union[InputState, Mapping[str, bool], None] = None) -> List[AgentSnapshot]:
        """
        Run a fixed-step headless loop.

        Args:
            ticks: Number of ticks (configured duration x tick rate if omitted)
            dt: Tick length in seconds (1 / tick rate if omitted)
            commands: Commands held on every tick

        Returns:
            Snapshots after the final tick
        """
        dt = 1.0 / self.tick_rate if dt is None else dt
        if ticks is None:
            ticks = int(round(self.duration * self.tick_rate))
        log_every = max(1, int(round(1.0 / dt))) if dt > 0 else 1

        snapshots = self.fleet.snapshots()
        for tick in range(ticks):
            snapshots = self.step(dt, commands)
            if tick % log_every == 0:
                self._log_dashboard()
        return snapshots

    def active_path(self) -> Optional[Path]:
        """Path of the active agent's current leg, for visualization."""
        agent = self.fleet.get_active()
        if agent is None:
            return None
        return agent.current_path

    def dashboard(self) -> Optional[Dict[str, float]]:
        """Dashboard values of the active agent."""
        agent = self.fleet.get_active()
        if agent is None:
            return None
        return agent.snapshot().dashboard()

    def _log_dashboard(self):
        values = self.dashboard()
        agent = self.fleet.get_active()
        if values is None:
            return
        self.logger.info(
            f"[t={self.elapsed:5.1f}s] {agent.name} ({agent.effective_mode.value}) "
            f"alt={values['altitude']:.1f} speed={values['speed']:.1f} "
            f"heading={values['heading']:.1f} tilt={values['tilt']:.1f}"
        )


def main():
    """Main entry point for a headless demo run."""
    import sys

    # Configure root logger
    logging.basicConfig(
        level=logging.INFO,
        format='[%(asctime)s] %(name)s - %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    # Determine config path
    if len(sys.argv) > 1:
        config_path = sys.argv[1]
    else:
        config_path = DEFAULT_CONFIG_PATH

    session = SimulationSession.from_file(config_path)
    session.start()
    session.fleet.set_formation_mode(True)
    session.toggle_autonomous()
    session.run()


if __name__ == "__main__":
    main()
