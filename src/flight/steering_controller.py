"""
Steering Controller and simplified rigid-body physics for a single agent.

Produces heading, lift and tilt commands each tick, either toward a target
point (autonomous flight), from discrete input commands (manual flight), or
toward a formation slot, then integrates velocity with drag and ground
collision. The model is a set of tuned heuristics, not real flight dynamics.
"""

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from navigation.navigation_grid import ObstacleFootprint
from .input_state import Command, InputState, NO_INPUT


def wrap_angle(angle: float) -> float:
    """Wrap an angle in degrees to (-180, 180]."""
    wrapped = (angle + 180.0) % 360.0 - 180.0
    return 180.0 if wrapped == -180.0 else wrapped


def normalize_heading(heading: float) -> float:
    """Normalize a heading in degrees to [0, 360)."""
    return heading % 360.0


@dataclass
class PhysicsParameters:
    """Tunable constants of the flight model. Angles in degrees."""
    gravity: float = 9.8
    lift_power: float = 6.0
    manual_lift_multiplier: float = 4.5
    max_tilt: float = 30.0
    rotation_speed: float = 1.0
    movement_speed: float = 25.0
    drag_factor: float = 0.95
    vertical_drag_factor: float = 0.97
    min_altitude: float = 1.0
    arrival_threshold: float = 1.5
    arrival_tolerance: float = 0.1
    autonomous_turn_limit: float = 2.0
    autonomous_turn_gain: float = 50.0
    vertical_gain: float = 5.0
    vertical_deadband: float = 0.2
    vertical_damping: float = 0.8
    cruise_speed_factor: float = 0.03
    creep_fraction: float = 0.2
    horizontal_damping: float = 0.9
    tilt_gain: float = 0.5
    tilt_step: float = 1.0
    tilt_recovery: float = 0.95
    formation_follow_speed: float = 10.0
    formation_damping: float = 0.8
    formation_heading_gain: float = 0.1
    formation_heading_deadband: float = 0.5
    formation_tilt_decay: float = 0.9
    hover_wobble: float = 3.0
    reset_position: Tuple[float, float, float] = (0.0, 10.0, 0.0)

    @property
    def cruise_speed(self) -> float:
        """Maximum horizontal speed while following a path."""
        return self.movement_speed * self.cruise_speed_factor

    @classmethod
    def from_config(cls, config: Optional[Dict]) -> "PhysicsParameters":
        """Build from a config dict; unknown keys are ignored."""
        if not config:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in config.items() if key in known}
        if 'reset_position' in values:
            values['reset_position'] = tuple(float(v) for v in values['reset_position'])
        return cls(**values)


@dataclass
class KinematicState:
    """Position, motion and attitude of one agent."""
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading: float = 0.0
    tilt: np.ndarray = field(default_factory=lambda: np.zeros(2))  # [pitch-like, roll-like]
    crashed: bool = False

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.tilt = np.array(self.tilt, dtype=float)

    @property
    def altitude(self) -> float:
        return float(self.position[1])

    @property
    def speed(self) -> float:
        """Horizontal speed."""
        return float(math.hypot(self.velocity[0], self.velocity[2]))

    @property
    def tilt_magnitude(self) -> float:
        return float(np.linalg.norm(self.tilt))


class SteeringController:
    """
    Per-agent flight controller.

    Stateless apart from its parameters and random source; every call
    mutates the KinematicState it is given.
    """

    def __init__(self, params: Optional[PhysicsParameters] = None,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize the controller.

        Args:
            params: Flight model constants (defaults if omitted)
            rng: Random source for hover wobble (seed it for reproducible runs)
        """
        self.params = params or PhysicsParameters()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.logger = logging.getLogger("SteeringController")

    def update(self, state: KinematicState, dt: float, inputs: InputState = NO_INPUT,
               target: Optional[Sequence[float]] = None, sim_time: float = 0.0):
        """
        Advance one tick.

        Args:
            state: Agent state to advance
            dt: Tick length in seconds
            inputs: Commands held this tick (ignored when a target is given)
            target: Path point to steer toward, or None for manual/hover control
            sim_time: Elapsed simulation time, drives the hover wobble
        """
        if state.crashed:
            self._apply_crash_physics(state, dt)
            return

        if target is not None:
            self.steer_towards(state, target, dt)
        else:
            self.apply_manual_input(state, inputs, dt, sim_time)

        self._apply_drag(state)
        self._integrate(state, dt)
        self._handle_ground_collision(state)

    def steer_towards(self, state: KinematicState, target: Sequence[float], dt: float):
        """Set heading, vertical and horizontal velocity, and tilt to approach a target point."""
        p = self.params
        offset = np.asarray(target, dtype=float) - state.position
        distance = float(np.linalg.norm(offset))

        # Yaw, skipped once on top of the target
        if distance > p.arrival_tolerance:
            desired_heading = normalize_heading(math.degrees(math.atan2(offset[0], offset[2])))
            error = wrap_angle(desired_heading - state.heading)
            turn = float(np.clip(error, -p.autonomous_turn_limit, p.autonomous_turn_limit))
            state.heading = normalize_heading(state.heading + turn * dt * p.autonomous_turn_gain)

        # Vertical
        height_error = offset[1]
        if abs(height_error) > p.vertical_deadband:
            state.velocity[1] += height_error * p.vertical_gain * dt
        else:
            state.velocity[1] *= p.vertical_damping
        state.velocity[1] = np.clip(state.velocity[1], -p.lift_power, p.lift_power)

        # Horizontal
        slowdown_radius = p.arrival_threshold * 0.5
        if distance > slowdown_radius:
            speed = p.cruise_speed * min(1.0, distance / (p.arrival_threshold * 2.0))
            desired = offset / distance * speed
            state.velocity[0] = desired[0]
            state.velocity[2] = desired[2]
        elif distance > p.arrival_tolerance:
            desired = offset / distance * p.cruise_speed * p.creep_fraction
            state.velocity[0] = desired[0]
            state.velocity[2] = desired[2]
        else:
            state.velocity[0] *= p.horizontal_damping
            state.velocity[2] *= p.horizontal_damping

        self._tilt_from_velocity(state)

    def apply_manual_input(self, state: KinematicState, inputs: InputState,
                           dt: float, sim_time: float = 0.0):
        """Apply lift, yaw and movement from discrete commands."""
        lift = self._calculate_lift(inputs, sim_time)
        state.velocity[1] += (lift - self.params.gravity) * dt
        self._handle_rotation(state, inputs)
        self._handle_movement(state, inputs, dt)

    def follow_formation(self, state: KinematicState, target_position: Sequence[float],
                         target_heading: float, dt: float):
        """
        Ease toward a formation slot and the leader's heading.

        Velocity is proportional to the remaining distance, so the follower
        slows as it closes in instead of arriving at constant speed.
        """
        if state.crashed:
            self._apply_crash_physics(state, dt)
            return

        p = self.params
        offset = np.asarray(target_position, dtype=float) - state.position
        distance = float(np.linalg.norm(offset))

        if distance > p.arrival_tolerance:
            state.velocity = offset * p.formation_follow_speed
            state.position = state.position + state.velocity * dt
        else:
            state.velocity = state.velocity * p.formation_damping

        heading_gap = wrap_angle(target_heading - state.heading)
        if abs(heading_gap) > p.formation_heading_deadband:
            state.heading = normalize_heading(state.heading + heading_gap * p.formation_heading_gain)

        state.tilt = state.tilt * p.formation_tilt_decay
        self._handle_ground_collision(state)

    def has_reached(self, state: KinematicState, target: Sequence[float]) -> bool:
        """Arrival test for a path node."""
        distance = np.linalg.norm(np.asarray(target, dtype=float) - state.position)
        return bool(distance < self.params.arrival_threshold)

    def check_collision(self, state: KinematicState, obstacles: Iterable[ObstacleFootprint],
                        half_extents: Sequence[float], ground_level: float = 0.0) -> bool:
        """
        Test the agent's bounding box against every obstacle volume.

        Returns:
            True if this call caused a crash
        """
        if state.crashed:
            return False

        half = np.asarray(half_extents, dtype=float)
        box_min = state.position - half
        box_max = state.position + half

        for obstacle in obstacles:
            if obstacle.intersects_box(box_min, box_max, ground_level):
                state.crashed = True
                state.velocity[0] = 0.0
                state.velocity[2] = 0.0
                self.logger.debug(f"Collision at {state.position.round(2).tolist()} with {obstacle}")
                return True
        return False

    def reset(self, state: KinematicState):
        """Restore the default pose and clear the crashed flag."""
        state.position = np.array(self.params.reset_position, dtype=float)
        state.velocity = np.zeros(3)
        state.heading = 0.0
        state.tilt = np.zeros(2)
        state.crashed = False

    def _apply_crash_physics(self, state: KinematicState, dt: float):
        """Only gravity and the ground act on a crashed agent."""
        state.velocity[1] -= self.params.gravity * dt
        self._integrate(state, dt)
        self._handle_ground_collision(state)
        state.tilt = np.zeros(2)

    def _calculate_lift(self, inputs: InputState, sim_time: float) -> float:
        p = self.params
        if inputs.is_held(Command.ASCEND):
            return p.lift_power * p.manual_lift_multiplier
        if inputs.is_held(Command.DESCEND):
            return -p.lift_power * p.manual_lift_multiplier

        # Hover: gravity compensation plus a slow oscillation and noise
        lift = p.gravity
        lift += math.sin(sim_time * 2.0) * p.hover_wobble
        lift += (self.rng.random() - 0.5) * p.hover_wobble
        return lift

    def _handle_rotation(self, state: KinematicState, inputs: InputState):
        if inputs.is_held(Command.YAW_LEFT):
            state.heading += self.params.rotation_speed
        if inputs.is_held(Command.YAW_RIGHT):
            state.heading -= self.params.rotation_speed
        state.heading = normalize_heading(state.heading)

    def _handle_movement(self, state: KinematicState, inputs: InputState, dt: float):
        """Accelerate along the heading frame and ramp tilt while a direction is held."""
        p = self.params
        rad = math.radians(state.heading)
        thrust = p.movement_speed * dt
        forward = np.array([math.sin(rad), 0.0, math.cos(rad)])
        left = np.array([math.cos(rad), 0.0, -math.sin(rad)])

        if inputs.is_held(Command.FORWARD):
            state.tilt[0] = min(state.tilt[0] + p.tilt_step, p.max_tilt)
            state.velocity += forward * thrust
        elif inputs.is_held(Command.BACK):
            state.tilt[0] = max(state.tilt[0] - p.tilt_step, -p.max_tilt)
            state.velocity -= forward * thrust
        else:
            state.tilt[0] *= p.tilt_recovery

        if inputs.is_held(Command.LEFT):
            state.tilt[1] = max(state.tilt[1] - p.tilt_step, -p.max_tilt)
            state.velocity += left * thrust
        elif inputs.is_held(Command.RIGHT):
            state.tilt[1] = min(state.tilt[1] + p.tilt_step, p.max_tilt)
            state.velocity -= left * thrust
        else:
            state.tilt[1] *= p.tilt_recovery

    def _tilt_from_velocity(self, state: KinematicState):
        """Project velocity into the heading frame and convert to visual tilt."""
        p = self.params
        rad = math.radians(state.heading)
        vx, vz = state.velocity[0], state.velocity[2]
        forward_speed = vx * math.sin(rad) + vz * math.cos(rad)
        left_speed = vx * math.cos(rad) - vz * math.sin(rad)
        state.tilt[0] = np.clip(forward_speed * p.tilt_gain, -p.max_tilt, p.max_tilt)
        state.tilt[1] = np.clip(-left_speed * p.tilt_gain, -p.max_tilt, p.max_tilt)

    def _apply_drag(self, state: KinematicState):
        state.velocity[0] *= self.params.drag_factor
        state.velocity[1] *= self.params.vertical_drag_factor
        state.velocity[2] *= self.params.drag_factor

    @staticmethod
    def _integrate(state: KinematicState, dt: float):
        state.position += state.velocity * dt

    def _handle_ground_collision(self, state: KinematicState):
        if state.position[1] < self.params.min_altitude:
            state.position[1] = self.params.min_altitude
            state.velocity[1] = 0.0
