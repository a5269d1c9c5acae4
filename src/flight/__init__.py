"""
Flight package for simulated drones.

- input_state: per-tick command snapshots
- steering_controller: steering, manual control and rigid-body physics
- modes: per-agent flight mode state machine
- agent: drone combining state, controller, mode and mission
"""

from .input_state import Command, InputState, NO_INPUT, SELECT_COMMANDS
from .steering_controller import (
    KinematicState,
    PhysicsParameters,
    SteeringController,
    normalize_heading,
    wrap_angle,
)
from .modes import FlightMode, ModeStateMachine, ModeTransition
from .agent import Agent, AgentSnapshot

__all__ = [
    # input_state
    'Command',
    'InputState',
    'NO_INPUT',
    'SELECT_COMMANDS',
    # steering_controller
    'KinematicState',
    'PhysicsParameters',
    'SteeringController',
    'normalize_heading',
    'wrap_angle',
    # modes
    'FlightMode',
    'ModeStateMachine',
    'ModeTransition',
    # agent
    'Agent',
    'AgentSnapshot',
]
