"""
Per-agent flight mode state machine.

Replaces independent autonomous/formation flags with one explicit mode.
All mode changes go through ModeStateMachine.transition_to(), which rejects
transitions that are not in the table below.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List


class FlightMode(Enum):
    """Enumeration of agent flight modes"""
    IDLE = "idle"
    MANUAL = "manual"
    AUTONOMOUS = "autonomous"
    FORMATION = "formation"
    # Reported only; a crash is a flag on the kinematic state
    CRASHED = "crashed"


@dataclass
class ModeTransition:
    """Represents a mode transition with timing information"""
    from_mode: FlightMode
    to_mode: FlightMode
    timestamp: float
    reason: str


class ModeStateMachine:
    """
    Flight mode state machine for one agent.

    Valid transitions:
    - IDLE -> MANUAL (flight start, one way)
    - MANUAL -> AUTONOMOUS, FORMATION
    - AUTONOMOUS -> MANUAL, FORMATION
    - FORMATION -> MANUAL, AUTONOMOUS

    Preconditions that depend on the agent (waypoints queued, not the fleet
    leader) are checked by the caller before requesting a transition.
    """

    VALID_TRANSITIONS = {
        FlightMode.IDLE: [FlightMode.MANUAL],
        FlightMode.MANUAL: [FlightMode.AUTONOMOUS, FlightMode.FORMATION],
        FlightMode.AUTONOMOUS: [FlightMode.MANUAL, FlightMode.FORMATION],
        FlightMode.FORMATION: [FlightMode.MANUAL, FlightMode.AUTONOMOUS],
    }

    def __init__(self, name: str = "agent"):
        self.logger = logging.getLogger(f"ModeStateMachine.{name}")
        self.current_mode = FlightMode.IDLE
        self.transition_history: List[ModeTransition] = []
        self.mode_callbacks: Dict[FlightMode, List[Callable[[ModeTransition], None]]] = {}

    def can_transition(self, to_mode: FlightMode) -> bool:
        return to_mode in self.VALID_TRANSITIONS.get(self.current_mode, [])

    def transition_to(self, new_mode: FlightMode, reason: str = "requested") -> bool:
        """
        Transition to a new mode.

        Args:
            new_mode: The mode to transition to
            reason: Reason for the transition

        Returns:
            True if transition was successful, False otherwise
        """
        if not self.can_transition(new_mode):
            self.logger.warning(
                f"Invalid transition from {self.current_mode.value} to {new_mode.value} ({reason})"
            )
            return False

        transition = ModeTransition(
            from_mode=self.current_mode,
            to_mode=new_mode,
            timestamp=time.time(),
            reason=reason
        )
        self.current_mode = new_mode
        self.transition_history.append(transition)

        self.logger.info(f"Mode transition: {transition.from_mode.value} -> {new_mode.value} ({reason})")

        for callback in self.mode_callbacks.get(new_mode, []):
            callback(transition)

        return True

    def register_mode_callback(self, mode: FlightMode, callback: Callable[[ModeTransition], None]):
        """
        Register a callback executed when entering a mode.

        Args:
            mode: The mode to register the callback for
            callback: Called with the ModeTransition that entered the mode
        """
        self.mode_callbacks.setdefault(mode, []).append(callback)
