"""
Formation geometry for leader-follower flight.

Offsets are expressed in the leader's heading frame: `lateral` is positive
toward the leader's left, `longitudinal` is positive ahead of the leader.
They are rotated into world coordinates with the leader's heading.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

import numpy as np


class FormationPattern(Enum):
    """Formation patterns available to the fleet."""
    V = "v"
    LINE = "line"
    SQUARE = "square"

    def next(self) -> "FormationPattern":
        """Next pattern in the cycle V -> LINE -> SQUARE -> V."""
        members = list(FormationPattern)
        return members[(members.index(self) + 1) % len(members)]


@dataclass(frozen=True)
class FormationOffset:
    """Slot of a follower relative to the leader, in the leader's frame."""
    lateral: float
    longitudinal: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lateral, self.longitudinal)


@dataclass
class FormationTarget:
    """World-space slot handed to one follower."""
    agent_index: int
    position: np.ndarray
    heading: float


def compute_formation_offsets(pattern: FormationPattern, follower_count: int,
                              spacing: float) -> List[FormationOffset]:
    """
    Compute follower offsets for a pattern.

    Args:
        pattern: Formation pattern
        follower_count: Number of followers (fleet size minus the leader)
        spacing: Distance between neighboring slots

    Returns:
        One offset per follower, in follower order
    """
    offsets = []

    if pattern == FormationPattern.V:
        # Alternate sides, one row further back every two followers
        for index in range(follower_count):
            side = 1 if index % 2 == 0 else -1
            row = index // 2 + 1
            offsets.append(FormationOffset(side * spacing * row, -spacing * row))

    elif pattern == FormationPattern.LINE:
        # Single file behind the leader
        for index in range(follower_count):
            offsets.append(FormationOffset(0.0, -spacing * (index + 1)))

    elif pattern == FormationPattern.SQUARE:
        # Grid of ceil(sqrt(n)) columns centered behind the leader
        columns = max(1, math.ceil(math.sqrt(follower_count)))
        for index in range(follower_count):
            row, col = divmod(index, columns)
            lateral = (col - (columns - 1) / 2.0) * spacing
            offsets.append(FormationOffset(lateral, -row * spacing - spacing))

    return offsets


def rotate_offset(offset: FormationOffset, heading: float) -> np.ndarray:
    """
    Rotate a leader-frame offset into world (dx, dz).

    Heading is in degrees, measured so that heading 0 faces +Z and
    heading 90 faces +X.
    """
    rad = math.radians(heading)
    cos_h, sin_h = math.cos(rad), math.sin(rad)
    rotation = np.array([
        [cos_h, sin_h],
        [-sin_h, cos_h],
    ])
    return rotation @ np.array(offset.as_tuple())


class FormationController:
    """
    Computes formation slots for followers from the leader's pose.
    """

    def __init__(self, pattern: FormationPattern = FormationPattern.V, spacing: float = 5.0):
        """
        Initialize formation controller.

        Args:
            pattern: Initial formation pattern
            spacing: Distance between neighboring slots
        """
        if spacing <= 0:
            raise ValueError(f"Invalid formation spacing: {spacing}. Must be > 0")
        self.pattern = pattern
        self.spacing = spacing
        self.logger = logging.getLogger("FormationController")

    def set_pattern(self, pattern: FormationPattern):
        self.pattern = pattern
        self.logger.info(f"Formation pattern set to {pattern.value}")

    def compute_targets(self, leader_position: Sequence[float], leader_heading: float,
                        follower_indices: Sequence[int]) -> List[FormationTarget]:
        """
        Assign a world-space slot to each follower.

        Args:
            leader_position: Leader (x, y, z); followers keep the leader's altitude
            leader_heading: Leader heading in degrees
            follower_indices: Agent indices of followers, in slot order

        Returns:
            One FormationTarget per follower
        """
        leader = np.asarray(leader_position, dtype=float)
        offsets = compute_formation_offsets(self.pattern, len(follower_indices), self.spacing)

        targets = []
        for agent_index, offset in zip(follower_indices, offsets):
            dx, dz = rotate_offset(offset, leader_heading)
            targets.append(FormationTarget(
                agent_index=agent_index,
                position=np.array([leader[0] + dx, leader[1], leader[2] + dz]),
                heading=leader_heading,
            ))
        return targets
