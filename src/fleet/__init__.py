"""
Fleet package: multi-agent coordination and formation flight.
"""

from .formation import (
    FormationController,
    FormationOffset,
    FormationPattern,
    FormationTarget,
    compute_formation_offsets,
    rotate_offset,
)
from .fleet_coordinator import FleetCoordinator

__all__ = [
    'FormationController',
    'FormationOffset',
    'FormationPattern',
    'FormationTarget',
    'compute_formation_offsets',
    'rotate_offset',
    'FleetCoordinator',
]
