"""
Simulation package: configuration loading and the session tick loop.
"""

from .config import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_PATH,
    load_config,
    merge_config,
    obstacles_from_config,
)
from .session import SimulationSession, main

__all__ = [
    'DEFAULT_CONFIG',
    'DEFAULT_CONFIG_PATH',
    'load_config',
    'merge_config',
    'obstacles_from_config',
    'SimulationSession',
    'main',
]
