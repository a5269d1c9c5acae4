"""
Simulation configuration loading.

Configuration lives in a YAML file; any section or key left out falls back to
DEFAULT_CONFIG.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from navigation.navigation_grid import ObstacleFootprint

logger = logging.getLogger("SimulationConfig")

DEFAULT_CONFIG_PATH = "config/simulation.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    'world': {
        'width': 1000.0,
        'depth': 1000.0,
        'cell_size': 5.0,
        'ground_level': 0.0,
    },
    'navigation': {
        'safety_margin': 1.0,
        'altitude_penalty': 1.5,
    },
    'physics': {},
    'fleet': {
        'formation_pattern': 'v',
        'formation_spacing': 5.0,
        'agents': [
            {'name': 'Drone 1', 'position': [0.0, 10.0, 0.0]},
            {'name': 'Drone 2', 'position': [-10.0, 10.0, -10.0]},
            {'name': 'Drone 3', 'position': [10.0, 10.0, -10.0]},
        ],
    },
    'obstacles': [],
    'mission': {
        'waypoints': [
            [50.0, 20.0, 50.0],
            [-50.0, 15.0, 50.0],
            [-50.0, 25.0, -50.0],
            [50.0, 10.0, -50.0],
            [0.0, 20.0, 0.0],
        ],
    },
    'simulation': {
        'max_step': 0.1,
        'tick_rate': 60.0,
        'duration': 30.0,
        'seed': None,
    },
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base. Lists are replaced, not merged."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a YAML file merged over the defaults.

    Args:
        config_path: Path to the configuration YAML file

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f) or {}
        logger.info(f"Configuration loaded from {config_path}")
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found, using defaults")
        user_config = {}

    if not isinstance(user_config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

    return merge_config(DEFAULT_CONFIG, user_config)


def obstacles_from_config(entries: List[Dict[str, Any]]) -> List[ObstacleFootprint]:
    """
    Build obstacle footprints from config entries.

    Two forms are accepted:
    - bounds: {min_x, max_x, min_z, max_z, top_y}
    - box: {type: box, center: [x, z], size: [width, depth], height}
    """
    footprints = []
    for entry in entries or []:
        if entry.get('type') == 'box':
            center = entry['center']
            size = entry['size']
            footprints.append(ObstacleFootprint.from_center(
                center[0], center[1], size[0], size[1],
                entry['height'], entry.get('base_y', 0.0)
            ))
        else:
            footprints.append(ObstacleFootprint(
                min_x=float(entry['min_x']),
                max_x=float(entry['max_x']),
                min_z=float(entry['min_z']),
                max_z=float(entry['max_z']),
                top_y=float(entry['top_y']),
            ))
    return footprints
