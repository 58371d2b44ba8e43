"""
Run Configuration Loader for the Dining Arbiter simulator.

Loads and validates JSON run configuration files.
"""

import json
from typing import Any, Dict

from models.config import SimulationConfig
from models.errors import ConfigurationError


KNOWN_FIELDS = (
    'actor_count',
    'cycles',
    'think_delay',
    'act_delay',
    'seed',
    'detect_interval',
    'starvation_limit',
)


def load_config(file_path: str) -> SimulationConfig:
    """
    Load a run configuration from a JSON file.

    Example:
        {"actor_count": 5, "cycles": 100, "think_delay": [0.0, 0.01],
         "act_delay": [0.0, 0.01], "seed": 7}

    Args:
        file_path: Path to configuration JSON file

    Returns:
        Validated SimulationConfig

    Raises:
        ConfigurationError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file: {e}")

    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> SimulationConfig:
    """
    Build a SimulationConfig from parsed data.

    Raises:
        ConfigurationError: On missing, unknown or invalid fields
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")
    if 'actor_count' not in data:
        raise ConfigurationError("Configuration missing 'actor_count' field")

    unknown = sorted(set(data) - set(KNOWN_FIELDS))
    if unknown:
        raise ConfigurationError(f"Unknown configuration fields: {', '.join(unknown)}")

    for key in ('detect_interval', 'starvation_limit'):
        value = data.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ConfigurationError(f"'{key}' must be a number or null, got {value!r}")

    if 'seed' in data and (isinstance(data['seed'], bool) or not isinstance(data['seed'], int)):
        raise ConfigurationError(f"'seed' must be an integer, got {data['seed']!r}")

    return SimulationConfig(**data)
