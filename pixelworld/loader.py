"""
YAML config loader with schema validation.

Loads the engine configuration from a YAML file and validates it against
the JSON schema in data/schemas before building a SimulationConfig.
"""

import yaml
import json
from pathlib import Path
from typing import Optional
import jsonschema

from .data_types import SimulationConfig


class ConfigLoadError(Exception):
    """Raised when config loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    if not file_path.exists():
        raise ConfigLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"YAML parse error in {file_path}: {e}")

    # Empty file means "all defaults"
    return data if data is not None else {}


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        raise ConfigLoadError(f"Schema not found: {schema_path}")

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise ConfigLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON schema {schema_path}: {e}")


def load_config(file_path: Path, schema_dir: Optional[Path] = None) -> SimulationConfig:
    """
    Load engine configuration from YAML.

    The file holds a top-level 'simulation' mapping; keys left out keep
    their defaults from constants.py.

    Args:
        file_path: Path to the YAML config
        schema_dir: Directory holding config.schema.json (skips validation if None)

    Returns:
        SimulationConfig

    Raises:
        ConfigLoadError: On a missing file, bad YAML, schema violation,
            or a value the config rejects
    """
    file_path = Path(file_path)
    data = load_yaml(file_path)

    if schema_dir:
        schema_path = Path(schema_dir) / "config.schema.json"
        validate_against_schema(data, schema_path, file_path)
    else:
        print(f"[WARN] No schema directory given, {file_path.name} not validated")

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Expected a mapping at top level of {file_path}")

    sim_data = data.get('simulation', {}) or {}

    try:
        config = SimulationConfig.from_dict(sim_data)
    except TypeError as e:
        raise ConfigLoadError(f"Invalid config in {file_path}: {e}")

    if len(config.particle_types) < 1:
        raise ConfigLoadError(f"Invalid config in {file_path}: particle_types is empty")
    if config.grid_width < 1 or config.grid_height < 1:
        raise ConfigLoadError(f"Invalid config in {file_path}: grid dimensions must be positive")

    print(f"[OK] Loaded config from {file_path.name} "
          f"({config.grid_width}x{config.grid_height}, seed={config.seed})")
    return config
