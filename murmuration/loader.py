"""
YAML configuration loader with schema validation.

Loads simulation settings, behavior profiles, and flock definitions from a
YAML file and validates against the packaged JSON schema.
"""

import yaml
import json
from pathlib import Path
from typing import Dict, Optional
import jsonschema

from .data_types import (
    BehaviorParameters, SimulationConfig, FlockBounds, FlockConfig,
    FlockingConfig, ConfigurationError
)

SCHEMA_DIR = Path(__file__).parent / "schemas"
CONFIG_SCHEMA = "flock_config.schema.json"


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")

    if not isinstance(data, dict):
        raise DataLoadError(f"Expected a mapping at top level of {file_path}")
    return data


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        raise DataLoadError(f"Schema not found: {schema_path}")

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise DataLoadError(f"Validation error in {data_path} at {location}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def parse_profiles(data: Dict[str, dict]) -> Dict[str, BehaviorParameters]:
    """Build named BehaviorParameters (validated) from a profiles mapping"""
    profiles = {}
    for name, fields in data.items():
        try:
            profiles[name] = BehaviorParameters(**(fields or {}))
        except ConfigurationError as e:
            raise ConfigurationError(f"profiles.{name}.{e.field}", e.value, e.reason) from e
    return profiles


def parse_config(data: dict) -> FlockingConfig:
    """
    Convert validated YAML data into dataclasses.

    Raises:
        ConfigurationError: a value fails dataclass validation
    """
    simulation = SimulationConfig(**data.get('simulation', {}))
    profiles = parse_profiles(data['profiles'])

    flocks = []
    for flock_data in data.get('flocks', []):
        fields = dict(flock_data)
        fields['bounds'] = FlockBounds(**fields['bounds'])
        flock = FlockConfig(**fields)
        if flock.profile not in profiles:
            raise ConfigurationError(
                f"flocks.{flock.flock_id}.profile", flock.profile,
                f"unknown profile (known: {', '.join(sorted(profiles))})"
            )
        flocks.append(flock)

    ids = [f.flock_id for f in flocks]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError('flocks.flock_id', duplicates, "flock ids must be unique")

    return FlockingConfig(
        simulation=simulation,
        profiles=profiles,
        flocks=flocks,
        description=data.get('description'),
    )


def load_config(file_path: Path, schema_dir: Optional[Path] = SCHEMA_DIR) -> FlockingConfig:
    """
    Load a flocking configuration file.

    Args:
        file_path: YAML configuration
        schema_dir: directory holding flock_config.schema.json
            (None skips schema validation)

    Returns:
        FlockingConfig

    Raises:
        DataLoadError: missing file, YAML error, schema or value violation
    """
    file_path = Path(file_path)
    data = load_yaml(file_path)

    if schema_dir is not None:
        validate_against_schema(data, Path(schema_dir) / CONFIG_SCHEMA, file_path)

    try:
        return parse_config(data)
    except ConfigurationError as e:
        raise DataLoadError(f"Invalid configuration in {file_path}: {e}") from e
    except TypeError as e:
        # Unknown keys when schema validation is skipped
        raise DataLoadError(f"Invalid configuration in {file_path}: {e}") from e
