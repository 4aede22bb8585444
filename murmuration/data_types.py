"""
Data types for behavior parameters, flock configuration, and diagnostics.

These dataclasses are validated at construction time and populated by
loader.py from YAML files (or built directly by the host).
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from .constants import (
    DEFAULT_MAX_SPEED,
    DEFAULT_MAX_FORCE,
    DEFAULT_ALIGNMENT_WEIGHT,
    DEFAULT_COHESION_WEIGHT,
    DEFAULT_SEPARATION_WEIGHT,
    DEFAULT_TARGET_WEIGHT,
    DEFAULT_SEPARATION_RADIUS,
    DEFAULT_ALIGNMENT_RADIUS,
    DEFAULT_COHESION_RADIUS,
    DEFAULT_TICK_DELTA_SECONDS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PROCESS_EVERY,
    CHUNK_SIZE,
    NEIGHBOR_BACKEND,
    NEIGHBOR_BACKENDS,
)


class ConfigurationError(ValueError):
    """Raised when a configuration value is rejected"""

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field_name}={value!r}: {reason}")


def _require_positive(field_name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(field_name, value, "must be a number")
    if not math.isfinite(value) or value <= 0.0:
        raise ConfigurationError(field_name, value, "must be a positive finite number")
    return value


def _require_non_negative(field_name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(field_name, value, "must be a number")
    if not math.isfinite(value) or value < 0.0:
        raise ConfigurationError(field_name, value, "must be a non-negative finite number")
    return value


def _require_int_at_least(field_name: str, value, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(field_name, value, f"must be an integer >= {minimum}")
    return value


# ============================================================================
# Behavior Parameters
# ============================================================================

@dataclass(frozen=True)
class BehaviorParameters:
    """
    Tunable steering parameters shared by one "type" of boid.

    Frozen: a tick in flight may hold references to it, so changes are made
    by building a replacement (dataclasses.replace), never by mutation.
    """
    separation_radius: float = DEFAULT_SEPARATION_RADIUS
    alignment_radius: float = DEFAULT_ALIGNMENT_RADIUS
    cohesion_radius: float = DEFAULT_COHESION_RADIUS
    separation_weight: float = DEFAULT_SEPARATION_WEIGHT
    alignment_weight: float = DEFAULT_ALIGNMENT_WEIGHT
    cohesion_weight: float = DEFAULT_COHESION_WEIGHT
    max_speed: float = DEFAULT_MAX_SPEED
    max_force: float = DEFAULT_MAX_FORCE
    target_weight: float = DEFAULT_TARGET_WEIGHT  # Only used when the flock has a target

    def __post_init__(self):
        """Validate every field, normalizing to builtin float"""
        for name in ('separation_radius', 'alignment_radius', 'cohesion_radius',
                     'max_speed', 'max_force'):
            object.__setattr__(self, name, _require_positive(name, getattr(self, name)))

        for name in ('separation_weight', 'alignment_weight', 'cohesion_weight',
                     'target_weight'):
            object.__setattr__(self, name, _require_non_negative(name, getattr(self, name)))

    @property
    def perception_radius(self) -> float:
        """Largest of the three rule radii (single neighbor query per agent)"""
        return max(self.separation_radius, self.alignment_radius, self.cohesion_radius)

    def to_dict(self) -> Dict[str, float]:
        return {
            'separation_radius': self.separation_radius,
            'alignment_radius': self.alignment_radius,
            'cohesion_radius': self.cohesion_radius,
            'separation_weight': self.separation_weight,
            'alignment_weight': self.alignment_weight,
            'cohesion_weight': self.cohesion_weight,
            'max_speed': self.max_speed,
            'max_force': self.max_force,
            'target_weight': self.target_weight,
        }


# ============================================================================
# Simulation / Flock Configuration
# ============================================================================

@dataclass
class SimulationConfig:
    """Simulation global defaults"""
    tick_delta_seconds: float = DEFAULT_TICK_DELTA_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    chunk_size: int = CHUNK_SIZE
    neighbor_backend: str = NEIGHBOR_BACKEND
    process_every: int = DEFAULT_PROCESS_EVERY
    stats_enabled: bool = False
    seed: Optional[int] = None
    process_2d: bool = True  # global switches per flock dimensionality
    process_3d: bool = True

    def __post_init__(self):
        self.tick_delta_seconds = _require_positive('tick_delta_seconds', self.tick_delta_seconds)
        _require_int_at_least('max_workers', self.max_workers, 1)
        _require_int_at_least('chunk_size', self.chunk_size, 1)
        _require_int_at_least('process_every', self.process_every, 1)
        if self.neighbor_backend not in NEIGHBOR_BACKENDS:
            raise ConfigurationError(
                'neighbor_backend', self.neighbor_backend,
                f"must be one of {', '.join(NEIGHBOR_BACKENDS)}"
            )
        for name in ('process_2d', 'process_3d'):
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(name, getattr(self, name), "must be true or false")

    def processes(self, dimensions: int) -> bool:
        """Whether flocks of this dimensionality are simulated at all"""
        return self.process_2d if dimensions == 2 else self.process_3d


@dataclass
class FlockBounds:
    """Spawn volume: sphere (center + radius) or axis-aligned box (min + max)"""
    center: Optional[List[float]] = None
    radius: Optional[float] = None
    min: Optional[List[float]] = None
    max: Optional[List[float]] = None

    def __post_init__(self):
        is_sphere = self.center is not None and self.radius is not None
        is_box = self.min is not None and self.max is not None
        if is_sphere == is_box:
            raise ConfigurationError('bounds', self, "needs either center+radius or min+max")
        if is_sphere:
            self.radius = _require_positive('bounds.radius', self.radius)
        elif any(lo > hi for lo, hi in zip(self.min, self.max)):
            raise ConfigurationError('bounds.min', self.min, "must not exceed bounds.max")

    @property
    def is_sphere(self) -> bool:
        return self.radius is not None


@dataclass
class FlockConfig:
    """Flock definition (spawned by spawning.spawn_flock)"""
    flock_id: str
    profile: str
    count: int
    bounds: FlockBounds
    dimensions: int = 3
    target: Optional[List[float]] = None
    enabled: bool = True
    seed: Optional[int] = None

    def __post_init__(self):
        _require_int_at_least('count', self.count, 0)
        if self.dimensions not in (2, 3):
            raise ConfigurationError('dimensions', self.dimensions, "must be 2 or 3")

        vectors = {'target': self.target, 'bounds.center': self.bounds.center,
                   'bounds.min': self.bounds.min, 'bounds.max': self.bounds.max}
        for name, vec in vectors.items():
            if vec is not None and len(vec) != self.dimensions:
                raise ConfigurationError(
                    name, vec, f"must have {self.dimensions} components for a {self.dimensions}D flock"
                )


@dataclass
class FlockingConfig:
    """Complete configuration file contents"""
    simulation: SimulationConfig
    profiles: Dict[str, BehaviorParameters]
    flocks: List[FlockConfig] = field(default_factory=list)
    description: Optional[str] = None


# ============================================================================
# Diagnostics
# ============================================================================

@dataclass
class TickTimings:
    """Wall-clock breakdown of one flock tick (milliseconds)"""
    flock_id: str
    tick: int
    agent_count: int
    phase1_ms: float  # neighbor query + steering
    phase2_ms: float  # integration
    total_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'flock_id': self.flock_id,
            'tick': int(self.tick),
            'agent_count': int(self.agent_count),
            'phase1_ms': float(self.phase1_ms),
            'phase2_ms': float(self.phase2_ms),
            'total_ms': float(self.total_ms),
        }
