"""
Explicit Euler integration under a speed limit.

next_velocity = clamp(velocity + acceleration * dt, max_speed)
next_position = position + next_velocity * dt

The clamp is applied before the position update, so no agent ever moves
faster than its max_speed, not even within a single step.
"""

import math

import numpy as np

from .data_types import ConfigurationError
from .snapshot import Snapshot
from .vector_math import clamp_rows


def validate_timestep(dt) -> float:
    """Return dt as float, rejecting zero, negative, and non-finite steps"""
    try:
        dt = float(dt)
    except (TypeError, ValueError):
        raise ConfigurationError('dt', dt, "must be a number")
    if not math.isfinite(dt) or dt <= 0.0:
        raise ConfigurationError('dt', dt, "must be a positive finite number of seconds")
    return dt


class Integrator:
    """Advances a slice of agents by one fixed timestep"""

    def integrate(
        self,
        positions: np.ndarray,
        velocities: np.ndarray,
        accelerations: np.ndarray,
        max_speed,
        dt: float
    ):
        """
        Integrate (N, D) arrays.

        Args:
            positions: current positions
            velocities: current velocities
            accelerations: steering accelerations from phase 1
            max_speed: scalar or (N,) speed limits
            dt: timestep in seconds

        Returns:
            Tuple of (next_positions, next_velocities), freshly allocated
        """
        next_velocities = clamp_rows(velocities + accelerations * dt, max_speed)
        next_positions = positions + next_velocities * dt
        return next_positions, next_velocities

    def integrate_rows(
        self,
        snapshot: Snapshot,
        rows: slice,
        accelerations: np.ndarray,
        dt: float,
        out_positions: np.ndarray,
        out_velocities: np.ndarray
    ):
        """
        Integrate one contiguous slice of a snapshot into output buffers.

        Writes only out_positions[rows] and out_velocities[rows]; the caller
        guarantees no other work item owns that slice.
        """
        next_positions, next_velocities = self.integrate(
            snapshot.positions[rows],
            snapshot.velocities[rows],
            accelerations[rows],
            snapshot.column('max_speed')[rows],
            dt,
        )
        out_positions[rows] = next_positions
        out_velocities[rows] = next_velocities
