"""
Immutable per-tick flock state.

A Snapshot is the structure-of-arrays view of a flock at one tick boundary:
positions, velocities, and per-agent parameter columns. Arrays are marked
read-only once built. A tick reads exactly one Snapshot and produces a new
one; nothing ever writes into a published Snapshot.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .data_types import BehaviorParameters


# Column order of Snapshot.params
PARAM_FIELDS = (
    'separation_radius',
    'alignment_radius',
    'cohesion_radius',
    'separation_weight',
    'alignment_weight',
    'cohesion_weight',
    'max_speed',
    'max_force',
    'target_weight',
)
PARAM_COLUMN = {name: col for col, name in enumerate(PARAM_FIELDS)}


def _frozen(array) -> np.ndarray:
    """
    Read-only float64 array for a Snapshot.

    Arrays that are already frozen are shared; anything else is copied, so
    freezing never reaches into a buffer the caller still owns.
    """
    if (isinstance(array, np.ndarray) and array.dtype == np.float64
            and array.flags.c_contiguous and not array.flags.writeable):
        return array
    array = np.array(array, dtype=np.float64, order='C')
    array.flags.writeable = False
    return array


def parameter_table(parameters: Sequence[BehaviorParameters]) -> np.ndarray:
    """
    Build the (N, len(PARAM_FIELDS)) parameter column table.

    Shared parameter sets are converted once and then broadcast to rows.
    """
    n = len(parameters)
    table = np.empty((n, len(PARAM_FIELDS)), dtype=np.float64)
    rows_by_set = {}
    for row, params in enumerate(parameters):
        rows_by_set.setdefault(id(params), (params, []))[1].append(row)

    for params, rows in rows_by_set.values():
        table[rows] = [getattr(params, name) for name in PARAM_FIELDS]

    return table


@dataclass(frozen=True)
class Snapshot:
    """
    Complete state of one flock at a tick boundary.

    Attributes:
        positions: (N, D) float64, read-only
        velocities: (N, D) float64, read-only
        params: (N, len(PARAM_FIELDS)) float64, read-only parameter columns
        parameters: per-agent BehaviorParameters references (index-aligned)
        tick: tick index this state belongs to
        target: optional flock target position (D,)
    """
    positions: np.ndarray
    velocities: np.ndarray
    params: np.ndarray
    parameters: tuple
    tick: int = 0
    target: Optional[np.ndarray] = None

    def __post_init__(self):
        positions = _frozen(self.positions)
        velocities = _frozen(self.velocities)
        params = _frozen(self.params)

        if positions.ndim != 2 or positions.shape[1] not in (2, 3):
            raise ValueError(f"positions must be (N, 2) or (N, 3), got {positions.shape}")
        if velocities.shape != positions.shape:
            raise ValueError(f"velocities shape {velocities.shape} != positions shape {positions.shape}")
        if params.shape != (positions.shape[0], len(PARAM_FIELDS)):
            raise ValueError(f"params shape {params.shape} does not match {positions.shape[0]} agents")
        if len(self.parameters) != positions.shape[0]:
            raise ValueError("parameters must be index-aligned with positions")

        object.__setattr__(self, 'positions', positions)
        object.__setattr__(self, 'velocities', velocities)
        object.__setattr__(self, 'params', params)
        object.__setattr__(self, 'parameters', tuple(self.parameters))
        if self.target is not None:
            target = _frozen(np.asarray(self.target, dtype=np.float64).reshape(-1))
            if target.shape[0] != positions.shape[1]:
                raise ValueError(f"target must have {positions.shape[1]} components")
            object.__setattr__(self, 'target', target)

    @classmethod
    def from_states(
        cls,
        positions,
        velocities,
        parameters: Sequence[BehaviorParameters],
        tick: int = 0,
        target=None,
        dimensions: Optional[int] = None
    ) -> 'Snapshot':
        """
        Build a snapshot from host arrays or lists.

        Args:
            positions: (N, D) array-like
            velocities: (N, D) array-like
            parameters: N BehaviorParameters (shared references allowed)
            tick: tick index
            target: optional (D,) target position
            dimensions: required when N == 0 (shape cannot be inferred)
        """
        if len(parameters) == 0:
            if dimensions is None:
                dimensions = np.shape(positions)[1] if np.ndim(positions) == 2 else 3
            positions = np.empty((0, dimensions), dtype=np.float64)
            velocities = np.empty((0, dimensions), dtype=np.float64)
        return cls(
            positions=positions,
            velocities=velocities,
            params=parameter_table(parameters),
            parameters=tuple(parameters),
            tick=tick,
            target=target,
        )

    @property
    def count(self) -> int:
        return self.positions.shape[0]

    @property
    def dimensions(self) -> int:
        return self.positions.shape[1]

    def column(self, name: str) -> np.ndarray:
        """(N,) read-only view of one parameter column"""
        return self.params[:, PARAM_COLUMN[name]]

    def successor(self, positions: np.ndarray, velocities: np.ndarray) -> 'Snapshot':
        """Next-tick snapshot sharing this one's parameters and target"""
        return Snapshot(
            positions=positions,
            velocities=velocities,
            params=self.params,
            parameters=self.parameters,
            tick=self.tick + 1,
            target=self.target,
        )

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict (no numpy types)"""
        return {
            'tick': int(self.tick),
            'count': self.count,
            'dimensions': self.dimensions,
            'positions': self.positions.tolist(),
            'velocities': self.velocities.tolist(),
            'target': self.target.tolist() if self.target is not None else None,
        }

    def states(self) -> List[tuple]:
        """Index-aligned (position, velocity) pairs as copied arrays"""
        return [(self.positions[i].copy(), self.velocities[i].copy()) for i in range(self.count)]
