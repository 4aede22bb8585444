"""
Steering engine for flocking agents.

Combines each agent's neighbor set into one bounded steering acceleration:
separation, alignment, cohesion, optional target seeking, plus any extra
behavior terms registered by the host.

Every rule follows the same Reynolds form:

    desired = normalize(rule_vector) * max_speed
    force   = clamp(desired - velocity, max_force) * rule_weight

and the summed force is clamped to max_force once more. All work is done on
a batch of agents (one scheduler chunk) at a time; per-agent accumulation
runs over neighbors in ascending index order, so results never depend on how
work was scheduled.
"""

from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .constants import COINCIDENT_EPSILON_SQ
from .neighbors import NeighborBatch, NeighborQuery
from .snapshot import Snapshot, PARAM_COLUMN
from .vector_math import clamp_rows, lengths, normalize_rows

# (snapshot, batch) -> (len(batch.rows), D) acceleration
SteeringTerm = Callable[[Snapshot, NeighborBatch], np.ndarray]

RULES = ('separation', 'alignment', 'cohesion', 'target')


def _segment_sum(values: np.ndarray, offsets: np.ndarray) -> np.ndarray:
    """
    Sum consecutive segments values[offsets[k]:offsets[k+1]].

    Empty segments sum to zero. Each segment's sum depends only on its own
    values in stored (ascending neighbor index) order, never on which other
    rows share the batch.
    """
    n_segments = len(offsets) - 1
    out = np.zeros((n_segments,) + values.shape[1:], dtype=np.float64)
    nonempty = offsets[1:] > offsets[:-1]
    if values.shape[0] == 0 or not np.any(nonempty):
        return out
    out[nonempty] = np.add.reduceat(values, offsets[:-1][nonempty], axis=0)
    return out


def _reynolds(
    rule_vectors: np.ndarray,
    active: np.ndarray,
    velocities: np.ndarray,
    max_speed: np.ndarray,
    max_force: np.ndarray,
    weight: np.ndarray
) -> np.ndarray:
    """
    Weighted, force-limited steering toward rule_vectors.

    Rows that are inactive, or whose rule vector is zero, contribute nothing.
    """
    active = active & (lengths(rule_vectors) > 0.0)
    desired = normalize_rows(rule_vectors) * max_speed[:, np.newaxis]
    force = clamp_rows(desired - velocities, max_force) * weight[:, np.newaxis]
    force[~active] = 0.0
    return force


class SteeringEngine:
    """
    Per-agent steering computation over one immutable Snapshot.

    Stateless apart from the registered extra terms, so one engine can serve
    all worker threads and all flocks.
    """

    def __init__(self, extra_terms: Optional[Sequence[SteeringTerm]] = None):
        """
        Args:
            extra_terms: additional behavior terms, summed with the classic
                rules before the final max_force clamp
        """
        self.extra_terms: List[SteeringTerm] = list(extra_terms or [])

    def add_term(self, term: SteeringTerm):
        self.extra_terms.append(term)

    def compute(self, snapshot: Snapshot, rows: np.ndarray, neighbor_query: NeighborQuery) -> np.ndarray:
        """
        Steering accelerations for a batch of agents.

        Args:
            snapshot: prior-tick state (read only)
            rows: (C,) agent indices
            neighbor_query: backend built for snapshot

        Returns:
            (C, D) accelerations, each with magnitude <= that agent's max_force
        """
        rows = np.asarray(rows, dtype=np.int64)
        radii = snapshot.params[rows][:, [
            PARAM_COLUMN['separation_radius'],
            PARAM_COLUMN['alignment_radius'],
            PARAM_COLUMN['cohesion_radius'],
        ]].max(axis=1)
        batch = neighbor_query.query_rows(rows, snapshot, radii)
        return self.compute_batch(snapshot, batch)

    def compute_batch(self, snapshot: Snapshot, batch: NeighborBatch) -> np.ndarray:
        """Steering accelerations for an already-queried NeighborBatch"""
        contributions = self.contributions(snapshot, batch)
        total = contributions['separation'] + contributions['alignment'] \
            + contributions['cohesion'] + contributions['target']

        for term in self.extra_terms:
            total = total + np.asarray(term(snapshot, batch), dtype=np.float64)

        max_force = snapshot.column('max_force')[batch.rows]
        return clamp_rows(total, max_force)

    def steer_agent(self, index: int, snapshot: Snapshot, neighbor_query: NeighborQuery) -> np.ndarray:
        """Steering acceleration for a single agent (D,)"""
        return self.compute(snapshot, np.array([index], dtype=np.int64), neighbor_query)[0]

    def contributions(self, snapshot: Snapshot, batch: NeighborBatch) -> Dict[str, np.ndarray]:
        """
        Unclamped per-rule weighted forces for a batch.

        Returns:
            Dict rule_name -> (C, D) array (zeros where a rule is inactive)
        """
        rows = batch.rows
        params = snapshot.params[rows]
        positions = snapshot.positions
        own_pos = positions[rows]
        own_vel = snapshot.velocities[rows]
        max_speed = params[:, PARAM_COLUMN['max_speed']]
        max_force = params[:, PARAM_COLUMN['max_force']]

        owner = batch.owner
        neighbor = batch.indices
        dist_sq = batch.dist_sq

        def within(column: str) -> np.ndarray:
            radius = params[owner, PARAM_COLUMN[column]]
            return dist_sq <= radius * radius

        # Separation: away from each neighbor, weighted by 1/distance.
        # Coincident pairs have no direction: no contribution, not counted.
        sep_mask = within('separation_radius') & (dist_sq > COINCIDENT_EPSILON_SQ)
        safe_dist_sq = np.where(sep_mask, dist_sq, 1.0)
        away = (own_pos[owner] - positions[neighbor]) / safe_dist_sq[:, np.newaxis]
        away[~sep_mask] = 0.0
        sep_count = _segment_sum(sep_mask.astype(np.float64), batch.offsets)
        sep_sum = _segment_sum(away, batch.offsets)

        # Alignment: average neighbor velocity
        align_mask = within('alignment_radius')
        align_vel = np.where(align_mask[:, np.newaxis], snapshot.velocities[neighbor], 0.0)
        align_count = _segment_sum(align_mask.astype(np.float64), batch.offsets)
        align_sum = _segment_sum(align_vel, batch.offsets)

        # Cohesion: toward neighbor centroid
        cohere_mask = within('cohesion_radius')
        cohere_pos = np.where(cohere_mask[:, np.newaxis], positions[neighbor], 0.0)
        cohere_count = _segment_sum(cohere_mask.astype(np.float64), batch.offsets)
        cohere_sum = _segment_sum(cohere_pos, batch.offsets)

        sep_active = sep_count > 0
        align_active = align_count > 0
        cohere_active = cohere_count > 0

        sep_avg = np.zeros_like(own_pos)
        sep_avg[sep_active] = sep_sum[sep_active] / sep_count[sep_active, np.newaxis]
        align_avg = np.zeros_like(own_pos)
        align_avg[align_active] = align_sum[align_active] / align_count[align_active, np.newaxis]
        cohere_offset = np.zeros_like(own_pos)
        cohere_offset[cohere_active] = (
            cohere_sum[cohere_active] / cohere_count[cohere_active, np.newaxis] - own_pos[cohere_active]
        )

        result = {
            'separation': _reynolds(sep_avg, sep_active, own_vel, max_speed, max_force,
                                    params[:, PARAM_COLUMN['separation_weight']]),
            'alignment': _reynolds(align_avg, align_active, own_vel, max_speed, max_force,
                                   params[:, PARAM_COLUMN['alignment_weight']]),
            'cohesion': _reynolds(cohere_offset, cohere_active, own_vel, max_speed, max_force,
                                  params[:, PARAM_COLUMN['cohesion_weight']]),
        }

        if snapshot.target is not None:
            target_offset = snapshot.target[np.newaxis, :] - own_pos
            result['target'] = _reynolds(
                target_offset, np.ones(len(rows), dtype=bool), own_vel, max_speed, max_force,
                params[:, PARAM_COLUMN['target_weight']]
            )
        else:
            result['target'] = np.zeros_like(own_pos)

        return result
