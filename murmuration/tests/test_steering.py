"""
Test steering rules against hand-computed scenarios.

Two agents at (0,0) and (1,0), all radii 5, all weights 1,
max_speed 10, max_force 10, both at rest:
- separation pushes agent 0 with (-10, 0)
- cohesion pulls agent 0 with (+10, 0)
- alignment is inactive (average neighbor velocity is zero)
"""

import numpy as np
import pytest

from murmuration.data_types import BehaviorParameters
from murmuration.neighbors import AllPairsScan, KDTreeIndex
from murmuration.rng import make_rng
from murmuration.snapshot import Snapshot
from murmuration.steering import SteeringEngine, RULES
from murmuration.vector_math import lengths


def hand_params(**overrides):
    fields = dict(
        separation_radius=5.0, alignment_radius=5.0, cohesion_radius=5.0,
        separation_weight=1.0, alignment_weight=1.0, cohesion_weight=1.0,
        max_speed=10.0, max_force=10.0, target_weight=1.0,
    )
    fields.update(overrides)
    return BehaviorParameters(**fields)


def pair_snapshot(params, velocities=None, target=None):
    positions = np.array([[0.0, 0.0], [1.0, 0.0]])
    velocities = np.zeros((2, 2)) if velocities is None else np.asarray(velocities, dtype=np.float64)
    return Snapshot.from_states(positions, velocities, [params, params], target=target)


def steer_all(snapshot, engine=None, query=None):
    engine = engine or SteeringEngine()
    query = query or AllPairsScan()
    query.build(snapshot)
    return engine.compute(snapshot, np.arange(snapshot.count), query)


def test_pair_contributions():
    snapshot = pair_snapshot(hand_params())
    query = AllPairsScan()
    batch = query.query_rows(np.array([0, 1]), snapshot, 5.0)

    contributions = SteeringEngine().contributions(snapshot, batch)
    assert set(contributions) == set(RULES)
    assert contributions['separation'][0] == pytest.approx([-10.0, 0.0])
    assert contributions['cohesion'][0] == pytest.approx([10.0, 0.0])
    assert contributions['alignment'][0] == pytest.approx([0.0, 0.0])
    assert contributions['target'][0] == pytest.approx([0.0, 0.0])


def test_pair_balanced_forces_cancel():
    accelerations = steer_all(pair_snapshot(hand_params()))
    assert np.array_equal(accelerations, np.zeros((2, 2)))


def test_pair_half_separation_weight():
    accelerations = steer_all(pair_snapshot(hand_params(separation_weight=0.5)))
    assert accelerations[0] == pytest.approx([5.0, 0.0])
    assert accelerations[1] == pytest.approx([-5.0, 0.0])


def test_isolated_agent_has_zero_steering():
    params = hand_params()
    snapshot = Snapshot.from_states(
        np.array([[0.0, 0.0, 0.0], [100.0, 0.0, 0.0]]),
        np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0]]),
        [params, params],
    )
    accelerations = steer_all(snapshot)
    assert np.array_equal(accelerations, np.zeros((2, 3)))


def test_alignment_steers_toward_neighbor_velocity():
    params = hand_params(separation_weight=0.0, cohesion_weight=0.0)
    snapshot = pair_snapshot(params, velocities=[[0.0, 0.0], [0.0, 3.0]])
    accelerations = steer_all(snapshot)

    # Agent 0: desired (0, 10) - (0, 0)
    assert accelerations[0] == pytest.approx([0.0, 10.0])
    # Agent 1: neighbor at rest, zero average velocity
    assert accelerations[1] == pytest.approx([0.0, 0.0])


def test_target_seeking():
    params = hand_params(separation_weight=0.0, alignment_weight=0.0, cohesion_weight=0.0,
                         target_weight=0.5)
    snapshot = pair_snapshot(params, target=[0.0, 20.0])
    accelerations = steer_all(snapshot)

    assert accelerations[0] == pytest.approx([0.0, 5.0])
    assert accelerations[1][1] > 0.0


def test_coincident_agents_produce_finite_steering():
    params = hand_params()
    positions = np.array([[2.0, 2.0, 2.0], [2.0, 2.0, 2.0], [2.0, 2.0, 2.0]])
    snapshot = Snapshot.from_states(positions, np.zeros((3, 3)), [params] * 3)

    accelerations = steer_all(snapshot)
    assert np.all(np.isfinite(accelerations))
    assert np.array_equal(accelerations, np.zeros((3, 3)))


def test_force_bounded_by_max_force():
    rng = make_rng(11)
    count = 200
    params = BehaviorParameters(max_force=0.3, max_speed=4.0, separation_weight=3.0)
    snapshot = Snapshot.from_states(
        rng.uniform(-40.0, 40.0, size=(count, 3)),
        rng.uniform(-4.0, 4.0, size=(count, 3)),
        [params] * count,
        target=[0.0, 0.0, 0.0],
    )
    accelerations = steer_all(snapshot)
    assert np.all(lengths(accelerations) <= 0.3 * (1.0 + 1e-12))


def test_backend_choice_does_not_change_steering():
    rng = make_rng(5)
    count = 150
    params = BehaviorParameters()
    snapshot = Snapshot.from_states(
        rng.uniform(-60.0, 60.0, size=(count, 3)),
        rng.uniform(-2.0, 2.0, size=(count, 3)),
        [params] * count,
    )
    scan = steer_all(snapshot, query=AllPairsScan())
    tree = steer_all(snapshot, query=KDTreeIndex())
    assert np.array_equal(scan, tree)


def test_extra_term_is_added_before_clamp():
    params = hand_params(separation_weight=0.0, alignment_weight=0.0, cohesion_weight=0.0)

    def wind(snapshot, batch):
        return np.tile([30.0, 0.0], (len(batch.rows), 1))

    engine = SteeringEngine(extra_terms=[wind])
    accelerations = steer_all(pair_snapshot(params), engine=engine)
    assert accelerations == pytest.approx([[10.0, 0.0], [10.0, 0.0]])


def test_steer_agent_matches_batch():
    snapshot = pair_snapshot(hand_params(separation_weight=0.5))
    query = AllPairsScan()
    query.build(snapshot)
    engine = SteeringEngine()

    assert engine.steer_agent(1, snapshot, query) == pytest.approx(steer_all(snapshot)[1])
