"""
Test the multi-flock simulation driver and host call/response API.

Verifies:
- step_flock is index-aligned and leaves input records alone
- Disabled flocks are skipped / returned unchanged
- process_2d / process_3d switch whole dimensionalities off
- A failing flock keeps every flock from advancing
- process_every cadence
- Flocks never interact with each other
- from_config spawns flocks deterministically
"""

import json
import textwrap

import numpy as np
import pytest

from murmuration.agent import Agent
from murmuration.data_types import BehaviorParameters, SimulationConfig
from murmuration.flock import Flock
from murmuration.scheduler import TickError
from murmuration.simulation import FlockSimulation
from murmuration.steering import SteeringEngine


HAND_PARAMS = BehaviorParameters(
    separation_radius=5.0, alignment_radius=5.0, cohesion_radius=5.0,
    separation_weight=0.5, alignment_weight=1.0, cohesion_weight=1.0,
    max_speed=10.0, max_force=10.0,
)


def pair_states():
    return [
        ([0.0, 0.0], [0.0, 0.0], HAND_PARAMS),
        ([1.0, 0.0], [0.0, 0.0], HAND_PARAMS),
    ]


def test_step_flock_hand_scenario():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        result = sim.step_flock("pair", pair_states(), 1.0)

    assert len(result) == 2
    assert result[0].position == pytest.approx([5.0, 0.0])
    assert result[1].position == pytest.approx([-4.0, 0.0])
    assert result[0].parameters is HAND_PARAMS


def test_step_flock_accepts_agents_and_keeps_inputs():
    agents = [
        Agent(position=[0.0, 0.0, 0.0], velocity=[1.0, 0.0, 0.0], agent_id="first"),
        Agent(position=[500.0, 0.0, 0.0], velocity=[0.0, 2.0, 0.0], agent_id="second"),
    ]
    with FlockSimulation(SimulationConfig(max_workers=2)) as sim:
        result = sim.step_flock("solo", agents, 0.5)

    assert [a.agent_id for a in result] == ["first", "second"]
    assert result[0].position == pytest.approx([0.5, 0.0, 0.0])
    assert result[1].position == pytest.approx([500.0, 1.0, 0.0])
    assert agents[0].position.tolist() == [0.0, 0.0, 0.0], "input records must not be modified"


def test_step_flock_empty_and_invalid():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        assert sim.step_flock("none", [], 0.1) == []

        with pytest.raises(TypeError):
            sim.step_flock("bad", [([0.0, 0.0], [0.0, 0.0], {'max_speed': 1.0})], 0.1)


def test_step_flock_disabled_returns_input():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        sim.create_flock("resting", dimensions=2, enabled=False)
        result = sim.step_flock("resting", pair_states(), 1.0)

    assert result[0].position.tolist() == [0.0, 0.0]
    assert result[1].position.tolist() == [1.0, 0.0]


def test_tick_skips_disabled_flocks():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        moving = sim.create_flock("moving", dimensions=2,
                                  agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        resting = sim.create_flock("resting", dimensions=2, enabled=False,
                                   agents=[Agent([0.0, 0.0], [1.0, 0.0])])

        published = sim.tick(1.0)

    assert set(published) == {"moving"}
    assert moving.agents[0].position.tolist() == [1.0, 0.0]
    assert resting.agents[0].position.tolist() == [0.0, 0.0]
    assert sim.tick_count == 1


def test_flocks_do_not_interact():
    """Two flocks overlapping in space behave exactly as if alone"""
    def agents():
        return [Agent(p, [0.0, 0.0], HAND_PARAMS) for p in ([0.0, 0.0], [1.0, 0.0])]

    with FlockSimulation(SimulationConfig(max_workers=1)) as alone:
        solo = alone.create_flock("a", dimensions=2, agents=agents())
        alone.tick(1.0)

    with FlockSimulation(SimulationConfig(max_workers=1)) as together:
        first = together.create_flock("a", dimensions=2, agents=agents())
        together.create_flock("b", dimensions=2, agents=[Agent([0.5, 0.1], [0.0, 0.0], HAND_PARAMS)])
        together.tick(1.0)

    for x, y in zip(solo.agents, first.agents):
        assert np.array_equal(x.position, y.position)


def test_process_every_cadence():
    config = SimulationConfig(max_workers=1, process_every=3, tick_delta_seconds=1.0)
    with FlockSimulation(config) as sim:
        flock = sim.create_flock("f", dimensions=2, agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        results = [sim.step() for _ in range(7)]

    assert [r is not None for r in results] == [True, False, False, True, False, False, True]
    assert sim.tick_count == 3
    assert flock.agents[0].position.tolist() == [3.0, 0.0]


def test_boundary_changes_applied_on_tick():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        flock = sim.create_flock("f", dimensions=2, agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        flock.add_agent(Agent([100.0, 0.0], [0.0, 1.0]))
        assert len(flock) == 1

        sim.tick(1.0)

    assert len(flock) == 2
    assert flock.agents[1].position.tolist() == [100.0, 1.0]


def test_tick_error_publishes_nothing():
    def faulty(snapshot, batch):
        raise RuntimeError("boom")

    with FlockSimulation(SimulationConfig(max_workers=1), steering=SteeringEngine([faulty])) as sim:
        flock = sim.create_flock("f", dimensions=2, agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        with pytest.raises(TickError):
            sim.tick(1.0)

    assert flock.agents[0].position.tolist() == [0.0, 0.0]
    assert flock.tick_count == 0


def test_failed_flock_leaves_every_flock_unpublished():
    def fails_in_3d(snapshot, batch):
        if snapshot.dimensions == 3:
            raise RuntimeError("boom")
        return np.zeros((len(batch.rows), snapshot.dimensions))

    steering = SteeringEngine([fails_in_3d])
    with FlockSimulation(SimulationConfig(max_workers=1), steering=steering) as sim:
        healthy = sim.create_flock("a", dimensions=2, agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        sim.create_flock("b", dimensions=3, agents=[Agent([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])])

        with pytest.raises(TickError) as excinfo:
            sim.tick(1.0)

    assert excinfo.value.flock_id == "b"
    assert healthy.tick_count == 0
    assert healthy.agents[0].position.tolist() == [0.0, 0.0]
    assert sim.tick_count == 0


def test_dimensionality_switches():
    config = SimulationConfig(max_workers=1, process_2d=False)
    with FlockSimulation(config) as sim:
        flat = sim.create_flock("flat", dimensions=2, agents=[Agent([0.0, 0.0], [1.0, 0.0])])
        deep = sim.create_flock("deep", dimensions=3, agents=[Agent([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])])

        published = sim.tick(1.0)
        passthrough = sim.step_flock("other", pair_states(), 1.0)

    assert set(published) == {"deep"}
    assert flat.agents[0].position.tolist() == [0.0, 0.0]
    assert deep.agents[0].position.tolist() == [1.0, 0.0, 0.0]
    assert [a.position.tolist() for a in passthrough] == [[0.0, 0.0], [1.0, 0.0]]
    assert not sim.is_active(flat)
    assert sim.is_active(deep)


def test_registry():
    with FlockSimulation(SimulationConfig(max_workers=1)) as sim:
        sim.add_flock(Flock("f"))
        with pytest.raises(ValueError):
            sim.add_flock(Flock("f"))
        with pytest.raises(KeyError):
            sim.get_flock("missing")
        assert sim.remove_flock("f").flock_id == "f"
        assert sim.flocks == {}


def test_snapshot_is_json_compatible():
    config = SimulationConfig(max_workers=1, stats_enabled=True)
    with FlockSimulation(config) as sim:
        sim.create_flock("f", dimensions=3, agents=[Agent([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])],
                         target=[5.0, 5.0, 5.0])
        sim.tick()
        snapshot = sim.get_snapshot()

    encoded = json.dumps(snapshot)
    assert '"flock_id": "f"' in encoded
    assert snapshot['timing']['stats_enabled'] is True
    assert snapshot['timing']['tick_count'] == 1


def test_from_config(tmp_path):
    path = tmp_path / "flocks.yaml"
    path.write_text(textwrap.dedent("""
        simulation:
          max_workers: 2
          tick_delta_seconds: 0.1
          seed: 7
        profiles:
          starling:
            max_speed: 5.0
        flocks:
          - flock_id: north
            profile: starling
            count: 30
            bounds: {center: [0.0, 0.0, 0.0], radius: 20.0}
          - flock_id: south
            profile: starling
            count: 10
            dimensions: 2
            enabled: false
            bounds: {min: [0.0, 0.0], max: [10.0, 10.0]}
    """))

    with FlockSimulation.from_config(path) as a, FlockSimulation.from_config(path) as b:
        assert set(a.flocks) == {"north", "south"}
        assert len(a.get_flock("north")) == 30
        assert not a.get_flock("south").enabled

        for _ in range(3):
            a.tick()
            b.tick()

        assert np.array_equal(a.get_flock("north").snapshot().positions,
                              b.get_flock("north").snapshot().positions)
        assert a.get_flock("south").tick_count == 0

    with FlockSimulation.from_config(path, limit=5) as limited:
        assert len(limited.get_flock("north")) == 5
