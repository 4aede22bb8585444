"""
Agent runtime representation and host adapter.

Agents are the host-facing mutable records (one per boid). The core never
reads them during a tick: they are converted into an immutable Snapshot at
the tick boundary and updated from the next Snapshot once it is published.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .data_types import BehaviorParameters
from .snapshot import Snapshot


@dataclass
class Agent:
    """
    Runtime agent in a flock.

    Attributes:
        position: 2D or 3D position [x, y(, z)]
        velocity: velocity with the same dimensionality
        parameters: shared BehaviorParameters (read-only, replaced wholesale)
        agent_id: optional host identifier (e.g. node instance id)
    """
    position: np.ndarray
    velocity: np.ndarray
    parameters: BehaviorParameters = field(default_factory=BehaviorParameters)
    agent_id: Optional[str] = None

    def __post_init__(self):
        """Ensure position and velocity are float64 arrays of matching size"""
        self.position = np.array(self.position, dtype=np.float64).reshape(-1)
        self.velocity = np.array(self.velocity, dtype=np.float64).reshape(-1)

        if self.position.shape[0] not in (2, 3):
            raise ValueError(f"Agent position must have 2 or 3 components, got {self.position.shape[0]}")
        if self.velocity.shape != self.position.shape:
            raise ValueError(
                f"Agent velocity has {self.velocity.shape[0]} components, "
                f"position has {self.position.shape[0]}"
            )

    @property
    def dimensions(self) -> int:
        return self.position.shape[0]

    @property
    def speed(self) -> float:
        return float(np.sqrt(np.dot(self.velocity, self.velocity)))

    def to_dict(self) -> dict:
        """
        Serialize agent to JSON-compatible dict.

        Returns:
            Dict with all agent fields
        """
        return {
            'agent_id': self.agent_id,
            'position': self.position.tolist(),
            'velocity': self.velocity.tolist(),
            'parameters': self.parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Agent':
        """
        Deserialize agent from dict.

        Args:
            data: Dict with agent fields

        Returns:
            Agent instance
        """
        params = data.get('parameters')
        return cls(
            position=np.array(data['position'], dtype=np.float64),
            velocity=np.array(data['velocity'], dtype=np.float64),
            parameters=BehaviorParameters(**params) if params else BehaviorParameters(),
            agent_id=data.get('agent_id'),
        )


def agents_to_snapshot(agents: Sequence[Agent], dimensions: int, tick: int = 0, target=None) -> Snapshot:
    """
    Translate host agent records into an immutable Snapshot.

    Index i of the snapshot is agents[i].
    """
    for agent in agents:
        if agent.dimensions != dimensions:
            raise ValueError(f"Agent {agent.agent_id} is {agent.dimensions}D in a {dimensions}D flock")

    if agents:
        positions = np.stack([a.position for a in agents])
        velocities = np.stack([a.velocity for a in agents])
    else:
        positions = np.empty((0, dimensions), dtype=np.float64)
        velocities = np.empty((0, dimensions), dtype=np.float64)

    return Snapshot.from_states(
        positions,
        velocities,
        [a.parameters for a in agents],
        tick=tick,
        target=target,
        dimensions=dimensions,
    )


def snapshot_to_agents(snapshot: Snapshot, agents: Optional[Sequence[Agent]] = None) -> List[Agent]:
    """
    Write a published Snapshot back to agent records.

    Existing records (index-aligned) are updated in place, keeping their ids;
    without records, new Agents are created.
    """
    if agents is None:
        return [
            Agent(
                position=snapshot.positions[i].copy(),
                velocity=snapshot.velocities[i].copy(),
                parameters=snapshot.parameters[i],
            )
            for i in range(snapshot.count)
        ]

    if len(agents) != snapshot.count:
        raise ValueError(f"Snapshot has {snapshot.count} agents, got {len(agents)} records")

    for i, agent in enumerate(agents):
        agent.position = snapshot.positions[i].copy()
        agent.velocity = snapshot.velocities[i].copy()

    return list(agents)
