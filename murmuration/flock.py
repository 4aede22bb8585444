"""
Flock: an ordered agent collection with boundary-only membership changes.

Additions, removals, and parameter replacements are queued and applied by
apply_pending() at the tick boundary, so agent indices stay stable for the
whole of a tick. The flock owns the currently published Snapshot and swaps
it for the next one in publish().
"""

from typing import List, Optional, Sequence, Union

import numpy as np

from .agent import Agent, agents_to_snapshot, snapshot_to_agents
from .data_types import BehaviorParameters
from .snapshot import Snapshot
from .vector_math import as_vector


class Flock:
    """
    Collection of agents simulated together.

    Attributes:
        flock_id: host-facing identifier
        dimensions: 2 or 3
        agents: agent records, index-aligned with the current snapshot
        target: optional target position steered toward (target_weight)
        enabled: disabled flocks are skipped by the simulation
    """

    def __init__(
        self,
        flock_id: str,
        dimensions: int = 3,
        agents: Sequence[Agent] = (),
        target=None,
        enabled: bool = True
    ):
        if dimensions not in (2, 3):
            raise ValueError(f"Flock dimensions must be 2 or 3, got {dimensions}")

        self.flock_id = flock_id
        self.dimensions = dimensions
        self.enabled = enabled
        self.agents: List[Agent] = []
        self._target: Optional[np.ndarray] = None
        self._snapshot: Optional[Snapshot] = None
        self._tick: int = 0

        # Pending boundary changes
        self._pending_add: List[Agent] = []
        self._pending_remove: List[Agent] = []
        self._pending_params: List[tuple] = []  # (BehaviorParameters, agents or None)

        for agent in agents:
            self._check_dimensions(agent)
            self.agents.append(agent)
        self.set_target(target)

    def __len__(self) -> int:
        return len(self.agents)

    def _check_dimensions(self, agent: Agent):
        if agent.dimensions != self.dimensions:
            raise ValueError(
                f"Agent {agent.agent_id} is {agent.dimensions}D, flock {self.flock_id} is {self.dimensions}D"
            )

    @property
    def target(self) -> Optional[np.ndarray]:
        return self._target

    @property
    def tick_count(self) -> int:
        return self._tick

    def set_target(self, target):
        """Set (or clear with None) the target position; applies from the next snapshot"""
        self._target = as_vector(target, self.dimensions) if target is not None else None
        self._snapshot = None

    # ========================================================================
    # Boundary changes
    # ========================================================================

    def add_agent(self, agent: Agent):
        """Queue an agent for addition at the next tick boundary"""
        self._check_dimensions(agent)
        self._pending_add.append(agent)

    def remove_agent(self, agent_or_index: Union[Agent, int]):
        """Queue an agent (or current index) for removal at the next tick boundary"""
        if isinstance(agent_or_index, Agent):
            agent = agent_or_index
        else:
            agent = self.agents[agent_or_index]
        self._pending_remove.append(agent)

    def set_parameters(self, parameters: BehaviorParameters, indices: Optional[Sequence[int]] = None):
        """
        Replace parameters wholesale at the next tick boundary.

        Indices refer to the current membership and are resolved to agent
        records immediately, so removals queued in the same boundary do not
        shift them onto other agents. A resolved agent that is removed before
        the boundary is simply skipped.

        Args:
            parameters: new parameter set (shared by reference)
            indices: agent indices to update (None = every agent)

        Raises:
            TypeError: parameters is not a BehaviorParameters
            IndexError: an index is outside the current membership
        """
        if not isinstance(parameters, BehaviorParameters):
            raise TypeError(f"Expected BehaviorParameters, got {type(parameters).__name__}")

        if indices is None:
            self._pending_params.append((parameters, None))
            return

        count = len(self.agents)
        targets = []
        for index in indices:
            index = int(index)
            if not 0 <= index < count:
                raise IndexError(f"Agent index {index} out of range for flock {self.flock_id} ({count} agents)")
            targets.append(self.agents[index])
        self._pending_params.append((parameters, targets))

    @property
    def has_pending(self) -> bool:
        return bool(self._pending_add or self._pending_remove or self._pending_params)

    def apply_pending(self):
        """
        Apply queued changes: removals, then additions, then parameter sets.

        Surviving agents keep their relative order; additions are appended.
        The new membership is built aside and swapped in together with
        clearing the queues, so a change is applied exactly once.
        """
        if not self.has_pending:
            return

        removed = {id(a) for a in self._pending_remove}
        agents = [a for a in self.agents if id(a) not in removed]

        present = {id(a) for a in agents}
        for agent in self._pending_add:
            if id(agent) not in present:
                agents.append(agent)
                present.add(id(agent))

        for parameters, targets in self._pending_params:
            for agent in (agents if targets is None else targets):
                if id(agent) in present:
                    agent.parameters = parameters

        self.agents = agents
        self._pending_add = []
        self._pending_remove = []
        self._pending_params = []
        self._snapshot = None

    # ========================================================================
    # Snapshots
    # ========================================================================

    def snapshot(self) -> Snapshot:
        """
        Current published snapshot.

        Rebuilt from the agent records only after boundary changes.
        """
        if self._snapshot is None:
            self._snapshot = agents_to_snapshot(
                self.agents, self.dimensions, tick=self._tick, target=self._target
            )
        return self._snapshot

    def mark_dirty(self):
        """Host edited agent records directly; rebuild the snapshot on next use"""
        self._snapshot = None

    def publish(self, next_snapshot: Snapshot):
        """
        Swap in the next snapshot and write it back to the agent records.

        The previous snapshot object is left untouched for any reader still
        holding it.
        """
        if next_snapshot.count != len(self.agents):
            raise ValueError(
                f"Snapshot has {next_snapshot.count} agents, flock {self.flock_id} has {len(self.agents)}"
            )
        self._snapshot = next_snapshot
        self._tick = next_snapshot.tick
        snapshot_to_agents(next_snapshot, self.agents)

    def to_dict(self) -> dict:
        return {
            'flock_id': self.flock_id,
            'dimensions': self.dimensions,
            'enabled': self.enabled,
            'tick': self._tick,
            'target': self._target.tolist() if self._target is not None else None,
            'agent_count': len(self.agents),
            'agents': [a.to_dict() for a in self.agents],
        }
