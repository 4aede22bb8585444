"""
Flocking simulation driver.

Owns the flocks, one shared FlockScheduler (and worker pool), optional
timing diagnostics, and the host-facing call/response API. Flocks are
independent: no agent ever sees an agent of another flock.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .agent import Agent
from .data_types import BehaviorParameters, SimulationConfig
from .flock import Flock
from .integrator import validate_timestep
from .loader import load_config
from .neighbors import make_neighbor_query
from .scheduler import FlockScheduler
from .snapshot import Snapshot
from .spawning import spawn_flock
from .stats import StatsCollector
from .steering import SteeringEngine

# (position, velocity, parameters) as supplied by a host
HostState = tuple


class FlockSimulation:
    """
    Multi-flock simulation.

    tick() advances every active flock once; step() is the per-physics-frame
    entry point that honours the process_every cadence.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        steering: Optional[SteeringEngine] = None,
        stats: Optional[StatsCollector] = None
    ):
        """
        Args:
            config: simulation settings (defaults if None)
            steering: steering engine (extra behavior terms live here)
            stats: timing collector; created automatically when
                config.stats_enabled is set
        """
        self.config = config if config is not None else SimulationConfig()

        if stats is None and self.config.stats_enabled:
            stats = StatsCollector()
        self.stats = stats

        self.scheduler = FlockScheduler(
            max_workers=self.config.max_workers,
            chunk_size=self.config.chunk_size,
            neighbor_query=make_neighbor_query(self.config.neighbor_backend),
            steering=steering,
            stats=stats,
        )

        self.flocks: Dict[str, Flock] = {}
        self.tick_count: int = 0
        self._frame_count: int = 0

    @classmethod
    def from_config(cls, path: Path, limit: Optional[int] = None, **kwargs) -> 'FlockSimulation':
        """
        Build a simulation and its flocks from a YAML configuration.

        Args:
            path: configuration file
            limit: optional per-flock agent cap (for testing)
        """
        flocking = load_config(Path(path))
        sim = cls(config=flocking.simulation, **kwargs)

        for flock_config in flocking.flocks:
            sim.add_flock(spawn_flock(flock_config, flocking.profiles, flocking.simulation.seed, limit))

        print(f"[OK] Simulation initialized: {len(sim.flocks)} flocks, "
              f"{sum(len(f) for f in sim.flocks.values())} agents, "
              f"dt={sim.config.tick_delta_seconds}s, seed={flocking.simulation.seed}")
        return sim

    def __enter__(self) -> 'FlockSimulation':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.scheduler.close()

    # ========================================================================
    # Flock registry
    # ========================================================================

    def add_flock(self, flock: Flock) -> Flock:
        if flock.flock_id in self.flocks:
            raise ValueError(f"Flock {flock.flock_id} already registered")
        self.flocks[flock.flock_id] = flock
        return flock

    def create_flock(self, flock_id: str, dimensions: int = 3, agents: Sequence[Agent] = (),
                     target=None, enabled: bool = True) -> Flock:
        return self.add_flock(Flock(flock_id, dimensions, agents, target=target, enabled=enabled))

    def remove_flock(self, flock_id: str) -> Flock:
        return self.flocks.pop(flock_id)

    def get_flock(self, flock_id: str) -> Flock:
        try:
            return self.flocks[flock_id]
        except KeyError:
            raise KeyError(f"Unknown flock {flock_id!r}") from None

    # ========================================================================
    # Ticking
    # ========================================================================

    def is_active(self, flock: Flock) -> bool:
        """Flock is enabled and its dimensionality is switched on"""
        return flock.enabled and self.config.processes(flock.dimensions)

    def tick(self, dt: Optional[float] = None) -> Dict[str, Snapshot]:
        """
        Advance every active flock by one timestep.

        All flocks are computed first and published only if every one of
        them succeeded. On TickError no flock advances and tick_count is
        unchanged (queued boundary changes stay applied).

        Returns:
            flock_id -> published snapshot (inactive flocks omitted)
        """
        dt = validate_timestep(self.config.tick_delta_seconds if dt is None else dt)

        # Phase 1: compute every flock's successor
        computed = {}
        for flock_id, flock in self.flocks.items():
            if not self.is_active(flock):
                continue
            flock.apply_pending()
            computed[flock_id] = self.scheduler.tick(flock.snapshot(), dt, flock_id=flock_id)

        # Phase 2: publish
        for flock_id, next_snapshot in computed.items():
            self.flocks[flock_id].publish(next_snapshot)
        self.tick_count += 1
        return computed

    def step(self, dt: Optional[float] = None) -> Optional[Dict[str, Snapshot]]:
        """
        Per-physics-frame entry point.

        Ticks only every config.process_every frames; returns None on frames
        that are skipped.
        """
        frame = self._frame_count
        self._frame_count += 1
        if frame % self.config.process_every != 0:
            return None
        return self.tick(dt)

    def step_flock(
        self,
        flock_id: str,
        states: Sequence[Union[Agent, HostState]],
        dt: float
    ) -> List[Agent]:
        """
        Host call/response interface for one flock.

        Args:
            flock_id: flock label (used for errors and diagnostics)
            states: ordered agent states, either Agent records or
                (position, velocity, BehaviorParameters) tuples
            dt: timestep in seconds

        Returns:
            Ordered next states as new Agent records; index i in is index i out.
            Input records are not modified. A disabled flock, or one whose
            dimensionality is switched off, returns copies of its inputs.
        """
        agents = [_as_agent(state) for state in states]
        flock = self.flocks.get(flock_id)
        dimensions = agents[0].dimensions if agents else (flock.dimensions if flock else 3)
        target = flock.target if flock is not None else None

        if (flock is not None and not flock.enabled) or not self.config.processes(dimensions):
            return [Agent(a.position.copy(), a.velocity.copy(), a.parameters, a.agent_id) for a in agents]

        staging = Flock(flock_id, dimensions, agents, target=target)
        snapshot = staging.snapshot()
        next_snapshot = self.scheduler.tick(snapshot, dt, flock_id=flock_id)

        return [
            Agent(
                position=next_snapshot.positions[i].copy(),
                velocity=next_snapshot.velocities[i].copy(),
                parameters=agents[i].parameters,
                agent_id=agents[i].agent_id,
            )
            for i in range(next_snapshot.count)
        ]

    # ========================================================================
    # Reporting
    # ========================================================================

    def get_tick_stats(self) -> dict:
        if self.stats is None:
            return {'tick_count': self.tick_count, 'stats_enabled': False}
        stats = self.stats.get_tick_stats()
        stats['stats_enabled'] = True
        return stats

    def get_snapshot(self) -> dict:
        """
        Get complete simulation state snapshot.

        Returns:
            Dict with tick_count, flocks (with agents), timing
        """
        return {
            'tick_count': self.tick_count,
            'flock_count': len(self.flocks),
            'flocks': [f.to_dict() for f in self.flocks.values()],
            'timing': self.get_tick_stats(),
        }

    def print_tick_summary(self):
        """Print tick summary to console (requires stats)"""
        if self.stats is None:
            print(f"Tick {self.tick_count:5d} | stats disabled")
            return
        self.stats.print_tick_summary()


def _as_agent(state: Union[Agent, HostState]) -> Agent:
    if isinstance(state, Agent):
        return Agent(state.position.copy(), state.velocity.copy(), state.parameters, state.agent_id)

    position, velocity, parameters = state
    if not isinstance(parameters, BehaviorParameters):
        raise TypeError(f"Expected BehaviorParameters, got {type(parameters).__name__}")
    return Agent(np.array(position, dtype=np.float64), np.array(velocity, dtype=np.float64), parameters)
