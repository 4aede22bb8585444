"""
Murmuration Flocking Core

A parallel boids simulation core: agents steer by separation, alignment, and
cohesion over immutable per-tick snapshots, and ticks are spread over a
fixed-size worker pool with results identical to a single-threaded run.

Architecture: the host owns the agents. Each tick reads one published
snapshot and publishes the next; nothing is mutated in place.
"""

__version__ = "0.1.0"

from .agent import Agent
from .data_types import BehaviorParameters, ConfigurationError, SimulationConfig, TickTimings
from .flock import Flock
from .integrator import Integrator
from .neighbors import AllPairsScan, KDTreeIndex, NeighborBatch, NeighborQuery, make_neighbor_query
from .scheduler import FlockScheduler, TickError
from .simulation import FlockSimulation
from .snapshot import Snapshot
from .stats import PrintSink, StatsCollector
from .steering import SteeringEngine

__all__ = [
    "Agent",
    "AllPairsScan",
    "BehaviorParameters",
    "ConfigurationError",
    "Flock",
    "FlockScheduler",
    "FlockSimulation",
    "Integrator",
    "KDTreeIndex",
    "NeighborBatch",
    "NeighborQuery",
    "PrintSink",
    "SimulationConfig",
    "Snapshot",
    "StatsCollector",
    "SteeringEngine",
    "TickError",
    "TickTimings",
    "make_neighbor_query",
]
