"""
Agent spawning system.

Spawns flocks from configuration with deterministic placement: positions
uniform within the configured sphere or box, initial velocity a random
direction at cruise speed.
"""

from typing import Dict, List, Optional

import numpy as np

from .agent import Agent
from .data_types import BehaviorParameters, FlockConfig
from .flock import Flock
from .rng import make_seed, random_positions_in_sphere, random_positions_in_box, random_unit_vectors
from .constants import CRUISE_SPEED_FRACTION


def spawn_agents(
    count: int,
    parameters: BehaviorParameters,
    bounds,
    dimensions: int,
    seed: int,
    id_prefix: str = "boid",
    cruise_fraction: float = CRUISE_SPEED_FRACTION
) -> List[Agent]:
    """
    Spawn count agents sharing one parameter set.

    Args:
        count: number of agents
        parameters: shared BehaviorParameters
        bounds: FlockBounds (sphere or box)
        dimensions: 2 or 3
        seed: base seed (positions and velocities derive sub-seeds)
        id_prefix: agent_id prefix ("{prefix}-{index:04d}")
        cruise_fraction: initial speed as a fraction of max_speed

    Returns:
        List of Agent instances, index order = spawn order
    """
    if count == 0:
        return []

    if bounds.is_sphere:
        positions = random_positions_in_sphere(
            make_seed(seed, "positions"), np.asarray(bounds.center, dtype=np.float64), bounds.radius, count
        )
    else:
        positions = random_positions_in_box(make_seed(seed, "positions"), bounds.min, bounds.max, count)

    directions = random_unit_vectors(make_seed(seed, "initial_velocity"), count, dimensions)
    velocities = directions * (parameters.max_speed * cruise_fraction)

    return [
        Agent(
            position=positions[i],
            velocity=velocities[i],
            parameters=parameters,
            agent_id=f"{id_prefix}-{i:04d}",
        )
        for i in range(count)
    ]


def spawn_flock(
    config: FlockConfig,
    profiles: Dict[str, BehaviorParameters],
    world_seed: Optional[int] = None,
    limit: Optional[int] = None
) -> Flock:
    """
    Build a Flock from its configuration.

    Args:
        config: flock definition
        profiles: profile name -> BehaviorParameters
        world_seed: simulation seed (used when the flock has none)
        limit: optional cap on spawned agents (for testing)

    Returns:
        Flock with spawned agents (empty if the profile is missing)

    Example (test override):
        flock = spawn_flock(config, profiles, world_seed=42, limit=10)
    """
    flock = Flock(
        flock_id=config.flock_id,
        dimensions=config.dimensions,
        target=config.target,
        enabled=config.enabled,
    )

    parameters = profiles.get(config.profile)
    if parameters is None:
        print(f"[WARN] Profile {config.profile} not found for flock {config.flock_id}, spawning nothing")
        return flock

    count = config.count if limit is None else min(config.count, limit)
    seed = config.seed if config.seed is not None else make_seed(world_seed, config.flock_id)

    for agent in spawn_agents(count, parameters, config.bounds, config.dimensions, seed,
                              id_prefix=config.flock_id):
        flock.agents.append(agent)

    return flock
