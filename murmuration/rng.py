"""
Deterministic RNG utilities for flock spawning.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(world_seed, flock_id, agent_index, component_name). All randomness uses
numpy.random.Generator(PCG64) for reproducible cross-session results.
"""

import hashlib
import numpy as np
from typing import Any


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (world_seed, flock_id, agent_index, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        flock_seed = make_seed(world_seed, flock_id)
        velocity_seed = make_seed(flock_seed, "initial_velocity")
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def make_rng(seed: int) -> np.random.Generator:
    return np.random.Generator(np.random.PCG64(seed))


def random_unit_vectors(seed: int, count: int, dimensions: int = 3) -> np.ndarray:
    """
    Generate random unit vectors (uniform on the circle / sphere surface).

    Uses rejection sampling: generate random points in the [-1, 1]^D cube,
    reject those outside the unit ball (or too close to the origin), normalize.

    Args:
        seed: RNG seed (from make_seed())
        count: number of vectors
        dimensions: 2 or 3

    Returns:
        (count, dimensions) array of unit vectors
    """
    rng = make_rng(seed)
    out = np.empty((count, dimensions), dtype=np.float64)
    filled = 0

    while filled < count:
        vec = rng.uniform(-1.0, 1.0, size=dimensions)
        length_sq = np.dot(vec, vec)

        # Reject if outside unit ball or too close to origin
        if 0.01 < length_sq <= 1.0:
            out[filled] = vec / np.sqrt(length_sq)
            filled += 1

    return out


def random_positions_in_sphere(seed: int, center: np.ndarray, radius: float, count: int) -> np.ndarray:
    """
    Generate positions uniformly distributed within a circle / sphere.

    Uses rejection sampling in the bounding square / cube.

    Args:
        seed: RNG seed
        center: center [x, y(, z)]
        radius: radius
        count: number of positions

    Returns:
        (count, D) array of positions
    """
    rng = make_rng(seed)
    center = np.asarray(center, dtype=np.float64)
    out = np.empty((count, center.shape[0]), dtype=np.float64)
    filled = 0

    while filled < count:
        offset = rng.uniform(-radius, radius, size=center.shape[0])

        # Accept if inside sphere
        if np.dot(offset, offset) <= radius * radius:
            out[filled] = center + offset
            filled += 1

    return out


def random_positions_in_box(seed: int, lower: np.ndarray, upper: np.ndarray, count: int) -> np.ndarray:
    """
    Generate positions uniformly distributed in an axis-aligned box.

    Returns:
        (count, D) array of positions
    """
    rng = make_rng(seed)
    lower = np.asarray(lower, dtype=np.float64)
    upper = np.asarray(upper, dtype=np.float64)
    return rng.uniform(lower, upper, size=(count, lower.shape[0]))
