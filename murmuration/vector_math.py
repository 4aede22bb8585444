"""
Vector helper utilities for steering and integration.

Small, focused functions with no simulation state. All helpers operate on
float64 numpy arrays of 2 or 3 components (or row-wise on (N, D) arrays)
and are safe to use in deterministic, per-agent calculations.
"""
from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

VectorLike = Union[np.ndarray, Sequence[float]]


def as_vector(values: VectorLike, dimensions: Optional[int] = None) -> np.ndarray:
    """
    Coerce host input to a float64 vector.

    Raises ValueError unless the result has 2 or 3 components
    (or exactly `dimensions` components when given).
    """
    vec = np.array(values, dtype=np.float64).reshape(-1)
    expected = (dimensions,) if dimensions is not None else (2, 3)
    if vec.shape[0] not in expected:
        raise ValueError(f"Expected a vector with {' or '.join(map(str, expected))} components, got {vec.shape[0]}")
    return vec


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.add(a, b)


def subtract(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.subtract(a, b)


def scale(v: np.ndarray, factor: float) -> np.ndarray:
    return np.multiply(v, factor)


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.dot(a, b))


def length_squared(v: np.ndarray) -> float:
    return float(np.dot(v, v))


def length(v: np.ndarray) -> float:
    return float(np.sqrt(np.dot(v, v)))


def distance_squared(a: np.ndarray, b: np.ndarray) -> float:
    diff = np.subtract(a, b)
    return float(np.dot(diff, diff))


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sqrt(distance_squared(a, b)))


def normalize(v: np.ndarray) -> np.ndarray:
    """
    Return v scaled to unit length.

    A zero-length vector yields the zero vector (no division by zero).
    """
    v = np.asarray(v, dtype=np.float64)
    len_sq = float(np.dot(v, v))
    if len_sq == 0.0:
        return np.zeros_like(v)
    return v / np.sqrt(len_sq)


def clamp_length(v: np.ndarray, max_length: float) -> np.ndarray:
    """
    Cap the magnitude of v at max_length, keeping its direction.

    Vectors already within the bound are returned unchanged (as a copy).
    """
    v = np.asarray(v, dtype=np.float64)
    len_sq = float(np.dot(v, v))
    if len_sq > max_length * max_length:
        return v * (max_length / np.sqrt(len_sq))
    return v.copy()


# ============================================================================
# Row-wise (N, D) variants
# ============================================================================

def lengths(rows: np.ndarray) -> np.ndarray:
    """(N,) magnitudes of an (N, D) array"""
    return np.sqrt(np.einsum('ij,ij->i', rows, rows))


def normalize_rows(rows: np.ndarray) -> np.ndarray:
    """
    Normalize each row of an (N, D) array.

    Zero rows stay zero.
    """
    norms = lengths(rows)
    out = np.zeros_like(rows)
    nonzero = norms > 0.0
    out[nonzero] = rows[nonzero] / norms[nonzero, np.newaxis]
    return out


def clamp_rows(rows: np.ndarray, max_lengths) -> np.ndarray:
    """
    Cap each row's magnitude at the matching entry of max_lengths.

    Args:
        rows: (N, D) array
        max_lengths: scalar or (N,) array of bounds

    Returns:
        New (N, D) array; rows within their bound are unchanged
    """
    max_lengths = np.broadcast_to(np.asarray(max_lengths, dtype=np.float64), (rows.shape[0],))
    norms = lengths(rows)
    over = norms > max_lengths
    out = rows.copy()
    out[over] = rows[over] * (max_lengths[over] / norms[over])[:, np.newaxis]
    return out
