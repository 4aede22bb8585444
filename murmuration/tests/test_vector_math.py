"""
Test vector helpers: single-vector and row-wise variants.

Verifies:
- Zero vectors normalize to zero (no NaN)
- Clamping keeps direction and never lengthens
- Row-wise helpers match their single-vector counterparts
"""

import numpy as np
import pytest

from murmuration.vector_math import (
    as_vector, add, subtract, scale, dot, length, length_squared,
    distance, distance_squared, normalize, clamp_length,
    lengths, normalize_rows, clamp_rows
)


def test_basic_arithmetic():
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([4.0, -1.0, 0.5])

    assert np.array_equal(add(a, b), [5.0, 1.0, 3.5])
    assert np.array_equal(subtract(a, b), [-3.0, 3.0, 2.5])
    assert np.array_equal(scale(a, 2.0), [2.0, 4.0, 6.0])
    assert dot(a, b) == pytest.approx(3.5)
    assert length_squared(a) == pytest.approx(14.0)
    assert length(np.array([3.0, 4.0])) == pytest.approx(5.0)
    assert distance_squared(np.array([0.0, 0.0]), np.array([3.0, 4.0])) == pytest.approx(25.0)
    assert distance(np.array([0.0, 0.0]), np.array([3.0, 4.0])) == pytest.approx(5.0)


def test_as_vector_validates_components():
    assert as_vector([1, 2]).dtype == np.float64
    assert as_vector((1, 2, 3), dimensions=3).shape == (3,)
    assert as_vector([1, 2, 3], dimensions=None).shape == (3,)

    with pytest.raises(ValueError):
        as_vector([1.0])
    with pytest.raises(ValueError):
        as_vector([1.0, 2.0, 3.0, 4.0])
    with pytest.raises(ValueError):
        as_vector([1.0, 2.0], dimensions=3)


def test_normalize_zero_vector_is_zero():
    result = normalize(np.zeros(3))
    assert np.array_equal(result, np.zeros(3))
    assert not np.any(np.isnan(result))

    unit = normalize(np.array([0.0, 3.0, 4.0]))
    assert length(unit) == pytest.approx(1.0)
    assert unit == pytest.approx([0.0, 0.6, 0.8])


def test_clamp_length():
    v = np.array([6.0, 8.0])
    clamped = clamp_length(v, 5.0)
    assert length(clamped) == pytest.approx(5.0)
    assert clamped == pytest.approx([3.0, 4.0])

    short = np.array([1.0, 1.0])
    result = clamp_length(short, 5.0)
    assert np.array_equal(result, short)
    assert result is not short, "clamp_length must return a copy"


def test_row_variants_match_single_vector():
    rng = np.random.Generator(np.random.PCG64(7))
    rows = rng.uniform(-10.0, 10.0, size=(20, 3))
    rows[3] = 0.0

    assert lengths(rows) == pytest.approx([length(r) for r in rows])

    normalized = normalize_rows(rows)
    for row, expected in zip(normalized, rows):
        assert row == pytest.approx(normalize(expected))
    assert np.array_equal(normalized[3], np.zeros(3))

    limits = np.linspace(0.5, 20.0, 20)
    clamped = clamp_rows(rows, limits)
    for row, original, limit in zip(clamped, rows, limits):
        assert row == pytest.approx(clamp_length(original, limit))
        assert length(row) <= limit * (1.0 + 1e-12)


def test_clamp_rows_scalar_bound_and_empty():
    rows = np.array([[10.0, 0.0], [0.5, 0.0]])
    clamped = clamp_rows(rows, 2.0)
    assert clamped == pytest.approx([[2.0, 0.0], [0.5, 0.0]])
    assert np.array_equal(rows, [[10.0, 0.0], [0.5, 0.0]]), "input must not be modified"

    empty = clamp_rows(np.empty((0, 3)), 1.0)
    assert empty.shape == (0, 3)
