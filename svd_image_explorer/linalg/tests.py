"""Tests for the dense matrix helpers, the Gaussian sampler and MGS QR."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from svd_image_explorer.common.errors import DimensionMismatch, InvalidInputError
from svd_image_explorer.linalg.matrix_ops import multiply, multiply_by_diagonal, slice_matrix, transpose
from svd_image_explorer.linalg.qr import decompose
from svd_image_explorer.linalg.sampling import sample, spawn_seed


def test_multiply_matches_matmul() -> None:
    rng = np.random.default_rng(0)
    a = rng.normal(size=(4, 3))
    b = rng.normal(size=(3, 5))
    np.testing.assert_allclose(multiply(a, b), a @ b)


def test_multiply_rejects_inner_mismatch() -> None:
    with pytest.raises(DimensionMismatch):
        multiply(np.ones((2, 3)), np.ones((4, 2)))


def test_multiply_with_empty_operand_returns_empty_rows() -> None:
    out = multiply(np.ones((3, 0)), np.ones((0, 4)))
    assert out.shape == (3, 0)
    out = multiply(np.ones((3, 2)), np.ones((2, 0)))
    assert out.shape == (3, 0)


def test_non_2d_input_is_invalid() -> None:
    with pytest.raises(InvalidInputError):
        multiply(np.ones(3), np.ones((3, 1)))


def test_transpose_returns_copy() -> None:
    a = np.arange(6, dtype=float).reshape(2, 3)
    t = transpose(a)
    assert t.shape == (3, 2)
    t[0, 0] = 99.0
    assert a[0, 0] == 0.0


def test_multiply_by_diagonal_scales_columns() -> None:
    a = np.ones((2, 3))
    out = multiply_by_diagonal(a, np.array([1.0, 2.0, 3.0]))
    np.testing.assert_allclose(out, [[1.0, 2.0, 3.0], [1.0, 2.0, 3.0]])


def test_multiply_by_diagonal_length_mismatch_truncates_and_warns(caplog: pytest.LogCaptureFixture) -> None:
    a = np.ones((2, 4))
    with caplog.at_level(logging.WARNING, logger="svd_image_explorer"):
        out = multiply_by_diagonal(a, np.array([2.0, 3.0]))
    assert out.shape == (2, 2)
    np.testing.assert_allclose(out[0], [2.0, 3.0])
    assert any("does not match" in rec.getMessage() for rec in caplog.records)


def test_slice_matrix_clamps_out_of_range() -> None:
    a = np.arange(12, dtype=float).reshape(3, 4)
    assert slice_matrix(a, 2, 3).shape == (2, 3)
    assert slice_matrix(a, 10, 10).shape == (3, 4)
    assert slice_matrix(a, -1, 2).shape == (0, 2)


def test_sampler_is_reproducible_and_standard_normal() -> None:
    first = sample(200, 200, 42)
    second = sample(200, 200, 42)
    assert np.array_equal(first, second)
    assert np.all(np.isfinite(first))
    assert abs(float(first.mean())) < 0.02
    assert abs(float(first.std()) - 1.0) < 0.02
    assert not np.array_equal(first, sample(200, 200, 43))


def test_sampler_accepts_generator() -> None:
    gen = np.random.default_rng(5)
    out = sample(3, 2, gen)
    assert out.shape == (3, 2)


def test_spawn_seed_keeps_explicit_seed() -> None:
    assert spawn_seed(17) == 17
    assert isinstance(spawn_seed(None), int)


def test_qr_orthonormal_and_reconstructs() -> None:
    rng = np.random.default_rng(1)
    a = rng.normal(size=(20, 5))
    res = decompose(a)
    np.testing.assert_allclose(res.q.T @ res.q, np.eye(5), atol=1e-10)
    np.testing.assert_allclose(np.tril(res.r, -1), 0.0)
    np.testing.assert_allclose(res.q @ res.r, a, atol=1e-10)


def test_qr_dependent_column_left_zero() -> None:
    rng = np.random.default_rng(2)
    a = rng.normal(size=(10, 3))
    a[:, 2] = a[:, 0] + a[:, 1]
    res = decompose(a)
    assert np.all(np.isfinite(res.q))
    np.testing.assert_allclose(res.q[:, 2], 0.0)
    assert res.r[2, 2] < 1e-10
    np.testing.assert_allclose(res.q[:, :2].T @ res.q[:, :2], np.eye(2), atol=1e-10)
