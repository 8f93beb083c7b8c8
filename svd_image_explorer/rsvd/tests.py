"""RSVD engine and channel coordinator tests."""

from __future__ import annotations

import csv

import numpy as np
import pytest

from svd_image_explorer.common.config import EngineConfig, SweepConfig
from svd_image_explorer.common.datasets import LowRankMatrixSpec, low_rank_matrix, smooth_image_matrix
from svd_image_explorer.common.errors import DimensionMismatch, FactorizationError, InvalidInputError
from svd_image_explorer.common.metrics import relative_frobenius_error
from svd_image_explorer.rsvd.channels import ChannelFactorCoordinator
from svd_image_explorer.rsvd.core import ExactSVD, RandomizedSVDEngine, rsvd, truncated_svd
from svd_image_explorer.rsvd.experiments import run_all


def _rank_two_4x4() -> np.ndarray:
    u1 = np.array([1.0, 1.0, 1.0, 1.0]) / 2.0
    u2 = np.array([1.0, -1.0, 1.0, -1.0]) / 2.0
    v1 = np.array([1.0, 1.0, -1.0, -1.0]) / 2.0
    v2 = np.array([1.0, -1.0, -1.0, 1.0]) / 2.0
    return 3.0 * np.outer(u1, v1) + 1.0 * np.outer(u2, v2)


def test_low_rank_recovery() -> None:
    """RSVD should closely match truncated SVD on a numerically low-rank matrix."""

    a = low_rank_matrix(LowRankMatrixSpec(m=80, n=60, r=10, decay_exponent=0.5, noise_std=0.01, seed=0))
    exact = truncated_svd(a, k=10)
    approx = rsvd(a, k=10, p=5, seed=1)

    err = relative_frobenius_error(exact.as_matrix(), approx.as_matrix())
    assert err < 0.05, f"RSVD error too large on low-rank matrix: {err:.4f}"


def test_factors_are_orthonormal_and_descending() -> None:
    a = smooth_image_matrix(48, 64, seed=3)
    f = RandomizedSVDEngine().compute(a, k=12, seed=4)
    assert f.u.shape == (48, 12) and f.s.shape == (12,) and f.vt.shape == (12, 64)
    np.testing.assert_allclose(f.u.T @ f.u, np.eye(12), atol=1e-8)
    np.testing.assert_allclose(f.vt @ f.vt.T, np.eye(12), atol=1e-8)
    assert np.all(f.s >= 0.0)
    assert np.all(np.diff(f.s) <= 1e-12)


def test_fixed_seed_is_bit_identical() -> None:
    a = smooth_image_matrix(30, 40, seed=5)
    engine = RandomizedSVDEngine()
    first = engine.compute(a, k=8, p=4, seed=11)
    second = engine.compute(a, k=8, p=4, seed=11)
    assert np.array_equal(first.u, second.u)
    assert np.array_equal(first.s, second.s)
    assert np.array_equal(first.vt, second.vt)


def test_exact_at_full_rank() -> None:
    rng = np.random.default_rng(6)
    a = rng.normal(size=(6, 5))
    f = RandomizedSVDEngine().compute(a, k=5, p=5, seed=0)
    assert f.rank == 5
    np.testing.assert_allclose(f.as_matrix(), a, atol=1e-10)


def test_rank_two_scenario() -> None:
    a = _rank_two_4x4()
    f = RandomizedSVDEngine().compute(a, k=2, p=2, seed=21)
    assert f.rank == 2
    np.testing.assert_allclose(f.s, [3.0, 1.0], atol=1e-10)
    np.testing.assert_allclose(f.as_matrix(), a, atol=1e-9)

    best_rank_one = truncated_svd(a, k=1).as_matrix()
    np.testing.assert_allclose(f.truncate(1).as_matrix(), best_rank_one, atol=1e-9)


def test_wide_and_tall_projection_paths_agree_with_exact() -> None:
    wide = low_rank_matrix(LowRankMatrixSpec(m=10, n=30, r=4, seed=7))
    tall = low_rank_matrix(LowRankMatrixSpec(m=30, n=6, r=4, seed=8))
    for a, p in ((wide, 2), (tall, 5)):
        f = RandomizedSVDEngine().compute(a, k=4, p=p, seed=9)
        np.testing.assert_allclose(f.s, truncated_svd(a, 4).s, rtol=1e-8)
        np.testing.assert_allclose(f.as_matrix(), a, atol=1e-8)


def test_rank_is_capped_by_matrix_size() -> None:
    a = np.random.default_rng(10).normal(size=(5, 7))
    f = RandomizedSVDEngine().compute(a, k=50, p=15, seed=0)
    assert f.rank == 5
    assert f.shape == (5, 7)


def test_zero_rank_and_zero_columns_give_empty_factors() -> None:
    engine = RandomizedSVDEngine()
    f = engine.compute(np.ones((4, 3)), k=0, p=0)
    assert (f.u.shape, f.s.shape, f.vt.shape) == ((4, 0), (0,), (0, 3))

    f = engine.compute(np.zeros((4, 0)), k=3)
    assert f.rank == 0
    assert f.shape == (4, 0)


def test_zero_rows_raise() -> None:
    with pytest.raises(DimensionMismatch):
        RandomizedSVDEngine().compute(np.zeros((0, 4)), k=2)
    with pytest.raises(InvalidInputError):
        RandomizedSVDEngine().compute(np.zeros((0, 4)), k=2)


def test_negative_oversampling_rejected() -> None:
    with pytest.raises(InvalidInputError):
        RandomizedSVDEngine().compute(np.ones((3, 3)), k=1, p=-1)


def test_primitive_failure_becomes_factorization_error() -> None:
    def broken(x: np.ndarray) -> ExactSVD:
        raise np.linalg.LinAlgError("SVD did not converge")

    engine = RandomizedSVDEngine(svd_primitive=broken)
    with pytest.raises(FactorizationError) as info:
        engine.compute(np.eye(4), k=2, p=1, seed=0)
    assert isinstance(info.value.__cause__, np.linalg.LinAlgError)


def test_malformed_primitive_output_is_rejected() -> None:
    def malformed(x: np.ndarray) -> ExactSVD:
        return ExactSVD(u=np.zeros((1, 1)), s=np.zeros(1), v=np.zeros((1, 1)))

    with pytest.raises(FactorizationError):
        RandomizedSVDEngine(svd_primitive=malformed).compute(np.eye(4), k=2, p=1, seed=0)


def test_config_oversampling_is_default() -> None:
    a = smooth_image_matrix(20, 20, seed=12)
    engine = RandomizedSVDEngine(EngineConfig(oversampling=3))
    assert np.array_equal(engine.compute(a, k=4, seed=1).s, engine.compute(a, k=4, p=3, seed=1).s)


def test_color_identical_channels_match_grayscale() -> None:
    a = smooth_image_matrix(24, 32, seed=13)
    coord = ChannelFactorCoordinator()
    gray = coord.compute_grayscale(a, k=6, p=4, seed=99)
    color = coord.compute_color(a, a.copy(), a.copy(), k=6, p=4, seed=99)
    for channel in (color.r, color.g, color.b):
        np.testing.assert_allclose(channel.u, gray.u, atol=1e-12)
        np.testing.assert_allclose(channel.s, gray.s, atol=1e-12)
        np.testing.assert_allclose(channel.vt, gray.vt, atol=1e-12)


def test_color_channels_can_differ_in_rank() -> None:
    rng = np.random.default_rng(14)
    full = rng.normal(size=(8, 8))
    flat = np.zeros((8, 8))
    color = ChannelFactorCoordinator().compute_color(full, flat, full, k=4, p=2, seed=1)
    assert color.shape == (8, 8)
    assert color.r.rank == 4
    assert np.allclose(color.g.s, 0.0)


def test_color_requires_matching_shapes() -> None:
    with pytest.raises(InvalidInputError):
        ChannelFactorCoordinator().compute_color(np.ones((4, 4)), np.ones((4, 5)), np.ones((4, 4)), k=2)


def test_sweeps_write_csvs(tmp_path) -> None:
    sweep = SweepConfig(ranks=[1, 5], oversampling_values=[0, 5], image_size=24, num_trials=1, seed=3)
    out = run_all(tmp_path, sweep=sweep)

    with (out / "rsvd_rank_sweep.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 2 * 2
    for row in rows:
        assert float(row["rel_error"]) >= float(row["baseline_error"]) - 1e-9
        assert 0.0 <= float(row["captured_energy"]) <= 1.0

    with (out / "rsvd_oversampling_sweep.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert {int(row["oversampling"]) for row in rows} == {0, 5}


if __name__ == "__main__":  # pragma: no cover - manual execution
    test_low_rank_recovery()
    test_rank_two_scenario()
    print("RSVD tests passed.")
