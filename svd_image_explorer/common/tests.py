"""Tests for compression metrics, configuration and logging helpers."""

from __future__ import annotations

import json

import numpy as np
import pytest

from svd_image_explorer.common.config import ColorMode, EngineConfig
from svd_image_explorer.common.logging_utils import append_jsonl, get_logger
from svd_image_explorer.common.metrics import (
    approximation_errors,
    cumulative_energy,
    element_counts,
    rank_for_energy,
    relative_frobenius_error,
)
from svd_image_explorer.rsvd.core import truncated_svd


def test_element_counts_grayscale_and_color() -> None:
    gray = element_counts(100, 200, 10, 1)
    assert gray.original == 20_000
    assert gray.compressed == 10 * 301
    assert gray.ratio == pytest.approx(20_000 / 3010)

    color = element_counts(100, 200, 10, 3)
    assert color.original == 60_000
    assert color.compressed == 3 * 10 * 301
    assert color.ratio == pytest.approx(gray.ratio)


def test_element_counts_zero_rank_has_zero_ratio() -> None:
    summary = element_counts(10, 10, 0, 3)
    assert summary.compressed == 0
    assert summary.ratio == 0.0
    assert summary.space_saving == 1.0


def test_cumulative_energy_ends_at_one() -> None:
    energy = cumulative_energy(np.array([3.0, 2.0, 1.0]))
    np.testing.assert_allclose(energy, [9 / 14, 13 / 14, 1.0])
    assert energy[-1] == 1.0
    assert np.all(np.diff(energy) >= 0.0)


def test_cumulative_energy_of_zero_spectrum_is_zero() -> None:
    energy = cumulative_energy(np.zeros(4))
    assert energy.shape == (4,)
    assert np.all(energy == 0.0)
    assert cumulative_energy(np.array([])).shape == (0,)


def test_rank_for_energy() -> None:
    s = np.array([10.0, 3.0, 1.0, 0.5])
    assert rank_for_energy(s, 0.9) == 1
    assert rank_for_energy(s, 0.99) == 3
    assert rank_for_energy(s, 1.0) == 4
    assert rank_for_energy(np.zeros(3)) == 0
    with pytest.raises(ValueError):
        rank_for_energy(s, 1.5)


def test_relative_frobenius_error() -> None:
    a = np.eye(3)
    assert relative_frobenius_error(a, a) == 0.0
    assert relative_frobenius_error(a, np.zeros((3, 3))) == pytest.approx(1.0)
    assert relative_frobenius_error(np.zeros((2, 2)), np.zeros((2, 2))) == 0.0
    with pytest.raises(ValueError):
        relative_frobenius_error(np.zeros((2, 2)), np.ones((2, 2)))


def test_approximation_errors_are_tail_energy() -> None:
    rng = np.random.default_rng(0)
    a = rng.normal(size=(8, 6))
    f = truncated_svd(a, 6)
    errors = approximation_errors(a, f, [0, 2, 6])
    assert errors[0] == pytest.approx(np.linalg.norm(a))
    assert errors[1] == pytest.approx(np.sqrt(np.sum(f.s[2:] ** 2)))
    assert errors[2] == pytest.approx(0.0, abs=1e-10)


def test_engine_config_validation() -> None:
    cfg = EngineConfig()
    assert cfg.oversampling == 15
    assert cfg.qr_tolerance == 1e-10
    assert cfg.baseline_value == 0
    with pytest.raises(ValueError):
        EngineConfig(oversampling=-1)
    with pytest.raises(ValueError):
        EngineConfig(baseline_value=300)


def test_color_mode_channel_count() -> None:
    assert ColorMode("color").channel_count == 3
    assert ColorMode.GRAYSCALE.channel_count == 1


def test_logger_hierarchy_and_jsonl(tmp_path) -> None:
    logger = get_logger("svd_image_explorer.some.module")
    assert logger.name == "svd_image_explorer.some.module"
    assert get_logger().handlers

    path = tmp_path / "runs" / "log.jsonl"
    append_jsonl(path, {"k": 1})
    append_jsonl(path, {"k": 2})
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["k"] for line in lines] == [1, 2]
