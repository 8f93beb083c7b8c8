"""Reconstruction and pixel-ingestion tests."""

from __future__ import annotations

import numpy as np
import pytest

from svd_image_explorer.common.config import EngineConfig
from svd_image_explorer.common.datasets import smooth_image_matrix, synthetic_rgba
from svd_image_explorer.common.errors import InvalidInputError
from svd_image_explorer.reconstruct.core import Reconstructor, low_rank_matrix, reconstruct_color, reconstruct_gray
from svd_image_explorer.reconstruct.pixels import (
    RawPixelBuffer,
    quantize,
    to_channel_matrices,
    to_grayscale_matrix,
)
from svd_image_explorer.rsvd.channels import ChannelFactorCoordinator, ChannelFactors
from svd_image_explorer.rsvd.core import RandomizedSVDEngine, truncated_svd


def test_pixel_buffer_validates_length() -> None:
    with pytest.raises(InvalidInputError):
        RawPixelBuffer(data=bytes(10), width=2, height=2)


def test_grayscale_ingestion_uses_luma_weights() -> None:
    rgba = np.zeros((1, 2, 4), dtype=np.uint8)
    rgba[0, 0] = [255, 0, 0, 255]
    rgba[0, 1] = [10, 20, 30, 0]
    gray = to_grayscale_matrix(RawPixelBuffer.from_array(rgba))
    np.testing.assert_allclose(gray, [[0.299 * 255, 0.299 * 10 + 0.587 * 20 + 0.114 * 30]])


def test_channel_ingestion_drops_alpha() -> None:
    buf = synthetic_rgba(5, 3, seed=1)
    r, g, b = to_channel_matrices(buf)
    arr = buf.as_array()
    assert r.shape == (3, 5)
    np.testing.assert_array_equal(r, arr[..., 0])
    np.testing.assert_array_equal(b, arr[..., 2])


def test_empty_image_is_invalid() -> None:
    with pytest.raises(InvalidInputError):
        to_grayscale_matrix(RawPixelBuffer(data=b"", width=0, height=3))


def test_quantize_rounds_half_up_and_clamps() -> None:
    out = quantize(np.array([[-3.0, 0.5, 1.49, 254.5, 300.0, np.nan]]))
    np.testing.assert_array_equal(out, [[0, 1, 1, 255, 255, 0]])


def test_k_zero_returns_opaque_baseline() -> None:
    f = truncated_svd(smooth_image_matrix(6, 9, seed=2), k=4)
    buf = reconstruct_gray(f, 0, width=9, height=6)
    arr = buf.as_array()
    assert (buf.width, buf.height) == (9, 6)
    assert np.all(arr[..., :3] == 0)
    assert np.all(arr[..., 3] == 255)

    grey = Reconstructor(EngineConfig(baseline_value=128)).reconstruct_gray(f, -5, 9, 6).as_array()
    assert np.all(grey[..., :3] == 128)


def test_full_rank_reconstruction_restores_integer_image() -> None:
    rng = np.random.default_rng(3)
    a = rng.integers(0, 256, size=(7, 11)).astype(np.float64)
    f = truncated_svd(a, k=7)
    arr = reconstruct_gray(f, 7, width=11, height=7).as_array()
    np.testing.assert_array_equal(arr[..., 0], a.astype(np.uint8))
    np.testing.assert_array_equal(arr[..., 1], arr[..., 0])
    np.testing.assert_array_equal(arr[..., 2], arr[..., 0])
    assert np.all(arr[..., 3] == 255)


def test_rank_above_achieved_is_clamped() -> None:
    f = truncated_svd(smooth_image_matrix(8, 8, seed=4), k=3)
    assert reconstruct_gray(f, 3, 8, 8) == reconstruct_gray(f, 500, 8, 8)


def test_reconstruction_is_deterministic() -> None:
    a = smooth_image_matrix(16, 20, seed=5)
    f = RandomizedSVDEngine().compute(a, k=6, seed=1)
    assert reconstruct_gray(f, 4, 20, 16).data == reconstruct_gray(f, 4, 20, 16).data


def test_error_is_non_increasing_in_k() -> None:
    a = smooth_image_matrix(32, 40, seed=6)
    f = RandomizedSVDEngine().compute(a, k=20, p=10, seed=2)
    errors = [np.linalg.norm(a - low_rank_matrix(f, k), ord="fro") for k in range(0, 21)]
    assert all(later <= earlier * (1 + 1e-9) + 1e-9 for earlier, later in zip(errors, errors[1:]))


def test_size_mismatch_is_invalid() -> None:
    f = truncated_svd(np.ones((4, 5)), k=1)
    with pytest.raises(InvalidInputError):
        reconstruct_gray(f, 1, width=4, height=5)


def test_color_channels_clamp_independently() -> None:
    rng = np.random.default_rng(7)
    r = rng.integers(0, 256, size=(6, 6)).astype(np.float64)
    full = truncated_svd(r, k=6)
    small = truncated_svd(r, k=2)
    factors = ChannelFactors(r=full, g=small, b=full)
    arr = reconstruct_color(factors, 6, width=6, height=6).as_array()
    np.testing.assert_array_equal(arr[..., 0], r.astype(np.uint8))
    np.testing.assert_array_equal(arr[..., 1], quantize(small.as_matrix()))
    assert np.all(arr[..., 3] == 255)


def test_color_round_trip_at_full_rank() -> None:
    buf = synthetic_rgba(10, 8, seed=8)
    r, g, b = to_channel_matrices(buf)
    factors = ChannelFactorCoordinator().compute_color(r, g, b, k=8, p=4, seed=3)
    out = reconstruct_color(factors, 8, width=10, height=8)
    np.testing.assert_array_equal(out.as_array(), buf.as_array())
