"""Tests for the background entry points, the session and the CLI."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from PIL import Image

from svd_image_explorer.cli import load_pixels, main, save_pixels
from svd_image_explorer.common.config import ColorMode
from svd_image_explorer.common.datasets import synthetic_rgba
from svd_image_explorer.common.errors import InvalidInputError
from svd_image_explorer.rsvd.channels import ChannelFactors
from svd_image_explorer.rsvd.core import SVDFactors
from svd_image_explorer.session.core import (
    ExplorerSession,
    LRUCache,
    compute_factors,
    image_fingerprint,
    reconstruct,
)


@pytest.fixture
def pool():
    with ThreadPoolExecutor(max_workers=2) as executor:
        yield executor


def test_compute_factors_modes() -> None:
    pixels = synthetic_rgba(12, 9, seed=0)
    gray = compute_factors(pixels, rank=4, oversampling=3, mode=ColorMode.GRAYSCALE, seed=1)
    color = compute_factors(pixels, rank=4, oversampling=3, mode="color", seed=1)
    assert isinstance(gray, SVDFactors)
    assert isinstance(color, ChannelFactors)
    assert gray.shape == (9, 12)
    assert color.shape == (9, 12)


def test_reconstruct_takes_size_from_factors() -> None:
    pixels = synthetic_rgba(12, 9, seed=0)
    color = compute_factors(pixels, rank=9, oversampling=5, mode=ColorMode.COLOR, seed=2)
    buf = reconstruct(color, 9)
    assert (buf.width, buf.height) == (12, 9)
    np.testing.assert_array_equal(buf.as_array(), pixels.as_array())


def test_lru_cache_evicts_oldest() -> None:
    cache: LRUCache[str, int] = LRUCache(maxsize=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1
    cache.put("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert len(cache) == 2


def test_session_caches_factors_per_mode(pool) -> None:
    session = ExplorerSession(pool)
    pixels = synthetic_rgba(16, 10, seed=3)
    image_id = session.load_image(pixels)
    assert image_id == image_fingerprint(pixels)

    gray = session.submit_factors(ColorMode.GRAYSCALE, rank=5, seed=1).result()
    assert session.factors(ColorMode.GRAYSCALE) is gray
    assert session.factors(ColorMode.COLOR) is None
    assert session.submit_factors(ColorMode.GRAYSCALE, rank=5).result() is gray

    color = session.submit_factors(ColorMode.COLOR, rank=5, seed=1).result()
    assert isinstance(color, ChannelFactors)


def test_session_reconstruction_and_summary(pool) -> None:
    session = ExplorerSession(pool)
    session.load_image(synthetic_rgba(16, 10, seed=4))
    session.submit_factors(ColorMode.COLOR, rank=6, seed=2).result()

    ticket = session.request_reconstruction(3, ColorMode.COLOR)
    buf = ticket.future.result()
    assert (buf.width, buf.height) == (16, 10)

    summary = session.summary(3, ColorMode.COLOR)
    assert summary.original == 16 * 10 * 3
    assert summary.compressed == 3 * 3 * (10 + 16 + 1)
    curves = session.energy(ColorMode.COLOR)
    assert set(curves) == {"r", "g", "b"}
    assert all(curve[-1] == pytest.approx(1.0) for curve in curves.values())


def test_latest_request_wins(pool) -> None:
    session = ExplorerSession(pool)
    session.load_image(synthetic_rgba(20, 14, seed=5))
    session.submit_factors(ColorMode.GRAYSCALE, rank=8, seed=3).result()

    first = session.request_reconstruction(2)
    second = session.request_reconstruction(7)
    assert not session.is_current(first)
    assert session.is_current(second)

    first.future.result()
    expected = second.future.result()

    latest = session.latest_reconstruction()
    assert latest is not None
    generation, buf = latest
    assert generation == second.generation
    assert buf == expected

    # Finishing a superseded request never replaces the newest result.
    third = session.request_reconstruction(2)
    assert third.future.result() == first.future.result()
    assert session.latest_reconstruction()[0] == third.generation


def test_cached_reconstruction_is_reused(pool) -> None:
    session = ExplorerSession(pool)
    session.load_image(synthetic_rgba(8, 8, seed=6))
    session.submit_factors(ColorMode.GRAYSCALE, rank=4, seed=0).result()
    first = session.request_reconstruction(4).future.result()
    # Ranks above the achieved rank map to the same cache entry.
    again = session.request_reconstruction(40)
    assert again.future.done()
    assert again.future.result() is first


def test_load_image_discards_caches(pool) -> None:
    session = ExplorerSession(pool)
    session.load_image(synthetic_rgba(8, 8, seed=7))
    session.submit_factors(ColorMode.GRAYSCALE, rank=3, seed=0).result()
    session.request_reconstruction(2).future.result()

    session.load_image(synthetic_rgba(8, 8, seed=8))
    assert session.factors(ColorMode.GRAYSCALE) is None
    assert session.latest_reconstruction() is None
    with pytest.raises(InvalidInputError):
        session.request_reconstruction(2)


def test_session_requires_image(pool) -> None:
    session = ExplorerSession(pool)
    with pytest.raises(InvalidInputError):
        session.submit_factors(ColorMode.GRAYSCALE)


def test_pillow_round_trip(tmp_path) -> None:
    pixels = synthetic_rgba(7, 5, seed=9)
    path = tmp_path / "img.png"
    save_pixels(pixels, path)
    assert load_pixels(path) == pixels


def test_cli_compress_writes_outputs(tmp_path, capsys) -> None:
    image = tmp_path / "photo.png"
    rgb = synthetic_rgba(24, 16, seed=10).as_array()[..., :3]
    Image.fromarray(np.ascontiguousarray(rgb)).save(image)
    out_dir = tmp_path / "out"
    log = tmp_path / "runs.jsonl"

    code = main([
        "--log-level", "WARNING",
        "compress", str(image),
        "--rank", "8", "--k", "0", "--k", "4",
        "--mode", "color", "--seed", "1",
        "--output-dir", str(out_dir),
        "--log-jsonl", str(log),
        "--spectrum", str(tmp_path / "spectrum.png"),
    ])

    assert code == 0
    blank = load_pixels(out_dir / "photo-k0-color.png").as_array()
    assert np.all(blank[..., :3] == 0) and np.all(blank[..., 3] == 255)
    assert (out_dir / "photo-k4-color.png").exists()
    assert (tmp_path / "spectrum.png").exists()
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    assert [r["k"] for r in records] == [0, 4]
    assert records[1]["compressed_elements"] == 3 * 4 * (16 + 24 + 1)
    assert "95% energy reached" in capsys.readouterr().out
