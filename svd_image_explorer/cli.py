"""Command line front end: compress an image file or run the sweeps."""

from __future__ import annotations

import argparse
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
from PIL import Image

from svd_image_explorer.common.config import ColorMode, EngineConfig, SweepConfig
from svd_image_explorer.common.logging_utils import append_jsonl, get_logger, set_log_level
from svd_image_explorer.common.metrics import rank_for_energy
from svd_image_explorer.common.timing import timer
from svd_image_explorer.reconstruct.pixels import RawPixelBuffer
from svd_image_explorer.session.core import ExplorerSession

logger = get_logger(__name__)


def load_pixels(path: Path) -> RawPixelBuffer:
    """Decode an image file into an RGBA8 buffer."""

    with Image.open(path) as img:
        rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    return RawPixelBuffer.from_array(rgba)


def save_pixels(buf: RawPixelBuffer, path: Path) -> None:
    """Encode an RGBA8 buffer; the format follows the file suffix."""

    path.parent.mkdir(parents=True, exist_ok=True)
    Image.frombytes("RGBA", (buf.width, buf.height), buf.data).save(path)


def output_name(image: Path, k: int, mode: ColorMode) -> str:
    return f"{image.stem}-k{k}-{mode.value}.png"


def energy_at(curves: Dict[str, np.ndarray], k: int) -> Dict[str, float]:
    """Cumulative energy captured by the first ``k`` values of each curve."""

    return {
        name: float(curve[min(k, curve.size) - 1]) if curve.size and k > 0 else 0.0
        for name, curve in curves.items()
    }


def run_compress(args: argparse.Namespace) -> int:
    config = EngineConfig(
        oversampling=args.oversampling,
        qr_tolerance=args.qr_tolerance,
        baseline_value=args.baseline,
    )
    mode = ColorMode(args.mode)
    pixels = load_pixels(args.image)
    ks: List[int] = args.k if args.k else [args.rank]

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="svd-explorer") as pool:
        session = ExplorerSession(pool, config=config)
        image_id = session.load_image(pixels)
        with timer() as t_fac:
            factors = session.submit_factors(mode, rank=args.rank, seed=args.seed).result()
        logger.info("Decomposed %s in %.1f ms (achieved rank %d)", args.image, t_fac.millis, factors.rank)

        for k in ks:
            ticket = session.request_reconstruction(k, mode)
            buf = ticket.future.result()
            out = args.output_dir / output_name(args.image, k, mode)
            save_pixels(buf, out)

            summary = session.summary(k, mode)
            energy = energy_at(session.energy(mode), k)
            print(
                f"k={k:4d}  ratio={summary.ratio:7.2f}x  stored={summary.compressed}/{summary.original}  "
                + "  ".join(f"energy[{name}]={value * 100:6.2f}%" for name, value in energy.items())
                + f"  -> {out}"
            )
            if args.log_jsonl is not None:
                append_jsonl(
                    args.log_jsonl,
                    {
                        "image": str(args.image),
                        "image_id": image_id,
                        "mode": mode.value,
                        "rank": args.rank,
                        "k": k,
                        "oversampling": config.oversampling,
                        "seed": args.seed,
                        "original_elements": summary.original,
                        "compressed_elements": summary.compressed,
                        "ratio": summary.ratio,
                        "energy": energy,
                        "decompose_ms": t_fac.millis,
                        "output": str(out),
                    },
                )

    if args.spectrum is not None:
        # matplotlib is only needed for --spectrum.
        from svd_image_explorer.plots.plot_spectrum import plot_spectrum

        plot_spectrum(factors, ks[-1], args.spectrum)
        logger.info("Saved spectrum figure to %s", args.spectrum)

    spectra = [f.s for f in factors.channels().values()] if mode is ColorMode.COLOR else [factors.s]
    needed = max(rank_for_energy(s) for s in spectra)
    print(f"95% energy reached at k={needed} (of {factors.rank} computed)")
    return 0


def run_sweep(args: argparse.Namespace) -> int:
    from svd_image_explorer.plots.plot_spectrum import generate_all_plots
    from svd_image_explorer.rsvd.experiments import run_all

    sweep = SweepConfig(image_size=args.size, num_trials=args.trials, seed=args.seed)
    results_dir = run_all(args.output_dir, sweep=sweep)
    if args.plot:
        generate_all_plots(results_dir, results_dir / "figures")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svd_image_explorer",
        description="Explore randomized low-rank SVD approximations of images",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    compress = sub.add_parser("compress", help="Decompose an image and write reconstructions")
    compress.add_argument("image", type=Path, help="Input image file")
    compress.add_argument("--rank", type=int, default=50, help="Decomposition rank")
    compress.add_argument("--k", type=int, action="append", help="Reconstruction rank (repeatable)")
    compress.add_argument("--mode", choices=[m.value for m in ColorMode], default=ColorMode.GRAYSCALE.value)
    compress.add_argument("--oversampling", type=int, default=15, help="Oversampling p")
    compress.add_argument("--qr-tolerance", type=float, default=1e-10, help="Gram-Schmidt zero-norm tolerance")
    compress.add_argument("--baseline", type=int, default=0, help="Pixel value used when k is 0")
    compress.add_argument("--seed", type=int, default=None, help="Random seed")
    compress.add_argument("--output-dir", type=Path, default=Path("."), help="Directory for reconstructions")
    compress.add_argument("--spectrum", type=Path, default=None, help="Save a spectrum/energy figure here")
    compress.add_argument("--log-jsonl", type=Path, default=None, help="Append run records to this JSONL file")
    compress.set_defaults(func=run_compress)

    sweep = sub.add_parser("sweep", help="Run rank / oversampling sweeps on synthetic images")
    sweep.add_argument("--output-dir", type=Path, default=Path("results"))
    sweep.add_argument("--size", type=int, default=128)
    sweep.add_argument("--trials", type=int, default=3)
    sweep.add_argument("--seed", type=int, default=1234)
    sweep.add_argument("--plot", action="store_true", help="Also render figures")
    sweep.set_defaults(func=run_sweep)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_log_level(args.log_level)
    return args.func(args)
