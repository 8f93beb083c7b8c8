"""Plotting utilities for singular-value spectra and experiment CSVs.

Generates figures from:
- cached factors (singular values and cumulative energy at a chosen k)
- rsvd_rank_sweep.csv
- rsvd_oversampling_sweep.csv
"""

from __future__ import annotations

import argparse
import csv
from pathlib import Path
from typing import Dict, List, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from svd_image_explorer.common.metrics import cumulative_energy, rank_for_energy
from svd_image_explorer.rsvd.channels import ChannelFactors
from svd_image_explorer.rsvd.core import SVDFactors

plt.rcParams.update({
    "font.size": 11,
    "axes.titlesize": 13,
    "axes.labelsize": 12,
    "legend.fontsize": 9,
    "lines.linewidth": 2,
    "errorbar.capsize": 3,
})

CHANNEL_COLORS = {
    "gray": "#262626",
    "r": "#d73027",
    "g": "#1a9850",
    "b": "#3288bd",
}

FAMILY_COLORS = {
    "Smooth image": "#7b3294",
    "Low-Rank (r=10)": "#1a9850",
}

ENERGY_REFERENCE = 0.95


def _spectra(factors: Union[SVDFactors, ChannelFactors]) -> Dict[str, np.ndarray]:
    if isinstance(factors, ChannelFactors):
        return {name: f.s for name, f in factors.channels().items()}
    return {"gray": factors.s}


def plot_spectrum(
    factors: Union[SVDFactors, ChannelFactors],
    used_k: int,
    output_path: Path,
) -> None:
    """Singular values (log scale) and cumulative energy, with ``used_k`` marked."""

    spectra = _spectra(factors)
    fig, (ax_s, ax_e) = plt.subplots(1, 2, figsize=(13, 5))

    for name, s in spectra.items():
        if s.size == 0:
            continue
        idx = np.arange(1, s.size + 1)
        color = CHANNEL_COLORS.get(name, "#4d4d4d")
        ax_s.plot(idx, np.maximum(s, 1e-12), color=color, label=name)
        energy = 100.0 * cumulative_energy(s)
        ax_e.plot(idx, energy, color=color, label=f"{name} (95% at k={rank_for_energy(s, ENERGY_REFERENCE)})")

    for ax in (ax_s, ax_e):
        ax.axvspan(0.5, max(used_k, 0) + 0.5, color="#bdbdbd", alpha=0.35, label=f"used k = {used_k}")
        ax.set_xlabel("Index k")
        ax.grid(True, alpha=0.3, which="both")

    ax_s.set_yscale("log")
    ax_s.set_ylabel("Singular value")
    ax_s.set_title("Singular Value Spectrum")
    ax_s.legend(loc="upper right")

    ax_e.axhline(100.0 * ENERGY_REFERENCE, color="#e08214", linestyle="--", linewidth=1.2)
    ax_e.set_ylim(0.0, 101.0)
    ax_e.set_ylabel("Cumulative Energy (%)")
    ax_e.set_title("Cumulative Energy")
    ax_e.legend(loc="lower right")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)


def load_csv(path: Path) -> List[Dict[str, str]]:
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    with path.open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        return list(reader)


def _group_mean_std(
    rows: List[Dict],
    group_key: str,
    x_key: str,
    y_key: str,
) -> Dict[str, Tuple[List[float], List[float], List[float]]]:
    grouped: Dict[Tuple[str, float], List[float]] = {}
    for r in rows:
        grouped.setdefault((r[group_key], float(r[x_key])), []).append(float(r[y_key]))

    result: Dict[str, Tuple[List[float], List[float], List[float]]] = {}
    for g in sorted({key[0] for key in grouped}):
        xs = sorted({key[1] for key in grouped if key[0] == g})
        means = [float(np.mean(grouped[(g, x)])) for x in xs]
        stds = [float(np.std(grouped[(g, x)])) for x in xs]
        result[g] = (xs, means, stds)
    return result


def plot_error_vs_rank(csv_path: Path, output_path: Path) -> None:
    rows = load_csv(csv_path)
    rsvd_agg = _group_mean_std(rows, group_key="family", x_key="rank", y_key="rel_error")
    exact_agg = _group_mean_std(rows, group_key="family", x_key="rank", y_key="baseline_error")

    fig, ax = plt.subplots(figsize=(10, 6))
    for family, (ranks, means, stds) in rsvd_agg.items():
        color = FAMILY_COLORS.get(family, "#4d4d4d")
        ax.errorbar(ranks, means, yerr=stds, marker="o", color=color, label=f"{family} (RSVD)")
        ex_ranks, ex_means, _ = exact_agg[family]
        ax.plot(ex_ranks, ex_means, linestyle="--", marker="x", color=color, label=f"{family} (exact)")

    ax.set_xlabel("Rank k")
    ax.set_ylabel("Relative Frobenius Error")
    ax.set_yscale("log")
    ax.set_title("Reconstruction Error vs Rank")
    ax.grid(True, alpha=0.3, which="both")
    ax.legend(loc="upper right")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"Saved: {output_path}")


def plot_oversampling(csv_path: Path, output_path: Path) -> None:
    rows = load_csv(csv_path)
    agg = _group_mean_std(rows, group_key="family", x_key="oversampling", y_key="rel_error")

    fig, ax = plt.subplots(figsize=(10, 6))
    for family, (overs, means, stds) in agg.items():
        ax.errorbar(overs, means, yerr=stds, marker="s", color=FAMILY_COLORS.get(family, "#4d4d4d"), label=family)

    ax.set_xlabel("Oversampling p")
    ax.set_ylabel("Relative Frobenius Error")
    ax.set_yscale("log")
    ax.set_title("Reconstruction Error vs Oversampling (k fixed)")
    ax.grid(True, alpha=0.3, which="both")
    ax.legend(loc="upper right")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"Saved: {output_path}")


def generate_all_plots(results_dir: Path, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)

    rank_csv = results_dir / "rsvd_rank_sweep.csv"
    over_csv = results_dir / "rsvd_oversampling_sweep.csv"

    if rank_csv.exists():
        plot_error_vs_rank(rank_csv, output_dir / "fig1_error_vs_rank.png")
    else:
        print(f"Skipping: {rank_csv} not found")

    if over_csv.exists():
        plot_oversampling(over_csv, output_dir / "fig2_error_vs_oversampling.png")
    else:
        print(f"Skipping: {over_csv} not found")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate plots from sweep CSVs")
    parser.add_argument("--results-dir", type=Path, default=Path("results"), help="Directory containing sweep CSVs")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("results/figures"),
        help="Directory to save plots",
    )
    args = parser.parse_args()
    generate_all_plots(args.results_dir, args.output_dir)


if __name__ == "__main__":  # pragma: no cover - plotting entrypoint
    main()
