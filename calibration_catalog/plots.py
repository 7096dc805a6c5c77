"""Trend plots of the accumulated calibration buckets."""

from __future__ import annotations

import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd


def plot_exposure_trends(summary: pd.DataFrame, outdir: str) -> list[str]:
    """Plot mean level and std vs exposure time, one figure per category and metric."""
    os.makedirs(outdir, exist_ok=True)
    written = []
    for name, sub in summary.groupby("CATEGORY", sort=False):
        sub = sub.sort_values("EXPTIME")
        for metric in ["MEAN", "STD"]:
            fig, ax = plt.subplots()
            ax.plot(sub["EXPTIME"], sub[metric], marker="o")
            ax.set_xlabel("Exposure time (s)")
            ax.set_ylabel(f"{metric} ADU")
            ax.set_title(str(name))
            fig.tight_layout()
            path = os.path.join(outdir, f"{name}_{metric.lower()}_vs_exptime.png")
            fig.savefig(path)
            plt.close(fig)
            written.append(path)
    return written
