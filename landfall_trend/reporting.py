# landfall_trend/reporting.py
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
from matplotlib.figure import Figure
from scipy.stats import norm

GROUP_COLS = ["duration", "total_change"]


def implied_change_summary(results: pd.DataFrame) -> pd.DataFrame:
    """
    Central tendency and spread of implied_total_change per scenario.
    """
    return (
        results.groupby(GROUP_COLS)["implied_total_change"]
        .agg(
            n_fits="size",
            median="median",
            mean="mean",
            std="std",
            q05=lambda s: s.quantile(0.05),
            q95=lambda s: s.quantile(0.95),
        )
        .reset_index()
    )


def detection_rates(results: pd.DataFrame, alpha: float = 0.05) -> pd.DataFrame:
    """
    Share of fits where a two-sided Wald test rejects slope == 0 at alpha.

    For total_change == 0 this is the false-positive rate; otherwise it is
    the power to detect the drift with that observation window.
    """
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    z_crit = float(norm.ppf(1.0 - alpha / 2.0))
    z = results["slope"] / results["slope_se"]

    df = results[GROUP_COLS].copy()
    df["rejected"] = (z.abs() > z_crit).astype(int)
    df["rejected_increase"] = (z > z_crit).astype(int)
    df["slope_se"] = results["slope_se"]

    out = (
        df.groupby(GROUP_COLS)
        .agg(
            n_fits=("rejected", "size"),
            detection_rate=("rejected", "mean"),
            increase_rate=("rejected_increase", "mean"),
            mean_slope_se=("slope_se", "mean"),
        )
        .reset_index()
    )
    out["alpha"] = alpha
    return out


def plot_null_histograms(results: pd.DataFrame, path: Union[str, Path], bins: int = 50) -> Optional[Path]:
    """
    Histogram of implied_total_change for baseline (total_change == 0)
    scenarios, one panel per duration.

    Returns the written path, or None when the results hold no baseline rows.
    The x-range is clipped to the 1%..99% quantiles of each panel since the
    short windows have a long right tail.
    """
    null = results[results["total_change"] == 0]
    if null.empty:
        return None

    durations = sorted(null["duration"].unique())
    fig = Figure(figsize=(4 * len(durations), 3.5))
    axes = fig.subplots(1, len(durations), squeeze=False)

    for ax, duration in zip(axes[0], durations):
        values = null.loc[null["duration"] == duration, "implied_total_change"].to_numpy()
        lo, hi = np.quantile(values, [0.01, 0.99])
        ax.hist(values, bins=bins, range=(lo, hi), color="#1f77b4", alpha=0.8)
        ax.axvline(0.0, color="black", ls="--", lw=1)
        ax.set_title(f"{duration} years (n={len(values)})")
        ax.set_xlabel("implied total change")
        ax.grid(True, alpha=0.3)
    axes[0][0].set_ylabel("replicates")

    fig.suptitle("Implied change under no drift")
    fig.tight_layout()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150)
    return path


def plot_implied_change_by_scenario(results: pd.DataFrame, path: Union[str, Path]) -> Optional[Path]:
    """
    Median implied change (5%..95% band) against the simulated change,
    one line per duration.
    """
    if results.empty:
        return None

    summary = implied_change_summary(results)
    fig = Figure(figsize=(7, 4.5))
    ax = fig.subplots()

    for duration, grp in summary.groupby("duration"):
        grp = grp.sort_values("total_change")
        ax.plot(grp["total_change"], grp["median"], marker="o", label=f"{duration} years")
        ax.fill_between(grp["total_change"], grp["q05"], grp["q95"], alpha=0.15)

    changes = np.sort(summary["total_change"].unique())
    ax.plot(changes, changes, color="black", ls="--", lw=1, label="true change")

    ax.set_xlabel("simulated total change")
    ax.set_ylabel("implied total change")
    ax.set_title("Recovered drift by observation window")
    ax.grid(True, alpha=0.3)
    ax.legend(fontsize=8)
    fig.tight_layout()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150)
    return path
