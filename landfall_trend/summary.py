# landfall_trend/summary.py
from __future__ import annotations

from typing import Iterable, List

import numpy as np
import pandas as pd

from .scenarios import ReplicateOutcome

RESULT_COLUMNS: List[str] = [
    "duration",
    "total_change",
    "annual_rate",
    "intercept",
    "intercept_se",
    "slope",
    "slope_se",
    "implied_total_change",
]


def implied_total_change(slope, horizon: int):
    """
    Total change over the reference horizon implied by a per-period slope:
      (1 + slope) ** horizon - 1

    Same horizon as the scenario generator, so the result is directly
    comparable to the scenario's total_change.
    """
    return np.power(1.0 + np.asarray(slope, dtype=float), horizon) - 1.0


def summarize_fits(outcomes: Iterable[ReplicateOutcome], horizon: int) -> pd.DataFrame:
    """
    One row per successful fit; FitFailure outcomes are dropped first.

    Columns follow RESULT_COLUMNS. An all-failed (or empty) input yields an
    empty frame with the same columns.
    """
    rows = []
    for outcome in outcomes:
        fit = outcome.fit
        if not fit.ok:
            continue
        rows.append({
            "duration": outcome.scenario.duration,
            "total_change": outcome.scenario.total_change,
            "annual_rate": outcome.scenario.annual_rate,
            "intercept": fit.intercept,
            "intercept_se": fit.intercept_se,
            "slope": fit.slope,
            "slope_se": fit.slope_se,
        })

    if not rows:
        return pd.DataFrame(columns=RESULT_COLUMNS)

    df = pd.DataFrame(rows)
    df["implied_total_change"] = implied_total_change(df["slope"].to_numpy(), horizon)
    return df[RESULT_COLUMNS]


def failure_counts(outcomes: Iterable[ReplicateOutcome]) -> pd.DataFrame:
    """
    Attempted / failed fits per (duration, total_change).
    """
    records = [
        {
            "duration": o.scenario.duration,
            "total_change": o.scenario.total_change,
            "failed": int(not o.fit.ok),
        }
        for o in outcomes
    ]
    if not records:
        return pd.DataFrame(columns=["duration", "total_change", "attempted", "failed", "failure_rate"])

    out = (
        pd.DataFrame(records)
        .groupby(["duration", "total_change"], as_index=False)
        .agg(attempted=("failed", "size"), failed=("failed", "sum"))
    )
    out["failure_rate"] = out["failed"] / out["attempted"]
    return out
