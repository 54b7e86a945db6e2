# landfall_trend/simulation.py
from __future__ import annotations

import math

import numpy as np
from numpy.random import Generator


def _check_inputs(duration: int, annual_rate: float, baseline_rate: float) -> None:
    if isinstance(duration, bool) or not isinstance(duration, (int, np.integer)) or duration < 1:
        raise ValueError(f"duration must be an integer >= 1, got {duration!r}")
    if not math.isfinite(baseline_rate) or baseline_rate <= 0:
        raise ValueError(f"baseline_rate must be positive and finite, got {baseline_rate}")
    if not math.isfinite(annual_rate) or annual_rate <= -1.0:
        raise ValueError(f"annual_rate must be finite and > -1, got {annual_rate}")


def period_index(duration: int) -> np.ndarray:
    """Regressor shared by simulator and estimator: periods 1..duration."""
    return np.arange(1, duration + 1, dtype=float)


def expected_counts(duration: int, annual_rate: float, baseline_rate: float) -> np.ndarray:
    """
    Expected events per period: baseline_rate * (1 + annual_rate) ** (t - 1).

    Period 1 carries no compounding, so element 0 equals baseline_rate.
    """
    _check_inputs(duration, annual_rate, baseline_rate)
    steps = np.arange(duration, dtype=float)
    return baseline_rate * np.power(1.0 + annual_rate, steps)


def simulate_counts(
    duration: int,
    annual_rate: float,
    baseline_rate: float,
    rng: Generator,
) -> np.ndarray:
    """
    One synthetic landfall series: an independent Poisson draw per period.
    """
    mu = expected_counts(duration, annual_rate, baseline_rate)
    return rng.poisson(mu).astype(np.int64)
