# landfall_trend/scenarios.py
from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import product
from typing import TYPE_CHECKING, List, Tuple

import numpy as np

if TYPE_CHECKING:
    from .models import FitResult


@dataclass(frozen=True)
class SimulationConfig:
    """
    Fixed inputs of one simulation study.

    - horizon: reference horizon H every total_change is normalized to
    - baseline_rate: expected events in period 1 (lambda_0)
    - sims: replicates per scenario
    - durations: candidate observation windows (periods)
    - total_changes: candidate fractional changes over H (0 = no drift)
    - seed: root seed for every scenario's random stream
    """
    horizon: int = 100
    baseline_rate: float = 1.08
    sims: int = 1000
    durations: Tuple[int, ...] = (20, 50, 100)
    total_changes: Tuple[float, ...] = (0.0, 0.1, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0)
    seed: int = 42

    def __post_init__(self) -> None:
        # Lists from argparse are normalized so the config stays hashable.
        object.__setattr__(self, "durations", tuple(self.durations))
        object.__setattr__(self, "total_changes", tuple(float(c) for c in self.total_changes))

        if self.horizon <= 0:
            raise ValueError(f"horizon must be positive, got {self.horizon}")
        if not math.isfinite(self.baseline_rate) or self.baseline_rate <= 0:
            raise ValueError(f"baseline_rate must be positive and finite, got {self.baseline_rate}")
        if self.sims <= 0:
            raise ValueError(f"sims must be positive, got {self.sims}")
        if not self.durations:
            raise ValueError("durations must not be empty")
        for d in self.durations:
            if isinstance(d, bool) or not isinstance(d, int) or d < 1:
                raise ValueError(f"durations must be integers >= 1, got {d!r}")
        if not self.total_changes:
            raise ValueError("total_changes must not be empty")
        for c in self.total_changes:
            if not math.isfinite(c) or c <= -1.0:
                raise ValueError(f"total_changes must be finite and > -1, got {c}")


@dataclass(frozen=True)
class Scenario:
    duration: int
    total_change: float
    annual_rate: float


@dataclass(frozen=True, eq=False)
class Replicate:
    scenario: Scenario
    index: int
    counts: np.ndarray


@dataclass(frozen=True)
class ReplicateOutcome:
    """A replicate after fitting: the raw counts are no longer kept."""
    scenario: Scenario
    index: int
    fit: "FitResult"


DEFAULT_CONFIG = SimulationConfig()


def annual_rate(total_change: float, horizon: int) -> float:
    """
    Per-period growth rate r such that (1 + r) ** horizon == 1 + total_change.

    total_change == 0 gives exactly 0.0 (1.0 ** x is exact).
    """
    if horizon <= 0:
        raise ValueError(f"horizon must be positive, got {horizon}")
    if total_change <= -1.0:
        raise ValueError(f"total_change must be > -1, got {total_change}")
    return (1.0 + total_change) ** (1.0 / horizon) - 1.0


def build_scenarios(config: SimulationConfig = DEFAULT_CONFIG) -> List[Scenario]:
    """
    Full Cartesian product durations x total_changes, durations-major.

    The rate is normalized to config.horizon, not to the scenario's own
    duration: scenarios sharing a total_change share the same annual_rate.
    """
    return [
        Scenario(
            duration=int(duration),
            total_change=float(change),
            annual_rate=annual_rate(change, config.horizon),
        )
        for duration, change in product(config.durations, config.total_changes)
    ]
