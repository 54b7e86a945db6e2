"""Tests for landfall_trend.summary."""

from __future__ import annotations

import numpy as np
import pytest

from landfall_trend.models import FitFailure, TrendFit, fit_trend
from landfall_trend.scenarios import ReplicateOutcome, Scenario, annual_rate
from landfall_trend.summary import (
    RESULT_COLUMNS,
    failure_counts,
    implied_total_change,
    summarize_fits,
)

BASELINE = Scenario(duration=20, total_change=0.0, annual_rate=0.0)
TRIPLING = Scenario(duration=100, total_change=2.0, annual_rate=annual_rate(2.0, 100))


def _fit(slope: float, intercept: float = 0.05) -> TrendFit:
    return TrendFit(
        intercept=intercept,
        intercept_se=0.2,
        slope=slope,
        slope_se=0.01,
        engine="glm",
    )


def test_implied_total_change():
    assert implied_total_change(0.0, 100) == 0.0
    assert implied_total_change(0.01, 100) == pytest.approx(1.01 ** 100 - 1)
    np.testing.assert_allclose(
        implied_total_change(np.array([0.0, -0.01]), 50),
        [0.0, 0.99 ** 50 - 1],
    )


def test_rate_round_trips_through_implied_change():
    assert implied_total_change(TRIPLING.annual_rate, 100) == pytest.approx(2.0)


def test_failures_are_dropped_and_rows_carry_scenario_fields():
    outcomes = [
        ReplicateOutcome(BASELINE, 0, _fit(0.002)),
        ReplicateOutcome(BASELINE, 1, FitFailure(reason="boom", engine="glm")),
        ReplicateOutcome(TRIPLING, 0, _fit(0.011, intercept=0.07)),
    ]

    df = summarize_fits(outcomes, horizon=100)

    assert list(df.columns) == RESULT_COLUMNS
    assert len(df) == 2
    first, second = df.iloc[0], df.iloc[1]
    assert first["duration"] == 20 and first["total_change"] == 0.0 and first["annual_rate"] == 0.0
    assert first["implied_total_change"] == pytest.approx(1.002 ** 100 - 1)
    assert second["duration"] == 100
    assert second["annual_rate"] == pytest.approx(TRIPLING.annual_rate)
    assert second["intercept"] == 0.07
    assert second["slope_se"] == 0.01


def test_degenerate_replicate_is_excluded_without_crashing():
    failed = fit_trend(np.zeros(20, dtype=int))
    outcomes = [
        ReplicateOutcome(BASELINE, 0, failed),
        ReplicateOutcome(BASELINE, 1, fit_trend(np.array([1, 0, 2, 1, 1, 0, 1, 2, 1, 1]))),
    ]

    df = summarize_fits(outcomes, horizon=100)

    assert isinstance(failed, FitFailure)
    assert len(df) == 1
    assert df["slope"].notna().all()


def test_all_failed_gives_empty_frame_with_columns():
    outcomes = [ReplicateOutcome(BASELINE, i, FitFailure(reason="x", engine="glm")) for i in range(3)]
    df = summarize_fits(outcomes, horizon=100)

    assert df.empty
    assert list(df.columns) == RESULT_COLUMNS
    assert list(summarize_fits([], horizon=100).columns) == RESULT_COLUMNS


def test_failure_counts_per_scenario():
    outcomes = [
        ReplicateOutcome(BASELINE, 0, _fit(0.0)),
        ReplicateOutcome(BASELINE, 1, FitFailure(reason="x", engine="glm")),
        ReplicateOutcome(TRIPLING, 0, _fit(0.01)),
    ]
    counts = failure_counts(outcomes).set_index(["duration", "total_change"])

    assert counts.loc[(20, 0.0), "attempted"] == 2
    assert counts.loc[(20, 0.0), "failed"] == 1
    assert counts.loc[(20, 0.0), "failure_rate"] == 0.5
    assert counts.loc[(100, 2.0), "failed"] == 0
    assert failure_counts([]).empty


@pytest.mark.parametrize("engine", ["glm", "sklearn"])
def test_series_without_finite_mle_is_excluded(engine):
    no_mle = np.array([0] * 14 + [4])
    outcomes = [
        ReplicateOutcome(BASELINE, 0, fit_trend(no_mle, engine=engine)),
        ReplicateOutcome(BASELINE, 1, fit_trend(np.array([1, 0, 2, 1, 1, 0, 1, 2, 1, 1]), engine=engine)),
    ]

    df = summarize_fits(outcomes, horizon=100)
    counts = failure_counts(outcomes)

    assert len(df) == 1
    assert df["slope"].abs().max() < 1.0
    assert int(counts["failed"].sum()) == 1
