# landfall_trend/models.py
from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np
import statsmodels.api as sm
from sklearn.exceptions import ConvergenceWarning as SklearnConvergenceWarning
from sklearn.linear_model import PoissonRegressor
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as StatsmodelsConvergenceWarning,
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from .simulation import period_index

ENGINES: Tuple[str, ...] = ("glm", "sklearn")

GLM_MAX_ITER = 100
SKLEARN_MAX_ITER = 300

# Above this the likelihood is flat along the slope: the MLE does not exist
# even when the solver stops cleanly.
MAX_STANDARD_ERROR = 1e3

# Solver noise, never surfaced. Non-convergence itself is read from the
# fit result, not from these warnings.
_SUPPRESSED_WARNINGS = (
    StatsmodelsConvergenceWarning,
    PerfectSeparationWarning,
    SklearnConvergenceWarning,
    RuntimeWarning,
)

# Hard numerical errors: recorded as FitFailure, never propagated.
_FIT_ERRORS = (
    np.linalg.LinAlgError,
    ValueError,
    FloatingPointError,
    OverflowError,
    PerfectSeparationError,
)


@dataclass(frozen=True)
class TrendFit:
    intercept: float
    intercept_se: float
    slope: float
    slope_se: float
    engine: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FitFailure:
    reason: str
    engine: str

    @property
    def ok(self) -> bool:
        return False


FitResult = Union[TrendFit, FitFailure]


def _fit_glm(y: np.ndarray, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray, bool]:
    X = sm.add_constant(t, has_constant="add")
    res = sm.GLM(y, X, family=sm.families.Poisson()).fit(maxiter=GLM_MAX_ITER)
    return np.asarray(res.params), np.asarray(res.bse), bool(res.converged)


def _fit_sklearn(y: np.ndarray, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray, bool]:
    """
    Unpenalized PoissonRegressor (alpha=0 is plain maximum likelihood).

    sklearn reports no standard errors, so they come from the inverse
    Fisher information of the log link: (X' diag(mu) X)^-1.
    """
    reg = PoissonRegressor(
        alpha=0.0,
        solver="newton-cholesky",
        max_iter=SKLEARN_MAX_ITER,
        tol=1e-8,
    )
    reg.fit(t.reshape(-1, 1), y)

    mu = reg.predict(t.reshape(-1, 1))
    X = np.column_stack([np.ones_like(t), t])
    cov = np.linalg.inv(X.T @ (X * mu[:, None]))

    params = np.array([reg.intercept_, reg.coef_[0]], dtype=float)
    bse = np.sqrt(np.diag(cov))
    return params, bse, bool(reg.n_iter_ < SKLEARN_MAX_ITER)


def get_solver(engine: str):
    if engine == "glm":
        return _fit_glm
    if engine == "sklearn":
        return _fit_sklearn
    raise ValueError(f"Unknown engine: {engine}. Use 'glm' or 'sklearn'.")


def fit_trend(counts, engine: str = "glm") -> FitResult:
    """
    Fit log E[y_t] = intercept + slope * t (t = 1..n) by Poisson ML.

    engine:
      - 'glm'     : statsmodels GLM, Poisson family, IRLS
      - 'sklearn' : sklearn PoissonRegressor, Newton-Cholesky

    Returns TrendFit on success and FitFailure otherwise. Solver warnings
    are suppressed. A fit that did not converge, hard numerical errors,
    degenerate series and non-finite or unbounded estimates all become
    FitFailure. Nothing is raised except for an unknown engine.
    """
    solver = get_solver(engine)

    y = np.asarray(counts, dtype=float)
    if y.ndim != 1 or y.size < 2:
        return FitFailure(reason=f"need at least 2 periods, got {y.size}", engine=engine)
    if not np.all(y >= 0):
        return FitFailure(reason="counts must be non-negative", engine=engine)
    if y.sum() == 0:
        # The intercept MLE diverges to -inf with no events at all.
        return FitFailure(reason="no events observed; rate MLE does not exist", engine=engine)

    t = period_index(y.size)

    with warnings.catch_warnings():
        for category in _SUPPRESSED_WARNINGS:
            warnings.simplefilter("ignore", category=category)
        try:
            params, bse, converged = solver(y, t)
        except _FIT_ERRORS as e:
            return FitFailure(reason=f"{type(e).__name__}: {e}", engine=engine)

    if not converged:
        return FitFailure(reason="did not converge", engine=engine)
    if not (np.all(np.isfinite(params)) and np.all(np.isfinite(bse))):
        return FitFailure(reason="non-finite estimate or standard error", engine=engine)
    if np.any(bse > MAX_STANDARD_ERROR):
        return FitFailure(reason=f"standard error above {MAX_STANDARD_ERROR:g}; MLE does not exist", engine=engine)

    return TrendFit(
        intercept=float(params[0]),
        intercept_se=float(bse[0]),
        slope=float(params[1]),
        slope_se=float(bse[1]),
        engine=engine,
    )
