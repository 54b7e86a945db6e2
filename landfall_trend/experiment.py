# landfall_trend/experiment.py
from __future__ import annotations

import os
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, Iterator, List, Tuple, Union

import numpy as np
import pandas as pd
from numpy.random import Generator, SeedSequence

from .models import fit_trend, get_solver
from .reporting import detection_rates, implied_change_summary
from .scenarios import (
    DEFAULT_CONFIG,
    Replicate,
    ReplicateOutcome,
    Scenario,
    SimulationConfig,
    build_scenarios,
)
from .simulation import simulate_counts
from .summary import failure_counts, summarize_fits


def replicate_scenario(
    scenario: Scenario,
    config: SimulationConfig,
    rng: Generator,
) -> Iterator[Replicate]:
    """
    Yield exactly config.sims independent replicates of one scenario.
    """
    for i in range(config.sims):
        counts = simulate_counts(
            scenario.duration,
            scenario.annual_rate,
            config.baseline_rate,
            rng,
        )
        yield Replicate(scenario=scenario, index=i, counts=counts)


def run_scenario(
    scenario: Scenario,
    config: SimulationConfig,
    seed: Union[int, SeedSequence],
    engine: str = "glm",
) -> List[ReplicateOutcome]:
    """
    Simulate and fit every replicate of one scenario.

    Counts are dropped as soon as the replicate is fitted; only the
    (scenario, index, fit) triple is kept.
    """
    rng = np.random.default_rng(seed)
    return [
        ReplicateOutcome(scenario=rep.scenario, index=rep.index, fit=fit_trend(rep.counts, engine=engine))
        for rep in replicate_scenario(scenario, config, rng)
    ]


def _run_scenario_task(
    args: Tuple[int, Scenario, SimulationConfig, SeedSequence, str],
) -> Tuple[int, List[ReplicateOutcome]]:
    idx, scenario, config, seed, engine = args
    return idx, run_scenario(scenario, config, seed, engine)


def _resolve_jobs(jobs: int, total: int) -> int:
    if jobs <= 0:
        jobs = os.cpu_count() or 1
    return max(1, min(jobs, total))


def run_experiment(
    config: SimulationConfig = DEFAULT_CONFIG,
    engine: str = "glm",
    jobs: int = 1,
    verbose: bool = True,
) -> List[ReplicateOutcome]:
    """
    Run every scenario of the config.

    Each scenario draws from its own child of SeedSequence(config.seed), so
    the outcome does not depend on the number of workers. With jobs > 1 the
    scenarios are spread over a process pool (jobs <= 0: one per CPU) and
    the partitions are concatenated back in scenario order.
    """
    get_solver(engine)

    scenarios = build_scenarios(config)
    seeds = SeedSequence(config.seed).spawn(len(scenarios))
    total = len(scenarios)
    jobs = _resolve_jobs(jobs, total)

    start = time.time()
    parts: Dict[int, List[ReplicateOutcome]] = {}

    def _progress(done: int, scen: Scenario) -> None:
        if not verbose:
            return
        elapsed = time.time() - start
        eta = elapsed / done * (total - done)
        print(
            f"[{done}/{total}] duration={scen.duration} total_change={scen.total_change:g} done. "
            f"Elapsed={elapsed:.1f}s ETA={eta:.1f}s"
        )

    if jobs == 1:
        for idx, (scen, seed) in enumerate(zip(scenarios, seeds)):
            parts[idx] = run_scenario(scen, config, seed, engine)
            _progress(idx + 1, scen)
    else:
        with ProcessPoolExecutor(max_workers=jobs) as ex:
            futures = [
                ex.submit(_run_scenario_task, (idx, scen, config, seed, engine))
                for idx, (scen, seed) in enumerate(zip(scenarios, seeds))
            ]
            for done, fut in enumerate(as_completed(futures), 1):
                idx, outcomes = fut.result()
                parts[idx] = outcomes
                _progress(done, scenarios[idx])

    return [o for idx in range(total) for o in parts[idx]]


def run_one_engine(
    config: SimulationConfig = DEFAULT_CONFIG,
    engine: str = "glm",
    jobs: int = 1,
    alpha: float = 0.05,
) -> Dict[str, pd.DataFrame]:
    """
    End-to-end study for one estimator engine:
    - simulate + fit every (scenario, replicate)
    - summarize successful fits into the result table
    - print failure counts, implied-change summary and detection rates

    Returns a dict of DataFrames: results, summary, detection, failures.
    """
    print("\n" + "=" * 80)
    print(
        f"ENGINE: {engine.upper()} | horizon={config.horizon} | baseline_rate={config.baseline_rate} "
        f"| sims={config.sims} | seed={config.seed}"
    )
    print("=" * 80)

    outcomes = run_experiment(config, engine=engine, jobs=jobs)
    results = summarize_fits(outcomes, config.horizon)
    failures = failure_counts(outcomes)

    n_failed = int(failures["failed"].sum()) if len(failures) else 0
    if n_failed:
        print(f"\n[WARN] {n_failed} of {len(outcomes)} fits failed and were excluded")
        print(failures[failures["failed"] > 0].to_string(index=False))

    if results.empty:
        print("\n[WARN] No successful fits; nothing to summarize")
        return {
            "results": results,
            "summary": pd.DataFrame(),
            "detection": pd.DataFrame(),
            "failures": failures,
        }

    summary = implied_change_summary(results)
    detection = detection_rates(results, alpha=alpha)

    print("\n=== IMPLIED TOTAL CHANGE (by duration, total_change) ===")
    print(summary.to_string(index=False))

    print(f"\n=== DETECTION RATE (two-sided Wald test, alpha={alpha}) ===")
    print(detection.to_string(index=False))

    null = detection[detection["total_change"] == 0]
    if len(null):
        print("\n=== FALSE-POSITIVE RATE UNDER NO DRIFT ===")
        print(null[["duration", "n_fits", "detection_rate"]].to_string(index=False))

    return {
        "results": results,
        "summary": summary,
        "detection": detection,
        "failures": failures,
    }
