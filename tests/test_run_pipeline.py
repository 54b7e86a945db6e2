"""Tests for scripts/run_pipeline.py (flag handling and saved outputs)."""

from __future__ import annotations

import importlib.util
from dataclasses import replace
from pathlib import Path

import pandas as pd
import pytest

from landfall_trend.experiment import run_one_engine
from landfall_trend.scenarios import DEFAULT_CONFIG
from landfall_trend.summary import RESULT_COLUMNS

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_pipeline.py"
SMALL = replace(DEFAULT_CONFIG, sims=4, durations=(10, 20), total_changes=(0.0, 1.0), seed=5)
TABLE_STEMS = ["results", "implied_change_summary", "detection_rates", "fit_failures"]


@pytest.fixture(scope="module")
def pipeline():
    spec = importlib.util.spec_from_file_location("run_pipeline", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def tables():
    return run_one_engine(SMALL, engine="glm")


# ---------------------------------------------------------------------------
# Flags -> SimulationConfig
# ---------------------------------------------------------------------------


def test_build_config_without_flags_is_the_default(pipeline):
    args = pipeline.build_parser().parse_args([])
    assert pipeline.build_config(args) == DEFAULT_CONFIG


def test_build_config_applies_only_given_flags(pipeline):
    args = pipeline.build_parser().parse_args(["--sims", "10", "--durations", "20", "50"])
    config = pipeline.build_config(args)

    assert config.sims == 10
    assert config.durations == (20, 50)
    assert config.total_changes == DEFAULT_CONFIG.total_changes
    assert config.horizon == DEFAULT_CONFIG.horizon
    assert config.baseline_rate == DEFAULT_CONFIG.baseline_rate
    assert config.seed == DEFAULT_CONFIG.seed


def test_invalid_flag_values_are_rejected(pipeline):
    args = pipeline.build_parser().parse_args(["--sims", "0"])
    with pytest.raises(ValueError):
        pipeline.build_config(args)


def test_unknown_engine_flag_exits(pipeline):
    with pytest.raises(SystemExit):
        pipeline.build_parser().parse_args(["--engine", "ols"])


# ---------------------------------------------------------------------------
# Saved outputs
# ---------------------------------------------------------------------------


def test_save_outputs_writes_all_tables(pipeline, tables, tmp_path, capsys):
    pipeline.save_outputs(tables, "glm", tmp_path, plots=False)

    for stem in TABLE_STEMS:
        assert (tmp_path / "tables" / f"{stem}_glm.csv").exists()
    assert not (tmp_path / "figures").exists()

    header = pd.read_csv(tmp_path / "tables" / "results_glm.csv", nrows=0).columns
    assert list(header) == RESULT_COLUMNS
    assert "Saved outputs to:" in capsys.readouterr().out


def test_save_outputs_writes_figures(pipeline, tables, tmp_path):
    pipeline.save_outputs(tables, "glm", tmp_path)

    assert (tmp_path / "figures" / "null_histograms_glm.png").stat().st_size > 0
    assert (tmp_path / "figures" / "implied_change_glm.png").stat().st_size > 0


def test_relative_out_dir_resolves_from_project_root(pipeline, tables, tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "project_root", tmp_path)
    monkeypatch.chdir(tmp_path.parent)

    pipeline.save_outputs(tables, "glm", Path("outputs"), plots=False)

    assert (tmp_path / "outputs" / "tables" / "results_glm.csv").exists()
    assert not (tmp_path.parent / "outputs").exists()


def test_main_runs_each_engine(pipeline, tmp_path):
    pipeline.main([
        "--sims", "3",
        "--durations", "10",
        "--total-changes", "0", "1",
        "--engine", "glm", "sklearn",
        "--out-dir", str(tmp_path),
        "--no-plots",
    ])

    for engine in ("glm", "sklearn"):
        for stem in TABLE_STEMS:
            assert (tmp_path / "tables" / f"{stem}_{engine}.csv").exists()
