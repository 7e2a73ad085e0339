import csv
import json

import pytest

from murmuration.app import headless
from murmuration.headless import run_headless
from murmuration.sim.core.config import SimulationConfig


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(steps=2, seed=1, log_path=log_path, deterministic_log=True, log_format="basic", count=20)
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "neighbors_found",
        "isolated",
        "boundary_hits",
        "tick_ms",
    ]
    assert rows[1][0] == "1"
    assert rows[1][1] == "20"
    assert rows[1][-1] == "0.000"


def test_headless_detailed_log_header_and_ratios(tmp_path):
    log_path = tmp_path / "detailed.csv"
    run_headless(steps=3, seed=2, log_path=log_path, deterministic_log=True, log_format="detailed", count=40)
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    assert header == [
        "tick",
        "population",
        "neighbor_checks",
        "neighbors_found",
        "isolated",
        "boundary_hits",
        "tick_ms",
        "neighbors_per_agent",
        "isolated_ratio",
        "tick_ms_per_agent",
        "polarization",
        "centroid_x",
        "centroid_y",
        "spread",
    ]

    first_row = rows[1]
    idx = {name: i for i, name in enumerate(header)}
    population = int(first_row[idx["population"]])
    assert population == 40
    assert int(first_row[idx["neighbor_checks"]]) == 40 * 39
    neighbors_found = int(first_row[idx["neighbors_found"]])
    isolated = int(first_row[idx["isolated"]])
    assert float(first_row[idx["neighbors_per_agent"]]) == pytest.approx(neighbors_found / population, abs=1e-4)
    assert float(first_row[idx["isolated_ratio"]]) == pytest.approx(isolated / population, abs=1e-4)
    assert 0.0 <= float(first_row[idx["polarization"]]) <= 1.0
    assert float(first_row[idx["tick_ms"]]) == 0.0


def test_headless_deterministic_log_is_reproducible(tmp_path):
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    run_headless(steps=5, seed=9, log_path=first, deterministic_log=True, count=30)
    run_headless(steps=5, seed=9, log_path=second, deterministic_log=True, count=30)
    assert first.read_text() == second.read_text()


def test_headless_summary_output(tmp_path):
    log_path = tmp_path / "summary.csv"
    summary_path = tmp_path / "summary.json"
    world = run_headless(
        steps=4,
        seed=3,
        log_path=log_path,
        deterministic_log=True,
        log_format="basic",
        summary_path=summary_path,
        summary_window=2,
        count=25,
        dt=1.0 / 30.0,
    )
    payload = json.loads(summary_path.read_text())
    assert payload["steps"] == 4
    assert payload["seed"] == 3
    assert payload["count"] == 25
    assert payload["dt"] == pytest.approx(1.0 / 30.0)
    assert payload["log_format"] == "basic"
    assert "tick_ms" in payload
    assert "polarization" in payload
    assert payload["tail_window"]["window"] == 2
    assert world.tick == 4


def test_headless_rejects_unknown_log_format(tmp_path):
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=0, log_path=tmp_path / "x.csv", log_format="verbose", count=1)


def test_headless_leaves_caller_config_untouched(tmp_path):
    config = SimulationConfig(count=50, seed=4)
    world = run_headless(steps=1, seed=11, log_path=None, count=6, config=config)
    assert config.count == 50
    assert config.seed == 4
    assert world.config.count == 6
    assert world.config.seed == 11


def test_headless_computes_flock_statistics_once_per_tick(tmp_path, monkeypatch):
    calls = []
    original = headless.flock_statistics

    def counting(agents):
        calls.append(1)
        return original(agents)

    monkeypatch.setattr(headless, "flock_statistics", counting)
    run_headless(
        steps=3,
        seed=5,
        log_path=tmp_path / "detailed.csv",
        deterministic_log=True,
        log_format="detailed",
        summary_path=tmp_path / "summary.json",
        count=10,
    )
    assert len(calls) == 3
