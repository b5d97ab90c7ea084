import csv
import json

import pytest

from biotope.app.headless import main, run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(steps=2, seed=1, log_path=log_path, deterministic_log=True, log_format="basic")
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "collectors",
        "predators",
        "births",
        "deaths",
        "consumed",
        "avg_energy",
        "tick_ms",
    ]
    assert [row[0] for row in rows[1:]] == ["1", "2"]


def test_headless_detailed_log_columns_are_consistent(tmp_path):
    log_path = tmp_path / "detailed.csv"
    run_headless(steps=3, seed=2, log_path=log_path, deterministic_log=True, log_format="detailed")
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    idx = {name: i for i, name in enumerate(header)}
    for name in ["evolved", "active_food", "golden_food", "avg_size", "hooks_active", "max_generation"]:
        assert name in idx

    for row in rows[1:]:
        assert len(row) == len(header)
        population = int(row[idx["population"]])
        assert int(row[idx["collectors"]]) + int(row[idx["predators"]]) == population
        assert float(row[idx["tick_ms"]]) == 0.0
        traits = sum(int(row[idx[name]]) for name in ["fast_movement", "long_laser", "efficient_energy"])
        assert traits == int(row[idx["evolved"]])


def test_deterministic_logs_match_for_same_seed(tmp_path):
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    run_headless(steps=30, seed=8, log_path=first, deterministic_log=True)
    run_headless(steps=30, seed=8, log_path=second, deterministic_log=True)
    assert first.read_text() == second.read_text()


def test_headless_summary_output(tmp_path):
    summary_path = tmp_path / "summary.json"
    world = run_headless(
        steps=4,
        seed=3,
        log_path=None,
        deterministic_log=True,
        log_format="basic",
        summary_path=summary_path,
        summary_window=2,
    )
    payload = json.loads(summary_path.read_text())
    assert payload["steps"] == 4
    assert payload["seed"] == 3
    assert payload["log_format"] == "basic"
    assert payload["final"]["population"] == world.metrics.population
    assert payload["tail_window"]["window"] == 2
    for key in ["tick_ms", "population", "collectors", "predators", "average_energy"]:
        assert set(payload[key]) == {"min", "max", "avg", "p50", "p90", "p99"}


def test_headless_reads_yaml_config(tmp_path):
    config_path = tmp_path / "small.yaml"
    config_path.write_text("initial_collectors: 3\ninitial_predators: 0\nfood:\n  base_pool_size: 4\n")
    world = run_headless(steps=1, seed=None, log_path=None, config_path=config_path)
    assert world.config.initial_collectors == 3
    assert len(world.food) == 4


def test_unknown_log_format_raises():
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=1, log_path=None, log_format="verbose")


def test_main_writes_csv(tmp_path):
    log_path = tmp_path / "cli.csv"
    main(["--steps", "2", "--seed", "4", "--log", str(log_path), "--log-format", "basic", "--deterministic-log"])
    assert len(_read_csv(log_path)) == 3
