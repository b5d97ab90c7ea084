from __future__ import annotations

import argparse
import csv
import json
import math
from collections import Counter
from pathlib import Path
from typing import Optional

import structlog

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics
from .log_setup import LOG_LEVELS, configure_logging

logger = structlog.get_logger()

_BASIC_HEADER = [
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

_DETAILED_HEADER = [
    *_BASIC_HEADER,
    "evolved",
    "evolved_ratio",
    "active_food",
    "golden_food",
    "predator_ratio",
    "avg_size",
    "avg_speed",
    "scanning",
    "hooks_active",
    "pulses_active",
    "fast_movement",
    "long_laser",
    "efficient_energy",
    "max_generation",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.collectors,
        metrics.predators,
        metrics.births,
        metrics.deaths,
        metrics.consumed,
        f"{metrics.average_energy:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    traits: Counter[str] = Counter()
    size_sum = 0.0
    speed_sum = 0.0
    scanning = 0
    hooks_active = 0
    pulses_active = 0
    max_generation = 0
    for agent in world.store:
        traits[agent.trait.value] += 1
        size_sum += agent.size
        speed_sum += math.hypot(agent.velocity.x, agent.velocity.y)
        scanning += int(agent.scanning)
        hooks_active += int(agent.hook.active)
        pulses_active += int(agent.pulse.active)
        max_generation = max(max_generation, agent.generation)

    if population <= 0:
        evolved_ratio = 0.0
        predator_ratio = 0.0
        avg_size = 0.0
        avg_speed = 0.0
    else:
        evolved_ratio = metrics.evolved / population
        predator_ratio = metrics.predators / population
        avg_size = size_sum / population
        avg_speed = speed_sum / population

    return [
        *_format_basic_row(metrics, tick_ms),
        metrics.evolved,
        f"{evolved_ratio:.4f}",
        metrics.active_food,
        metrics.golden_food,
        f"{predator_ratio:.4f}",
        f"{avg_size:.4f}",
        f"{avg_speed:.4f}",
        scanning,
        hooks_active,
        pulses_active,
        traits["FastMovement"],
        traits["LongLaser"],
        traits["EfficientEnergy"],
        max_generation,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def _load_config(config_path: Optional[Path], seed: Optional[int]) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    return config


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 1000,
    config_path: Optional[Path] = None,
) -> World:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = _load_config(config_path, seed)
    world = World(config)
    logger.info("headless_started", steps=steps, seed=config.seed, log=str(log_path) if log_path else None)

    tick_ms_series: list[float] = []
    population_series: list[float] = []
    collector_series: list[float] = []
    predator_series: list[float] = []
    energy_series: list[float] = []
    totals = {"births": 0, "deaths": 0, "consumed": 0}
    peak_population = (-1, -1)
    extinction_tick: Optional[int] = None

    csv_file = Path(log_path).open("w", newline="") if log_path else None
    try:
        writer = csv.writer(csv_file) if csv_file else None
        if writer:
            writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

        for _ in range(steps):
            metrics = world.step()
            # event history is not kept by the headless runner
            world.drain_events()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            tick_ms_series.append(tick_ms)
            population_series.append(float(metrics.population))
            collector_series.append(float(metrics.collectors))
            predator_series.append(float(metrics.predators))
            energy_series.append(metrics.average_energy)
            totals["births"] += metrics.births
            totals["deaths"] += metrics.deaths
            totals["consumed"] += metrics.consumed
            if metrics.population > peak_population[0]:
                peak_population = (metrics.population, metrics.tick)
            if extinction_tick is None and metrics.population == 0:
                extinction_tick = metrics.tick

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    final = world.metrics
    logger.info(
        "headless_finished",
        ticks=world.tick,
        population=final.population if final else 0,
        births=totals["births"],
        deaths=totals["deaths"],
        consumed=totals["consumed"],
    )

    if summary_path:
        window = max(1, int(summary_window))
        tail = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "config_version": config.config_version,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "totals": totals,
            "extinction_tick": extinction_tick,
            "final": {
                "population": final.population if final else 0,
                "collectors": final.collectors if final else 0,
                "predators": final.predators if final else 0,
                "evolved": final.evolved if final else 0,
            },
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats(population_series),
            "collectors": _summary_stats(collector_series),
            "predators": _summary_stats(predator_series),
            "average_energy": _summary_stats(energy_series),
            "peaks": {
                "population": {"value": peak_population[0], "tick": peak_population[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail]),
                "population": _summary_stats(population_series[tail]),
                "average_energy": _summary_stats(energy_series[tail]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return world


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless biotope simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding the default configuration")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=1000,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="warning",
        help="Console log level; lifecycle events are logged at debug.",
    )
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
