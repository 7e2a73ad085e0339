from __future__ import annotations

import argparse
import csv
import json
import math
from dataclasses import replace
from pathlib import Path
from typing import Optional

from loguru import logger

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.systems.metrics import flock_statistics
from ..sim.types.metrics import TickMetrics


_BASIC_HEADER = [
    "tick",
    "population",
    "neighbors_found",
    "isolated",
    "boundary_hits",
    "tick_ms",
]

_DETAILED_HEADER = [
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


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.neighbors_found,
        metrics.isolated,
        metrics.boundary_hits,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(
    metrics: TickMetrics, tick_ms: float, statistics: tuple[float, float, float, float]
) -> list[object]:
    population = metrics.population
    if population <= 0:
        neighbors_per_agent = 0.0
        isolated_ratio = 0.0
        tick_ms_per_agent = 0.0
    else:
        neighbors_per_agent = metrics.neighbors_found / population
        isolated_ratio = metrics.isolated / population
        tick_ms_per_agent = tick_ms / population
    polarization, centroid_x, centroid_y, spread = statistics
    return [
        metrics.tick,
        population,
        metrics.neighbor_checks,
        metrics.neighbors_found,
        metrics.isolated,
        metrics.boundary_hits,
        f"{tick_ms:.3f}",
        f"{neighbors_per_agent:.4f}",
        f"{isolated_ratio:.4f}",
        f"{tick_ms_per_agent:.4f}",
        f"{polarization:.4f}",
        f"{centroid_x:.4f}",
        f"{centroid_y:.4f}",
        f"{spread:.4f}",
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
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 600,
    dt: Optional[float] = None,
    count: Optional[int] = None,
    config: Optional[SimulationConfig] = None,
) -> World:
    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config = replace(config, seed=seed)
    if count is not None:
        config = replace(config, count=count)
    step_dt = config.time_step if dt is None else dt

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    world = World(config)
    logger.info("Headless run: {} steps of {:.5f}s with {} agents", steps, step_dt, len(world.agents))

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    neighbors_series: list[float] = []
    polarization_series: list[float] = []
    boundary_hits_total = 0

    try:
        for _ in range(steps):
            metrics = world.step(step_dt)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            statistics = None
            if summary_path or (writer and log_mode == "detailed"):
                statistics = flock_statistics(world.agents)
            boundary_hits_total += metrics.boundary_hits

            if summary_path:
                tick_ms_series.append(tick_ms)
                neighbors_series.append(
                    0.0 if metrics.population <= 0 else metrics.neighbors_found / metrics.population
                )
                polarization_series.append(statistics[0])

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(metrics, tick_ms, statistics))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "count": config.count,
            "dt": step_dt,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "boundary_hits": boundary_hits_total,
            "tick_ms": _summary_stats(tick_ms_series),
            "neighbors_per_agent": _summary_stats(neighbors_series),
            "polarization": _summary_stats(polarization_series),
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "neighbors_per_agent": _summary_stats(neighbors_series[tail_slice]),
                "polarization": _summary_stats(polarization_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    logger.info("Headless run finished at tick {}", world.tick)
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--count", type=int, default=None, help="Number of agents (default from config).")
    parser.add_argument("--dt", type=float, default=None, help="Seconds per tick (default from config).")
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
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
        default=600,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    args = parser.parse_args()
    try:
        config = SimulationConfig.from_yaml(args.config) if args.config else None
        run_headless(
            args.steps,
            args.seed,
            args.log,
            deterministic_log=args.deterministic_log,
            log_format=args.log_format,
            summary_path=args.summary,
            summary_window=args.summary_window,
            dt=args.dt,
            count=args.count,
            config=config,
        )
    except ValueError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
