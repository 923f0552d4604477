#!/usr/bin/env python3
"""Benchmark 3D Wave Function Collapse solver performance."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from tessera.environment.generators.driver import WFCDriver, register_solver_metrics
from tessera.environment.prototypes import load_catalog
from tessera.environment.tilesets import island_tileset
from tessera.util.live_vars import SampleWindow, metric_registry, record_time

GRID_SIZES: tuple[tuple[int, int, int], ...] = (
    (8, 3, 8),
    (10, 4, 10),
    (12, 5, 12),
    (16, 6, 16),
    (24, 8, 24),
)

TOTAL_TIME_METRIC = "benchmark.wfc.case_ms"


class WFCBenchmark:
    """Benchmark runner for the 3D WFC solver."""

    def __init__(self, iterations: int, prototypes: str | None = None) -> None:
        self.iterations = iterations
        source = prototypes if prototypes is not None else island_tileset()
        self.catalog = load_catalog(source)
        self.results: dict[str, dict[str, float]] = {}

        register_solver_metrics()
        if metric_registry.get_metric(TOTAL_TIME_METRIC) is None:
            metric_registry.register_metric(
                TOTAL_TIME_METRIC, "Wall-clock time of one benchmark case"
            )

    def _run_case(self, size: tuple[int, int, int]) -> dict[str, float]:
        """Run one benchmark case and return timing and success figures."""
        sx, sy, sz = size
        driver = WFCDriver(self.catalog, size)
        samples = SampleWindow(self.iterations)

        collapsed = 0
        elapsed_total = 0.0
        with record_time(TOTAL_TIME_METRIC):
            for i in range(self.iterations):
                seed = (sx * 1_000_000) + (sy * 10_000) + (sz * 100) + i
                result = driver.run(seed)
                elapsed_total += result.elapsed_ms
                samples.record(result.elapsed_ms)
                collapsed += int(result.succeeded)

        return {
            "solve_ms": elapsed_total / self.iterations,
            "p95_ms": samples.p95,
            "success_rate": collapsed / self.iterations,
        }

    def run(self) -> None:
        """Run all configured grid-size benchmarks."""
        print("WFC Benchmark (3D)")
        print("=" * 52)
        print(f"Prototypes: {len(self.catalog)}")
        print(f"Iterations per size: {self.iterations}")
        print()
        print(f"{'Size':>12} {'Mean (ms)':>12} {'p95 (ms)':>12} {'Solved':>10}")
        print("-" * 52)

        for size in GRID_SIZES:
            case = self._run_case(size)

            size_key = "x".join(str(n) for n in size)
            self.results[size_key] = case

            print(
                f"{size_key:>12} {case['solve_ms']:12.2f} {case['p95_ms']:12.2f} "
                f"{case['success_rate']:10.0%}"
            )

    def save_results(self, filename: str) -> None:
        """Save benchmark output to a JSON file."""
        with Path(filename).open("w") as f:
            json.dump(self.results, f, indent=2)
        print(f"\nSaved benchmark results to {filename}")

    def compare_with_baseline(self, baseline_file: str) -> None:
        """Compare current run with a saved baseline JSON file."""
        try:
            with Path(baseline_file).open() as f:
                baseline: dict[str, dict[str, float]] = json.load(f)
        except FileNotFoundError:
            print(f"\nBaseline file not found: {baseline_file}")
            return

        print(f"\nComparison vs baseline: {baseline_file}")
        print("=" * 64)

        for size_key, current in self.results.items():
            if size_key not in baseline:
                continue

            old_ms = baseline[size_key].get("solve_ms", 0.0)
            new_ms = current["solve_ms"]
            if old_ms <= 0:
                continue

            delta_pct = ((new_ms - old_ms) / old_ms) * 100.0
            speed_ratio = old_ms / new_ms if new_ms > 0 else 0.0
            trend = "faster" if speed_ratio > 1.0 else "slower"

            print(
                f"{size_key:>12}: {new_ms:8.2f}ms "
                f"vs {old_ms:8.2f}ms | {speed_ratio:5.2f}x {trend} "
                f"({delta_pct:+6.1f}%)"
            )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark the 3D WFC solver")
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Number of runs per grid size (default: 5)",
    )
    parser.add_argument(
        "--prototypes",
        type=str,
        help="Prototype JSON file (default: built-in island tileset)",
    )
    parser.add_argument("--save", type=str, help="Save current results to JSON")
    parser.add_argument(
        "--compare",
        type=str,
        help="Compare current results against baseline JSON",
    )
    args = parser.parse_args(argv)

    benchmark = WFCBenchmark(iterations=args.iterations, prototypes=args.prototypes)
    benchmark.run()

    if args.save:
        benchmark.save_results(args.save)

    if args.compare:
        benchmark.compare_with_baseline(args.compare)


if __name__ == "__main__":
    main()
