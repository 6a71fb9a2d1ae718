"""
Grid sweep over cpu_weight × ram_weight for the weighted policies.
Prints a sensitivity table and optionally writes a CSV.

Usage:
    python -m vmsched.param_sweep output/tasks/tasks_200_balanced.json
    python -m vmsched.param_sweep output/tasks/tasks_1000_ram_heavy.json --policy sorted_best_fit --out_csv sweep.csv
"""
from __future__ import annotations

import argparse
import csv
import itertools
import tempfile
from pathlib import Path
from typing import Dict, List, Tuple

from .metrics import summarize_reports
from .policies import make_policy
from .runner import WorkloadRunner


_DEFAULT_CPU_WEIGHTS = [1.0, 2.0, 4.0, 6.0, 8.0]
_DEFAULT_RAM_WEIGHTS = [10.0, 30.0, 100.0, 1000.0, 48000.0]
_DEFAULT_METRICS: Tuple[str, ...] = ("makespan", "avg_wait_time", "job_count_std", "cluster_ram_percent")


def sweep(
    workload_file: str,
    cpu_weights: List[float],
    ram_weights: List[float],
    policy: str = "weighted",
    target_metrics: Tuple[str, ...] = _DEFAULT_METRICS,
    results_dir: str | None = None,
) -> List[Dict[str, object]]:
    """Run a full grid sweep and return one row per (cpu_weight, ram_weight) pair."""
    rows: List[Dict[str, object]] = []

    with tempfile.TemporaryDirectory() as scratch:
        out_dir = results_dir or scratch
        for cw, rw in itertools.product(cpu_weights, ram_weights):
            runner = WorkloadRunner(
                make_policy(policy, cpu_weight=cw, ram_weight=rw),
                results_dir=Path(out_dir) / f"cpu{cw:g}_ram{rw:g}",
            )
            task_report, machine_report = runner.run(workload_file, console_output=False)
            summary = summarize_reports(task_report, machine_report)

            row: Dict[str, object] = {"cpu_weight": cw, "ram_weight": rw}
            for metric in target_metrics:
                row[metric] = summary[metric]
            rows.append(row)

    return rows


def _print_table(rows: List[Dict[str, object]], metrics: Tuple[str, ...]) -> None:
    col_keys = ["cpu_weight", "ram_weight", *metrics]
    header = "  ".join(f"{k:>20}" for k in col_keys)
    print(header)
    print("-" * len(header))
    for row in rows:
        print("  ".join(f"{row[k]:>20}" for k in col_keys))


def main() -> None:
    parser = argparse.ArgumentParser(description="Weight sensitivity sweep for the weighted policies")
    parser.add_argument("workload", type=str, help="Job-description JSON file")
    parser.add_argument("--policy", choices=["weighted", "sorted_best_fit"], default="weighted")
    parser.add_argument(
        "--cpu_weights",
        type=str,
        default=",".join(str(v) for v in _DEFAULT_CPU_WEIGHTS),
        help="Comma-separated list of CPU weights to sweep",
    )
    parser.add_argument(
        "--ram_weights",
        type=str,
        default=",".join(str(v) for v in _DEFAULT_RAM_WEIGHTS),
        help="Comma-separated list of RAM weights to sweep",
    )
    parser.add_argument("--results_dir", type=str, default="", help="Keep per-point reports here")
    parser.add_argument("--out_csv", type=str, default="")
    args = parser.parse_args()

    cpu_weights = [float(v.strip()) for v in args.cpu_weights.split(",") if v.strip()]
    ram_weights = [float(v.strip()) for v in args.ram_weights.split(",") if v.strip()]

    print(f"workload={args.workload}  policy={args.policy}")
    print(f"cpu_weights={cpu_weights}")
    print(f"ram_weights={ram_weights}\n")

    rows = sweep(
        args.workload,
        cpu_weights,
        ram_weights,
        policy=args.policy,
        results_dir=args.results_dir or None,
    )
    _print_table(rows, _DEFAULT_METRICS)

    if args.out_csv:
        col_keys = ["cpu_weight", "ram_weight", *_DEFAULT_METRICS]
        with open(args.out_csv, "w", newline="", encoding="utf-8") as fp:
            writer = csv.DictWriter(fp, fieldnames=col_keys)
            writer.writeheader()
            writer.writerows(rows)
        print(f"\nsaved_csv={args.out_csv}")


if __name__ == "__main__":
    main()
