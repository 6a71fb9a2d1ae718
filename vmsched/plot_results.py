"""
Comparative bar charts and markdown tables from a batch results directory.

Requires: matplotlib

Usage (after running python -m vmsched.batch):
    python -m vmsched.plot_results --results_dir output/results --out_dir figures/
    python -m vmsched.plot_results --results_dir output/results --table_only
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Tuple

from .metrics import summarize_reports
from .models import MachineUtilizationReport, TaskCompletionReport


_METRICS_DISPLAY: List[Tuple[str, str, bool]] = [
    # (key, label, lower_is_better)
    ("makespan",            "Makespan (s)",          True),
    ("avg_wait_time",       "Avg Wait Time (s)",     True),
    ("p95_wait_time",       "P95 Wait Time (s)",     True),
    ("avg_exec_time",       "Avg Exec Time (s)",     True),
    ("cluster_cpu_percent", "Cluster CPU %",         False),
    ("cluster_ram_percent", "Cluster RAM %",         False),
    ("job_count_std",       "Job Count Std",         True),
    ("failed_tasks",        "Failed Jobs",           True),
]

_TASK_SUFFIX = "_task_stats.json"
_MACHINE_SUFFIX = "_machine_stats.json"


def _load_json(path: Path) -> Dict[str, object]:
    with open(path, encoding="utf-8") as fp:
        return json.load(fp)


def load_results(results_dir: str) -> Dict[str, Dict[str, Dict[str, float]]]:
    """Return {workload_file: {policy: metrics}} for every complete report pair."""
    data: Dict[str, Dict[str, Dict[str, float]]] = {}
    for task_path in sorted(Path(results_dir).glob(f"*{_TASK_SUFFIX}")):
        machine_path = task_path.with_name(task_path.name[: -len(_TASK_SUFFIX)] + _MACHINE_SUFFIX)
        if not machine_path.exists():
            continue
        task_report = TaskCompletionReport.from_dict(_load_json(task_path))
        machine_report = MachineUtilizationReport.from_dict(_load_json(machine_path))
        data.setdefault(task_report.workload_file, {})[task_report.policy] = summarize_reports(
            task_report, machine_report
        )
    return data


def print_markdown_table(workload_label: str, data: Dict[str, Dict[str, float]]) -> None:
    """Print a markdown table comparing policies for one workload."""
    policies = sorted(data.keys())

    print(f"\n### {workload_label}\n")
    print("| Metric | " + " | ".join(policies) + " |")
    print("|---|" + "---|" * len(policies))
    for key, label, _ in _METRICS_DISPLAY:
        row_vals = []
        for p in policies:
            val = data[p].get(key, float("nan"))
            row_vals.append(f"{val:.4f}" if isinstance(val, float) else str(val))
        print(f"| {label} | " + " | ".join(row_vals) + " |")


def plot_workload(workload_label: str, data: Dict[str, Dict[str, float]], out_dir: str) -> Path:
    """Generate and save a bar-chart figure comparing policies for one workload."""
    import matplotlib.pyplot as plt

    policies = sorted(data.keys())
    n_metrics = len(_METRICS_DISPLAY)
    n_cols = 4
    n_rows = (n_metrics + n_cols - 1) // n_cols
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(5 * n_cols, 4 * n_rows))
    axes_flat = axes.flatten()

    colors = ["#4C72B0", "#DD8452", "#55A868", "#C44E52"]

    for ax_idx, (key, label, lower) in enumerate(_METRICS_DISPLAY):
        ax = axes_flat[ax_idx]
        vals = [float(data[p].get(key, 0.0)) for p in policies]
        bars = ax.bar(
            range(len(policies)),
            vals,
            width=0.6,
            color=[colors[i % len(colors)] for i in range(len(policies))],
        )
        ax.set_title(label, fontsize=10)
        ax.set_xticks(range(len(policies)))
        ax.set_xticklabels(policies, fontsize=8)
        ax.tick_params(axis="y", labelsize=8)
        ax.set_xlabel("(lower=better)" if lower else "(higher=better)", fontsize=7)
        for bar, val in zip(bars, vals):
            ax.text(
                bar.get_x() + bar.get_width() / 2,
                bar.get_height() * 1.01,
                f"{val:.2f}",
                ha="center",
                va="bottom",
                fontsize=7,
            )

    for ax_idx in range(n_metrics, len(axes_flat)):
        axes_flat[ax_idx].set_visible(False)

    fig.suptitle(f"Policy Comparison - {workload_label}", fontsize=13, fontweight="bold")
    fig.tight_layout()

    out_path = Path(out_dir) / f"{Path(workload_label).stem}.png"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(str(out_path), dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"[plot_results] saved figure: {out_path}")
    return out_path


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate comparative plots from batch reports")
    parser.add_argument(
        "--results_dir",
        type=str,
        default="output/results",
        help="Directory holding *_task_stats.json / *_machine_stats.json pairs",
    )
    parser.add_argument("--out_dir", type=str, default="figures", help="Output directory for PNG figures")
    parser.add_argument(
        "--table_only",
        action="store_true",
        help="Print markdown tables only; skip figure generation",
    )
    args = parser.parse_args()

    results = load_results(args.results_dir)
    if not results:
        print(f"[plot_results] No report pairs found in '{args.results_dir}'. "
              "Run `python -m vmsched.batch` first.")
        return

    for label, data in results.items():
        print_markdown_table(label, data)
        if not args.table_only:
            plot_workload(label, data, args.out_dir)


if __name__ == "__main__":
    main()
