from __future__ import annotations

import statistics
from typing import Dict

from .models import MachineUtilizationReport, TaskCompletionReport


def summarize_reports(
    task_report: TaskCompletionReport,
    machine_report: MachineUtilizationReport | None = None,
) -> Dict[str, float]:
    done = [t for t in task_report.tasks if t.status == "SUCCESS"]
    failed = len(task_report.tasks) - len(done)

    cluster_cpu = machine_report.avg_cluster_cpu_percent if machine_report else 0.0
    cluster_ram = machine_report.avg_cluster_ram_percent if machine_report else 0.0
    job_counts = [v.task_count for v in machine_report.vms] if machine_report else []
    imbalance = statistics.pstdev(job_counts) if len(job_counts) > 1 else 0.0

    if not done:
        return {
            "completed_tasks": 0,
            "failed_tasks": failed,
            "makespan": round(task_report.makespan, 3),
            "avg_wait_time": 0.0,
            "p95_wait_time": 0.0,
            "avg_exec_time": 0.0,
            "cluster_cpu_percent": round(cluster_cpu, 3),
            "cluster_ram_percent": round(cluster_ram, 3),
            "job_count_std": round(imbalance, 3),
        }

    completed = len(done)
    waits = sorted(t.waiting_time for t in done)
    p95_idx = min(completed - 1, int(0.95 * (completed - 1)))
    return {
        "completed_tasks": completed,
        "failed_tasks": failed,
        "makespan": round(task_report.makespan, 3),
        "avg_wait_time": round(sum(waits) / completed, 3),
        "p95_wait_time": round(waits[p95_idx], 3),
        "avg_exec_time": round(sum(t.exec_time for t in done) / completed, 3),
        "cluster_cpu_percent": round(cluster_cpu, 3),
        "cluster_ram_percent": round(cluster_ram, 3),
        "job_count_std": round(imbalance, 3),
    }
