"""
Single scenario: one job file, one policy, one fresh cluster.

Usage:
    python -m vmsched.runner output/tasks/tasks_3000_ram_heavy.json --policy sorted_best_fit
    python -m vmsched.runner output/tasks/tasks_200_balanced.json --policy weighted --log_dir logs/
"""
from __future__ import annotations

import argparse
import json
import time
from pathlib import Path
from typing import List, Sequence, Tuple

from .config import DEFAULT_POLICIES, ClusterConfig
from .engine import Simulation, build_hosts, build_machines, place_machines
from .event_logger import EventLogger, JsonlEventLogger
from .models import (
    JobExecution,
    Machine,
    MachineStats,
    MachineUtilizationReport,
    TaskCompletionReport,
    TaskStats,
)
from .policies import SelectionPolicy, make_policy
from .tracker import UtilizationTracker
from .workload import load_jobs

Reports = Tuple[TaskCompletionReport, MachineUtilizationReport]


def report_path(results_dir: str | Path, workload_file: str | Path, policy_name: str, kind: str) -> Path:
    base = Path(workload_file).name
    if base.endswith(".json"):
        base = base[: -len(".json")]
    return Path(results_dir) / f"{base}_{policy_name}_{kind}.json"


class WorkloadRunner:
    def __init__(
        self,
        policy: SelectionPolicy,
        cluster: ClusterConfig | None = None,
        results_dir: str | Path = "output/results",
        logger: EventLogger | None = None,
    ):
        if policy is None:
            raise ValueError("policy is required")
        self.policy = policy
        self.cluster = cluster or ClusterConfig()
        self.results_dir = Path(results_dir)
        self.logger = logger
        self.tracker: UtilizationTracker | None = None

    def run(self, workload_file: str | Path, console_output: bool = True) -> Reports:
        started = time.perf_counter()
        workload_file = Path(workload_file)
        self.tracker = tracker = UtilizationTracker(self.cluster.ram_sample_interval)
        self.policy.reset()

        hosts = build_hosts(self.cluster)
        machines = build_machines(self.cluster)
        place_machines(hosts, machines)
        pool = tuple(machines)

        jobs = load_jobs(workload_file)
        self.policy.presort_jobs(jobs)

        simulation = Simulation(
            machines,
            dispatch=lambda job: self.policy.select_machine_for(job, pool),
            scheduling_interval=self.cluster.scheduling_interval,
            logger=self.logger,
        )
        executions = simulation.submit(jobs)
        simulation.add_clock_listener(lambda now: tracker.record_snapshot(pool, now))
        clock = simulation.run()

        elapsed_ms = (time.perf_counter() - started) * 1000.0

        policy_name = self.policy.policy_name
        task_report = self._task_report(executions, workload_file.name, policy_name, clock)
        machine_report = self._machine_report(
            machines, executions, simulation, tracker, workload_file.name, policy_name
        )

        if console_output:
            print_task_table(task_report)
            print_machine_table(machine_report)
            print(f"\nTotal simulated completion time (makespan): {task_report.makespan:.2f} seconds")
            print(f"Simulation clock at end: {task_report.simulation_clock:.2f} seconds")
            print(f"Real-world execution time: {elapsed_ms:.0f} ms ({elapsed_ms / 1000.0:.2f} seconds)")

        self._write(task_report.to_dict(), workload_file, policy_name, "task_stats", console_output)
        self._write(machine_report.to_dict(), workload_file, policy_name, "machine_stats", console_output)
        return task_report, machine_report

    def _task_report(
        self,
        executions: List[JobExecution],
        workload_name: str,
        policy_name: str,
        clock: float,
    ) -> TaskCompletionReport:
        makespan = max((ex.finish_time for ex in executions), default=0.0)
        return TaskCompletionReport(
            policy=policy_name,
            workload_file=workload_name,
            makespan=makespan,
            simulation_clock=clock,
            tasks=[TaskStats.from_execution(ex) for ex in executions],
        )

    def _machine_report(
        self,
        machines: Sequence[Machine],
        executions: List[JobExecution],
        simulation: Simulation,
        tracker: UtilizationTracker,
        workload_name: str,
        policy_name: str,
    ) -> MachineUtilizationReport:
        vms: List[MachineStats] = []
        for machine in machines:
            vms.append(
                MachineStats(
                    vm_id=machine.machine_id,
                    avg_cpu_percent=simulation.cpu_average(machine) * 100.0,
                    peak_cpu_percent=simulation.cpu_peak(machine) * 100.0,
                    avg_ram_percent=tracker.average_utilization(machine) * 100.0,
                    peak_ram_percent=tracker.peak_utilization(machine) * 100.0,
                    task_count=sum(1 for ex in executions if ex.machine_id == machine.machine_id),
                    ram_samples=tracker.sample_count(machine),
                )
            )
        return MachineUtilizationReport(policy=policy_name, workload_file=workload_name, vms=vms)

    def _write(
        self,
        document: dict,
        workload_file: Path,
        policy_name: str,
        kind: str,
        console_output: bool,
    ) -> Path:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        out_path = report_path(self.results_dir, workload_file, policy_name, kind)
        with open(out_path, "w", encoding="utf-8") as fp:
            json.dump(document, fp, indent=2)
        if console_output:
            print(f"{kind.replace('_', ' ').capitalize()} written to: {out_path}")
        return out_path


def print_task_table(report: TaskCompletionReport) -> None:
    print("Job execution results")
    print("ID\tStatus\tVM\tWait\tFinish\tExecTime\tActualCpuTime")
    for t in report.tasks:
        print(
            f"{t.id:3d}\t{t.status}\t{t.vm_id:3d}\t{t.waiting_time:7.2f}\t{t.finish_time:7.2f}"
            f"\t{t.exec_time:9.2f}\t{t.actual_cpu_time:13.2f}"
        )


def print_machine_table(report: MachineUtilizationReport) -> None:
    print("\nMachine resource usage summary")
    print("VM\tAvgCPU%\tPeakCPU%\tAvgRAM%\tPeakRAM%\tTaskCount\tSamples")
    for v in report.vms:
        print(
            f"{v.vm_id:3d}\t{v.avg_cpu_percent:7.2f}\t{v.peak_cpu_percent:8.2f}\t{v.avg_ram_percent:7.2f}"
            f"\t{v.peak_ram_percent:8.2f}\t{v.task_count:9d}\t{v.ram_samples:7d}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one job file under one scheduling policy")
    parser.add_argument("workload", type=str, help="Job-description JSON file")
    parser.add_argument("--policy", choices=list(DEFAULT_POLICIES), default="sorted_best_fit")
    parser.add_argument("--results_dir", type=str, default="output/results")
    parser.add_argument("--log_dir", type=str, default="")
    parser.add_argument("--quiet", action="store_true", help="Skip the per-job and per-machine tables")
    args = parser.parse_args()

    policy = make_policy(args.policy)
    print(f"Policy: {policy.policy_name}")
    print(f"Workload: {args.workload}\n")

    logger = None
    if args.log_dir:
        log_file = Path(args.log_dir) / f"{Path(args.workload).stem}_{policy.policy_name}.jsonl"
        logger = JsonlEventLogger(str(log_file), policy=policy.policy_name)

    try:
        runner = WorkloadRunner(policy, results_dir=args.results_dir, logger=logger)
        runner.run(args.workload, console_output=not args.quiet)
    finally:
        if logger:
            logger.close()


if __name__ == "__main__":
    main()
