"""
Runs every (job file, policy) pair in a thread pool and prints a summary.

Usage:
    python -m vmsched.batch
    python -m vmsched.batch --tasks_dir output/tasks --workers 4 --out_db results.db
    python -m vmsched.batch --policies round_robin,weighted --log_dir logs/
"""
from __future__ import annotations

import argparse
import os
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import product
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO, Tuple

from .config import BatchConfig, ClusterConfig
from .event_logger import JsonlEventLogger
from .models import RunResult
from .policies import make_policy
from .runner import WorkloadRunner

SimulationTask = Tuple[Path, str]


@dataclass
class BatchSummary:
    results: List[RunResult]
    wall_clock_ms: float

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def total_elapsed_ms(self) -> float:
        return sum(r.elapsed_ms for r in self.results)

    @property
    def speedup(self) -> float:
        if self.wall_clock_ms <= 0:
            return 0.0
        return self.total_elapsed_ms / self.wall_clock_ms

    def outcomes(self) -> List[Tuple[str, str, bool]]:
        return [(r.task_file, r.policy, r.success) for r in self.results]


class ProgressReporter:
    """Shared completion counter and single progress line for all workers."""

    def __init__(self, total: int, stream: TextIO | None = None):
        self.total = total
        self.stream = stream if stream is not None else sys.stdout
        self._count = 0
        self._count_lock = threading.Lock()
        self._write_lock = threading.Lock()

    @property
    def completed(self) -> int:
        with self._count_lock:
            return self._count

    def task_done(self, task_file: str, policy: str, elapsed_ms: float) -> int:
        with self._count_lock:
            self._count += 1
            done = self._count
        line = (
            f"\r[{done}/{self.total}] Completed: {truncate(task_file, 25)} + "
            f"{truncate(policy, 20)} ({elapsed_ms:.0f} ms)" + " " * 20
        )
        with self._write_lock:
            self.stream.write(line)
            self.stream.flush()
        return done


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def discover_task_files(tasks_dir: str | Path, exclude: str = "tasks.json") -> List[Path]:
    try:
        entries = list(Path(tasks_dir).iterdir())
    except OSError as exc:
        print(f"[batch] failed to list task files: {exc}", file=sys.stderr)
        return []
    return sorted(
        p for p in entries
        if p.is_file() and p.name.endswith(".json") and p.name != exclude
    )


def build_tasks(task_files: Sequence[Path], policies: Sequence[str]) -> List[SimulationTask]:
    return list(product(task_files, policies))


def run_simulation(
    task_file: Path,
    policy_name: str,
    results_dir: str | Path = "output/results",
    cluster: ClusterConfig | None = None,
    log_dir: str = "",
) -> RunResult:
    """Run one scenario with a fresh policy; failures come back as a failed RunResult."""
    started = time.perf_counter()
    logger: Optional[JsonlEventLogger] = None
    try:
        policy = make_policy(policy_name)
        if log_dir:
            logger = JsonlEventLogger(
                str(Path(log_dir) / f"{task_file.stem}_{policy_name}.jsonl"),
                policy=policy_name,
                workload=task_file.name,
            )
        runner = WorkloadRunner(policy, cluster=cluster, results_dir=results_dir, logger=logger)
        task_report, machine_report = runner.run(task_file, console_output=False)
    except Exception as exc:
        return RunResult(
            task_file=task_file.name,
            policy=policy_name,
            success=False,
            elapsed_ms=(time.perf_counter() - started) * 1000.0,
            error=str(exc) or type(exc).__name__,
        )
    finally:
        if logger:
            logger.close()

    return RunResult(
        task_file=task_file.name,
        policy=policy_name,
        success=True,
        elapsed_ms=(time.perf_counter() - started) * 1000.0,
        task_report=task_report,
        machine_report=machine_report,
    )


RunFn = Callable[[Path, str], RunResult]


def run_batch(
    tasks: Sequence[SimulationTask],
    workers: int | None = None,
    run_fn: RunFn | None = None,
    progress: ProgressReporter | None = None,
) -> BatchSummary:
    run_fn = run_fn or run_simulation
    progress = progress or ProgressReporter(len(tasks))
    workers = max(1, workers or os.cpu_count() or 1)

    def execute(task: SimulationTask) -> RunResult:
        task_file, policy_name = task
        started = time.perf_counter()
        try:
            result = run_fn(task_file, policy_name)
        except Exception as exc:
            result = RunResult(
                task_file=task_file.name,
                policy=policy_name,
                success=False,
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
                error=str(exc) or type(exc).__name__,
            )
        progress.task_done(result.task_file, result.policy, result.elapsed_ms)
        return result

    batch_started = time.perf_counter()
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(execute, task) for task in tasks]
        results = [f.result() for f in futures]
    wall_clock_ms = (time.perf_counter() - batch_started) * 1000.0

    results.sort(key=lambda r: (r.task_file, r.policy))
    return BatchSummary(results=results, wall_clock_ms=wall_clock_ms)


def format_summary(summary: BatchSummary, results_dir: str = "output/results") -> str:
    rule = "=" * 80
    thin = "-" * 80
    lines = [
        "",
        rule,
        "BATCH SIMULATION SUMMARY",
        rule,
        "",
        f"Total simulations: {summary.total}",
        f"Successful: {summary.succeeded}",
        f"Failed: {summary.failed}",
        "",
        "Execution Times:",
        thin,
        f"{'Task File':<35} {'Policy':<30} {'Time (ms)':>10} {'Status':>8}",
        thin,
    ]
    for r in summary.results:
        lines.append(
            f"{truncate(r.task_file, 35):<35} {truncate(r.policy, 30):<30} "
            f"{r.elapsed_ms:>10.0f} {'OK' if r.success else 'FAILED':>8}"
        )
    lines.append(thin)

    total_ms = summary.total_elapsed_ms
    wall_ms = summary.wall_clock_ms
    lines.append(f"Sum of individual times: {total_ms:.0f} ms ({total_ms / 1000.0:.2f} seconds)")
    lines.append(f"Actual wall-clock time:  {wall_ms:.0f} ms ({wall_ms / 1000.0:.2f} seconds)")
    lines.append(f"Parallel speedup:        {summary.speedup:.2f}x")

    if summary.failed:
        lines.append("")
        lines.append("ERRORS:")
        for r in summary.results:
            if not r.success:
                lines.append(f"  - {r.task_file} + {r.policy}: {r.error}")

    lines.append("")
    lines.append(f"Results written to: {results_dir}/")
    return "\n".join(lines)


def _print_header(config: BatchConfig, n_files: int, n_runs: int) -> None:
    rule = "=" * 80
    print(rule)
    print("BATCH SIMULATION RUNNER (PARALLEL)")
    print(rule)
    print(f"Found {n_files} task files and {len(config.policies)} policies")
    print(f"Total simulations to run: {n_runs}")
    print(f"Thread pool size: {config.workers}")
    print(rule)
    print()


def persist(summary: BatchSummary, db_path: str) -> None:
    from .db_store import ExperimentStore

    store = ExperimentStore(db_path)
    try:
        for result in summary.results:
            run_id = store.insert_run(result)
            if result.task_report is not None:
                store.insert_task_stats(run_id, result.task_report)
            if result.machine_report is not None:
                store.insert_machine_stats(run_id, result.machine_report)
    finally:
        store.close()
    print(f"[batch] saved_db={db_path}")


def main(argv: Sequence[str] | None = None) -> None:
    defaults = BatchConfig()
    parser = argparse.ArgumentParser(description="Run every job file under every policy in parallel")
    parser.add_argument("--tasks_dir", type=str, default=defaults.tasks_dir)
    parser.add_argument("--results_dir", type=str, default=defaults.results_dir)
    parser.add_argument("--workers", type=int, default=defaults.workers)
    parser.add_argument("--policies", type=str, default=",".join(defaults.policies))
    parser.add_argument("--log_dir", type=str, default="", help="Write per-run JSONL event logs here")
    parser.add_argument("--out_db", type=str, default="", help="SQLite database path for run outcomes")
    args = parser.parse_args(argv)

    config = BatchConfig(
        tasks_dir=args.tasks_dir,
        results_dir=args.results_dir,
        workers=max(1, args.workers),
        policies=tuple(p.strip() for p in args.policies.split(",") if p.strip()),
        log_dir=args.log_dir,
        out_db=args.out_db,
    )

    task_files = discover_task_files(config.tasks_dir, exclude=config.index_file)
    if not task_files:
        print(f"No task files found in {config.tasks_dir}", file=sys.stderr)
        print("Run `python -m vmsched.workload` first to generate task files.", file=sys.stderr)
        return

    tasks = build_tasks(task_files, config.policies)
    _print_header(config, len(task_files), len(tasks))

    def run_fn(task_file: Path, policy_name: str) -> RunResult:
        return run_simulation(
            task_file,
            policy_name,
            results_dir=config.results_dir,
            log_dir=config.log_dir,
        )

    summary = run_batch(tasks, workers=config.workers, run_fn=run_fn)
    print()
    print(format_summary(summary, config.results_dir))

    if config.out_db:
        persist(summary, config.out_db)


if __name__ == "__main__":
    main()
