import io
import time
from pathlib import Path

import pytest

from vmsched import batch
from vmsched.batch import (
    BatchSummary,
    ProgressReporter,
    build_tasks,
    discover_task_files,
    format_summary,
    run_batch,
    run_simulation,
    truncate,
)
from vmsched.config import DEFAULT_POLICIES, ClusterConfig, MachineConfig
from vmsched.db_store import ExperimentStore
from vmsched.models import RunResult

pytestmark = [pytest.mark.system]


def quiet_progress(total):
    return ProgressReporter(total, stream=io.StringIO())


def test_discovery_filters_and_sorts(tasks_dir):
    (tasks_dir / "notes.txt").write_text("not a job file")
    (tasks_dir / "sub.json").mkdir()

    files = discover_task_files(tasks_dir)

    assert [p.name for p in files] == ["tasks_16_uniform.json", "tasks_24_varied.json"]


def test_discovery_of_missing_directory(tmp_path, capsys):
    assert discover_task_files(tmp_path / "absent") == []
    assert "failed to list task files" in capsys.readouterr().err


def test_cross_product_is_file_major(tasks_dir):
    files = discover_task_files(tasks_dir)
    tasks = build_tasks(files, DEFAULT_POLICIES)

    assert len(tasks) == 6
    assert [(f.name, p) for f, p in tasks[:3]] == [
        ("tasks_16_uniform.json", "round_robin"),
        ("tasks_16_uniform.json", "weighted"),
        ("tasks_16_uniform.json", "sorted_best_fit"),
    ]


def test_full_batch(tasks_dir, results_dir):
    tasks = build_tasks(discover_task_files(tasks_dir), DEFAULT_POLICIES)

    summary = run_batch(
        tasks,
        workers=3,
        run_fn=lambda f, p: run_simulation(f, p, results_dir=results_dir),
        progress=quiet_progress(len(tasks)),
    )

    assert (summary.total, summary.succeeded, summary.failed) == (6, 6, 0)
    assert [(r.task_file, r.policy) for r in summary.results] == sorted(
        (f.name, p) for f, p in tasks
    )
    assert len(list(results_dir.glob("*_task_stats.json"))) == 6
    assert len(list(results_dir.glob("*_machine_stats.json"))) == 6
    assert all(r.task_report is not None for r in summary.results)


def test_batch_outcomes_are_deterministic(tasks_dir, tmp_path):
    tasks = build_tasks(discover_task_files(tasks_dir), ("round_robin", "weighted"))

    def once(out):
        summary = run_batch(
            tasks,
            workers=4,
            run_fn=lambda f, p: run_simulation(f, p, results_dir=tmp_path / out),
            progress=quiet_progress(len(tasks)),
        )
        return summary.outcomes(), [r.task_report for r in summary.results]

    first_outcomes, first_reports = once("a")
    second_outcomes, second_reports = once("b")

    assert first_outcomes == second_outcomes
    assert first_reports == second_reports


def test_one_failing_task_is_isolated(tasks_dir, results_dir):
    tasks = build_tasks(discover_task_files(tasks_dir), DEFAULT_POLICIES)

    def run_fn(task_file, policy_name):
        if task_file.name == "tasks_24_varied.json" and policy_name == "weighted":
            raise ValueError("malformed job file")
        return run_simulation(task_file, policy_name, results_dir=results_dir)

    summary = run_batch(tasks, workers=3, run_fn=run_fn, progress=quiet_progress(len(tasks)))

    assert (summary.succeeded, summary.failed) == (5, 1)
    (failed,) = [r for r in summary.results if not r.success]
    assert (failed.task_file, failed.policy, failed.error) == ("tasks_24_varied.json", "weighted", "malformed job file")


def test_malformed_job_file_fails_its_runs_only(tasks_dir, results_dir):
    (tasks_dir / "tasks_0_broken.json").write_text("{ not json")
    tasks = build_tasks(discover_task_files(tasks_dir), DEFAULT_POLICIES)

    summary = run_batch(
        tasks,
        workers=2,
        run_fn=lambda f, p: run_simulation(f, p, results_dir=results_dir),
        progress=quiet_progress(len(tasks)),
    )

    assert summary.total == 9
    failed = [r for r in summary.results if not r.success]
    assert {r.task_file for r in failed} == {"tasks_0_broken.json"}
    assert len(failed) == 3 and all(r.error for r in failed)


def test_negative_job_length_fails_the_run(tmp_path, results_dir):
    job_file = tmp_path / "tasks_2_negative.json"
    job_file.write_text(
        '[{"id": 0, "length": 50000, "pes": 1, "cpuUtil": 0.5, "ramUtil": 0.1},'
        ' {"id": 1, "length": -50000, "pes": 1, "cpuUtil": 0.5, "ramUtil": 0.1}]'
    )

    result = run_simulation(job_file, "round_robin", results_dir=results_dir)

    assert not result.success
    assert result.error == "job 1: length=-50000 must be >= 0"
    assert not results_dir.exists()


def test_configuration_error_becomes_failed_result(job_file, results_dir):
    cluster = ClusterConfig(machines=MachineConfig(count=0))

    result = run_simulation(job_file, "round_robin", results_dir=results_dir, cluster=cluster)

    assert not result.success
    assert result.error == "No machines available for job mapping"
    assert result.task_report is None


def test_empty_exception_message_falls_back_to_class_name(tmp_path):
    def run_fn(task_file, policy_name):
        raise RuntimeError()

    summary = run_batch([(tmp_path / "a.json", "weighted")], workers=1, run_fn=run_fn, progress=quiet_progress(1))

    assert summary.results[0].error == "RuntimeError"


def test_speedup_with_equal_tasks():
    def run_fn(task_file, policy_name):
        time.sleep(0.2)
        return RunResult(task_file.name, policy_name, success=True, elapsed_ms=200)

    tasks = [(Path(f"w{i}.json"), "round_robin") for i in range(8)]
    summary = run_batch(tasks, workers=4, run_fn=run_fn, progress=quiet_progress(len(tasks)))

    assert summary.total_elapsed_ms == 1600
    assert 380 <= summary.wall_clock_ms < 1200
    assert 1.4 < summary.speedup <= 4.3


def test_progress_reporter_counts_every_task():
    stream = io.StringIO()
    progress = ProgressReporter(5, stream=stream)
    tasks = [(Path(f"w{i}.json"), "weighted") for i in range(5)]

    run_batch(
        tasks,
        workers=5,
        run_fn=lambda f, p: RunResult(f.name, p, success=True, elapsed_ms=1),
        progress=progress,
    )

    assert progress.completed == 5
    out = stream.getvalue()
    assert out.count("\r[") == 5
    assert "[5/5] Completed:" in out


def test_summary_format():
    summary = BatchSummary(
        results=[
            RunResult("tasks_200_balanced.json", "round_robin", True, 300),
            RunResult("tasks_with_a_really_long_workload_name.json", "weighted", False, 100, "boom"),
        ],
        wall_clock_ms=200,
    )

    text = format_summary(summary, "out/results")

    assert "Total simulations: 2" in text
    assert "Successful: 1" in text
    assert "Failed: 1" in text
    assert "Parallel speedup:        2.00x" in text
    assert "tasks_with_a_really_long_workloa..." in text
    assert "  - tasks_with_a_really_long_workload_name.json + weighted: boom" in text
    assert "Results written to: out/results/" in text
    assert f"{'tasks_200_balanced.json':<35} {'round_robin':<30} {300:>10d} {'OK':>8}" in text


def test_speedup_of_an_instant_batch_is_zero():
    assert BatchSummary(results=[], wall_clock_ms=0).speedup == 0.0


def test_sub_millisecond_runs_keep_a_speedup():
    results = [RunResult(f"w{i}.json", "round_robin", True, 0.4) for i in range(4)]
    summary = BatchSummary(results=results, wall_clock_ms=0.5)

    assert summary.total_elapsed_ms == pytest.approx(1.6)
    assert summary.speedup == pytest.approx(3.2)
    assert "Parallel speedup:        3.20x" in format_summary(summary)


def test_measured_elapsed_time_is_not_rounded(job_file, results_dir):
    result = run_simulation(job_file, "weighted", results_dir=results_dir)

    assert isinstance(result.elapsed_ms, float)
    assert result.elapsed_ms > 0.0


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghijkl", 8) == "abcde..."


def test_main_without_task_files(tmp_path, capsys):
    batch.main(["--tasks_dir", str(tmp_path / "empty")])

    captured = capsys.readouterr()
    assert "No task files found" in captured.err
    assert "BATCH SIMULATION SUMMARY" not in captured.out


def test_main_end_to_end(tasks_dir, results_dir, tmp_path, capsys):
    db_path = tmp_path / "runs.db"
    log_dir = tmp_path / "logs"

    batch.main([
        "--tasks_dir", str(tasks_dir),
        "--results_dir", str(results_dir),
        "--workers", "2",
        "--policies", "round_robin,sorted_best_fit",
        "--log_dir", str(log_dir),
        "--out_db", str(db_path),
    ])

    out = capsys.readouterr().out
    assert "Total simulations to run: 4" in out
    assert "Successful: 4" in out
    assert "ERRORS:" not in out
    assert len(list(log_dir.glob("*.jsonl"))) == 4

    store = ExperimentStore(str(db_path))
    try:
        runs = store.query_runs()
    finally:
        store.close()
    assert [(r["task_file"], r["policy"]) for r in runs] == [
        ("tasks_16_uniform.json", "round_robin"),
        ("tasks_16_uniform.json", "sorted_best_fit"),
        ("tasks_24_varied.json", "round_robin"),
        ("tasks_24_varied.json", "sorted_best_fit"),
    ]
