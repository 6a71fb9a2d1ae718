from vmsched.db_store import ExperimentStore
from vmsched.models import MachineStats, MachineUtilizationReport, RunResult, TaskCompletionReport, TaskStats


def ok_result(task_file, policy, makespan):
    tasks = [
        TaskStats(id=i, status="SUCCESS", vm_id=i % 2, waiting_time=float(i), finish_time=makespan,
                  exec_time=1.0, actual_cpu_time=1.0)
        for i in range(4)
    ]
    vms = [MachineStats(vm_id=v, avg_cpu_percent=10.0, peak_cpu_percent=20.0, avg_ram_percent=5.0,
                        peak_ram_percent=9.0, task_count=2, ram_samples=3) for v in range(2)]
    return RunResult(
        task_file=task_file, policy=policy, success=True, elapsed_ms=12,
        task_report=TaskCompletionReport(policy, task_file, makespan, makespan, tasks),
        machine_report=MachineUtilizationReport(policy, task_file, vms),
    )


def test_store_round_trip(tmp_path):
    store = ExperimentStore(str(tmp_path / "runs.db"))
    try:
        for result in (
            ok_result("b.json", "weighted", 40.0),
            ok_result("a.json", "weighted", 20.0),
            RunResult("a.json", "round_robin", success=False, elapsed_ms=3, error="boom"),
        ):
            run_id = store.insert_run(result)
            if result.task_report:
                store.insert_task_stats(run_id, result.task_report)
                store.insert_machine_stats(run_id, result.machine_report)

        runs = store.query_runs()
        assert [(r["task_file"], r["policy"]) for r in runs] == [
            ("a.json", "round_robin"), ("a.json", "weighted"), ("b.json", "weighted"),
        ]

        failed = store.query_runs(failed_only=True)
        assert len(failed) == 1 and failed[0]["error"] == "boom" and failed[0]["makespan"] is None

        weighted_a = store.query_runs(policy="weighted", task_file="a.json")[0]
        waits = store.per_machine_wait_stats(weighted_a["run_id"])
        assert [(w["vm_id"], w["avg_wait"], w["task_count"]) for w in waits] == [(0, 1.0, 2), (1, 2.0, 2)]

        assert store.policy_makespans() == [{"policy": "weighted", "avg_makespan": 30.0, "runs": 2}]
    finally:
        store.close()
