"""
SQLite persistence for batch outcomes and the two per-run report documents.

Usage:
    from vmsched.db_store import ExperimentStore
    store = ExperimentStore("results.db")
    run_id = store.insert_run(result)
    store.insert_task_stats(run_id, result.task_report)
    store.insert_machine_stats(run_id, result.machine_report)
    store.close()
"""
from __future__ import annotations

import sqlite3
from typing import Dict, List, Optional

from .models import MachineUtilizationReport, RunResult, TaskCompletionReport


_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    run_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    task_file   TEXT    NOT NULL,
    policy      TEXT    NOT NULL,
    success     INTEGER NOT NULL,   -- 1 = ok, 0 = failed
    elapsed_ms  REAL NOT NULL,
    error       TEXT,
    makespan    REAL,
    created_at  TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS task_stats (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id          INTEGER NOT NULL REFERENCES runs(run_id),
    job_id          INTEGER NOT NULL,
    status          TEXT    NOT NULL,
    vm_id           INTEGER NOT NULL,
    waiting_time    REAL    NOT NULL,
    finish_time     REAL    NOT NULL,
    exec_time       REAL    NOT NULL,
    actual_cpu_time REAL    NOT NULL
);

CREATE TABLE IF NOT EXISTS machine_stats (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id           INTEGER NOT NULL REFERENCES runs(run_id),
    vm_id            INTEGER NOT NULL,
    avg_cpu_percent  REAL    NOT NULL,
    peak_cpu_percent REAL    NOT NULL,
    avg_ram_percent  REAL    NOT NULL,
    peak_ram_percent REAL    NOT NULL,
    task_count       INTEGER NOT NULL,
    ram_samples      INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_task_stats_run    ON task_stats(run_id);
CREATE INDEX IF NOT EXISTS idx_machine_stats_run ON machine_stats(run_id);
"""


class ExperimentStore:
    """SQLite-backed store for batch runs. Use from one thread only."""

    def __init__(self, db_path: str = "experiments.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Insert helpers
    # ------------------------------------------------------------------

    def insert_run(self, result: RunResult) -> int:
        """Insert one batch outcome and return its run_id."""
        makespan = result.task_report.makespan if result.task_report else None
        cur = self._conn.execute(
            "INSERT INTO runs (task_file, policy, success, elapsed_ms, error, makespan) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                result.task_file,
                result.policy,
                1 if result.success else 0,
                result.elapsed_ms,
                result.error,
                makespan,
            ),
        )
        self._conn.commit()
        return cur.lastrowid  # type: ignore[return-value]

    def insert_task_stats(self, run_id: int, report: TaskCompletionReport) -> None:
        rows = [
            (
                run_id,
                t.id,
                t.status,
                t.vm_id,
                t.waiting_time,
                t.finish_time,
                t.exec_time,
                t.actual_cpu_time,
            )
            for t in report.tasks
        ]
        self._conn.executemany(
            "INSERT INTO task_stats "
            "(run_id, job_id, status, vm_id, waiting_time, finish_time, exec_time, actual_cpu_time) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()

    def insert_machine_stats(self, run_id: int, report: MachineUtilizationReport) -> None:
        rows = [
            (
                run_id,
                v.vm_id,
                v.avg_cpu_percent,
                v.peak_cpu_percent,
                v.avg_ram_percent,
                v.peak_ram_percent,
                v.task_count,
                v.ram_samples,
            )
            for v in report.vms
        ]
        self._conn.executemany(
            "INSERT INTO machine_stats "
            "(run_id, vm_id, avg_cpu_percent, peak_cpu_percent, avg_ram_percent, "
            " peak_ram_percent, task_count, ram_samples) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def query_runs(
        self,
        policy: Optional[str] = None,
        task_file: Optional[str] = None,
        failed_only: bool = False,
    ) -> List[Dict[str, object]]:
        """Return all matching runs as a list of dicts, ordered by (task_file, policy)."""
        clauses: List[str] = []
        params: List[object] = []
        if policy is not None:
            clauses.append("policy = ?")
            params.append(policy)
        if task_file is not None:
            clauses.append("task_file = ?")
            params.append(task_file)
        if failed_only:
            clauses.append("success = 0")
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        rows = self._conn.execute(
            f"SELECT * FROM runs {where} ORDER BY task_file, policy, run_id", params
        ).fetchall()
        return [dict(r) for r in rows]

    def per_machine_wait_stats(self, run_id: int) -> List[Dict[str, object]]:
        """Return per-machine average and max waiting time for a given run."""
        rows = self._conn.execute(
            "SELECT vm_id, "
            "       AVG(waiting_time) AS avg_wait, "
            "       MAX(waiting_time) AS max_wait, "
            "       COUNT(*)          AS task_count "
            "FROM task_stats "
            "WHERE run_id = ? "
            "GROUP BY vm_id "
            "ORDER BY vm_id",
            (run_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def policy_makespans(self) -> List[Dict[str, object]]:
        """Return the mean makespan of successful runs per policy."""
        rows = self._conn.execute(
            "SELECT policy, "
            "       AVG(makespan) AS avg_makespan, "
            "       COUNT(*)      AS runs "
            "FROM runs "
            "WHERE success = 1 "
            "GROUP BY policy "
            "ORDER BY policy"
        ).fetchall()
        return [dict(r) for r in rows]

    def close(self) -> None:
        self._conn.close()
