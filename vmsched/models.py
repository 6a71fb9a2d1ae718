from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Job:
    job_id: int
    length: int
    pes: int = 1
    file_size: int = 300
    output_size: int = 300
    cpu_util: float = 1.0
    ram_util: float = 0.0
    bw_util: float = 0.0
    workload_type: str = "balanced"

    # Utilization profiles are constant over time.
    def utilization_cpu(self, time: float = 0.0) -> float:
        del time
        return self.cpu_util

    def utilization_ram(self, time: float = 0.0) -> float:
        del time
        return self.ram_util

    def utilization_bw(self, time: float = 0.0) -> float:
        del time
        return self.bw_util


@dataclass
class UtilizationStats:
    total: float = 0.0
    peak: float = 0.0
    count: int = 0

    def record(self, utilization: float) -> None:
        self.total += utilization
        self.count += 1
        if utilization > self.peak:
            self.peak = utilization

    @property
    def average(self) -> float:
        return self.total / self.count if self.count > 0 else 0.0


@dataclass
class JobExecution:
    job: Job
    status: str = "QUEUED"
    machine_id: int = -1
    submission_time: float = 0.0
    start_time: float = 0.0
    finish_time: float = 0.0

    @property
    def waiting_time(self) -> float:
        if self.status in ("QUEUED", "FAILED"):
            return 0.0
        return self.start_time - self.submission_time

    @property
    def exec_time(self) -> float:
        return self.finish_time - self.start_time

    @property
    def actual_cpu_time(self) -> float:
        if self.status != "SUCCESS":
            return 0.0
        return self.finish_time - self.start_time


@dataclass(eq=False)
class Machine:
    machine_id: int
    mips: float
    pes: int
    ram: float
    bw: float
    size: float
    host_id: int = -1
    running: List[JobExecution] = field(default_factory=list)
    waiting: List[JobExecution] = field(default_factory=list)

    @property
    def compute_capacity(self) -> float:
        return self.mips * self.pes

    @property
    def busy_pes(self) -> int:
        return sum(ex.job.pes for ex in self.running)

    @property
    def free_pes(self) -> int:
        return self.pes - self.busy_pes


@dataclass(eq=False)
class Host:
    host_id: int
    pes: int
    mips: float
    ram: float
    bw: float
    storage: float
    machines: List[Machine] = field(default_factory=list)

    @property
    def free_pes(self) -> int:
        return self.pes - sum(m.pes for m in self.machines)

    @property
    def free_ram(self) -> float:
        return self.ram - sum(m.ram for m in self.machines)

    @property
    def free_bw(self) -> float:
        return self.bw - sum(m.bw for m in self.machines)

    @property
    def free_storage(self) -> float:
        return self.storage - sum(m.size for m in self.machines)

    def fits(self, machine: Machine) -> bool:
        return (
            self.free_pes >= machine.pes
            and self.mips >= machine.mips
            and self.free_ram >= machine.ram
            and self.free_bw >= machine.bw
            and self.free_storage >= machine.size
        )


@dataclass
class TaskStats:
    id: int
    status: str
    vm_id: int
    waiting_time: float
    finish_time: float
    exec_time: float
    actual_cpu_time: float

    @classmethod
    def from_execution(cls, ex: JobExecution) -> "TaskStats":
        return cls(
            id=ex.job.job_id,
            status=ex.status,
            vm_id=ex.machine_id,
            waiting_time=ex.waiting_time,
            finish_time=ex.finish_time,
            exec_time=ex.exec_time,
            actual_cpu_time=ex.actual_cpu_time,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "status": self.status,
            "vmId": self.vm_id,
            "waitingTime": self.waiting_time,
            "finishTime": self.finish_time,
            "execTime": self.exec_time,
            "actualCpuTime": self.actual_cpu_time,
        }


@dataclass
class TaskCompletionReport:
    policy: str
    workload_file: str
    makespan: float
    simulation_clock: float
    tasks: List[TaskStats]

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    def to_dict(self) -> Dict[str, object]:
        return {
            "policy": self.policy,
            "workloadFile": self.workload_file,
            "makespan": self.makespan,
            "simulationClock": self.simulation_clock,
            "totalTasks": self.total_tasks,
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "TaskCompletionReport":
        tasks = [
            TaskStats(
                id=int(t["id"]),
                status=str(t["status"]),
                vm_id=int(t["vmId"]),
                waiting_time=float(t["waitingTime"]),
                finish_time=float(t["finishTime"]),
                exec_time=float(t["execTime"]),
                actual_cpu_time=float(t["actualCpuTime"]),
            )
            for t in data["tasks"]  # type: ignore[union-attr]
        ]
        return cls(
            policy=str(data["policy"]),
            workload_file=str(data["workloadFile"]),
            makespan=float(data["makespan"]),  # type: ignore[arg-type]
            simulation_clock=float(data["simulationClock"]),  # type: ignore[arg-type]
            tasks=tasks,
        )


@dataclass
class MachineStats:
    vm_id: int
    avg_cpu_percent: float
    peak_cpu_percent: float
    avg_ram_percent: float
    peak_ram_percent: float
    task_count: int
    ram_samples: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "vmId": self.vm_id,
            "avgCpuPercent": self.avg_cpu_percent,
            "peakCpuPercent": self.peak_cpu_percent,
            "avgRamPercent": self.avg_ram_percent,
            "peakRamPercent": self.peak_ram_percent,
            "taskCount": self.task_count,
            "ramSamples": self.ram_samples,
        }


@dataclass
class MachineUtilizationReport:
    policy: str
    workload_file: str
    vms: List[MachineStats]

    @property
    def vm_count(self) -> int:
        return len(self.vms)

    @property
    def avg_cluster_cpu_percent(self) -> float:
        if not self.vms:
            return 0.0
        return sum(v.avg_cpu_percent for v in self.vms) / len(self.vms)

    @property
    def avg_cluster_ram_percent(self) -> float:
        if not self.vms:
            return 0.0
        return sum(v.avg_ram_percent for v in self.vms) / len(self.vms)

    def to_dict(self) -> Dict[str, object]:
        return {
            "policy": self.policy,
            "workloadFile": self.workload_file,
            "vmCount": self.vm_count,
            "vms": [v.to_dict() for v in self.vms],
            "avgClusterCpuPercent": self.avg_cluster_cpu_percent,
            "avgClusterRamPercent": self.avg_cluster_ram_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "MachineUtilizationReport":
        vms = [
            MachineStats(
                vm_id=int(v["vmId"]),
                avg_cpu_percent=float(v["avgCpuPercent"]),
                peak_cpu_percent=float(v["peakCpuPercent"]),
                avg_ram_percent=float(v["avgRamPercent"]),
                peak_ram_percent=float(v["peakRamPercent"]),
                task_count=int(v["taskCount"]),
                ram_samples=int(v["ramSamples"]),
            )
            for v in data["vms"]  # type: ignore[union-attr]
        ]
        return cls(
            policy=str(data["policy"]),
            workload_file=str(data["workloadFile"]),
            vms=vms,
        )


@dataclass(frozen=True)
class RunResult:
    task_file: str
    policy: str
    success: bool
    elapsed_ms: float
    error: Optional[str] = None
    task_report: Optional[TaskCompletionReport] = field(default=None, compare=False, repr=False)
    machine_report: Optional[MachineUtilizationReport] = field(default=None, compare=False, repr=False)
