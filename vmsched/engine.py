"""
Space-shared execution engine for one scenario.

All jobs are submitted at time 0. The dispatch callback maps each job to a
machine, in submission order, before anything runs. Every machine then works
through its own FIFO queue: a job starts once enough slots are free and runs
at ``mips * pes * cpu_util`` MIPS until its length is done.

The clock moves to the next job completion or the next scheduling tick,
whichever comes first. Clock-tick listeners see every step, including the
initial one at time 0.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from .config import ClusterConfig
from .event_logger import EventLogger, NoopLogger
from .models import Host, Job, JobExecution, Machine, UtilizationStats
from .policies import ConfigurationError

DispatchFn = Callable[[Job], Machine]
ClockListener = Callable[[float], None]

_EPS = 1e-9


def build_hosts(config: ClusterConfig) -> List[Host]:
    hc = config.hosts
    return [
        Host(
            host_id=idx,
            pes=hc.pes,
            mips=hc.mips_per_pe,
            ram=hc.ram_mb,
            bw=hc.bw_mbps,
            storage=hc.storage_mb,
        )
        for idx in range(hc.count)
    ]


def build_machines(config: ClusterConfig) -> List[Machine]:
    mc = config.machines
    return [
        Machine(
            machine_id=idx,
            mips=mc.mips_per_pe,
            pes=mc.pes,
            ram=mc.ram_mb,
            bw=mc.bw_mbps,
            size=mc.size_mb,
        )
        for idx in range(mc.count)
    ]


def place_machines(hosts: List[Host], machines: List[Machine]) -> None:
    """Put every machine on the fitting host with the most free slots."""
    for machine in machines:
        candidates = [h for h in hosts if h.fits(machine)]
        if not candidates:
            raise ConfigurationError(f"No host can fit machine {machine.machine_id}")
        host = max(candidates, key=lambda h: h.free_pes)
        host.machines.append(machine)
        machine.host_id = host.host_id


class Simulation:
    def __init__(
        self,
        machines: Sequence[Machine],
        dispatch: DispatchFn,
        scheduling_interval: float = 1.0,
        logger: EventLogger | None = None,
    ):
        if scheduling_interval <= 0:
            raise ConfigurationError("scheduling_interval must be positive")
        self.machines = list(machines)
        self.dispatch = dispatch
        self.scheduling_interval = scheduling_interval
        self.logger = logger or NoopLogger()
        self.clock = 0.0
        self.executions: List[JobExecution] = []
        self._listeners: List[ClockListener] = []
        self._cpu_stats: Dict[int, UtilizationStats] = {
            m.machine_id: UtilizationStats() for m in self.machines
        }

    def add_clock_listener(self, listener: ClockListener) -> None:
        self._listeners.append(listener)

    def submit(self, jobs: Sequence[Job]) -> List[JobExecution]:
        submitted = [JobExecution(job=job, submission_time=self.clock) for job in jobs]
        self.executions.extend(submitted)
        return submitted

    def cpu_average(self, machine: Machine) -> float:
        stats = self._cpu_stats.get(machine.machine_id)
        return stats.average if stats else 0.0

    def cpu_peak(self, machine: Machine) -> float:
        stats = self._cpu_stats.get(machine.machine_id)
        return stats.peak if stats else 0.0

    def run(self) -> float:
        """Run until every submitted job has finished or failed; return the final clock."""
        for ex in self.executions:
            if ex.status == "QUEUED":
                self._dispatch(ex)

        self._step(self.clock)
        while any(m.running or m.waiting for m in self.machines):
            next_tick = self.clock + self.scheduling_interval
            next_finish = min(
                (ex.finish_time for m in self.machines for ex in m.running),
                default=next_tick,
            )
            self._step(min(next_finish, next_tick))
        return self.clock

    def _dispatch(self, ex: JobExecution) -> None:
        machine = self.dispatch(ex.job)
        ex.machine_id = machine.machine_id
        if ex.job.pes > machine.pes:
            ex.status = "FAILED"
            self.logger.log(
                "reject",
                job_id=ex.job.job_id,
                machine_id=machine.machine_id,
                now=self.clock,
                reason="exceeds_machine_pes",
            )
            return
        machine.waiting.append(ex)
        self.logger.log("dispatch", job_id=ex.job.job_id, machine_id=machine.machine_id, now=self.clock)

    def _step(self, now: float) -> None:
        self.clock = now
        for machine in self.machines:
            self._release_finished(machine, now)
            self._start_waiting(machine, now)
            busy = sum(ex.job.pes * ex.job.utilization_cpu(now) for ex in machine.running)
            self._cpu_stats[machine.machine_id].record(busy / machine.pes if machine.pes else 0.0)
        for listener in self._listeners:
            listener(now)

    def _release_finished(self, machine: Machine, now: float) -> None:
        still_running: List[JobExecution] = []
        for ex in machine.running:
            if ex.finish_time <= now + _EPS:
                ex.status = "SUCCESS"
                self.logger.log("finish", job_id=ex.job.job_id, machine_id=machine.machine_id, now=now)
            else:
                still_running.append(ex)
        machine.running = still_running

    def _start_waiting(self, machine: Machine, now: float) -> None:
        while machine.waiting and machine.waiting[0].job.pes <= machine.free_pes:
            ex = machine.waiting.pop(0)
            job = ex.job
            rate = machine.mips * job.pes * max(job.utilization_cpu(now), 0.01)
            ex.status = "INEXEC"
            ex.start_time = now
            ex.finish_time = now + job.length / rate
            machine.running.append(ex)
            self.logger.log(
                "start",
                job_id=job.job_id,
                machine_id=machine.machine_id,
                now=now,
                wait_time=now - ex.submission_time,
            )
