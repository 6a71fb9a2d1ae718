from __future__ import annotations

from typing import Dict, List, Sequence, Type

from .models import Job, Machine


class ConfigurationError(RuntimeError):
    """Raised when a run is set up in a way no policy can schedule against."""


class SelectionPolicy:
    """Chooses a machine for each job at dispatch time.

    Instances keep per-run bookkeeping. ``reset`` clears it, and the runner
    calls it before every run.
    """

    policy_name = "base"

    def reset(self) -> None:
        pass

    def select_machine_for(self, job: Job, machines: Sequence[Machine]) -> Machine:
        raise NotImplementedError

    def presort_jobs(self, jobs: List[Job]) -> None:
        del jobs

    def _require_machines(self, machines: Sequence[Machine]) -> None:
        if not machines:
            raise ConfigurationError("No machines available for job mapping")


class RoundRobinPolicy(SelectionPolicy):
    """Cycles through the machines in the order given. Keeps arrival order."""

    policy_name = "round_robin"

    def __init__(self) -> None:
        self.next_index = 0

    def reset(self) -> None:
        self.next_index = 0

    def select_machine_for(self, job: Job, machines: Sequence[Machine]) -> Machine:
        del job
        self._require_machines(machines)
        machine = machines[self.next_index % len(machines)]
        self.next_index = (self.next_index + 1) % len(machines)
        return machine


class WeightedResourcePolicy(SelectionPolicy):
    """Sends each job to the machine with the lowest weighted load score.

    score = CPU_WEIGHT * (cpu_load / (mips * pes))
          + RAM_WEIGHT * (avg_ram_per_job * pes)

    cpu_load is the summed CPU demand already sent to the machine and
    avg_ram_per_job the mean RAM fraction of the jobs sent there.
    """

    policy_name = "weighted"

    CPU_WEIGHT = 4.0
    RAM_WEIGHT = 30.0
    MIN_CPU_UTIL = 0.01

    def __init__(self, cpu_weight: float | None = None, ram_weight: float | None = None) -> None:
        if cpu_weight is not None:
            self.CPU_WEIGHT = cpu_weight
        if ram_weight is not None:
            self.RAM_WEIGHT = ram_weight
        self.cpu_load: Dict[int, float] = {}
        self.ram_usage: Dict[int, float] = {}
        self.task_count: Dict[int, int] = {}

    def reset(self) -> None:
        self.cpu_load = {}
        self.ram_usage = {}
        self.task_count = {}

    @classmethod
    def cpu_demand(cls, job: Job) -> float:
        return job.length / max(job.utilization_cpu(), cls.MIN_CPU_UTIL)

    @staticmethod
    def ram_demand(job: Job) -> float:
        return job.utilization_ram()

    def load_score(self, machine: Machine) -> float:
        key = machine.machine_id
        count = self.task_count.get(key, 0)
        cpu_fraction = self.cpu_load.get(key, 0.0) / machine.compute_capacity
        avg_ram_per_task = self.ram_usage.get(key, 0.0) / count if count > 0 else 0.0
        return self.CPU_WEIGHT * cpu_fraction + self.RAM_WEIGHT * (avg_ram_per_task * machine.pes)

    def select_machine_for(self, job: Job, machines: Sequence[Machine]) -> Machine:
        self._require_machines(machines)
        for machine in machines:
            self.cpu_load.setdefault(machine.machine_id, 0.0)
            self.ram_usage.setdefault(machine.machine_id, 0.0)
            self.task_count.setdefault(machine.machine_id, 0)

        selected = machines[0]
        lowest = float("inf")
        for machine in machines:
            score = self.load_score(machine)
            # strict: the earliest machine keeps a tie
            if score < lowest:
                lowest = score
                selected = machine

        key = selected.machine_id
        self.cpu_load[key] += self.cpu_demand(job)
        self.ram_usage[key] += self.ram_demand(job)
        self.task_count[key] += 1
        return selected


class SortedBestFitPolicy(WeightedResourcePolicy):
    """Weighted dispatch over a job stream pre-sorted lightest first."""

    policy_name = "sorted_best_fit"

    CPU_WEIGHT = 6.0
    RAM_WEIGHT = 3 * 16000.0

    def combined_demand(self, job: Job) -> float:
        return self.CPU_WEIGHT * self.cpu_demand(job) + self.RAM_WEIGHT * self.ram_demand(job)

    def presort_jobs(self, jobs: List[Job]) -> None:
        jobs.sort(key=self.combined_demand)


POLICIES: Dict[str, Type[SelectionPolicy]] = {
    cls.policy_name: cls
    for cls in (RoundRobinPolicy, WeightedResourcePolicy, SortedBestFitPolicy)
}


def make_policy(name: str, **kwargs: float) -> SelectionPolicy:
    try:
        cls = POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown policy '{name}', expected one of {sorted(POLICIES)}"
        ) from None
    return cls(**kwargs)
