from __future__ import annotations

from typing import Dict, Iterable

from .models import Machine, UtilizationStats


class UtilizationTracker:
    """Samples per-machine memory demand, at most once per ``sample_interval``.

    Sampling is pull-based: it only happens when the engine offers a clock
    tick, so the interval is a lower bound on the spacing of samples.
    """

    def __init__(self, sample_interval: float = 0.2):
        self.sample_interval = sample_interval
        self.last_sample_time = float("-inf")
        self._stats: Dict[int, UtilizationStats] = {}

    def record_snapshot(self, machines: Iterable[Machine], current_time: float) -> None:
        if current_time - self.last_sample_time < self.sample_interval:
            return
        self.last_sample_time = current_time

        for machine in machines:
            stats = self._stats.setdefault(machine.machine_id, UtilizationStats())
            capacity = machine.ram
            demand_mb = sum(ex.job.utilization_ram(current_time) * capacity for ex in machine.running)
            stats.record(demand_mb / capacity if capacity > 0 else 0.0)

    def average_utilization(self, machine: Machine) -> float:
        stats = self._stats.get(machine.machine_id)
        return stats.average if stats else 0.0

    def peak_utilization(self, machine: Machine) -> float:
        stats = self._stats.get(machine.machine_id)
        return stats.peak if stats else 0.0

    def sample_count(self, machine: Machine) -> int:
        stats = self._stats.get(machine.machine_id)
        return stats.count if stats else 0
