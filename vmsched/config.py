from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class HostConfig:
    count: int = 4
    pes: int = 16
    mips_per_pe: float = 10_000
    ram_mb: float = 64_000
    bw_mbps: float = 100_000
    storage_mb: float = 1_000_000


@dataclass(frozen=True)
class MachineConfig:
    count: int = 8
    pes: int = 4
    mips_per_pe: float = 5_000
    ram_mb: float = 16_000
    bw_mbps: float = 20_000
    size_mb: float = 20_000


@dataclass(frozen=True)
class ClusterConfig:
    hosts: HostConfig = field(default_factory=HostConfig)
    machines: MachineConfig = field(default_factory=MachineConfig)
    scheduling_interval: float = 1.0
    ram_sample_interval: float = 0.2


DEFAULT_POLICIES: Tuple[str, ...] = ("round_robin", "weighted", "sorted_best_fit")


@dataclass
class BatchConfig:
    tasks_dir: str = "output/tasks"
    results_dir: str = "output/results"
    index_file: str = "tasks.json"
    workers: int = os.cpu_count() or 1
    policies: Tuple[str, ...] = DEFAULT_POLICIES
    log_dir: str = ""
    out_db: str = ""
