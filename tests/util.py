from pathlib import Path
from typing import List, Sequence

from vmsched.config import ClusterConfig, HostConfig, MachineConfig
from vmsched.models import Job, JobExecution, Machine
from vmsched.workload import dump_jobs


def make_job(job_id=0, length=10_000, cpu_util=1.0, ram_util=0.0, pes=1, **kwargs) -> Job:
    return Job(job_id=job_id, length=length, cpu_util=cpu_util, ram_util=ram_util, pes=pes, **kwargs)


def make_machines(count=4, mips=1000.0, pes=2, ram=1000.0) -> List[Machine]:
    return [
        Machine(machine_id=idx, mips=mips, pes=pes, ram=ram, bw=1000.0, size=1000.0)
        for idx in range(count)
    ]


def running(*jobs: Job) -> List[JobExecution]:
    return [JobExecution(job=j, status="INEXEC") for j in jobs]


def uniform_jobs(n: int, length=50_000, cpu_util=1.0, ram_util=0.3) -> List[Job]:
    return [make_job(job_id=i, length=length, cpu_util=cpu_util, ram_util=ram_util) for i in range(n)]


def varied_jobs(n: int) -> List[Job]:
    """Jobs with distinct, deterministic lengths and utilizations."""
    return [
        make_job(
            job_id=i,
            length=20_000 + (i * 7919) % 60_000,
            cpu_util=0.3 + ((i * 37) % 70) / 100.0,
            ram_util=0.05 + ((i * 53) % 60) / 100.0,
        )
        for i in range(n)
    ]


def write_job_file(path: Path, jobs: Sequence[Job]) -> Path:
    dump_jobs(jobs, path)
    return path


def small_cluster(machine_count=4) -> ClusterConfig:
    return ClusterConfig(
        hosts=HostConfig(count=2, pes=8),
        machines=MachineConfig(count=machine_count, pes=2, mips_per_pe=1000, ram_mb=4000, bw_mbps=1000, size_mb=1000),
    )
