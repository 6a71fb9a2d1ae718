"""
Job-description files: generation, dump and load.

Usage:
    python -m vmsched.workload --out_dir output/tasks
    python -m vmsched.workload --counts 200,1000 --types balanced,ram_heavy --seed 7
"""
from __future__ import annotations

import argparse
import json
import random
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from .models import Job

Range = Tuple[float, float]

# (cpu, ram, bw) utilization ranges per workload type
WORKLOAD_PROFILES: Dict[str, Tuple[Range, Range, Range]] = {
    "cpu_heavy": ((0.70, 1.00), (0.05, 0.20), (0.10, 0.30)),
    "ram_heavy": ((0.20, 0.50), (0.40, 0.70), (0.20, 0.40)),
    "balanced": ((0.40, 0.80), (0.20, 0.50), (0.20, 0.60)),
}

SMALL_LENGTH: Tuple[int, int] = (1_000, 50_000)
MEDIUM_LENGTH: Tuple[int, int] = (50_000, 500_000)
LARGE_LENGTH: Tuple[int, int] = (500_000, 5_000_000)

DEFAULT_COUNTS = (200, 1000, 3000)
DEFAULT_TYPES = ("balanced", "cpu_heavy", "ram_heavy")
DEFAULT_SEED = 2507


class WorkloadGenerator:
    def __init__(self, seed: int = DEFAULT_SEED):
        self.random = random.Random(seed)

    def _uniform(self, bounds: Range) -> float:
        low, high = bounds
        return low + self.random.random() * (high - low)

    def _length(self, low: int, high: int) -> int:
        if high <= low:
            return low
        return low + int(self.random.random() * (high - low))

    def create_jobs(
        self,
        n: int,
        workload_type: str,
        pes: int = 1,
        min_length: int = LARGE_LENGTH[0],
        max_length: int = LARGE_LENGTH[1],
        file_size: int = 300,
        output_size: int = 300,
        first_id: int = 0,
    ) -> List[Job]:
        if workload_type not in WORKLOAD_PROFILES:
            raise ValueError(f"Unknown workload type '{workload_type}'")
        cpu_range, ram_range, bw_range = WORKLOAD_PROFILES[workload_type]

        jobs: List[Job] = []
        for offset in range(n):
            length = self._length(min_length, max_length)
            jobs.append(
                Job(
                    job_id=first_id + offset,
                    length=length,
                    pes=pes,
                    file_size=file_size,
                    output_size=output_size,
                    cpu_util=self._uniform(cpu_range),
                    ram_util=self._uniform(ram_range),
                    bw_util=self._uniform(bw_range),
                    workload_type=workload_type,
                )
            )
        return jobs

    def create_mixed_size_jobs(
        self,
        small: int,
        medium: int,
        large: int,
        workload_type: str,
        pes: int = 1,
        file_size: int = 300,
        output_size: int = 300,
    ) -> List[Job]:
        jobs: List[Job] = []
        for count, (low, high) in ((small, SMALL_LENGTH), (medium, MEDIUM_LENGTH), (large, LARGE_LENGTH)):
            jobs.extend(
                self.create_jobs(
                    count, workload_type, pes, low, high, file_size, output_size, first_id=len(jobs)
                )
            )
        return jobs


def _job_to_record(job: Job) -> Dict[str, object]:
    return {
        "id": job.job_id,
        "workloadType": job.workload_type,
        "length": job.length,
        "pes": job.pes,
        "fileSize": job.file_size,
        "outputSize": job.output_size,
        "cpuUtil": job.cpu_util,
        "ramUtil": job.ram_util,
        "bwUtil": job.bw_util,
    }


def _record_to_job(record: Dict[str, object]) -> Job:
    job = Job(
        job_id=int(record["id"]),  # type: ignore[arg-type]
        workload_type=str(record.get("workloadType", "balanced")),
        length=int(record["length"]),  # type: ignore[arg-type]
        pes=int(record.get("pes", 1)),  # type: ignore[arg-type]
        file_size=int(record.get("fileSize", 0)),  # type: ignore[arg-type]
        output_size=int(record.get("outputSize", 0)),  # type: ignore[arg-type]
        cpu_util=float(record["cpuUtil"]),  # type: ignore[arg-type]
        ram_util=float(record["ramUtil"]),  # type: ignore[arg-type]
        bw_util=float(record.get("bwUtil", 0.0)),  # type: ignore[arg-type]
    )
    if job.length < 0:
        raise ValueError(f"job {job.job_id}: length={job.length} must be >= 0")
    if job.pes < 1:
        raise ValueError(f"job {job.job_id}: pes={job.pes} must be >= 1")
    for name in ("cpu_util", "ram_util", "bw_util"):
        value = getattr(job, name)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"job {job.job_id}: {name}={value} outside [0, 1]")
    return job


def dump_jobs(jobs: Sequence[Job], path: str | Path) -> None:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as fp:
        json.dump([_job_to_record(j) for j in jobs], fp, indent=2)


def load_jobs(path: str | Path) -> List[Job]:
    with open(path, encoding="utf-8") as fp:
        records = json.load(fp)
    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a JSON array of job records")
    return [_record_to_job(r) for r in records]


def generate_task_files(
    out_dir: str | Path,
    counts: Sequence[int] = DEFAULT_COUNTS,
    workload_types: Sequence[str] = DEFAULT_TYPES,
    seed: int = DEFAULT_SEED,
) -> List[Path]:
    """Write one ``tasks_<n>_<type>.json`` per (count, type); return the paths."""
    generator = WorkloadGenerator(seed)
    written: List[Path] = []
    for n in counts:
        for workload_type in workload_types:
            path = Path(out_dir) / f"tasks_{n}_{workload_type}.json"
            dump_jobs(generator.create_jobs(n, workload_type), path)
            written.append(path)
    return written


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate job-description files")
    parser.add_argument("--out_dir", type=str, default="output/tasks")
    parser.add_argument("--counts", type=str, default=",".join(str(c) for c in DEFAULT_COUNTS))
    parser.add_argument("--types", type=str, default=",".join(DEFAULT_TYPES))
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    args = parser.parse_args()

    counts = [int(c.strip()) for c in args.counts.split(",") if c.strip()]
    types = [t.strip() for t in args.types.split(",") if t.strip()]

    written = generate_task_files(args.out_dir, counts=counts, workload_types=types, seed=args.seed)
    for path in written:
        print(f"[workload] generated: {path}")
    print(f"\n[workload] done, {len(written)} task files in {args.out_dir}")


if __name__ == "__main__":
    main()
