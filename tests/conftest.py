import pytest

from tests.util import uniform_jobs, varied_jobs, write_job_file


@pytest.fixture
def tasks_dir(tmp_path):
    """Two small job files plus the aggregate index that discovery must skip."""
    directory = tmp_path / "tasks"
    write_job_file(directory / "tasks_16_uniform.json", uniform_jobs(16))
    write_job_file(directory / "tasks_24_varied.json", varied_jobs(24))
    write_job_file(directory / "tasks.json", uniform_jobs(2))
    return directory


@pytest.fixture
def job_file(tasks_dir):
    return tasks_dir / "tasks_24_varied.json"


@pytest.fixture
def results_dir(tmp_path):
    return tmp_path / "results"
