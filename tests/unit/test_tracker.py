import pytest

from vmsched.tracker import UtilizationTracker
from tests.util import make_job, make_machines, running


def test_samples_are_throttled():
    machines = make_machines(3)
    tracker = UtilizationTracker(sample_interval=0.2)

    tracker.record_snapshot(machines, 0.0)
    tracker.record_snapshot(machines, 0.1)
    assert [tracker.sample_count(m) for m in machines] == [1, 1, 1]

    tracker.record_snapshot(machines, 0.3)
    assert [tracker.sample_count(m) for m in machines] == [2, 2, 2]


def test_skipped_offer_does_not_move_the_window():
    machine = make_machines(1)[0]
    tracker = UtilizationTracker(sample_interval=0.2)

    for now in (0.0, 0.15, 0.19, 0.2):
        tracker.record_snapshot([machine], now)

    assert tracker.sample_count(machine) == 2
    assert tracker.last_sample_time == 0.2


def test_average_and_peak():
    machine = make_machines(1, ram=1000.0)[0]
    tracker = UtilizationTracker()

    for now, ram_util in ((0.0, 0.2), (0.5, 0.6), (1.0, 0.4)):
        machine.running = running(make_job(ram_util=ram_util))
        tracker.record_snapshot([machine], now)

    assert tracker.sample_count(machine) == 3
    assert tracker.average_utilization(machine) == pytest.approx(0.4)
    assert tracker.peak_utilization(machine) == pytest.approx(0.6)


def test_demand_sums_over_running_jobs():
    machine = make_machines(1)[0]
    machine.running = running(make_job(0, ram_util=0.25), make_job(1, ram_util=0.35))
    tracker = UtilizationTracker()

    tracker.record_snapshot([machine], 0.0)

    assert tracker.peak_utilization(machine) == pytest.approx(0.6)


def test_idle_machine_records_zero():
    machine = make_machines(1)[0]
    tracker = UtilizationTracker()

    tracker.record_snapshot([machine], 0.0)

    assert tracker.sample_count(machine) == 1
    assert tracker.average_utilization(machine) == 0.0


def test_zero_capacity_machine_records_zero():
    machine = make_machines(1, ram=0.0)[0]
    machine.running = running(make_job(ram_util=0.5))
    tracker = UtilizationTracker()

    tracker.record_snapshot([machine], 0.0)

    assert tracker.peak_utilization(machine) == 0.0


def test_unsampled_machine_reports_zeros():
    tracker = UtilizationTracker()
    machine = make_machines(1)[0]
    assert tracker.average_utilization(machine) == 0.0
    assert tracker.peak_utilization(machine) == 0.0
    assert tracker.sample_count(machine) == 0
