"""
Tests for the sampling cycle and interval loop.
"""

import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError

from conftest import FakeContainerSampler, FakeHostSampler, FakeNotifier, stats_payload
from perf_monitor.alerts.alert_manager import AlertManager
from perf_monitor.alerts.evaluator import HOST_KEY, container_key
from perf_monitor.config_loader import ThresholdConfig
from perf_monitor.errors import DeliveryFailed, Rejected, RuntimeUnavailable
from perf_monitor.monitors import DockerSampler
from perf_monitor.scheduler import MonitorEngine


class RecordingStopEvent:
    """Stop event that records wait timeouts and stops after a number of waits"""

    def __init__(self, stop_after):
        self.stop_after = stop_after
        self.waits = []

    def is_set(self):
        return len(self.waits) >= self.stop_after

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.is_set()


class SteppingClock:
    """Monotonic clock advancing a fixed step per call"""

    def __init__(self, step):
        self.step = step
        self.now = 0.0

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


def make_engine(thresholds, host=None, containers=None, notifier=None, **kwargs):
    return MonitorEngine(
        thresholds=thresholds,
        host_sampler=host or FakeHostSampler(),
        container_sampler=containers or FakeContainerSampler(),
        alert_manager=AlertManager(thresholds, hostname='node-1'),
        notifier=notifier or FakeNotifier(),
        clock=lambda: datetime(2026, 1, 1, 12, 0, 0),
        **kwargs,
    )


class TestCollectSnapshot:
    """Parallel sampling with per-sampler failure isolation."""

    def test_combines_both_samplers(self, thresholds):
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=42.0),
                             containers=FakeContainerSampler(containers=[('web', 5.0)], total=3))

        snapshot = engine.collect_snapshot()

        assert snapshot.host_cpu_percent == 42.0
        assert snapshot.host_memory_percent == 40.0
        assert [c.name for c in snapshot.containers] == ['web']
        assert snapshot.total_containers == 3
        assert snapshot.host_error is None
        assert snapshot.container_error is None

    def test_runtime_unavailable_keeps_host_data(self, thresholds):
        containers = FakeContainerSampler(error=RuntimeUnavailable('docker', 'Docker daemon unreachable'))
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=42.0), containers=containers)

        snapshot = engine.collect_snapshot()

        assert snapshot.host_cpu_percent == 42.0
        assert snapshot.containers is None
        assert snapshot.total_containers is None
        assert 'unreachable' in snapshot.container_error

    def test_unexpected_sampler_exception_is_isolated(self, thresholds):
        engine = make_engine(thresholds, host=FakeHostSampler(error=ZeroDivisionError('bad')))

        snapshot = engine.collect_snapshot()

        assert snapshot.host_cpu_percent is None
        assert 'unexpected error' in snapshot.host_error
        assert snapshot.containers == ()

    def test_hung_sampler_times_out(self):
        thresholds = ThresholdConfig(cpu_threshold=80.0, check_interval=300, sampler_timeout=0.2)
        release = threading.Event()
        engine = make_engine(thresholds, host=FakeHostSampler(delay=release),
                             containers=FakeContainerSampler(containers=[('web', 5.0)]))

        try:
            snapshot = engine.collect_snapshot()
        finally:
            release.set()

        assert snapshot.host_cpu_percent is None
        assert 'no result within' in snapshot.host_error
        assert [c.name for c in snapshot.containers] == ['web']

    def test_hung_sampler_not_reentered(self):
        thresholds = ThresholdConfig(cpu_threshold=80.0, check_interval=300, sampler_timeout=0.2)
        release = threading.Event()
        host = FakeHostSampler(delay=release)
        engine = make_engine(thresholds, host=host)

        try:
            first = engine.collect_snapshot()
            hung = [t for t in threading.enumerate() if t.name == 'sampler-host']
            second = engine.collect_snapshot()
        finally:
            release.set()

        assert 'no result within' in first.host_error
        assert 'previous sample still running' in second.host_error
        assert second.containers == ()
        assert host.calls == 1
        assert hung and all(t.daemon for t in hung)

        for thread in hung:
            thread.join(2)
        third = engine.collect_snapshot()
        assert third.host_cpu_percent == 10.0
        assert host.calls == 2


class TestRunCycle:
    """Evaluation, alert state and notification within one cycle."""

    def test_normal_cycle(self, thresholds):
        notifier = FakeNotifier()
        engine = make_engine(thresholds, notifier=notifier)

        result = engine.run_cycle()

        assert result.alert_triggered is False
        assert result.notifications_sent == 0
        assert notifier.messages == []
        assert engine.latest_snapshot is result.snapshot
        assert engine.cycles_completed == 1

    def test_sustained_overload_notifies_once(self, thresholds):
        notifier = FakeNotifier()
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=95.0), notifier=notifier)

        results = [engine.run_cycle() for _ in range(3)]

        assert all(r.alert_triggered for r in results)
        assert [r.notifications_sent for r in results] == [1, 0, 0]
        assert [m.alert_key for m in notifier.messages] == [HOST_KEY]

    def test_container_overload_notifies_per_container(self, thresholds):
        notifier = FakeNotifier()
        containers = FakeContainerSampler(containers=[('db', 150.0), ('web', 90.0), ('cache', 1.0)])
        engine = make_engine(thresholds, containers=containers, notifier=notifier)

        result = engine.run_cycle()

        assert result.notifications_sent == 2
        assert [m.alert_key for m in notifier.messages] == [container_key('db'), container_key('web')]

    @pytest.mark.parametrize('error', [
        DeliveryFailed('connection refused', attempts=3),
        Rejected('535 bad credentials'),
    ])
    def test_notification_failure_does_not_abort_cycle(self, thresholds, error):
        notifier = FakeNotifier(error=error)
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=95.0), notifier=notifier)

        result = engine.run_cycle()

        assert result.notifications_sent == 0
        assert result.notification_errors == (error,)
        assert engine.cycles_completed == 1

        # the key fired even though delivery failed
        assert engine.run_cycle().notification_errors == ()
        assert len(notifier.messages) == 1

    def test_disabled_notifier_counts_nothing(self, thresholds):
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=95.0), notifier=FakeNotifier(enabled=False))

        result = engine.run_cycle()

        assert result.alert_triggered is True
        assert result.notifications_sent == 0

    def test_sampler_errors_reported(self, thresholds):
        containers = FakeContainerSampler(error=RuntimeUnavailable('docker', 'Docker daemon unreachable'))
        engine = make_engine(thresholds, containers=containers)

        result = engine.run_cycle()

        assert len(result.sampler_errors) == 1
        assert result.sampler_errors[0].startswith('docker')

    def test_failed_stats_read_does_not_renotify(self, thresholds):
        db = MagicMock()
        db.name = 'db'
        db.short_id = 'db-id'
        db.status = 'running'
        busy = stats_payload(cpu_total=195, precpu_total=100, system=1100, presystem=1000, online_cpus=1)
        db.stats.side_effect = [busy, APIError('boom'), busy]
        client = MagicMock()
        client.containers.list.return_value = [db]
        notifier = FakeNotifier()
        engine = make_engine(thresholds, containers=DockerSampler(client_factory=lambda timeout: client),
                             notifier=notifier)

        results = [engine.run_cycle() for _ in range(3)]

        assert [m.alert_key for m in notifier.messages] == [container_key('db')]
        assert results[1].snapshot.unavailable_containers == ('db',)
        assert results[1].snapshot.running_containers == 1


class TestRunForever:
    """Interval scheduling and cancellation."""

    def test_waits_remaining_interval(self):
        thresholds = ThresholdConfig(cpu_threshold=80.0, check_interval=60, sampler_timeout=2)
        engine = make_engine(thresholds, monotonic=SteppingClock(step=5.0))
        stop = RecordingStopEvent(stop_after=3)

        engine.run_forever(stop)

        assert engine.cycles_completed == 3
        assert stop.waits == [55.0, 55.0, 55.0]

    def test_overrun_starts_next_cycle_immediately(self):
        thresholds = ThresholdConfig(cpu_threshold=80.0, check_interval=60, sampler_timeout=2)
        engine = make_engine(thresholds, monotonic=SteppingClock(step=90.0))
        stop = RecordingStopEvent(stop_after=2)

        engine.run_forever(stop)

        assert stop.waits == [0.0, 0.0]

    def test_cycle_exception_does_not_stop_loop(self, thresholds):
        engine = make_engine(thresholds)
        calls = []

        def broken_cycle():
            calls.append(1)
            raise RuntimeError('boom')

        engine.run_cycle = broken_cycle
        engine.run_forever(RecordingStopEvent(stop_after=2))

        assert len(calls) == 2

    def test_preset_event_runs_no_cycle(self, thresholds):
        engine = make_engine(thresholds)
        stop = threading.Event()
        stop.set()

        engine.run_forever(stop)

        assert engine.cycles_completed == 0

    def test_three_overloaded_cycles_send_one_email(self):
        thresholds = ThresholdConfig(cpu_threshold=80.0, check_interval=1, sampler_timeout=2)
        notifier = FakeNotifier()
        engine = make_engine(thresholds, host=FakeHostSampler(cpu=95.0), notifier=notifier,
                             monotonic=SteppingClock(step=0.0))

        engine.run_forever(RecordingStopEvent(stop_after=3))

        assert engine.cycles_completed == 3
        assert len(notifier.messages) == 1
