"""
Tests for alert detection and notification messages.
"""

from datetime import datetime

from perf_monitor.alerts.alert_manager import AlertManager
from perf_monitor.alerts.evaluator import HOST_KEY, container_key
from perf_monitor.alerts.messages import Alert, AlertType, build_test_message, render_alert_message
from perf_monitor.models import ContainerUsage, Snapshot


class TestAlertManager:
    """Suppression as seen by the notifier."""

    def test_sustained_overload_sends_one_message(self, make_snapshot, thresholds):
        manager = AlertManager(thresholds, hostname='node-1')

        counts = [len(manager.process(make_snapshot(host_cpu=95.0))[1]) for _ in range(3)]

        assert counts == [1, 0, 0]

    def test_normal_cycle_rearms(self, make_snapshot, thresholds):
        manager = AlertManager(thresholds, hostname='node-1')

        manager.process(make_snapshot(host_cpu=95.0))
        _, messages = manager.process(make_snapshot(host_cpu=80.0))
        assert messages == []

        _, messages = manager.process(make_snapshot(host_cpu=95.0))
        assert [m.alert_key for m in messages] == [HOST_KEY]

    def test_one_message_per_fired_key(self, make_snapshot, thresholds):
        manager = AlertManager(thresholds, hostname='node-1')

        result, messages = manager.process(make_snapshot(host_cpu=90.0, containers=[('db', 85.0), ('web', 5.0)]))

        assert result.overloaded is True
        assert [m.alert_key for m in messages] == [HOST_KEY, container_key('db')]

    def test_runtime_unavailable_emits_no_container_classification(self, make_snapshot, thresholds):
        manager = AlertManager(thresholds, hostname='node-1')
        manager.process(make_snapshot(host_cpu=10.0, containers=[('db', 90.0)]))

        result, messages = manager.process(make_snapshot(host_cpu=10.0, containers_known=False))

        assert messages == []
        assert [e.key for e in result.evaluations] == [HOST_KEY]
        assert manager.state_tracker.get_record(container_key('db')).last_value == 90.0

    def test_message_references_snapshot(self, make_snapshot, thresholds):
        manager = AlertManager(thresholds, hostname='node-1')
        snapshot = make_snapshot(host_cpu=99.0)

        _, messages = manager.process(snapshot)

        assert messages[0].snapshot is snapshot


class TestMessages:
    """Rendered bodies carry what the operator needs."""

    def setup_method(self):
        self.when = datetime(2026, 3, 4, 5, 6, 7)
        self.snapshot = Snapshot(
            timestamp=self.when,
            host_cpu_percent=91.3,
            host_memory_percent=40.0,
            host_disk_percent=55.0,
            containers=(
                ContainerUsage(name='web', cpu_percent=30.0),
                ContainerUsage(name='db', cpu_percent=60.0, memory_percent=12.5),
            ),
            total_containers=3,
            load_average=(1.5, 1.0, 0.5),
        )

    def test_host_alert_body(self):
        alert = Alert(key=HOST_KEY, alert_type=AlertType.HOST_CPU, value=91.3,
                      threshold=80.0, timestamp=self.when)

        message = render_alert_message(alert, self.snapshot, hostname='node-1')

        assert message.alert_key == HOST_KEY
        assert 'node-1' in message.subject
        assert '2026-03-04 05:06:07' in message.body
        assert 'Trigger: host' in message.body
        assert 'Server CPU Usage: 91.3%' in message.body
        assert 'Threshold: 80%' in message.body
        # context ranked by CPU
        assert message.body.index('1. db: 60.0%') < message.body.index('2. web: 30.0%')
        assert '<html>' in message.html_body

    def test_container_alert_body(self):
        alert = Alert(key=container_key('db'), alert_type=AlertType.CONTAINER_CPU, value=160.0,
                      threshold=80.0, timestamp=self.when, container_name='db', memory_percent=12.5)

        message = render_alert_message(alert, self.snapshot, hostname='node-1')

        assert 'db' in message.subject
        assert 'Trigger: container' in message.body
        assert 'Container: db' in message.body
        assert 'Container CPU Usage: 160.0%' in message.body
        assert 'Container Memory Usage: 12.5%' in message.body
        assert '2026-03-04 05:06:07' in message.body

    def test_container_name_escaped_in_html(self):
        alert = Alert(key=container_key('<x>'), alert_type=AlertType.CONTAINER_CPU, value=90.0,
                      threshold=80.0, timestamp=self.when, container_name='<x>')

        message = render_alert_message(alert, None, hostname='node-1')

        assert '&lt;x&gt;' in message.html_body

    def test_test_message(self):
        message = build_test_message(now=self.when, hostname='node-1')

        assert message.alert_key is None
        assert message.snapshot is None
        assert 'Test Email' in message.subject
        assert '2026-03-04 05:06:07' in message.body
