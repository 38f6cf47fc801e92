import copy
from datetime import datetime, timedelta

import pytest

from perf_monitor.config_loader import ConfigLoader, ThresholdConfig
from perf_monitor.models import ContainerReport, ContainerUsage, HostUsage, Snapshot


BASE_CONFIG = {
    'monitoring': {
        'cpu_threshold': 80.0,
        'check_interval': 300,
        'docker_stats_timeout': 10,
    },
    'email': {
        'enabled': True,
        'smtp_server': 'smtp.example.com',
        'smtp_port': 587,
        'sender_email': 'monitor@example.com',
        'sender_password': 'secret',
        'recipient_email': 'ops@example.com',
    },
    'logging': {
        'level': 'INFO',
        'file': '',
    },
}


@pytest.fixture
def config_dict():
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def config(config_dict):
    return ConfigLoader.from_dict(config_dict)


@pytest.fixture
def thresholds():
    return ThresholdConfig(cpu_threshold=80.0, check_interval=300, sampler_timeout=2)


class SnapshotFactory:
    """Builds snapshots one minute apart"""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self, host_cpu=10.0, containers=(), containers_known=True,
                 host_known=True, total=None, unavailable=()):
        self.now += timedelta(minutes=1)
        usages = tuple(ContainerUsage(name=name, cpu_percent=cpu) for name, cpu in containers)
        return Snapshot(
            timestamp=self.now,
            host_cpu_percent=host_cpu if host_known else None,
            host_memory_percent=40.0 if host_known else None,
            host_disk_percent=55.0 if host_known else None,
            containers=usages if containers_known else None,
            total_containers=(total if total is not None else len(usages)) if containers_known else None,
            host_error=None if host_known else 'host: cannot read host metrics',
            container_error=None if containers_known else 'docker: Docker daemon unreachable',
            unavailable_containers=tuple(unavailable) if containers_known else (),
        )


@pytest.fixture
def make_snapshot():
    return SnapshotFactory()


def stats_payload(cpu_total, precpu_total, system, presystem, online_cpus=4, mem_usage=50, mem_limit=200):
    """Docker stats body with cumulative CPU counters"""
    return {
        'cpu_stats': {
            'cpu_usage': {'total_usage': cpu_total},
            'system_cpu_usage': system,
            'online_cpus': online_cpus,
        },
        'precpu_stats': {
            'cpu_usage': {'total_usage': precpu_total},
            'system_cpu_usage': presystem,
        },
        'memory_stats': {'usage': mem_usage, 'limit': mem_limit},
    }


class FakeHostSampler:
    def __init__(self, cpu=10.0, error=None, delay=None):
        self.cpu = cpu
        self.error = error
        self.delay = delay
        self.calls = 0

    def sample(self, timeout=None):
        self.calls += 1
        if self.delay is not None:
            self.delay.wait(5)
        if self.error is not None:
            raise self.error
        cpu = self.cpu.pop(0) if isinstance(self.cpu, list) else self.cpu
        return HostUsage(cpu_percent=cpu, memory_percent=40.0, disk_percent=55.0)


class FakeContainerSampler:
    def __init__(self, containers=(), error=None, delay=None, total=None):
        self.containers = containers
        self.error = error
        self.delay = delay
        self.total = total
        self.calls = 0

    def sample(self, timeout=None):
        self.calls += 1
        if self.delay is not None:
            self.delay.wait(5)
        if self.error is not None:
            raise self.error
        containers = (self.containers.pop(0)
                      if self.containers and isinstance(self.containers[0], list)
                      else self.containers)
        usages = tuple(ContainerUsage(name=n, cpu_percent=c) for n, c in containers)
        return ContainerReport(
            containers=usages,
            total_containers=self.total if self.total is not None else len(usages),
        )


class FakeNotifier:
    def __init__(self, error=None, enabled=True):
        self.error = error
        self.enabled = enabled
        self.messages = []

    def notify(self, message):
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.enabled
