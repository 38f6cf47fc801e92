"""
Metric source adapters: host (psutil) and containers (Docker stats API)
"""

from .host_monitor import HostSampler
from .docker_monitor import DockerSampler, calculate_cpu_percent

__all__ = [
    'HostSampler',
    'DockerSampler',
    'calculate_cpu_percent',
]
