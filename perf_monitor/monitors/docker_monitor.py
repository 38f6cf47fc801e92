"""
Container Sampler - per-container CPU usage from the Docker stats API
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Tuple

import docker
import requests
from docker.errors import APIError, DockerException, NotFound

from ..errors import RuntimeUnavailable, SampleTimeout
from ..models import ContainerReport, ContainerUsage

logger = logging.getLogger(__name__)

SOURCE = 'docker'

STATS_OK = 'ok'
STATS_GONE = 'gone'
STATS_UNAVAILABLE = 'unavailable'


def calculate_cpu_percent(stats: Dict[str, Any]) -> float:
    """
    CPU percent from the cumulative counters of a stats response

    (container CPU time delta / system CPU time delta) * online CPUs * 100,
    using the `precpu_stats` read taken by the daemon one interval earlier.

    Args:
        stats: Decoded body of GET /containers/{id}/stats?stream=false

    Returns:
        CPU percent, 0.0 when a delta is not positive. Not clamped.
    """
    try:
        cpu_stats = stats['cpu_stats']
        precpu_stats = stats.get('precpu_stats') or {}
        cpu_delta = cpu_stats['cpu_usage']['total_usage'] - \
            precpu_stats.get('cpu_usage', {}).get('total_usage', 0)
        system_delta = cpu_stats.get('system_cpu_usage', 0) - \
            precpu_stats.get('system_cpu_usage', 0)
        cpu_count = cpu_stats.get('online_cpus') or \
            len(cpu_stats['cpu_usage'].get('percpu_usage') or []) or 1
    except (KeyError, TypeError) as e:
        logger.debug("Incomplete CPU stats: %s", e)
        return 0.0

    if system_delta > 0 and cpu_delta > 0:
        return (cpu_delta / system_delta) * cpu_count * 100.0
    return 0.0


def calculate_memory_percent(stats: Dict[str, Any]) -> Optional[float]:
    memory_stats = stats.get('memory_stats') or {}
    usage = memory_stats.get('usage')
    limit = memory_stats.get('limit')
    if not usage or not limit:
        return None
    return (usage / limit) * 100.0


class DockerSampler:
    """Samples CPU usage of every running container"""

    def __init__(self, client_factory: Callable[..., Any] = docker.from_env, max_workers: int = 8):
        """
        Initialize container sampler

        Args:
            client_factory: Callable returning a Docker client, called with `timeout`
            max_workers: Parallel stats requests per cycle
        """
        self._client_factory = client_factory
        self._client = None
        self._client_lock = threading.Lock()
        self.max_workers = max_workers

    def _get_client(self, timeout: float):
        with self._client_lock:
            if self._client is None:
                self._client = self._client_factory(timeout=max(1, int(timeout)))
            return self._client

    def _reset_client(self):
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.debug("Error closing Docker client: %s", e)

    def _container_usage(self, container) -> Tuple[str, Optional[ContainerUsage]]:
        """
        Read stats of one container

        Returns:
            (status, usage): status is STATS_OK, STATS_GONE when the container
            was removed after listing, or STATS_UNAVAILABLE when the stats
            call failed for a container that still exists
        """
        try:
            stats = container.stats(stream=False)
        except NotFound:
            logger.debug("Container %s removed before stats were read", container.name)
            return STATS_GONE, None
        except APIError as e:
            logger.warning("Stats unavailable for container %s: %s", container.name, e)
            return STATS_UNAVAILABLE, None

        return STATS_OK, ContainerUsage(
            name=container.name,
            cpu_percent=calculate_cpu_percent(stats),
            container_id=container.short_id,
            memory_percent=calculate_memory_percent(stats),
        )

    def sample(self, timeout: float) -> ContainerReport:
        """
        Query stats for all running containers

        Args:
            timeout: Per-request timeout in seconds for the Docker API

        Returns:
            ContainerReport; empty when nothing is running. Containers whose
            stats call failed are listed in `unavailable`, not dropped.

        Raises:
            SampleTimeout: If the Docker API did not answer in time
            RuntimeUnavailable: If the Docker daemon cannot be reached
        """
        try:
            client = self._get_client(timeout)
            all_containers = client.containers.list(all=True)
            running = [c for c in all_containers if c.status == 'running']

            if running:
                workers = min(self.max_workers, len(running))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='docker-stats') as pool:
                    results = list(pool.map(self._container_usage, running))
            else:
                results = []
        except requests.exceptions.Timeout as e:
            self._reset_client()
            raise SampleTimeout(SOURCE, f"Docker API timed out: {e}") from e
        except (DockerException, requests.exceptions.ConnectionError) as e:
            self._reset_client()
            raise RuntimeUnavailable(SOURCE, f"Docker daemon unreachable: {e}") from e

        containers = tuple(usage for status, usage in results if status == STATS_OK)
        unavailable = tuple(c.name for c, (status, _) in zip(running, results)
                            if status == STATS_UNAVAILABLE)
        for usage in containers:
            logger.debug("  %s: CPU=%.1f%%", usage.name, usage.cpu_percent)

        return ContainerReport(
            containers=containers,
            total_containers=len(all_containers),
            unavailable=unavailable,
        )
