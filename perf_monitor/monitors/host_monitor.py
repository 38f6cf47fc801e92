"""
Host Sampler - CPU, memory and disk usage of the machine running the daemon
"""

import logging
from typing import Optional, Tuple

import psutil

from ..errors import OSReadFailure
from ..models import HostUsage

logger = logging.getLogger(__name__)

SOURCE = 'host'


class HostSampler:
    """Reads host utilization through psutil"""

    def __init__(self, disk_path: str = '/', cpu_window: float = 1.0):
        """
        Initialize host sampler

        Args:
            disk_path: Mount point whose usage is reported
            cpu_window: Seconds over which CPU percent is measured
        """
        self.disk_path = disk_path
        self.cpu_window = cpu_window

    def _window(self, timeout: Optional[float]) -> float:
        # CPU percent needs two reads; keep the window well inside the timeout
        if timeout is None:
            return self.cpu_window
        return max(0.1, min(self.cpu_window, timeout / 2))

    def _load_average(self) -> Optional[Tuple[float, float, float]]:
        try:
            one, five, fifteen = psutil.getloadavg()
        except (AttributeError, OSError) as e:
            logger.debug("Load average unavailable: %s", e)
            return None
        return (round(one, 2), round(five, 2), round(fifteen, 2))

    def sample(self, timeout: Optional[float] = None) -> HostUsage:
        """
        Take one host measurement

        Args:
            timeout: Caller deadline in seconds, bounds the CPU window

        Returns:
            HostUsage

        Raises:
            OSReadFailure: If psutil cannot read a metric
        """
        try:
            cpu_percent = psutil.cpu_percent(interval=self._window(timeout))
            memory_percent = psutil.virtual_memory().percent
            disk_percent = psutil.disk_usage(self.disk_path).percent
        except (OSError, psutil.Error) as e:
            raise OSReadFailure(SOURCE, f"cannot read host metrics: {e}") from e

        usage = HostUsage(
            cpu_percent=float(cpu_percent),
            memory_percent=float(memory_percent),
            disk_percent=float(disk_percent),
            load_average=self._load_average(),
        )
        logger.debug("Host: CPU=%.1f%% MEM=%.1f%% DISK=%.1f%%",
                     usage.cpu_percent, usage.memory_percent, usage.disk_percent)
        return usage
