"""
Snapshot data model - immutable values produced by one sampling cycle
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class ContainerUsage:
    """CPU usage of one running container"""
    name: str
    cpu_percent: float  # may exceed 100 on multi-core hosts
    container_id: str = ""
    memory_percent: Optional[float] = None


@dataclass(frozen=True)
class HostUsage:
    """Partial snapshot produced by the host sampler"""
    cpu_percent: float
    memory_percent: float
    disk_percent: float
    load_average: Optional[Tuple[float, float, float]] = None


@dataclass(frozen=True)
class ContainerReport:
    """Partial snapshot produced by the container sampler"""
    containers: Tuple[ContainerUsage, ...]
    total_containers: int
    # running containers whose stats could not be read this cycle
    unavailable: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """
    Consolidated result of one sampling cycle.

    A value of None means the sampler for that portion failed this cycle;
    the matching *_error field says why. `unavailable_containers` names
    running containers whose own stats read failed; their CPU is unknown.
    """
    timestamp: datetime
    host_cpu_percent: Optional[float] = None
    host_memory_percent: Optional[float] = None
    host_disk_percent: Optional[float] = None
    containers: Optional[Tuple[ContainerUsage, ...]] = None
    total_containers: Optional[int] = None
    load_average: Optional[Tuple[float, float, float]] = None
    host_error: Optional[str] = None
    container_error: Optional[str] = None
    unavailable_containers: Tuple[str, ...] = ()

    @property
    def host_known(self) -> bool:
        return self.host_cpu_percent is not None

    @property
    def containers_known(self) -> bool:
        return self.containers is not None

    @property
    def running_containers(self) -> Optional[int]:
        return None if self.containers is None else len(self.containers) + len(self.unavailable_containers)

    def top_containers(self, limit: int) -> Tuple[ContainerUsage, ...]:
        """
        Containers ranked by CPU usage

        Args:
            limit: Maximum number of containers to return

        Returns:
            Containers sorted descending by CPU percent; ties keep
            enumeration order
        """
        if not self.containers:
            return ()
        ranked = sorted(self.containers, key=lambda c: c.cpu_percent, reverse=True)
        return tuple(ranked[:limit])
