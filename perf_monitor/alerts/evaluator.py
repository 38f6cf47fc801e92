"""
Threshold Evaluator - classifies a snapshot as normal or overloaded
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from ..models import ContainerUsage, Snapshot

HOST_KEY = 'host-overload'
CONTAINER_KEY_PREFIX = 'container-overload:'


class AlertSource(Enum):
    """What a reading was taken from"""
    HOST = "host"
    CONTAINER = "container"


def container_key(name: str) -> str:
    return f"{CONTAINER_KEY_PREFIX}{name}"


def is_container_key(key: str) -> bool:
    return key.startswith(CONTAINER_KEY_PREFIX)


@dataclass(frozen=True)
class KeyEvaluation:
    """Outcome for one alert key in one cycle"""
    key: str
    source: AlertSource
    value: float
    overloaded: bool
    container: Optional[ContainerUsage] = None


@dataclass(frozen=True)
class EvaluationResult:
    """
    All readings evaluated this cycle.

    Keys whose value was unknown are absent from `evaluations`; the
    *_known flags say whether a portion of the snapshot was sampled at all.
    `unknown_keys` holds container keys that exist but had no reading.
    """
    evaluations: Tuple[KeyEvaluation, ...]
    host_known: bool
    containers_known: bool
    unknown_keys: FrozenSet[str] = frozenset()

    @property
    def reasons(self) -> Tuple[KeyEvaluation, ...]:
        return tuple(e for e in self.evaluations if e.overloaded)

    @property
    def overloaded(self) -> bool:
        return any(e.overloaded for e in self.evaluations)


def evaluate(snapshot: Snapshot, config) -> EvaluationResult:
    """
    Compare a snapshot against the CPU threshold

    Overload is strictly greater than the threshold; a value equal to it is
    normal. Unknown readings are skipped.

    Args:
        snapshot: Snapshot of one cycle
        config: ThresholdConfig (uses cpu_threshold)

    Returns:
        EvaluationResult
    """
    threshold = config.cpu_threshold
    evaluations = []

    if snapshot.host_cpu_percent is not None:
        evaluations.append(KeyEvaluation(
            key=HOST_KEY,
            source=AlertSource.HOST,
            value=snapshot.host_cpu_percent,
            overloaded=snapshot.host_cpu_percent > threshold,
        ))

    for container in snapshot.containers or ():
        evaluations.append(KeyEvaluation(
            key=container_key(container.name),
            source=AlertSource.CONTAINER,
            value=container.cpu_percent,
            overloaded=container.cpu_percent > threshold,
            container=container,
        ))

    return EvaluationResult(
        evaluations=tuple(evaluations),
        host_known=snapshot.host_known,
        containers_known=snapshot.containers_known,
        unknown_keys=frozenset(container_key(name) for name in snapshot.unavailable_containers),
    )
