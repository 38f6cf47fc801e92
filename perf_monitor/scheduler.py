"""
Sampling Scheduler - runs sampling cycles once or on a fixed interval
"""

import logging
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .alerts.alert_manager import AlertManager
from .alerts.evaluator import EvaluationResult
from .errors import NotifyError, SampleError, SampleTimeout
from .models import Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one sampling cycle"""
    snapshot: Snapshot
    evaluation: EvaluationResult
    notifications_sent: int = 0
    notification_errors: Tuple[NotifyError, ...] = field(default_factory=tuple)

    @property
    def alert_triggered(self) -> bool:
        return self.evaluation.overloaded

    @property
    def sampler_errors(self) -> Tuple[str, ...]:
        return tuple(e for e in (self.snapshot.host_error, self.snapshot.container_error) if e)


class MonitorEngine:
    """
    Sampling and alerting engine.

    Owns the alert state (through its AlertManager) and the most recent
    snapshot. Only one cycle runs at a time.
    """

    def __init__(self, thresholds, host_sampler, container_sampler,
                 alert_manager: AlertManager, notifier,
                 clock: Callable[[], datetime] = datetime.now,
                 monotonic: Callable[[], float] = time.monotonic):
        """
        Initialize engine

        Args:
            thresholds: ThresholdConfig
            host_sampler: Object with sample(timeout) -> HostUsage
            container_sampler: Object with sample(timeout) -> ContainerReport
            alert_manager: AlertManager holding the alert state table
            notifier: Object with notify(message) -> bool
            clock: Wall clock for snapshot timestamps
            monotonic: Monotonic clock for interval scheduling
        """
        self.thresholds = thresholds
        self.host_sampler = host_sampler
        self.container_sampler = container_sampler
        self.alert_manager = alert_manager
        self.notifier = notifier
        self._clock = clock
        self._monotonic = monotonic
        self._cycle_lock = threading.Lock()
        self._latest: Optional[Snapshot] = None
        self._in_flight: Dict[str, Future] = {}
        self.cycles_completed = 0

    @property
    def latest_snapshot(self) -> Optional[Snapshot]:
        """Most recent complete snapshot, None before the first cycle"""
        return self._latest

    def _start(self, name: str, sampler, timeout: float) -> Optional[Future]:
        """
        Run sampler.sample(timeout) on a daemon thread

        Returns None while the call started by an earlier cycle is still
        running; the sampler is never entered twice at once.
        """
        previous = self._in_flight.get(name)
        if previous is not None and not previous.done():
            return None

        future: Future = Future()
        future.set_running_or_notify_cancel()

        def run():
            try:
                future.set_result(sampler.sample(timeout))
            except Exception as e:
                future.set_exception(e)

        # Daemon so a hung sampler cannot hold the process open at exit
        threading.Thread(target=run, name=f'sampler-{name}', daemon=True).start()
        self._in_flight[name] = future
        return future

    def _resolve(self, name: str, future: Optional[Future], timeout: float):
        if future is None:
            error = SampleTimeout(name, "previous sample still running")
            logger.warning("Sampler %s", error)
            return None, str(error)

        if not future.done():
            error = SampleTimeout(name, f"no result within {timeout:g}s")
            logger.warning("Sampler %s", error)
            return None, str(error)

        exc = future.exception()
        if exc is None:
            return future.result(), None
        if isinstance(exc, SampleError):
            logger.warning("Sampler %s", exc)
            return None, str(exc)

        logger.error("Sampler %s failed unexpectedly: %s", name, exc, exc_info=exc)
        return None, str(SampleError(name, f"unexpected error: {exc}"))

    def collect_snapshot(self) -> Snapshot:
        """
        Run both samplers in parallel and assemble a snapshot

        A sampler that fails or exceeds the timeout leaves its portion of
        the snapshot unknown (None); the other portion is still filled.
        A sampler that timed out is not called again until its earlier
        call has returned.

        Returns:
            Snapshot
        """
        timestamp = self._clock()
        timeout = self.thresholds.sampler_timeout

        host_future = self._start('host', self.host_sampler, timeout)
        container_future = self._start('docker', self.container_sampler, timeout)
        wait([f for f in (host_future, container_future) if f is not None], timeout=timeout)

        host, host_error = self._resolve('host', host_future, timeout)
        report, container_error = self._resolve('docker', container_future, timeout)

        return Snapshot(
            timestamp=timestamp,
            host_cpu_percent=host.cpu_percent if host else None,
            host_memory_percent=host.memory_percent if host else None,
            host_disk_percent=host.disk_percent if host else None,
            load_average=host.load_average if host else None,
            containers=report.containers if report else None,
            total_containers=report.total_containers if report else None,
            unavailable_containers=report.unavailable if report else (),
            host_error=host_error,
            container_error=container_error,
        )

    def run_cycle(self) -> CycleResult:
        """
        Sample, evaluate, update alert state and send notifications

        Notification failures are logged and reported in the result; they
        never propagate out of the cycle.

        Returns:
            CycleResult
        """
        with self._cycle_lock:
            snapshot = self.collect_snapshot()
            self._latest = snapshot

            evaluation, messages = self.alert_manager.process(snapshot)

            sent = 0
            errors: List[NotifyError] = []
            for message in messages:
                try:
                    if self.notifier.notify(message):
                        sent += 1
                except NotifyError as e:
                    logger.error("Failed to send alert %s: %s", message.alert_key, e)
                    errors.append(e)

            self.cycles_completed += 1
            logger.info(
                "Monitoring check completed. Server CPU: %s, containers: %s, overloaded: %d, notified: %d",
                'unknown' if snapshot.host_cpu_percent is None else f"{snapshot.host_cpu_percent:.1f}%",
                'unknown' if snapshot.containers is None else len(snapshot.containers),
                len(evaluation.reasons), sent,
            )
            return CycleResult(
                snapshot=snapshot,
                evaluation=evaluation,
                notifications_sent=sent,
                notification_errors=tuple(errors),
            )

    def run_forever(self, stop_event: threading.Event):
        """
        Run cycles until stop_event is set

        The next cycle starts `check_interval` seconds after the previous one
        started, or immediately if the previous cycle overran. Setting the
        event interrupts the wait at once; a running cycle is not interrupted.

        Args:
            stop_event: Cancellation token
        """
        interval = self.thresholds.check_interval
        logger.info("Starting continuous monitoring with %gs interval", interval)

        while not stop_event.is_set():
            started = self._monotonic()
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Error during monitoring check")

            elapsed = self._monotonic() - started
            remaining = max(0.0, interval - elapsed)
            if remaining == 0.0:
                logger.warning("Cycle took %.1fs, longer than the %gs interval", elapsed, interval)
            if stop_event.wait(remaining):
                break

        logger.info("Continuous monitoring stopped after %d cycle(s)", self.cycles_completed)
