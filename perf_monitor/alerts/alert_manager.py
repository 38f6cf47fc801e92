"""
Alert Manager - Detects alert conditions and produces notifications
"""

import logging
from typing import List, Optional, Tuple

from ..models import Snapshot
from .evaluator import AlertSource, EvaluationResult, KeyEvaluation, evaluate
from .messages import Alert, AlertType, NotificationMessage, render_alert_message
from .state_tracker import StateTracker

logger = logging.getLogger(__name__)


class AlertManager:
    """Runs evaluation and the alert state machine for one snapshot"""

    def __init__(self, thresholds, state_tracker: Optional[StateTracker] = None,
                 hostname: Optional[str] = None):
        """
        Initialize alert manager

        Args:
            thresholds: ThresholdConfig
            state_tracker: Alert state table; a fresh one when omitted
            hostname: Host name reported in messages (defaults to the real one)
        """
        self.thresholds = thresholds
        self.state_tracker = state_tracker if state_tracker is not None else StateTracker()
        self.hostname = hostname

    def _to_alert(self, evaluation: KeyEvaluation, snapshot: Snapshot) -> Alert:
        if evaluation.source == AlertSource.HOST:
            return Alert(
                key=evaluation.key,
                alert_type=AlertType.HOST_CPU,
                value=evaluation.value,
                threshold=self.thresholds.cpu_threshold,
                timestamp=snapshot.timestamp,
            )
        return Alert(
            key=evaluation.key,
            alert_type=AlertType.CONTAINER_CPU,
            value=evaluation.value,
            threshold=self.thresholds.cpu_threshold,
            timestamp=snapshot.timestamp,
            container_name=evaluation.container.name,
            memory_percent=evaluation.container.memory_percent,
        )

    def process(self, snapshot: Snapshot) -> Tuple[EvaluationResult, List[NotificationMessage]]:
        """
        Evaluate a snapshot and advance alert state

        Args:
            snapshot: Snapshot of the current cycle

        Returns:
            Evaluation result and one message per key that fired this cycle
        """
        result = evaluate(snapshot, self.thresholds)

        for reason in result.reasons:
            logger.warning("High CPU usage detected: %s at %.1f%% (threshold: %g%%)",
                           reason.key, reason.value, self.thresholds.cpu_threshold)

        fired = self.state_tracker.apply(result, snapshot.timestamp)

        messages = []
        for evaluation in fired:
            alert = self._to_alert(evaluation, snapshot)
            messages.append(render_alert_message(alert, snapshot, hostname=self.hostname))

        suppressed = len(result.reasons) - len(fired)
        if suppressed:
            logger.info("%d alert(s) already notified, suppressing repeat", suppressed)

        return result, messages
