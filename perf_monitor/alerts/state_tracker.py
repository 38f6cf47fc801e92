"""
State Tracker - ARMED/FIRED state per alert key
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .evaluator import EvaluationResult, KeyEvaluation, is_container_key

logger = logging.getLogger(__name__)


class AlertState(Enum):
    """Alert key states"""
    ARMED = "armed"
    FIRED = "fired"


@dataclass(frozen=True)
class AlertRecord:
    """State of a single alert key"""
    key: str
    state: AlertState = AlertState.ARMED
    last_fired: Optional[datetime] = None
    last_value: Optional[float] = None
    last_evaluated: Optional[datetime] = None


class StateTracker:
    """
    Tracks the alert state of every key seen by the evaluator.

    The record map is replaced as a whole at the end of each cycle, so
    readers holding the previous map always see a consistent cycle.
    """

    def __init__(self):
        self._records: Dict[str, AlertRecord] = {}

    def apply(self, result: EvaluationResult, timestamp: datetime) -> List[KeyEvaluation]:
        """
        Apply one cycle of evaluations

        Args:
            result: Evaluation of the cycle's snapshot
            timestamp: Snapshot timestamp

        Returns:
            Evaluations whose key moved ARMED -> FIRED this cycle
        """
        records = dict(self._records)
        fired = []

        for evaluation in result.evaluations:
            record = records.get(evaluation.key) or AlertRecord(key=evaluation.key)
            record = replace(record, last_value=evaluation.value, last_evaluated=timestamp)

            if evaluation.overloaded:
                if record.state is AlertState.ARMED:
                    record = replace(record, state=AlertState.FIRED, last_fired=timestamp)
                    fired.append(evaluation)
            elif record.state is AlertState.FIRED:
                logger.info("Alert %s re-armed (%.1f%%)", evaluation.key, evaluation.value)
                record = replace(record, state=AlertState.ARMED)

            records[evaluation.key] = record

        # Containers missing from a known container list are gone
        if result.containers_known:
            present = {e.key for e in result.evaluations} | result.unknown_keys
            stale = [key for key in records if is_container_key(key) and key not in present]
            for key in stale:
                logger.debug("Evicting alert state for %s", key)
                del records[key]

        self._records = records
        return fired

    def get_record(self, key: str) -> Optional[AlertRecord]:
        """
        Get alert record

        Args:
            key: Alert key

        Returns:
            AlertRecord or None if the key was never evaluated (or was evicted)
        """
        return self._records.get(key)

    def get_all_records(self) -> Dict[str, AlertRecord]:
        """Copy of all records (safe to read from another thread)"""
        return dict(self._records)

    def reset(self):
        """Re-arm everything by forgetting all keys"""
        self._records = {}
