"""
Performance Monitor Alert System

Evaluation, suppression and delivery of high CPU alerts:
- Threshold evaluation per alert key (host, each container)
- ARMED/FIRED state so sustained overload sends one email
- SMTP delivery with bounded retry
"""

from .evaluator import evaluate, EvaluationResult, KeyEvaluation, AlertSource, HOST_KEY, container_key
from .state_tracker import StateTracker, AlertRecord, AlertState
from .alert_manager import AlertManager
from .messages import Alert, AlertType, NotificationMessage, render_alert_message, build_test_message
from .email_sender import EmailSender

__all__ = [
    'evaluate',
    'EvaluationResult',
    'KeyEvaluation',
    'AlertSource',
    'HOST_KEY',
    'container_key',
    'StateTracker',
    'AlertRecord',
    'AlertState',
    'AlertManager',
    'Alert',
    'AlertType',
    'NotificationMessage',
    'render_alert_message',
    'build_test_message',
    'EmailSender',
]
