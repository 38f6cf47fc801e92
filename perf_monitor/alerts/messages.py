"""
Alert messages - rendering of notification subject and bodies
"""

import html
import socket
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from ..models import Snapshot

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
CONTEXT_CONTAINERS = 5


class AlertType(Enum):
    """Types of alerts"""
    HOST_CPU = "host_cpu"
    CONTAINER_CPU = "container_cpu"


@dataclass(frozen=True)
class Alert:
    """Represents a single fired alert"""
    key: str
    alert_type: AlertType
    value: float
    threshold: float
    timestamp: datetime
    container_name: Optional[str] = None
    memory_percent: Optional[float] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            'key': self.key,
            'alert_type': self.alert_type.value,
            'value': self.value,
            'threshold': self.threshold,
            'timestamp': self.timestamp.isoformat(),
            'container_name': self.container_name,
            'memory_percent': self.memory_percent,
        }


@dataclass(frozen=True)
class NotificationMessage:
    """Rendered payload handed to the notifier"""
    subject: str
    body: str
    alert_key: Optional[str]
    snapshot: Optional[Snapshot]
    html_body: Optional[str] = None


def _hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return 'unknown-host'


def _percent(value: Optional[float]) -> str:
    return 'unknown' if value is None else f"{value:.1f}%"


def _create_plain_text(alert: Alert, snapshot: Optional[Snapshot], hostname: str) -> str:
    """
    Create plain text body

    Args:
        alert: Fired alert
        snapshot: Snapshot the alert was raised from
        hostname: Name of the monitored host

    Returns:
        Plain text string
    """
    lines = [
        "Performance Monitor - High CPU Usage Alert",
        "=" * 42,
        "",
        f"Time: {alert.timestamp.strftime(TIME_FORMAT)}",
        f"Host: {hostname}",
    ]

    if alert.alert_type == AlertType.HOST_CPU:
        lines.append("Trigger: host")
        lines.append(f"Server CPU Usage: {alert.value:.1f}%")
    else:
        lines.append("Trigger: container")
        lines.append(f"Container: {alert.container_name}")
        lines.append(f"Container CPU Usage: {alert.value:.1f}%")
        if alert.memory_percent is not None:
            lines.append(f"Container Memory Usage: {alert.memory_percent:.1f}%")
    lines.append(f"Threshold: {alert.threshold:g}%")

    if snapshot is not None:
        lines.append("")
        lines.append(f"Server Memory Usage: {_percent(snapshot.host_memory_percent)}")
        lines.append(f"Server Disk Usage: {_percent(snapshot.host_disk_percent)}")
        if snapshot.load_average:
            lines.append("Load Average: " + " ".join(f"{v:.2f}" for v in snapshot.load_average))

        if alert.alert_type == AlertType.HOST_CPU:
            top = snapshot.top_containers(CONTEXT_CONTAINERS)
            if top:
                lines.append("")
                lines.append("Top CPU Containers:")
                for i, container in enumerate(top, 1):
                    lines.append(f"  {i}. {container.name}: {container.cpu_percent:.1f}%")
            elif not snapshot.containers_known:
                lines.append("")
                lines.append("Container stats unavailable this cycle.")

    lines.append("")
    lines.append("---")
    lines.append("Performance Monitor Alert System")
    return "\n".join(lines) + "\n"


def _create_html(alert: Alert, snapshot: Optional[Snapshot], hostname: str) -> str:
    """
    Create HTML alternative body

    Args:
        alert: Fired alert
        snapshot: Snapshot the alert was raised from
        hostname: Name of the monitored host

    Returns:
        HTML string
    """
    if alert.alert_type == AlertType.HOST_CPU:
        heading = "Server CPU Usage"
        trigger = "host"
    else:
        heading = f"Container {html.escape(alert.container_name or '')}"
        trigger = "container"

    content = f"""
            <p style="margin: 8px 0; color: #e2e8f0;">
                <strong>Trigger:</strong> {trigger}
            </p>
            <p style="margin: 8px 0; color: #e2e8f0;">
                <strong>{heading}:</strong>
                <span style="color: #ef4444; font-size: 18px; font-weight: bold;">{alert.value:.1f}%</span>
                <span style="color: #64748b;"> (threshold: {alert.threshold:g}%)</span>
            </p>
    """

    if alert.memory_percent is not None:
        content += f"""
            <p style="margin: 8px 0; color: #e2e8f0;">
                <strong>Memory:</strong> {alert.memory_percent:.1f}%
            </p>
        """

    if snapshot is not None and alert.alert_type == AlertType.HOST_CPU:
        top = snapshot.top_containers(CONTEXT_CONTAINERS)
        if top:
            rows = "".join(
                f"<tr><td style='padding: 6px;'>{html.escape(c.name)}</td>"
                f"<td style='padding: 6px; color: #ef4444;'>{c.cpu_percent:.1f}%</td>"
                f"<td style='padding: 6px;'>{_percent(c.memory_percent)}</td></tr>"
                for c in top
            )
            content += f"""
            <h3 style="color: #e2e8f0; font-size: 16px;">Top CPU Containers</h3>
            <table style="border-collapse: collapse; width: 100%; color: #e2e8f0;">
                <tr style="background: #334155;">
                    <th style="padding: 6px; text-align: left;">Container</th>
                    <th style="padding: 6px; text-align: left;">CPU</th>
                    <th style="padding: 6px; text-align: left;">Memory</th>
                </tr>
                {rows}
            </table>
            """

    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Performance Monitor Alert</title>
</head>
<body style="margin: 0; padding: 0; font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
             background: #0f172a; color: #e2e8f0;">
    <div style="max-width: 800px; margin: 0 auto; padding: 40px 20px;">
        <div style="background: rgba(239, 68, 68, 0.15); border: 2px solid #ef4444;
                    border-radius: 12px; padding: 20px; margin-bottom: 30px; text-align: center;">
            <h2 style="margin: 0; color: #ef4444; font-size: 24px;">
                🚨 HIGH CPU USAGE ALERT
            </h2>
            <p style="margin: 10px 0 0 0; color: #94a3b8; font-size: 14px;">
                {html.escape(hostname)} - {alert.timestamp.strftime(TIME_FORMAT)}
            </p>
        </div>
        <div style="background: #1e293b; border: 1px solid #334155; border-radius: 8px;
                    padding: 20px; border-left: 4px solid #ef4444;">
            {content}
        </div>
        <p style="color: #64748b; font-size: 14px; text-align: center; margin-top: 30px;">
            Performance Monitor Alert System
        </p>
    </div>
</body>
</html>
    """


def render_alert_message(alert: Alert, snapshot: Optional[Snapshot] = None,
                         hostname: Optional[str] = None) -> NotificationMessage:
    """
    Render the notification for a fired alert

    Args:
        alert: Fired alert
        snapshot: Snapshot the alert was raised from (context)
        hostname: Override of the reported host name

    Returns:
        NotificationMessage
    """
    hostname = hostname or _hostname()
    when = alert.timestamp.strftime(TIME_FORMAT)

    if alert.alert_type == AlertType.HOST_CPU:
        subject = f"🚨 HIGH CPU USAGE ALERT [{hostname}] {alert.value:.1f}% - {when}"
    else:
        subject = (f"🐳 HIGH CONTAINER CPU ALERT [{hostname}] "
                   f"{alert.container_name} {alert.value:.1f}% - {when}")

    return NotificationMessage(
        subject=subject,
        body=_create_plain_text(alert, snapshot, hostname),
        alert_key=alert.key,
        snapshot=snapshot,
        html_body=_create_html(alert, snapshot, hostname),
    )


def build_test_message(now: Optional[datetime] = None, hostname: Optional[str] = None) -> NotificationMessage:
    """Synthetic message for the operator-triggered email test"""
    now = now or datetime.now()
    hostname = hostname or _hostname()
    when = now.strftime(TIME_FORMAT)

    body = (
        "Performance Monitor - Test Email\n"
        "================================\n\n"
        f"Time: {when}\n"
        f"Host: {hostname}\n\n"
        "If you receive this email, your email configuration is working correctly.\n"
        "The system is ready to send alerts when CPU usage exceeds the threshold.\n"
    )
    html_body = f"""
<html>
<body>
    <h2>🧪 Test Email</h2>
    <p>This is a test email from your Docker &amp; Server Performance Monitoring System.</p>
    <p><strong>Time:</strong> {when}</p>
    <p><strong>Host:</strong> {html.escape(hostname)}</p>
    <p>If you receive this email, your email configuration is working correctly.</p>
</body>
</html>
    """

    return NotificationMessage(
        subject="🧪 Test Email - Docker & Server Performance Monitoring",
        body=body,
        alert_key=None,
        snapshot=None,
        html_body=html_body,
    )
