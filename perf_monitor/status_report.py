"""
Status Reporter - human-readable rendering of a snapshot
"""

from typing import Optional

from .models import Snapshot

WIDTH = 60


def _percent(value: Optional[float]) -> str:
    return 'unknown' if value is None else f"{value:.1f}%"


def _count(value: Optional[int]) -> str:
    return 'unknown' if value is None else str(value)


def render_status(snapshot: Snapshot, top_n: int = 5) -> str:
    """
    Render the status report

    Args:
        snapshot: Snapshot to describe
        top_n: Maximum number of containers listed by CPU usage

    Returns:
        Multi-line report framed by '=' rules
    """
    rule = "=" * WIDTH
    lines = [
        rule,
        f"SYSTEM STATUS - {snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
        rule,
        "",
        "🖥️  SERVER:",
        f"   CPU Usage: {_percent(snapshot.host_cpu_percent)}",
        f"   Memory Usage: {_percent(snapshot.host_memory_percent)}",
        f"   Disk Usage: {_percent(snapshot.host_disk_percent)}",
    ]
    if snapshot.host_error:
        lines.append(f"   Error: {snapshot.host_error}")

    lines += [
        "",
        "🐳 DOCKER:",
        f"   Running Containers: {_count(snapshot.running_containers)}",
        f"   Total Containers: {_count(snapshot.total_containers)}",
    ]
    if snapshot.unavailable_containers:
        lines.append(f"   Stats Unavailable: {', '.join(snapshot.unavailable_containers)}")
    if snapshot.container_error:
        lines.append(f"   Error: {snapshot.container_error}")

    top = snapshot.top_containers(top_n)
    if top:
        lines.append("")
        lines.append("   Top CPU Containers:")
        for rank, container in enumerate(top, 1):
            lines.append(f"   {rank}. {container.name}: {container.cpu_percent:.1f}%")

    lines.append("")
    lines.append(rule)
    return "\n".join(lines)
