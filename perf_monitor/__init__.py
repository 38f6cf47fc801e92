"""
Performance Monitor

Resident daemon that samples host and Docker container CPU usage and
sends an email when the configured threshold is exceeded:
- Host CPU/memory/disk sampling (psutil)
- Per-container CPU sampling (Docker stats API)
- ARMED/FIRED alert state to avoid notification storms
- SMTP delivery with bounded retry
"""

__version__ = '0.1.0'
