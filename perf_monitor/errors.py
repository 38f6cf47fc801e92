"""
Error taxonomy shared by samplers, notifier and configuration
"""

from typing import Optional


class SampleError(Exception):
    """A sampler could not produce its part of the snapshot"""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class SampleTimeout(SampleError):
    """Sampler did not finish within the caller-supplied timeout"""


class RuntimeUnavailable(SampleError):
    """Container runtime unreachable (socket missing, connection refused)"""


class OSReadFailure(SampleError):
    """Reading host metrics from the operating system failed"""


class NotifyError(Exception):
    """Notification could not be delivered"""


class DeliveryFailed(NotifyError):
    """Transient failures exhausted every retry attempt"""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class Rejected(NotifyError):
    """Permanent failure (bad credentials, refused recipient), not retried"""


class ConfigError(ValueError):
    """Configuration cannot be used to start the daemon"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConfigInvalid(ConfigError):
    pass


class ConfigMissing(ConfigError):
    pass
