"""
Configuration loader and validator for Performance Monitor
"""

import copy
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigInvalid, ConfigMissing


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

DEFAULTS = {
    'monitoring': {
        'disk_path': '/',
        'cpu_sample_window': 1.0,
        'status_top_n': 5,
    },
    'email': {
        'use_tls': True,
        'timeout': 30,
        'retry_attempts': 3,
        'retry_backoff_seconds': 1,
    },
    'logging': {
        'level': 'INFO',
        'file': 'monitoring.log',
        'max_size_mb': 10,
        'backup_count': 5,
    },
    'http': {
        'enabled': False,
        'host': '127.0.0.1',
        'port': 5001,
    },
}


@dataclass(frozen=True)
class ThresholdConfig:
    """Parameters of the sampling/evaluation engine"""
    cpu_threshold: float
    check_interval: float
    sampler_timeout: float
    disk_path: str = '/'
    cpu_sample_window: float = 1.0
    status_top_n: int = 5


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ConfigLoader:
    """Loads and validates monitor configuration from a JSON/YAML file"""

    def __init__(self, config_path: str = 'config.json'):
        """
        Initialize config loader

        Args:
            config_path: Path to the configuration file (JSON or YAML)
        """
        self.config_path = config_path
        self.config = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigLoader':
        """
        Build a validated loader from an in-memory mapping

        Args:
            data: Configuration mapping with the same layout as the file

        Returns:
            ConfigLoader instance

        Raises:
            ConfigError: If configuration validation fails
        """
        loader = cls(config_path='<memory>')
        loader.config = loader._apply_defaults(loader._expand_env_vars(copy.deepcopy(data)))
        loader._validate()
        return loader

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file

        Returns:
            Dict containing configuration

        Raises:
            ConfigMissing: If the file or a required field is absent
            ConfigInvalid: If the file cannot be parsed or a value is invalid
        """
        if not os.path.exists(self.config_path):
            raise ConfigMissing(
                f"Configuration file not found: {self.config_path}\n"
                f"Please copy config/config.json.template to {self.config_path} "
                f"and configure it with your settings."
            )

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigInvalid(f"Cannot parse {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigInvalid(f"Configuration is empty or not a mapping: {self.config_path}")

        # Expand environment variables
        self.config = self._apply_defaults(self._expand_env_vars(data))

        self._validate()

        return self.config

    def _expand_env_vars(self, config: Any) -> Any:
        """
        Recursively expand environment variables in config
        Supports ${VAR_NAME} syntax

        Args:
            config: Configuration dict or value

        Returns:
            Config with expanded environment variables
        """
        if isinstance(config, dict):
            return {key: self._expand_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._expand_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = r'\$\{([^}]+)\}'

            def replace_env(match):
                var_name = match.group(1)
                return os.environ.get(var_name, match.group(0))

            return re.sub(pattern, replace_env, config)
        else:
            return config

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for section, defaults in DEFAULTS.items():
            values = config.get(section)
            if values is None:
                # monitoring and email stay absent so validation reports them
                if section in ('logging', 'http'):
                    config[section] = dict(defaults)
                continue
            if isinstance(values, dict):
                for key, value in defaults.items():
                    values.setdefault(key, value)
        return config

    def _require(self, key_path: str) -> Any:
        value = self.get(key_path)
        if value is None:
            raise ConfigMissing(f"Missing required field: {key_path}", field=key_path)
        return value

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.config.get(name)
        if section is None:
            raise ConfigMissing(f"Missing required configuration section: {name}", field=name)
        if not isinstance(section, dict):
            raise ConfigInvalid(f"Configuration section '{name}' must be a mapping", field=name)
        return section

    def _validate(self):
        """
        Validate configuration structure and values

        Raises:
            ConfigMissing: If a required section or field is absent
            ConfigInvalid: If a value is out of range or of the wrong type
        """
        if not self.config:
            raise ConfigMissing("Configuration is empty")

        self._validate_monitoring()
        self._validate_email()
        self._validate_logging()
        self._validate_http()

    def _validate_monitoring(self):
        self._section('monitoring')

        threshold = self._require('monitoring.cpu_threshold')
        if not _is_number(threshold) or threshold <= 0:
            raise ConfigInvalid("monitoring.cpu_threshold must be a positive number",
                                field='monitoring.cpu_threshold')

        for key in ('check_interval', 'docker_stats_timeout'):
            value = self._require(f'monitoring.{key}')
            if not _is_int(value) or value < 1:
                raise ConfigInvalid(f"monitoring.{key} must be a positive integer (seconds)",
                                    field=f'monitoring.{key}')

        window = self.get('monitoring.cpu_sample_window')
        if not _is_number(window) or window <= 0:
            raise ConfigInvalid("monitoring.cpu_sample_window must be a positive number",
                                field='monitoring.cpu_sample_window')

        top_n = self.get('monitoring.status_top_n')
        if not _is_int(top_n) or top_n < 1:
            raise ConfigInvalid("monitoring.status_top_n must be a positive integer",
                                field='monitoring.status_top_n')

        disk_path = self.get('monitoring.disk_path')
        if not isinstance(disk_path, str) or not disk_path:
            raise ConfigInvalid("monitoring.disk_path must be a non-empty path",
                                field='monitoring.disk_path')

    def _validate_email(self):
        self._section('email')

        enabled = self._require('email.enabled')
        if not isinstance(enabled, bool):
            raise ConfigInvalid("email.enabled must be true or false", field='email.enabled')
        if not enabled:
            return

        for key in ('smtp_server', 'sender_email', 'sender_password'):
            value = self._require(f'email.{key}')
            if not isinstance(value, str) or not value.strip():
                raise ConfigInvalid(f"email.{key} must be a non-empty string", field=f'email.{key}')

        port = self._require('email.smtp_port')
        if not _is_int(port) or port < 1 or port > 65535:
            raise ConfigInvalid("email.smtp_port must be between 1 and 65535", field='email.smtp_port')

        sender = self.get('email.sender_email')
        if not re.match(EMAIL_PATTERN, sender):
            raise ConfigInvalid(f"Invalid sender email format: {sender}", field='email.sender_email')

        self._require('email.recipient_email')
        recipients = self.get_recipients()
        if not recipients:
            raise ConfigMissing("At least one recipient email is required", field='email.recipient_email')
        for recipient in recipients:
            if not re.match(EMAIL_PATTERN, recipient):
                raise ConfigInvalid(f"Invalid recipient email format: {recipient}",
                                    field='email.recipient_email')

        if not isinstance(self.get('email.use_tls'), bool):
            raise ConfigInvalid("email.use_tls must be true or false", field='email.use_tls')

        timeout = self.get('email.timeout')
        if not _is_number(timeout) or timeout <= 0:
            raise ConfigInvalid("email.timeout must be a positive number", field='email.timeout')

        attempts = self.get('email.retry_attempts')
        if not _is_int(attempts) or attempts < 3 or attempts > 10:
            raise ConfigInvalid("email.retry_attempts must be between 3 and 10",
                                field='email.retry_attempts')

        backoff = self.get('email.retry_backoff_seconds')
        if not _is_number(backoff) or backoff < 1:
            raise ConfigInvalid("email.retry_backoff_seconds must be at least 1",
                                field='email.retry_backoff_seconds')

    def _validate_logging(self):
        self._section('logging')

        level = self.get('logging.level')
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ConfigInvalid(f"logging.level must be one of {', '.join(LOG_LEVELS)}",
                                field='logging.level')

        if not isinstance(self.get('logging.file'), str):
            raise ConfigInvalid("logging.file must be a path (empty to disable)", field='logging.file')

        max_size = self.get('logging.max_size_mb')
        if not _is_int(max_size) or max_size < 1:
            raise ConfigInvalid("logging.max_size_mb must be a positive integer",
                                field='logging.max_size_mb')

        backups = self.get('logging.backup_count')
        if not _is_int(backups) or backups < 0:
            raise ConfigInvalid("logging.backup_count must be zero or a positive integer",
                                field='logging.backup_count')

    def _validate_http(self):
        self._section('http')

        if not isinstance(self.get('http.enabled'), bool):
            raise ConfigInvalid("http.enabled must be true or false", field='http.enabled')

        host = self.get('http.host')
        if not isinstance(host, str) or not host.strip():
            raise ConfigInvalid("http.host must be a non-empty string", field='http.host')

        port = self.get('http.port')
        if not _is_int(port) or port < 1 or port > 65535:
            raise ConfigInvalid("http.port must be between 1 and 65535", field='http.port')

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key path

        Args:
            key_path: Dot-separated path (e.g., 'email.smtp_server')
            default: Default value if key not found

        Returns:
            Configuration value

        Example:
            config.get('monitoring.cpu_threshold')  # Returns 80
            config.get('email.smtp_server')         # Returns 'smtp.gmail.com'
        """
        if not self.config:
            return default

        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def override(self, key_path: str, value: Any):
        """
        Replace a single value (CLI override) and re-validate

        Args:
            key_path: Dot-separated path of an existing section
            value: New value

        Raises:
            ConfigError: If the overridden configuration is invalid
        """
        *parents, last = key_path.split('.')
        target = self.config
        for key in parents:
            target = target.setdefault(key, {})
        target[last] = value
        self._validate()

    def is_email_enabled(self) -> bool:
        """Check if email notifications are enabled"""
        return bool(self.get('email.enabled', False))

    def get_recipients(self) -> List[str]:
        """Recipient addresses as a list (accepts a list or comma-separated string)"""
        raw = self.get('email.recipient_email', [])
        if isinstance(raw, str):
            raw = raw.split(',')
        if not isinstance(raw, list):
            return []
        return [str(r).strip() for r in raw if str(r).strip()]

    def thresholds(self) -> ThresholdConfig:
        """Engine parameters from the monitoring section"""
        return ThresholdConfig(
            cpu_threshold=float(self.get('monitoring.cpu_threshold')),
            check_interval=float(self.get('monitoring.check_interval')),
            sampler_timeout=float(self.get('monitoring.docker_stats_timeout')),
            disk_path=self.get('monitoring.disk_path'),
            cpu_sample_window=float(self.get('monitoring.cpu_sample_window')),
            status_top_n=int(self.get('monitoring.status_top_n')),
        )

    def describe(self) -> Optional[str]:
        """One-line summary used in startup logs"""
        if not self.config:
            return None
        return (f"threshold={self.get('monitoring.cpu_threshold')}% "
                f"interval={self.get('monitoring.check_interval')}s "
                f"timeout={self.get('monitoring.docker_stats_timeout')}s "
                f"email={'on' if self.is_email_enabled() else 'off'}")
