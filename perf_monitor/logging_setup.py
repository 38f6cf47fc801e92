"""
Logging setup from the `logging` configuration section
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(config) -> logging.Logger:
    """
    Configure the root logger: rotating log file plus stderr

    Args:
        config: ConfigLoader with a validated `logging` section

    Returns:
        The configured root logger
    """
    level = getattr(logging, str(config.get('logging.level', 'INFO')).upper(), logging.INFO)
    file_path = config.get('logging.file', '')
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers to avoid duplicates
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if file_path:
        directory = os.path.dirname(os.path.abspath(file_path))
        os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=int(config.get('logging.max_size_mb', 10)) * 1024 * 1024,
            backupCount=int(config.get('logging.backup_count', 5)),
            encoding='utf-8',
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    logging.getLogger(__name__).debug("Logging initialized (level=%s, file=%s)",
                                      logging.getLevelName(level), file_path or '-')
    return root
