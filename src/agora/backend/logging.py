"""Logging configuration for Agora backend"""

import logging
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


class ProjectOnlyFilter(logging.Filter):
    """Filter to only allow logs from agora.* modules"""

    def filter(self, record):
        return record.name.startswith('agora.')


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=path,
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(instance_path: Path) -> None:
    """Setup logging configuration for Agora backend

    Creates three log files in the instance logs directory:
    - debug.log: DEBUG+ logs from agora.* modules only
    - info.log: INFO+ logs from all modules
    - error.log: ERROR+ logs from all modules

    INFO+ logs from all modules also go to the console. Files are rotated
    daily at midnight, keeping 30 days of history.

    Args:
        instance_path: Path to the Agora instance directory
    """
    logs_dir = instance_path / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    log_format = '%(asctime)s.%(msecs)03d - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    formatter = logging.Formatter(log_format, datefmt=date_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplicate logs
    root_logger.handlers.clear()

    debug_handler = _rotating_handler(logs_dir / "debug.log", logging.DEBUG, formatter)
    debug_handler.addFilter(ProjectOnlyFilter())
    root_logger.addHandler(debug_handler)

    root_logger.addHandler(_rotating_handler(logs_dir / "info.log", logging.INFO, formatter))
    root_logger.addHandler(_rotating_handler(logs_dir / "error.log", logging.ERROR, formatter))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized for instance: {instance_path}")
