# hauhub_chat/LoggingSetup.py
"""Logging configuration for the console chat client.

Chat output goes to stdout, so diagnostics never share it: records go to a
rotating log file and, optionally, to stderr. Each record carries the
logger name so transport, dispatcher and switcher lines can be told apart
when a reconnect storm or a stuck group switch is investigated.
"""
import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOG_FILE_NAME = "hauhub_chat.log"
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'

_MAX_LOG_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

# Third-party loggers that flood DEBUG output (websockets logs every frame)
_NOISY_LOGGERS = ("websockets", "urllib3")


def setup_logging(logs_dir: Path, verbose: bool = False, console: bool = True) -> Path:
    """
    Route chat client logs to logs_dir and, optionally, stderr.

    Args:
        logs_dir: Directory for hauhub_chat.log and its rotated backups
        verbose: DEBUG for the client's own loggers; WARNING otherwise
        console: Mirror records to stderr

    Returns:
        Path of the active log file
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else logging.WARNING
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            logs_dir / LOG_FILE_NAME,
            maxBytes=_MAX_LOG_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding='utf-8'
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Frame-level chatter stays out even in verbose mode
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    log_file = logs_dir / LOG_FILE_NAME
    logging.getLogger(__name__).info("Chat client logging to %s (level %s)", log_file, logging.getLevelName(level))
    return log_file
