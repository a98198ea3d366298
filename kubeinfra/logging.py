"""Logging configuration for the kubeinfra package."""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

from .config import Config

NOISY_LOGGERS = ("paramiko", "urllib3")


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: Config.LOG_LEVEL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if level is None:
        level = getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)

    return logger


def setup_logging(debug_mode: bool = False, log_file: Optional[str] = None) -> None:
    """Configure root logging for the CLI and API entry points."""
    log_level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    handlers: list = [logging.StreamHandler()]

    log_file = log_file or Config.LOG_FILE
    if log_file:
        path = Path(log_file).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            filename=path,
            maxBytes=Config.LOG_MAX_SIZE_MB * 1024 * 1024,
            backupCount=Config.LOG_BACKUP_COUNT
        ))

    logging.basicConfig(level=log_level, format=Config.LOG_FORMAT, handlers=handlers, force=True)

    # Disable debug logging for noisy libraries
    if not debug_mode:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key.lower() in str(k).lower()
                for redact_key in Config.REDACT_KEYS
            ) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data
