# core/logger.py
"""
Process-wide logging, configured once from the environment.

stdout is the dashboard itself, so console logging is off by default and
goes to stderr when enabled. The rotating log file under ./data is the
usual place to look. urllib3 logs a line for every backend connection;
it is held at WARNING unless LOG_LEVEL is DEBUG.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_configured = False

NOISY_LOGGERS = ("urllib3",)


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _build_handlers(log_to_console, log_to_file, log_file, log_max_bytes, log_backups):
    handlers = []
    if log_to_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_to_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file,
                    maxBytes=log_max_bytes,
                    backupCount=log_backups,
                    encoding="utf-8",
                )
            )
        except OSError as e:
            logging.getLogger().warning(
                "Failed to initialize file logging at %s: %s", log_file, e
            )
    return handlers


def setup_logging():
    global _configured
    if _configured:
        return

    level = _level(os.getenv("LOG_LEVEL", "INFO"))
    log_to_file = os.getenv("LOG_TO_FILE", "true").lower() == "true"
    log_file = os.getenv("LOG_FILE", "./data/dashboard.log")
    log_max_bytes = int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024)))
    log_backups = int(os.getenv("LOG_BACKUPS", "3"))
    log_to_console = os.getenv("LOG_TO_CONSOLE", "false").lower() == "true"

    root = logging.getLogger()
    root.setLevel(level)
    noisy_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    # Don't stack handlers on top of ones the host already installed
    if not root.handlers:
        for handler in _build_handlers(log_to_console, log_to_file, log_file,
                                       log_max_bytes, log_backups):
            handler.setLevel(level)
            handler.setFormatter(formatter)
            root.addHandler(handler)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
