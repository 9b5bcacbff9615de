# vibe_api/utils/logger.py

import logging
import os
import traceback
from typing import Any

from vibe_api.config import get_settings

_settings = get_settings()

# Ensure the log directory exists, using the path from config
os.makedirs(_settings.LOGS_PATH, exist_ok=True)

access_log_file = os.path.join(_settings.LOGS_PATH, "access.log")
error_log_file = os.path.join(_settings.LOGS_PATH, "error.log")

formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")


def setup_logger(name, log_file, level):
    """A helper function to set up a logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs in parent loggers

    # Avoid adding handlers if they already exist (e.g., during autoreload)
    if not logger.handlers:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


access_logger = setup_logger("access", access_log_file, logging.INFO)
error_logger = setup_logger("error", error_log_file, logging.ERROR)


def log_info(message: str, **context: Any) -> None:
    if context:
        access_logger.info(message, extra={"context": context})
    else:
        access_logger.info(message)


def log_warning(message: str, **context: Any) -> None:
    access_logger.warning(message, extra={"context": context} if context else None)


def log_exception(e: Exception, context: str = "") -> None:
    error_logger.error(f"Exception in {context}: {e}\n{traceback.format_exc()}")


# === Component helpers ===

def log_api(endpoint: str, method: str, message: str, **context: Any) -> None:
    log_info(f"[API:{method}:{endpoint}] {message}", **context)


def log_sandbox(sandbox_id: str, message: str, **context: Any) -> None:
    log_info(f"[SANDBOX:{sandbox_id}] {message}", **context)


def log_performance(operation: str, duration_ms: float, **context: Any) -> None:
    log_info(f"[PERF:{operation}] Completed in {duration_ms:.0f}ms", **context)
