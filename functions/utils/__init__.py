"""Utility modules for ClearDesk functions."""

from utils.logging_config import configure_logging
from utils.run_logger import (
    log_run_start,
    log_run_complete,
    log_run_failed,
)

__all__ = [
    "configure_logging",
    "log_run_start",
    "log_run_complete",
    "log_run_failed",
]
