"""Public observability primitives: logging setup and redaction."""

from pdbconf.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    LogRedactor,
    default_log_redactor,
    get_active_logging_handle,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "default_log_redactor",
    "get_active_logging_handle",
    "setup_logging",
    "shutdown_logging",
]
