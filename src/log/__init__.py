"""Run-scoped logging: leveled, one file per process, per-request context, automatic cleanup."""
from .log_manager import (
    LogManager,
    cleanup_logs,
    get_logger,
    init_logging,
    log_context,
)

__all__ = ["LogManager", "get_logger", "init_logging", "cleanup_logs", "log_context"]
