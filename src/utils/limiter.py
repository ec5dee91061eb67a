"""
Bounded waits for blocking calls: a shared worker pool plus a timeout.

A call that exceeds its timeout is abandoned, not killed: the worker thread
finishes in the background and its result is discarded.
"""

from __future__ import annotations

import contextvars
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Any, Callable, Optional


class CallTimeout(Exception):
    def __init__(self, timeout: float):
        super().__init__(f"call did not finish within {timeout:g}s")
        self.timeout = timeout


_global_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_global_executor(max_workers: int = 8) -> ThreadPoolExecutor:
    """Create or return the shared pool (sized by the first caller)."""
    global _global_executor
    with _executor_lock:
        if _global_executor is None:
            _global_executor = ThreadPoolExecutor(
                max_workers=max(1, max_workers),
                thread_name_prefix="model-call",
            )
        return _global_executor


def call_with_timeout(
    fn: Callable[..., Any],
    *args: Any,
    timeout: float,
    executor: Optional[ThreadPoolExecutor] = None,
    **kwargs: Any,
) -> Any:
    """Run fn(*args, **kwargs) on the pool; CallTimeout if it takes longer than `timeout`.

    The caller's contextvars (log context, active trace span) are copied into
    the worker. Exceptions raised by `fn` propagate unchanged.
    """
    ctx = contextvars.copy_context()
    future = (executor or get_global_executor()).submit(ctx.run, fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout:
        future.cancel()
        raise CallTimeout(timeout) from None
