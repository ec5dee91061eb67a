# Utils: bounded model calls
from src.utils.limiter import CallTimeout, call_with_timeout, get_global_executor

__all__ = [
    "CallTimeout",
    "call_with_timeout",
    "get_global_executor",
]
