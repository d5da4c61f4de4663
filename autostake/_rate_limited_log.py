"""
Thread-safe rate-limited logging utilities.

Fee and receipt poll loops across many accounts can emit the same warning
every few seconds. This module keeps them visible without flooding the log.
"""
import logging
import threading
import time
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Keys are "<level>:<key>"; entries expire after the largest interval we use
_log_cache = TTLCache(maxsize=512, ttl=3600)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: float = 60,
    logger_instance: Optional[logging.Logger] = None,
    key: Optional[str] = None,
    clock=None,
) -> bool:
    """
    Log a message at most once per ``interval`` seconds for a given key.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between logs in seconds
        logger_instance: Logger to use (defaults to module logger)
        key: Deduplication key (defaults to the message itself)
        clock: Callable returning monotonic seconds (defaults to time.monotonic)

    Returns:
        True if the message was emitted, False if suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    cache_key = f"{level}:{key or message}"
    now = (clock or time.monotonic)()

    with _log_cache_lock:
        last = _log_cache.get(cache_key)
        if last is not None and now - last < interval:
            return False
        log_method(message)
        _log_cache[cache_key] = now
    return True


def reset_rate_limits() -> None:
    """Forget every suppression window."""
    with _log_cache_lock:
        _log_cache.clear()
