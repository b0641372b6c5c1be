"""
Thread-safe rate-limited logging utilities.

Policy backends that fail on every request would otherwise emit one warning
per evaluation. This module keeps the first occurrence of each message
visible and drops repeats within an interval.
"""
import logging
import threading
import time
from typing import Optional

from cachetools import TTLCache

# Configure logger
logger = logging.getLogger(__name__)

# Message key -> monotonic time it was last emitted; entries expire after 1 hour
_log_cache: TTLCache = TTLCache(maxsize=100, ttl=3600)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 60,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message with rate limiting, in a thread-safe manner.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical messages in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_cache_lock:
        now = time.monotonic()
        last = _log_cache.get(key)
        if last is not None and now - last < interval:
            return False

        log_method(message)
        _log_cache[key] = now
        return True


def reset_rate_limits() -> None:
    """Forget every recorded message."""
    with _log_cache_lock:
        _log_cache.clear()
