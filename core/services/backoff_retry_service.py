import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

_logger = logging.getLogger("BackoffRetry")


async def retry_with_linear_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay_sec: float = 2.0,
    description: str = "operation",
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: Optional[logging.Logger] = None,
) -> T:
    """
    Run `fn` up to `max_attempts` times, sleeping base_delay_sec * attempt
    between attempts. Returns the first success; re-raises the last error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if base_delay_sec < 0:
        raise ValueError("base_delay_sec must be >= 0")

    log = logger or _logger
    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            log.warning("%s attempt %s/%s failed: %s", description, attempt, max_attempts, exc)
            if attempt >= max_attempts:
                raise
            delay = base_delay_sec * attempt
            log.info("Retrying %s in %.1fs...", description, delay)
            await sleep_fn(delay)

    raise RuntimeError("retry loop exhausted unexpectedly")
