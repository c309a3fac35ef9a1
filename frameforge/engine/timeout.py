"""Deadline and heartbeat wrapper for long-running awaitables."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 90.0
DEFAULT_HEARTBEAT_INTERVAL = 3.0


class OperationTimeoutError(TimeoutError):
    """An awaited operation exceeded its deadline."""

    def __init__(self, operation_name: str, elapsed: float, timeout: float):
        super().__init__(
            f"Operation '{operation_name}' timed out after "
            f"{elapsed * 1000:.0f}ms (limit: {timeout * 1000:.0f}ms)"
        )
        self.operation_name = operation_name
        self.elapsed = elapsed
        self.timeout = timeout


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float = DEFAULT_TIMEOUT,
    operation_name: str = "operation",
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
    on_heartbeat: Callable[[float, float], None] | None = None,
) -> T:
    """Await with a deadline, emitting periodic heartbeats.

    Args:
        awaitable: Work to await. Cancelled if the deadline passes.
        timeout: Deadline in seconds.
        operation_name: Name used in logs and the timeout error.
        heartbeat_interval: Seconds between heartbeats; <= 0 disables them.
        on_heartbeat: Called as ``on_heartbeat(elapsed, timeout)``.

    Raises:
        OperationTimeoutError: If the deadline passes first.
    """
    start = time.monotonic()
    heartbeat: asyncio.Task | None = None

    async def beat() -> None:
        while True:
            await asyncio.sleep(heartbeat_interval)
            elapsed = time.monotonic() - start
            logger.debug(
                f"{operation_name} heartbeat: {elapsed:.1f}s "
                f"({elapsed / timeout * 100:.0f}% of {timeout:.0f}s)"
            )
            try:
                on_heartbeat(elapsed, timeout)
            except Exception as e:
                logger.warning(f"{operation_name} heartbeat callback failed: {e}")

    if on_heartbeat is not None and heartbeat_interval > 0:
        heartbeat = asyncio.create_task(beat())

    try:
        result = await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        elapsed = time.monotonic() - start
        logger.error(f"Operation {operation_name} timed out after {elapsed:.1f}s")
        raise OperationTimeoutError(operation_name, elapsed, timeout) from e
    finally:
        if heartbeat is not None:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat

    logger.debug(f"{operation_name} completed in {time.monotonic() - start:.1f}s")
    return result


__all__ = ["OperationTimeoutError", "with_timeout"]
