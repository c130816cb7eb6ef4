"""
Fire-and-forget background tasks.

Cache population after a miss must not delay the response, so it runs as a
detached task. The event loop only keeps weak references to tasks; the set
below holds strong ones until completion, and the done-callback logs any
failure instead of leaving it as an unretrieved task exception.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from comicwise.config.constants import Stage
from comicwise.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

_pending: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log_stage(
            logger,
            Stage.BACKGROUND,
            "Background task failed",
            level="warning",
            task=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def spawn_background(coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
    """
    Schedule ``coro`` without awaiting it.

    Returns:
        The created task (callers normally ignore it)
    """
    task = asyncio.create_task(coro, name=name)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_background_tasks() -> int:
    """Number of background tasks that have not finished yet."""
    return len(_pending)


async def drain_background_tasks(timeout: float | None = None) -> None:
    """
    Wait for every pending background task.

    Called on application shutdown so queued cache writes are not lost, and
    by tests that need a miss to be visible before the next request.
    """
    while _pending:
        tasks = list(_pending)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        _pending.difference_update(done)
        if not_done:
            logger.warning(
                "Background tasks still running after drain timeout",
                stage=Stage.CLEANUP.value,
                remaining=len(not_done),
            )
            return
