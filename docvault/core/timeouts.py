"""Time budgets for external calls."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from docvault.core.errors import Stage, UpstreamTimeoutError

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float | None, stage: Stage) -> T:
    """Await with a time budget.

    Raises UpstreamTimeoutError tagged with the stage on expiry. A timeout of
    None or <= 0 disables the bound.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise UpstreamTimeoutError(f"{stage.value} call timed out after {timeout}s", stage=stage) from e
