"""
Bounded worker pool for one dependency level.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


class BoundedWorkerPool:
    """
    Runs a batch of items with at most ``max_workers`` in flight.

    Before an item starts, ``should_dispatch()`` is consulted; once it returns
    False the remaining items are not started. Cancelling ``run`` cancels every
    worker still in flight.

    Example:
        pool = BoundedWorkerPool(max_workers=3)
        outputs = await pool.run(tasks, execute_one, should_dispatch=lambda: not failed)
    """

    def __init__(self, max_workers: int):
        if max_workers <= 0:
            raise ValueError("max_workers must be greater than 0")
        self.max_workers = max_workers
        self.dispatched = 0

    async def run(
        self,
        items: Sequence[Any],
        worker: Callable[[Any], Awaitable[Any]],
        should_dispatch: Optional[Callable[[], bool]] = None,
    ) -> List[Optional[Any]]:
        """
        Run ``worker`` for each item.

        Args:
            items: Work items, started in order
            worker: Coroutine function run once per dispatched item
            should_dispatch: Gate checked right before each item starts

        Returns:
            One entry per item, in item order; None for items never dispatched
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def run_one(item: Any) -> Optional[Any]:
            async with semaphore:
                if should_dispatch is not None and not should_dispatch():
                    return None
                self.dispatched += 1
                return await worker(item)

        workers = [
            asyncio.create_task(run_one(item))
            for item in items
        ]

        try:
            return list(await asyncio.gather(*workers))
        finally:
            pending = [w for w in workers if not w.done()]
            for w in pending:
                w.cancel()
            if pending:
                logger.debug(f"Cancelling {len(pending)} in-flight worker(s)")
                await asyncio.gather(*pending, return_exceptions=True)
