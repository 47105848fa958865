import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

import nest_asyncio

T = TypeVar("T")


async def gather_or_cancel(aws: Iterable[Awaitable[T]]) -> List[T]:
    """Like ``asyncio.gather`` but cancels the remaining tasks on the first failure.

    Every task has finished by the time the failure is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def gather_with_concurrency(n: Optional[int], *tasks):
    """Helper method to limit the concurrency when gathering the results from multiple tasks.

    ``n=None`` gathers everything at once.
    """
    if n is None:
        return await gather_or_cancel(tasks)

    semaphore = asyncio.Semaphore(n)

    async def sem_task(task):
        async with semaphore:
            return await task

    try:
        return await gather_or_cancel(sem_task(task) for task in tasks)
    finally:
        # coroutines still queued on the semaphore when a sibling failed
        for task in tasks:
            if asyncio.iscoroutine(task):
                task.close()


async def gather_in_batches(
    batch_size: int,
    task_fns: Sequence[Callable[[], Awaitable[T]]],
) -> List[T]:
    """Runs ``task_fns`` in consecutive batches of ``batch_size``.

    Every coroutine of a batch runs concurrently, and the next batch is only
    started once the whole current batch has finished. The first failure
    cancels the rest of its batch and propagates, and no further batches are
    started. Results keep the order of ``task_fns``.
    """
    results: List[T] = []
    for start in range(0, len(task_fns), batch_size):
        batch = task_fns[start : start + batch_size]
        results.extend(await gather_or_cancel(fn() for fn in batch))
    return results


def get_event_loop():
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # no event loop running:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    else:
        nest_asyncio.apply(loop)
    return loop


def run_sync(coroutine: Awaitable[T]) -> T:
    """Drives ``coroutine`` to completion from synchronous code, notebooks included."""
    loop = get_event_loop()
    return loop.run_until_complete(coroutine)
