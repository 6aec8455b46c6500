import inspect
import logging
from asyncio import (
    CancelledError,
    Task,
    gather,
    get_running_loop,
)
from typing import TYPE_CHECKING, Any, Callable, List

from linkvote.executors.base import BaseAsyncExecutor

if TYPE_CHECKING:
    from linkvote.loader import BatchLoader, Flush
    from linkvote.engine import Workflow


log = logging.getLogger(__name__)


class AsyncIOExecutor(BaseAsyncExecutor):
    """Runs store calls of the flush as asyncio tasks

    Store methods may be coroutine functions or plain functions, plain
    functions are called inside the task and block the event loop while
    they run.

    When execution is cancelled, unfinished calls are cancelled too, and
    results of the interrupted flush are never applied.

    :param deny_sync: raise ``TypeError`` when a store method returns
                      non-awaitable result
    """

    def __init__(self, deny_sync: bool = False) -> None:
        self.deny_sync = deny_sync

    async def _run(self, fn: Callable, args: tuple, kwargs: dict) -> Any:
        value = fn(*args, **kwargs)
        if inspect.isawaitable(value):
            return await value
        if self.deny_sync:
            raise TypeError(
                "{!r} returned non-awaitable object {!r}".format(fn, value)
            )
        return value

    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> Task:
        return get_running_loop().create_task(self._run(fn, args, kwargs))

    async def flush(self, flush: "Flush") -> None:
        tasks: List[Task] = [self.submit(call) for call in flush.calls]
        try:
            outcomes = await gather(*tasks, return_exceptions=True)
        except CancelledError:
            log.debug("Flush is cancelled: %r", flush)
            for task in tasks:
                task.cancel()
            await gather(*tasks, return_exceptions=True)
            flush.discard()
            raise
        flush.finish(outcomes)

    async def process(
        self, loader: "BatchLoader", workflow: "Workflow"
    ) -> Any:
        workflow.start()
        try:
            while loader.pending:
                await self.flush(loader.begin_flush())
        except CancelledError:
            loader.cancel()
            raise
        return workflow.result()
