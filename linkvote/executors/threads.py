from concurrent.futures import (
    ALL_COMPLETED,
    Executor,
    Future,
    wait,
)
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
)

from linkvote.executors.base import BaseSyncExecutor

if TYPE_CHECKING:
    from linkvote.loader import Flush


def _outcome(fut: Future) -> Any:
    exc = fut.exception()
    return exc if exc is not None else fut.result()


class ThreadsExecutor(BaseSyncExecutor):
    """Runs store calls of the flush concurrently using thread pool

    Results are applied only when every call of the flush is complete, so
    a slow call delays all requests of the flush.

    :param pool: :py:class:`concurrent.futures.ThreadPoolExecutor` or any
                 other :py:class:`concurrent.futures.Executor`
    """

    def __init__(self, pool: Executor):
        self._pool = pool

    def __repr__(self) -> str:
        return "<{} pool={!r}>".format(self.__class__.__name__, self._pool)

    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> Future:
        return self._pool.submit(fn, *args, **kwargs)

    def flush(self, flush: "Flush") -> None:
        futures: List[Future] = [self.submit(call) for call in flush.calls]
        wait(futures, return_when=ALL_COMPLETED)
        flush.finish([_outcome(fut) for fut in futures])
