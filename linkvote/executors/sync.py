from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
)

from linkvote.executors.base import BaseSyncExecutor
from linkvote.future import PendingFuture

if TYPE_CHECKING:
    from linkvote.loader import Flush


class SyncExecutor(BaseSyncExecutor):
    """Runs store calls of the flush one by one in the current thread

    Failed call doesn't stop the flush, its exception is passed to the
    :py:meth:`~linkvote.loader.Flush.finish` with results of other calls.
    """

    def submit(
        self, fn: Callable, *args: Any, **kwargs: Any
    ) -> PendingFuture:
        fut: PendingFuture = PendingFuture()
        try:
            fut.set_result(fn(*args, **kwargs))
        except Exception as exc:
            fut.set_exception(exc)
        return fut

    def flush(self, flush: "Flush") -> None:
        outcomes: List[Any] = []
        for call in flush.calls:
            fut = self.submit(call)
            outcomes.append(fut.exception() or fut.result())
        flush.finish(outcomes)
