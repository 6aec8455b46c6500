import abc
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Union,
)


if TYPE_CHECKING:
    from linkvote.loader import BatchLoader, Flush
    from linkvote.engine import Workflow


class BaseExecutor(abc.ABC):
    @abc.abstractmethod
    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError


class BaseSyncExecutor(BaseExecutor):
    @abc.abstractmethod
    def flush(self, flush: "Flush") -> None:
        raise NotImplementedError

    def process(self, loader: "BatchLoader", workflow: "Workflow") -> Any:
        workflow.start()
        while loader.pending:
            self.flush(loader.begin_flush())
        return workflow.result()


class BaseAsyncExecutor(BaseExecutor):
    @abc.abstractmethod
    async def flush(self, flush: "Flush") -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def process(
        self, loader: "BatchLoader", workflow: "Workflow"
    ) -> Any:
        raise NotImplementedError


SyncAsyncExecutor = Union[BaseSyncExecutor, BaseAsyncExecutor]
