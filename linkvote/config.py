from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from .engine import Engine
from .executors.asyncio import AsyncIOExecutor
from .executors.base import SyncAsyncExecutor
from .executors.sync import SyncExecutor
from .executors.threads import ThreadsExecutor
from .schema import create_relations, create_store


EXECUTORS = ("sync", "threads", "asyncio")


@dataclass(frozen=True)
class Settings:
    """Everything needed to build an :py:class:`~linkvote.engine.Engine`

    :param database_url: SQLAlchemy database URL, in-memory SQLite by default
    :param executor: one of ``sync``, ``threads`` or ``asyncio``
    :param max_workers: size of the thread pool for ``threads`` executor
    :param sample_data: whether to populate database with sample data
    """

    database_url: str = "sqlite://"
    executor: str = "sync"
    max_workers: int = 4
    sample_data: bool = True

    def __post_init__(self) -> None:
        if self.executor not in EXECUTORS:
            raise ValueError(
                "Unknown executor {!r}, expected one of: {}".format(
                    self.executor, ", ".join(EXECUTORS)
                )
            )
        if self.max_workers < 1:
            raise ValueError("max_workers should be positive")


def create_executor(settings: Settings) -> SyncAsyncExecutor:
    if settings.executor == "threads":
        return ThreadsExecutor(ThreadPoolExecutor(settings.max_workers))
    elif settings.executor == "asyncio":
        return AsyncIOExecutor()
    else:
        return SyncExecutor()


def configure(settings: Settings) -> Engine[Any]:
    store = create_store(settings.database_url, settings.sample_data)
    return Engine(create_executor(settings), store, create_relations())
