"""
    linkvote.store
    ~~~~~~~~~~~~~~

    Store is a keyed lookup service used by the
    :py:class:`~linkvote.loader.BatchLoader`. Loader calls it with batches of
    keys, one call per bucket of requests. Methods can be implemented as
    plain functions or as coroutines, the latter require
    :py:class:`~linkvote.executors.asyncio.AsyncIOExecutor`.

"""
import abc
from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
)

from .kinds import EntityKind
from .relations import Relation


class BaseStore(abc.ABC):

    @abc.abstractmethod
    def get_by_ids(
        self, kind: EntityKind, keys: List[Hashable],
    ) -> Mapping[Hashable, Any]:
        """Result must contain only keys which exist in the store"""
        raise NotImplementedError()

    @abc.abstractmethod
    def get_by_relation(
        self, kind: EntityKind, relation: Relation, source_keys: List[Hashable],
    ) -> Iterable[Any]:
        """Returns entities of the ``kind``, which belong to any of the source
        keys, loader splits them between source keys using relation's
        extractor
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def get_all(self, kind: EntityKind) -> Iterable[Any]:
        raise NotImplementedError()

    @abc.abstractmethod
    def create(self, kind: EntityKind, values: Dict[str, Any]) -> Any:
        """Creates entity from values and returns it with assigned identity"""
        raise NotImplementedError()
