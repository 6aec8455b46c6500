"""
    linkvote.loader
    ~~~~~~~~~~~~~~~

    Loader collects entity requests made while query is resolved and
    fetches them in batches. Every request immediately returns
    :py:class:`~linkvote.future.PendingFuture`, store is called only when
    loader is flushed::

        loader = BatchLoader(store, relations)
        links = loader.request_by_ids(LINK, [1, 2])
        more_links = loader.request_by_ids(LINK, [2, 3])
        loader.flush()  # single store.get_by_ids(LINK, [1, 2, 3]) call
        assert set(more_links.result()) == {2, 3}

    Requests of the same kind and mode are merged into one bucket, and every
    bucket is fetched with one store call. Results are stored in the
    :py:class:`~linkvote.cache.ResultCache`, which lives as long as the
    loader, so repeated requests are served without store calls.

"""
import time
import logging

from functools import partial
from collections import OrderedDict
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from prometheus_client import Counter, Summary

from .cache import ResultCache
from .error import (
    ExecutionCancelledError,
    ReentrantFlushError,
    StoreUnavailableError,
)
from .future import PendingFuture
from .kinds import EntityKind
from .relations import Relation, RelationIndex
from .utils import Nothing

if TYPE_CHECKING:
    from .store import BaseStore
    from .executors.base import SyncAsyncExecutor


log = logging.getLogger(__name__)

STORE_CALLS = Counter(
    name="linkvote_store_calls",
    documentation="Store calls made by flushes",
    labelnames=["kind", "mode"],
)
FLUSH_TIME = Summary(
    name="linkvote_flush_time",
    documentation="Time spent in a flush, from dispatch till fulfilment",
)

IDS = "ids"
RELATION = "relation"
ALL = "all"
CREATE = "create"


def _unique(keys: Iterable[Hashable]) -> List[Hashable]:
    return list(OrderedDict.fromkeys(keys))


class StoreCall:
    """Single store call of the flush, made for one bucket of requests

    Executors call it to get the result and pass the result (or exception)
    back to the :py:meth:`Flush.finish`.
    """

    __slots__ = ("kind", "mode", "func", "args", "apply")

    def __init__(
        self,
        kind: EntityKind,
        mode: str,
        func: Callable,
        args: Tuple,
        apply: Callable[[Any], None],
    ) -> None:
        self.kind = kind
        self.mode = mode
        self.func = func
        self.args = args
        self.apply = apply

    def __repr__(self) -> str:
        return "<{} {}:{}>".format(
            self.__class__.__name__, self.kind.name, self.mode,
        )

    def __call__(self) -> Any:
        return self.func(*self.args)


class _Create:
    __slots__ = ("kind", "values", "entity")

    def __init__(self, kind: EntityKind, values: Mapping[str, Any]) -> None:
        self.kind = kind
        self.values = values
        self.entity: Any = Nothing


class Flush:
    """Batch of store calls, dispatched by an executor

    Executor runs all :py:attr:`calls` (possibly concurrently) and then
    calls :py:meth:`finish` exactly once with their outcomes.
    """

    def __init__(
        self,
        loader: "BatchLoader",
        calls: List[StoreCall],
        waiting: List[Tuple[PendingFuture, Callable[[], Any]]],
    ) -> None:
        self.calls = calls
        self._loader = loader
        self._waiting = waiting
        self._started = time.perf_counter()
        self._done = False

    def __repr__(self) -> str:
        return "<{} {!r}>".format(self.__class__.__name__, self.calls)

    @property
    def done(self) -> bool:
        return self._done

    def _close(self) -> None:
        assert not self._done, "Flush is already finished"
        self._done = True
        self._loader._release(self)

    def _fulfil(
        self, resolve: Callable[[PendingFuture, Callable[[], Any]], None],
    ) -> List[Exception]:
        """Fulfils every waiting future, even if callbacks of some of them
        fail, and returns exceptions raised by the callbacks
        """
        errors: List[Exception] = []
        for fut, read in self._waiting:
            try:
                resolve(fut, read)
            except Exception as exc:
                errors.append(exc)
        return errors

    def finish(self, outcomes: Sequence[Any]) -> None:
        """Applies results of the store calls and fulfils waiting futures

        :param outcomes: results of the :py:attr:`calls` in the same order,
                         exception instance in place of a failed call
        """
        assert len(outcomes) == len(self.calls), (outcomes, self.calls)
        self._close()

        for call, outcome in zip(self.calls, outcomes):
            if isinstance(outcome, BaseException):
                log.warning("Store call %r failed: %r", call, outcome)
                error = StoreUnavailableError(
                    "Store call {!r} failed: {!r}".format(call, outcome)
                )
                errors = self._fulfil(
                    lambda fut, _: fut.set_exception(error)
                )
                for exc in errors:
                    log.error("Callback failed after %r: %r", error, exc)
                raise error from outcome

        for call, outcome in zip(self.calls, outcomes):
            call.apply(outcome)

        FLUSH_TIME.observe(time.perf_counter() - self._started)
        errors = self._fulfil(lambda fut, read: fut.set_result(read()))
        if errors:
            for exc in errors[1:]:
                log.error("Callback failed after %r: %r", errors[0], exc)
            raise errors[0]

    def discard(self) -> None:
        """Drops the flush, results of its calls will never be applied"""
        if self._done:
            return
        self._close()
        for fut, _ in self._waiting:
            fut.cancel()


class BatchLoader:
    """Collects requests for one execution and fetches them in batches

    :param store: entity store, see :py:class:`~linkvote.store.BaseStore`
    :param relations: relations, which can be requested
    :param executor: executor used by :py:meth:`flush`,
                     :py:class:`~linkvote.executors.sync.SyncExecutor`
                     by default
    """

    def __init__(
        self,
        store: "BaseStore",
        relations: Optional[RelationIndex] = None,
        executor: Optional["SyncAsyncExecutor"] = None,
    ) -> None:
        if executor is None:
            from .executors.sync import SyncExecutor

            executor = SyncExecutor()
        self.store = store
        self.relations = relations if relations is not None \
            else RelationIndex()
        self.executor = executor
        self.cache = ResultCache()
        self._ids: Dict[EntityKind, Dict[Hashable, None]] = OrderedDict()
        self._by_relation: Dict[Relation, Dict[Hashable, None]] = \
            OrderedDict()
        self._all: Dict[EntityKind, None] = OrderedDict()
        self._creates: List[_Create] = []
        self._waiting: List[Tuple[PendingFuture, Callable[[], Any]]] = []
        self._flush: Optional[Flush] = None
        self._cancelled = False

    def __repr__(self) -> str:
        return "<{} store={!r} pending={}>".format(
            self.__class__.__name__, self.store, len(self._waiting),
        )

    @property
    def pending(self) -> bool:
        return bool(self._waiting)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _check_active(self) -> None:
        if self._cancelled:
            raise ExecutionCancelledError("Execution was cancelled")

    def _wait(self, read: Callable[[], Any]) -> PendingFuture:
        fut: PendingFuture = PendingFuture()
        self._waiting.append((fut, read))
        return fut

    def request_by_ids(
        self, kind: EntityKind, ids: Iterable[Hashable],
    ) -> PendingFuture[Dict[Hashable, Any]]:
        """Requests entities by their identity

        Future result is a mapping of every requested key to the entity or to
        :py:data:`~linkvote.utils.Nothing` if there is no such entity.
        """
        self._check_active()
        keys = _unique(ids)
        read = partial(self.cache.lookup, kind, keys)
        missing = self.cache.missing(kind, keys)
        if not missing:
            return PendingFuture.resolved(read())
        self._ids.setdefault(kind, OrderedDict()).update(
            OrderedDict.fromkeys(missing)
        )
        return self._wait(read)

    def request_by_relation(
        self,
        kind: EntityKind,
        relation: str,
        source_keys: Iterable[Hashable],
    ) -> PendingFuture[Dict[Hashable, List]]:
        """Requests entities of the ``kind`` related to the source keys

        Future result is a mapping of every source key to the list of
        related entities, which is empty if there are no such entities.
        """
        self._check_active()
        rel = self.relations.get(kind, relation)
        keys = _unique(source_keys)
        read = partial(self.cache.lookup_relation, kind, rel.name, keys)
        missing = self.cache.missing_relation(kind, rel.name, keys)
        if not missing:
            return PendingFuture.resolved(read())
        self._by_relation.setdefault(rel, OrderedDict()).update(
            OrderedDict.fromkeys(missing)
        )
        return self._wait(read)

    def request_all(self, kind: EntityKind) -> PendingFuture[List]:
        self._check_active()

        def read() -> List:
            return list(self.cache.get_all(kind))

        if self.cache.has_all(kind):
            return PendingFuture.resolved(read())
        self._all[kind] = None
        return self._wait(read)

    def request_create(
        self, kind: EntityKind, values: Mapping[str, Any],
    ) -> PendingFuture:
        """Requests creation of the new entity, never merged with others"""
        self._check_active()
        create = _Create(kind, values)
        self._creates.append(create)
        return self._wait(lambda: create.entity)

    def _apply_ids(
        self, kind: EntityKind, keys: List[Hashable], result: Mapping,
    ) -> None:
        for key in keys:
            entity = result.get(key, Nothing)
            if entity is None:
                entity = Nothing
            self.cache.set(kind, key, entity)

    def _apply_relation(
        self, relation: Relation, keys: List[Hashable], result: Iterable,
    ) -> None:
        split = relation.split(result, keys)
        for key, entities in split.items():
            self.cache.set_relation(
                relation.target, relation.name, key, entities,
            )

    def _apply_all(self, kind: EntityKind, result: Iterable) -> None:
        self.cache.set_all(kind, result)

    def _apply_create(self, create: _Create, result: Any) -> None:
        relations = [r for r in self.relations if r.target == create.kind]
        create.entity = self.cache.add_created(
            create.kind, result, relations,
        )

    def _calls(self) -> List[StoreCall]:
        store = self.store
        calls = []
        for kind, ids in self._ids.items():
            keys = list(ids)
            calls.append(StoreCall(
                kind, IDS, store.get_by_ids, (kind, keys),
                partial(self._apply_ids, kind, keys),
            ))
        for relation, source_ids in self._by_relation.items():
            keys = list(source_ids)
            calls.append(StoreCall(
                relation.target, RELATION, store.get_by_relation,
                (relation.target, relation, keys),
                partial(self._apply_relation, relation, keys),
            ))
        for kind in self._all:
            calls.append(StoreCall(
                kind, ALL, store.get_all, (kind,),
                partial(self._apply_all, kind),
            ))
        for create in self._creates:
            calls.append(StoreCall(
                create.kind, CREATE, store.create,
                (create.kind, dict(create.values)),
                partial(self._apply_create, create),
            ))
        return calls

    def begin_flush(self) -> Flush:
        """Takes all pending requests and returns them as a flush

        Only one flush can be outstanding at a time.
        """
        self._check_active()
        if self._flush is not None:
            raise ReentrantFlushError(
                "Previous flush is not finished yet: {!r}".format(self._flush)
            )
        calls = self._calls()
        for call in calls:
            STORE_CALLS.labels(call.kind.name, call.mode).inc()
        log.debug("Flushing %d requests with %d store calls",
                  len(self._waiting), len(calls))

        self._flush = Flush(self, calls, self._waiting)
        self._ids = OrderedDict()
        self._by_relation = OrderedDict()
        self._all = OrderedDict()
        self._creates = []
        self._waiting = []
        return self._flush

    def _release(self, flush: Flush) -> None:
        assert self._flush is flush, (self._flush, flush)
        self._flush = None

    def flush(self) -> Any:
        """Dispatches pending requests using executor

        Returns awaitable when used with asynchronous executor.
        """
        return self.executor.flush(self.begin_flush())

    def cancel(self) -> None:
        """Cancels loader: results of the outstanding flush are discarded,
        pending requests are cancelled and no more requests are accepted
        """
        self._cancelled = True
        if self._flush is not None:
            self._flush.discard()
        waiting, self._waiting = self._waiting, []
        for fut, _ in waiting:
            fut.cancel()

    def finish(self) -> None:
        self.cache.finish()
