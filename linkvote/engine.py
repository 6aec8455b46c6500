import logging

from functools import partial
from collections.abc import Mapping
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
    cast,
    overload,
)

from .executors.base import (
    BaseAsyncExecutor,
    BaseSyncExecutor,
    SyncAsyncExecutor,
)
from .future import PendingFuture
from .graph import (
    Field,
    Graph,
    Link,
    Many,
    Maybe,
    Node,
    One,
)
from .loader import BatchLoader
from .query import (
    Field as QueryField,
    Link as QueryLink,
    Node as QueryNode,
)
from .relations import RelationIndex
from .store import BaseStore
from .utils import Nothing


log = logging.getLogger(__name__)


def _yield_options(
    graph_obj: Link,
    query_obj: Union[QueryField, QueryLink],
) -> Iterator[Tuple[str, Any]]:
    options = query_obj.options or {}
    unknown = set(options).difference(graph_obj.options_map)
    if unknown:
        raise TypeError(
            "Unknown options for {!r}: {}".format(
                graph_obj, ", ".join(sorted(unknown))
            )
        )
    for option in graph_obj.options:
        value = options.get(option.name, option.default)
        if value is Nothing:
            raise TypeError(
                'Required option "{}" for {!r} was not provided'.format(
                    option.name, graph_obj
                )
            )
        yield option.name, value


def _get_options(
    graph_obj: Link,
    query_obj: Union[QueryField, QueryLink],
) -> Dict:
    return dict(_yield_options(graph_obj, query_obj))


def _get_field(node: Node, name: str) -> Union[Field, Link]:
    try:
        return node.fields_map[name]
    except KeyError:
        raise KeyError(
            'Field "{}" is not defined in the node "{}"'.format(
                name, node.name or "root"
            )
        )


def link_value(
    graph_link: Link, value: Any
) -> Tuple[Any, List[Any], List[Dict]]:
    """Converts link function result into the result value, list of linked
    entities and list of their result objects
    """
    if graph_link.type_enum is Many:
        targets: List[Dict] = [{} for _ in value]
        return targets, list(value), targets
    elif value is Nothing or value is None:
        if graph_link.type_enum is One:
            raise TypeError(
                "Non-optional link {!r} should not return Nothing".format(
                    graph_link
                )
            )
        return None, [], []
    else:
        assert graph_link.type_enum is One or graph_link.type_enum is Maybe
        target: Dict = {}
        return target, [value], [target]


class Workflow:
    def start(self) -> None:
        raise NotImplementedError(type(self))

    def result(self) -> Any:
        raise NotImplementedError(type(self))


class Query(Workflow):
    """Resolves query layer by layer

    Links of every node are resolved for all entities of the layer at once,
    so loader receives requests of the whole layer before it is flushed.
    Root fields and links of the ordered (mutation) query are resolved one
    by one: next one starts when everything requested by the previous one
    is resolved.
    """

    def __init__(
        self,
        graph: Graph,
        query: QueryNode,
        loader: BatchLoader,
        ctx: "Context",
    ) -> None:
        self._graph = graph
        self._query = query
        self._loader = loader
        self._ctx = ctx
        self._data: Dict[str, Any] = {}
        self._in_progress = 0
        self._steps: List[Union[QueryField, QueryLink]] = []

    def _call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        if _do_pass_context(func):
            return func(self._ctx, *args, **kwargs)
        else:
            return func(*args, **kwargs)

    def _wait(
        self, fut: PendingFuture, callback: Callable[[Any], None]
    ) -> None:
        self._in_progress += 1

        def done(f: PendingFuture) -> None:
            # failed flush is raised by the executor
            if f.cancelled() or f.exception() is not None:
                self._steps = []
            else:
                callback(f.result())
            self._in_progress -= 1
            if not self._in_progress and self._steps:
                self._next_step()

        fut.add_done_callback(done)

    def start(self) -> None:
        if self._query.ordered:
            self._steps = list(self._query.fields)
            self._next_step()
        else:
            for query_field in self._query.fields:
                self.process_root(query_field)

    def result(self) -> Dict[str, Any]:
        self._loader.finish()
        assert not self._in_progress, "Query is not resolved completely"
        return self._data

    def _next_step(self) -> None:
        while self._steps and not self._in_progress:
            self.process_root(self._steps.pop(0))

    def process_root(self, query_field: Union[QueryField, QueryLink]) -> None:
        root = self._graph.root
        graph_obj = _get_field(root, query_field.name)
        if isinstance(graph_obj, Field):
            assert graph_obj.func is not None, graph_obj
            self._data[query_field.result_key] = self._call(graph_obj.func)
            return

        assert isinstance(query_field, QueryLink), query_field
        fut = self._call(
            graph_obj.func,
            self._loader,
            **_get_options(graph_obj, query_field),
        )
        self._wait(
            fut,
            partial(self.process_link_value, graph_obj, query_field, self._data),
        )

    def process_link_value(
        self,
        graph_link: Link,
        query_link: QueryLink,
        target: Dict,
        value: Any,
    ) -> None:
        result, entities, targets = link_value(graph_link, value)
        target[query_link.result_key] = result
        self.process_node(
            self._graph.nodes_map[graph_link.node],
            query_link.node,
            entities,
            targets,
        )

    def process_node(
        self,
        node: Node,
        query: QueryNode,
        entities: List[Any],
        targets: List[Dict],
    ) -> None:
        if not entities:
            return

        for query_field in query.fields:
            graph_obj = _get_field(node, query_field.name)
            if isinstance(graph_obj, Field):
                for entity, target in zip(entities, targets):
                    target[query_field.result_key] = graph_obj.resolve(entity)
            else:
                assert isinstance(query_field, QueryLink), query_field
                self._schedule_link(
                    graph_obj, query_field, entities, targets
                )

    def _schedule_link(
        self,
        graph_link: Link,
        query_link: QueryLink,
        entities: List[Any],
        targets: List[Dict],
    ) -> None:
        assert graph_link.requires is not None, graph_link
        keys = [getattr(e, graph_link.requires) for e in entities]
        fut = self._call(
            graph_link.func,
            self._loader,
            keys,
            **_get_options(graph_link, query_link),
        )

        def callback(values: List) -> None:
            if len(values) != len(keys):
                raise TypeError(
                    "Can't store link values, link: {!r}, "
                    "expected: list (len: {}), returned: {!r}".format(
                        graph_link, len(keys), values
                    )
                )
            children: List[Any] = []
            children_targets: List[Dict] = []
            for target, value in zip(targets, values):
                result, linked, linked_targets = link_value(graph_link, value)
                target[query_link.result_key] = result
                children.extend(linked)
                children_targets.extend(linked_targets)
            self.process_node(
                self._graph.nodes_map[graph_link.node],
                query_link.node,
                children,
                children_targets,
            )

        self._wait(fut, callback)


R = TypeVar("R")


def pass_context(func: Callable[..., R]) -> Callable[..., R]:
    """Decorator to pass context to a function as a first argument.

    Can be used on functions for root ``Field`` and for ``Link``.
    """
    func.__pass_context__ = True  # type: ignore[attr-defined]
    return func


def _do_pass_context(func: Callable) -> bool:
    return getattr(func, "__pass_context__", False)


class Context(Mapping):
    def __init__(self, mapping: Mapping) -> None:
        self.__mapping = mapping

    def __len__(self) -> int:
        return len(self.__mapping)

    def __iter__(self) -> Iterator:
        return iter(self.__mapping)

    def __getitem__(self, item: Any) -> Any:
        try:
            return self.__mapping[item]
        except KeyError:
            raise KeyError(
                "Key {!r} is not specified " "in the query context".format(item)
            )


# Covariant must be used because we want to accept subclasses of Executor
_ExecutorType = TypeVar(
    "_ExecutorType", covariant=True, bound=SyncAsyncExecutor
)


class Engine(Generic[_ExecutorType]):
    """Executes queries, every execution gets its own loader and cache

    :param executor: executor, which dispatches store calls of a flush
    :param store: entity store
    :param relations: relations available for the links
    """

    executor: _ExecutorType

    def __init__(
        self,
        executor: _ExecutorType,
        store: BaseStore,
        relations: Optional[RelationIndex] = None,
    ) -> None:
        self.executor = executor
        self.store = store
        self.relations = relations if relations is not None \
            else RelationIndex()

    def create_loader(self) -> BatchLoader:
        return BatchLoader(
            self.store,
            self.relations,
            cast(SyncAsyncExecutor, self.executor),
        )

    def _prepare_workflow(
        self,
        graph: Graph,
        query: QueryNode,
        ctx: Optional[Mapping],
    ) -> Tuple[BatchLoader, Query]:
        loader = self.create_loader()
        log.debug("Executing %s query: %r",
                  "ordered" if query.ordered else "parallel", query)
        workflow = Query(graph, query, loader, Context(ctx or {}))
        return loader, workflow

    @overload
    async def execute(
        self: "Engine[BaseAsyncExecutor]",
        graph: Graph,
        query: QueryNode,
        ctx: Optional[Mapping] = None,
    ) -> Dict[str, Any]: ...

    @overload
    def execute(
        self: "Engine[BaseSyncExecutor]",
        graph: Graph,
        query: QueryNode,
        ctx: Optional[Mapping] = None,
    ) -> Dict[str, Any]: ...

    def execute(
        self,
        graph: Graph,
        query: QueryNode,
        ctx: Optional[Mapping] = None,
    ) -> Any:
        loader, workflow = self._prepare_workflow(graph, query, ctx)
        return self.executor.process(loader, workflow)
