"""
    linkvote.graph
    ~~~~~~~~~~~~~~

    Graphs are defined by nodes, fields and links. Fields read values from
    entities, links fetch related entities using
    :py:class:`~linkvote.loader.BatchLoader`, so data for the whole layer of
    the query is fetched in batches.

"""
import typing as t

from collections import OrderedDict
from functools import cached_property

from .utils import const, Const, Nothing


Maybe = const("Maybe")

One = const("One")

Many = const("Many")


class Option:
    """Defines an option of the link

    Options without default value are **required**::

        Option("id")
        Option("limit", default=100)

    """

    def __init__(
        self,
        name: str,
        *,
        default: t.Any = Nothing,
    ):
        self.name = name
        self.default = default

    def __repr__(self) -> str:
        return "{}({!r}, ...)".format(self.__class__.__name__, self.name)


class Field:
    """Defines a field of the node

    By default field reads the attribute of the same name from the entity::

        Node("user", [
            Field("name"),
            Field("createdAt", lambda user: user.created_at.isoformat()),
        ])

    Fields of the root node are called without arguments, or with context
    if function is decorated with :py:func:`~linkvote.engine.pass_context`.
    """

    def __init__(
        self,
        name: str,
        func: t.Optional[t.Callable] = None,
    ):
        self.name = name
        self.func = func

    def __repr__(self) -> str:
        return "{}({!r}, {!r})".format(
            self.__class__.__name__, self.name, self.func
        )

    def resolve(self, entity: t.Any) -> t.Any:
        if self.func is None:
            return getattr(entity, self.name)
        return self.func(entity)


class Link:
    """Defines a link to the node

    Example::

        graph = Graph([
            Node("user", [...]),
            Node("link", [
                Field("id"),
                Link("postedBy", Maybe, "user",
                     FetchByIds(USER), requires="posted_by"),
            ]),
            Root([
                Link("allLinks", Many, "link", FetchAll(LINK)),
            ]),
        ])

    Link function protocol::

        # root node links
        def func(loader, **options) -> PendingFuture[T]

        # non-root node links, `keys` are values of the `requires`
        # attribute of every entity
        def func(loader, keys, **options) -> PendingFuture[List[T]]

    Where ``T`` is an entity for ``One``, entity or
    :py:data:`~linkvote.utils.Nothing` for ``Maybe`` and a list of entities
    for ``Many`` links.
    """

    def __init__(
        self,
        name: str,
        type_enum: Const,
        node: str,
        func: t.Callable,
        *,
        requires: t.Optional[str] = None,
        options: t.Optional[t.Sequence[Option]] = None,
    ):
        if type_enum not in (One, Maybe, Many):
            raise TypeError(repr(type_enum))
        self.name = name
        self.type_enum = type_enum
        self.node = node
        self.func = func
        self.requires = requires
        self.options = options or ()

    def __repr__(self) -> str:
        return "{}({!r}, {}, {!r}, {!r}, ...)".format(
            self.__class__.__name__,
            self.name,
            self.type_enum.__name__,  # type: ignore[attr-defined]
            self.node,
            self.func,
        )

    @cached_property
    def options_map(self) -> OrderedDict:
        return OrderedDict((op.name, op) for op in self.options)


class Node:
    """Collection of the fields and links, which describes entity of some
    kind and its relations with other entities
    """

    def __init__(
        self,
        name: t.Optional[str],
        fields: t.List[t.Union[Field, Link]],
    ):
        self.name = name
        self.fields = fields

    def __repr__(self) -> str:
        return "{}({!r}, {!r}, ...)".format(
            self.__class__.__name__, self.name, self.fields
        )

    @cached_property
    def fields_map(self) -> OrderedDict:
        return OrderedDict((f.name, f) for f in self.fields)


class Root(Node):
    """Special implicit root node, starting point of the query execution"""

    def __init__(self, items: t.List[t.Union[Field, Link]]):
        super().__init__(None, items)

    def __repr__(self) -> str:
        return "{}({!r})".format(self.__class__.__name__, self.fields)


class Graph:
    """Collection of nodes - definition of the graph

    Example::

        graph = Graph([
            Node("foo", [...]),
            Node("bar", [...]),
            Root([...]),
        ])

    """

    def __init__(self, items: t.List[Node]):
        self.items = items
        self._validate()

    def __repr__(self) -> str:
        return "{}({!r})".format(self.__class__.__name__, self.items)

    def _validate(self) -> None:
        names = [node.name for node in self.iter_nodes()]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(
                "Duplicated node names: {}".format(sorted(duplicates))
            )
        for node in self.items:
            for field in node.fields:
                if not isinstance(field, Link):
                    continue
                if field.node not in names:
                    raise ValueError(
                        'Link "{}.{}" points to the missing node "{}"'.format(
                            node.name or "root", field.name, field.node
                        )
                    )
                if node.name is not None and field.requires is None:
                    raise ValueError(
                        'Link "{}.{}" requires "requires" argument'.format(
                            node.name, field.name
                        )
                    )

    def iter_root(self) -> t.Iterator[t.Union[Field, Link]]:
        for node in self.items:
            if node.name is None:
                yield from node.fields

    def iter_nodes(self) -> t.Iterator[Node]:
        for node in self.items:
            if node.name is not None:
                yield node

    @cached_property
    def root(self) -> Root:
        return Root(list(self.iter_root()))

    @cached_property
    def nodes(self) -> t.List[Node]:
        return list(self.iter_nodes())

    @cached_property
    def nodes_map(self) -> OrderedDict:
        return OrderedDict((n.name, n) for n in self.iter_nodes())

    @classmethod
    def from_graph(cls, other: "Graph", root: Root) -> "Graph":
        """Create graph from other graph, with new root node.
        Useful for creating mutation graph from query graph.

        Example:
            MUTATION_GRAPH = Graph.from_graph(QUERY_GRAPH, Root([...]))
        """
        return cls(other.nodes + [root])
