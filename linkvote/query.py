"""
    linkvote.query
    ~~~~~~~~~~~~~~

    Query is a tree of requested fields and links, there is no query language
    parser, trees are constructed directly or with :py:mod:`linkvote.builder`:

    .. code-block:: python

        Node([
            Field("id"),
            Link("postedBy", Node([Field("name")]), alias="author"),
        ])

    Result of such query is a plain dict, keyed by aliases when they are
    provided:

    .. code-block:: python

        {"id": 1, "author": {"name": "mario"}}

"""
import typing as t

from functools import cached_property


class Base:
    __attrs__: t.Tuple[str, ...] = ()

    def __repr__(self) -> str:
        return "{}({})".format(
            self.__class__.__name__,
            ", ".join(
                "{}={!r}".format(attr, getattr(self, attr))
                for attr in self.__attrs__
            ),
        )

    def __eq__(self, other: t.Any) -> bool:
        if self.__class__ is not other.__class__:
            return NotImplemented
        return all(
            getattr(self, attr) == getattr(other, attr)
            for attr in self.__attrs__
        )


class FieldBase(Base):
    name: str
    options: t.Optional[t.Dict[str, t.Any]]
    alias: t.Optional[str]

    @cached_property
    def result_key(self) -> str:
        return self.alias if self.alias is not None else self.name


class Field(FieldBase):
    """Requested field of the entity

    :param name: name of the field in the graph
    :param optional options: values of the field options
    :param optional alias: key of the field in the result
    """

    __attrs__ = ("name", "options", "alias")

    def __init__(
        self,
        name: str,
        options: t.Optional[t.Dict[str, t.Any]] = None,
        alias: t.Optional[str] = None,
    ):
        self.name = name
        self.options = options
        self.alias = alias


class Link(FieldBase):
    """Requested link, ``node`` describes what to read from linked entities

    :param name: name of the link in the graph
    :param node: :py:class:`Node` with fields of the linked entities
    :param optional options: values of the link options
    :param optional alias: key of the link in the result
    """

    __attrs__ = ("name", "node", "options", "alias")

    def __init__(
        self,
        name: str,
        node: "Node",
        options: t.Optional[t.Dict[str, t.Any]] = None,
        alias: t.Optional[str] = None,
    ):
        self.name = name
        self.node = node
        self.options = options
        self.alias = alias


class Node(Base):
    """Fields and links requested from an entity

    Result keys should be unique within a node, use aliases to request the
    same field twice with different options.

    :param fields: list of :py:class:`Field` and :py:class:`Link`
    :param ordered: resolve fields of the root node one by one, in the
        listed order, used by mutations
    """

    __attrs__ = ("fields", "ordered")

    def __init__(
        self,
        fields: t.List[t.Union[Field, Link]],
        ordered: bool = False,
    ):
        seen: t.Set[str] = set()
        for field in fields:
            if field.result_key in seen:
                raise ValueError(
                    'Duplicated result key "{}", use aliases'.format(
                        field.result_key
                    )
                )
            seen.add(field.result_key)
        self.fields = fields
        self.ordered = ordered
