"""
    linkvote.builder
    ~~~~~~~~~~~~~~~~

    Shorthand for query trees. Attribute of ``Q`` references a field of the
    graph, calling a reference sets field options, indexing it lists fields
    of the linked entities and ``<<`` sets a result key:

    .. code-block:: python

        build([
            Q.feed << Q.allLinks[Q.url, Q.postedBy[Q.name]],
            Q.link(id=1)[Q.votes[Q.id]],
        ])

    Root references of mutations start from ``M``, fields of the created
    entities are requested with ``Q``.

"""
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .query import Node, Field, Link


class FieldRef:
    """Reference to a field or link, every operation returns a new one"""

    __slots__ = ("_ref_name", "_ref_options", "_ref_alias", "_ref_fields",
                 "_ref_mutation")

    def __init__(
        self,
        name: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        alias: Optional[str] = None,
        fields: Optional[Tuple["FieldRef", ...]] = None,
        mutation: bool = False,
    ) -> None:
        self._ref_name = name
        self._ref_options = options
        self._ref_alias = alias
        self._ref_fields = fields
        self._ref_mutation = mutation

    def _replace(self, **changes: Any) -> "FieldRef":
        state = {
            "name": self._ref_name,
            "options": self._ref_options,
            "alias": self._ref_alias,
            "fields": self._ref_fields,
            "mutation": self._ref_mutation,
        }
        state.update(changes)
        return FieldRef(**state)

    def __getattr__(self, name: str) -> "FieldRef":
        if name.startswith("__"):
            raise AttributeError(name)
        if self._ref_name is not None:
            raise AttributeError(
                "Field {!r} has no attribute {!r}, nested fields are "
                "listed in brackets".format(self._ref_name, name)
            )
        return FieldRef(name, mutation=self._ref_mutation)

    def __getitem__(
        self, fields: Union["FieldRef", Tuple["FieldRef", ...]]
    ) -> "FieldRef":
        if self._ref_fields is not None:
            raise TypeError(
                "Fields of {!r} are already listed".format(self)
            )
        if isinstance(fields, FieldRef):
            fields = (fields,)
        return self._replace(fields=tuple(fields))

    def __call__(self, **options: Any) -> "FieldRef":
        if self._ref_options is not None:
            raise TypeError(
                "Options of {!r} are already set".format(self)
            )
        return self._replace(options=options)

    def __lshift__(self, other: "FieldRef") -> "FieldRef":
        if not isinstance(other, FieldRef):
            return NotImplemented
        if self._ref_options is not None or self._ref_fields is not None:
            raise TypeError(
                "Alias {!r} should be a plain name".format(self._ref_name)
            )
        return other._replace(alias=self._ref_name)

    def __repr__(self) -> str:
        name = self._ref_name or "<root>"
        if self._ref_alias is not None:
            name = "{}:{}".format(self._ref_alias, name)
        return "<{} {}{}>".format(
            self.__class__.__name__,
            "mutation " if self._ref_mutation else "",
            name,
        )

    def to_field(self) -> Union[Field, Link]:
        if self._ref_name is None:
            raise TypeError("Field name is not specified")
        if self._ref_fields is None:
            return Field(self._ref_name, self._ref_options, self._ref_alias)
        return Link(
            self._ref_name,
            Node(_fields(self._ref_fields)),
            self._ref_options,
            self._ref_alias,
        )


Q = FieldRef()
M = FieldRef(mutation=True)


def _fields(refs: Iterable[FieldRef]) -> List[Union[Field, Link]]:
    return [ref.to_field() for ref in refs]


def build(refs: List[FieldRef]) -> Node:
    """Builds a root query node

    Root references should all come either from ``Q`` (query) or from ``M``
    (mutation). Fields of a mutation are resolved in the listed order:

    .. code-block:: python

        build([
            M.createUser(name="Wilma", email="wilma@example.com",
                         password="fred")[Q.id],
            M.createLink(url="https://www.python.org", description="Python",
                         postedBy=3)[Q.id],
        ])

    :param refs: list of root fields
    :return: :py:class:`~linkvote.query.Node` ready to execute
    """
    mutations = [ref._ref_mutation for ref in refs]
    if any(mutations) and not all(mutations):
        raise TypeError("Query and mutation fields can not be mixed")
    return Node(_fields(refs), ordered=bool(refs) and all(mutations))
