from operator import attrgetter
from typing import Any, Callable, Hashable, Optional


class EntityKind:
    """Tag for a class of entities which can be fetched from the store

    Example::

        LINK = EntityKind("Link", Link)
        COUNTRY = EntityKind("Country", Country, identity=attrgetter("code"))

    :param name: unique name of the kind
    :param model: class of the entities, used by stores to build them
    :param identity: function which returns a unique key of the entity,
                     ``id`` attribute is used by default
    """

    def __init__(
        self,
        name: str,
        model: Optional[Callable[..., Any]] = None,
        *,
        identity: Callable[[Any], Hashable] = attrgetter("id"),
    ) -> None:
        self.name = name
        self.model = model
        self.identity = identity

    def __repr__(self) -> str:
        return "{}({!r})".format(self.__class__.__name__, self.name)

    def __eq__(self, other: Any) -> bool:
        return self.__class__ is other.__class__ and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))
