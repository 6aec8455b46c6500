"""
    linkvote.relations
    ~~~~~~~~~~~~~~~~~~

    Relations describe one-to-many associations which are fetched in bulk
    by source keys. For example, links posted by users::

        LINKS_BY_USER = Relation("byUser", USER, LINK,
                                 lambda link: [link.posted_by])

    Here ``USER`` is a source kind, ``LINK`` is a target kind (entities which
    are fetched) and extractor returns keys of the users the link belongs to.
    Extractor is used to split store results between requested source keys,
    so it should be a pure function.

"""
from collections import OrderedDict
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    Optional,
    Sequence,
    Tuple,
)

from .kinds import EntityKind
from .error import DuplicateRelationError, UnknownRelationError


Extractor = Callable[[Any], Sequence[Hashable]]


class Relation:

    def __init__(
        self,
        name: str,
        source: EntityKind,
        target: EntityKind,
        extract: Extractor,
    ) -> None:
        """
        :param name: name of the relation, unique per target kind
        :param source: kind of the keys used to query the relation
        :param target: kind of the entities returned by the relation
        :param extract: function, which returns source keys for an entity
        """
        self.name = name
        self.source = source
        self.target = target
        self.extract = extract

    def __repr__(self) -> str:
        return "{}({!r}, {!r}, {!r})".format(
            self.__class__.__name__, self.name, self.source, self.target,
        )

    def split(
        self,
        entities: Iterable[Any],
        source_keys: Iterable[Hashable],
    ) -> Dict[Hashable, list]:
        """Distributes entities between source keys

        Entity is added to the list of every requested source key it belongs
        to, source keys without entities get an empty list.
        """
        result: Dict[Hashable, list] = OrderedDict(
            (key, []) for key in source_keys
        )
        for entity in entities:
            for key in self.extract(entity):
                bucket = result.get(key)
                if bucket is not None:
                    bucket.append(entity)
        return result


class RelationIndex:
    """Registry of the relations, keyed by target kind and relation name"""

    def __init__(self, relations: Optional[Iterable[Relation]] = None) -> None:
        self._relations: Dict[Tuple[EntityKind, str], Relation] = OrderedDict()
        for relation in relations or ():
            self.register(relation)

    def __repr__(self) -> str:
        return "<{} {!r}>".format(
            self.__class__.__name__, list(self._relations.values()),
        )

    def __iter__(self) -> Iterator[Relation]:
        return iter(self._relations.values())

    def __len__(self) -> int:
        return len(self._relations)

    def __contains__(self, item: Any) -> bool:
        return item in self._relations

    def register(self, relation: Relation) -> Relation:
        key = (relation.target, relation.name)
        if key in self._relations:
            raise DuplicateRelationError(relation.target.name, relation.name)
        self._relations[key] = relation
        return relation

    def get(self, kind: EntityKind, name: str) -> Relation:
        try:
            return self._relations[(kind, name)]
        except KeyError:
            raise UnknownRelationError(kind.name, name)
