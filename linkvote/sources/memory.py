from collections import OrderedDict
from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
)

from ..kinds import EntityKind
from ..relations import Relation
from ..store import BaseStore


class MemoryStore(BaseStore):
    """Store which keeps entities in dictionaries

    Example::

        store = MemoryStore({
            LINK: [Link(1, ...), Link(2, ...)],
            USER: [User(1, ...)],
        })

    Relations are resolved by applying relation's extractor to every entity
    of the target kind. New entities are created by calling kind's model
    with values and with the next free integer identity as ``id``.
    """

    def __init__(
        self,
        data: Optional[Mapping[EntityKind, Iterable[Any]]] = None,
    ) -> None:
        self._tables: Dict[EntityKind, Dict[Hashable, Any]] = {}
        for kind, entities in (data or {}).items():
            self.load(kind, entities)

    def __repr__(self) -> str:
        return "<{} {}>".format(
            self.__class__.__name__,
            ", ".join("{}: {}".format(kind.name, len(table))
                      for kind, table in self._tables.items()),
        )

    def load(self, kind: EntityKind, entities: Iterable[Any]) -> None:
        table = self._tables.setdefault(kind, OrderedDict())
        for entity in entities:
            table[kind.identity(entity)] = entity

    def _table(self, kind: EntityKind) -> Dict[Hashable, Any]:
        return self._tables.get(kind, {})

    def _scan(self, kind: EntityKind) -> Iterator[Any]:
        return iter(list(self._table(kind).values()))

    def get_by_ids(
        self, kind: EntityKind, keys: List[Hashable],
    ) -> Dict[Hashable, Any]:
        table = self._table(kind)
        return {key: table[key] for key in keys if key in table}

    def get_by_relation(
        self, kind: EntityKind, relation: Relation, source_keys: List[Hashable],
    ) -> List[Any]:
        keys = set(source_keys)
        return [entity for entity in self._scan(kind)
                if keys.intersection(relation.extract(entity))]

    def get_all(self, kind: EntityKind) -> List[Any]:
        return list(self._scan(kind))

    def _next_id(self, kind: EntityKind) -> int:
        ids = [i for i in self._table(kind) if isinstance(i, int)]
        return max(ids, default=0) + 1

    def create(self, kind: EntityKind, values: Dict[str, Any]) -> Any:
        if kind.model is None:
            raise TypeError("{!r} has no model to create entities"
                            .format(kind))
        values = dict(values)
        values.setdefault("id", self._next_id(kind))
        entity = kind.model(**values)
        self.load(kind, [entity])
        return entity
