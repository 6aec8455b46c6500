from collections import defaultdict
from typing import (
    Any,
    DefaultDict,
    Dict,
    Hashable,
    Iterable,
    List,
    Tuple,
)

from prometheus_client import Counter

from .kinds import EntityKind
from .relations import Relation
from .utils import Nothing


RESULT_CACHE_HITS = Counter(
    name="linkvote_cache_hits",
    documentation="Entity lookups served from the execution cache",
    labelnames=["kind"],
)
RESULT_CACHE_MISSES = Counter(
    name="linkvote_cache_misses",
    documentation="Entity lookups forwarded to the store",
    labelnames=["kind"],
)

_RelationKey = Tuple[EntityKind, str]


class ResultCache:
    """Results of the store calls made during one execution

    Every entry is written once: the first stored value wins, so all
    requests for the same key observe an identical value. Absent keys are
    stored as :py:data:`~linkvote.utils.Nothing`. Cached lists only grow
    when entities are created.
    """

    def __init__(self) -> None:
        self._entities: DefaultDict[EntityKind, Dict[Hashable, Any]] = \
            defaultdict(dict)
        self._relations: DefaultDict[_RelationKey, Dict[Hashable, tuple]] = \
            defaultdict(dict)
        self._all: Dict[EntityKind, tuple] = {}
        self._finished = False

    def __repr__(self) -> str:
        return "<{} entities={} relations={}>".format(
            self.__class__.__name__,
            sum(map(len, self._entities.values())),
            sum(map(len, self._relations.values())),
        )

    def _check_open(self) -> None:
        if self._finished:
            raise TypeError("{} is finished and can not be updated"
                            .format(self.__class__.__name__))

    def has(self, kind: EntityKind, key: Hashable) -> bool:
        return key in self._entities.get(kind, ())

    def get(self, kind: EntityKind, key: Hashable) -> Any:
        return self._entities[kind][key]

    def missing(self, kind: EntityKind, keys: List[Hashable]) -> List:
        """Returns keys which are not cached yet, and records hits/misses"""
        cached = self._entities.get(kind, {})
        missing = [k for k in keys if k not in cached]
        hits = len(keys) - len(missing)
        if hits:
            RESULT_CACHE_HITS.labels(kind.name).inc(hits)
        if missing:
            RESULT_CACHE_MISSES.labels(kind.name).inc(len(missing))
        return missing

    def set(self, kind: EntityKind, key: Hashable, value: Any) -> Any:
        self._check_open()
        return self._entities[kind].setdefault(key, value)

    def set_absent(self, kind: EntityKind, key: Hashable) -> None:
        self.set(kind, key, Nothing)

    def add(self, kind: EntityKind, entity: Any) -> Any:
        """Stores entity by its identity, returns the cached instance"""
        return self.set(kind, kind.identity(entity), entity)

    def has_relation(
        self, kind: EntityKind, relation: str, source_key: Hashable,
    ) -> bool:
        return source_key in self._relations.get((kind, relation), ())

    def missing_relation(
        self, kind: EntityKind, relation: str, source_keys: Iterable[Hashable],
    ) -> List:
        cached = self._relations.get((kind, relation), {})
        return [k for k in source_keys if k not in cached]

    def set_relation(
        self,
        kind: EntityKind,
        relation: str,
        source_key: Hashable,
        entities: Iterable[Any],
    ) -> tuple:
        self._check_open()
        return self._relations[(kind, relation)].setdefault(
            source_key, tuple(self.add(kind, e) for e in entities),
        )

    def has_all(self, kind: EntityKind) -> bool:
        return kind in self._all

    def get_all(self, kind: EntityKind) -> tuple:
        return self._all[kind]

    def set_all(self, kind: EntityKind, entities: Iterable[Any]) -> tuple:
        self._check_open()
        if kind not in self._all:
            self._all[kind] = tuple(self.add(kind, e) for e in entities)
        return self._all[kind]

    def add_created(
        self, kind: EntityKind, entity: Any, relations: Iterable[Relation],
    ) -> Any:
        """Stores just created entity and appends it to the cached lists it
        belongs to: lists of all entities of the kind and relation lists of
        the source keys returned by the relation extractors
        """
        cached = self.add(kind, entity)
        if cached is not entity:
            return cached
        if kind in self._all:
            self._all[kind] += (entity,)
        for relation in relations:
            assert relation.target == kind, (relation, kind)
            lists = self._relations.get((kind, relation.name), {})
            for key in relation.extract(entity):
                if key in lists:
                    lists[key] += (entity,)
        return entity

    def lookup(
        self, kind: EntityKind, keys: Iterable[Hashable],
    ) -> Dict[Hashable, Any]:
        entities = self._entities[kind]
        return {k: entities[k] for k in keys}

    def lookup_relation(
        self, kind: EntityKind, relation: str, source_keys: Iterable[Hashable],
    ) -> Dict[Hashable, List]:
        relations = self._relations[(kind, relation)]
        return {k: list(relations[k]) for k in source_keys}

    def finish(self) -> None:
        self._finished = True
        self._entities.default_factory = None
        self._relations.default_factory = None
