"""
    linkvote.fetch
    ~~~~~~~~~~~~~~

    Ready to use link functions, which turn links into loader requests::

        Node("link", [
            Link("postedBy", Maybe, "user", FetchByIds(USER),
                 requires="posted_by"),
            Link("votes", Many, "vote", FetchByRelation(VOTE, "byLink"),
                 requires="id"),
        ])

"""
from typing import Any, Dict, Hashable, List, Mapping, Optional

from .future import PendingFuture
from .kinds import EntityKind
from .loader import BatchLoader
from .utils import Nothing


class _KindFetch:

    def __init__(self, kind: EntityKind) -> None:
        self.kind = kind

    def __repr__(self) -> str:
        return "<{}.{}: kind={!r}>".format(
            self.__class__.__module__,
            self.__class__.__name__,
            self.kind,
        )


class FetchByIds(_KindFetch):
    """Link from entities to entities of the ``kind`` by their identity"""

    def __call__(
        self, loader: BatchLoader, keys: List[Hashable],
    ) -> PendingFuture[List]:
        return loader.request_by_ids(self.kind, keys).then(
            lambda found: [found[key] for key in keys]
        )


class FetchByRelation(_KindFetch):
    """Link from entities to the lists of related entities of the ``kind``"""

    def __init__(self, kind: EntityKind, relation: str) -> None:
        super().__init__(kind)
        self.relation = relation

    def __repr__(self) -> str:
        return "<{}.{}: kind={!r}, relation={!r}>".format(
            self.__class__.__module__,
            self.__class__.__name__,
            self.kind,
            self.relation,
        )

    def __call__(
        self, loader: BatchLoader, keys: List[Hashable],
    ) -> PendingFuture[List[List]]:
        return loader.request_by_relation(self.kind, self.relation, keys).then(
            lambda related: [related[key] for key in keys]
        )


class FetchAll(_KindFetch):
    """Root link to all entities of the ``kind``"""

    def __call__(self, loader: BatchLoader) -> PendingFuture[List]:
        return loader.request_all(self.kind)


class FetchOne(_KindFetch):
    """Root link to the entity, which identity is passed as an option"""

    def __init__(self, kind: EntityKind, option: str = "id") -> None:
        super().__init__(kind)
        self.option = option

    def __call__(self, loader: BatchLoader, **options: Any) -> PendingFuture:
        key = options[self.option]
        return loader.request_by_ids(self.kind, [key]).then(
            lambda found: found[key]
        )


class FetchMany(_KindFetch):
    """Root link to the entities, which identities are passed as an option

    Missing entities are skipped.
    """

    def __init__(self, kind: EntityKind, option: str = "ids") -> None:
        super().__init__(kind)
        self.option = option

    def __call__(
        self, loader: BatchLoader, **options: Any,
    ) -> PendingFuture[List]:
        keys = list(options[self.option])
        return loader.request_by_ids(self.kind, keys).then(
            lambda found: [found[key] for key in keys
                           if found[key] is not Nothing]
        )


class Create(_KindFetch):
    """Root mutation link, which creates entity of the ``kind``

    :param kind: kind of the entity
    :param params: mapping of link options to the entity attributes,
                   options with the same names are used when omitted
    """

    def __init__(
        self,
        kind: EntityKind,
        params: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(kind)
        self.params = dict(params or {})

    def __call__(self, loader: BatchLoader, **options: Any) -> PendingFuture:
        values: Dict[str, Any] = {
            self.params.get(name, name): value
            for name, value in options.items()
        }
        return loader.request_create(self.kind, values)
