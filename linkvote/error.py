__all__ = [
    "LinkvoteError",
    "DuplicateRelationError",
    "UnknownRelationError",
    "StoreUnavailableError",
    "ReentrantFlushError",
    "ExecutionCancelledError",
]


class LinkvoteError(Exception):
    pass


class DuplicateRelationError(LinkvoteError):
    def __init__(self, kind_name: str, relation_name: str) -> None:
        super().__init__(
            "Relation {!r} is already registered for {!r}"
            .format(relation_name, kind_name)
        )
        self.kind_name = kind_name
        self.relation_name = relation_name


class UnknownRelationError(LinkvoteError, KeyError):
    def __init__(self, kind_name: str, relation_name: str) -> None:
        super().__init__(
            "Relation {!r} is not registered for {!r}"
            .format(relation_name, kind_name)
        )
        self.kind_name = kind_name
        self.relation_name = relation_name

    def __str__(self) -> str:
        return str(self.args[0])


class StoreUnavailableError(LinkvoteError):
    """Store call failed, all requests of the flush fail with it"""


class ReentrantFlushError(LinkvoteError):
    pass


class ExecutionCancelledError(LinkvoteError):
    pass
