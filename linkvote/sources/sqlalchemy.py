import logging

from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
)

import sqlalchemy
from sqlalchemy.engine import Engine, Row
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import BinaryExpression

from ..kinds import EntityKind
from ..relations import Relation
from ..store import BaseStore


log = logging.getLogger(__name__)


def _table_repr(table: sqlalchemy.Table) -> str:
    return "Table({})".format(
        ", ".join(
            [
                repr(table.name),
                repr(table.metadata),
                "...",
                "schema={!r}".format(table.schema),
            ]
        )
    )


class SqlAlchemyStore(BaseStore):
    """Store backed by SQLAlchemy tables

    Example::

        store = SqlAlchemyStore(
            sa_engine,
            {LINK: links_table, USER: users_table},
            relation_columns={LINKS_BY_USER: links_table.c.posted_by},
        )

    Every kind is mapped to a table with a single column primary key, rows
    are converted into entities by calling kind's model with row values as
    keyword arguments. Relations listed in ``relation_columns`` are fetched
    with one ``WHERE column IN (...)`` query, other relations are resolved
    by applying relation's extractor to all rows of the table.
    """

    def __init__(
        self,
        engine: Engine,
        tables: Mapping[EntityKind, sqlalchemy.Table],
        *,
        relation_columns: Optional[
            Mapping[Relation, sqlalchemy.Column]
        ] = None,
    ) -> None:
        self.engine = engine
        self.tables = dict(tables)
        self.relation_columns = dict(relation_columns or {})
        for relation, column in self.relation_columns.items():
            table = self.tables[relation.target]
            if column.table is not table:
                raise ValueError(
                    "Column {!r} of the relation {!r} should belong to "
                    "the table {}".format(column, relation, _table_repr(table))
                )

    def __repr__(self) -> str:
        return "<{}.{}: engine={!r}, tables={!r}>".format(
            self.__class__.__module__,
            self.__class__.__name__,
            self.engine,
            [table.name for table in self.tables.values()],
        )

    def _table(self, kind: EntityKind) -> sqlalchemy.Table:
        try:
            return self.tables[kind]
        except KeyError:
            raise KeyError("Table for {!r} is not configured".format(kind))

    def _primary_key(self, kind: EntityKind) -> sqlalchemy.Column:
        # currently only one column supported
        (primary_key,) = self._table(kind).primary_key
        return primary_key

    def _entity(self, kind: EntityKind, row: Row) -> Any:
        values = dict(row._mapping)
        if kind.model is None:
            return values
        return kind.model(**values)

    def in_impl(
        self, column: sqlalchemy.Column, values: Iterable
    ) -> BinaryExpression:
        return column.in_(values)

    def _fetch(self, kind: EntityKind, expr: Select) -> List[Any]:
        with self.engine.connect() as connection:
            rows = connection.execute(expr).fetchall()
        return [self._entity(kind, row) for row in rows]

    def get_by_ids(
        self, kind: EntityKind, keys: List[Hashable]
    ) -> Dict[Hashable, Any]:
        filtered_keys = [k for k in keys if k is not None]
        if not filtered_keys:
            return {}
        expr = sqlalchemy.select(self._table(kind)).where(
            self.in_impl(self._primary_key(kind), filtered_keys)
        )
        return {kind.identity(e): e for e in self._fetch(kind, expr)}

    def get_by_relation(
        self, kind: EntityKind, relation: Relation, source_keys: List[Hashable]
    ) -> List[Any]:
        filtered_keys = [k for k in source_keys if k is not None]
        if not filtered_keys:
            return []
        column = self.relation_columns.get(relation)
        if column is None:
            keys = set(filtered_keys)
            return [
                entity
                for entity in self.get_all(kind)
                if keys.intersection(relation.extract(entity))
            ]
        expr = (
            sqlalchemy.select(self._table(kind))
            .where(self.in_impl(column, filtered_keys))
            .order_by(self._primary_key(kind))
        )
        return self._fetch(kind, expr)

    def get_all(self, kind: EntityKind) -> List[Any]:
        table = self._table(kind)
        expr = sqlalchemy.select(table).order_by(self._primary_key(kind))
        return self._fetch(kind, expr)

    def create(self, kind: EntityKind, values: Dict[str, Any]) -> Any:
        table = self._table(kind)
        primary_key = self._primary_key(kind)
        with self.engine.begin() as connection:
            result = connection.execute(table.insert().values(**values))
            (ident,) = result.inserted_primary_key
            row = connection.execute(
                sqlalchemy.select(table).where(primary_key == ident)
            ).one()
        log.debug("Created %s[%r]", kind.name, ident)
        return self._entity(kind, row)
