"""
    linkvote.schema
    ~~~~~~~~~~~~~~~

    Links, users and votes: tables, entity kinds, relations and graphs.

"""
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Unicode,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .fetch import (
    Create,
    FetchAll,
    FetchByIds,
    FetchByRelation,
    FetchMany,
    FetchOne,
)
from .graph import Field, Graph, Link, Many, Maybe, Node, One, Option, Root
from .kinds import EntityKind
from .models import Link as LinkModel, User as UserModel, Vote as VoteModel
from .relations import Relation, RelationIndex
from .sources.sqlalchemy import SqlAlchemyStore


LINK = EntityKind("Link", LinkModel)
USER = EntityKind("User", UserModel)
VOTE = EntityKind("Vote", VoteModel)

LINKS_BY_USER = Relation("byUser", USER, LINK, lambda link: [link.posted_by])
VOTES_BY_USER = Relation("byUser", USER, VOTE, lambda vote: [vote.user_id])
VOTES_BY_LINK = Relation("byLink", LINK, VOTE, lambda vote: [vote.link_id])


def create_relations() -> RelationIndex:
    return RelationIndex([LINKS_BY_USER, VOTES_BY_USER, VOTES_BY_LINK])


metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Unicode, nullable=False),
    Column("email", Unicode, nullable=False),
    Column("password", Unicode, nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

links_table = Table(
    "links",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("url", Unicode, nullable=False),
    Column("description", Unicode, nullable=False),
    Column("posted_by", ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

votes_table = Table(
    "votes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", ForeignKey("users.id"), nullable=False),
    Column("link_id", ForeignKey("links.id"), nullable=False),
    Column("created_at", DateTime, nullable=False, default=datetime.now),
)

TABLES = {LINK: links_table, USER: users_table, VOTE: votes_table}

RELATION_COLUMNS = {
    LINKS_BY_USER: links_table.c.posted_by,
    VOTES_BY_USER: votes_table.c.user_id,
    VOTES_BY_LINK: votes_table.c.link_id,
}

SAMPLE_DATA: Dict[EntityKind, List[Dict[str, Any]]] = {
    USER: [
        dict(id=1, name="mario", email="mario@example.com",
             password="s3cr3t", created_at=datetime(2017, 9, 1)),
        dict(id=2, name="Fred", email="fred@flinstones.com",
             password="wilmalove", created_at=datetime(2017, 9, 2)),
    ],
    LINK: [
        dict(id=1, url="http://howtographql.com",
             description="Awesome community driven GraphQL tutorial",
             posted_by=1, created_at=datetime(2017, 9, 12)),
        dict(id=2, url="http://graphql.org",
             description="Official GraphQL web page",
             posted_by=1, created_at=datetime(2017, 10, 1)),
        dict(id=3, url="https://facebook.github.io/graphql/",
             description="GraphQL specification",
             posted_by=2, created_at=datetime(2017, 10, 2)),
    ],
    VOTE: [
        dict(id=1, user_id=1, link_id=1, created_at=datetime(2017, 10, 3)),
        dict(id=2, user_id=1, link_id=2, created_at=datetime(2017, 10, 3)),
        dict(id=3, user_id=1, link_id=3, created_at=datetime(2017, 10, 4)),
        dict(id=4, user_id=2, link_id=2, created_at=datetime(2017, 10, 5)),
    ],
}


def sample_entities() -> Dict[EntityKind, List[Any]]:
    assert all(kind.model is not None for kind in SAMPLE_DATA)
    return {
        kind: [kind.model(**row) for row in rows]  # type: ignore[misc]
        for kind, rows in SAMPLE_DATA.items()
    }


def setup_db(sa_engine: Engine, sample_data: bool = True) -> None:
    metadata.create_all(sa_engine)
    if sample_data:
        with sa_engine.begin() as connection:
            for kind in (USER, LINK, VOTE):
                connection.execute(TABLES[kind].insert(), SAMPLE_DATA[kind])


def create_store(
    url: str = "sqlite://", sample_data: bool = True
) -> SqlAlchemyStore:
    if url.startswith("sqlite"):
        sa_engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        sa_engine = create_engine(url)
    setup_db(sa_engine, sample_data)
    return SqlAlchemyStore(
        sa_engine, TABLES, relation_columns=RELATION_COLUMNS
    )


def _isoformat(entity: Any) -> str:
    return entity.created_at.isoformat()


GRAPH = Graph(
    [
        Node(
            "Link",
            [
                Field("id"),
                Field("url"),
                Field("description"),
                Field("createdAt", _isoformat),
                Link("postedBy", Maybe, "User", FetchByIds(USER),
                     requires="posted_by"),
                Link("votes", Many, "Vote", FetchByRelation(VOTE, "byLink"),
                     requires="id"),
            ],
        ),
        Node(
            "User",
            [
                Field("id"),
                Field("name"),
                Field("email"),
                Field("createdAt", _isoformat),
                Link("links", Many, "Link", FetchByRelation(LINK, "byUser"),
                     requires="id"),
                Link("votes", Many, "Vote", FetchByRelation(VOTE, "byUser"),
                     requires="id"),
            ],
        ),
        Node(
            "Vote",
            [
                Field("id"),
                Field("createdAt", _isoformat),
                Link("user", Maybe, "User", FetchByIds(USER),
                     requires="user_id"),
                Link("link", Maybe, "Link", FetchByIds(LINK),
                     requires="link_id"),
            ],
        ),
        Root(
            [
                Link("allLinks", Many, "Link", FetchAll(LINK)),
                Link("link", Maybe, "Link", FetchOne(LINK),
                     options=[Option("id")]),
                Link("links", Many, "Link", FetchMany(LINK),
                     options=[Option("ids")]),
                Link("allUsers", Many, "User", FetchAll(USER)),
                Link("users", Many, "User", FetchMany(USER),
                     options=[Option("ids")]),
                Link("allVotes", Many, "Vote", FetchAll(VOTE)),
                Link("votes", Many, "Vote", FetchMany(VOTE),
                     options=[Option("ids")]),
            ]
        ),
    ]
)

MUTATION_GRAPH = Graph.from_graph(
    GRAPH,
    Root(
        [
            Link("createUser", One, "User", Create(USER),
                 options=[Option("name"), Option("email"),
                          Option("password")]),
            Link("createLink", One, "Link",
                 Create(LINK, {"postedBy": "posted_by"}),
                 options=[Option("url"), Option("description"),
                          Option("postedBy")]),
            Link("createVote", One, "Vote",
                 Create(VOTE, {"userId": "user_id", "linkId": "link_id"}),
                 options=[Option("userId"), Option("linkId")]),
        ]
    ),
)
