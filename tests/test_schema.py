import pytest

from linkvote.builder import build, Q, M
from linkvote.config import Settings, configure
from linkvote.schema import GRAPH, MUTATION_GRAPH

from .base import check_result


LINKS_QUERY = build([
    Q.allLinks[
        Q.url,
        Q.postedBy[Q.name],
        Q.votes[Q.user[Q.email]],
    ],
])


@pytest.fixture(name="engine")
def _engine():
    return configure(Settings())


def test_links(engine):
    result = engine.execute(GRAPH, LINKS_QUERY)
    check_result(result, {
        "allLinks": [
            {
                "url": "http://howtographql.com",
                "postedBy": {"name": "mario"},
                "votes": [{"user": {"email": "mario@example.com"}}],
            },
            {
                "url": "http://graphql.org",
                "postedBy": {"name": "mario"},
                "votes": [
                    {"user": {"email": "mario@example.com"}},
                    {"user": {"email": "fred@flinstones.com"}},
                ],
            },
            {
                "url": "https://facebook.github.io/graphql/",
                "postedBy": {"name": "Fred"},
                "votes": [{"user": {"email": "mario@example.com"}}],
            },
        ],
    })


def test_users(engine):
    result = engine.execute(GRAPH, build([
        Q.allUsers[Q.name, Q.links[Q.id], Q.votes[Q.link[Q.id]]],
        Q.votes(ids=[4])[Q.createdAt],
    ]))
    assert result == {
        "allUsers": [
            {
                "name": "mario",
                "links": [{"id": 1}, {"id": 2}],
                "votes": [
                    {"link": {"id": 1}},
                    {"link": {"id": 2}},
                    {"link": {"id": 3}},
                ],
            },
            {
                "name": "Fred",
                "links": [{"id": 3}],
                "votes": [{"link": {"id": 2}}],
            },
        ],
        "votes": [{"createdAt": "2017-10-05T00:00:00"}],
    }


def test_mutations(engine):
    result = engine.execute(MUTATION_GRAPH, build([
        M.createUser(name="Wilma", email="wilma@flinstones.com",
                     password="fred")[Q.id],
        M.createLink(url="https://www.python.org",
                     description="Python", postedBy=3)[
            Q.id,
            Q.postedBy[Q.name],
        ],
        M.createVote(userId=3, linkId=4)[Q.link[Q.description]],
    ]))
    assert result == {
        "createUser": {"id": 3},
        "createLink": {"id": 4, "postedBy": {"name": "Wilma"}},
        "createVote": {"link": {"description": "Python"}},
    }

    # next execution reads created entities from the database
    result = engine.execute(GRAPH, build([
        Q.link(id=4)[Q.votes[Q.user[Q.name]]],
    ]))
    assert result == {"link": {"votes": [{"user": {"name": "Wilma"}}]}}


def test_created_votes_are_listed(engine):
    vote = Q.id, Q.link[Q.votes[Q.id]]
    result = engine.execute(MUTATION_GRAPH, build([
        M.createVote(userId=2, linkId=1)[vote],
        Q.second << M.createVote(userId=2, linkId=1)[vote],
    ]))
    assert result == {
        "createVote": {"id": 5, "link": {"votes": [{"id": 1}, {"id": 5}]}},
        "second": {
            "id": 6,
            "link": {"votes": [{"id": 1}, {"id": 5}, {"id": 6}]},
        },
    }


@pytest.mark.asyncio
async def test_asyncio_executor():
    engine = configure(Settings(executor="asyncio"))
    result = await engine.execute(GRAPH, LINKS_QUERY)
    assert [link["postedBy"]["name"] for link in result["allLinks"]] == [
        "mario",
        "mario",
        "Fred",
    ]
