import pytest

from linkvote.query import Node, Field, Link
from linkvote.builder import build, Q, M


def test():
    query = build([
        Q.newest << Q.link(id=3),
        Q.feed << Q.allLinks[
            Q.url
        ],
        Q.users(ids=[1, 2])[
            Q.name,
            Q.links[Q.url, Q.description],
        ],
    ])
    assert query == Node([
        Field("link", options={"id": 3}, alias="newest"),
        Link("allLinks", Node([Field("url")]), alias="feed"),
        Link("users", Node([
            Field("name"),
            Link("links", Node([Field("url"), Field("description")])),
        ]), {"ids": [1, 2]}),
    ])
    assert not query.ordered
    assert query.fields[1].result_key == "feed"
    assert query.fields[2].result_key == "users"


def test_mutation():
    query = build([
        M.createUser(name="wilma", email="wilma@example.com",
                     password="fred")[Q.id],
        M.createVote(userId=2, linkId=1)[Q.id],
        Q.again << M.createVote(userId=2, linkId=3)[Q.id],
    ])
    assert query.ordered
    assert query == Node([
        Link("createUser", Node([Field("id")]), {
            "name": "wilma",
            "email": "wilma@example.com",
            "password": "fred",
        }),
        Link("createVote", Node([Field("id")]), {"userId": 2, "linkId": 1}),
        Link("createVote", Node([Field("id")]), {"userId": 2, "linkId": 3},
             alias="again"),
    ], ordered=True)


def test_query_and_mutation():
    with pytest.raises(TypeError) as err:
        build([Q.allLinks[Q.id], M.createUser(name="wilma")[Q.id]])
    err.match("can not be mixed")


def test_references_are_reused():
    url = Q.url
    first = Q.link(id=1)[url]
    second = Q.other << Q.link(id=2)[url, Q.description]
    assert build([first, second]) == Node([
        Link("link", Node([Field("url")]), {"id": 1}),
        Link("link", Node([Field("url"), Field("description")]), {"id": 2},
             alias="other"),
    ])


def test_invalid_references():
    with pytest.raises(TypeError):
        Q.link(id=1)(id=2)
    with pytest.raises(TypeError):
        Q.link[Q.id][Q.url]
    with pytest.raises(TypeError):
        Q.other(x=1) << Q.link
    with pytest.raises(AttributeError):
        Q.link.url
    with pytest.raises(TypeError):
        build([Q])


def test_repr():
    assert repr(Q.allLinks) == "<FieldRef allLinks>"
    assert repr(Q.feed << Q.allLinks) == "<FieldRef feed:allLinks>"
    assert repr(M.createUser) == "<FieldRef mutation createUser>"


def test_duplicated_result_key():
    with pytest.raises(ValueError) as err:
        build([Q.link(id=1)[Q.url], Q.link(id=2)[Q.url]])
    err.match('Duplicated result key "link"')

    query = build([Q.link(id=1)[Q.url], Q.other << Q.link(id=2)[Q.url]])
    assert [f.result_key for f in query.fields] == ["link", "other"]
