import threading

from concurrent.futures import ThreadPoolExecutor

import pytest

from linkvote.error import (
    ExecutionCancelledError,
    ReentrantFlushError,
    StoreUnavailableError,
    UnknownRelationError,
)
from linkvote.executors.threads import ThreadsExecutor
from linkvote.loader import BatchLoader
from linkvote.schema import LINK, USER, VOTE, create_relations
from linkvote.utils import Nothing

from .base import make_link, make_user, sample_store


@pytest.fixture(name="store")
def _store():
    return sample_store()


@pytest.fixture(name="loader")
def _loader(store):
    return BatchLoader(store, create_relations())


def test_request_returns_pending_future(store, loader):
    fut = loader.request_by_ids(LINK, [1])
    assert not fut.done()
    assert loader.pending
    assert store.calls == []


def test_same_key_in_one_cycle(store, loader):
    f1 = loader.request_by_ids(LINK, [1])
    f2 = loader.request_by_ids(LINK, [1])
    f3 = loader.request_by_ids(LINK, [1, 1])
    loader.flush()
    assert store.calls == [("ids", "Link", (1,))]
    assert f1.result()[1] is f2.result()[1] is f3.result()[1]
    assert f1.result()[1] == make_link(1, 7)


def test_same_key_in_later_cycle(store, loader):
    f1 = loader.request_by_ids(LINK, [1])
    loader.flush()
    f2 = loader.request_by_ids(LINK, [1, 2])
    assert not f2.done()
    loader.flush()
    assert store.calls == [
        ("ids", "Link", (1,)),
        ("ids", "Link", (2,)),
    ]
    assert f2.result()[1] is f1.result()[1]

    f3 = loader.request_by_ids(LINK, [2, 1])
    assert f3.done()
    assert f3.result() == {1: make_link(1, 7), 2: make_link(2, 7)}
    assert not loader.pending
    assert len(store.calls) == 2


def test_merge_overlapping_requests(store, loader):
    f1 = loader.request_by_ids(LINK, [1, 2])
    f2 = loader.request_by_ids(LINK, [2, 3])
    loader.flush()
    assert store.calls == [("ids", "Link", (1, 2, 3))]
    assert list(f1.result()) == [1, 2]
    assert list(f2.result()) == [2, 3]
    assert f1.result()[2] is f2.result()[2]


def test_relation_demultiplexing(store, loader):
    fut = loader.request_by_relation(LINK, "byUser", [7, 8, 404])
    loader.flush()
    assert store.calls == [("relation", "Link", "byUser", (7, 8, 404))]
    assert fut.result() == {
        7: [make_link(1, 7), make_link(2, 7)],
        8: [make_link(3, 8)],
        404: [],
    }


def test_relation_requests_are_merged(store, loader):
    f1 = loader.request_by_relation(LINK, "byUser", [7])
    f2 = loader.request_by_relation(LINK, "byUser", [7, 8])
    loader.flush()
    assert store.calls == [("relation", "Link", "byUser", (7, 8))]
    assert f1.result() == {7: [make_link(1, 7), make_link(2, 7)]}
    assert f2.result()[8] == [make_link(3, 8)]


def test_relation_reuses_identity_cache(store, loader):
    links = loader.request_by_relation(LINK, "byUser", [9])
    loader.flush()
    (link,) = links.result()[9]
    assert link.id == 5

    fut = loader.request_by_ids(LINK, [5])
    assert fut.done()
    assert fut.result()[5] is link
    assert not loader.pending
    assert store.calls == [("relation", "Link", "byUser", (9,))]


def test_relation_requested_twice(store, loader):
    loader.request_by_relation(LINK, "byUser", [7])
    loader.flush()
    fut = loader.request_by_relation(LINK, "byUser", [7])
    assert fut.done()
    assert len(fut.result()[7]) == 2
    assert len(store.calls) == 1


def test_same_relation_name_for_different_kinds(store, loader):
    links = loader.request_by_relation(LINK, "byUser", [8])
    votes = loader.request_by_relation(VOTE, "byUser", [8])
    loader.flush()
    assert store.calls == [
        ("relation", "Link", "byUser", (8,)),
        ("relation", "Vote", "byUser", (8,)),
    ]
    assert [link.id for link in links.result()[8]] == [3]
    assert [vote.id for vote in votes.result()[8]] == [3]


def test_unknown_relation(loader):
    with pytest.raises(UnknownRelationError) as err:
        loader.request_by_relation(USER, "byLink", [1])
    err.match("byLink")
    assert not loader.pending


def test_absent_entity(store, loader):
    fut = loader.request_by_ids(USER, [7, 404])
    loader.flush()
    assert fut.result() == {7: make_user(7), 404: Nothing}

    again = loader.request_by_ids(USER, [404])
    assert again.done()
    assert again.result() == {404: Nothing}
    assert store.calls == [("ids", "User", (7, 404))]


def test_store_returns_none(loader):
    class NoneStore(type(loader.store)):
        def get_by_ids(self, kind, keys):
            return {key: None for key in keys}

    loader = BatchLoader(NoneStore(), loader.relations)
    fut = loader.request_by_ids(USER, [7])
    loader.flush()
    assert fut.result() == {7: Nothing}


def test_empty_request(store, loader):
    fut = loader.request_by_ids(LINK, [])
    assert fut.done()
    assert fut.result() == {}
    assert not loader.pending


def test_executions_are_isolated(store):
    relations = create_relations()
    first = BatchLoader(store, relations)
    second = BatchLoader(store, relations)
    f1 = first.request_by_ids(USER, [7])
    first.flush()
    f2 = second.request_by_ids(USER, [7])
    assert not f2.done()
    second.flush()
    assert store.calls == [("ids", "User", (7,)), ("ids", "User", (7,))]
    assert f1.result() == f2.result()


def test_buckets_of_one_flush(store, loader):
    users = loader.request_by_ids(USER, [7])
    links = loader.request_by_ids(LINK, [3])
    votes = loader.request_by_relation(VOTE, "byLink", [3])
    all_users = loader.request_all(USER)
    loader.flush()
    assert store.calls == [
        ("ids", "User", (7,)),
        ("ids", "Link", (3,)),
        ("relation", "Vote", "byLink", (3,)),
        ("all", "User"),
    ]
    assert users.result()[7] is all_users.result()[0]
    assert links.result()[3] == make_link(3, 8)
    assert [v.id for v in votes.result()[3]] == [2, 3]


def test_flush_barrier(store):
    ids_done = threading.Event()
    finished = []

    class SlowStore(type(store)):
        def get_by_relation(self, kind, relation, source_keys):
            ids_done.wait(1)
            result = super().get_by_relation(kind, relation, source_keys)
            finished.append("relation")
            return result

        def get_by_ids(self, kind, keys):
            result = super().get_by_ids(kind, keys)
            finished.append("ids")
            ids_done.set()
            return result

    slow_store = SlowStore({LINK: [make_link(1, 7)],
                            USER: [make_user(7)]})
    with ThreadPoolExecutor(2) as pool:
        loader = BatchLoader(slow_store, create_relations(),
                             ThreadsExecutor(pool))
        users = loader.request_by_ids(USER, [7])
        links = loader.request_by_relation(LINK, "byUser", [7])

        observed = []
        users.add_done_callback(lambda f: observed.append(list(finished)))
        loader.flush()

    assert sorted(observed[0]) == ["ids", "relation"]
    assert users.result()[7] == make_user(7)
    assert links.result()[7] == [make_link(1, 7)]


def test_request_all(store, loader):
    fut = loader.request_all(USER)
    loader.flush()
    assert [u.id for u in fut.result()] == [7, 8, 9]

    users = loader.request_by_ids(USER, [8])
    assert users.done()
    assert users.result()[8] is fut.result()[1]
    again = loader.request_all(USER)
    assert again.done()
    assert store.calls == [("all", "User")]


def test_request_create(store, loader):
    fut = loader.request_create(USER, {
        "name": "wilma",
        "email": "wilma@example.com",
        "password": "fred",
    })
    other = loader.request_create(USER, {
        "name": "betty",
        "email": "betty@example.com",
        "password": "barney",
    })
    loader.flush()
    assert store.calls == [("create", "User"), ("create", "User")]
    user = fut.result()
    assert (user.id, user.name) == (10, "wilma")
    assert other.result().id == 11

    cached = loader.request_by_ids(USER, [10])
    assert cached.done()
    assert cached.result()[10] is user


def test_store_failure(store, loader):
    class BrokenStore(type(store)):
        def get_by_relation(self, kind, relation, source_keys):
            raise ConnectionError("database is down")

    loader = BatchLoader(BrokenStore(), loader.relations)
    users = loader.request_by_ids(USER, [7])
    links = loader.request_by_relation(LINK, "byUser", [7])
    with pytest.raises(StoreUnavailableError) as err:
        loader.flush()
    assert isinstance(err.value.__cause__, ConnectionError)

    for fut in (users, links):
        assert fut.done()
        assert isinstance(fut.exception(), StoreUnavailableError)
    assert not loader.cache.has(USER, 7)
    assert not loader.pending

    # loader is still usable after failed flush
    retry = loader.request_by_ids(USER, [7])
    assert not retry.done()


def test_reentrant_flush(loader):
    loader.request_by_ids(USER, [7])
    flush = loader.begin_flush()
    loader.request_by_ids(USER, [8])
    with pytest.raises(ReentrantFlushError):
        loader.begin_flush()
    flush.finish([{7: make_user(7)}])
    loader.flush()
    assert loader.cache.get(USER, 8) == make_user(8)


def test_cancel(store, loader):
    waiting = loader.request_by_ids(USER, [7])
    flush = loader.begin_flush()
    pending = loader.request_by_ids(USER, [8])
    loader.cancel()

    assert loader.cancelled
    assert flush.done
    assert waiting.cancelled()
    assert pending.cancelled()
    assert not loader.pending
    assert not loader.cache.has(USER, 7)

    with pytest.raises(ExecutionCancelledError):
        loader.request_by_ids(USER, [7])
    with pytest.raises(ExecutionCancelledError):
        loader.begin_flush()


def test_finish_freezes_cache(loader):
    loader.request_by_ids(USER, [7])
    loader.flush()
    loader.finish()
    with pytest.raises(TypeError):
        loader.cache.set(USER, 8, make_user(8))


def test_created_entity_is_added_to_cached_lists(store, loader):
    all_users = loader.request_all(USER)
    links = loader.request_by_relation(LINK, "byUser", [7, 8])
    loader.flush()
    assert len(all_users.result()) == 3

    user = loader.request_create(USER, {
        "name": "wilma",
        "email": "wilma@example.com",
        "password": "fred",
    })
    link = loader.request_create(LINK, {
        "url": "https://www.python.org",
        "description": "Python",
        "posted_by": 7,
    })
    loader.flush()

    again = loader.request_all(USER)
    assert again.done()
    assert again.result()[-1] is user.result()
    assert [u.id for u in again.result()] == [7, 8, 9, 10]

    by_user = loader.request_by_relation(LINK, "byUser", [7, 8])
    assert by_user.done()
    assert [li.id for li in by_user.result()[7]] == [1, 2, 6]
    assert by_user.result()[7][-1] is link.result()
    assert [li.id for li in by_user.result()[8]] == [3]
    # results of the earlier flush are not changed
    assert [li.id for li in links.result()[7]] == [1, 2]
    assert store.calls == [
        ("relation", "Link", "byUser", (7, 8)),
        ("all", "User"),
        ("create", "User"),
        ("create", "Link"),
    ]


def test_created_entity_and_uncached_relation(store, loader):
    link = loader.request_create(LINK, {
        "url": "https://www.python.org",
        "description": "Python",
        "posted_by": 9,
    })
    loader.flush()
    assert not loader.cache.has_relation(LINK, "byUser", 9)

    links = loader.request_by_relation(LINK, "byUser", [9])
    loader.flush()
    assert [li.id for li in links.result()[9]] == [5, 6]
    assert links.result()[9][1] is link.result()


def test_failed_callback_does_not_stop_fulfilment(loader):
    users = loader.request_by_ids(USER, [7])
    links = loader.request_by_ids(LINK, [1])

    def fail(_):
        raise RuntimeError("callback failed")

    users.add_done_callback(fail)
    with pytest.raises(RuntimeError, match="callback failed"):
        loader.flush()
    assert users.result() == {7: make_user(7)}
    assert links.done()
    assert links.result() == {1: make_link(1, 7)}
    assert not loader.pending


def test_failed_callback_after_store_failure(store, loader):
    class BrokenStore(type(store)):
        def get_by_ids(self, kind, keys):
            raise ConnectionError("database is down")

    loader = BatchLoader(BrokenStore(), loader.relations)
    users = loader.request_by_ids(USER, [7])
    links = loader.request_by_ids(LINK, [1])
    users.add_done_callback(lambda _: 1 / 0)
    with pytest.raises(StoreUnavailableError):
        loader.flush()
    assert isinstance(links.exception(), StoreUnavailableError)
