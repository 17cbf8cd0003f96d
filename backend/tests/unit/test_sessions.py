import asyncio

import pytest

from mapexplorer.utils.sessions import SessionNotFound, SessionStore


class PageStub:
    def __init__(self):
        self.closed = 0

    async def close(self):
        self.closed += 1


def test_unknown_session_raises():
    store = SessionStore(max_size=4, ttl=60)
    with pytest.raises(SessionNotFound):
        store.get("missing")
    assert store.get_stats()['misses'] == 1


def test_get_returns_added_page():
    store = SessionStore(max_size=4, ttl=60)
    page = PageStub()
    session_id = store.new_id()
    store.add(session_id, page)

    assert store.get(session_id) is page
    assert len(store) == 1
    assert store.remove(session_id) is page
    assert store.remove(session_id) is None


def test_size_eviction_closes_page():
    store = SessionStore(max_size=1, ttl=60)
    first, second = PageStub(), PageStub()

    async def scenario():
        store.add("a", first)
        store.add("b", second)
        await store.close_all()

    asyncio.run(scenario())
    assert first.closed == 1
    assert second.closed == 1
    assert store.get_stats()['evicted'] == 1
    assert len(store) == 0


def test_close_all_closes_each_page_once():
    store = SessionStore(max_size=4, ttl=60)
    pages = [PageStub() for _ in range(3)]

    async def scenario():
        for index, page in enumerate(pages):
            store.add(f"s{index}", page)
        await store.close_all()

    asyncio.run(scenario())
    assert [page.closed for page in pages] == [1, 1, 1]
    assert store.get_stats()['evicted'] == 0


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_idle_session_is_closed_on_lookup():
    clock = FakeClock()
    store = SessionStore(max_size=4, ttl=60, timer=clock)
    page = PageStub()

    async def scenario():
        store.add("idle", page)
        clock.now += 30
        assert store.get("idle") is page

        clock.now += 61
        with pytest.raises(SessionNotFound):
            store.get("idle")
        await store.close_all()

    asyncio.run(scenario())
    assert page.closed == 1
    assert store.get_stats()['evicted'] == 1
    assert len(store) == 0
