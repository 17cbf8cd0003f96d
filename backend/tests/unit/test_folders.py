import asyncio

import httpx

from mapexplorer.drive import DriveClient
from mapexplorer.folders import FolderCache
from mapexplorer.models import DriveFolder, FolderStatus


class ListingStub:
    def __init__(self, fail_times=0):
        self.calls = []
        self.fail_times = fail_times
        self.gate = None

    async def __call__(self, folder_id):
        self.calls.append(folder_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("HTTP 500")
        return DriveFolder(id=folder_id, name=f"Folder {folder_id}")


def test_ensure_fetches_each_folder_once():
    listing = ListingStub()
    cache = FolderCache(listing)

    async def scenario():
        for _ in range(4):
            await cache.ensure("sf1", True)

    asyncio.run(scenario())

    assert listing.calls == ["sf1"]
    assert cache.get("sf1").name == "Folder sf1"
    assert cache.status("sf1") == FolderStatus.LOADED
    assert cache.stats['hits'] == 3


def test_racing_ensures_collapse_to_one_fetch():
    listing = ListingStub()
    cache = FolderCache(listing)

    async def scenario():
        listing.gate = asyncio.Event()
        first = asyncio.create_task(cache.ensure("sf1"))
        await asyncio.sleep(0)
        assert cache.is_loading("sf1")
        assert cache.status("sf1") == FolderStatus.LOADING
        await cache.ensure("sf1")
        listing.gate.set()
        await first

    asyncio.run(scenario())
    assert listing.calls == ["sf1"]
    assert cache.loading == []


def test_folder_without_subfolders_is_not_fetched():
    listing = ListingStub()
    cache = FolderCache(listing)

    asyncio.run(cache.ensure("leaf", False))

    assert listing.calls == []
    assert cache.get("leaf") is None


def test_failed_fetch_leaves_entry_absent_and_allows_retry():
    listing = ListingStub(fail_times=1)
    cache = FolderCache(listing)

    asyncio.run(cache.ensure("sf1"))
    assert cache.get("sf1") is None
    assert cache.status("sf1") == FolderStatus.FAILED
    assert not cache.is_loading("sf1")

    asyncio.run(cache.ensure("sf1"))
    assert cache.get("sf1") is not None
    assert listing.calls == ["sf1", "sf1"]


def test_clear_drops_entries_and_in_flight_results():
    listing = ListingStub()
    cache = FolderCache(listing)

    async def scenario():
        await cache.ensure("sf1")
        listing.gate = asyncio.Event()
        pending = asyncio.create_task(cache.ensure("sf2"))
        await asyncio.sleep(0)
        cache.clear()
        listing.gate.set()
        await pending

    asyncio.run(scenario())

    assert cache.get("sf1") is None
    assert cache.get("sf2") is None
    assert cache.status("sf2") == FolderStatus.IDLE
    assert cache.loading == []


def test_listing_with_subfolder_ids_loads():
    def handler(request):
        assert request.url.path == "/api/maps/subfolder/f1"
        return httpx.Response(200, json={
            "id": "f1",
            "name": "Albay",
            "files": [{"id": "d1", "name": "Legazpi Flood.pdf", "mimeType": "application/pdf"}],
            "subfolders": ["sf1", "sf2"],
            "hasSubfolders": True,
        })

    client = DriveClient("http://files.test", transport=httpx.MockTransport(handler))
    cache = FolderCache(client.get_subfolder)

    async def scenario():
        async with client:
            await cache.ensure("f1")

    asyncio.run(scenario())

    assert cache.status("f1") == FolderStatus.LOADED
    assert cache.get("f1").subfolders == ["sf1", "sf2"]
