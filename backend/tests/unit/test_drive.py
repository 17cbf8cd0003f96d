import asyncio

import httpx
import pytest
from tenacity import wait_none

from mapexplorer.drive import DriveAPIError, DriveClient, panorama_image_url


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(DriveClient._get_json.retry, "wait", wait_none())


def _client(handler):
    return DriveClient("http://files.test", transport=httpx.MockTransport(handler))


def test_get_subfolder_parses_listing():
    def handler(request):
        assert request.url.path == "/api/maps/subfolder/sf1"
        return httpx.Response(200, json={
            "id": "sf1",
            "name": "Albay",
            "files": [
                {"id": "d1", "name": "Flood 2024.pdf", "mimeType": "application/pdf", "folder": "sf1"},
                {"id": "i1", "name": "Aerial.png", "mimeType": "image/png", "thumbnailLink": "https://thumbs/i1"},
            ],
            "subfolders": [{"id": "sf2", "name": "Legazpi", "hasSubfolders": True}],
            "hasSubfolders": True,
        })

    async def scenario():
        async with _client(handler) as client:
            return await client.get_subfolder("sf1")

    folder = asyncio.run(scenario())
    assert folder.name == "Albay"
    assert [f.kind for f in folder.files] == ["document", "image"]
    assert folder.subfolders == ["sf2"]


def test_list_panoramas():
    def handler(request):
        return httpx.Response(200, json={
            "folders": [{"id": "pf", "name": "Volcano"}],
            "allImages": [{"id": "img1", "name": "Mayon.jpg", "folder": "Volcano"}],
        })

    async def scenario():
        async with _client(handler) as client:
            return await client.list_panoramas()

    listing = asyncio.run(scenario())
    image = listing.allImages[0].to_drive_file()
    assert image.mimeType == "image/jpeg"
    assert image.folder == "Volcano"


def test_http_error_raises_drive_error():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(503, json={"error": "unavailable"})

    async def scenario():
        async with _client(handler) as client:
            await client.list_layer_folders("/api/maps/topographic")

    with pytest.raises(DriveAPIError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status_code == 503
    assert calls == ["/api/maps/topographic"]


def test_transport_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request.url.path)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json=[{"id": "h1", "name": "Lahar", "severity": "high"}])

    async def scenario():
        async with _client(handler) as client:
            return await client.list_hazards()

    hazards = asyncio.run(scenario())
    assert len(attempts) == 3
    assert hazards[0].model_dump()["severity"] == "high"


def test_panorama_image_url():
    assert panorama_image_url("abc") == "/api/panorama/image/abc"


def test_layer_tree_with_subfolder_ids():
    def handler(request):
        return httpx.Response(200, json=[
            {
                "id": "f1",
                "name": "Flood Maps",
                "files": [],
                "subfolders": ["sf1", "sf2"],
                "hasSubfolders": True,
            },
            {"id": "f2", "name": "Landslide Maps", "subfolders": None},
        ])

    async def scenario():
        async with _client(handler) as client:
            return await client.list_layer_folders("/api/maps/hazards-files")

    folders = asyncio.run(scenario())
    assert folders[0].subfolders == ["sf1", "sf2"]
    assert folders[1].subfolders == []
