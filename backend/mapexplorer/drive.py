import logging
from typing import Any, List, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .models import DriveFolder, HazardZone, MapAsset, PanoramaListing
from .utils.logging import get_logger

logger = get_logger(__name__)

PANORAMA_IMAGE_PATH = "/api/panorama/image/{image_id}"


class DriveAPIError(Exception):
    """Raised when the file-listing API answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def panorama_image_url(image_id: str) -> str:
    return PANORAMA_IMAGE_PATH.format(image_id=image_id)


class DriveClient:
    """Async client for the portal's file-listing API.

    Transport failures (connection resets, timeouts) are retried here; HTTP
    error statuses are surfaced immediately as :class:`DriveAPIError`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def open(self) -> None:
        if self.session is None:
            self.session = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )

    async def aclose(self) -> None:
        if self.session is not None:
            await self.session.aclose()
            self.session = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _get_json(self, path: str) -> Any:
        if self.session is None:
            self.open()

        response = await self.session.get(path)
        if response.status_code >= 400:
            logger.error(
                "File API request failed",
                extra={'path': path, 'status_code': response.status_code},
            )
            raise DriveAPIError(f"HTTP {response.status_code} for {path}", status_code=response.status_code)

        return response.json()

    async def list_hazards(self) -> List[HazardZone]:
        payload = await self._get_json("/api/maps/hazards")
        return [HazardZone.model_validate(item) for item in payload or []]

    async def list_assets(self) -> List[MapAsset]:
        payload = await self._get_json("/api/maps/assets")
        return [MapAsset.model_validate(item) for item in payload or []]

    async def list_layer_folders(self, endpoint: str) -> List[DriveFolder]:
        """Fetch the top-level folder tree for a layer endpoint."""
        payload = await self._get_json(endpoint)
        folders = [DriveFolder.model_validate(item) for item in payload or []]
        logger.info(f"Retrieved {len(folders)} folders from {endpoint}")
        return folders

    async def get_subfolder(self, folder_id: str) -> DriveFolder:
        payload = await self._get_json(f"/api/maps/subfolder/{folder_id}")
        return DriveFolder.model_validate(payload)

    async def list_panoramas(self) -> PanoramaListing:
        payload = await self._get_json("/api/panorama")
        listing = PanoramaListing.model_validate(payload or {})
        logger.info(f"Retrieved {len(listing.allImages)} panorama images")
        return listing
