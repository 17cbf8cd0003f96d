import asyncio
from typing import List, Optional

from .catalog import DEFAULT_MOUSE_COORDS
from .drawing import AnnotationEngine, FeatureStore
from .drive import DriveClient
from .folders import FolderCache
from .layers import LayerManager
from .models import (
    CollectionView,
    DriveFile,
    DriveFolder,
    HazardZone,
    ImageModalView,
    LatLng,
    LayerType,
    MapAsset,
    MapLayer,
    PageView,
    PanoramaListing,
)
from .panorama import PanoramaController
from .panorama.engine import EngineFactory, ViewerEngine
from .remote import RemoteCollection
from .settings import PANORAMA_FOLDER_ID, PANORAMA_STALE_TIME
from .utils.logging import get_logger

logger = get_logger(__name__)


def _filter_folder(folder: DriveFolder, needle: str) -> DriveFolder:
    files = [f for f in folder.files if needle in f.name.lower()]
    return folder.model_copy(update={'files': files})


class MapsPage:
    """One mounted map page: composes every component for a browsing session.

    Collections are re-observed on each :meth:`refresh`; fetch completions
    land on the event loop and are picked up by the next refresh.
    """

    def __init__(
        self,
        client: DriveClient,
        *,
        engine_factory: EngineFactory = ViewerEngine,
        feature_store: Optional[FeatureStore] = None,
        panorama_folder_id: str = PANORAMA_FOLDER_ID,
        panorama_stale_time: float = PANORAMA_STALE_TIME,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id
        self.client = client

        self.hazards: RemoteCollection[List[HazardZone]] = RemoteCollection("hazards", [])
        self.assets: RemoteCollection[List[MapAsset]] = RemoteCollection("assets", [])
        self.layer_folders: RemoteCollection[List[DriveFolder]] = RemoteCollection("layer-folders", [])
        self.panorama_listing: RemoteCollection[Optional[PanoramaListing]] = RemoteCollection(
            "panorama", None, stale_time=panorama_stale_time
        )

        self.folder_cache = FolderCache(client.get_subfolder)
        self.panorama = PanoramaController(engine_factory)
        self.layers = LayerManager(self.folder_cache, self.panorama, panorama_folder_id)
        self.drawing = AnnotationEngine(feature_store)

        self.search_query = ""
        self.mouse_coords = LatLng(lat=DEFAULT_MOUSE_COORDS[0], lng=DEFAULT_MOUSE_COORDS[1])
        self.sidebar_open = True
        self.show_legend = True
        self.image_modal = ImageModalView()
        self._folder_tasks: set = set()
        self.closed = False

    # ── derived state

    @property
    def active_layer(self) -> Optional[MapLayer]:
        return self.layers.active_layer

    @property
    def panorama_images(self) -> List[DriveFile]:
        listing = self.panorama_listing.snapshot().data
        if listing is None:
            return []
        return [image.to_drive_file() for image in listing.allImages]

    @property
    def visible_panorama_images(self) -> List[DriveFile]:
        folder = self.panorama.selected_folder
        if folder is None:
            return self.panorama_images
        return [image for image in self.panorama_images if image.folder == folder]

    def refresh(self) -> PageView:
        """Re-observe every collection against the current state."""
        self.hazards.observe("/api/maps/hazards", self.client.list_hazards)
        self.assets.observe("/api/maps/assets", self.client.list_assets)

        endpoint = self.layers.endpoint
        self.layer_folders.observe(
            endpoint,
            lambda: self.client.list_layer_folders(endpoint),
            enabled=endpoint is not None,
        )

        layer = self.active_layer
        self.panorama_listing.observe(
            "/api/panorama",
            self.client.list_panoramas,
            enabled=layer is not None and layer.type == LayerType.PANORAMA,
        )
        return self.view()

    def view(self) -> PageView:
        folders_snapshot = self.layer_folders.snapshot()
        panorama_snapshot = self.panorama_listing.snapshot()

        folders = folders_snapshot.data
        subfolders = self.folder_cache.entries
        needle = self.search_query.strip().lower()
        if needle:
            folders = [_filter_folder(folder, needle) for folder in folders]
            subfolders = {key: _filter_folder(folder, needle) for key, folder in subfolders.items()}

        return PageView(
            sessionId=self.session_id,
            layers=self.layers.layers,
            activeLayer=self.active_layer,
            layerEndpoint=self.layers.endpoint,
            folders=folders,
            foldersStatus=CollectionView(isLoading=folders_snapshot.is_loading, error=folders_snapshot.error),
            expandedFolders=sorted(self.layers.expanded_folders),
            subfolderContents=subfolders,
            loadingSubfolders=self.folder_cache.loading,
            selectedFile=self.layers.selected_file,
            selectedGoogleMap=self.layers.selected_google_map,
            hazardZones=self.hazards.snapshot().data,
            assets=self.assets.snapshot().data,
            panoramaImages=self.visible_panorama_images,
            panoramaStatus=CollectionView(isLoading=panorama_snapshot.is_loading, error=panorama_snapshot.error),
            panorama=self.panorama.describe(),
            drawing=self.drawing.describe(),
            features=self.drawing.features,
            searchQuery=self.search_query,
            mouseCoords=self.mouse_coords,
            imageModal=self.image_modal,
            sidebarOpen=self.sidebar_open,
            showLegend=self.show_legend,
        )

    # ── layer and folder browsing

    def toggle_layer(self, layer_id: str) -> PageView:
        self.layers.set_active(layer_id)
        return self.refresh()

    def toggle_folder(self, folder_id: str, has_subfolders: bool = False) -> bool:
        """Expand or collapse a folder; expanding one with subfolders loads it in the background."""
        expanded = self.layers.toggle_folder(folder_id)
        if expanded and has_subfolders:
            task = asyncio.get_running_loop().create_task(self.folder_cache.ensure(folder_id, has_subfolders))
            self._folder_tasks.add(task)
            task.add_done_callback(self._folder_tasks.discard)
        return expanded

    def select_file(self, file: Optional[DriveFile]) -> None:
        self.layers.select_file(file)

    def select_google_map(self, map_id: str) -> None:
        self.layers.select_google_map(map_id)

    # ── panorama

    def select_panorama(self, image_id: Optional[str]) -> None:
        if image_id is None:
            self.panorama.select(None)
            return
        image = next((img for img in self.panorama_images if img.id == image_id), None)
        if image is None:
            raise LookupError(f"Unknown panorama image '{image_id}'")
        self.panorama.select(image)

    def select_panorama_folder(self, folder: Optional[str]) -> None:
        if folder is not None:
            listing = self.panorama_listing.snapshot().data
            known = set()
            if listing is not None:
                known.update(f.name for f in listing.folders)
                known.update(image.folder for image in listing.allImages)
            if folder not in known:
                raise LookupError(f"Unknown panorama folder '{folder}'")
        self.panorama.select_folder(folder)

    # ── transient UI state

    def set_search_query(self, query: str) -> None:
        self.search_query = query

    def handle_mouse_move(self, lat: float, lng: float) -> None:
        self.mouse_coords = LatLng(lat=lat, lng=lng)

    def open_image_modal(self, url: str, name: str) -> None:
        self.image_modal = ImageModalView(open=True, url=url, name=name)

    def close_image_modal(self) -> None:
        self.image_modal = self.image_modal.model_copy(update={'open': False})

    def toggle_sidebar(self) -> None:
        self.sidebar_open = not self.sidebar_open

    def toggle_legend(self) -> None:
        self.show_legend = not self.show_legend

    # ── lifecycle

    async def settle(self) -> PageView:
        """Wait for every outstanding fetch, then return the refreshed view."""
        await asyncio.gather(
            self.hazards.settle(),
            self.assets.settle(),
            self.layer_folders.settle(),
            self.panorama_listing.settle(),
        )
        if self._folder_tasks:
            await asyncio.gather(*list(self._folder_tasks), return_exceptions=True)
        return self.refresh()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.panorama.teardown()
        for collection in (self.hazards, self.assets, self.layer_folders, self.panorama_listing):
            collection.close()
        for task in list(self._folder_tasks):
            task.cancel()
        await self.drawing.drain()
        await self.client.aclose()
        logger.info("Map session closed", extra={'session_id': self.session_id})
