from typing import List, Optional, Set

from .catalog import GOOGLE_OPEN_MAPS, fresh_layers, find_google_map
from .folders import FolderCache
from .models import DriveFile, GoogleOpenMap, LayerType, MapLayer
from .panorama import PanoramaController
from .utils.logging import get_logger

logger = get_logger(__name__)

# Layer types backed by a fixed folder-tree endpoint
LAYER_ENDPOINTS = {
    LayerType.ADMINISTRATIVE: "/api/maps/administrative",
    LayerType.TOPOGRAPHIC: "/api/maps/topographic",
    LayerType.LAND_USE: "/api/maps/land-use",
    LayerType.HAZARDS: "/api/maps/hazards-files",
    LayerType.OTHER: "/api/maps/other",
}


class UnknownLayerError(LookupError):
    pass


def resolve_layer_endpoint(layer_type: LayerType, panorama_folder_id: str) -> Optional[str]:
    """Endpoint supplying the folder tree for a layer type, if it has one."""
    if layer_type == LayerType.PANORAMA:
        return f"/api/maps/drive-folder/{panorama_folder_id}"
    return LAYER_ENDPOINTS.get(layer_type)


class LayerManager:
    """Owns the layer set and every piece of UI state scoped to the active layer."""

    def __init__(
        self,
        folder_cache: FolderCache,
        panorama: PanoramaController,
        panorama_folder_id: str,
        layers: Optional[List[MapLayer]] = None,
    ):
        self.folder_cache = folder_cache
        self.panorama = panorama
        self.panorama_folder_id = panorama_folder_id
        self.layers: List[MapLayer] = layers if layers is not None else fresh_layers()
        self.expanded_folders: Set[str] = set()
        self.selected_file: Optional[DriveFile] = None
        self.selected_google_map: Optional[GoogleOpenMap] = None

    @property
    def active_layer(self) -> Optional[MapLayer]:
        return next((layer for layer in self.layers if layer.active), None)

    @property
    def endpoint(self) -> Optional[str]:
        layer = self.active_layer
        if layer is None:
            return None
        return resolve_layer_endpoint(layer.type, self.panorama_folder_id)

    def set_active(self, layer_id: str) -> MapLayer:
        if not any(layer.id == layer_id for layer in self.layers):
            raise UnknownLayerError(f"Unknown layer '{layer_id}'")

        self.layers = [
            layer.model_copy(update={'active': layer.id == layer_id})
            for layer in self.layers
        ]
        self.expanded_folders = set()
        self.selected_file = None
        self.selected_google_map = GOOGLE_OPEN_MAPS[0] if layer_id == "google-open" else None
        self.folder_cache.clear()
        self.panorama.reset()

        active = self.active_layer
        logger.info(
            "Layer activated",
            extra={'layer_id': layer_id, 'endpoint': self.endpoint},
        )
        return active

    def toggle_folder(self, folder_id: str) -> bool:
        """Flip a folder's expanded state; returns True when it is now expanded."""
        if folder_id in self.expanded_folders:
            self.expanded_folders.discard(folder_id)
            return False
        self.expanded_folders.add(folder_id)
        return True

    def select_file(self, file: Optional[DriveFile]) -> None:
        self.selected_file = file

    def select_google_map(self, map_id: str) -> GoogleOpenMap:
        self.selected_google_map = find_google_map(map_id)
        return self.selected_google_map
