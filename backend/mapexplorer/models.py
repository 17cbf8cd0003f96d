from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class LayerType(str, Enum):
    INTERACTIVE = "interactive"
    ADMINISTRATIVE = "administrative"
    TOPOGRAPHIC = "topographic"
    LAND_USE = "land-use"
    HAZARDS = "hazards"
    OTHER = "other"
    PANORAMA = "panorama"
    GOOGLE_OPEN = "google-open"


class PanoramaViewType(str, Enum):
    DEGREE_360 = "360-degree"
    SPHERICAL = "spherical"
    CYLINDRICAL = "cylindrical"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    WIDE_ANGLE = "wide-angle"
    PLANAR = "planar"


class PanoramaState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class FolderStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class DrawingMode(str, Enum):
    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


class MapLayer(BaseModel):
    id: str
    name: str
    type: LayerType
    active: bool = False


class DriveFile(BaseModel):
    id: str
    name: str
    mimeType: str = "application/octet-stream"
    thumbnailLink: Optional[str] = None
    webViewLink: Optional[str] = None
    webContentLink: Optional[str] = None
    folder: Optional[str] = None

    @property
    def kind(self) -> str:
        mime = self.mimeType.lower()
        if "image" in mime:
            return "image"
        if "pdf" in mime or "document" in mime:
            return "document"
        return "file"


class DriveFolder(BaseModel):
    id: str
    name: str
    files: List[DriveFile] = Field(default_factory=list)
    subfolders: List[str] = Field(default_factory=list)
    hasSubfolders: bool = False

    @field_validator("subfolders", mode="before")
    @classmethod
    def subfolder_ids(cls, value: Any) -> Any:
        """Subfolders are held as reference ids; shallow folder objects are reduced to theirs."""
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        ids = []
        for item in value:
            if isinstance(item, dict):
                ids.append(item.get("id"))
            elif isinstance(item, DriveFolder):
                ids.append(item.id)
            else:
                ids.append(item)
        return ids


class GoogleOpenMap(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    iframeSrc: str


class HazardZone(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None


class MapAsset(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class MapFeature(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: DrawingMode
    coordinates: List[LatLng]
    color: str
    fillColor: str
    weight: float
    title: str = ""
    description: str = ""


class PanoramaImage(BaseModel):
    id: str
    name: str
    thumbnailLink: Optional[str] = None
    webViewLink: Optional[str] = None
    webContentLink: Optional[str] = None
    folder: str = ""

    def to_drive_file(self) -> DriveFile:
        return DriveFile(
            id=self.id,
            name=self.name,
            mimeType="image/jpeg",
            thumbnailLink=self.thumbnailLink,
            webViewLink=self.webViewLink,
            webContentLink=self.webContentLink,
            folder=self.folder,
        )


class PanoramaListing(BaseModel):
    folders: List[DriveFolder] = Field(default_factory=list)
    allImages: List[PanoramaImage] = Field(default_factory=list)


class PanoramaViewTypeOption(BaseModel):
    value: PanoramaViewType
    label: str


class PanoramaSettings(BaseModel):
    """Camera position reported by the viewer; degrees except zoom."""

    yaw: float = Field(0.0, ge=-180.0, le=180.0)
    pitch: float = Field(0.0, ge=-90.0, le=90.0)
    zoom: float = Field(1.0, gt=0.0, le=10.0)
    fov: float = Field(90.0, ge=10.0, le=170.0)


# Request payloads

def _validate_hex_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    hex_value = value.strip()
    if not hex_value.startswith('#') or len(hex_value) not in (7, 9):
        raise ValueError("Colors must be provided in #RRGGBB or #RRGGBBAA format")
    try:
        int(hex_value[1:], 16)
    except ValueError:
        raise ValueError("Color values must be valid hexadecimal digits") from None
    return hex_value.upper()


class StyleRequest(BaseModel):
    color: Optional[str] = None
    fillColor: Optional[str] = None
    weight: Optional[float] = Field(default=None, gt=0, le=50)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("color", "fillColor")
    @classmethod
    def validate_color(cls, value: Optional[str]) -> Optional[str]:
        return _validate_hex_color(value)


class DrawingModeRequest(BaseModel):
    mode: Optional[DrawingMode] = None


class FolderToggleRequest(BaseModel):
    hasSubfolders: bool = False


class FileSelectRequest(BaseModel):
    file: Optional[DriveFile] = None


class SearchQueryRequest(BaseModel):
    query: str = Field("", max_length=200)


class ImageModalRequest(BaseModel):
    url: str
    name: str = ""


class PanoramaSelectRequest(BaseModel):
    imageId: Optional[str] = None


class PanoramaViewTypeRequest(BaseModel):
    viewType: PanoramaViewType


class PanoramaSettingsRequest(BaseModel):
    yaw: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    pitch: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    zoom: Optional[float] = Field(default=None, gt=0.0, le=10.0)
    fov: Optional[float] = Field(default=None, ge=10.0, le=170.0)


class PanoramaFolderRequest(BaseModel):
    folder: Optional[str] = None


# Response payloads

class CollectionView(BaseModel):
    isLoading: bool
    error: Optional[str] = None


class ImageModalView(BaseModel):
    open: bool = False
    url: str = ""
    name: str = ""


class PanoramaView(BaseModel):
    state: PanoramaState
    viewType: PanoramaViewType
    selectedImage: Optional[DriveFile] = None
    selectedFolder: Optional[str] = None
    settings: PanoramaSettings = Field(default_factory=PanoramaSettings)
    engine: Optional[Dict[str, Any]] = None
    ready: bool = False


class DrawingView(BaseModel):
    mode: Optional[DrawingMode] = None
    buffer: List[LatLng]
    color: str
    fillColor: str
    weight: float
    title: str
    description: str


class PageView(BaseModel):
    sessionId: Optional[str] = None
    layers: List[MapLayer]
    activeLayer: Optional[MapLayer] = None
    layerEndpoint: Optional[str] = None
    folders: List[DriveFolder]
    foldersStatus: CollectionView
    expandedFolders: List[str]
    subfolderContents: Dict[str, DriveFolder]
    loadingSubfolders: List[str]
    selectedFile: Optional[DriveFile] = None
    selectedGoogleMap: Optional[GoogleOpenMap] = None
    hazardZones: List[HazardZone]
    assets: List[MapAsset]
    panoramaImages: List[DriveFile]
    panoramaStatus: CollectionView
    panorama: PanoramaView
    drawing: DrawingView
    features: List[MapFeature]
    searchQuery: str
    mouseCoords: LatLng
    imageModal: ImageModalView
    sidebarOpen: bool
    showLegend: bool


class SessionCreated(BaseModel):
    sessionId: str
    view: PageView


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: Optional[str] = None
    sessions: Optional[int] = None
