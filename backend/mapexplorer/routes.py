from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, HTTPException, Request, Response

from .drive import DriveClient
from .exports.geojson import export_geojson
from .exports.kml import export_kml
from .exports.kmz import export_kmz
from .layers import UnknownLayerError
from .models import (
    DrawingModeRequest,
    FileSelectRequest,
    FolderToggleRequest,
    ImageModalRequest,
    LatLng,
    MapFeature,
    PageView,
    PanoramaFolderRequest,
    PanoramaSelectRequest,
    PanoramaSettingsRequest,
    PanoramaView,
    PanoramaViewTypeRequest,
    SearchQueryRequest,
    SessionCreated,
    StyleRequest,
)
from .page import MapsPage
from .settings import FILES_API_BASE_URL, FILES_API_TIMEOUT, build_content_disposition, sanitize_export_filename
from .utils.logging import get_logger
from .utils.sessions import SessionNotFound

router = APIRouter()
logger = get_logger(__name__)

EXPORT_FORMATS = {
    "geojson": ("application/geo+json", ".geojson"),
    "kml": ("application/vnd.google-earth.kml+xml", ".kml"),
    "kmz": ("application/vnd.google-earth.kmz", ".kmz"),
}


def _page(request: Request, session_id: str) -> MapsPage:
    try:
        return request.app.state.sessions.get(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("", response_model=SessionCreated, status_code=201)
async def create_session(request: Request):
    """Mount a new map page and start its initial fetches."""
    state = request.app.state
    session_id = state.sessions.new_id()
    client = DriveClient(
        FILES_API_BASE_URL,
        timeout=FILES_API_TIMEOUT,
        transport=getattr(state, "drive_transport", None),
    )
    page = MapsPage(
        client,
        engine_factory=state.engine_factory,
        feature_store=getattr(state, "feature_store", None),
        session_id=session_id,
    )
    state.sessions.add(session_id, page)
    logger.info("Map session created", extra={'session_id': session_id})
    return SessionCreated(sessionId=session_id, view=page.refresh())


@router.get("/{session_id}", response_model=PageView)
async def get_session(session_id: str, request: Request, settle: bool = False):
    page = _page(request, session_id)
    if settle:
        return await page.settle()
    return page.refresh()


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, request: Request):
    page = request.app.state.sessions.remove(session_id)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    await page.close()
    return Response(status_code=204)


# ── layers and folders

@router.post("/{session_id}/layers/{layer_id}/activate", response_model=PageView)
async def activate_layer(session_id: str, layer_id: str, request: Request):
    page = _page(request, session_id)
    try:
        return page.toggle_layer(layer_id)
    except UnknownLayerError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{session_id}/folders/{folder_id}/toggle", response_model=PageView)
async def toggle_folder(session_id: str, folder_id: str, body: FolderToggleRequest, request: Request):
    page = _page(request, session_id)
    page.toggle_folder(folder_id, body.hasSubfolders)
    return page.refresh()


@router.post("/{session_id}/files/select", response_model=PageView)
async def select_file(session_id: str, body: FileSelectRequest, request: Request):
    page = _page(request, session_id)
    page.select_file(body.file)
    return page.refresh()


@router.post("/{session_id}/google-maps/{map_id}/select", response_model=PageView)
async def select_google_map(session_id: str, map_id: str, request: Request):
    page = _page(request, session_id)
    try:
        page.select_google_map(map_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return page.refresh()


# ── transient UI state

@router.put("/{session_id}/search", response_model=PageView)
async def set_search(session_id: str, body: SearchQueryRequest, request: Request):
    page = _page(request, session_id)
    page.set_search_query(body.query)
    return page.refresh()


@router.put("/{session_id}/pointer", response_model=PageView)
async def move_pointer(session_id: str, body: LatLng, request: Request):
    page = _page(request, session_id)
    page.handle_mouse_move(body.lat, body.lng)
    return page.view()


@router.post("/{session_id}/modal", response_model=PageView)
async def open_modal(session_id: str, body: ImageModalRequest, request: Request):
    page = _page(request, session_id)
    page.open_image_modal(body.url, body.name)
    return page.view()


@router.delete("/{session_id}/modal", response_model=PageView)
async def close_modal(session_id: str, request: Request):
    page = _page(request, session_id)
    page.close_image_modal()
    return page.view()


# ── drawing

@router.put("/{session_id}/drawing/mode", response_model=PageView)
async def set_drawing_mode(session_id: str, body: DrawingModeRequest, request: Request):
    page = _page(request, session_id)
    page.drawing.select_mode(body.mode)
    return page.view()


@router.put("/{session_id}/drawing/style", response_model=PageView)
async def set_drawing_style(session_id: str, body: StyleRequest, request: Request):
    page = _page(request, session_id)
    page.drawing.set_style(color=body.color, fill_color=body.fillColor, weight=body.weight)
    page.drawing.set_details(title=body.title, description=body.description)
    return page.view()


@router.post("/{session_id}/drawing/vertices", response_model=PageView)
async def add_vertex(session_id: str, body: LatLng, request: Request):
    page = _page(request, session_id)
    page.drawing.add_vertex(body.lat, body.lng)
    return page.view()


@router.delete("/{session_id}/drawing/vertices/last", response_model=PageView)
async def undo_vertex(session_id: str, request: Request):
    page = _page(request, session_id)
    page.drawing.undo_vertex()
    return page.view()


@router.post("/{session_id}/drawing/finish", response_model=PageView)
async def finish_drawing(session_id: str, request: Request):
    page = _page(request, session_id)
    page.drawing.finalize()
    return page.view()


@router.get("/{session_id}/features", response_model=List[MapFeature])
async def list_features(session_id: str, request: Request):
    return _page(request, session_id).drawing.features


@router.delete("/{session_id}/features", response_model=List[MapFeature])
async def clear_features(session_id: str, request: Request):
    page = _page(request, session_id)
    page.drawing.clear_all_features()
    return page.drawing.features


@router.delete("/{session_id}/features/{feature_id}", response_model=List[MapFeature])
async def delete_feature(session_id: str, feature_id: str, request: Request):
    page = _page(request, session_id)
    if page.drawing.get_feature(feature_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown feature '{feature_id}'")
    page.drawing.delete_feature(feature_id)
    return page.drawing.features


@router.get("/{session_id}/features/export")
async def export_features(session_id: str, request: Request, format: str = "geojson", fileName: str = ""):
    """Download the session's annotations as GeoJSON, KML or KMZ."""
    page = _page(request, session_id)
    normalized = format.strip().lower()
    if normalized not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported export format '{format}'")

    features = page.drawing.features
    if not features:
        raise HTTPException(status_code=400, detail="No features to export")

    media_type, extension = EXPORT_FORMATS[normalized]
    try:
        if normalized == "geojson":
            content = export_geojson(features)
        elif normalized == "kml":
            content = export_kml(features)
        else:
            content = export_kmz(features)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    filename = sanitize_export_filename(fileName, extension)
    if not filename:
        filename = f"annotations-{datetime.now(timezone.utc).strftime('%Y%m%d')}{extension}"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": build_content_disposition(filename)},
    )


# ── panorama

@router.get("/{session_id}/panorama", response_model=PanoramaView)
async def get_panorama(session_id: str, request: Request):
    return _page(request, session_id).panorama.describe()


@router.post("/{session_id}/panorama/select", response_model=PanoramaView)
async def select_panorama(session_id: str, body: PanoramaSelectRequest, request: Request):
    page = _page(request, session_id)
    try:
        page.select_panorama(body.imageId)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return page.panorama.describe()


@router.put("/{session_id}/panorama/view-type", response_model=PanoramaView)
async def set_panorama_view_type(session_id: str, body: PanoramaViewTypeRequest, request: Request):
    page = _page(request, session_id)
    page.panorama.set_view_type(body.viewType)
    return page.panorama.describe()


@router.put("/{session_id}/panorama/settings", response_model=PanoramaView)
async def update_panorama_settings(session_id: str, body: PanoramaSettingsRequest, request: Request):
    page = _page(request, session_id)
    page.panorama.update_settings(**body.model_dump())
    return page.panorama.describe()


@router.put("/{session_id}/panorama/folder", response_model=PageView)
async def select_panorama_folder(session_id: str, body: PanoramaFolderRequest, request: Request):
    page = _page(request, session_id)
    try:
        page.select_panorama_folder(body.folder)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return page.refresh()
