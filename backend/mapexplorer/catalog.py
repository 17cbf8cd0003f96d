# mapexplorer/catalog.py
# Compiled-in reference data: layer set, Google "My Maps" embeds and panorama view types

from typing import List

from .models import GoogleOpenMap, LayerType, MapLayer, PanoramaViewType, PanoramaViewTypeOption

# ── Google open maps (rendered as iframes; never fetched)
GOOGLE_OPEN_MAPS: List[GoogleOpenMap] = [
    GoogleOpenMap(
        id="evac-centers",
        name="Evacuation Centers",
        iframeSrc="https://www.google.com/maps/d/embed?mid=1mjXfpYAmLEhG2U2Gu9VWjRdcuI9H4kw&ehbc=2E312F",
    ),
    GoogleOpenMap(
        id="hazard-zones",
        name="Hazard Zones",
        iframeSrc="https://www.google.com/maps/d/embed?mid=17JUWx271jjwJNBN2yVStmAPY_Y_iQOg&ehbc=2E312F",
    ),
    GoogleOpenMap(
        id="response-routes",
        name="Response Routes",
        iframeSrc="https://www.google.com/maps/d/embed?mid=1WqlvA465RCv29U-MyWi-1qU1MljXgAU&ehbc=2E312F",
    ),
    GoogleOpenMap(
        id="land-use",
        name="Land Use Area",
        iframeSrc="https://www.google.com/maps/d/embed?mid=1udNHLgYpnawV9IhZS3X88RPKDmAJ0Qw&ehbc=2E312F&noprof=1",
    ),
    GoogleOpenMap(
        id="fault-lines",
        name="Active Fault Lines",
        iframeSrc="https://www.google.com/maps/d/embed?mid=1KQLOjRjG89a4yP5KINXIcrvvEzJIPSM&ehbc=2E312F&noprof=1",
    ),
    GoogleOpenMap(
        id="general-map",
        name="General Map",
        iframeSrc="https://www.google.com/maps/d/embed?mid=1BmibV2upcL5kwmEKIJPLfit7VNQAqk0&ehbc=2E312F&noprof=1",
    ),
]

# ── Thematic layers; the first entry starts active
MAP_LAYERS: List[MapLayer] = [
    MapLayer(id="interactive", name="Interactive Map", type=LayerType.INTERACTIVE, active=True),
    MapLayer(id="administrative", name="Administrative Map", type=LayerType.ADMINISTRATIVE),
    MapLayer(id="topographic", name="Topographic Map", type=LayerType.TOPOGRAPHIC),
    MapLayer(id="land-use", name="Land Use Map", type=LayerType.LAND_USE),
    MapLayer(id="hazards", name="Hazards Maps", type=LayerType.HAZARDS),
    MapLayer(id="other", name="Other Map", type=LayerType.OTHER),
    MapLayer(id="panorama", name="Panorama Map", type=LayerType.PANORAMA),
    MapLayer(id="google-open", name="Google Open Map", type=LayerType.GOOGLE_OPEN),
]

# ── Panorama projection modes, in toolbar order
PANORAMA_VIEW_TYPES: List[PanoramaViewTypeOption] = [
    PanoramaViewTypeOption(value=PanoramaViewType.DEGREE_360, label="360-Degree"),
    PanoramaViewTypeOption(value=PanoramaViewType.SPHERICAL, label="Spherical"),
    PanoramaViewTypeOption(value=PanoramaViewType.CYLINDRICAL, label="Cylindrical"),
    PanoramaViewTypeOption(value=PanoramaViewType.HORIZONTAL, label="Horizontal"),
    PanoramaViewTypeOption(value=PanoramaViewType.VERTICAL, label="Vertical"),
    PanoramaViewTypeOption(value=PanoramaViewType.WIDE_ANGLE, label="Wide-Angle"),
    PanoramaViewTypeOption(value=PanoramaViewType.PLANAR, label="Planar"),
]

DEFAULT_VIEW_TYPE = PanoramaViewType.DEGREE_360

# Initial pointer readout (Legazpi City, Albay)
DEFAULT_MOUSE_COORDS = (13.0752, 123.5298)


def fresh_layers() -> List[MapLayer]:
    """Independent copies of the layer set for a new session."""
    return [layer.model_copy() for layer in MAP_LAYERS]


def find_google_map(map_id: str) -> GoogleOpenMap:
    for entry in GOOGLE_OPEN_MAPS:
        if entry.id == map_id:
            return entry
    raise LookupError(f"Unknown Google map '{map_id}'")
