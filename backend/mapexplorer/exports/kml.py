from collections import defaultdict
from typing import Dict, List, Optional
import html

import simplekml

from ..geometry import feature_geometry, measure_feature
from ..models import DrawingMode, MapFeature
from ..utils.logging import get_logger

logger = get_logger(__name__)

_POPUP_CSS = """
<style type="text/css">
.annotation-popup{background:#0b1220;color:#e8eefc;font-family:'Inter','Segoe UI',-apple-system,BlinkMacSystemFont,'Helvetica Neue',sans-serif;font-size:13px;line-height:1.5;padding:14px 16px;border-radius:16px;max-width:320px;}
.annotation-popup .title{font-size:16px;font-weight:600;margin:0 0 8px;color:#f8fafc;}
.annotation-popup .subtitle{font-size:11px;letter-spacing:0.1em;text-transform:uppercase;color:#9fb2d8;margin-bottom:12px;}
.annotation-popup .row{margin-bottom:10px;padding-bottom:8px;border-bottom:1px solid rgba(148,163,184,0.18);}
.annotation-popup .row:last-child{margin-bottom:0;border-bottom:none;padding-bottom:0;}
.annotation-popup .label{display:block;font-size:11px;letter-spacing:0.08em;text-transform:uppercase;font-weight:600;color:#9fb2d8;margin-bottom:3px;}
.annotation-popup .value{display:block;font-size:12px;color:#e2e8f0;word-break:break-word;white-space:pre-wrap;}
</style>
"""

FOLDER_NAMES = {
    DrawingMode.POINT: "Points",
    DrawingMode.LINE: "Lines",
    DrawingMode.POLYGON: "Polygons",
    DrawingMode.RECTANGLE: "Rectangles",
    DrawingMode.CIRCLE: "Circles",
}

_MEASURE_LABELS = {
    'length_m': ("Length (m)", "{:.1f}"),
    'area_ha': ("Area (ha)", "{:.2f}"),
    'perimeter_m': ("Perimeter (m)", "{:.1f}"),
    'radius_m': ("Radius (m)", "{:.1f}"),
}


def hex_to_kml_color(hex_color: str) -> str:
    """Convert ``#RRGGBB`` or ``#RRGGBBAA`` to KML ``aabbggrr``."""
    color = hex_color.lstrip('#')
    if len(color) not in (6, 8):
        return "ff0000ff"
    red, green, blue = color[0:2], color[2:4], color[4:6]
    alpha = color[6:8] if len(color) == 8 else "ff"
    return f"{alpha}{blue}{green}{red}".lower()


def _popup_row(label: str, value: Optional[str]) -> str:
    value_clean = (value or "").strip()
    if not value_clean:
        return ""
    return (
        "<div class='row'>"
        f"<span class='label'>{html.escape(label)}:</span>"
        f"<span class='value'>{html.escape(value_clean)}</span>"
        "</div>"
    )


def _build_popup(feature: MapFeature, measures: Dict[str, float]) -> str:
    parts: List[str] = [
        f"<div class='title'>{html.escape(feature.title or _default_name(feature))}</div>",
        f"<div class='subtitle'>{html.escape(feature.kind.value)}</div>",
        _popup_row("Description", feature.description),
    ]
    for key, value in measures.items():
        label, fmt = _MEASURE_LABELS.get(key, (key, "{}"))
        parts.append(_popup_row(label, fmt.format(value)))
    return _POPUP_CSS + f"<div class='annotation-popup'>{''.join(p for p in parts if p)}</div>"


def _default_name(feature: MapFeature) -> str:
    return f"{feature.kind.value.title()} {feature.id[:8]}"


def _add_feature(container, feature: MapFeature) -> None:
    name = feature.title or _default_name(feature)
    geom = feature_geometry(feature)
    stroke = hex_to_kml_color(feature.color)

    if feature.kind == DrawingMode.POINT:
        placemark = container.newpoint(name=name, coords=[geom.coords[0]])
        placemark.style.iconstyle.color = stroke
    elif feature.kind == DrawingMode.LINE:
        placemark = container.newlinestring(name=name, coords=list(geom.coords))
        placemark.style.linestyle.color = stroke
        placemark.style.linestyle.width = feature.weight
        placemark.tessellate = 1
    else:
        placemark = container.newpolygon(name=name, outerboundaryis=list(geom.exterior.coords))
        placemark.style.polystyle.color = hex_to_kml_color(feature.fillColor)
        placemark.style.polystyle.fill = 1
        placemark.style.polystyle.outline = 1
        placemark.style.linestyle.color = stroke
        placemark.style.linestyle.width = feature.weight
        placemark.altitudemode = simplekml.AltitudeMode.clamptoground

    placemark.description = _build_popup(feature, measure_feature(feature))
    placemark.extendeddata.newdata(name="feature_id", value=feature.id)


def export_kml(features: List[MapFeature], document_name: str = "Map Annotations") -> str:
    """Export annotations to KML, one folder per drawing kind."""
    if not features:
        raise ValueError("No features to export")

    logger.info(f"Exporting {len(features)} annotations to KML")

    kml = simplekml.Kml()
    kml.document.name = document_name

    by_kind: Dict[DrawingMode, List[MapFeature]] = defaultdict(list)
    for feature in features:
        by_kind[feature.kind].append(feature)

    for kind in DrawingMode:
        grouped = by_kind.get(kind)
        if not grouped:
            continue
        folder = kml.newfolder(name=f"{FOLDER_NAMES[kind]} ({len(grouped)})")
        for feature in grouped:
            try:
                _add_feature(folder, feature)
            except Exception as exc:
                logger.warning(f"Skipping annotation {feature.id} in KML export: {exc}")

    return kml.kml()
