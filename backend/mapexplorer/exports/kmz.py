import io
import zipfile
from datetime import datetime, timezone
from typing import List
from xml.sax.saxutils import escape

from .kml import export_kml
from ..models import MapFeature
from ..utils.logging import get_logger

logger = get_logger(__name__)


def export_kmz(features: List[MapFeature], document_name: str = "Map Annotations") -> bytes:
    """Export annotations to KMZ (compressed KML) format."""
    if not features:
        raise ValueError("No features to export")

    kml_content = export_kml(features, document_name=document_name)

    kinds = sorted({feature.kind.value for feature in features})
    metadata = f"""<?xml version="1.0" encoding="UTF-8"?>
<metadata>
    <title>{escape(document_name)}</title>
    <description>Map annotations exported from the map explorer</description>
    <feature_count>{len(features)}</feature_count>
    <export_date>{datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')}</export_date>
    <kinds>{','.join(kinds)}</kinds>
</metadata>"""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as kmz:
        kmz.writestr('doc.kml', kml_content.encode('utf-8'))
        kmz.writestr('metadata.xml', metadata.encode('utf-8'))

    logger.info("KMZ export completed", extra={'feature_count': len(features)})
    return buffer.getvalue()
