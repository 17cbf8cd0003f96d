from typing import Any, Dict, List

import orjson

from ..geometry import feature_geojson_geometry, measure_feature
from ..models import MapFeature


def feature_to_geojson(feature: MapFeature) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        'id': feature.id,
        'kind': feature.kind.value,
        'title': feature.title,
        'description': feature.description,
        'color': feature.color,
        'fillColor': feature.fillColor,
        'weight': feature.weight,
    }
    properties.update(measure_feature(feature))
    return {
        'type': 'Feature',
        'id': feature.id,
        'geometry': feature_geojson_geometry(feature),
        'properties': properties,
    }


def export_geojson(features: List[MapFeature]) -> bytes:
    if not features:
        raise ValueError("No features to export")

    collection = {
        'type': 'FeatureCollection',
        'features': [feature_to_geojson(feature) for feature in features],
    }
    return orjson.dumps(collection)
