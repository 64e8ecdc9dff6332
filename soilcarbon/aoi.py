import json
import os

import ee

BBOX_PREFIX = "bbox:"


def parse_geojson(text):
    """
    Parses a GeoJSON string (Feature, FeatureCollection or bare geometry).
    Returns an ee.Geometry.
    """
    raw_json = json.loads(text)
    geo_type = raw_json.get("type") if isinstance(raw_json, dict) else None

    if geo_type == "FeatureCollection":
        return ee.FeatureCollection(raw_json).geometry()
    if geo_type == "Feature":
        return ee.Geometry(raw_json["geometry"])
    if geo_type:
        return ee.Geometry(raw_json)

    raise ValueError("GeoJSON has no 'type' member")


def parse_bbox(text):
    """
    Parses 'xmin,ymin,xmax,ymax' into a tuple of floats.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4:
        raise ValueError(f"Expected 4 comma separated values, got: {text!r}")

    xmin, ymin, xmax, ymax = map(float, parts)
    if xmin >= xmax or ymin >= ymax:
        raise ValueError(f"Invalid bbox order: {text!r}")
    return xmin, ymin, xmax, ymax


def load_aoi(source):
    """
    Resolves the AOI geometry from:
      - an inline GeoJSON string
      - a path to a .json / .geojson file
      - 'bbox:xmin,ymin,xmax,ymax'
      - an Earth Engine FeatureCollection asset ID
    """
    if not source:
        raise ValueError("No AOI provided")

    if source.startswith(BBOX_PREFIX):
        return ee.Geometry.Rectangle(list(parse_bbox(source[len(BBOX_PREFIX):])))

    if source.lstrip().startswith("{"):
        return parse_geojson(source)

    if source.lower().endswith((".json", ".geojson")):
        if not os.path.exists(source):
            raise ValueError(f"AOI file not found: {source}")
        with open(source, "r", encoding="utf-8") as f:
            return parse_geojson(f.read())

    return ee.FeatureCollection(source).geometry()
