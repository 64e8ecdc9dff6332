import copy
import json
import os
from datetime import date

# --- DEFAULTS ---
DEFAULT_CONFIG = {
    "project": None,
    "aoi": "projects/ee-komba/assets/bbox_wirong",

    "soc": {
        "asset": "projects/soilgrids-isric/ocs_mean",
        "band": "ocs_0-30cm_mean",       # already in t C/ha
        "output_band": "SOC_tCha",
    },
    "clay": {
        "asset": "OpenLandMap/SOL/SOL_CLAY-WFRACTION_USDA-3A1A1A_M/v02",
        "bands": ["b0", "b10", "b30"],   # 0, 10 and 30 cm depths
        "output_band": "Clay_Percent",
    },
    "landcover": {
        "collection": "ESA/WorldCover/v100",
        "from_classes": [10, 20, 30, 40],
        "to_classes": [1, 2, 2, 3],
        "default_class": 0,
        "output_band": "Land_Cover_Class",
    },
    "ndvi": {
        "collection": "MODIS/061/MOD13A1",
        "band": "NDVI",
        "start": "2000-01-01",
        "end": None,
        "scale_factor": 0.0001,
    },
    "gridmet": {
        "collection": "IDAHO_EPSCOR/GRIDMET",
        "bands": ["tmmx", "tmmn", "pr", "etr"],
        "start": "1980-01-01",
        "end": None,
        "kelvin_offset": 273.15,
    },
    "terraclimate": {
        "collection": "IDAHO_EPSCOR/TERRACLIMATE",
        "start": "1980-01-01",
        "end": "2024-12-01",
        "scale_factor": 0.1,              # tmmx, tmmn and pet
    },
    "export": {
        "destination": "drive",           # drive | gcs
        "folder": None,
        "bucket": None,
        "scale": 1000,
        "file_format": "GeoTIFF",
        "table_format": "CSV",
        "max_pixels": 1e13,
    },
    "histogram": {
        "scale": 1000,
        "max_pixels": 1e6,
    },
    "map": {
        "zoom": 6,
    },
    "cache": {
        "enabled": True,
        "path": "soilcarbon_cache.db",
    },
}

# Land cover class names after reclassification
LANDCOVER_NAMES = {
    1: "Forestry",
    2: "Grassland/Shrubland/Savanna",
    3: "Agriculture",
}

LANDCOVER_COLORS = ["green", "yellow", "brown"]

# Visualization parameters per layer
VIS_PARAMS = {
    "SOC_Stocks": {"min": 0, "max": 200, "palette": ["blue", "green", "yellow", "red"]},
    "Clay_Content": {"min": 0, "max": 100, "palette": ["yellow", "brown", "red"]},
    "Land_Cover_Reclassified": {"min": 1, "max": 3, "palette": LANDCOVER_COLORS},
    "Monthly_NDVI": {"min": 0, "max": 1, "palette": ["red", "yellow", "green"]},
    "Max_Temperature": {"min": -10, "max": 40, "palette": ["blue", "yellow", "red"]},
    "Min_Temperature": {"min": -20, "max": 30, "palette": ["blue", "yellow", "red"]},
    "Precipitation": {"min": 0, "max": 10, "palette": ["white", "blue"]},
    "Evapotranspiration": {"min": 0, "max": 10, "palette": ["white", "green"]},
    "mean_temperature": {"min": 15, "max": 35, "palette": ["blue", "yellow", "red"]},
    "mean_precipitation": {"min": 0, "max": 300, "palette": ["white", "blue"]},
    "mean_pet": {"min": 0, "max": 200, "palette": ["white", "green"]},
}


def resolve_end_date(value):
    """None or 'now' means today (ISO date string)."""
    if value is None or str(value).lower() == "now":
        return date.today().isoformat()
    return value


def merge_config(base, overrides):
    """
    Recursively merges 'overrides' into a copy of 'base'.
    Nested dicts are merged, everything else is replaced.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path=None):
    """
    Returns the default config, optionally overridden by a JSON file.
    Raises SystemExit if the file is missing or not a JSON object.
    """
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    if not os.path.exists(path):
        raise SystemExit(f"Config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {path}: {e}")

    if not isinstance(data, dict):
        raise SystemExit(f"Expected JSON object at {path}")

    unknown = set(data) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return merge_config(DEFAULT_CONFIG, data)
