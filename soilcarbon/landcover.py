import ee

from soilcarbon.config import LANDCOVER_NAMES


def latest_landcover(aoi, cfg):
    """Most recent ESA WorldCover image over the AOI."""
    return (ee.ImageCollection(cfg["landcover"]["collection"])
            .filterBounds(aoi)
            .sort("system:time_start", False)
            .first()
            .clip(aoi))


def reclassify_rothc(image, cfg):
    """
    Reclassifies land cover for RothC:
    1=Forestry, 2=Grassland, 3=Agriculture, default (everything else excluded).
    """
    lc_cfg = cfg["landcover"]
    return image.remap(
        lc_cfg["from_classes"],
        lc_cfg["to_classes"],
        lc_cfg["default_class"]
    ).rename(lc_cfg["output_band"])


def class_frequencies(image, aoi, cfg):
    """Pixel counts per reclassified class, fetched from Earth Engine."""
    band = cfg["landcover"]["output_band"]
    hist_cfg = cfg["histogram"]

    stats = image.reduceRegion(
        reducer=ee.Reducer.frequencyHistogram(),
        geometry=aoi,
        scale=hist_cfg["scale"],
        maxPixels=hist_cfg["max_pixels"]
    ).getInfo()

    if not stats:
        return {}
    return stats.get(band) or {}


def class_percentages(histogram, names=None):
    """
    Converts a frequency histogram ({'1': count, ...}) to {name: percent}.
    Only named classes are counted; the excluded class is ignored.
    """
    names = names or LANDCOVER_NAMES

    counts = {cls_id: 0 for cls_id in names}
    for key, count in (histogram or {}).items():
        try:
            cls_id = int(float(key))
        except (TypeError, ValueError):
            continue
        if cls_id in counts:
            counts[cls_id] += count or 0

    total = sum(counts.values())
    if total == 0:
        return {names[cls_id]: 0.0 for cls_id in names}

    return {names[cls_id]: (count / total) * 100 for cls_id, count in counts.items()}
