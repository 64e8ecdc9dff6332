import ee

from soilcarbon.config import resolve_end_date


def ndvi_median(aoi, cfg):
    """MODIS NDVI median with the scale factor correction applied."""
    ndvi_cfg = cfg["ndvi"]
    end = resolve_end_date(ndvi_cfg["end"])

    return (ee.ImageCollection(ndvi_cfg["collection"])
            .filterBounds(aoi)
            .filterDate(ndvi_cfg["start"], end)
            .select(ndvi_cfg["band"])
            .median()
            .multiply(ndvi_cfg["scale_factor"])
            .rename("NDVI")
            .clip(aoi))
