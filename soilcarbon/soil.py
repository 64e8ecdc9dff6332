import ee


def soc_stocks(aoi, cfg):
    """SoilGrids SOC stocks, 0-30cm (t C/ha), masked to valid pixels."""
    soc_cfg = cfg["soc"]
    source = ee.Image(soc_cfg["asset"])

    return (source
            .select(soc_cfg["band"])
            .rename(soc_cfg["output_band"])
            .clip(aoi)
            .updateMask(source.select(0).mask()))


def clay_content(aoi, cfg):
    """Mean clay content (%) over the configured depths."""
    clay_cfg = cfg["clay"]
    clay_raw = ee.Image(clay_cfg["asset"])

    # First band is used as the valid mask
    return (clay_raw
            .select(clay_cfg["bands"])
            .reduce(ee.Reducer.mean())
            .rename(clay_cfg["output_band"])
            .clip(aoi)
            .updateMask(clay_raw.select(0).mask()))
