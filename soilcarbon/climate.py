import ee
import pandas as pd

from soilcarbon.config import resolve_end_date

MONTHLY_BANDS = ["mean_temperature", "mean_precipitation", "mean_pet"]
TABLE_COLUMNS = ["month"] + MONTHLY_BANDS


# --- GRIDMET LONG TERM MEANS ---

def gridmet_means(aoi, cfg):
    """
    Long term GRIDMET means, temperature converted from Kelvin to Celsius.
    Returns {description: ee.Image}.
    """
    gm_cfg = cfg["gridmet"]
    end = resolve_end_date(gm_cfg["end"])
    offset = gm_cfg["kelvin_offset"]

    climate = (ee.ImageCollection(gm_cfg["collection"])
               .filterBounds(aoi)
               .filterDate(gm_cfg["start"], end)
               .select(gm_cfg["bands"])
               .mean()
               .clip(aoi))

    return {
        "Max_Temperature": climate.select("tmmx").subtract(offset).rename("Max_Temp_C"),
        "Min_Temperature": climate.select("tmmn").subtract(offset).rename("Min_Temp_C"),
        "Precipitation": climate.select("pr").rename("Precipitation_mm"),
        "Evapotranspiration": climate.select("etr").rename("Evapotranspiration_mm"),
    }


# --- TERRACLIMATE MONTHLY AVERAGES ---

def terraclimate_collection(aoi, cfg):
    tc_cfg = cfg["terraclimate"]
    return (ee.ImageCollection(tc_cfg["collection"])
            .filterBounds(aoi)
            .filterDate(tc_cfg["start"], resolve_end_date(tc_cfg["end"])))


def monthly_climate_image(collection, month, cfg):
    """
    Multi-year average for one calendar month:
    mean temperature (average of max and min), precipitation and PET.
    """
    scale = cfg["terraclimate"]["scale_factor"]
    filtered = collection.filter(ee.Filter.calendarRange(month, month, "month"))

    mean_temp = (filtered.select("tmmx").mean().multiply(scale)
                 .add(filtered.select("tmmn").mean().multiply(scale))
                 .divide(2)
                 .rename("mean_temperature"))
    precipitation = filtered.select("pr").mean().rename("mean_precipitation")
    pet = filtered.select("pet").mean().multiply(scale).rename("mean_pet")

    return (mean_temp
            .addBands(precipitation)
            .addBands(pet)
            .set("month", month))


def monthly_climate_table(aoi, cfg):
    """
    FeatureCollection with one feature per month holding AOI-wide means.
    """
    collection = terraclimate_collection(aoi, cfg)
    scale = cfg["export"]["scale"]

    features = []
    for month in range(1, 13):
        climate_image = monthly_climate_image(collection, month, cfg)
        stats = climate_image.reduceRegion(
            reducer=ee.Reducer.mean(),
            geometry=aoi,
            scale=scale,
            bestEffort=True
        )
        features.append(ee.Feature(None, stats.set("month", month)))

    return ee.FeatureCollection(features)


def monthly_climate_stack(aoi, cfg):
    """
    12 monthly images stacked into one image (bands '0_mean_temperature', ...),
    resampled to the export scale and clipped to the AOI.
    """
    collection = terraclimate_collection(aoi, cfg)
    projection = collection.first().projection()

    monthly = ee.ImageCollection.fromImages(
        [monthly_climate_image(collection, month, cfg) for month in range(1, 13)]
    )
    stack = monthly.toBands().setDefaultProjection(projection)

    return (stack
            .reduceResolution(reducer=ee.Reducer.mean(), bestEffort=True)
            .reproject(crs=projection, scale=cfg["export"]["scale"])
            .clip(aoi))


def stack_band_name(month, band):
    """Band name produced by toBands() for a calendar month (1-12)."""
    return f"{month - 1}_{band}"


def table_to_dataframe(fc_info):
    """
    Builds a DataFrame from the getInfo() output of the monthly table.
    Rows are ordered by month; missing values become NaN.
    """
    rows = []
    for feature in (fc_info or {}).get("features", []):
        props = feature.get("properties") or {}
        if props.get("month") is None:
            continue
        rows.append({col: props.get(col) for col in TABLE_COLUMNS})

    df = pd.DataFrame(rows, columns=TABLE_COLUMNS)
    for col in MONTHLY_BANDS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    if not df.empty:
        df["month"] = df["month"].astype(int)
    return df.sort_values("month").reset_index(drop=True)
