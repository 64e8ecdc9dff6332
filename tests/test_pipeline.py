import copy

import pytest

from soilcarbon import pipeline
from soilcarbon.cache_utils import StatsCache
from soilcarbon.config import resolve_end_date
from soilcarbon.pipeline import RASTER_LAYERS, SoilCarbonPipeline


@pytest.fixture
def stub_layers(monkeypatch):
    """Replaces the Earth Engine layer builders with named placeholders."""
    monkeypatch.setattr(pipeline.soil, "soc_stocks", lambda aoi, cfg: "soc")
    monkeypatch.setattr(pipeline.soil, "clay_content", lambda aoi, cfg: "clay")
    monkeypatch.setattr(pipeline.landcover, "latest_landcover", lambda aoi, cfg: "worldcover")
    monkeypatch.setattr(pipeline.landcover, "reclassify_rothc", lambda image, cfg: f"rothc({image})")
    monkeypatch.setattr(pipeline.vegetation, "ndvi_median", lambda aoi, cfg: "ndvi")
    monkeypatch.setattr(pipeline.climate, "gridmet_means", lambda aoi, cfg: {
        "Max_Temperature": "tmax", "Min_Temperature": "tmin",
        "Precipitation": "pr", "Evapotranspiration": "etr"})


def make_pipeline(cfg, **kwargs):
    messages = []
    p = SoilCarbonPipeline(cfg, "aoi", status_callback=messages.append, **kwargs)
    return p, messages


def test_build_layers_order(cfg, stub_layers):
    p, _ = make_pipeline(cfg)

    layers = p.build_layers()

    assert [name for name, _, _ in layers] == RASTER_LAYERS
    assert p.layer("Land_Cover_Reclassified") == "rothc(worldcover)"
    assert layers[0][2]["max"] == 200


def test_unknown_layer(cfg, stub_layers):
    p, _ = make_pipeline(cfg)
    with pytest.raises(KeyError):
        p.layer("Sand_Content")


def test_export_layers_continues_after_failure(cfg, stub_layers, monkeypatch):
    exported = []

    def fake_export(image, description, aoi, cfg):
        if description == "Clay_Content":
            raise RuntimeError("Image.select: band not found")
        exported.append((description, image))
        return description

    monkeypatch.setattr(pipeline.exports, "export_image", fake_export)
    p, messages = make_pipeline(cfg)

    tasks = p.export_layers()

    assert len(tasks) == len(RASTER_LAYERS) - 1
    assert ("SOC_Stocks", "soc") in exported
    assert ("Evapotranspiration", "etr") in exported
    assert p.failures == [("export Clay_Content", "Image.select: band not found")]
    assert any("failed" in m for m in messages)


def test_export_layers_rejects_unknown_names(cfg, stub_layers):
    p, _ = make_pipeline(cfg)
    with pytest.raises(ValueError):
        p.export_layers(["SOC_Stocks", "Sand"])


def test_export_climate_table(cfg, monkeypatch):
    monkeypatch.setattr(pipeline.climate, "monthly_climate_table", lambda aoi, cfg: "table")
    monkeypatch.setattr(pipeline.exports, "export_table", lambda fc, description, cfg: (fc, description))
    p, _ = make_pipeline(cfg)

    task = p.export_climate_table()

    assert task == ("table", "MonthlyClimate_AOI_CSV")
    assert p.tasks == [task]


def test_export_climate_stack(cfg, monkeypatch):
    monkeypatch.setattr(pipeline.climate, "monthly_climate_stack", lambda aoi, cfg: "stack")
    monkeypatch.setattr(pipeline.exports, "export_image",
                        lambda image, description, aoi, cfg: (image, description))
    p, _ = make_pipeline(cfg)

    assert p.export_climate_stack() == ("stack", "MonthlyClimate_AOI_1000m")


def test_wait_records_failed_tasks(cfg, monkeypatch):
    monkeypatch.setattr(pipeline.exports, "wait_for_tasks", lambda tasks, poll_interval, timeout: {
        "SOC_Stocks": "COMPLETED", "Clay_Content": "FAILED"})
    p, _ = make_pipeline(cfg)
    p.tasks = ["t1", "t2"]

    p.wait(poll_interval=1)

    assert p.failures == [("task Clay_Content", "FAILED")]


def test_run_histograms_uses_cache(cfg, stub_layers, monkeypatch, tmp_path):
    calls = []

    def fake_histogram_data(image, aoi, cfg):
        calls.append(image)
        return {"bucketMeans": [1.0, 2.0], "bucketWidth": 1, "histogram": [4, 6]}

    monkeypatch.setattr(pipeline.histograms, "histogram_data", fake_histogram_data)
    monkeypatch.setattr(pipeline.landcover, "class_frequencies", lambda image, aoi, cfg: {"1": 2, "3": 2})

    cache = StatsCache(str(tmp_path / "cache.db"))
    out_dir = tmp_path / "charts"

    p, _ = make_pipeline(cfg, aoi_source="projects/x/aoi", cache=cache)
    paths = p.run_histograms(str(out_dir))

    assert len(paths) == 4
    assert (out_dir / "SOC_Stocks_histogram.png").exists()
    assert (out_dir / "Land_Cover_distribution.png").exists()
    assert calls == ["soc", "clay", "ndvi"]

    p2, messages = make_pipeline(cfg, aoi_source="projects/x/aoi", cache=cache)
    p2.run_histograms(str(out_dir))
    assert calls == ["soc", "clay", "ndvi"]
    assert any("loaded from cache" in m for m in messages)


def test_write_climate_csv(cfg, monkeypatch, tmp_path):
    class FakeTable:
        def getInfo(self):
            return {"features": [{"properties": {
                "month": m, "mean_temperature": 20.0, "mean_precipitation": 50.0, "mean_pet": 100.0}}
                for m in range(12, 0, -1)]}

    monkeypatch.setattr(pipeline.climate, "monthly_climate_table", lambda aoi, cfg: FakeTable())
    p, _ = make_pipeline(cfg)
    path = tmp_path / "out" / "monthly_climate.csv"

    df = p.write_climate_csv(str(path))

    assert list(df["month"]) == list(range(1, 13))
    assert path.read_text().splitlines()[0] == "month,mean_temperature,mean_precipitation,mean_pet"


def test_download_layers(cfg, stub_layers, monkeypatch, tmp_path):
    downloaded = []
    monkeypatch.setattr(pipeline.exports, "download_image",
                        lambda image, path, aoi, cfg: downloaded.append(image) or path)
    monkeypatch.setattr(pipeline.climate, "monthly_climate_table", lambda aoi, cfg: "table")
    monkeypatch.setattr(pipeline.exports, "download_table", lambda fc, path: path)
    p, _ = make_pipeline(cfg)

    paths = p.download_layers(str(tmp_path), ["SOC_Stocks", "Monthly_NDVI"])

    assert downloaded == ["soc", "ndvi"]
    assert paths[-1].endswith("MonthlyClimate_AOI_CSV.csv")
    assert len(paths) == 3


def test_run_all_collects_failures(cfg, stub_layers, monkeypatch, tmp_path):
    monkeypatch.setattr(pipeline.exports, "export_image", lambda *a: "task")
    monkeypatch.setattr(pipeline.exports, "export_table", lambda *a: "task")
    monkeypatch.setattr(pipeline.climate, "monthly_climate_table", lambda aoi, cfg: "table")
    monkeypatch.setattr(pipeline.climate, "monthly_climate_stack", lambda aoi, cfg: "stack")

    def broken(*args):
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(pipeline.histograms, "histogram_data", broken)
    monkeypatch.setattr(pipeline.landcover, "class_frequencies", broken)
    monkeypatch.setattr(pipeline.map_utils, "create_layer_map", lambda aoi, layers, path, zoom: path)

    p, messages = make_pipeline(cfg)
    failures = p.run_all(str(tmp_path))

    steps = [step for step, _ in failures]
    assert "histogram SOC_Stocks" in steps
    assert "climate csv" in steps
    assert "map" in steps
    assert len(p.tasks) == len(RASTER_LAYERS) + 2
    assert messages[-1] == f"Finished with {len(failures)} failure(s)."


def test_histogram_cache_misses_after_dataset_change(cfg, stub_layers, monkeypatch, tmp_path):
    calls = []

    def fake_histogram_data(image, aoi, cfg):
        calls.append(image)
        return {"bucketMeans": [1.0], "bucketWidth": 1, "histogram": [3]}

    monkeypatch.setattr(pipeline.histograms, "histogram_data", fake_histogram_data)
    monkeypatch.setattr(pipeline.landcover, "class_frequencies", lambda image, aoi, cfg: {"1": 1})
    cache = StatsCache(str(tmp_path / "cache.db"))

    p, _ = make_pipeline(cfg, aoi_source="projects/x/aoi", cache=cache)
    p.run_histograms(str(tmp_path))
    assert calls == ["soc", "clay", "ndvi"]

    other = copy.deepcopy(cfg)
    other["soc"]["asset"] = "projects/other/soc_stocks"
    p2, _ = make_pipeline(other, aoi_source="projects/x/aoi", cache=cache)
    p2.run_histograms(str(tmp_path))

    assert calls == ["soc", "clay", "ndvi", "soc"]


def test_stats_params_resolve_open_end_dates(cfg):
    p, _ = make_pipeline(cfg)

    params = p.stats_params("Monthly_NDVI")

    assert params["source"]["end"] == resolve_end_date(None)
    assert params["hist"] == cfg["histogram"]
    assert cfg["ndvi"]["end"] is None
    assert p.stats_params("climate_table")["scale"] == cfg["export"]["scale"]


def test_wait_timeout_is_recorded(cfg, monkeypatch):
    def stuck(tasks, poll_interval, timeout):
        raise TimeoutError("Export tasks still running after 0s: SOC_Stocks")

    monkeypatch.setattr(pipeline.exports, "wait_for_tasks", stuck)
    p, messages = make_pipeline(cfg)
    p.tasks = ["t1"]

    assert p.wait(poll_interval=0, timeout=0) == {}
    assert p.failures == [("wait", "Export tasks still running after 0s: SOC_Stocks")]
    assert messages[-1].startswith("wait failed:")
