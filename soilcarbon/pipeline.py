import os

from soilcarbon import climate, exports, histograms, landcover, map_utils, soil, vegetation
from soilcarbon.config import LANDCOVER_COLORS, LANDCOVER_NAMES, VIS_PARAMS, resolve_end_date

# Export descriptions, in export order
RASTER_LAYERS = [
    "SOC_Stocks",
    "Clay_Content",
    "Land_Cover_Reclassified",
    "Monthly_NDVI",
    "Max_Temperature",
    "Min_Temperature",
    "Precipitation",
    "Evapotranspiration",
]

CLIMATE_TABLE_DESCRIPTION = "MonthlyClimate_AOI_CSV"
CLIMATE_STACK_DESCRIPTION = "MonthlyClimate_AOI_1000m"

# layer, chart title, x label, color
HISTOGRAM_SPECS = [
    ("SOC_Stocks", "SOC Distribution (t C ha⁻¹)", "SOC", "blue"),
    ("Clay_Content", "Clay Content Distribution (%)", "Clay %", "brown"),
    ("Monthly_NDVI", "NDVI Distribution", "NDVI", "green"),
]

# Config section each cached statistic depends on
STATS_SOURCES = {
    "SOC_Stocks": "soc",
    "Clay_Content": "clay",
    "Land_Cover_Reclassified": "landcover",
    "Monthly_NDVI": "ndvi",
    "climate_table": "terraclimate",
}


class SoilCarbonPipeline:
    """
    Builds the soil carbon input layers over one AOI and requests their exports.
    Failures in a single step are reported and collected, the other steps still run.
    """

    def __init__(self, cfg, aoi, aoi_source=None, status_callback=print, cache=None, verbose=False):
        self.cfg = cfg
        self.aoi = aoi
        self.aoi_source = aoi_source
        self.status = status_callback
        self.cache = cache
        self.verbose = verbose

        self.tasks = []
        self.failures = []
        self._layers = None

    def debug(self, message):
        if self.verbose:
            print(f"DEBUG: {message}")

    # --- LAYERS ---

    def build_layers(self):
        """Returns [(name, image, vis_params), ...] in export order."""
        if self._layers is not None:
            return self._layers

        self.debug("Building soil layers...")
        layers = {
            "SOC_Stocks": soil.soc_stocks(self.aoi, self.cfg),
            "Clay_Content": soil.clay_content(self.aoi, self.cfg),
        }

        self.debug("Building land cover and NDVI layers...")
        lc_image = landcover.latest_landcover(self.aoi, self.cfg)
        layers["Land_Cover_Reclassified"] = landcover.reclassify_rothc(lc_image, self.cfg)
        layers["Monthly_NDVI"] = vegetation.ndvi_median(self.aoi, self.cfg)

        self.debug("Building climate layers...")
        layers.update(climate.gridmet_means(self.aoi, self.cfg))

        self._layers = [(name, layers[name], VIS_PARAMS.get(name)) for name in RASTER_LAYERS]
        return self._layers

    def layer(self, name):
        for layer_name, image, _ in self.build_layers():
            if layer_name == name:
                return image
        raise KeyError(f"Unknown layer: {name}")

    def _run_step(self, step, func, *args):
        try:
            return func(*args)
        except Exception as e:
            print(f"{step.upper()} ERROR: {e}")
            self.status(f"{step} failed: {e}")
            self.failures.append((step, str(e)))
            return None

    def stats_params(self, name):
        """Cache key inputs for a statistic: its dataset config with open end dates resolved."""
        source = dict(self.cfg[STATS_SOURCES[name]])
        if "end" in source:
            source["end"] = resolve_end_date(source["end"])

        params = {"source": source}
        if name == "climate_table":
            params["scale"] = self.cfg["export"]["scale"]
        else:
            params["hist"] = self.cfg["histogram"]
        return params

    def _cached(self, layer, fetch, params=None):
        if self.cache is None or not self.aoi_source:
            return fetch()

        cached = self.cache.get(self.aoi_source, layer, params)
        if cached is not None:
            self.status(f"{layer}: loaded from cache.")
            return cached

        data = fetch()
        if data is not None:
            self.cache.set(self.aoi_source, layer, data, params)
        return data

    # --- EXPORTS ---

    def export_layers(self, names=None):
        selected = names or RASTER_LAYERS
        unknown = [n for n in selected if n not in RASTER_LAYERS]
        if unknown:
            raise ValueError(f"Unknown layers: {', '.join(unknown)}")

        started = []
        for name in selected:
            self.status(f"Exporting {name}...")
            task = self._run_step(f"export {name}", lambda n=name: exports.export_image(
                self.layer(n), n, self.aoi, self.cfg))
            if task is not None:
                started.append(task)

        self.tasks.extend(started)
        return started

    def export_climate_table(self):
        self.status("Exporting monthly climate table...")

        def run():
            table = climate.monthly_climate_table(self.aoi, self.cfg)
            return exports.export_table(table, CLIMATE_TABLE_DESCRIPTION, self.cfg)

        task = self._run_step("export climate table", run)
        if task is not None:
            self.tasks.append(task)
        return task

    def export_climate_stack(self):
        self.status("Exporting resampled monthly climate stack...")

        def run():
            stack = climate.monthly_climate_stack(self.aoi, self.cfg)
            return exports.export_image(stack, CLIMATE_STACK_DESCRIPTION, self.aoi, self.cfg)

        task = self._run_step("export climate stack", run)
        if task is not None:
            self.tasks.append(task)
        return task

    def wait(self, poll_interval=30, timeout=None):
        if not self.tasks:
            return {}
        self.status(f"Waiting for {len(self.tasks)} export task(s)...")
        try:
            states = exports.wait_for_tasks(self.tasks, poll_interval=poll_interval, timeout=timeout)
        except TimeoutError as e:
            print(f"WAIT ERROR: {e}")
            self.status(f"wait failed: {e}")
            self.failures.append(("wait", str(e)))
            return {}

        for description, state in states.items():
            if state != "COMPLETED" and state != "SUCCEEDED":
                self.failures.append((f"task {description}", state))
        return states

    # --- LOCAL OUTPUTS ---

    @staticmethod
    def _ensure_parent(path):
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def download_layers(self, out_dir, names=None, include_table=True):
        """Direct GeoTIFF / CSV downloads, for AOIs small enough for getDownloadURL."""
        os.makedirs(out_dir, exist_ok=True)
        paths = []

        for name in names or RASTER_LAYERS:
            self.status(f"Downloading {name}...")
            path = os.path.join(out_dir, f"{name}.tif")
            if self._run_step(f"download {name}", lambda n=name, p=path: exports.download_image(
                    self.layer(n), p, self.aoi, self.cfg)):
                paths.append(path)

        if include_table:
            self.status("Downloading monthly climate table...")
            path = os.path.join(out_dir, f"{CLIMATE_TABLE_DESCRIPTION}.csv")
            if self._run_step("download climate table", lambda: exports.download_table(
                    climate.monthly_climate_table(self.aoi, self.cfg), path)):
                paths.append(path)

        return paths

    def run_histograms(self, out_dir):
        os.makedirs(out_dir, exist_ok=True)
        paths = []

        for name, title, xlabel, color in HISTOGRAM_SPECS:
            self.status(f"Histogram: {name}...")
            path = os.path.join(out_dir, f"{name}_histogram.png")

            def run(n=name, t=title, x=xlabel, c=color, p=path):
                data = self._cached(f"histogram/{n}", lambda: histograms.histogram_data(
                    self.layer(n), self.aoi, self.cfg), self.stats_params(n))
                histograms.plot_histogram(data, t, x, c, p)
                return p

            if self._run_step(f"histogram {name}", run):
                paths.append(path)

        self.status("Histogram: Land cover...")
        lc_path = os.path.join(out_dir, "Land_Cover_distribution.png")

        def run_landcover():
            freq = self._cached("frequency/Land_Cover_Reclassified", lambda: landcover.class_frequencies(
                self.layer("Land_Cover_Reclassified"), self.aoi, self.cfg),
                self.stats_params("Land_Cover_Reclassified"))
            percentages = landcover.class_percentages(freq, LANDCOVER_NAMES)
            histograms.plot_landcover_distribution(percentages, LANDCOVER_COLORS, lc_path)
            return lc_path

        if self._run_step("histogram Land_Cover", run_landcover):
            paths.append(lc_path)

        return paths

    def write_climate_csv(self, path):
        """Fetches the monthly climate table and writes it locally as CSV."""
        self.status("Fetching monthly climate table...")
        self._ensure_parent(path)

        def run():
            fc_info = self._cached("climate_table", lambda: climate.monthly_climate_table(
                self.aoi, self.cfg).getInfo(), self.stats_params("climate_table"))
            df = climate.table_to_dataframe(fc_info)
            df.to_csv(path, index=False)
            return df

        return self._run_step("climate csv", run)

    def write_map(self, path):
        self.status("Generating preview map...")
        self._ensure_parent(path)

        def run():
            layers = list(self.build_layers()[:4])
            stack = climate.monthly_climate_stack(self.aoi, self.cfg)
            for band in climate.MONTHLY_BANDS:
                layers.append((f"Jan {band}", stack.select(climate.stack_band_name(1, band)),
                               VIS_PARAMS[band]))
            return map_utils.create_layer_map(self.aoi, layers, path, self.cfg["map"]["zoom"])

        return self._run_step("map", run)

    def run_all(self, out_dir="outputs"):
        self.export_layers()
        self.export_climate_table()
        self.export_climate_stack()
        self.run_histograms(out_dir)
        self.write_climate_csv(os.path.join(out_dir, "monthly_climate.csv"))
        self.write_map(os.path.join(out_dir, "soilcarbon_map.html"))

        if self.failures:
            self.status(f"Finished with {len(self.failures)} failure(s).")
        else:
            self.status("All steps complete.")
        return self.failures
