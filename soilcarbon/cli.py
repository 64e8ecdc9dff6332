"""soilcarbon command line interface.

Examples:
  # Export all rasters (SOC, clay, land cover, NDVI, climate) to Google Drive
  soilcarbon export

  # Only some layers, into a Drive folder, and wait for the tasks
  soilcarbon export --layers SOC_Stocks Clay_Content --folder soil --wait

  # TerraClimate monthly averages as CSV table (export + local copy)
  soilcarbon climate-table --csv outputs/monthly_climate.csv

  # Everything, for a custom AOI
  soilcarbon all --aoi bbox:36.5,-1.2,36.9,-0.8 --out outputs
"""

import argparse
import os
import sys

from soilcarbon.aoi import load_aoi
from soilcarbon.cache_utils import StatsCache
from soilcarbon.config import load_config
from soilcarbon.ee_utils import initialize_ee
from soilcarbon.pipeline import RASTER_LAYERS, SoilCarbonPipeline


def build_parser():
    parser = argparse.ArgumentParser(
        prog="soilcarbon",
        description="Export soil carbon input layers from Google Earth Engine.",
    )
    parser.add_argument("--config", help="JSON file overriding the default config")
    parser.add_argument("--aoi", help="Asset ID, GeoJSON file or string, or 'bbox:xmin,ymin,xmax,ymax'")
    parser.add_argument("--project", help="Google Cloud project for Earth Engine")
    parser.add_argument("--destination", choices=["drive", "gcs"], help="Export destination")
    parser.add_argument("--folder", help="Google Drive folder")
    parser.add_argument("--bucket", help="Cloud Storage bucket (with --destination gcs)")
    parser.add_argument("--no-cache", action="store_true", help="Do not use the local stats cache")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    p_export = sub.add_parser("export", help="Export raster layers as GeoTIFF")
    p_export.add_argument("--layers", nargs="+", choices=RASTER_LAYERS, help="Subset of layers")
    _add_wait_args(p_export)

    p_table = sub.add_parser("climate-table", help="Export TerraClimate monthly averages as CSV")
    p_table.add_argument("--csv", help="Also write the table locally to this path")
    _add_wait_args(p_table)

    p_stack = sub.add_parser("climate-stack", help="Export resampled monthly climate stack")
    _add_wait_args(p_stack)

    p_hist = sub.add_parser("histograms", help="Write value distribution charts (PNG)")
    p_hist.add_argument("--out", default="outputs")

    p_dl = sub.add_parser("download", help="Download rasters and climate table directly (small AOIs)")
    p_dl.add_argument("--layers", nargs="+", choices=RASTER_LAYERS, help="Subset of layers")
    p_dl.add_argument("--no-table", action="store_true", help="Skip the climate table")
    p_dl.add_argument("--out", default="outputs")

    p_map = sub.add_parser("map", help="Write an HTML preview map")
    p_map.add_argument("--out", default="outputs/soilcarbon_map.html")

    p_all = sub.add_parser("all", help="Run every export and local output")
    p_all.add_argument("--out", default="outputs")
    _add_wait_args(p_all)

    return parser


def _add_wait_args(p):
    p.add_argument("--wait", action="store_true", help="Wait for export tasks to finish")
    p.add_argument("--poll-interval", type=float, default=30)
    p.add_argument("--timeout", type=float, default=None)


def config_from_args(args):
    cfg = load_config(args.config)

    if args.project:
        cfg["project"] = args.project
    if args.aoi:
        cfg["aoi"] = args.aoi
    if args.destination:
        cfg["export"]["destination"] = args.destination
    if args.folder:
        cfg["export"]["folder"] = args.folder
    if args.bucket:
        cfg["export"]["bucket"] = args.bucket
    if args.no_cache:
        cfg["cache"]["enabled"] = False
    return cfg


def run_command(args, pipeline):
    command = args.command

    if command == "export":
        pipeline.export_layers(args.layers)
    elif command == "climate-table":
        pipeline.export_climate_table()
        if args.csv:
            pipeline.write_climate_csv(args.csv)
    elif command == "climate-stack":
        pipeline.export_climate_stack()
    elif command == "histograms":
        pipeline.run_histograms(args.out)
    elif command == "download":
        pipeline.download_layers(args.out, args.layers, include_table=not args.no_table)
    elif command == "map":
        pipeline.write_map(args.out)
    elif command == "all":
        pipeline.run_all(args.out)

    if getattr(args, "wait", False):
        pipeline.wait(poll_interval=args.poll_interval, timeout=args.timeout)

    return 1 if pipeline.failures else 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    cfg = config_from_args(args)

    initialize_ee(cfg["project"])
    aoi = load_aoi(cfg["aoi"])

    cache = None
    if cfg["cache"]["enabled"]:
        cache_path = cfg["cache"]["path"]
        parent = os.path.dirname(cache_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        cache = StatsCache(cache_path)
        cache.clear_old()

    pipeline = SoilCarbonPipeline(cfg, aoi, aoi_source=cfg["aoi"], cache=cache, verbose=args.verbose)
    try:
        return run_command(args, pipeline)
    finally:
        if cache is not None:
            cache.close()


if __name__ == "__main__":
    sys.exit(main())
