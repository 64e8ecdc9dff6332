# soilcarbon package - Earth Engine input layers for soil carbon modelling
#
# This package contains:
#   ee_utils     - Earth Engine initialization and authentication
#   config       - Dataset IDs, dates, scale factors and JSON overrides
#   aoi          - Area of interest loading (asset, GeoJSON, bbox)
#   soil         - SOC stocks and clay content layers
#   landcover    - ESA WorldCover reclassification for RothC
#   vegetation   - MODIS NDVI median
#   climate      - GRIDMET means and TerraClimate monthly averages
#   exports      - Export tasks, task monitoring and direct downloads
#   histograms   - Value distribution charts (matplotlib)
#   map_utils    - HTML preview map generation
#   cache_utils  - StatsCache (SQLite)
#   pipeline     - SoilCarbonPipeline orchestrating a full run
#   cli          - Command line entry point

__version__ = "1.2"
