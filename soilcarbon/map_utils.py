import geemap.foliumap as geemap

from soilcarbon.config import VIS_PARAMS

HYBRID_TILES = "https://mt1.google.com/vt/lyrs=y&x={x}&y={y}&z={z}"


def create_layer_map(aoi, layers, output_file="soilcarbon_map.html", zoom=6):
    """
    Saves an HTML preview map with one layer per (name, image, vis_params) entry.
    Missing vis_params fall back to VIS_PARAMS by name.
    """
    m = geemap.Map(tiles=HYBRID_TILES, attr="Google Hybrid")
    m.centerObject(aoi, zoom)

    for name, image, vis_params in layers:
        vis = vis_params or VIS_PARAMS.get(name, {})
        m.addLayer(image, vis, name)

    m.add_layer_control()
    m.save(output_file)
    print(f"Map saved: {output_file}")
    return output_file
