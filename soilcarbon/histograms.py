import ee
from matplotlib.figure import Figure


def histogram_data(image, aoi, cfg):
    """
    Value distribution of the first band over the AOI.
    Returns the dict produced by ee.Reducer.histogram()
    ({'bucketMeans': [...], 'histogram': [...], ...}) or None.
    """
    hist_cfg = cfg["histogram"]
    band = image.bandNames().get(0)

    histogram = image.reduceRegion(
        reducer=ee.Reducer.histogram(),
        geometry=aoi,
        scale=hist_cfg["scale"],
        maxPixels=hist_cfg["max_pixels"]
    )
    return ee.Dictionary(histogram).get(band).getInfo()


def plot_histogram(data, title, xlabel, color="blue", path=None):
    """Bar chart of bucket means vs pixel counts. Saved as PNG if 'path' is given."""
    if not data or not data.get("histogram"):
        raise ValueError(f"No histogram data for '{title}'")

    counts = data["histogram"]
    means = data.get("bucketMeans") or list(range(len(counts)))
    width = data.get("bucketWidth") or 1

    figure = Figure(figsize=(10, 6))
    ax = figure.subplots()
    ax.bar(means, counts, width=width * 0.9, color=color)
    ax.set_title(title)
    ax.set_xlabel(xlabel)
    ax.set_ylabel("Frequency")
    ax.grid(True, linestyle="--", alpha=0.6)
    figure.tight_layout()

    if path:
        figure.savefig(path)
    return figure


def plot_landcover_distribution(percentages, colors, path=None):
    """Bar chart of land cover class shares (%)."""
    names = list(percentages.keys())
    values = [percentages[n] for n in names]

    figure = Figure(figsize=(10, 6))
    ax = figure.subplots()
    ax.bar(names, values, color=colors[:len(names)])
    ax.set_title("Land Cover Distribution")
    ax.set_xlabel("Land Cover Category")
    ax.set_ylabel("Share (%)")
    ax.tick_params(axis="x", labelsize=8)
    figure.tight_layout()

    if path:
        figure.savefig(path)
    return figure
