import re
import time

import ee
import requests

TERMINAL_STATES = ("COMPLETED", "SUCCEEDED", "FAILED", "CANCELLED")

# Earth Engine only accepts these characters in task descriptions
_DESCRIPTION_PATTERN = re.compile(r"[^A-Za-z0-9_.,:;\-]")
_MAX_DESCRIPTION = 100


def sanitize_description(text):
    cleaned = _DESCRIPTION_PATTERN.sub("_", str(text).strip())
    return cleaned[:_MAX_DESCRIPTION] or "export"


def _destination_params(description, export_cfg):
    destination = export_cfg.get("destination", "drive")

    if destination == "gcs":
        if not export_cfg.get("bucket"):
            raise ValueError("Cloud Storage export requires 'bucket'")
        return {"bucket": export_cfg["bucket"], "fileNamePrefix": description}

    if destination != "drive":
        raise ValueError(f"Unknown export destination: {destination}")

    params = {"fileNamePrefix": description}
    if export_cfg.get("folder"):
        params["folder"] = export_cfg["folder"]
    return params


def image_export_params(image, description, aoi, cfg):
    """Keyword arguments for Export.image.toDrive / toCloudStorage."""
    export_cfg = cfg["export"]
    description = sanitize_description(description)

    params = {
        "image": image,
        "description": description,
        "scale": export_cfg["scale"],
        "region": aoi,
        "fileFormat": export_cfg["file_format"],
        "maxPixels": export_cfg["max_pixels"],
    }
    params.update(_destination_params(description, export_cfg))
    return params


def table_export_params(collection, description, cfg):
    """Keyword arguments for Export.table.toDrive / toCloudStorage."""
    export_cfg = cfg["export"]
    description = sanitize_description(description)

    params = {
        "collection": collection,
        "description": description,
        "fileFormat": export_cfg["table_format"],
    }
    params.update(_destination_params(description, export_cfg))
    return params


def export_image(image, description, aoi, cfg):
    params = image_export_params(image, description, aoi, cfg)

    if cfg["export"].get("destination") == "gcs":
        task = ee.batch.Export.image.toCloudStorage(**params)
    else:
        task = ee.batch.Export.image.toDrive(**params)

    task.start()
    print(f"Started export task: {params['description']}")
    return task


def export_table(collection, description, cfg):
    params = table_export_params(collection, description, cfg)

    if cfg["export"].get("destination") == "gcs":
        task = ee.batch.Export.table.toCloudStorage(**params)
    else:
        task = ee.batch.Export.table.toDrive(**params)

    task.start()
    print(f"Started export task: {params['description']}")
    return task


def wait_for_tasks(tasks, poll_interval=30, timeout=None, sleep=time.sleep, clock=time.monotonic):
    """
    Polls the export tasks until all of them reach a terminal state.
    Returns {description: state}. Raises TimeoutError after 'timeout' seconds.
    """
    started = clock()
    states = {}
    pending = list(tasks)

    while pending:
        still_running = []
        for task in pending:
            status = task.status()
            description = status.get("description", str(task))
            state = status.get("state", "UNKNOWN")
            states[description] = state

            if state in TERMINAL_STATES:
                if state == "FAILED":
                    print(f"EXPORT FAILED: {description}: {status.get('error_message')}")
                else:
                    print(f"Export {description}: {state}")
            else:
                still_running.append((task, description))

        pending = [task for task, _ in still_running]
        if not pending:
            break

        if timeout is not None and clock() - started > timeout:
            names = ", ".join(description for _, description in still_running)
            raise TimeoutError(f"Export tasks still running after {timeout}s: {names}")

        sleep(poll_interval)

    return states


# --- DIRECT DOWNLOADS (small AOIs only) ---

def _download(url, path):
    response = requests.get(url, timeout=300)
    response.raise_for_status()
    with open(path, "wb") as f:
        f.write(response.content)
    return len(response.content)


def download_image(image, path, aoi, cfg):
    """Downloads a GeoTIFF directly instead of running a batch export."""
    url = image.getDownloadURL({
        "scale": cfg["export"]["scale"],
        "region": aoi,
        "format": "GEO_TIFF",
    })
    size = _download(url, path)
    print(f"Downloaded {path} ({size} bytes)")
    return path


def download_table(collection, path):
    url = collection.getDownloadURL(filetype="csv")
    size = _download(url, path)
    print(f"Downloaded {path} ({size} bytes)")
    return path
