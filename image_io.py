import logging
import os
from io import BytesIO
from urllib.parse import urlparse

import matplotlib.pyplot as plt
import numpy as np
import requests
from PIL import Image

log = logging.getLogger(__name__)

NON_INTERACTIVE_BACKENDS = {"agg", "cairo", "pdf", "pgf", "ps", "svg", "template"}

# (title, figure) of every window opened by show()
_windows = []


def open_image(source, timeout=30.0):
    source = str(source)
    location = urlparse(source)
    if location.scheme in ("http", "https"):
        log.info("Fetching %s", source)
        response = requests.get(source, timeout=timeout)
        response.raise_for_status()
        data = BytesIO(response.content)
        title = os.path.basename(location.path) or source
    else:
        data = source
        title = os.path.basename(source)

    with Image.open(data) as image:
        image.load()
        image = image.copy()
    image.info["title"] = title
    log.debug("Opened %s: %s %s", title, image.mode, image.size)
    return image


def is_interactive():
    return plt.get_backend().lower() not in NON_INTERACTIVE_BACKENDS


def show(image, title=None):
    if isinstance(image, Image.Image):
        title = title or image.info.get("title")
        if image.mode not in ("L", "RGB", "RGBA", "I;16", "I", "F"):
            image = image.convert("L")
        array = np.array(image)
    else:
        array = np.asarray(image)
    title = title or f"Image {len(_windows) + 1}"

    figure, axes = plt.subplots()
    if array.dtype == np.uint8:
        axes.imshow(array, cmap="gray", vmin=0, vmax=255, interpolation="nearest")
    else:
        axes.imshow(array, cmap="gray", interpolation="nearest")
    axes.set_title(title)
    axes.axis("off")
    figure.canvas.manager.set_window_title(title)

    _windows.append((title, figure))
    if is_interactive():
        plt.show(block=False)
    return figure


def open_windows():
    return [title for title, figure in _windows if plt.fignum_exists(figure.number)]


def close_all_open_images():
    for _, figure in _windows:
        plt.close(figure)
    _windows.clear()


def wait_for_windows():
    """Block until the user closes the open windows, on interactive backends only."""
    if _windows and is_interactive():
        plt.show()
