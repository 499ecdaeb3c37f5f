import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from PIL import Image

import image_io
from gpu_context import GPUContext


@pytest.fixture(autouse=True)
def reset_state():
    yield
    image_io.close_all_open_images()
    GPUContext.reset_instance()


@pytest.fixture
def context():
    return GPUContext.get_instance("cpu")


@pytest.fixture
def blobs_array():
    # bright discs on a dark, slightly noisy background
    rng = np.random.default_rng(0)
    yy, xx = np.mgrid[0:64, 0:80]
    array = np.full((64, 80), 40.0)
    for cy, cx, r in [(16, 20, 8), (40, 55, 10), (50, 18, 6)]:
        array[(yy - cy) ** 2 + (xx - cx) ** 2 <= r * r] = 200.0
    array += rng.normal(0, 5, array.shape)
    return np.clip(array, 0, 255).astype(np.uint8)


@pytest.fixture
def blobs_image(blobs_array):
    image = Image.fromarray(blobs_array)
    image.info["title"] = "blobs.gif"
    return image
