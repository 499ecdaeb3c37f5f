import itertools
import logging

import numpy as np
import torch
from PIL import Image

from gpu_kernels import Kernels

log = logging.getLogger(__name__)

# host pixel type -> pixel type kept on the device
HOST_TYPES = {
    np.dtype(np.uint8): np.uint8,
    np.dtype(np.bool_): np.uint8,
    np.dtype(np.int8): np.int32,
    np.dtype(np.uint16): np.int32,
    np.dtype(np.int16): np.int32,
    np.dtype(np.int32): np.int32,
    np.dtype(np.uint32): np.int32,
    np.dtype(np.int64): np.int32,
    np.dtype(np.float16): np.float32,
    np.dtype(np.float32): np.float32,
    np.dtype(np.float64): np.float32,
}

_buffer_ids = itertools.count(1)


def _has_gray_palette(image):
    palette = image.getpalette()
    if not palette:
        return False
    colors = np.array(palette).reshape(-1, 3)
    return bool(np.all(colors[:, 0] == colors[:, 1]) and np.all(colors[:, 1] == colors[:, 2]))


def image_to_array(image):
    """Pixel values of a PIL image as a 2D numpy array.

    Gray palette images keep their raw indices, the palette is only a lookup
    table for display. Color images are converted to 8 bit gray.
    """
    if image.mode == "P" and _has_gray_palette(image):
        return np.array(image)
    if image.mode in ("L", "I;16", "I", "F"):
        return np.array(image)
    return np.array(image.convert("L"))


class DeviceBuffer:
    """Image data resident on a torch device.

    Shapes follow numpy order: (height, width) or (depth, height, width).
    """

    def __init__(self, tensor, name=None):
        self._tensor = tensor
        self.name = name or f"buffer{next(_buffer_ids)}"

    @property
    def tensor(self):
        if self._tensor is None:
            raise RuntimeError(f"{self.name} has been released")
        return self._tensor

    @property
    def closed(self):
        return self._tensor is None

    @property
    def shape(self):
        return tuple(self.tensor.shape)

    @property
    def dtype(self):
        return self.tensor.dtype

    @property
    def device(self):
        return self.tensor.device

    @property
    def dimension(self):
        return self.tensor.dim()

    @property
    def width(self):
        return self.shape[-1]

    @property
    def height(self):
        return self.shape[-2]

    @property
    def depth(self):
        return self.shape[0] if self.dimension == 3 else 1

    def close(self):
        self._tensor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self):
        if self.closed:
            return f"DeviceBuffer({self.name}, released)"
        return f"DeviceBuffer({self.name}, shape={self.shape}, dtype={self.dtype}, device={self.device})"


class GPUContext:
    """Process wide access to the compute device.

    Use get_instance() rather than the constructor so every caller shares the
    same device.
    """

    _instance = None

    def __init__(self, device=None):
        if device is None:
            device = "cuda" if torch.cuda.is_available() else "cpu"
        self.device = torch.device(device)
        self._kernels = None
        log.info("Using device %s", self.device_name)

    @classmethod
    def get_instance(cls, device=None):
        if cls._instance is None or (device is not None and torch.device(device) != cls._instance.device):
            cls._instance = cls(device)
        return cls._instance

    @classmethod
    def reset_instance(cls):
        cls._instance = None

    @property
    def device_name(self):
        if self.device.type == "cuda":
            return torch.cuda.get_device_name(self.device)
        return self.device.type.upper()

    def push(self, image, name=None):
        if isinstance(image, Image.Image):
            name = name or image.info.get("title")
            array = image_to_array(image)
        else:
            array = np.asarray(image)

        if array.ndim not in (2, 3):
            raise ValueError(f"Only 2D and 3D images can be pushed, got {array.ndim} dimensions")
        if array.dtype not in HOST_TYPES:
            raise ValueError(f"Unsupported pixel type {array.dtype}")

        host = np.array(array, dtype=HOST_TYPES[array.dtype])
        buffer = DeviceBuffer(torch.from_numpy(host).to(self.device), name)
        log.debug("Pushed %r", buffer)
        return buffer

    def create(self, shape, dtype=torch.float32, name=None):
        return DeviceBuffer(torch.zeros(tuple(shape), dtype=dtype, device=self.device), name)

    def create_like(self, buffer, name=None):
        return DeviceBuffer(torch.zeros_like(buffer.tensor, device=self.device), name)

    def pull(self, buffer):
        return buffer.tensor.detach().cpu().numpy().copy()

    def pull_binary(self, buffer):
        """8 bit image with 255 where the buffer is non-zero and 0 elsewhere."""
        array = self.pull(buffer)
        if array.ndim != 2:
            raise ValueError(f"pull_binary supports 2D buffers, {buffer.name} has {array.ndim} dimensions")
        image = Image.fromarray(np.where(array != 0, 255, 0).astype(np.uint8))
        image.info["title"] = buffer.name
        return image

    def op(self):
        if self._kernels is None:
            self._kernels = Kernels(self)
        return self._kernels

    def __repr__(self):
        return f"GPUContext({self.device_name})"
