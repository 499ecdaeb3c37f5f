import logging

import numpy as np
import torch

from auto_threshold import BINS, AutoThresholder

log = logging.getLogger(__name__)


def operation(dimensions="2D, 3D"):
    def decorate(func):
        func.available_for_dimensions = dimensions
        return func
    return decorate


class Kernels:
    """Operations executed on the device of a GPUContext."""

    def __init__(self, context):
        self.context = context

    def _check(self, *buffers):
        for buffer in buffers:
            if buffer.tensor.device != self.context.device:
                raise ValueError(
                    f"{buffer.name} lives on {buffer.tensor.device}, expected {self.context.device}"
                )

    def _check_pair(self, src, dst):
        self._check(src, dst)
        if src.shape != dst.shape:
            raise ValueError(f"Shape mismatch: {src.shape} vs {dst.shape}")

    @operation()
    def minimum_of_all_pixels(self, src):
        """Determines the minimum intensity of all pixels in an image."""
        self._check(src)
        return float(src.tensor.min().item())

    @operation()
    def maximum_of_all_pixels(self, src):
        """Determines the maximum intensity of all pixels in an image."""
        self._check(src)
        return float(src.tensor.max().item())

    @operation()
    def histogram(self, src, bins=BINS, minimum=None, maximum=None):
        """Counts pixels in equally wide bins between minimum and maximum.

        Minimum and maximum default to the intensity range of the image, pixels
        outside the range are not counted. The histogram is returned as a
        numpy array.
        """
        self._check(src)
        if minimum is None:
            minimum = self.minimum_of_all_pixels(src)
        if maximum is None:
            maximum = self.maximum_of_all_pixels(src)
        if maximum < minimum:
            raise ValueError(f"maximum {maximum} is below minimum {minimum}")

        values = src.tensor.to(torch.float32)
        if maximum == minimum:
            counts = np.zeros(bins, dtype=np.int64)
            counts[0] = int((values == minimum).sum().item())
            return counts

        counts = torch.histc(values, bins=bins, min=minimum, max=maximum)
        return counts.cpu().numpy().round().astype(np.int64)

    @operation()
    def threshold(self, src, dst, value):
        """Sets pixels to 1 where the input is at or above the threshold value, to 0 otherwise."""
        self._check_pair(src, dst)
        dst.tensor.copy_(src.tensor >= value)

    @operation()
    def automatic_threshold(self, src, dst, method, minimum=None, maximum=None):
        """Binarizes an image with an automatically determined threshold.

        The threshold is selected from a 256 bin histogram of the image by one
        of the methods Default, Huang, Intermodes, IsoData, Li, MaxEntropy,
        Mean, MinError, Minimum, Moments, Otsu, Percentile, RenyiEntropy,
        Shanbhag, Triangle or Yen. Returns the threshold value applied.
        """
        AutoThresholder.resolve(method)
        self._check_pair(src, dst)

        if minimum is None:
            minimum = self.minimum_of_all_pixels(src)
        if maximum is None:
            maximum = self.maximum_of_all_pixels(src)

        if maximum == minimum:
            log.debug("%s is constant, nothing above threshold", src.name)
            self.set(dst, 0)
            return maximum

        hist = self.histogram(src, BINS, minimum, maximum)
        index = AutoThresholder().get_threshold(method, hist)
        value = minimum + (index + 1) * (maximum - minimum) / BINS
        log.debug("%s threshold for %s: %s (bin %d)", method, src.name, value, index)

        self.threshold(src, dst, value)
        return value

    @operation()
    def copy(self, src, dst):
        """Copies an image into another one of the same size."""
        self._check_pair(src, dst)
        dst.tensor.copy_(src.tensor)

    @operation()
    def set(self, dst, value):
        """Sets all pixels of an image to a given value."""
        self._check(dst)
        dst.tensor.fill_(value)
