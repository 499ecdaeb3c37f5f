import numpy as np
import pytest
import torch

from auto_threshold import METHODS


def test_minimum_and_maximum(context):
    buffer = context.push(np.array([[3, 9], [7, 5]], dtype=np.uint8))
    assert context.op().minimum_of_all_pixels(buffer) == 3
    assert context.op().maximum_of_all_pixels(buffer) == 9


def test_histogram_counts_every_pixel(context, blobs_image):
    buffer = context.push(blobs_image)
    hist = context.op().histogram(buffer)
    assert hist.shape == (256,)
    assert hist.sum() == 64 * 80
    assert hist[0] > 0
    assert hist[-1] > 0


def test_histogram_with_range(context):
    buffer = context.push(np.array([[0, 10], [20, 30]], dtype=np.uint8))
    hist = context.op().histogram(buffer, bins=2, minimum=0, maximum=20)
    np.testing.assert_array_equal(hist, [1, 2])


def test_histogram_of_constant_image(context):
    buffer = context.push(np.full((3, 3), 4, dtype=np.uint8))
    hist = context.op().histogram(buffer)
    assert hist[0] == 9
    assert hist[1:].sum() == 0


def test_threshold(context):
    src = context.push(np.array([[1, 5], [10, 4]], dtype=np.uint8))
    dst = context.create_like(src)
    context.op().threshold(src, dst, 5)
    np.testing.assert_array_equal(context.pull(dst), [[0, 1], [1, 0]])


def test_otsu_separates_blobs(context, blobs_image, blobs_array):
    src = context.push(blobs_image)
    dst = context.create_like(src)
    value = context.op().automatic_threshold(src, dst, "Otsu")

    background = blobs_array[blobs_array < 128]
    foreground = blobs_array[blobs_array >= 128]
    assert background.max() < value <= foreground.min()
    result = context.pull(dst)
    assert set(np.unique(result)) == {0, 1}
    np.testing.assert_array_equal(result, (blobs_array >= value).astype(np.uint8))


@pytest.mark.parametrize("method", METHODS)
def test_every_method_gives_binary_output(context, blobs_image, method):
    src = context.push(blobs_image)
    dst = context.create_like(src)
    context.op().automatic_threshold(src, dst, method)
    assert set(np.unique(context.pull(dst))) <= {0, 1}


def test_automatic_threshold_on_stack(context, blobs_array):
    stack = np.stack([blobs_array, blobs_array])
    src = context.push(stack)
    dst = context.create_like(src)
    context.op().automatic_threshold(src, dst, "Otsu")
    result = context.pull(dst)
    assert result.shape == stack.shape
    np.testing.assert_array_equal(result[0], result[1])


def test_automatic_threshold_float_image(context, blobs_array):
    src = context.push(blobs_array.astype(np.float32) / 255.0)
    dst = context.create_like(src)
    value = context.op().automatic_threshold(src, dst, "Otsu")
    assert 0.0 < value < 1.0
    assert dst.dtype == torch.float32
    assert set(np.unique(context.pull(dst))) == {0.0, 1.0}


def test_constant_image_gives_empty_mask(context):
    src = context.push(np.full((4, 4), 100, dtype=np.uint8))
    dst = context.create_like(src)
    context.op().set(dst, 1)
    assert context.op().automatic_threshold(src, dst, "Otsu") == 100
    assert not context.pull(dst).any()


def test_unknown_method_leaves_output_untouched(context, blobs_image):
    src = context.push(blobs_image)
    dst = context.create_like(src)
    context.op().set(dst, 7)
    with pytest.raises(ValueError, match="NotAMethod"):
        context.op().automatic_threshold(src, dst, "NotAMethod")
    assert (context.pull(dst) == 7).all()


def test_shape_mismatch(context):
    src = context.push(np.zeros((2, 2), dtype=np.uint8))
    dst = context.create((3, 3), dtype=torch.uint8)
    with pytest.raises(ValueError, match="Shape"):
        context.op().threshold(src, dst, 1)


def test_copy_and_set(context):
    src = context.push(np.arange(6, dtype=np.uint8).reshape(2, 3))
    dst = context.create_like(src)
    context.op().copy(src, dst)
    np.testing.assert_array_equal(context.pull(dst), context.pull(src))
    context.op().set(dst, 9)
    assert (context.pull(dst) == 9).all()


def test_released_buffer_is_rejected(context):
    src = context.push(np.zeros((2, 2), dtype=np.uint8))
    dst = context.create_like(src)
    dst.close()
    with pytest.raises(RuntimeError):
        context.op().copy(src, dst)
