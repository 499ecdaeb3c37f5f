"""
Apply an automatic threshold method to an image on the GPU.

    python automatic_threshold.py
"""

import logging

from gpu_context import GPUContext
from image_io import close_all_open_images, open_image, show, wait_for_windows
from threshold_config import ThresholdConfig


def run(config=None):
    config = config or ThresholdConfig()

    close_all_open_images()

    # load example image
    image = open_image(config.image_url, timeout=config.timeout)
    if config.show:
        show(image)

    # init GPU
    context = GPUContext.get_instance(config.device)

    # push image to GPU
    input_buffer = context.push(image)

    # reserve memory for output, same size and type as input
    output_buffer = context.create_like(input_buffer)

    # apply threshold method on GPU
    context.op().automatic_threshold(input_buffer, output_buffer, config.method)

    # show result
    result = context.pull_binary(output_buffer)
    if config.show:
        show(result, title=f"{config.method} of {image.info['title']}")
    return result


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    result = run()
    print(f"Thresholded image: {result.width}x{result.height}")
    wait_for_windows()


if __name__ == "__main__":
    main()
