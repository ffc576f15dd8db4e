"""
LeNet-style forward pass with cunet

Builds input, kernel, bias, convolution output and pooling layers on the
device and prints the resulting shapes.

Usage:
    python lenet_forward.py
    python lenet_forward.py --image path/to/digit.png --device cpu
    python lenet_forward.py --pool_mode average --stride 2
"""

import argparse
import logging

import numpy as np
from PIL import Image

from cunet import (
    ConvolutionDescriptor,
    CuNetError,
    DeviceArena,
    add_bias_units,
    apply_bias,
    convolution_forward,
    create_input_data_layer,
    create_kernel,
    create_output_data_layer,
    create_pooling_layer,
    print_dynamic_array,
    set_device,
    split_array,
)
from cunet.log import configure_logging


# =============================================================================
# CONFIG
# =============================================================================
IMAGE_SIZE = 32
KERNEL_SIZE = 5
OUT_FEATURE_MAPS = 6
POOL_WINDOW = 2
PREVIEW_VALUES = 8


def load_image(image_path, size=IMAGE_SIZE):
    """Load a grayscale image, resize it and scale to [0, 1]."""
    img = Image.open(image_path).convert('L').resize((size, size))
    return np.asarray(img, dtype=np.float32) / 255.0


def run(args):
    set_device(args.device)
    rng = np.random.default_rng(args.seed)

    if args.image:
        print(f"Loading image: {args.image}")
        host_input = load_image(args.image)[np.newaxis, np.newaxis]
    else:
        host_input = rng.random((args.batch_size, 1, IMAGE_SIZE, IMAGE_SIZE), dtype=np.float32)
    batch_size = host_input.shape[0]

    # Kaiming init like a freshly constructed conv layer
    fan_in = KERNEL_SIZE * KERNEL_SIZE
    host_kernel = rng.standard_normal((OUT_FEATURE_MAPS, 1, KERNEL_SIZE, KERNEL_SIZE)).astype(np.float32)
    host_kernel *= np.sqrt(2.0 / fan_in)
    host_bias = np.full(OUT_FEATURE_MAPS, 0.1, dtype=np.float32)

    conv_desc = ConvolutionDescriptor(stride_v=args.stride, stride_h=args.stride)

    with DeviceArena() as arena:
        x = arena.adopt(create_input_data_layer(host_input, batch_size, 1, IMAGE_SIZE, IMAGE_SIZE))
        k = arena.adopt(create_kernel(host_kernel, 1, OUT_FEATURE_MAPS, KERNEL_SIZE, KERNEL_SIZE))

        out, out_dim = create_output_data_layer(x.descriptor, k.descriptor, conv_desc)
        arena.adopt(out)
        print(f"Convolution output: {out_dim}")

        bias = arena.adopt(add_bias_units(host_bias, OUT_FEATURE_MAPS, out_dim.height, out_dim.width))
        convolution_forward(x, k, conv_desc, output_layer=out)
        apply_bias(out, bias)

        pooled, pool_dim = create_pooling_layer(out, POOL_WINDOW, POOL_WINDOW, POOL_WINDOW, POOL_WINDOW,
                                                mode=args.pool_mode)
        arena.adopt(pooled)
        print(f"Pooling output:     {pool_dim}")

        host_pooled = pooled.to_host()

    images = split_array(host_pooled.ravel(), batch_size, host_pooled.size // batch_size)
    for i, image in enumerate(images):
        print(f"Image {i} first {PREVIEW_VALUES} pooled values:")
        print_dynamic_array(image, min(PREVIEW_VALUES, image.size))

    return pool_dim


def main(argv=None):
    parser = argparse.ArgumentParser(description='LeNet-style convolution + pooling with cunet')
    parser.add_argument('--image', type=str, default=None, help='Optional image file (grayscale)')
    parser.add_argument('--batch_size', type=int, default=2, help='Random images when no --image is given')
    parser.add_argument('--device', type=str, default='auto', choices=['auto', 'gpu', 'cpu'])
    parser.add_argument('--stride', type=int, default=1)
    parser.add_argument('--pool_mode', type=str, default='max', choices=['max', 'average'])
    parser.add_argument('--seed', type=int, default=0)
    parser.add_argument('--verbose', action='store_true')
    args = parser.parse_args(argv)

    if args.stride < 1:
        parser.error(f"--stride must be at least 1, got {args.stride}")
    if args.batch_size < 1:
        parser.error(f"--batch_size must be at least 1, got {args.batch_size}")

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return run(args)
    except CuNetError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
