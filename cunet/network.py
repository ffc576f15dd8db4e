"""
CNN layer construction

Each function takes host data or existing device buffers, validates shapes
before touching the device, and returns newly owned DeviceBuffers. The
descriptor describing a buffer travels with it as buffer.descriptor.

Usage:
    import numpy as np
    from cunet import network, DeviceArena

    with DeviceArena() as arena:
        x = arena.adopt(network.create_input_data_layer(np.random.rand(32 * 32), 1, 1, 32, 32))
        k = arena.adopt(network.create_kernel(np.random.rand(6 * 5 * 5), 1, 6, 5, 5))
        out, dim = network.create_output_data_layer(x.descriptor, k.descriptor)
        arena.adopt(out)
        network.convolution_forward(x, k, output_layer=out)
        pooled, pool_dim = network.create_pooling_layer(out, 2, 2, 2, 2)
        arena.adopt(pooled)
"""
import numpy as np

from . import config
from .buffers import DeviceBuffer, allocate, allocation_guard, upload
from .conv import add_bias, conv2d_forward
from .descriptors import (
    ConvolutionDescriptor,
    FilterDescriptor,
    OutputDim,
    PoolingDescriptor,
    TensorDescriptor,
)
from .errors import ShapeMismatchError
from .log import get_logger
from .pooling import pool2d_forward


logger = get_logger(__name__)


def _flatten_host(host_data, expected, what):
    """Flatten host data to float32 and check its element count."""
    host = np.asarray(host_data, dtype=config.DTYPE).ravel()
    if host.size != expected:
        raise ShapeMismatchError(f"{what} has {host.size} elements, expected {expected}")
    return host


def _check_descriptor(descriptor, cls, what):
    if not isinstance(descriptor, cls):
        raise TypeError(f"{what} must be a {cls.__name__}, got {type(descriptor).__name__}")


def _require_descriptor(buffer, cls, what):
    _check_descriptor(buffer.descriptor, cls, f"{what} descriptor")


# =============================================================================
# INPUT / KERNEL / BIAS
# =============================================================================

def create_input_data_layer(host_data, batch_size, feature_maps, height, width):
    """
    Upload a batch of images to the device.

    Args:
        host_data: Flat or NCHW-shaped host array with
            batch_size * feature_maps * height * width values
        batch_size: Number of images (N)
        feature_maps: Channels per image (C)
        height: Image height (H)
        width: Image width (W)

    Returns:
        DeviceBuffer described by a TensorDescriptor(N, C, H, W)
    """
    descriptor = TensorDescriptor(batch_size, feature_maps, height, width)
    host = _flatten_host(host_data, descriptor.size, 'Input data')
    return upload(host, descriptor)


def create_kernel(host_kernel, in_feature_maps, out_feature_maps, kernel_height, kernel_width):
    """
    Upload convolution weights to the device.

    Host weights are ordered (out map, in map, row, col).

    Returns:
        DeviceBuffer described by a FilterDescriptor(K, C, R, S)
    """
    descriptor = FilterDescriptor(out_feature_maps, in_feature_maps, kernel_height, kernel_width)
    host = _flatten_host(host_kernel, descriptor.size, 'Kernel')
    return upload(host, descriptor)


def add_bias_units(host_bias, out_feature_maps, kernel_height, kernel_width):
    """
    Upload bias units shaped (1, out_feature_maps, kernel_height, kernel_width).

    kernel_height x kernel_width is the bias plane, not the convolution kernel
    size. To be added by apply_bias it must equal the convolution output plane
    (OutputDim.height x OutputDim.width) or be 1 x 1; a bias sized like the
    kernel is rejected there with ShapeMismatchError.

    host_bias holds either one value per feature map, which is broadcast over
    the whole plane, or a value for every cell of the plane.
    """
    descriptor = TensorDescriptor(1, out_feature_maps, kernel_height, kernel_width)
    host = np.asarray(host_bias, dtype=config.DTYPE).ravel()

    if host.size == out_feature_maps:
        host = np.repeat(host, kernel_height * kernel_width)
    elif host.size != descriptor.size:
        raise ShapeMismatchError(
            f"Bias has {host.size} elements, expected {out_feature_maps} (one per feature map) "
            f"or {descriptor.size} (full tensor)")

    return upload(host, descriptor)


# =============================================================================
# CONVOLUTION
# =============================================================================

def get_convolution_output_dim(input_descriptor, kernel_descriptor, convolution_descriptor=None):
    """
    Shape of a convolution result.

    out = (in + 2 * pad - kernel) // stride + 1 along each spatial axis.
    """
    _check_descriptor(input_descriptor, TensorDescriptor, 'Input descriptor')
    _check_descriptor(kernel_descriptor, FilterDescriptor, 'Kernel descriptor')
    conv = convolution_descriptor or ConvolutionDescriptor()
    _check_descriptor(conv, ConvolutionDescriptor, 'Convolution descriptor')

    if kernel_descriptor.in_feature_maps != input_descriptor.c:
        raise ShapeMismatchError(
            f"Kernel expects {kernel_descriptor.in_feature_maps} input feature maps, "
            f"input has {input_descriptor.c}")

    padded_h = input_descriptor.h + 2 * conv.pad_h
    padded_w = input_descriptor.w + 2 * conv.pad_w
    if padded_h < kernel_descriptor.h or padded_w < kernel_descriptor.w:
        raise ShapeMismatchError(
            f"Kernel {kernel_descriptor.h}x{kernel_descriptor.w} is larger than "
            f"padded input {padded_h}x{padded_w}")

    out_h = (padded_h - kernel_descriptor.h) // conv.stride_v + 1
    out_w = (padded_w - kernel_descriptor.w) // conv.stride_h + 1
    return OutputDim(input_descriptor.n, kernel_descriptor.out_feature_maps, out_h, out_w)


def create_output_data_layer(input_descriptor, kernel_descriptor, convolution_descriptor=None):
    """
    Allocate a zeroed device buffer for a convolution result.

    Returns:
        (DeviceBuffer, OutputDim)
    """
    dim = get_convolution_output_dim(input_descriptor, kernel_descriptor, convolution_descriptor)
    logger.debug("Convolution output dim: %s", dim.shape)
    return allocate(TensorDescriptor.from_output_dim(dim)), dim


def convolution_forward(input_layer, kernel, convolution_descriptor=None, output_layer=None):
    """
    Run a convolution on the device.

    Args:
        input_layer: DeviceBuffer from create_input_data_layer
        kernel: DeviceBuffer from create_kernel
        convolution_descriptor: Padding/stride/mode, defaults to no padding, stride 1
        output_layer: Optional buffer from create_output_data_layer to write into

    Returns:
        The output buffer (output_layer itself when given)
    """
    _require_descriptor(input_layer, TensorDescriptor, 'Input layer')
    _require_descriptor(kernel, FilterDescriptor, 'Kernel')
    conv = convolution_descriptor or ConvolutionDescriptor()
    dim = get_convolution_output_dim(input_layer.descriptor, kernel.descriptor, conv)

    if output_layer is not None:
        _require_descriptor(output_layer, TensorDescriptor, 'Output layer')
        if output_layer.shape != dim.shape:
            raise ShapeMismatchError(f"Output layer has shape {output_layer.shape}, convolution produces {dim.shape}")

    with allocation_guard(dim.shape):
        result = conv2d_forward(input_layer.data, kernel.data,
                                padding=(conv.pad_h, conv.pad_w),
                                stride=(conv.stride_v, conv.stride_h),
                                flip=conv.mode == 'convolution')

    if output_layer is None:
        return DeviceBuffer(result, TensorDescriptor.from_output_dim(dim))

    output_layer.data[...] = result
    return output_layer


def apply_bias(output_layer, bias):
    """
    Add bias units to a convolution output in place.

    The bias plane must match the output plane or be 1x1.
    """
    _require_descriptor(output_layer, TensorDescriptor, 'Output layer')
    _require_descriptor(bias, TensorDescriptor, 'Bias')
    out_d = output_layer.descriptor
    bias_d = bias.descriptor

    if bias_d.n != 1 or bias_d.c != out_d.c:
        raise ShapeMismatchError(f"Bias shape {bias_d.shape} does not match output feature maps {out_d.c}")
    if (bias_d.h, bias_d.w) not in ((out_d.h, out_d.w), (1, 1)):
        raise ShapeMismatchError(
            f"Bias plane {bias_d.h}x{bias_d.w} does not match output plane {out_d.h}x{out_d.w}")

    add_bias(output_layer.data, bias.data)
    return output_layer


# =============================================================================
# POOLING
# =============================================================================

def get_pooling_output_dim(input_descriptor, pooling_descriptor):
    """out = (in + 2 * pad - window) // stride + 1 along each spatial axis."""
    _check_descriptor(input_descriptor, TensorDescriptor, 'Input descriptor')
    _check_descriptor(pooling_descriptor, PoolingDescriptor, 'Pooling descriptor')
    p = pooling_descriptor
    padded_h = input_descriptor.h + 2 * p.pad_h
    padded_w = input_descriptor.w + 2 * p.pad_w
    if padded_h < p.window_h or padded_w < p.window_w:
        raise ShapeMismatchError(
            f"Pooling window {p.window_h}x{p.window_w} is larger than padded input {padded_h}x{padded_w}")

    out_h = (padded_h - p.window_h) // p.stride_v + 1
    out_w = (padded_w - p.window_w) // p.stride_h + 1
    return OutputDim(input_descriptor.n, input_descriptor.c, out_h, out_w)


def create_pooling_layer(input_layer, window_height, window_width, vertical_stride, horizontal_stride,
                         mode='max', pad_height=0, pad_width=0):
    """
    Pool a device layer.

    Args:
        input_layer: DeviceBuffer described by a TensorDescriptor
        window_height: Pooling window height
        window_width: Pooling window width
        vertical_stride: Step between windows along H
        horizontal_stride: Step between windows along W
        mode: 'max' or 'average'
        pad_height: Padding along H
        pad_width: Padding along W

    Returns:
        (DeviceBuffer holding the pooled output, OutputDim)
    """
    _require_descriptor(input_layer, TensorDescriptor, 'Input layer')
    pooling = PoolingDescriptor(window_height, window_width, vertical_stride, horizontal_stride,
                                pad_h=pad_height, pad_w=pad_width, mode=mode)
    dim = get_pooling_output_dim(input_layer.descriptor, pooling)
    logger.debug("Pooling output dim: %s", dim.shape)

    with allocation_guard(dim.shape):
        result = pool2d_forward(input_layer.data,
                                window=(pooling.window_h, pooling.window_w),
                                stride=(pooling.stride_v, pooling.stride_h),
                                padding=(pooling.pad_h, pooling.pad_w),
                                mode=pooling.mode)

    return DeviceBuffer(result, TensorDescriptor.from_output_dim(dim)), dim
