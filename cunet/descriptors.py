"""
Layer descriptors

Immutable configuration records for tensors, filters, convolutions and
pooling windows. They carry shapes only; device memory is owned by
buffers.DeviceBuffer.
"""
import numbers
from dataclasses import dataclass

from .errors import DescriptorError


CONVOLUTION_MODES = ('cross_correlation', 'convolution')
POOLING_MODES = ('max', 'average')


def _check_positive(**dims):
    for name, value in dims.items():
        if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value < 1:
            raise DescriptorError(f"{name} must be a positive integer, got {value!r}")


def _check_non_negative(**dims):
    for name, value in dims.items():
        if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value < 0:
            raise DescriptorError(f"{name} must be a non-negative integer, got {value!r}")


@dataclass(frozen=True)
class OutputDim:
    """Shape of a computed layer output (N, C, H, W)."""
    images: int
    feature_maps: int
    height: int
    width: int

    @property
    def shape(self):
        return (self.images, self.feature_maps, self.height, self.width)

    @property
    def size(self):
        return self.images * self.feature_maps * self.height * self.width


@dataclass(frozen=True)
class TensorDescriptor:
    """4D float32 tensor in NCHW layout."""
    n: int
    c: int
    h: int
    w: int
    layout: str = 'NCHW'

    def __post_init__(self):
        _check_positive(n=self.n, c=self.c, h=self.h, w=self.w)
        if self.layout != 'NCHW':
            raise DescriptorError(f"Only NCHW layout is supported, got {self.layout!r}")

    @classmethod
    def from_output_dim(cls, dim):
        return cls(dim.images, dim.feature_maps, dim.height, dim.width)

    @property
    def shape(self):
        return (self.n, self.c, self.h, self.w)

    @property
    def size(self):
        return self.n * self.c * self.h * self.w

    @property
    def output_dim(self):
        return OutputDim(self.n, self.c, self.h, self.w)


@dataclass(frozen=True)
class FilterDescriptor:
    """Convolution kernel bank (K, C, R, S): out maps, in maps, height, width."""
    out_feature_maps: int
    in_feature_maps: int
    h: int
    w: int

    def __post_init__(self):
        _check_positive(out_feature_maps=self.out_feature_maps,
                        in_feature_maps=self.in_feature_maps,
                        h=self.h, w=self.w)

    @property
    def shape(self):
        return (self.out_feature_maps, self.in_feature_maps, self.h, self.w)

    @property
    def size(self):
        return self.out_feature_maps * self.in_feature_maps * self.h * self.w


@dataclass(frozen=True)
class ConvolutionDescriptor:
    """
    2D convolution parameters.

    mode='cross_correlation' slides the kernel as stored (what CNN layers
    usually call convolution); mode='convolution' flips it spatially first.
    """
    pad_h: int = 0
    pad_w: int = 0
    stride_v: int = 1
    stride_h: int = 1
    mode: str = 'cross_correlation'

    def __post_init__(self):
        _check_non_negative(pad_h=self.pad_h, pad_w=self.pad_w)
        _check_positive(stride_v=self.stride_v, stride_h=self.stride_h)
        if self.mode not in CONVOLUTION_MODES:
            raise DescriptorError(f"Unknown convolution mode {self.mode!r}, expected one of {CONVOLUTION_MODES}")


@dataclass(frozen=True)
class PoolingDescriptor:
    """
    2D pooling window.

    Average pooling divides by the full window size, padded cells included.
    """
    window_h: int
    window_w: int
    stride_v: int
    stride_h: int
    pad_h: int = 0
    pad_w: int = 0
    mode: str = 'max'

    def __post_init__(self):
        _check_positive(window_h=self.window_h, window_w=self.window_w,
                        stride_v=self.stride_v, stride_h=self.stride_h)
        _check_non_negative(pad_h=self.pad_h, pad_w=self.pad_w)
        if self.mode not in POOLING_MODES:
            raise DescriptorError(f"Unknown pooling mode {self.mode!r}, expected one of {POOLING_MODES}")
        if self.pad_h >= self.window_h or self.pad_w >= self.window_w:
            raise DescriptorError(
                f"Padding ({self.pad_h}, {self.pad_w}) must be smaller than the window "
                f"({self.window_h}, {self.window_w})")
