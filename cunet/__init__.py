"""
cunet - CNN layer helpers on the GPU

Builds input, kernel, bias, convolution-output and pooling layers in device
memory (CuPy) and offers host-side array utilities (NumPy). Without a CUDA
device the same calls run on NumPy.

Requirements:
    pip install cunet[gpu]  # CuPy for CUDA 12.x; without it everything runs on NumPy

Usage:
    import numpy as np
    from cunet import create_input_data_layer, create_kernel, convolution_forward, create_pooling_layer

    x = create_input_data_layer(np.random.rand(32 * 32), 1, 1, 32, 32)
    k = create_kernel(np.random.rand(6 * 25), 1, 6, 5, 5)
    with convolution_forward(x, k) as conv:
        pooled, dim = create_pooling_layer(conv, 2, 2, 2, 2)
    print(dim)  # OutputDim(images=1, feature_maps=6, height=14, width=14)
"""

from .backend import get_array_module, set_device
from .buffers import DeviceArena, DeviceBuffer
from .descriptors import (
    ConvolutionDescriptor,
    FilterDescriptor,
    OutputDim,
    PoolingDescriptor,
    TensorDescriptor,
)
from .errors import (
    BackendError,
    BufferReleasedError,
    CuNetError,
    DescriptorError,
    DeviceAllocationError,
    ShapeMismatchError,
)
from .network import (
    add_bias_units,
    apply_bias,
    convolution_forward,
    create_input_data_layer,
    create_kernel,
    create_output_data_layer,
    create_pooling_layer,
    get_convolution_output_dim,
    get_pooling_output_dim,
)
from .utility import (
    array_to_matrix,
    float_is_equal,
    matrix_to_array,
    print_dynamic_array,
    split_array,
    vector_to_array,
)


__version__ = '0.1.0'

__all__ = [
    # Backend
    'get_array_module', 'set_device',
    # Buffers
    'DeviceBuffer', 'DeviceArena',
    # Descriptors
    'TensorDescriptor', 'FilterDescriptor', 'ConvolutionDescriptor', 'PoolingDescriptor', 'OutputDim',
    # Errors
    'CuNetError', 'ShapeMismatchError', 'DescriptorError', 'DeviceAllocationError',
    'BufferReleasedError', 'BackendError',
    # Layers
    'create_input_data_layer', 'create_kernel', 'add_bias_units', 'create_output_data_layer',
    'get_convolution_output_dim', 'convolution_forward', 'apply_bias',
    'get_pooling_output_dim', 'create_pooling_layer',
    # Utilities
    'vector_to_array', 'print_dynamic_array', 'array_to_matrix', 'matrix_to_array',
    'float_is_equal', 'split_array',
]
