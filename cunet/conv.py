"""
Convolution compute - im2col + one matrix multiply

Runs on whichever array module backend.get_array_module() returns, so the
matrix multiply goes through cuBLAS on the GPU and BLAS on the CPU.
"""
from . import backend


def get_im2col_indices(x_shape, field_height, field_width, padding=(0, 0), stride=(1, 1)):
    """
    Calculate indices for im2col operation.

    Args:
        x_shape: Shape of input tensor (N, C, H, W)
        field_height: Kernel height
        field_width: Kernel width
        padding: (vertical, horizontal) padding
        stride: (vertical, horizontal) stride

    Returns:
        tuple: Indices (k, i, j) for indexing into padded input
    """
    xp = backend.get_array_module()
    N, C, H, W = x_shape
    pad_h, pad_w = padding
    stride_v, stride_h = stride

    out_height = (H + 2 * pad_h - field_height) // stride_v + 1
    out_width = (W + 2 * pad_w - field_width) // stride_h + 1

    i0 = xp.repeat(xp.arange(field_height), field_width)
    i0 = xp.tile(i0, C)
    i1 = stride_v * xp.repeat(xp.arange(out_height), out_width)
    j0 = xp.tile(xp.arange(field_width), field_height * C)
    j1 = stride_h * xp.tile(xp.arange(out_width), out_height)

    i = i0.reshape(-1, 1) + i1.reshape(1, -1)
    j = j0.reshape(-1, 1) + j1.reshape(1, -1)
    k = xp.repeat(xp.arange(C), field_height * field_width).reshape(-1, 1)

    return (k, i, j)


def im2col_indices(x, field_height, field_width, padding=(0, 0), stride=(1, 1), pad_value=0.0):
    """
    Transform 4D input tensor to 2D column matrix.

    Rows are ordered (channel, kernel row, kernel col); columns are ordered
    (output row, output col, image) with the image index varying fastest.

    Args:
        x: Input tensor (N, C, H, W)
        field_height: Window height
        field_width: Window width
        padding: (vertical, horizontal) padding
        stride: (vertical, horizontal) stride
        pad_value: Value written into the padded border

    Returns:
        cols: (C * field_height * field_width, out_h * out_w * N) matrix
    """
    xp = backend.get_array_module()
    pad_h, pad_w = padding
    x_padded = xp.pad(x, ((0, 0), (0, 0), (pad_h, pad_h), (pad_w, pad_w)),
                      mode='constant', constant_values=pad_value)

    k, i, j = get_im2col_indices(x.shape, field_height, field_width, padding, stride)

    cols = x_padded[:, k, i, j]
    C = x.shape[1]
    cols = cols.transpose(1, 2, 0).reshape(field_height * field_width * C, -1)
    return cols


def conv2d_forward(x, w, padding=(0, 0), stride=(1, 1), flip=False):
    """
    Forward convolution.

    Args:
        x: Input (N, C, H, W)
        w: Kernels (K, C, R, S)
        padding: (vertical, horizontal) zero padding
        stride: (vertical, horizontal) stride
        flip: Rotate each kernel by 180 degrees first (true convolution)

    Returns:
        out: (N, K, out_h, out_w)
    """
    xp = backend.get_array_module()
    n_filters, d_filter, h_filter, w_filter = w.shape
    N, C, H, W = x.shape
    pad_h, pad_w = padding
    stride_v, stride_h = stride

    out_h = (H + 2 * pad_h - h_filter) // stride_v + 1
    out_w = (W + 2 * pad_w - w_filter) // stride_h + 1

    if flip:
        w = w[:, :, ::-1, ::-1]

    x_cols = im2col_indices(x, h_filter, w_filter, padding=padding, stride=stride)
    w_col = w.reshape(n_filters, -1)

    out = w_col @ x_cols

    out = out.reshape(n_filters, out_h, out_w, N)
    out = out.transpose(3, 0, 1, 2)
    return xp.ascontiguousarray(out)


def add_bias(out, bias):
    """Add bias (1, K, H, W) or (1, K, 1, 1) to out (N, K, H, W) in place."""
    out += bias
    return out
