"""
Pooling compute - max / average over sliding windows
"""
from . import backend
from .conv import im2col_indices


def pool2d_forward(x, window, stride, padding=(0, 0), mode='max'):
    """
    Forward pooling.

    Args:
        x: Input (N, C, H, W)
        window: (height, width) of the pooling window
        stride: (vertical, horizontal) stride
        padding: (vertical, horizontal) padding
        mode: 'max' or 'average'

    Returns:
        out: (N, C, out_h, out_w)
    """
    xp = backend.get_array_module()
    N, C, H, W = x.shape
    kh, kw = window
    sh, sw = stride
    ph, pw = padding

    out_h = (H + 2 * ph - kh) // sh + 1
    out_w = (W + 2 * pw - kw) // sw + 1

    # Padded cells never win a max; they count as zeros in an average
    pad_value = float('-inf') if mode == 'max' else 0.0
    col = im2col_indices(x, kh, kw, padding=padding, stride=stride, pad_value=pad_value)
    col = col.reshape(C, kh * kw, N * out_h * out_w)

    if mode == 'max':
        out = xp.max(col, axis=1)
    elif mode == 'average':
        out = xp.mean(col, axis=1)
    else:
        raise ValueError(f"Unknown pooling mode {mode!r}")

    out = out.reshape(C, out_h, out_w, N)
    out = out.transpose(3, 0, 1, 2)
    return xp.ascontiguousarray(out)
