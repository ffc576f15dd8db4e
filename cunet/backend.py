"""
Array backend selection

Device buffers live in CuPy arrays when a CUDA device is available and in
NumPy arrays otherwise. Every module asks get_array_module() for the active
module instead of importing cupy directly, so the same code path serves both.
"""
import numpy as np

from . import config
from .errors import BackendError
from .log import get_logger


logger = get_logger(__name__)

_xp = None


def _load_cupy():
    """Import CuPy and make sure at least one CUDA device is visible."""
    try:
        import cupy as cp
        device_count = cp.cuda.runtime.getDeviceCount()
    except (ImportError, RuntimeError) as e:
        raise BackendError(f"CuPy is not usable: {e}") from e

    if device_count == 0:
        raise BackendError("CuPy is installed but no CUDA device is visible")
    return cp


def set_device(name):
    """
    Select the array backend.

    Args:
        name: 'gpu' (CuPy, required), 'cpu' (NumPy) or 'auto' (CuPy if usable)

    Returns:
        The selected array module
    """
    global _xp

    name = name.lower()
    if name not in config.DEVICE_CHOICES:
        raise BackendError(f"Unknown device '{name}', expected one of {config.DEVICE_CHOICES}")

    if name == 'cpu':
        _xp = np
    elif name == 'gpu':
        _xp = _load_cupy()
    else:
        try:
            _xp = _load_cupy()
        except BackendError as e:
            logger.warning("Falling back to NumPy backend: %s", e)
            _xp = np

    logger.info("Using %s backend", _xp.__name__)
    return _xp


def reset():
    """Forget the selected backend; the next call re-reads config.DEVICE."""
    global _xp
    _xp = None


def get_array_module():
    if _xp is None:
        set_device(config.DEVICE)
    return _xp


def is_gpu():
    return get_array_module() is not np


def to_device(host_array, dtype=None):
    """Copy a host array into a freshly allocated device array."""
    xp = get_array_module()
    return xp.array(host_array, dtype=dtype or config.DTYPE)


def to_host(array):
    """Copy a device array back into a NumPy array."""
    if isinstance(array, np.ndarray):
        return array
    return get_array_module().asnumpy(array)


def release_unused_memory():
    """Return cached, unused blocks of the CuPy memory pool to the device."""
    if is_gpu():
        get_array_module().get_default_memory_pool().free_all_blocks()
