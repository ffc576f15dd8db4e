"""
Device buffers

A DeviceBuffer is the single owner of one device allocation together with
the descriptor that gives it a shape. Release it with free(), a `with`
block, or by adopting it into a DeviceArena.
"""
from contextlib import contextmanager

import numpy as np

from . import backend, config
from .errors import BufferReleasedError, DeviceAllocationError
from .log import get_logger


logger = get_logger(__name__)


class DeviceBuffer:
    """Device array plus its descriptor, freed exactly once."""
    def __init__(self, array, descriptor):
        if tuple(array.shape) != descriptor.shape:
            raise ValueError(f"Array shape {tuple(array.shape)} does not match descriptor {descriptor.shape}")
        self._array = array
        self.descriptor = descriptor

    @property
    def data(self):
        """The underlying CuPy/NumPy array."""
        if self._array is None:
            raise BufferReleasedError(f"Buffer of shape {self.shape} was already freed")
        return self._array

    @property
    def freed(self):
        return self._array is None

    @property
    def shape(self):
        return self.descriptor.shape

    @property
    def size(self):
        return self.descriptor.size

    @property
    def nbytes(self):
        return self.size * np.dtype(config.DTYPE).itemsize

    def to_host(self):
        """Copy the buffer contents into a new NumPy array."""
        host = backend.to_host(self.data)
        if host is self._array:
            host = host.copy()
        return host

    def free(self, release_pool=True):
        """
        Drop the device array.

        With release_pool=False the CuPy memory pool keeps the block cached;
        DeviceArena uses this to flush the pool once for many buffers.
        """
        if self._array is None:
            return
        logger.debug("Freeing %d bytes, shape %s", self.nbytes, self.shape)
        self._array = None
        if release_pool:
            backend.release_unused_memory()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.free()

    def __repr__(self):
        state = 'freed' if self.freed else 'live'
        return f"DeviceBuffer(shape={self.shape}, {state})"


class DeviceArena:
    """
    Scoped owner of several buffers.

    Usage:
        with DeviceArena() as arena:
            x = arena.adopt(create_input_data_layer(...))
            k = arena.adopt(create_kernel(...))
        # x and k are freed here, last adopted first
    """
    def __init__(self):
        self._buffers = []

    def adopt(self, buffer):
        self._buffers.append(buffer)
        return buffer

    def __len__(self):
        return len(self._buffers)

    def free_all(self):
        """Free every buffer, then release the memory pool once; re-raises the first error."""
        first_error = None
        try:
            while self._buffers:
                try:
                    self._buffers.pop().free(release_pool=False)
                except Exception as e:
                    logger.error("Failed to free buffer: %s", e)
                    if first_error is None:
                        first_error = e
        finally:
            backend.release_unused_memory()
        if first_error is not None:
            raise first_error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.free_all()


def _nbytes(shape):
    return int(np.prod(shape)) * np.dtype(config.DTYPE).itemsize


@contextmanager
def allocation_guard(shape):
    """Re-raise backend out-of-memory errors as DeviceAllocationError."""
    try:
        yield
    except DeviceAllocationError:
        raise
    except MemoryError as e:
        raise DeviceAllocationError(_nbytes(shape), shape, e) from e


def allocate(descriptor):
    """Allocate a zero-filled device buffer for a descriptor."""
    xp = backend.get_array_module()
    logger.debug("Allocating %d bytes, shape %s", _nbytes(descriptor.shape), descriptor.shape)
    with allocation_guard(descriptor.shape):
        array = xp.zeros(descriptor.shape, dtype=config.DTYPE)
    return DeviceBuffer(array, descriptor)


def upload(host_data, descriptor):
    """
    Copy host data into a new device buffer shaped by the descriptor.

    host_data must already hold exactly descriptor.size elements.
    """
    host = np.asarray(host_data, dtype=config.DTYPE).reshape(descriptor.shape)
    logger.debug("Copying %d bytes host to device, shape %s", host.nbytes, descriptor.shape)
    with allocation_guard(descriptor.shape):
        array = backend.to_device(host)
    return DeviceBuffer(array, descriptor)
