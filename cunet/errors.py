"""Exceptions raised by cunet."""


class CuNetError(Exception):
    """Base class for all cunet errors."""


class ShapeMismatchError(CuNetError, ValueError):
    """Host data or a layer does not match the declared dimensions."""


class DescriptorError(CuNetError, ValueError):
    """A descriptor was built with an invalid parameter."""


class DeviceAllocationError(CuNetError, MemoryError):
    """The device could not satisfy an allocation."""

    def __init__(self, nbytes, shape, cause=None):
        self.nbytes = nbytes
        self.shape = shape
        message = f"Failed to allocate {nbytes} bytes for buffer of shape {shape}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class BufferReleasedError(CuNetError, RuntimeError):
    """A device buffer was used after it was freed."""


class BackendError(CuNetError, RuntimeError):
    """The requested array backend is not usable on this machine."""
