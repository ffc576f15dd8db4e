import numpy as np
import pytest

from cunet import BufferReleasedError, DeviceAllocationError, DeviceArena, TensorDescriptor, backend
from cunet.buffers import allocate, allocation_guard, upload


def test_allocate_zeroed():
    buf = allocate(TensorDescriptor(2, 3, 4, 5))
    assert buf.shape == (2, 3, 4, 5)
    assert buf.size == 120
    assert buf.nbytes == 120 * 4
    assert np.all(buf.to_host() == 0)


def test_upload_copies_host_data():
    host = np.arange(8, dtype=np.float32)
    buf = upload(host, TensorDescriptor(1, 2, 2, 2))
    host[0] = 42.0
    assert buf.to_host().ravel()[0] == 0.0


def test_to_host_returns_copy():
    buf = upload(np.ones(4), TensorDescriptor(1, 1, 2, 2))
    out = buf.to_host()
    out[:] = 7.0
    assert np.all(buf.to_host() == 1.0)


def test_free_is_idempotent_and_blocks_access():
    buf = allocate(TensorDescriptor(1, 1, 2, 2))
    buf.free()
    buf.free()
    assert buf.freed
    with pytest.raises(BufferReleasedError):
        buf.data
    with pytest.raises(BufferReleasedError):
        buf.to_host()


def test_context_manager_frees():
    with allocate(TensorDescriptor(1, 1, 2, 2)) as buf:
        assert not buf.freed
    assert buf.freed


def test_context_manager_frees_on_error():
    with pytest.raises(RuntimeError):
        with allocate(TensorDescriptor(1, 1, 2, 2)) as buf:
            raise RuntimeError("boom")
    assert buf.freed


def test_arena_frees_in_reverse_order():
    freed = []

    class Tracked:
        def __init__(self, name):
            self.name = name

        def free(self, release_pool=True):
            freed.append(self.name)

    with DeviceArena() as arena:
        arena.adopt(Tracked('a'))
        arena.adopt(Tracked('b'))
        arena.adopt(Tracked('c'))
        assert len(arena) == 3
    assert freed == ['c', 'b', 'a']
    assert len(arena) == 0


def test_arena_frees_real_buffers():
    with DeviceArena() as arena:
        a = arena.adopt(allocate(TensorDescriptor(1, 1, 2, 2)))
        b = arena.adopt(allocate(TensorDescriptor(1, 1, 3, 3)))
    assert a.freed and b.freed


def test_allocation_guard_wraps_memory_error():
    with pytest.raises(DeviceAllocationError) as excinfo:
        with allocation_guard((1, 2, 3, 4)):
            raise MemoryError("out of memory")
    assert excinfo.value.nbytes == 24 * 4
    assert excinfo.value.shape == (1, 2, 3, 4)
    assert isinstance(excinfo.value, MemoryError)


def test_allocate_reports_allocation_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise MemoryError("out of memory")

    monkeypatch.setattr(np, 'zeros', fail)
    with pytest.raises(DeviceAllocationError):
        allocate(TensorDescriptor(1, 1, 2, 2))


def test_arena_frees_remaining_buffers_after_error():
    class Failing:
        def free(self, release_pool=True):
            raise RuntimeError("cuda error")

    with pytest.raises(RuntimeError, match="cuda error"):
        with DeviceArena() as arena:
            a = arena.adopt(allocate(TensorDescriptor(1, 1, 2, 2)))
            arena.adopt(Failing())
            b = arena.adopt(allocate(TensorDescriptor(1, 1, 2, 2)))
    assert a.freed and b.freed
    assert len(arena) == 0


def test_arena_releases_memory_pool_once(monkeypatch):
    calls = []
    monkeypatch.setattr(backend, 'release_unused_memory', lambda: calls.append(1))

    with DeviceArena() as arena:
        for _ in range(3):
            arena.adopt(allocate(TensorDescriptor(1, 1, 2, 2)))
    assert len(calls) == 1


def test_single_buffer_free_releases_memory_pool(monkeypatch):
    calls = []
    monkeypatch.setattr(backend, 'release_unused_memory', lambda: calls.append(1))

    allocate(TensorDescriptor(1, 1, 2, 2)).free()
    assert len(calls) == 1
