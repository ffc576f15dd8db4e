import os

os.environ['CUNET_DEVICE'] = 'cpu'

import pytest

from cunet import backend


@pytest.fixture(autouse=True)
def cpu_backend():
    backend.set_device('cpu')
    yield
    backend.reset()
