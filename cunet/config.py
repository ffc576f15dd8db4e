"""
cunet configuration

Module-level defaults. The device can be overridden with the CUNET_DEVICE
environment variable ('auto', 'gpu' or 'cpu').
"""
import os

import numpy as np


# =============================================================================
# DEVICE
# =============================================================================
DEVICE_CHOICES = ('auto', 'gpu', 'cpu')
DEVICE = os.environ.get('CUNET_DEVICE', 'auto').lower()

# =============================================================================
# NUMERICS
# =============================================================================
DTYPE = np.float32

# Hybrid tolerance used by utility.float_is_equal
FLOAT_REL_TOL = 1e-5
FLOAT_ABS_TOL = 1e-6

# =============================================================================
# OUTPUT
# =============================================================================
PRINT_PRECISION = 6
