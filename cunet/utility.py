"""
Host-side array utilities

Conversions, printing, comparisons and partitioning on NumPy arrays. Nothing
here touches device memory.
"""
import math
import sys

import numpy as np

from . import config
from .errors import ShapeMismatchError


def vector_to_array(sequence):
    """Copy any sequence of numbers into a new flat float32 array."""
    return np.array(sequence, dtype=config.DTYPE).ravel()


def print_dynamic_array(array, length, file=None):
    """Print the first `length` values on one line, separated by spaces."""
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    values = np.asarray(array).ravel()
    if length > values.size:
        raise ShapeMismatchError(f"Cannot print {length} values from an array of {values.size}")

    text = ' '.join(f"{float(v):.{config.PRINT_PRECISION}g}" for v in values[:length])
    print(text, file=file or sys.stdout)


def array_to_matrix(array, width, height):
    """
    Reshape a flat array into `height` rows of `width` values (row-major).

    Returns:
        list of lists of floats
    """
    if width < 0 or height < 0:
        raise ShapeMismatchError(f"width and height must be non-negative, got width={width}, height={height}")
    values = np.asarray(array, dtype=config.DTYPE).ravel()
    if values.size != width * height:
        raise ShapeMismatchError(
            f"Array has {values.size} elements, expected width * height = {width} * {height} = {width * height}")
    return values.reshape(height, width).tolist()


def matrix_to_array(matrix):
    """Flatten a list of equal-length rows back into a float32 array."""
    rows = [list(row) for row in matrix]
    if rows and any(len(row) != len(rows[0]) for row in rows):
        raise ShapeMismatchError("Matrix rows have different lengths")
    return np.array(rows, dtype=config.DTYPE).ravel()


def float_is_equal(a, b, rel_tol=None, abs_tol=None):
    """
    Tolerant float comparison.

    True when |a - b| <= max(rel_tol * max(|a|, |b|), abs_tol). NaN never
    compares equal.
    """
    rel_tol = config.FLOAT_REL_TOL if rel_tol is None else rel_tol
    abs_tol = config.FLOAT_ABS_TOL if abs_tol is None else abs_tol
    return math.isclose(float(a), float(b), rel_tol=rel_tol, abs_tol=abs_tol)


def split_array(array, part, step):
    """
    Split a flat array into `part` consecutive segments of `step` values.

    The segments must cover the array exactly (part * step == len(array));
    a remainder raises ShapeMismatchError. For a contiguous NumPy input the
    segments are views sharing its memory.
    """
    if part < 1 or step < 1:
        raise ValueError(f"part and step must be positive, got part={part}, step={step}")
    values = np.asarray(array).ravel()
    if part * step != values.size:
        raise ShapeMismatchError(
            f"Cannot split {values.size} elements into {part} parts of {step} "
            f"({part * step} elements)")
    return [values[i * step:(i + 1) * step] for i in range(part)]
