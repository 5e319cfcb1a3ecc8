"""
Geometry Math Utilities

Small numeric helpers shared by the image geometry builder and the plane
intersector: tolerant float comparisons, vector normalisation and homogeneous
point transforms.

Inputs:
    - Scalars and 3-component vectors (lists, tuples or numpy arrays)
    - 4x4 affine matrices

Outputs:
    - Comparison results
    - Normalised vectors and transformed points

Requirements:
    - numpy for vector math
"""

from typing import Optional, Sequence
import numpy as np

# Default tolerance for "near zero" / "equal" comparisons
GEOMETRY_EPSILON = 1e-9


def are_equal(one: float, other: float, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """Return True when two scalars differ by less than epsilon."""
    return abs(one - other) < epsilon


def is_nearly_zero(value: float, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """Return True when a scalar is within epsilon of zero."""
    return abs(value) < epsilon


def normalize(vector: Sequence[float], epsilon: float = GEOMETRY_EPSILON) -> Optional[np.ndarray]:
    """
    Scale a vector to unit length.

    Args:
        vector: Vector to normalise
        epsilon: Lengths below this are treated as zero

    Returns:
        Unit vector as float array, or None for a zero-length vector
    """
    array = np.asarray(vector, dtype=float)
    length = float(np.linalg.norm(array))
    if is_nearly_zero(length, epsilon):
        return None
    return array / length


def transform_point(matrix: np.ndarray, point: Sequence[float]) -> np.ndarray:
    """
    Apply a 4x4 affine matrix to a 3D point.

    Args:
        matrix: 4x4 homogeneous transform
        point: (x, y, z) point

    Returns:
        Transformed (x, y, z) point
    """
    homogeneous = np.array([point[0], point[1], point[2], 1.0], dtype=float)
    result = matrix @ homogeneous
    return result[:3]


def make_read_only(array: np.ndarray) -> np.ndarray:
    """Mark a numpy array as immutable and return it."""
    array.flags.writeable = False
    return array
