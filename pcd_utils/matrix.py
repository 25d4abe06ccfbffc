"""Matrix utilities for node pose conversion and point transformation."""

import numpy as np
from typing import List, Sequence


def row_major_to_matrix(data: Sequence[float]) -> np.ndarray:
    """
    Convert a row-major 16-element list to a 4x4 float64 matrix.

    The result uses the standard affine layout: columns 0-2 are the
    x, y, z basis vectors and column 3 is the translation.
    """
    if len(data) != 16:
        raise ValueError(f"Expected 16 elements, got {len(data)}")
    return np.array(data, dtype=np.float64).reshape(4, 4)


def matrix_to_row_major(matrix: np.ndarray) -> List[float]:
    """Convert 4x4 matrix to row-major 16-element list."""
    return matrix.flatten().tolist()


def is_finite_matrix(matrix: np.ndarray) -> bool:
    """True when every entry is a finite number."""
    return bool(np.all(np.isfinite(matrix)))


def validate_transform(matrix: np.ndarray, rigid: bool = False) -> bool:
    """
    Validate that a 4x4 matrix is a usable affine transform.

    Checks:
    - Shape is (4, 4)
    - No NaN or Inf values
    - Bottom row is [0, 0, 0, 1]
    - With rigid=True, the basis is orthonormal with determinant 1
    """
    if matrix.shape != (4, 4):
        return False

    if not is_finite_matrix(matrix):
        return False

    if not np.allclose(matrix[3, :], [0, 0, 0, 1], atol=1e-6):
        return False

    if rigid:
        basis = matrix[:3, :3]
        if not np.allclose(basis @ basis.T, np.eye(3), atol=1e-4):
            return False
        if not np.isclose(np.linalg.det(basis), 1.0, atol=1e-4):
            return False

    return True


def extract_position(matrix: np.ndarray) -> np.ndarray:
    """Extract translation/position from 4x4 transform matrix."""
    return matrix[:3, 3].copy()


def extract_basis(matrix: np.ndarray) -> np.ndarray:
    """Extract the 3x3 rotation/scale block (columns are the basis vectors)."""
    return matrix[:3, :3].copy()


def translate_matrix(matrix: np.ndarray, offset: np.ndarray) -> np.ndarray:
    """Return a copy of `matrix` with `offset` subtracted from its translation."""
    result = np.array(matrix, copy=True)
    result[:3, 3] = result[:3, 3] - np.asarray(offset, dtype=result.dtype)
    return result


def transform_points(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Apply an affine 4x4 transform to an Nx3 array of points.

    Computed in the matrix dtype, so a float32 matrix yields float32 points.
    """
    points = np.asarray(points, dtype=matrix.dtype)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Expected Nx3 points, got shape {points.shape}")
    return points @ matrix[:3, :3].T + matrix[:3, 3]


def float32_rounding_error(values: np.ndarray) -> np.ndarray:
    """Absolute error introduced by storing float64 values as float32."""
    values = np.asarray(values, dtype=np.float64)
    return np.abs(values.astype(np.float32).astype(np.float64) - values)
