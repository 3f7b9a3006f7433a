"""
Small dense matrix helpers for the 2x2 / 4x4 filter math.

Thin, shape-checked wrappers over numpy float64 arrays. The only inverse
needed by the filter is 2x2, done in closed form so that a near-singular
matrix raises instead of producing NaN/Inf.
"""

import numpy as np

from ipos_core.errors import SingularMatrixError

# |det| at or below this is treated as singular
SINGULAR_DET_EPS = 1e-12


def eye(n: int, diag: float = 1.0) -> np.ndarray:
    """n x n diagonal matrix with `diag` on the diagonal."""
    return np.eye(n, dtype=np.float64) * diag


def transpose(a: np.ndarray) -> np.ndarray:
    """Return a transposed copy of a 2D matrix."""
    if a.ndim != 2:
        raise ValueError(f"transpose needs a 2D matrix, got shape {a.shape}")
    return np.ascontiguousarray(a.T)


def mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Multiply matrix·matrix or matrix·vector.

    Args:
        a: m x n matrix
        b: n x p matrix or length-n vector

    Returns:
        m x p matrix or length-m vector

    Raises:
        ValueError: On inner dimension mismatch
    """
    if a.ndim != 2 or b.ndim not in (1, 2) or a.shape[1] != b.shape[0]:
        raise ValueError(f"mul dim mismatch: {a.shape} * {b.shape}")
    return a @ b


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Elementwise sum of two equally shaped matrices."""
    if a.shape != b.shape:
        raise ValueError(f"add dim mismatch: {a.shape} + {b.shape}")
    return a + b


def sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Elementwise difference of two equally shaped matrices."""
    if a.shape != b.shape:
        raise ValueError(f"sub dim mismatch: {a.shape} - {b.shape}")
    return a - b


def inv2(s: np.ndarray) -> np.ndarray:
    """
    Closed-form inverse of a 2x2 matrix [[a, b], [c, d]].

    Raises:
        ValueError: If s is not 2x2
        SingularMatrixError: If |det| <= SINGULAR_DET_EPS
    """
    if s.shape != (2, 2):
        raise ValueError(f"inv2 needs a 2x2 matrix, got shape {s.shape}")

    a, b = float(s[0, 0]), float(s[0, 1])
    c, d = float(s[1, 0]), float(s[1, 1])
    det = a * d - b * c
    if not abs(det) > SINGULAR_DET_EPS:
        raise SingularMatrixError(f"Singular 2x2 matrix (det={det:.3e})")

    inv_det = 1.0 / det
    return np.array([
        [d * inv_det, -b * inv_det],
        [-c * inv_det, a * inv_det],
    ])


def is_symmetric(a: np.ndarray, tol: float = 1e-9) -> bool:
    """Check a square matrix equals its transpose within `tol`."""
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        return False
    return bool(np.allclose(a, a.T, rtol=0.0, atol=tol))
