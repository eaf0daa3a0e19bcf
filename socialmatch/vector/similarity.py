"""
Vector math primitives for embedding comparison.

All functions are pure and total: degenerate input (missing vectors, mismatched
lengths, zero magnitude) yields 0.0 rather than NaN or an exception.
"""

from typing import Optional, Sequence

import numpy as np


def _as_array(vector) -> Optional[np.ndarray]:
    if vector is None:
        return None
    try:
        array = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if array.ndim != 1 or array.size == 0:
        return None
    return array


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product of two equal-length vectors, 0.0 when undefined."""
    va, vb = _as_array(a), _as_array(b)
    if va is None or vb is None or va.shape != vb.shape:
        return 0.0
    return float(np.dot(va, vb))


def magnitude(a: Sequence[float]) -> float:
    """Euclidean norm of a vector, 0.0 when undefined."""
    va = _as_array(a)
    if va is None:
        return 0.0
    return float(np.linalg.norm(va))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors.

    Returns 0.0 if either vector is missing or empty, the lengths differ, or
    either has zero magnitude. Otherwise the result lies in [-1, 1].
    """
    va, vb = _as_array(a), _as_array(b)
    if va is None or vb is None or va.shape != vb.shape:
        return 0.0

    mag_a = np.linalg.norm(va)
    mag_b = np.linalg.norm(vb)
    if mag_a == 0 or mag_b == 0 or not np.isfinite(mag_a) or not np.isfinite(mag_b):
        return 0.0

    similarity = float(np.dot(va, vb) / (mag_a * mag_b))
    # Rounding can push identical vectors a hair past 1.0
    return max(-1.0, min(1.0, similarity))


def clamp_score(value: float) -> float:
    """Clamp a similarity into the [0, 1] score range."""
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(value)))
