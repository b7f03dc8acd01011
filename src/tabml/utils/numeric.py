"""
Numeric helpers shared by the estimators and the prediction engine.

All helpers operate on NumPy arrays and treat NaN and +/-inf as invalid.
"""

import math
from typing import Any

import numpy as np


def to_number(value: Any) -> float | None:
    """
    Convert a raw cell value to float.

    Accepts numbers and numeric strings. Returns None for anything that
    does not parse to a finite number (blank strings, None, text, NaN).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def finite_mask(*arrays: np.ndarray) -> np.ndarray:
    """
    Boolean mask of rows that are finite in every given array.

    1D arrays are checked element-wise, 2D arrays row-wise.
    """
    mask: np.ndarray | None = None
    for arr in arrays:
        arr = np.asarray(arr, dtype=float)
        ok = np.isfinite(arr) if arr.ndim == 1 else np.isfinite(arr).all(axis=1)
        mask = ok if mask is None else mask & ok
    if mask is None:
        return np.zeros(0, dtype=bool)
    return mask


def distances_to(points: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Euclidean distance from every row of points to target."""
    diff = np.asarray(points, dtype=float) - np.asarray(target, dtype=float)
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))


def pairwise_distances(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Matrix of Euclidean distances, shape (n_points, n_centers)."""
    points = np.asarray(points, dtype=float)
    centers = np.asarray(centers, dtype=float)
    diff = points[:, np.newaxis, :] - centers[np.newaxis, :, :]
    return np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))
