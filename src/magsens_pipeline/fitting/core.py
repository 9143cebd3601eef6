# src/magsens_pipeline/fitting/core.py
"""
Least-squares slope fitting over sweep windows.
"""
from __future__ import annotations

import numpy as np


class DegenerateFitError(ValueError):
    """Raised when a window cannot define a slope (missing values or constant x)."""


def fit_linear(x: np.ndarray, y: np.ndarray) -> float:
    """
    Ordinary least squares slope a of y = a*x + b (intercept discarded).

    Uses the centered form a = sum((x-mx)(y-my)) / sum((x-mx)^2), so noise-free
    integer fixtures give exact slopes.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same length, got {x.size} and {y.size}")
    if x.size < 2:
        raise DegenerateFitError(f"need at least 2 points, got {x.size}")
    if np.isnan(x).any() or np.isnan(y).any():
        raise DegenerateFitError("window contains missing values")
    if np.unique(x).size < 2:
        raise DegenerateFitError("x has fewer than 2 distinct values")

    dx = x - float(np.mean(x))
    dy = y - float(np.mean(y))
    return float(np.sum(dx * dy)) / float(np.sum(dx * dx))


def window_slope(
    x: np.ndarray,
    y: np.ndarray,
    *,
    require_y_variation: bool = False,
) -> float:
    """
    Slope of y on x, or NaN when the window cannot define one.

    require_y_variation: also treat a constant y as degenerate.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if require_y_variation and y.size and not np.isnan(y).any() and np.unique(y).size < 2:
        return float("nan")
    try:
        return fit_linear(x, y)
    except DegenerateFitError:
        return float("nan")
