# src/magsens_pipeline/fitting/__init__.py
"""
Fitting subpackage.

  - core: least-squares slope, NaN-safe window slope
  - sensitivity: per-block sensitivity columns from protocol sweep windows
"""

from .core import (
    DegenerateFitError,
    fit_linear,
    window_slope,
)
from .sensitivity import (
    attach_sensitivities,
    combine_slopes,
    compute_block_sensitivities,
    window_slopes,
)

__all__ = [
    "DegenerateFitError",
    "fit_linear",
    "window_slope",
    "attach_sensitivities",
    "combine_slopes",
    "compute_block_sensitivities",
    "window_slopes",
]
