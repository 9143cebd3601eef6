# src/magsens_pipeline/fitting/sensitivity.py
"""
Per-block magnetic sensitivity from sweep-window slopes.
"""
from __future__ import annotations

import math
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from ..grouping import Group
from ..protocols import Protocol, SensitivityRule
from .core import window_slope


def window_slopes(group: Group, protocol: Protocol) -> Dict[str, float]:
    """Slope of every protocol window for one block (NaN for short blocks)."""
    if not group.complete:
        return {w.name: float("nan") for w in protocol.windows}
    out: Dict[str, float] = {}
    for w in protocol.windows:
        x = group.column(w.x_col, w.start, w.stop)
        y = group.column(w.y_col, w.start, w.stop)
        out[w.name] = window_slope(x, y, require_y_variation=w.require_y_variation)
    return out


def combine_slopes(slopes: Dict[str, float], rule: SensitivityRule) -> float:
    vals = [slopes.get(name, float("nan")) for name in rule.windows]
    if any(math.isnan(v) for v in vals):
        return float("nan")
    return float(sum(vals) / len(vals))


def compute_block_sensitivities(group: Group, protocol: Protocol) -> Dict[str, float]:
    """Map sensitivity column -> value for one block."""
    slopes = window_slopes(group, protocol)
    return {rule.column: combine_slopes(slopes, rule) for rule in protocol.sensitivities}


def attach_sensitivities(
    expanded: pd.DataFrame,
    groups: Sequence[Group],
    protocol: Protocol,
) -> pd.DataFrame:
    """
    Return a copy of the expanded sheet table with the protocol's sensitivity columns.

    Values go on every row of the block (fill_block) or on its first row only.
    """
    out = expanded.copy()
    n = len(out)
    columns: Dict[str, np.ndarray] = {c: np.full(n, np.nan) for c in protocol.sensitivity_columns}
    for g in groups:
        values = compute_block_sensitivities(g, protocol)
        target: List[int] = list(g.positions) if protocol.fill_block else [g.start]
        for col, v in values.items():
            columns[col][target] = v
    for col in protocol.sensitivity_columns:
        out[col] = columns[col]
    return out
