# src/magsens_pipeline/offsets.py
"""
Signal offset per up-down block: mean of the secondary "down" and "up" reads.
"""
from __future__ import annotations

import warnings
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from .grouping import Group
from .protocols import COL_OFFSET, COL_VDIFF_MEAN, Protocol


def block_offset(
    group: Group,
    rows: Tuple[int, int] = (1, 3),
    column: str = COL_VDIFF_MEAN,
) -> float:
    """Average of `column` at block-relative `rows`; NaN for short blocks or missing reads."""
    if not group.complete:
        return float("nan")
    try:
        vals = group.column(column)[list(rows)]
    except IndexError as e:
        warnings.warn(f"Error calculating offsets for group starting at row {group.start}: {e}", UserWarning)
        return float("nan")
    if np.isnan(vals).any():
        return float("nan")
    return float(np.mean(vals))


def attach_offsets(
    expanded: pd.DataFrame,
    groups: Sequence[Group],
    protocol: Protocol,
    column: str = COL_OFFSET,
) -> pd.DataFrame:
    """Copy of the table with `column` set on each block's first row only."""
    if protocol.offset_rows is None:
        raise ValueError(f"Protocol {protocol.name!r} does not compute offsets")
    out = expanded.copy()
    values = np.full(len(out), np.nan)
    for g in groups:
        values[g.start] = block_offset(g, rows=protocol.offset_rows)
    out[column] = values
    return out
