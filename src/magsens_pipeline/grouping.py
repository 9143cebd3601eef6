# src/magsens_pipeline/grouping.py
"""
Split one sheet of measurement rows into fixed-size sweep blocks.

Block boundaries are positional: every group_size-th row (after dropping fully
empty rows) starts a new block, and that row carries the block header
(axis, angle, stress, supply). Header fields are copied down to every row of
the block; sample numbers are carried forward and blanked wherever the axis is
missing so that headerless trailing rows never get identified.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .protocols import (
    BLOCK_COLUMNS,
    COL_ANGLE,
    COL_AXIS,
    COL_SAMPLE,
    COL_STRESS,
    COL_SUPPLY,
)


def drop_empty_rows(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Keep only `columns`, drop rows empty across all of them, renumber 0..n-1."""
    out = df.loc[:, list(columns)].dropna(how="all")
    return out.reset_index(drop=True)


def expand_block_fields(
    df: pd.DataFrame,
    group_size: int,
    columns: Sequence[str] = BLOCK_COLUMNS,
) -> pd.DataFrame:
    """
    Copy block header fields down each block and resolve sample numbers.

    Row i takes its header fields from row (i // group_size) * group_size.
    """
    if group_size < 1:
        raise ValueError(f"group_size must be >= 1, got {group_size}")
    out = df.copy().reset_index(drop=True)
    header_pos = (np.arange(len(out)) // group_size) * group_size
    for col in columns:
        values = out[col].to_numpy()
        out[col] = values[header_pos]

    out[COL_SAMPLE] = out[COL_SAMPLE].ffill()
    out[COL_SAMPLE] = out[COL_SAMPLE].where(out[COL_AXIS].notna())
    return out


def _is_missing(v: Any) -> bool:
    if v is None:
        return True
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


@dataclass(frozen=True, eq=False)
class Group:
    """One sweep block of a sheet, with its header fields resolved once."""

    index: int
    start: int
    group_size: int
    rows: pd.DataFrame = field(repr=False)
    sample_id: Any = None
    axis: Any = None
    angle: Any = None
    stress: Any = None
    supply: Any = None

    @property
    def complete(self) -> bool:
        return len(self.rows) == self.group_size

    @property
    def positions(self) -> range:
        """Row positions of this block in the expanded sheet table."""
        return range(self.start, self.start + len(self.rows))

    @property
    def partition_key(self) -> Optional[Tuple[Any, Any]]:
        """(sample_id, axis), or None when either is missing."""
        if _is_missing(self.sample_id) or _is_missing(self.axis):
            return None
        return (self.sample_id, self.axis)

    def stress_value(self) -> float:
        v = pd.to_numeric(pd.Series([self.stress]), errors="coerce").iloc[0]
        return float(v) if pd.notna(v) else float("nan")

    def column(self, name: str, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        """Numeric values of `name` for block rows [start, stop); non-numeric -> NaN."""
        part = self.rows[name].iloc[start:stop]
        return pd.to_numeric(part, errors="coerce").to_numpy(dtype=float)


def segment_groups(
    expanded: pd.DataFrame,
    group_size: int,
    *,
    sheet_name: str = "",
) -> List[Group]:
    """
    Build Group objects from a table already passed through expand_block_fields.

    A trailing block shorter than group_size is still returned (complete=False)
    so callers can keep its rows; its derived values stay undefined.
    """
    groups: List[Group] = []
    n = len(expanded)
    for k, start in enumerate(range(0, n, group_size)):
        rows = expanded.iloc[start : start + group_size]
        head = rows.iloc[0]
        g = Group(
            index=k,
            start=start,
            group_size=group_size,
            rows=rows,
            sample_id=head[COL_SAMPLE],
            axis=head[COL_AXIS],
            angle=head[COL_ANGLE],
            stress=head[COL_STRESS],
            supply=head[COL_SUPPLY],
        )
        if not g.complete:
            where = f" in sheet {sheet_name!r}" if sheet_name else ""
            warnings.warn(
                f"Short block{where} starting at row {start}: {len(rows)} of {group_size} rows; "
                "derived values left undefined.",
                UserWarning,
            )
        groups.append(g)
    return groups
