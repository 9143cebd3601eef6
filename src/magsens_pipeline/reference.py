# src/magsens_pipeline/reference.py
"""
Reference-stress baselines and drift.

For each (sample, axis) partition the reference is the first block, in sheet
order, whose stress equals the reference level exactly and whose value is
defined. Drift is computed in a second pass once every block value is known:

  - absolute: value - reference
  - relative: (value - reference) / reference * 100   (undefined if reference == 0)

No qualifying block means undefined drift for the whole partition. The two
cases "no block at the reference stress" and "block present but value
undefined" are not told apart.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .grouping import Group
from .protocols import REFERENCE_STRESS_MT

DRIFT_MODES = ("absolute", "relative")


def resolve_reference(
    values: Sequence[float],
    stresses: Sequence[float],
    reference_stress: float = REFERENCE_STRESS_MT,
) -> Optional[float]:
    """First defined value whose stress equals reference_stress; None if there is none."""
    for v, s in zip(values, stresses):
        if s is None or (isinstance(s, float) and math.isnan(s)):
            continue
        if s != reference_stress:
            continue
        if v is None or math.isnan(v):
            continue
        return float(v)
    return None


def block_values(frame: pd.DataFrame, groups: Sequence[Group], column: str) -> Dict[int, float]:
    """Block index -> value of `column` on the block's first row."""
    col = pd.to_numeric(frame[column], errors="coerce").to_numpy(dtype=float)
    return {g.index: float(col[g.start]) for g in groups}


def resolve_partition_references(
    groups: Sequence[Group],
    values: Dict[int, float],
    reference_stress: float = REFERENCE_STRESS_MT,
) -> Dict[Tuple[Hashable, Hashable], Optional[float]]:
    """Partition key -> reference value (None when unresolved)."""
    members: Dict[Tuple[Any, Any], list[Group]] = {}
    for g in groups:
        key = g.partition_key
        if key is None:
            continue
        members.setdefault(key, []).append(g)

    refs: Dict[Tuple[Hashable, Hashable], Optional[float]] = {}
    for key, gs in members.items():
        refs[key] = resolve_reference(
            [values.get(g.index, float("nan")) for g in gs],
            [g.stress_value() for g in gs],
            reference_stress=reference_stress,
        )
    return refs


def drift_value(value: float, reference: Optional[float], mode: str) -> float:
    if mode not in DRIFT_MODES:
        raise ValueError(f"mode must be one of {DRIFT_MODES}, got {mode!r}")
    if reference is None or value is None or math.isnan(value):
        return float("nan")
    if mode == "absolute":
        return float(value - reference)
    if reference == 0:
        return float("nan")
    return float((value - reference) / reference * 100.0)


def apply_drift(
    frame: pd.DataFrame,
    groups: Sequence[Group],
    value_column: str,
    drift_column: str,
    *,
    mode: str,
    reference_stress: float = REFERENCE_STRESS_MT,
) -> pd.DataFrame:
    """
    Copy of `frame` with `drift_column` filled on every row where `value_column` is defined.
    """
    values = block_values(frame, groups, value_column)
    refs = resolve_partition_references(groups, values, reference_stress=reference_stress)

    out = frame.copy()
    defined = pd.to_numeric(out[value_column], errors="coerce").notna().to_numpy()
    drift = np.full(len(out), np.nan)
    for g in groups:
        key = g.partition_key
        if key is None:
            continue
        d = drift_value(values[g.index], refs.get(key), mode)
        for pos in g.positions:
            if defined[pos]:
                drift[pos] = d
    out[drift_column] = drift
    return out


def apply_absolute_drift(frame, groups, value_column, drift_column, *, reference_stress=REFERENCE_STRESS_MT):
    return apply_drift(frame, groups, value_column, drift_column, mode="absolute", reference_stress=reference_stress)


def apply_relative_drift(frame, groups, value_column, drift_column, *, reference_stress=REFERENCE_STRESS_MT):
    return apply_drift(frame, groups, value_column, drift_column, mode="relative", reference_stress=reference_stress)
