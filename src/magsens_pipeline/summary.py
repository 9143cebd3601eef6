# src/magsens_pipeline/summary.py
"""
Out-of-range report for up-down results.

Input: the final (renamed, code-mapped) Vdiff and Sensitivity tables.
Output: one table with Offset entries on the left and Sensitivity entries on
the right. Rows are aligned by position only; the two lists are independent.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

import pandas as pd

from .mapping import OUT_FIELD_SET, OUT_PLANE, OUT_STRESS
from .protocols import COL_ANGLE, COL_OFFSET_DRIFT, COL_SAMPLE, COL_SENS_DRIFT_DU


KIND_OFFSET = "Offset"
KIND_SENSITIVITY = "Sensitivity"

SUMMARY_COLUMNS = [
    "Sample No",
    "Plane",
    "Magnetic Field Stress[mT]",
    "Angle",
    "Out of Range Value",
    ".",
    "Sample No (Sensitivity)",
    "Plane (Sensitivity)",
    "Magnetic Field Stress[mT] (Sensitivity)",
    "Angle (Sensitivity)",
    "Out of Range Value (Sensitivity)",
]


@dataclass(frozen=True)
class SummaryLimits:
    offset_field_set_mT: float = 47.0
    stress_max_mT: float = 120.0
    offset_drift_limit_mV: float = 2.5
    sensitivity_drift_limit_percent: float = 3.0


@dataclass(frozen=True)
class SummaryEntry:
    sample_id: Any
    plane: Any
    stress: float
    angle: Any
    value: float
    kind: str

    def cells(self) -> list:
        return [self.sample_id, self.plane, self.stress, self.angle, self.value]


def _numeric(df: pd.DataFrame, col: str) -> pd.Series:
    if col not in df.columns:
        return pd.Series(float("nan"), index=df.index)
    return pd.to_numeric(df[col], errors="coerce")


def _entries(df: pd.DataFrame, mask: pd.Series, value: pd.Series, stress: pd.Series, kind: str) -> List[SummaryEntry]:
    out: List[SummaryEntry] = []
    for idx in df.index[mask.to_numpy(dtype=bool)]:
        row = df.loc[idx]
        out.append(
            SummaryEntry(
                sample_id=row.get(COL_SAMPLE),
                plane=row.get(OUT_PLANE),
                stress=float(stress.loc[idx]),
                angle=row.get(COL_ANGLE),
                value=float(value.loc[idx]),
                kind=kind,
            )
        )
    return out


def extract_offset_entries(vdiff: pd.DataFrame, limits: SummaryLimits = SummaryLimits()) -> List[SummaryEntry]:
    """Rows at the offset field set point, below the stress cap, with |offset drift| over the limit."""
    df = vdiff.dropna(how="all")
    field_set = _numeric(df, OUT_FIELD_SET)
    stress = _numeric(df, OUT_STRESS)
    drift = _numeric(df, COL_OFFSET_DRIFT)
    mask = (
        (field_set == limits.offset_field_set_mT)
        & stress.notna()
        & (stress < limits.stress_max_mT)
        & drift.notna()
        & (drift.abs() > limits.offset_drift_limit_mV)
    )
    return _entries(df, mask, drift, stress, KIND_OFFSET)


def extract_sensitivity_entries(sensitivity: pd.DataFrame, limits: SummaryLimits = SummaryLimits()) -> List[SummaryEntry]:
    """Rows below the stress cap with |sensitivity drift| [%] over the limit."""
    df = sensitivity.dropna(how="all")
    stress = _numeric(df, OUT_STRESS)
    drift = _numeric(df, COL_SENS_DRIFT_DU)
    mask = (
        stress.notna()
        & (stress < limits.stress_max_mT)
        & drift.notna()
        & (drift.abs() > limits.sensitivity_drift_limit_percent)
    )
    return _entries(df, mask, drift, stress, KIND_SENSITIVITY)


def build_summary_table(
    offset_entries: List[SummaryEntry],
    sensitivity_entries: List[SummaryEntry],
) -> pd.DataFrame:
    """Lay both entry lists side by side, padded with empty cells."""
    n = max(len(offset_entries), len(sensitivity_entries))
    rows = []
    for i in range(n):
        row: list = ["", "", "", "", "", ".", "", "", "", "", ""]
        if i < len(offset_entries):
            row[0:5] = offset_entries[i].cells()
        if i < len(sensitivity_entries):
            row[6:11] = sensitivity_entries[i].cells()
        rows.append(row)
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def build_summary(
    vdiff: pd.DataFrame,
    sensitivity: pd.DataFrame,
    limits: SummaryLimits = SummaryLimits(),
) -> pd.DataFrame:
    return build_summary_table(
        extract_offset_entries(vdiff, limits),
        extract_sensitivity_entries(sensitivity, limits),
    )
