# src/magsens_pipeline/pipeline.py
"""
Main pipeline: sheets of measurement rows -> Vdiff / Sensitivity / Summary tables.

Per sheet (independent of every other sheet):
  1. drop fully empty rows, copy block headers down, resolve sample numbers
  2. segment into blocks of protocol.group_size
  3. Vdiff table: offsets + offset drift (up-down only)
  4. Sensitivity table: window slopes -> sensitivity columns (+ drift for up-down),
     then one representative row per block with a defined primary sensitivity
  5. rename columns

Across sheets: concatenate in sheet order, drop fully empty rows, apply code
mappings, then build the out-of-range summary (up-down only).
"""
from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .fitting import attach_sensitivities
from .grouping import Group, drop_empty_rows, expand_block_fields, segment_groups
from .mapping import COLUMN_RENAME_MAP, apply_code_mappings, rename_output_columns
from .offsets import attach_offsets
from .protocols import (
    COL_OFFSET,
    REFERENCE_STRESS_MT,
    REQUIRED_COLUMNS,
    Protocol,
    get_protocol,
)
from .reference import apply_absolute_drift, apply_relative_drift
from .summary import SummaryLimits, build_summary

TABLE_VDIFF = "Vdiff_data"
TABLE_SENSITIVITY = "Sensitivity_data"
TABLE_SUMMARY = "Summary"


class SheetStructureError(ValueError):
    """Raised when a sheet cannot be processed at all (e.g. required columns missing)."""


@dataclass
class SheetResult:
    sheet_name: str
    vdiff: pd.DataFrame
    sensitivity: pd.DataFrame
    n_blocks: int = 0


@dataclass
class PipelineResult:
    protocol: str
    vdiff: pd.DataFrame
    sensitivity: pd.DataFrame
    summary: Optional[pd.DataFrame] = None
    processed_sheets: List[str] = field(default_factory=list)
    skipped_sheets: List[Tuple[str, str]] = field(default_factory=list)

    def tables(self) -> Dict[str, pd.DataFrame]:
        """Named output tables in write order."""
        out = {TABLE_VDIFF: self.vdiff, TABLE_SENSITIVITY: self.sensitivity}
        if self.summary is not None:
            out[TABLE_SUMMARY] = self.summary
        return out


def vdiff_columns(protocol: Protocol) -> List[str]:
    cols = list(REQUIRED_COLUMNS)
    if protocol.computes_offset:
        cols += [COL_OFFSET, protocol.offset_drift_column]
    return cols


def sensitivity_columns(protocol: Protocol) -> List[str]:
    cols = list(REQUIRED_COLUMNS) + protocol.sensitivity_columns
    if protocol.sensitivity_drift is not None:
        cols.append(protocol.sensitivity_drift[1])
    return cols


def filter_representative_rows(
    frame: pd.DataFrame,
    groups: Sequence[Group],
    primary_column: str,
) -> pd.DataFrame:
    """First row of every block whose primary sensitivity is defined."""
    primary = pd.to_numeric(frame[primary_column], errors="coerce")
    keep = [g.start for g in groups if pd.notna(primary.iloc[g.start])]
    return frame.iloc[keep].reset_index(drop=True)


def process_sheet(
    frame: pd.DataFrame,
    protocol: Union[Protocol, str],
    *,
    sheet_name: str = "",
    reference_stress: float = REFERENCE_STRESS_MT,
) -> SheetResult:
    """Run the per-sheet pipeline. Raises SheetStructureError when required columns are absent."""
    if isinstance(protocol, str):
        protocol = get_protocol(protocol)

    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise SheetStructureError(f"Sheet {sheet_name!r} is missing required columns: {missing}")

    rows = drop_empty_rows(frame, REQUIRED_COLUMNS)
    expanded = expand_block_fields(rows, protocol.group_size)
    groups = segment_groups(expanded, protocol.group_size, sheet_name=sheet_name)

    vdiff = expanded.copy()
    if protocol.computes_offset:
        vdiff = attach_offsets(vdiff, groups, protocol)
        vdiff = apply_absolute_drift(
            vdiff,
            groups,
            COL_OFFSET,
            protocol.offset_drift_column,
            reference_stress=reference_stress,
        )

    sens = attach_sensitivities(expanded, groups, protocol)
    if protocol.sensitivity_drift is not None:
        value_col, drift_col = protocol.sensitivity_drift
        sens = apply_relative_drift(sens, groups, value_col, drift_col, reference_stress=reference_stress)
    sens = filter_representative_rows(sens, groups, protocol.primary_column)

    return SheetResult(
        sheet_name=sheet_name,
        vdiff=rename_output_columns(vdiff[vdiff_columns(protocol)]),
        sensitivity=rename_output_columns(sens[sensitivity_columns(protocol)]),
        n_blocks=len(groups),
    )


def select_data_sheets(
    sheet_names: Sequence[str],
    *,
    skip_leading: int = 2,
    skip_keyword: str = "precon",
) -> Tuple[List[str], List[str]]:
    """
    Data sheets are those after the leading metadata sheets whose name does not
    contain skip_keyword (case-insensitive). Returns (selected, skipped_by_keyword).
    """
    selected: List[str] = []
    skipped: List[str] = []
    kw = str(skip_keyword).lower()
    for name in list(sheet_names)[skip_leading:]:
        if kw and kw in str(name).lower():
            skipped.append(name)
            continue
        selected.append(name)
    return selected, skipped


def _renamed(columns: List[str]) -> List[str]:
    return [COLUMN_RENAME_MAP.get(c, c) for c in columns]


def _concat(parts: List[pd.DataFrame], columns: List[str]) -> pd.DataFrame:
    parts = [p for p in parts if not p.empty]
    if not parts:
        return pd.DataFrame(columns=columns)
    out = pd.concat(parts, ignore_index=True)
    return out.dropna(how="all").reset_index(drop=True)


def run_pipeline(
    sheets: Sequence[Tuple[str, pd.DataFrame]],
    protocol: Union[Protocol, str],
    *,
    sample_mapping: Optional[Mapping[int, str]] = None,
    axis_mapping: Optional[Mapping[int, str]] = None,
    reference_stress: float = REFERENCE_STRESS_MT,
    summary_limits: SummaryLimits = SummaryLimits(),
    skip_leading: int = 2,
    skip_keyword: str = "precon",
    max_workers: int = 1,
) -> PipelineResult:
    """
    Process every data sheet and combine the results.

    sheets: (sheet_name, rows) in workbook order, metadata sheets included.
    A sheet that fails structurally is skipped with a warning; the others continue.
    """
    if isinstance(protocol, str):
        protocol = get_protocol(protocol)

    names = [name for name, _ in sheets]
    frames = dict(sheets)
    selected, skipped_kw = select_data_sheets(names, skip_leading=skip_leading, skip_keyword=skip_keyword)
    skipped: List[Tuple[str, str]] = [(name, f"name contains {skip_keyword!r}") for name in skipped_kw]

    def _run(name: str) -> Union[SheetResult, SheetStructureError]:
        try:
            return process_sheet(frames[name], protocol, sheet_name=name, reference_stress=reference_stress)
        except SheetStructureError as e:
            return e

    if max_workers > 1 and len(selected) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_run, name) for name in selected]
            outcomes = [f.result() for f in futures]
    else:
        outcomes = [_run(name) for name in selected]

    results: List[SheetResult] = []
    for name, outcome in zip(selected, outcomes):
        if isinstance(outcome, SheetStructureError):
            warnings.warn(f"Skipping sheet {name!r}: {outcome}", UserWarning)
            skipped.append((name, str(outcome)))
            continue
        results.append(outcome)

    vdiff = _concat([r.vdiff for r in results], _renamed(vdiff_columns(protocol)))
    sens = _concat([r.sensitivity for r in results], _renamed(sensitivity_columns(protocol)))

    vdiff = apply_code_mappings(vdiff, sample_mapping, axis_mapping)
    sens = apply_code_mappings(sens, sample_mapping, axis_mapping)

    summary = build_summary(vdiff, sens, summary_limits) if protocol.has_summary else None

    return PipelineResult(
        protocol=protocol.name,
        vdiff=vdiff,
        sensitivity=sens,
        summary=summary,
        processed_sheets=[r.sheet_name for r in results],
        skipped_sheets=skipped,
    )
