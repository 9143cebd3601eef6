# src/magsens_pipeline/workbook.py
"""
Workbook adapters around the pipeline.

The pipeline itself only sees DataFrames; reading the characterization
workbook and writing the result workbook (with readable column widths) live here.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook

WORKBOOK_SUFFIXES = (".xlsx", ".xls")

MIN_COLUMN_WIDTH = 8
MAX_COLUMN_WIDTH = 50


def read_input_workbook(path: Path) -> List[Tuple[str, pd.DataFrame]]:
    """Return (sheet_name, rows) for every sheet, in workbook order."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input workbook not found: {path}")
    if path.suffix.lower() not in WORKBOOK_SUFFIXES:
        raise ValueError(f"Input must be an Excel file (.xlsx or .xls): {path}")
    with pd.ExcelFile(path) as book:
        return [(str(name), book.parse(name)) for name in book.sheet_names]


def _display_width(value: object) -> int:
    s = str(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return len(s) + 1
    return len(s)


def autofit_columns(workbook: Workbook, sheet_names: Optional[Iterable[str]] = None) -> None:
    """Set each column width to its longest cell + 2, clamped to [8, 50]."""
    names = list(workbook.sheetnames) if sheet_names is None else list(sheet_names)
    for name in names:
        if name not in workbook.sheetnames:
            continue
        ws = workbook[name]
        widths: dict[str, int] = {}
        for row in ws.iter_rows():
            for cell in row:
                if cell.value is None:
                    continue
                letter = cell.column_letter
                widths[letter] = max(widths.get(letter, 0), _display_width(cell.value))
        for letter, w in widths.items():
            ws.column_dimensions[letter].width = min(max(w + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)


def write_output_workbook(tables: Mapping[str, pd.DataFrame], out_path: Path) -> Path:
    """Write named tables (in mapping order) to one .xlsx and autofit the columns."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        for name, df in tables.items():
            df.to_excel(writer, sheet_name=name, index=False)

    wb = load_workbook(out_path)
    autofit_columns(wb, list(tables))
    wb.save(out_path)
    return out_path
