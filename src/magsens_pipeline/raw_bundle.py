from __future__ import annotations

from pathlib import Path

from .workbook import WORKBOOK_SUFFIXES


def list_input_workbooks(raw_input: Path) -> list[Path]:
    """
    Resolve raw input into one or more workbook files.

    - file path  -> [file]
    - directory  -> sorted direct children *.xlsx / *.xls (Excel lock files "~$..." skipped)
    """
    raw_input = Path(raw_input)
    if raw_input.is_file():
        if raw_input.suffix.lower() not in WORKBOOK_SUFFIXES:
            raise ValueError(f"Raw file must be .xlsx or .xls: {raw_input}")
        return [raw_input]

    if raw_input.is_dir():
        books = sorted(
            p
            for p in raw_input.iterdir()
            if p.is_file() and p.suffix.lower() in WORKBOOK_SUFFIXES and not p.name.startswith("~$")
        )
        if not books:
            raise ValueError(f"No Excel files found in raw folder: {raw_input}")
        return books

    raise FileNotFoundError(f"Raw input not found: {raw_input}")


def derive_run_id_from_raw_input(raw_input: Path) -> str:
    """
    Run ID convention:
      - raw file   -> file stem
      - raw folder -> folder name
    """
    raw_input = Path(raw_input)
    return raw_input.stem if raw_input.is_file() else raw_input.name


def output_workbook_path(out_dir: Path, workbook: Path) -> Path:
    """<out_dir>/<stem>__processed.xlsx"""
    return Path(out_dir) / f"{Path(workbook).stem}__processed.xlsx"
