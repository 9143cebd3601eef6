# src/magsens_pipeline/mapping.py
"""
Output column names and integer-code -> label substitution.

Code mappings replace sample numbers and axis codes with display labels. Only
integer-valued cells are looked up, so applying a mapping twice is a no-op.
Lookups are positional: sample numbers in column 0, axis codes in column 2,
whatever the headers are called.
"""
from __future__ import annotations

import math
import numbers
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .protocols import (
    COL_AXIS,
    COL_FIELD_READ,
    COL_FIELD_SET,
    COL_STRESS,
    COL_SUPPLY,
)

COLUMN_RENAME_MAP = {
    COL_AXIS: "Plane",
    COL_STRESS: "Magnetic Field Stress[mT]",
    COL_SUPPLY: "Sample consumption[V]",
    COL_FIELD_READ: "Magnetic Field Read[mT]",
    COL_FIELD_SET: "Magnetic Field Set[mT]",
}

OUT_PLANE = COLUMN_RENAME_MAP[COL_AXIS]
OUT_STRESS = COLUMN_RENAME_MAP[COL_STRESS]
OUT_FIELD_SET = COLUMN_RENAME_MAP[COL_FIELD_SET]

SAMPLE_COLUMN_POS = 0
AXIS_COLUMN_POS = 2

DEFAULT_AXIS_MAPPING: Dict[int, str] = {1: "XY", 2: "YZ", 3: "XZ"}


def rename_output_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.rename(columns=COLUMN_RENAME_MAP)


def coerce_mapping(raw: Optional[Mapping[Any, Any]]) -> Dict[int, str]:
    """Normalize keys to int (they may come in as strings from YAML/JSON/TSV)."""
    if not raw:
        return {}
    out: Dict[int, str] = {}
    for k, v in raw.items():
        try:
            key = int(str(k).strip())
        except ValueError:
            raise ValueError(f"Mapping key must be an integer code, got {k!r}") from None
        out[key] = str(v).strip()
    return out


def map_code(value: Any, mapping: Mapping[int, str]) -> Any:
    """Return mapping[value] for integer-valued numbers present as keys, else value unchanged."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, numbers.Integral):
        key = int(value)
    elif isinstance(value, numbers.Real):
        f = float(value)
        if not math.isfinite(f) or not f.is_integer():
            return value
        key = int(f)
    else:
        return value
    return mapping.get(key, value)


def apply_code_mappings(
    df: pd.DataFrame,
    sample_mapping: Optional[Mapping[int, str]] = None,
    axis_mapping: Optional[Mapping[int, str]] = None,
    *,
    sample_pos: int = SAMPLE_COLUMN_POS,
    axis_pos: int = AXIS_COLUMN_POS,
) -> pd.DataFrame:
    out = df.copy()
    for pos, mapping in ((sample_pos, sample_mapping), (axis_pos, axis_mapping)):
        if not mapping or pos >= out.shape[1]:
            continue
        col = out.columns[pos]
        out[col] = out[col].astype(object).map(lambda v, m=mapping: map_code(v, m))
    return out


def parse_mapping_text(text: str) -> Dict[int, str]:
    """
    Parse "<code>: <label>" lines, e.g.

        1: Wafer A / die 3
        2: Wafer A / die 7

    Lines without ':' or with a non-integer code are ignored.
    """
    mapping: Dict[int, str] = {}
    for line in str(text).splitlines():
        s = line.strip()
        if not s or ":" not in s:
            continue
        key, value = s.split(":", 1)
        try:
            code = int(key.strip())
        except ValueError:
            continue
        mapping[code] = value.strip()
    return mapping


def read_code_mapping_tsv(path: Path) -> Dict[int, str]:
    """
    TSV with columns:
      - required: code, label
    Blank lines are allowed.
    """
    df = pd.read_csv(path, sep="\t", dtype=str).fillna("")
    df.columns = [c.strip() for c in df.columns]
    if "code" not in df.columns or "label" not in df.columns:
        raise ValueError(f"code mapping must include 'code' and 'label': {path}")
    df = df[df["code"].str.strip().ne("")]
    return coerce_mapping(dict(zip(df["code"], df["label"])))
