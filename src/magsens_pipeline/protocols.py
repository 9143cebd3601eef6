# src/magsens_pipeline/protocols.py
"""
Measurement protocol variants.

All three protocols run through one pipeline; they differ only in
  - group size (rows per sweep block)
  - sweep windows fitted inside a block
  - how window slopes combine into sensitivity columns
  - whether offsets and reference-relative drifts are computed
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


# Input columns (order is also the output order)
COL_SAMPLE = "Sample No"
COL_ANGLE = "Angle"
COL_AXIS = "Axis"
COL_STRESS = "B_stress[mT]"
COL_SUPPLY = "Vdd[V]"
COL_FIELD_READ = "B_read[mT]"
COL_FIELD_SET = "B_set[mT]"
COL_TEMPERATURE = "Temp_Gauss_probe[C]"
COL_VDIFF_MAX = "Vdiff_max[mV]"
COL_VDIFF_MIN = "Vdiff_min[mV]"
COL_VDIFF_MEAN = "Vdiff_mean[mV]"
COL_VDIFF_STDEV = "Vdiff_stdev[uV]"

REQUIRED_COLUMNS = [
    COL_SAMPLE,
    COL_ANGLE,
    COL_AXIS,
    COL_STRESS,
    COL_SUPPLY,
    COL_FIELD_READ,
    COL_FIELD_SET,
    COL_TEMPERATURE,
    COL_VDIFF_MAX,
    COL_VDIFF_MIN,
    COL_VDIFF_MEAN,
    COL_VDIFF_STDEV,
]

# Header fields repeated down every row of a block
BLOCK_COLUMNS = [COL_AXIS, COL_ANGLE, COL_STRESS, COL_SUPPLY]

# Derived columns
COL_OFFSET = "Off_DU[mV]"
COL_OFFSET_DRIFT = "Off_drift_DU[mV]"
COL_SENS_DU = "Sens_DU[mV/mT]"
COL_SENS_DRIFT_DU = "Sens_drift_DU[%]"
COL_SENS_U = "Sens_U[mV/mT]"
COL_SENS_UD = "Sens_UD[mV/mT]"
COL_K = "K[mV/mT]"

REFERENCE_STRESS_MT = 10.0


@dataclass(frozen=True)
class SweepWindow:
    """Row slice [start, stop) of a block fitted as y=vdiff_mean vs x=x_col."""

    name: str
    start: int
    stop: int
    x_col: str = COL_FIELD_SET
    y_col: str = COL_VDIFF_MEAN
    require_y_variation: bool = False


@dataclass(frozen=True)
class SensitivityRule:
    """
    Output column built from one or more window slopes.

    A single window copies the slope; several windows are averaged, and the
    result is undefined as soon as any of them is undefined.
    """

    column: str
    windows: Tuple[str, ...]


@dataclass(frozen=True)
class Protocol:
    name: str
    group_size: int
    windows: Tuple[SweepWindow, ...]
    sensitivities: Tuple[SensitivityRule, ...]
    # Column that decides whether a block survives the sensitivity filter
    primary_column: str
    # Sensitivity columns written to every row of the block (False -> first row only)
    fill_block: bool = True
    offset_rows: Optional[Tuple[int, int]] = None
    offset_drift_column: Optional[str] = None
    sensitivity_drift: Optional[Tuple[str, str]] = None
    has_summary: bool = False

    @property
    def computes_offset(self) -> bool:
        return self.offset_rows is not None

    @property
    def sensitivity_columns(self) -> list[str]:
        return [r.column for r in self.sensitivities]


UP_DOWN = Protocol(
    name="up-down",
    group_size=5,
    windows=(
        SweepWindow("down", 0, 3),
        SweepWindow("up", 2, 5),
    ),
    sensitivities=(SensitivityRule(COL_SENS_DU, ("down", "up")),),
    primary_column=COL_SENS_DU,
    offset_rows=(1, 3),
    offset_drift_column=COL_OFFSET_DRIFT,
    sensitivity_drift=(COL_SENS_DU, COL_SENS_DRIFT_DU),
    has_summary=True,
)

A3 = Protocol(
    name="a3",
    group_size=7,
    windows=(
        SweepWindow("u1", 0, 3),
        SweepWindow("d", 2, 5),
        SweepWindow("u2", 4, 7),
    ),
    sensitivities=(
        SensitivityRule(COL_SENS_U, ("u1",)),
        SensitivityRule(COL_SENS_UD, ("u1", "d")),
        SensitivityRule(COL_SENS_DU, ("d", "u2")),
    ),
    primary_column=COL_SENS_U,
)

CLASSIC = Protocol(
    name="classic",
    group_size=3,
    windows=(SweepWindow("k", 0, 3, x_col=COL_FIELD_READ, require_y_variation=True),),
    sensitivities=(SensitivityRule(COL_K, ("k",)),),
    primary_column=COL_K,
    fill_block=False,
)

PROTOCOLS: Dict[str, Protocol] = {p.name: p for p in (UP_DOWN, A3, CLASSIC)}

_ALIASES = {
    "updown": "up-down",
    "up_down": "up-down",
    "a": "up-down",
    "b": "a3",
    "c": "classic",
}


def get_protocol(name: str) -> Protocol:
    """Look up a protocol by name (case-insensitive, with short aliases)."""
    key = str(name).strip().lower()
    key = _ALIASES.get(key, key)
    if key not in PROTOCOLS:
        raise KeyError(f"Unknown protocol {name!r}. Must be one of {sorted(PROTOCOLS)}")
    return PROTOCOLS[key]
