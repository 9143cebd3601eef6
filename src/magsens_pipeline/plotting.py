# src/magsens_pipeline/plotting.py
"""
Diagnostic drift plots for up-down results: one PNG per (sample, plane).
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

import pandas as pd
import matplotlib.pyplot as plt

from .mapping import OUT_PLANE, OUT_STRESS
from .protocols import COL_ANGLE, COL_OFFSET_DRIFT, COL_SAMPLE, COL_SENS_DRIFT_DU
from .summary import SummaryLimits

PAPER_FIGSIZE_TALL = (3.5, 4.0)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def apply_paper_style() -> dict:
    """
    Return matplotlib rcParams dict for compact report figures.

    Usage:
        with plt.rc_context(apply_paper_style()):
            fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_TALL)
    """
    return {
        "font.family": "sans-serif",
        "font.sans-serif": ["Arial", "Helvetica", "Liberation Sans", "DejaVu Sans"],
        "font.size": 7,
        "axes.titlesize": 8,
        "axes.labelsize": 7,
        "xtick.labelsize": 6,
        "ytick.labelsize": 6,
        "legend.fontsize": 6,
        "lines.linewidth": 0.7,
        "lines.markersize": 3,
        "axes.linewidth": 0.6,
        "axes.edgecolor": "0.3",
        "axes.labelcolor": "0.15",
        "xtick.direction": "out",
        "ytick.direction": "out",
        "legend.frameon": True,
        "legend.framealpha": 0.9,
        "legend.edgecolor": "0.7",
        "figure.facecolor": "white",
        "savefig.dpi": 300,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.02,
    }


def _safe_name(v: object) -> str:
    s = _UNSAFE_RE.sub("_", str(v).strip())
    return s.strip("_") or "NA"


def _draw_drift(ax, df: pd.DataFrame, value_col: str, limit: float, ylabel: str) -> None:
    stress = pd.to_numeric(df[OUT_STRESS], errors="coerce")
    drift = pd.to_numeric(df[value_col], errors="coerce")
    sub = pd.DataFrame({"stress": stress, "drift": drift, "angle": df[COL_ANGLE]}).dropna(subset=["stress", "drift"])
    for angle, g in sub.groupby("angle", sort=True, dropna=False):
        g = g.sort_values("stress")
        ax.plot(g["stress"], g["drift"], marker="o", label=f"{angle}°")
    for y in (-limit, limit):
        ax.axhline(y, color="0.4", linestyle="--", linewidth=0.5)
    ax.axhline(0.0, color="0.7", linewidth=0.4)
    ax.set_ylabel(ylabel)
    if not sub.empty:
        ax.legend(title="Angle", loc="best")


def plot_drift_vs_stress(
    vdiff: pd.DataFrame,
    sensitivity: pd.DataFrame,
    out_dir: Path,
    run_id: str,
    limits: SummaryLimits = SummaryLimits(),
) -> List[Path]:
    """
    Offset drift [mV] (top) and sensitivity drift [%] (bottom) against stress,
    one line per angle, summary limits dashed. Returns written PNG paths.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    offsets = vdiff[pd.to_numeric(vdiff[COL_OFFSET_DRIFT], errors="coerce").notna()]
    keys = pd.concat(
        [offsets[[COL_SAMPLE, OUT_PLANE]], sensitivity[[COL_SAMPLE, OUT_PLANE]]],
        ignore_index=True,
    ).dropna().drop_duplicates()

    written: List[Path] = []
    for sample, plane in keys.itertuples(index=False, name=None):
        off = offsets[(offsets[COL_SAMPLE] == sample) & (offsets[OUT_PLANE] == plane)]
        sens = sensitivity[(sensitivity[COL_SAMPLE] == sample) & (sensitivity[OUT_PLANE] == plane)]
        out_png = out_dir / f"drift__{_safe_name(run_id)}__{_safe_name(sample)}__{_safe_name(plane)}.png"

        with plt.rc_context(apply_paper_style()):
            fig, (ax_off, ax_sens) = plt.subplots(2, 1, figsize=PAPER_FIGSIZE_TALL, sharex=True)
            _draw_drift(ax_off, off, COL_OFFSET_DRIFT, limits.offset_drift_limit_mV, "Offset drift [mV]")
            _draw_drift(ax_sens, sens, COL_SENS_DRIFT_DU, limits.sensitivity_drift_limit_percent, "Sensitivity drift [%]")
            for ax in (ax_off, ax_sens):
                ax.axvline(limits.stress_max_mT, color="0.6", linestyle=":", linewidth=0.5)
            ax_sens.set_xlabel("Magnetic Field Stress [mT]")
            ax_off.set_title(f"{sample} / {plane}")
            fig.tight_layout(pad=0.3)
            fig.savefig(out_png)
            plt.close(fig)
        written.append(out_png)
    return written
