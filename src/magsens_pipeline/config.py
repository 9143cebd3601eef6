# src/magsens_pipeline/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .mapping import DEFAULT_AXIS_MAPPING, coerce_mapping
from .protocols import REFERENCE_STRESS_MT, get_protocol
from .summary import SummaryLimits


def load_yaml(path: Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        obj = yaml.safe_load(f)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"YAML root must be a mapping: {path}")
    return obj


@dataclass(frozen=True)
class PipelineConfig:
    """
    Run settings (meta/config.yml). Every key is optional:

        protocol: up-down            # up-down | a3 | classic
        reference_stress_mT: 10
        skip_leading_sheets: 2
        skip_sheet_keyword: precon
        axis_mapping: {1: XY, 2: YZ, 3: XZ}
        summary: {offset_field_set_mT: 47, stress_max_mT: 120,
                  offset_drift_limit_mV: 2.5, sensitivity_drift_limit_percent: 3}
        max_workers: 1
    """

    protocol: str = "up-down"
    reference_stress_mT: float = REFERENCE_STRESS_MT
    skip_leading_sheets: int = 2
    skip_sheet_keyword: str = "precon"
    axis_mapping: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_AXIS_MAPPING))
    summary_limits: SummaryLimits = field(default_factory=SummaryLimits)
    max_workers: int = 1

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "PipelineConfig":
        raw = dict(raw or {})
        known = {
            "protocol",
            "reference_stress_mT",
            "skip_leading_sheets",
            "skip_sheet_keyword",
            "axis_mapping",
            "summary",
            "max_workers",
        }
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")

        protocol = get_protocol(raw.get("protocol", cls.protocol)).name

        summary_raw = raw.get("summary") or {}
        if not isinstance(summary_raw, dict):
            raise ValueError("config 'summary' must be a mapping")
        limit_fields = set(SummaryLimits.__dataclass_fields__)
        bad = sorted(set(summary_raw) - limit_fields)
        if bad:
            raise ValueError(f"Unknown summary keys: {bad}")
        limits = SummaryLimits(**{k: float(v) for k, v in summary_raw.items()})

        axis_raw = raw.get("axis_mapping")
        axis_mapping = coerce_mapping(axis_raw) if axis_raw is not None else dict(DEFAULT_AXIS_MAPPING)

        max_workers = int(raw.get("max_workers", 1))
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        return cls(
            protocol=protocol,
            reference_stress_mT=float(raw.get("reference_stress_mT", REFERENCE_STRESS_MT)),
            skip_leading_sheets=int(raw.get("skip_leading_sheets", 2)),
            skip_sheet_keyword=str(raw.get("skip_sheet_keyword", "precon")),
            axis_mapping=axis_mapping,
            summary_limits=limits,
            max_workers=max_workers,
        )


def load_pipeline_config(path: Optional[Path] = None) -> PipelineConfig:
    """Defaults when path is None; otherwise read and validate the YAML file."""
    if path is None:
        return PipelineConfig()
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    return PipelineConfig.from_dict(load_yaml(path))
