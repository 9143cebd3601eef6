# src/magsens_pipeline/manifest.py
"""
Run manifest: traceability of one processed workbook back to its inputs.
"""
from __future__ import annotations

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .pipeline import PipelineResult

_HASH_CHUNK_BYTES = 1 << 20


def _workbook_record(path: Path) -> Dict[str, Any]:
    """sha256 / size / mtime of one input workbook, or an error entry if it is gone."""
    if not path.is_file():
        return {"path": str(path), "error": "file not found"}
    digest = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(_HASH_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    stat = path.stat()
    return {
        "path": str(path.resolve()),
        "sha256": digest.hexdigest(),
        "mtime_iso": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        "size_bytes": stat.st_size,
    }


def _code_revision(repo_root: Optional[Path]) -> Optional[str]:
    """HEAD commit of the checkout that produced the tables; None outside git."""
    cwd = Path(repo_root) if repo_root is not None else Path.cwd()
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    rev = proc.stdout.strip()
    return rev if proc.returncode == 0 and rev else None


def _json_value(obj: Any) -> Any:
    """Undefined drift / counts come out of pandas as NaN or numpy scalars; make them JSON."""
    if isinstance(obj, dict):
        return {str(k): _json_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_value(v) for v in obj]
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, float) and not np.isfinite(obj):
        return None
    if obj is pd.NA or obj is pd.NaT:
        return None
    return obj


def build_run_manifest_dict(
    run_id: str,
    input_paths: List[Path],
    *,
    result: Optional[PipelineResult] = None,
    git_root: Optional[Path] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build manifest dict (run_id, timestamp, git commit, input file hashes/mtime/size,
    and, when a result is given, protocol, table row counts and sheet bookkeeping).
    """
    manifest: Dict[str, Any] = {
        "run_id": run_id,
        "timestamp_iso": datetime.now(timezone.utc).isoformat(),
        "git_commit": _code_revision(git_root),
        "input_files": [_workbook_record(Path(p)) for p in input_paths],
    }
    if result is not None:
        manifest["protocol"] = result.protocol
        manifest["tables"] = {name: int(len(df)) for name, df in result.tables().items()}
        manifest["processed_sheets"] = list(result.processed_sheets)
        manifest["skipped_sheets"] = [{"sheet": s, "reason": r} for s, r in result.skipped_sheets]
    if extra:
        manifest["extra"] = extra
    return manifest


def write_run_manifest(
    run_id: str,
    input_paths: List[Path],
    out_path: Path,
    *,
    result: Optional[PipelineResult] = None,
    git_root: Optional[Path] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write run_manifest__{run_id}.json next to the output workbook."""
    manifest = build_run_manifest_dict(run_id, input_paths, result=result, git_root=git_root, extra=extra)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(_json_value(manifest), f, indent=2, ensure_ascii=False)
    return out_path
