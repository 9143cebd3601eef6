"""
Central definitions for user-editable meta file paths.

Layout (all user inputs in one place: meta/):
  meta/
    config.yml       - protocol, reference stress, axis labels, summary limits
    sample_map.tsv   - code<TAB>label for sample numbers (optional)
"""
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace


def get_meta_paths(repo_root: Path) -> SimpleNamespace:
    """Return paths to user-editable meta files under repo_root/meta/."""
    root = Path(repo_root)
    meta = root / "meta"
    return SimpleNamespace(
        config=meta / "config.yml",
        sample_map=meta / "sample_map.tsv",
    )
