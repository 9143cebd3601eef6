from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path

# Ensure local src/ is used (avoid importing an older installed package)
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Use non-interactive backend so script does not block on display (headless / IDE / SSH)
import matplotlib
matplotlib.use("Agg")

from magsens_pipeline.config import load_pipeline_config  # noqa: E402
from magsens_pipeline.manifest import write_run_manifest  # noqa: E402
from magsens_pipeline.mapping import parse_mapping_text, read_code_mapping_tsv  # noqa: E402
from magsens_pipeline.meta_paths import get_meta_paths  # noqa: E402
from magsens_pipeline.pipeline import run_pipeline  # noqa: E402
from magsens_pipeline.plotting import plot_drift_vs_stress  # noqa: E402
from magsens_pipeline.protocols import PROTOCOLS, get_protocol  # noqa: E402
from magsens_pipeline.raw_bundle import (  # noqa: E402
    derive_run_id_from_raw_input,
    list_input_workbooks,
    output_workbook_path,
)
from magsens_pipeline.workbook import read_input_workbook, write_output_workbook  # noqa: E402


def _resolve_from_repo_root(p: str | Path, repo_root: Path) -> Path:
    p = Path(p)
    return p if p.is_absolute() else (repo_root / p)


def main() -> None:
    meta = get_meta_paths(REPO_ROOT)
    p = argparse.ArgumentParser(
        description="Reduce magnetic sensor characterization workbooks to offset / sensitivity tables."
    )
    p.add_argument("--input", required=True, help="Input .xlsx file OR folder of workbooks.")
    p.add_argument("--out_dir", default="data/processed", help="Directory to write processed workbooks.")
    p.add_argument(
        "--protocol",
        default=None,
        help=f"Measurement protocol: {', '.join(sorted(PROTOCOLS))} (default: config value).",
    )
    p.add_argument("--config", default=None, help=f"Config YAML (default: {meta.config} if present).")
    p.add_argument(
        "--sample_map",
        default=None,
        help=f"Sample code TSV with columns code, label (default: {meta.sample_map} if present).",
    )
    p.add_argument(
        "--sample_map_text",
        default=None,
        help='Inline sample mapping, one "code: label" per line (overrides --sample_map).',
    )
    p.add_argument("--max_workers", type=int, default=None, help="Sheets processed in parallel.")
    p.add_argument("--plot_dir", default=None, help="Write drift-vs-stress PNGs here (up-down only).")
    p.add_argument(
        "--write_manifest",
        type=int,
        default=1,
        choices=[0, 1],
        help="Write run_manifest__{run_id}.json next to the output. 1=on (default), 0=off.",
    )
    args = p.parse_args()

    if args.config is not None:
        config = load_pipeline_config(_resolve_from_repo_root(args.config, REPO_ROOT))
    elif meta.config.is_file():
        config = load_pipeline_config(meta.config)
    else:
        config = load_pipeline_config(None)

    try:
        protocol = get_protocol(args.protocol if args.protocol else config.protocol)
    except KeyError as e:
        p.error(str(e))

    if args.sample_map_text is not None:
        sample_mapping = parse_mapping_text(args.sample_map_text.replace("\\n", "\n"))
    elif args.sample_map is not None:
        sample_mapping = read_code_mapping_tsv(_resolve_from_repo_root(args.sample_map, REPO_ROOT))
    elif meta.sample_map.is_file():
        sample_mapping = read_code_mapping_tsv(meta.sample_map)
    else:
        sample_mapping = {}

    max_workers = args.max_workers if args.max_workers is not None else config.max_workers
    raw_input = _resolve_from_repo_root(args.input, REPO_ROOT)
    out_dir = _resolve_from_repo_root(args.out_dir, REPO_ROOT)

    print(f"Protocol: {protocol.name} (group size {protocol.group_size})")
    print(f"Sample mapping: {sample_mapping}")
    print(f"Axis mapping: {config.axis_mapping}")

    for book in list_input_workbooks(raw_input):
        run_id = derive_run_id_from_raw_input(book)
        print(f"\n=== {book.name} ===")
        sheets = read_input_workbook(book)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            result = run_pipeline(
                sheets,
                protocol,
                sample_mapping=sample_mapping,
                axis_mapping=config.axis_mapping,
                reference_stress=config.reference_stress_mT,
                summary_limits=config.summary_limits,
                skip_leading=config.skip_leading_sheets,
                skip_keyword=config.skip_sheet_keyword,
                max_workers=max_workers,
            )
        for w in caught:
            # skipped sheets are reported below
            if not str(w.message).startswith("Skipping sheet"):
                print(f"Warning: {w.message}")

        for name, reason in result.skipped_sheets:
            print(f"Skipping sheet: {name} ({reason})")

        out_path = write_output_workbook(result.tables(), output_workbook_path(out_dir, book))
        print(f"Processed sheets: {len(result.processed_sheets)}")
        for name, df in result.tables().items():
            print(f"  {name}: {len(df)} rows")
        print(f"Output: {out_path}")

        if args.write_manifest:
            manifest_path = write_run_manifest(
                run_id,
                [book],
                out_dir / f"run_manifest__{run_id}.json",
                result=result,
                git_root=REPO_ROOT,
                extra={"output_file": out_path.name, "max_workers": int(max_workers)},
            )
            print(f"Manifest: {manifest_path}")

        if args.plot_dir is not None and protocol.has_summary:
            plot_dir = _resolve_from_repo_root(args.plot_dir, REPO_ROOT)
            pngs = plot_drift_vs_stress(
                result.vdiff,
                result.sensitivity,
                plot_dir,
                run_id,
                limits=config.summary_limits,
            )
            print(f"Drift plots: {len(pngs)} written under {plot_dir}")


if __name__ == "__main__":
    main()
