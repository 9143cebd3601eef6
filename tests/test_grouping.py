from __future__ import annotations

import sys
import unittest
import warnings
from pathlib import Path

import numpy as np
import pandas as pd


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from magsens_pipeline.grouping import (  # noqa: E402
    drop_empty_rows,
    expand_block_fields,
    segment_groups,
)
from magsens_pipeline.protocols import (  # noqa: E402
    COL_ANGLE,
    COL_AXIS,
    COL_SAMPLE,
    COL_STRESS,
    COL_SUPPLY,
    COL_VDIFF_MEAN,
)


def _raw(n_blocks: int, group_size: int, extra_rows: int = 0) -> pd.DataFrame:
    n = n_blocks * group_size + extra_rows
    df = pd.DataFrame(
        {
            COL_SAMPLE: np.nan,
            COL_ANGLE: np.nan,
            COL_AXIS: np.nan,
            COL_STRESS: np.nan,
            COL_SUPPLY: np.nan,
            COL_VDIFF_MEAN: np.arange(n, dtype=float),
        },
        index=range(n),
    )
    for k in range(n_blocks):
        i = k * group_size
        df.loc[i, COL_SAMPLE] = 7.0 if k == 0 else np.nan
        df.loc[i, COL_ANGLE] = 90.0 * k
        df.loc[i, COL_AXIS] = 1.0 + k
        df.loc[i, COL_STRESS] = 10.0 * (k + 1)
        df.loc[i, COL_SUPPLY] = 3.3
    return df


class ExpandBlockFieldsTests(unittest.TestCase):
    def test_header_fields_copied_down_each_block(self) -> None:
        out = expand_block_fields(_raw(2, 3), 3)
        self.assertEqual(out[COL_AXIS].tolist(), [1.0, 1.0, 1.0, 2.0, 2.0, 2.0])
        self.assertEqual(out[COL_ANGLE].tolist(), [0.0, 0.0, 0.0, 90.0, 90.0, 90.0])
        self.assertEqual(out[COL_STRESS].tolist(), [10.0] * 3 + [20.0] * 3)
        self.assertEqual(out[COL_SUPPLY].tolist(), [3.3] * 6)

    def test_sample_carried_forward_across_blocks(self) -> None:
        out = expand_block_fields(_raw(2, 3), 3)
        self.assertEqual(out[COL_SAMPLE].tolist(), [7.0] * 6)

    def test_sample_carried_from_most_recent_value(self) -> None:
        df = _raw(3, 2)
        df.loc[4, COL_SAMPLE] = 8.0
        out = expand_block_fields(df, 2)
        self.assertEqual(out[COL_SAMPLE].tolist(), [7.0] * 4 + [8.0] * 2)

    def test_sample_blanked_on_headerless_trailing_rows(self) -> None:
        df = _raw(1, 3, extra_rows=2)
        out = expand_block_fields(df, 3)
        self.assertEqual(out[COL_SAMPLE].iloc[:3].tolist(), [7.0] * 3)
        self.assertTrue(out[COL_SAMPLE].iloc[3:].isna().all())
        self.assertTrue(out[COL_AXIS].iloc[3:].isna().all())

    def test_invalid_group_size(self) -> None:
        with self.assertRaises(ValueError):
            expand_block_fields(_raw(1, 3), 0)

    def test_input_frame_not_mutated(self) -> None:
        df = _raw(1, 3)
        before = df.copy()
        expand_block_fields(df, 3)
        pd.testing.assert_frame_equal(df, before)


class DropEmptyRowsTests(unittest.TestCase):
    def test_fully_empty_rows_dropped_and_renumbered(self) -> None:
        df = pd.DataFrame({"a": [1.0, np.nan, 3.0], "b": [np.nan, np.nan, 4.0], "c": [9, 9, 9]})
        out = drop_empty_rows(df, ["a", "b"])
        self.assertEqual(list(out.columns), ["a", "b"])
        self.assertEqual(list(out.index), [0, 1])
        self.assertEqual(out["a"].tolist(), [1.0, 3.0])


class SegmentGroupsTests(unittest.TestCase):
    def test_positional_blocks(self) -> None:
        expanded = expand_block_fields(_raw(2, 3), 3)
        groups = segment_groups(expanded, 3)
        self.assertEqual([g.start for g in groups], [0, 3])
        self.assertTrue(all(g.complete for g in groups))
        self.assertEqual(groups[1].partition_key, (7.0, 2.0))
        self.assertEqual(groups[1].stress_value(), 20.0)
        self.assertEqual(list(groups[1].positions), [3, 4, 5])
        np.testing.assert_array_equal(groups[1].column(COL_VDIFF_MEAN, 1, 3), [4.0, 5.0])

    def test_short_trailing_block_warns_and_has_no_partition(self) -> None:
        expanded = expand_block_fields(_raw(1, 3, extra_rows=2), 3)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            groups = segment_groups(expanded, 3, sheet_name="S1")
        self.assertEqual(len(groups), 2)
        self.assertFalse(groups[1].complete)
        self.assertIsNone(groups[1].partition_key)
        self.assertEqual(len(caught), 1)
        self.assertIn("Short block", str(caught[0].message))
        self.assertIn("S1", str(caught[0].message))

    def test_empty_table_has_no_groups(self) -> None:
        expanded = expand_block_fields(_raw(0, 3), 3)
        self.assertEqual(segment_groups(expanded, 3), [])


if __name__ == "__main__":
    unittest.main()
