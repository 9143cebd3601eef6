from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pandas as pd


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from magsens_pipeline.mapping import (  # noqa: E402
    DEFAULT_AXIS_MAPPING,
    apply_code_mappings,
    coerce_mapping,
    map_code,
    parse_mapping_text,
    read_code_mapping_tsv,
    rename_output_columns,
)
from magsens_pipeline.protocols import COL_AXIS, COL_STRESS, REQUIRED_COLUMNS  # noqa: E402


class MapCodeTests(unittest.TestCase):
    def test_integer_valued_numbers_are_looked_up(self) -> None:
        m = {1: "XY", 2: "YZ"}
        self.assertEqual(map_code(1, m), "XY")
        self.assertEqual(map_code(2.0, m), "YZ")
        self.assertEqual(map_code(np.int64(1), m), "XY")
        self.assertEqual(map_code(np.float64(2.0), m), "YZ")

    def test_unmapped_and_non_integer_values_pass_through(self) -> None:
        m = {1: "XY"}
        self.assertEqual(map_code(3, m), 3)
        self.assertEqual(map_code(1.5, m), 1.5)
        self.assertEqual(map_code("1", m), "1")
        self.assertIs(map_code(True, m), True)
        self.assertIsNone(map_code(None, m))
        self.assertTrue(np.isnan(map_code(float("nan"), m)))

    def test_mapping_is_idempotent(self) -> None:
        df = pd.DataFrame({"Sample No": [1.0, 2.0, 9.0], "Angle": [0, 0, 0], "Plane": [1.0, 3.0, np.nan]})
        samples = {1: "die 3", 2: "die 7"}
        once = apply_code_mappings(df, samples, DEFAULT_AXIS_MAPPING)
        twice = apply_code_mappings(once, samples, DEFAULT_AXIS_MAPPING)
        pd.testing.assert_frame_equal(once, twice)
        self.assertEqual(once["Sample No"].tolist(), ["die 3", "die 7", 9.0])
        self.assertEqual(once["Plane"].tolist()[:2], ["XY", "XZ"])


class ApplyCodeMappingsTests(unittest.TestCase):
    def test_lookup_is_positional(self) -> None:
        df = pd.DataFrame({"renamed sample": [1], "Angle": [1], "renamed axis": [1]})
        out = apply_code_mappings(df, {1: "S"}, {1: "XY"})
        self.assertEqual(out.iloc[0].tolist(), ["S", 1, "XY"])

    def test_empty_mappings_leave_frame_unchanged(self) -> None:
        df = pd.DataFrame({"a": [1], "b": [2], "c": [3]})
        pd.testing.assert_frame_equal(apply_code_mappings(df, {}, None), df)

    def test_input_not_mutated(self) -> None:
        df = pd.DataFrame({"a": [1], "b": [2], "c": [3]})
        apply_code_mappings(df, {1: "x"}, {3: "y"})
        self.assertEqual(df.iloc[0].tolist(), [1, 2, 3])


class ParseMappingTests(unittest.TestCase):
    def test_parse_mapping_text(self) -> None:
        text = "1: Wafer A: die 3\n\n  2 :B\nnot a mapping\nx: y\n12abc: z\n"
        self.assertEqual(parse_mapping_text(text), {1: "Wafer A: die 3", 2: "B"})

    def test_coerce_mapping_string_keys(self) -> None:
        self.assertEqual(coerce_mapping({"1": "XY", 2: " YZ "}), {1: "XY", 2: "YZ"})
        self.assertEqual(coerce_mapping(None), {})
        with self.assertRaises(ValueError):
            coerce_mapping({"one": "XY"})

    def test_read_code_mapping_tsv(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "sample_map.tsv"
            path.write_text("code\tlabel\n1\tdie 3\n\t\n2\tdie 7\n", encoding="utf-8")
            self.assertEqual(read_code_mapping_tsv(path), {1: "die 3", 2: "die 7"})

    def test_read_code_mapping_tsv_requires_columns(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "bad.tsv"
            path.write_text("id\tname\n1\tx\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                read_code_mapping_tsv(path)


class RenameTests(unittest.TestCase):
    def test_rename_output_columns(self) -> None:
        df = pd.DataFrame(columns=REQUIRED_COLUMNS)
        out = rename_output_columns(df)
        self.assertEqual(list(out.columns)[2], "Plane")
        self.assertIn("Magnetic Field Stress[mT]", out.columns)
        self.assertNotIn(COL_AXIS, out.columns)
        self.assertNotIn(COL_STRESS, out.columns)


if __name__ == "__main__":
    unittest.main()
