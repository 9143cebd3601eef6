from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path

import numpy as np


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from magsens_pipeline.fitting import (  # noqa: E402
    DegenerateFitError,
    combine_slopes,
    fit_linear,
    window_slope,
)
from magsens_pipeline.protocols import COL_SENS_DU, SensitivityRule  # noqa: E402


class FitLinearTests(unittest.TestCase):
    def test_noise_free_fixture_gives_exact_slope(self) -> None:
        self.assertEqual(fit_linear(np.array([0.0, 5.0, 10.0]), np.array([0.0, 10.0, 20.0])), 2.0)

    def test_descending_sweep_gives_same_slope(self) -> None:
        self.assertEqual(fit_linear(np.array([47.0, 0.0, -47.0]), np.array([95.0, 1.0, -93.0])), 2.0)

    def test_intercept_does_not_change_slope(self) -> None:
        x = np.array([0.0, 1.0, 2.0])
        self.assertEqual(fit_linear(x, 2.0 * x + 7.0), fit_linear(x, 2.0 * x))

    def test_missing_value_raises(self) -> None:
        with self.assertRaises(DegenerateFitError):
            fit_linear(np.array([0.0, 1.0, 2.0]), np.array([0.0, np.nan, 4.0]))

    def test_constant_x_raises(self) -> None:
        with self.assertRaises(DegenerateFitError):
            fit_linear(np.array([5.0, 5.0, 5.0]), np.array([0.0, 2.0, 4.0]))

    def test_length_mismatch_is_a_plain_value_error(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            fit_linear(np.array([0.0, 1.0]), np.array([0.0, 1.0, 2.0]))
        self.assertNotIsInstance(ctx.exception, DegenerateFitError)


class WindowSlopeTests(unittest.TestCase):
    def test_undefined_slope_is_nan(self) -> None:
        self.assertTrue(math.isnan(window_slope([0.0, 1.0, 2.0], [0.0, np.nan, 4.0])))
        self.assertTrue(math.isnan(window_slope([5.0, 5.0, 5.0], [0.0, 2.0, 4.0])))
        self.assertTrue(math.isnan(window_slope([1.0], [1.0])))

    def test_constant_y_only_degenerate_when_required(self) -> None:
        x = [0.0, 1.0, 2.0]
        y = [3.0, 3.0, 3.0]
        self.assertEqual(window_slope(x, y), 0.0)
        self.assertTrue(math.isnan(window_slope(x, y, require_y_variation=True)))


class CombineSlopesTests(unittest.TestCase):
    def test_average_of_windows(self) -> None:
        rule = SensitivityRule(COL_SENS_DU, ("down", "up"))
        self.assertEqual(combine_slopes({"down": 2.0, "up": 3.0}, rule), 2.5)

    def test_any_undefined_window_makes_result_undefined(self) -> None:
        rule = SensitivityRule(COL_SENS_DU, ("down", "up"))
        self.assertTrue(math.isnan(combine_slopes({"down": 2.0, "up": float("nan")}, rule)))
        self.assertTrue(math.isnan(combine_slopes({"down": 2.0}, rule)))


if __name__ == "__main__":
    unittest.main()
