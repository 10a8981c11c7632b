"""
Tests for the column-versus-total significance tests.
"""

import unittest

from scipy import stats

from SurveyCrossTabTool.categorical_analysis.significance_tests import (
    HIGHER_FLAG, LOWER_FLAG, SignificanceTester, normal_cdf,
    perform_significance_tests, run_significance, z_test_for_proportions
)
from SurveyCrossTabTool.data_processing.models import ComparisonType


class TestSignificanceTester(unittest.TestCase):
    """Test cases for SignificanceTester."""

    def setUp(self):
        self.tester = SignificanceTester()
        # Gender by region: Female row, Male row; Total, North, South
        self.absolute = [[40, 10, 30], [60, 30, 30]]
        self.base_values = [100, 40, 60]

    def test_normal_cdf_approximation(self):
        for x in (-2.5, -1.0, 0.0, 0.5, 1.96, 3.0):
            self.assertAlmostEqual(normal_cdf(x), stats.norm.cdf(x), places=6)

    def test_identical_proportions(self):
        result = z_test_for_proportions(30, 100, 30, 100)
        self.assertFalse(result.is_significant)
        self.assertAlmostEqual(result.z_score, 0.0)
        self.assertAlmostEqual(result.p_value, 1.0, places=5)
        self.assertEqual(result.comparison_type, ComparisonType.NONE)

    def test_zero_bases(self):
        for args in ((0, 0, 5, 10), (5, 10, 0, 0)):
            result = self.tester.z_test_for_proportions(*args)
            self.assertFalse(result.is_significant)
            self.assertEqual(result.p_value, 1.0)
            self.assertEqual(result.z_score, 0.0)

    def test_zero_standard_error(self):
        result = self.tester.z_test_for_proportions(10, 10, 20, 20)
        self.assertFalse(result.is_significant)
        self.assertEqual(result.p_value, 1.0)

    def test_direction(self):
        higher = self.tester.z_test_for_proportions(80, 100, 50, 100)
        self.assertTrue(higher.is_significant)
        self.assertEqual(higher.comparison_type, ComparisonType.HIGHER)
        self.assertGreater(higher.z_score, 0)

        lower = self.tester.z_test_for_proportions(50, 100, 80, 100)
        self.assertEqual(lower.comparison_type, ComparisonType.LOWER)
        self.assertAlmostEqual(lower.z_score, -higher.z_score)

    def test_gender_by_region_z_scores(self):
        north_male = self.tester.z_test_for_proportions(30, 40, 60, 100)
        self.assertAlmostEqual(north_male.z_score, 1.6733, places=3)
        self.assertAlmostEqual(north_male.p_value, 0.0943, places=3)

        south_male = self.tester.z_test_for_proportions(30, 60, 60, 100)
        self.assertAlmostEqual(south_male.z_score, -1.2344, places=3)

    def test_flags_at_default_alpha(self):
        flags = perform_significance_tests(self.absolute, self.base_values)
        self.assertEqual(flags, [['', '', ''], ['', '', '']])

    def test_flags_at_relaxed_alpha(self):
        flags = SignificanceTester(alpha=0.1).perform_significance_tests(self.absolute, self.base_values)
        self.assertEqual(flags, [['', LOWER_FLAG, ''], ['', HIGHER_FLAG, '']])

        same = run_significance(self.absolute, self.base_values, alpha=0.1)
        self.assertEqual(same, flags)

    def test_flag_matrix_shape(self):
        absolute = [[5, 0, 5, 0], [0, 0, 0, 0], [5, 0, 5, 0]]
        flags = self.tester.perform_significance_tests(absolute, [5, 0, 5, 0])
        self.assertEqual(len(flags), 3)
        for row in flags:
            self.assertEqual(len(row), 4)
            self.assertEqual(row[0], '')

    def test_exact_cdf_matches_approximation(self):
        exact = SignificanceTester(use_exact_cdf=True).z_test_for_proportions(30, 40, 60, 100)
        approx = self.tester.z_test_for_proportions(30, 40, 60, 100)
        self.assertAlmostEqual(exact.p_value, approx.p_value, places=5)
        self.assertEqual(exact.is_significant, approx.is_significant)


if __name__ == '__main__':
    unittest.main()
