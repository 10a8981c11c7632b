"""Categorical analysis module for cross-tabulation and significance testing."""

from .significance_tests import SignificanceTester, run_significance
from .cross_tabulation import CrossTabEngine, generate_cross_tabs

__all__ = [
    'SignificanceTester',
    'run_significance',
    'CrossTabEngine',
    'generate_cross_tabs'
]
