"""Descriptive analysis module for survey data."""

from .univariate_stats import UnivariateStats, percentage_of

__all__ = [
    'UnivariateStats',
    'percentage_of'
]
