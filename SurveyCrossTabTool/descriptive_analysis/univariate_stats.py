"""
Univariate statistics for cross-tabulated survey questions.

This module provides the per-column descriptive statistics (mean, median,
population standard deviation) shown under numeric and scale tables, the
scale range detection that decides whether box scores apply, and the
top/bottom box and rank box percentages.
"""

import math
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..data_processing.models import ScaleCalculations, RankingCalculations, StatisticalMeasures


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def percentage_of(count: float, base: float) -> int:
    """Whole-number percentage of ``count`` in ``base``; 0 when the base is 0."""
    if base <= 0:
        return 0
    return round_half_up(count / base * 100)


class UnivariateStats:
    """
    Descriptive statistics computed per banner column.

    All methods take the column's values already parsed as numbers
    (NaN for non-numeric cells) and a boolean respondents x banner columns
    mask matrix, Total column first.
    """

    # Scale criteria: limited span, mostly integers, conventional bounds
    MAX_SCALE_SPAN = 15
    MIN_INTEGER_RATIO = 0.8
    MAX_SCALE_VALUE = 20

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def describe(values: Sequence[float]) -> Tuple[float, float, float]:
        """Mean, median and population standard deviation (zeros when empty)."""
        array = np.asarray(values, dtype=float)
        array = array[~np.isnan(array)]
        if array.size == 0:
            return 0.0, 0.0, 0.0
        return float(np.mean(array)), float(np.median(array)), float(np.std(array, ddof=0))

    def statistical_measures(self,
                             numeric: pd.Series,
                             masks: np.ndarray,
                             headers: Sequence[str]) -> StatisticalMeasures:
        """
        Compute mean, median and standard deviation for every banner column.

        Parameters
        ----------
        numeric : pd.Series
            Column values parsed as numbers, NaN where not numeric
        masks : np.ndarray
            Boolean banner masks, one column per header
        headers : sequence of str
            Banner headers, Total first

        Returns
        -------
        StatisticalMeasures
        """
        means, medians, deviations = [], [], []
        values = numeric.to_numpy(dtype=float)
        for col_index in range(masks.shape[1]):
            mean, median, std = self.describe(values[masks[:, col_index]])
            means.append(mean)
            medians.append(median)
            deviations.append(std)

        return StatisticalMeasures(
            mean=means,
            median=medians,
            standard_deviation=deviations,
            headers=list(headers)
        )

    def detect_scale_range(self, numeric: pd.Series) -> Optional[Tuple[float, float]]:
        """
        Detect the (min, max) of a rating scale.

        Returns None unless the values span 1 to 15 points, at least 80%
        are integers, the minimum is at least 0 and the maximum at most 20.
        """
        values = numeric.dropna().to_numpy(dtype=float)
        if values.size == 0:
            return None

        low, high = float(values.min()), float(values.max())
        span = high - low
        integer_ratio = float(np.mean(np.mod(values, 1) == 0))

        if (1 <= span <= self.MAX_SCALE_SPAN and integer_ratio >= self.MIN_INTEGER_RATIO
                and low >= 0 and high <= self.MAX_SCALE_VALUE):
            return low, high
        return None

    @staticmethod
    def box_counts(numeric: pd.Series, masks: np.ndarray, targets: Sequence[float]) -> np.ndarray:
        """Count rows whose value is in ``targets``, per banner column."""
        hits = numeric.isin(list(targets)).to_numpy(dtype=int)
        return hits @ masks.astype(int)

    def _box_percentages(self, numeric: pd.Series, masks: np.ndarray,
                         base_values: Sequence[int], targets: Sequence[float]) -> List[int]:
        counts = self.box_counts(numeric, masks, targets)
        return [percentage_of(count, base) for count, base in zip(counts, base_values)]

    def scale_boxes(self,
                    numeric: pd.Series,
                    masks: np.ndarray,
                    base_values: Sequence[int],
                    scale_range: Tuple[float, float]) -> ScaleCalculations:
        """
        Top/bottom box percentages for a rating scale.

        Three-box scores are only computed for scales of six or more points.
        """
        low, high = scale_range
        scale_length = high - low + 1

        calculations = ScaleCalculations(
            top_box=self._box_percentages(numeric, masks, base_values, [high]),
            bottom_box=self._box_percentages(numeric, masks, base_values, [low]),
            top2_box=self._box_percentages(numeric, masks, base_values, [high - 1, high]),
            bottom2_box=self._box_percentages(numeric, masks, base_values, [low, low + 1]),
            scale_min=low,
            scale_max=high
        )
        if scale_length >= 6:
            calculations.top3_box = self._box_percentages(
                numeric, masks, base_values, [high - 2, high - 1, high])
            calculations.bottom3_box = self._box_percentages(
                numeric, masks, base_values, [low, low + 1, low + 2])
        return calculations

    def ranking_boxes(self,
                      numeric: pd.Series,
                      masks: np.ndarray,
                      base_values: Sequence[int]) -> RankingCalculations:
        """Rank 1, 2, 3, 1+2 and 1+2+3 percentages for a single ranking column."""
        return RankingCalculations(
            rank1_only=[self._box_percentages(numeric, masks, base_values, [1])],
            rank2_only=[self._box_percentages(numeric, masks, base_values, [2])],
            rank3_only=[self._box_percentages(numeric, masks, base_values, [3])],
            rank1_plus2=[self._box_percentages(numeric, masks, base_values, [1, 2])],
            rank1_plus2_plus3=[self._box_percentages(numeric, masks, base_values, [1, 2, 3])],
            rank_options=[],
            max_ranks=3
        )
