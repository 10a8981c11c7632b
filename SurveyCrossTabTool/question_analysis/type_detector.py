"""
Question type detection for survey columns.

Each column is classified from its header text and a sample of its values
by a priority-ordered cascade: date, binary, scale, numeric, open-ended,
ranking, single-column multiple choice and finally single choice.
"""

import re
import logging
import warnings
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from ..data_processing.dataset import TabularDataset
from ..data_processing.models import QuestionType, TypeDetectionResult
from ..text_analysis.text_processing import parse_number, to_text

DATE_PATTERNS = [
    re.compile(r'^\d{4}-\d{2}-\d{2}$'),
    re.compile(r'^\d{2}/\d{2}/\d{4}$'),
    re.compile(r'^\d{2}-\d{2}-\d{4}$'),
    re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}$'),
    re.compile(r'^\d{4}/\d{2}/\d{2}$'),
    re.compile(r'^\d{2}:\d{2}(:\d{2})?$'),
    re.compile(r'^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}(:\d{2})?$'),
    re.compile(r'^\d{2}/\d{2}/\d{4}\s+\d{2}:\d{2}(:\d{2})?$'),
]

DATE_KEYWORDS = ['date', 'time', 'when', 'timestamp', 'created', 'updated', 'birth',
                 'start', 'end', 'schedule']

BINARY_PAIRS = [
    ('yes', 'no'), ('true', 'false'), ('male', 'female'), ('agree', 'disagree'),
    ('pass', 'fail'), ('on', 'off'), ('enabled', 'disabled'), ('active', 'inactive')
]

SCALE_KEYWORDS = [
    'rate', 'rating', 'scale', 'score', 'satisfaction', 'likely', 'likelihood',
    'agree', 'important', 'quality', 'recommend', 'how much', 'extent',
    'strongly', 'somewhat', 'very', 'extremely', 'not at all'
]

NUMERIC_KEYWORDS = ['age', 'income', 'salary', 'price', 'cost', 'amount', 'number',
                    'count', 'quantity']

OPEN_ENDED_KEYWORDS = [
    'comment', 'feedback', 'opinion', 'explain', 'describe', 'why', 'how',
    'other', 'specify', 'elaborate', 'detail', 'reason', 'suggestion',
    'improvement', 'additional', 'anything else', 'open', 'text'
]

RANKING_KEYWORDS = ['rank', 'ranking', 'order', 'priority', 'preference', 'choice',
                    '1st', '2nd', '3rd', '_r1_', '_r2_', '_r3_', '_rank1', '_rank2', '_rank3']

FLAG_VALUES = {'1', '0', 'yes', 'no', 'true', 'false', 'selected', 'x'}

# Cell markers ignored during detection
MISSING_MARKERS = {'', 'null', 'undefined', 'N/A', 'n/a'}


def _has_keyword(lower_header: str, keywords: List[str]) -> bool:
    return any(keyword in lower_header for keyword in keywords)


def is_date_like(value: str) -> bool:
    """Check if a value matches a date/time pattern or parses as a calendar date."""
    if any(pattern.match(value) for pattern in DATE_PATTERNS):
        return True

    # Plain numbers would parse as epoch offsets or bare years
    if parse_number(value) is not None:
        return False

    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        try:
            parsed = pd.to_datetime(value, errors='coerce')
        except (ValueError, OverflowError, TypeError):
            return False

    if pd.isna(parsed):
        return False
    return 1900 <= parsed.year <= 2100


class TypeDetector:
    """
    Heuristic question type detection.

    Features:
    - Date/time detection from value patterns and header keywords
    - Binary vocabulary matching
    - Scale vs. numeric separation by range and keywords
    - Open-ended detection from uniqueness and response length
    - Ranking and single-column multiple-choice indicators
    - Two-phase dataset typing that skips multi-select battery columns
    """

    def __init__(self, sample_size: int = 100):
        """
        Initialize TypeDetector.

        Parameters
        ----------
        sample_size : int, default 100
            Number of clean values inspected per column
        """
        self.sample_size = sample_size
        self.logger = logging.getLogger(__name__)

    def detect_column_type(self,
                           header: str,
                           values: Sequence[Any],
                           sample_size: Optional[int] = None) -> TypeDetectionResult:
        """
        Detect the question type of one column.

        Parameters
        ----------
        header : str
            Column header
        values : sequence
            Column values in row order
        sample_size : int, optional
            Overrides the detector's sample size

        Returns
        -------
        TypeDetectionResult
            Detected type, confidence in [0, 1] and a short reasoning
        """
        limit = sample_size or self.sample_size
        clean_values = [v for v in (to_text(value) for value in values) if v not in MISSING_MARKERS][:limit]

        if not clean_values:
            return TypeDetectionResult(QuestionType.SINGLE_CHOICE, 0.1, 'No valid data found')

        unique_values = list(dict.fromkeys(clean_values))
        unique_count = len(unique_values)
        total_count = len(clean_values)
        unique_ratio = unique_count / total_count
        lower_header = header.lower()

        # 1. Date/time
        has_date_keywords = _has_keyword(lower_header, DATE_KEYWORDS)
        date_matches = sum(1 for v in clean_values if is_date_like(v))

        if date_matches >= total_count * 0.6 and (has_date_keywords or unique_ratio > 0.7):
            confidence = 0.95 if has_date_keywords else 0.8
            keyword_note = ' with date keywords' if has_date_keywords else ''
            return TypeDetectionResult(
                QuestionType.DATE, confidence,
                f"{date_matches}/{total_count} values match date/time patterns{keyword_note}"
            )

        # 2. Binary
        if unique_count == 2:
            lower_values = {v.lower() for v in unique_values}
            is_binary = any(set(pair) == lower_values for pair in BINARY_PAIRS)
            if is_binary or 'yes/no' in lower_header or 'true/false' in lower_header:
                return TypeDetectionResult(
                    QuestionType.BINARY, 0.95, 'Two distinct values matching binary patterns'
                )

        numbers = [parse_number(v) for v in clean_values]
        integers = [int(n) for n in numbers if n is not None and n.is_integer()]

        # 3. Scale and 4. numeric
        if len(integers) >= total_count * 0.8:
            low, high = min(integers), max(integers)
            span = high - low
            has_scale_keywords = _has_keyword(lower_header, SCALE_KEYWORDS)
            is_typical_scale = ((low == 1 and high <= 10 and span <= 9) or
                                (low == 0 and high <= 10 and span <= 10))

            if is_typical_scale and (has_scale_keywords or unique_count <= 11):
                confidence = 0.9 if has_scale_keywords else 0.75
                reason = 'scale keywords' if has_scale_keywords else 'limited unique values'
                return TypeDetectionResult(
                    QuestionType.SCALE, confidence, f"Numeric range {low}-{high} with {reason}"
                )

            has_numeric_keywords = _has_keyword(lower_header, NUMERIC_KEYWORDS)
            if span > 20 or has_numeric_keywords or unique_count > 15:
                reason = 'numeric keywords' if has_numeric_keywords else 'wide range'
                return TypeDetectionResult(
                    QuestionType.NUMERIC, 0.8, f"Numeric values with {reason} ({low}-{high})"
                )

        # 5. Open-ended
        avg_length = sum(len(v) for v in clean_values) / total_count
        long_ratio = sum(1 for v in clean_values if len(v) > 20) / total_count
        has_open_keywords = _has_keyword(lower_header, OPEN_ENDED_KEYWORDS)

        if (unique_ratio > 0.7 and (avg_length > 15 or long_ratio >= 0.3 or has_open_keywords)
                and date_matches < total_count * 0.3):
            if has_open_keywords:
                confidence, reason = 0.9, 'open-ended keywords'
            else:
                confidence, reason = (0.85 if avg_length > 30 else 0.75), 'long responses'
            return TypeDetectionResult(
                QuestionType.OPEN_ENDED, confidence,
                f"High uniqueness ({round(unique_ratio * 100)}%) with {reason} "
                f"(avg: {round(avg_length)} chars)"
            )

        # 6. Ranking
        if integers and len(integers) >= total_count * 0.6:
            low, high = min(integers), max(integers)
            has_ranking_keywords = _has_keyword(lower_header, RANKING_KEYWORDS)
            if has_ranking_keywords or (low >= 1 and high <= 10 and unique_count <= 10):
                reason = 'Ranking keywords' if has_ranking_keywords else 'Ranking pattern'
                return TypeDetectionResult(
                    QuestionType.RANKING, 0.85, f"{reason} with numeric range {low}-{high}"
                )

        # 7. Multiple choice indicator column
        flag_count = sum(1 for v in clean_values if v.lower() in FLAG_VALUES)
        if flag_count >= total_count * 0.8 and unique_count <= 4:
            return TypeDetectionResult(
                QuestionType.MULTIPLE_CHOICE, 0.8,
                'Binary indicators suggesting multiple choice option'
            )

        # 8. Single choice
        if unique_count <= min(20, total_count * 0.5):
            confidence = 0.7 if unique_count <= 10 else 0.6
            return TypeDetectionResult(
                QuestionType.SINGLE_CHOICE, confidence,
                f"Limited unique values ({unique_count}) suggesting categorical data"
            )

        return TypeDetectionResult(
            QuestionType.SINGLE_CHOICE, 0.4,
            f"Default classification - {unique_count} unique values from {total_count} responses"
        )

    def auto_detect_question_types(self,
                                   dataset: TabularDataset,
                                   multi_select_groups: Optional[Dict[str, List[str]]] = None
                                   ) -> Dict[str, QuestionType]:
        """
        Detect the type of every column not claimed by a multi-select group.

        Parameters
        ----------
        dataset : TabularDataset
            Survey data
        multi_select_groups : dict, optional
            Group name to member columns; members are skipped

        Returns
        -------
        dict
            Column name to detected QuestionType
        """
        claimed = {column for columns in (multi_select_groups or {}).values() for column in columns}
        question_types = {}

        for header in dataset.headers:
            if header in claimed:
                continue
            result = self.detect_column_type(header, dataset.values(header))
            question_types[header] = result.type
            self.logger.debug(
                f"Column '{header}' detected as {result.type.value} "
                f"({result.confidence:.2f}): {result.reasoning}"
            )

        self.logger.info(
            f"Detected question types for {len(question_types)} columns "
            f"({len(claimed)} multi-select columns skipped)"
        )
        return question_types
