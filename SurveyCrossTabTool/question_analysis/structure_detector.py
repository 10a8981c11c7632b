"""
Detection of composite question structures from column headers.

Survey exports spread one question over several columns: a multi-select
question becomes one indicator column per option and a ranking question
becomes one column per option and rank level. This module groups such
columns back into batteries by a question root derived from the headers.
"""

import re
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..data_processing.models import DetectedMultiSelectGroup, QuestionType, RankQuestionStructure
from ..text_analysis.text_processing import (
    extract_option_from_header, extract_question_from_header, parse_number, to_text
)

# Question root patterns, tried in order: dash, colon, pipe, trailing
# parenthesis, semicolon, comma
ROOT_PATTERNS = [
    re.compile(r'^(.+?)\s+[-–—]\s+.+$'),
    re.compile(r'^(.+?):\s+.+$'),
    re.compile(r'^(.+?)\s*\|\s*.+$'),
    re.compile(r'^(.+?)\s*\(.+\)$'),
    re.compile(r'^(.+?);\s+.+$'),
    re.compile(r'^(.+?),\s+.+$'),
]

STRUCTURE_DELIMITERS = ['-', '–', '—', ':', '|', ';', '(', ')']

OPTION_SPLIT_DELIMITERS = [' - ', ' – ', ' — ', ': ', ' | ', ' ; ']

TYPICAL_OPTION_PATTERNS = [
    re.compile(r'^(option|choice|item)\s*\d+', re.IGNORECASE),
    re.compile(r'^[a-z]\)\s*', re.IGNORECASE),
    re.compile(r'^\d+\.\s*'),
    re.compile(r'^(yes|no|true|false|agree|disagree)', re.IGNORECASE),
]

MULTI_SELECT_KEYWORDS = [
    'select all', 'choose all', 'check all', 'mark all',
    'which of the following', 'what factors', 'what reasons',
    'what types', 'what kinds', 'what sources', 'what methods',
    'platforms', 'channels', 'options', 'features'
]

RESPONSE_FLAG_VALUES = {'1', '0', 'yes', 'no', 'true', 'false', 'x', 'checked', 'selected'}

RANK_TOKEN_PATTERNS = [
    re.compile(r'_rank_?(\d+)', re.IGNORECASE),
    re.compile(r'\s+rank\s*(\d+)', re.IGNORECASE),
    re.compile(r'_r(\d+)(?=_|$)', re.IGNORECASE),
]

MIN_ROOT_LENGTH = 10
RESPONSE_SAMPLE_ROWS = 50


def extract_question_root(header: str) -> str:
    """Question root of a header: text before the first delimiter, else its first five words."""
    for pattern in ROOT_PATTERNS:
        match = pattern.match(header)
        if match:
            return match.group(1).strip()
    return ' '.join(header.split()[:5])


def has_consistent_structure(columns: Sequence[str]) -> bool:
    """Check if one structural delimiter character occurs in every column."""
    if len(columns) < 2:
        return False
    return any(all(delimiter in column for column in columns) for delimiter in STRUCTURE_DELIMITERS)


def has_typical_options(columns: Sequence[str]) -> bool:
    """Check if at least two option labels look like enumerated choices."""
    options = []
    for column in columns:
        option = column
        for delimiter in OPTION_SPLIT_DELIMITERS:
            if delimiter in column:
                option = column.split(delimiter)[-1].strip()
                break
        options.append(option)

    matching = [option for option in options
                if any(pattern.match(option) for pattern in TYPICAL_OPTION_PATTERNS)]
    return len(matching) >= 2


def contains_multi_select_keywords(question: str) -> bool:
    lower_text = question.lower()
    return any(keyword in lower_text for keyword in MULTI_SELECT_KEYWORDS)


def split_rank_header(header: str) -> Optional[Tuple[str, str, int]]:
    """
    Split a ranking header into ``(question root, option, rank number)``.

    Returns None when the header carries no rank token such as ``_Rank1``,
    ``_Rank_1``, ``Rank 1`` or ``_R1``.
    """
    for pattern in RANK_TOKEN_PATTERNS:
        match = pattern.search(header)
        if not match:
            continue

        rank = int(match.group(1))
        prefix = header[:match.start()].strip()
        suffix = header[match.end():]
        option = suffix.strip('_ ').replace('_', ' ').strip()

        if option:
            return prefix, option, rank

        question = extract_question_from_header(prefix)
        if question != prefix:
            return question, extract_option_from_header(prefix), rank
        if '_' in prefix:
            root, _, option = prefix.rpartition('_')
            return root.strip(), option.replace('_', ' ').strip(), rank
        return prefix, prefix, rank
    return None


class StructureDetector:
    """
    Multi-select and ranking battery detection.

    Features:
    - Question root grouping of headers
    - Structural, keyword and response-pattern confidence scoring
    - Ranking batteries grouped by rank level with option validation
    """

    def __init__(self, sample_rows: int = RESPONSE_SAMPLE_ROWS):
        """
        Initialize StructureDetector.

        Parameters
        ----------
        sample_rows : int, default 50
            Rows inspected when scoring response patterns
        """
        self.sample_rows = sample_rows
        self.logger = logging.getLogger(__name__)

    def detect_multi_select_batteries(self,
                                      headers: Sequence[str],
                                      sample_rows: Optional[Sequence[Mapping[str, Any]]] = None
                                      ) -> List[DetectedMultiSelectGroup]:
        """
        Detect candidate multi-select batteries.

        Parameters
        ----------
        headers : sequence of str
            Column headers in dataset order
        sample_rows : sequence of mappings, optional
            Header-keyed rows used to score response patterns

        Returns
        -------
        list of DetectedMultiSelectGroup
            Candidates sorted by confidence, highest first
        """
        groups: Dict[str, List[str]] = OrderedDict()
        for header in headers:
            root = extract_question_root(header)
            if len(root) > MIN_ROOT_LENGTH:
                groups.setdefault(root, []).append(header)

        detected = []
        for root, columns in groups.items():
            if len(columns) < 2:
                continue
            confidence, details = self.score_multi_select(root, columns, sample_rows)
            detected.append(DetectedMultiSelectGroup(
                question_root=root,
                columns=columns,
                confidence=confidence,
                details=details
            ))

        detected.sort(key=lambda group: group.confidence, reverse=True)
        self.logger.info(f"Detected {len(detected)} candidate multi-select batteries")
        return detected

    def score_multi_select(self,
                           root: str,
                           columns: List[str],
                           sample_rows: Optional[Sequence[Mapping[str, Any]]] = None
                           ) -> Tuple[float, Dict[str, Any]]:
        """Confidence that a header group is a multi-select battery, with details."""
        structure_score = 0.3
        response_score = 0.0
        keyword_score = 0.0
        reasons = []

        if has_consistent_structure(columns):
            structure_score += 0.2
            reasons.append('consistent column structure')

        if has_typical_options(columns):
            structure_score += 0.15
            reasons.append('typical multi-select option patterns')

        if contains_multi_select_keywords(root):
            keyword_score = 0.25
            reasons.append('multi-select keywords in question')

        if sample_rows:
            response_score, patterns = self.analyze_response_patterns(columns, sample_rows)
            if patterns['flag_pattern']:
                reasons.append('flag-based responses (1/0, Yes/No)')
            if patterns['matches_headers']:
                reasons.append('responses match header options')
            if patterns['rating_scale']:
                response_score = max(0.0, response_score - 0.4)
                reasons.append('appears to be rating scale (reduced confidence)')

        confidence = min(max(structure_score + response_score + keyword_score, 0.0), 1.0)
        details = {
            'structure_score': structure_score,
            'response_score': response_score,
            'keyword_score': keyword_score,
            'reasoning_text': ', '.join(reasons)
        }
        return confidence, details

    def analyze_response_patterns(self,
                                  columns: List[str],
                                  sample_rows: Sequence[Mapping[str, Any]]
                                  ) -> Tuple[float, Dict[str, bool]]:
        """Score sampled cells for flag values, option echoes and rating values."""
        flag_count = header_match_count = rating_count = total_cells = 0
        rows = list(sample_rows)[:self.sample_rows]

        for column in columns:
            option = extract_option_from_header(column).lower()
            for row in rows:
                if column not in row:
                    continue
                cell = to_text(row[column]).lower()
                if cell in ('', 'null', 'undefined'):
                    continue
                total_cells += 1

                if cell in RESPONSE_FLAG_VALUES:
                    flag_count += 1
                if option and option in cell:
                    header_match_count += 1
                number = parse_number(cell)
                if number is not None and 1 <= number <= 10:
                    rating_count += 1

        if total_cells == 0:
            return 0.0, {'flag_pattern': False, 'matches_headers': False, 'rating_scale': False}

        flag_ratio = flag_count / total_cells
        match_ratio = header_match_count / total_cells
        rating_ratio = rating_count / total_cells

        score = 0.0
        if flag_ratio > 0.6:
            score += 0.3
        elif flag_ratio > 0.3:
            score += 0.15

        if match_ratio > 0.4:
            score += 0.2
        elif match_ratio > 0.2:
            score += 0.1

        return score, {
            'flag_pattern': flag_ratio > 0.5,
            'matches_headers': match_ratio > 0.3,
            'rating_scale': rating_ratio > 0.6
        }

    def detect_ranking_batteries(self,
                                 headers: Sequence[str],
                                 question_types: Mapping[str, QuestionType]
                                 ) -> List[RankQuestionStructure]:
        """
        Detect ranking batteries among columns typed as ranking.

        Columns are grouped by question root and then by rank number. A
        rank 0 group is treated as the unranked base and skipped. Options
        come from the lowest rank group and every rank group must hold
        exactly one column per option.

        Parameters
        ----------
        headers : sequence of str
            Column headers in dataset order
        question_types : mapping
            Column name to QuestionType (or its string value)

        Returns
        -------
        list of RankQuestionStructure
        """
        roots: Dict[str, Dict[int, List[Tuple[str, str]]]] = OrderedDict()

        for header in headers:
            q_type = question_types.get(header)
            if q_type != QuestionType.RANKING and q_type != QuestionType.RANKING.value:
                continue
            parts = split_rank_header(header)
            if parts is None:
                self.logger.debug(f"Ranking column '{header}' has no rank token")
                continue
            root, option, rank = parts
            roots.setdefault(root, {}).setdefault(rank, []).append((header, option))

        structures = []
        for root, rank_groups in roots.items():
            structure = self._build_rank_structure(root, rank_groups)
            if structure is not None:
                structures.append(structure)

        self.logger.info(f"Detected {len(structures)} ranking batteries")
        return structures

    def _build_rank_structure(self,
                              root: str,
                              rank_groups: Dict[int, List[Tuple[str, str]]]
                              ) -> Optional[RankQuestionStructure]:
        if len(rank_groups) < 2:
            return None

        ranked = {rank: group for rank, group in sorted(rank_groups.items()) if rank > 0}
        if not ranked:
            return None

        lowest = ranked[min(ranked)]
        options = list(OrderedDict.fromkeys(option for _, option in lowest))
        if not options:
            return None

        if any(len(group) != len(options) for group in rank_groups.values()):
            self.logger.debug(f"Ranking battery '{root}' rejected: uneven rank groups")
            return None

        # Columns of every rank level follow the option order of the lowest rank
        column_mapping = {}
        for rank, group in ranked.items():
            by_option = {option: header for header, option in group}
            if any(option not in by_option for option in options):
                self.logger.debug(f"Ranking battery '{root}' rejected: rank {rank} options differ")
                return None
            if rank <= 3:
                column_mapping[rank] = [by_option[option] for option in options]
        return RankQuestionStructure(
            question_name=root,
            options=options,
            max_ranks=min(3, len(ranked)),
            column_mapping=column_mapping
        )


def detect_multi_select_batteries(headers: Sequence[str],
                                  sample_rows: Optional[Sequence[Mapping[str, Any]]] = None
                                  ) -> List[DetectedMultiSelectGroup]:
    """Detect multi-select batteries with a default StructureDetector."""
    return StructureDetector().detect_multi_select_batteries(headers, sample_rows)


def detect_ranking_batteries(headers: Sequence[str],
                             question_types: Mapping[str, QuestionType]) -> List[RankQuestionStructure]:
    """Detect ranking batteries with a default StructureDetector."""
    return StructureDetector().detect_ranking_batteries(headers, question_types)
