"""
Text normalization utilities shared by detection, filtering and coding.

This module provides tokenization and stop-word filtering for free-text
responses, plus the header-label helpers used to split survey column
headers such as ``"Q6. Which brands? - Brand A"`` into a question part and
an option part.
"""

import re
import math
from typing import List, Optional, Any

import pandas as pd


BLANK_MARKERS = frozenset({'', 'null', 'undefined'})

STOP_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'is', 'are', 'was', 'were', 'be', 'been', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'can', 'this', 'that', 'these', 'those'
})

# Delimiters separating a question from its option, most specific first
OPTION_DELIMITERS = [' - ', ' – ', ' — ', ': ', ' | ', ' ; ', ') ', '} ']
QUESTION_DELIMITERS = [' - ', ' – ', ' — ', ': ', ' | ', ' ; ']

_PUNCTUATION = re.compile(r'[^\w\s]')
_SHARED_PREFIX_TAIL = re.compile(r'[\s\-–—:|;]+$')
_SHARED_PREFIX_HEAD = re.compile(r'^[\s\-–—:|;]+')


def to_text(value: Any) -> str:
    """Render a cell value as trimmed text, mapping missing values to ''."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        if math.isnan(value):
            return ''
        if value.is_integer():
            return str(int(value))
    if value is pd.NaT:
        return ''
    return str(value).strip()


def is_blank(value: Any) -> bool:
    """Check if a cell is empty, 'null' or 'undefined'."""
    return to_text(value) in BLANK_MARKERS


def parse_number(value: Any) -> Optional[float]:
    """Parse a cell as a finite number, returning None when it is not one."""
    text = to_text(value)
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def extract_option_from_header(header: str) -> str:
    """
    Extract the option part of a header.

    The last segment after any known delimiter is kept, then text after a
    closing parenthesis and leading enumeration numbers are stripped.
    ``"Q6. Which brands? - 1. Brand A"`` becomes ``"Brand A"``.
    """
    clean_header = header.strip()

    for delimiter in OPTION_DELIMITERS:
        if delimiter in clean_header:
            clean_header = clean_header.split(delimiter)[-1].strip()

    paren_match = re.search(r'\)\s*(.+)$', clean_header)
    if paren_match:
        clean_header = paren_match.group(1).strip()

    numbered_match = re.match(r'^\d+\.?\s*(.+)$', clean_header)
    if numbered_match:
        clean_header = numbered_match.group(1).strip()

    return clean_header or header


def extract_question_from_header(header: str) -> str:
    """Extract the question part of a header (text before the first delimiter)."""
    for delimiter in QUESTION_DELIMITERS:
        if delimiter in header:
            return header.split(delimiter)[0].strip()

    paren_match = re.match(r'^([^(]+)', header)
    if paren_match:
        return paren_match.group(1).strip()

    return header


def remove_shared_prefix(columns: List[str]) -> List[str]:
    """Strip the longest common prefix from a list of headers."""
    if len(columns) <= 1:
        return list(columns)

    first_column = columns[0]
    prefix_length = 0
    for index, char in enumerate(first_column):
        if all(len(col) > index and col[index] == char for col in columns):
            prefix_length += 1
        else:
            break

    common_prefix = _SHARED_PREFIX_TAIL.sub('', first_column[:prefix_length])

    if len(common_prefix) <= 3:
        return list(columns)

    cleaned = []
    for col in columns:
        label = _SHARED_PREFIX_HEAD.sub('', col[len(common_prefix):].strip())
        cleaned.append(label or col)
    return cleaned


class TextNormalizer:
    """
    Tokenizer for free-text survey responses.

    Tokens are lowercase words with punctuation removed; stop words and
    tokens of ``min_token_length`` characters or fewer are dropped.
    """

    def __init__(self,
                 stop_words: Optional[frozenset] = None,
                 min_token_length: int = 2):
        """
        Initialize TextNormalizer.

        Parameters
        ----------
        stop_words : frozenset, optional
            Words to drop. Defaults to a small English stop-word list
        min_token_length : int, default 2
            Tokens with this many characters or fewer are dropped
        """
        self.stop_words = STOP_WORDS if stop_words is None else stop_words
        self.min_token_length = min_token_length

    def tokenize(self, text: str) -> List[str]:
        """Split text into filtered lowercase tokens."""
        words = _PUNCTUATION.sub(' ', str(text).lower()).split()
        return [word for word in words
                if len(word) > self.min_token_length and word not in self.stop_words]

    def is_stop_word(self, word: str) -> bool:
        return word in self.stop_words

