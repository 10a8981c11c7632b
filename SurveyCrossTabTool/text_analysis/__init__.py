"""Text analysis module for headers and open-ended responses."""

from .text_processing import TextNormalizer
from .theme_library import THEME_LIBRARY, ThemeDefinition, extract_themes, match_theme
from .open_end_coder import OpenEndCoder, code_open_ended

__all__ = [
    'TextNormalizer',
    'THEME_LIBRARY',
    'ThemeDefinition',
    'extract_themes',
    'match_theme',
    'OpenEndCoder',
    'code_open_ended'
]
