"""Question type and battery structure detection."""

from .type_detector import TypeDetector
from .structure_detector import StructureDetector, detect_multi_select_batteries, detect_ranking_batteries

__all__ = [
    'TypeDetector',
    'StructureDetector',
    'detect_multi_select_batteries',
    'detect_ranking_batteries'
]
