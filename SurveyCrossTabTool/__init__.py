"""
Survey Cross-Tabulation Tool

A survey cross-tabulation tool that automates banner table reporting: from
data loading and question structure detection to filtered tables with
significance testing, open-ended response coding and Excel export.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .crosstab_tool import CrossTabTool
from .data_processing.dataset import TabularDataset
from .data_processing.models import (
    QuestionType,
    FilterOperator,
    LogicalOperator,
    FilterCondition,
    NestedFilterGroup,
    CustomVariable,
    CodingSettings,
    AnalysisConfig,
    CrossTabResult,
    OpenEndCoding
)

__all__ = [
    'CrossTabTool',
    'TabularDataset',
    'QuestionType',
    'FilterOperator',
    'LogicalOperator',
    'FilterCondition',
    'NestedFilterGroup',
    'CustomVariable',
    'CodingSettings',
    'AnalysisConfig',
    'CrossTabResult',
    'OpenEndCoding'
]
