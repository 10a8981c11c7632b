"""Data processing module for survey cross-tabulation."""

from .dataset import TabularDataset
from .data_loader import DataLoader
from .filter_engine import FilterEngine, apply_filters, evaluate_condition, evaluate_group
from .models import (
    QuestionType,
    FilterOperator,
    LogicalOperator,
    CustomVariableType,
    ComparisonType,
    FilterCondition,
    NestedFilterGroup,
    CustomVariable,
    CodingSettings,
    AnalysisConfig,
    TypeDetectionResult,
    DetectedMultiSelectGroup,
    RankQuestionStructure,
    SignificanceTestResult,
    BannerStructure,
    ScaleCalculations,
    RankingCalculations,
    StatisticalMeasures,
    OpenEndedTheme,
    OpenEndResponse,
    OpenEndCategory,
    OpenEndCoding,
    CrossTabResult
)

__all__ = [
    'TabularDataset',
    'DataLoader',
    'FilterEngine',
    'apply_filters',
    'evaluate_condition',
    'evaluate_group',
    'QuestionType',
    'FilterOperator',
    'LogicalOperator',
    'CustomVariableType',
    'ComparisonType',
    'FilterCondition',
    'NestedFilterGroup',
    'CustomVariable',
    'CodingSettings',
    'AnalysisConfig',
    'TypeDetectionResult',
    'DetectedMultiSelectGroup',
    'RankQuestionStructure',
    'SignificanceTestResult',
    'BannerStructure',
    'ScaleCalculations',
    'RankingCalculations',
    'StatisticalMeasures',
    'OpenEndedTheme',
    'OpenEndResponse',
    'OpenEndCategory',
    'OpenEndCoding',
    'CrossTabResult'
]
