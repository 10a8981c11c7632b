"""
Core data models and structures for cross-tabulation reports.

This module defines the fundamental data structures used throughout the
cross-tabulation tool, including question types, filter definitions, the
report configuration, and result containers for tables, significance tests,
structure detection and open-ended coding.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Union, Any
from enum import Enum


class QuestionType(Enum):
    """Enumeration of survey question types."""
    SINGLE_CHOICE = "single-choice"
    MULTIPLE_CHOICE = "multiple-choice"
    SCALE = "scale"
    RANKING = "ranking"
    BINARY = "binary"
    NUMERIC = "numeric"
    OPEN_ENDED = "open-ended"
    DATE = "date"


class FilterOperator(Enum):
    """Enumeration of filter comparison operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN_RANGE = "in_range"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class LogicalOperator(Enum):
    """Enumeration of boolean operators for nested filter groups."""
    AND = "AND"
    OR = "OR"


class CustomVariableType(Enum):
    """Enumeration of custom (derived) variable kinds."""
    GROUPED_SINGLE = "grouped_single"
    GROUPED_MULTI = "grouped_multi"
    FORMULA = "formula"
    RECODE = "recode"
    SWITCH_CASE = "switch_case"


class ComparisonType(Enum):
    """Direction of a banner cell relative to the total column."""
    HIGHER = "higher"
    LOWER = "lower"
    NONE = "none"


def _enum_value(value: Any, enum_cls):
    """Coerce a raw value or enum member into ``enum_cls``."""
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)


def _plain_dict(items) -> Dict[str, Any]:
    """dict_factory for ``asdict`` that replaces enum members by their values."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in items}


@dataclass
class FilterCondition:
    """A single comparison evaluated against one cell of a row."""
    column: str
    operator: FilterOperator
    value: Union[str, float, int, None] = ""
    second_value: Union[str, float, int, None] = None
    negate: bool = False
    id: str = ""

    def __post_init__(self):
        self.operator = _enum_value(self.operator, FilterOperator)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FilterCondition':
        """Build a condition from a config dictionary."""
        return cls(
            column=data['column'],
            operator=data['operator'],
            value=data.get('value', ''),
            second_value=data.get('second_value', data.get('secondValue')),
            negate=bool(data.get('negate', data.get('not', False))),
            id=str(data.get('id', ''))
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the condition to a plain dictionary."""
        return {
            'id': self.id,
            'column': self.column,
            'operator': self.operator.value,
            'value': self.value,
            'second_value': self.second_value,
            'negate': self.negate
        }


@dataclass
class NestedFilterGroup:
    """
    Recursive boolean filter tree.

    Children are either FilterCondition leaves or further groups. A group
    without children evaluates to True before ``negate`` is applied.
    """
    operator: LogicalOperator = LogicalOperator.AND
    children: List[Union[FilterCondition, 'NestedFilterGroup']] = field(default_factory=list)
    negate: bool = False
    id: str = ""

    def __post_init__(self):
        self.operator = _enum_value(self.operator, LogicalOperator)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NestedFilterGroup':
        """Build a filter tree from a config dictionary."""
        children = []
        for child in data.get('children', data.get('conditions', [])):
            if 'column' in child:
                children.append(FilterCondition.from_dict(child))
            else:
                children.append(cls.from_dict(child))
        return cls(
            operator=data.get('operator', 'AND'),
            children=children,
            negate=bool(data.get('negate', data.get('not', False))),
            id=str(data.get('id', ''))
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the filter tree to a plain dictionary."""
        return {
            'id': self.id,
            'operator': self.operator.value,
            'negate': self.negate,
            'children': [child.to_dict() for child in self.children]
        }


@dataclass
class CustomVariable:
    """Definition of a derived variable built from source columns."""
    id: str
    name: str
    type: CustomVariableType
    source_columns: List[str] = field(default_factory=list)
    mappings: Dict[str, List[str]] = field(default_factory=dict)
    expression: str = ""
    description: str = ""

    def __post_init__(self):
        self.type = _enum_value(self.type, CustomVariableType)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CustomVariable':
        """Build a custom variable definition from a config dictionary."""
        formula = data.get('formula') or {}
        return cls(
            id=str(data['id']),
            name=data.get('name', data['id']),
            type=data['type'],
            source_columns=list(data.get('source_columns', data.get('sourceColumns', []))),
            mappings=dict(data.get('mappings') or {}),
            expression=data.get('expression', formula.get('expression', '')),
            description=data.get('description', '')
        )


@dataclass
class CodingSettings:
    """Settings for open-ended response coding."""
    min_category_size: int = 1
    max_categories: int = 20
    similarity_threshold: float = 0.5
    use_semantic_clustering: bool = True
    exclude_short_responses: bool = False
    min_response_length: int = 5

    _ALIASES = {
        'minCategorySize': 'min_category_size',
        'maxCategories': 'max_categories',
        'similarityThreshold': 'similarity_threshold',
        'useSemanticClustering': 'use_semantic_clustering',
        'excludeShortResponses': 'exclude_short_responses',
        'minResponseLength': 'min_response_length',
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CodingSettings':
        """Build coding settings from a config dictionary."""
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the settings to a plain dictionary."""
        return asdict(self)


@dataclass
class AnalysisConfig:
    """Declarative definition of one report run."""
    table_variables: List[str] = field(default_factory=list)
    banner_variables: List[str] = field(default_factory=list)
    multi_select_groups: Dict[str, List[str]] = field(default_factory=dict)
    question_types: Dict[str, QuestionType] = field(default_factory=dict)
    table_names: Dict[str, str] = field(default_factory=dict)
    filters: Dict[str, FilterCondition] = field(default_factory=dict)
    nested_filters: List[NestedFilterGroup] = field(default_factory=list)
    custom_variables: Dict[str, CustomVariable] = field(default_factory=dict)

    def __post_init__(self):
        self.question_types = {
            column: _enum_value(q_type, QuestionType)
            for column, q_type in self.question_types.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Build a configuration from a dictionary (snake or camel case keys)."""
        def pick(snake: str, camel: str, default):
            return data.get(snake, data.get(camel, default))

        filters = {
            filter_id: FilterCondition.from_dict(dict(condition, id=condition.get('id', filter_id)))
            for filter_id, condition in pick('filters', 'filters', {}).items()
        }
        nested = [NestedFilterGroup.from_dict(group)
                  for group in pick('nested_filters', 'nestedFilters', [])]
        custom = {
            var_id: CustomVariable.from_dict(dict(definition, id=definition.get('id', var_id)))
            for var_id, definition in pick('custom_variables', 'customVariables', {}).items()
        }

        return cls(
            table_variables=list(pick('table_variables', 'tableVariables', [])),
            banner_variables=list(pick('banner_variables', 'bannerVariables', [])),
            multi_select_groups={
                name: list(columns)
                for name, columns in pick('multi_select_groups', 'multiSelectGroups', {}).items()
            },
            question_types=dict(pick('question_types', 'questionTypes', {})),
            table_names=dict(pick('table_names', 'tableNames', {})),
            filters=filters,
            nested_filters=nested,
            custom_variables=custom
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the configuration to a plain dictionary."""
        return {
            'table_variables': list(self.table_variables),
            'banner_variables': list(self.banner_variables),
            'multi_select_groups': {k: list(v) for k, v in self.multi_select_groups.items()},
            'question_types': {k: v.value for k, v in self.question_types.items()},
            'table_names': dict(self.table_names),
            'filters': {k: v.to_dict() for k, v in self.filters.items()},
            'nested_filters': [group.to_dict() for group in self.nested_filters],
            'custom_variables': {k: asdict(v, dict_factory=_plain_dict)
                                 for k, v in self.custom_variables.items()}
        }

    def validate(self) -> None:
        """Check that no column belongs to more than one multi-select group."""
        owners: Dict[str, str] = {}
        for group_name, columns in self.multi_select_groups.items():
            for column in columns:
                if column in owners and owners[column] != group_name:
                    raise ValueError(
                        f"Column '{column}' appears in multi-select groups "
                        f"'{owners[column]}' and '{group_name}'"
                    )
                owners[column] = group_name

    def multi_select_columns(self) -> List[str]:
        """List every column claimed by a multi-select group."""
        return [column for columns in self.multi_select_groups.values() for column in columns]

    def display_name(self, variable: str) -> str:
        """Get the display name for a table variable."""
        return self.table_names.get(variable) or variable


@dataclass
class TypeDetectionResult:
    """Outcome of question type detection for one column."""
    type: QuestionType
    confidence: float
    reasoning: str


@dataclass
class DetectedMultiSelectGroup:
    """Candidate multi-select battery found from column headers."""
    question_root: str
    columns: List[str]
    confidence: float
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RankQuestionStructure:
    """Ranking battery: one column per option and rank level."""
    question_name: str
    options: List[str]
    max_ranks: int
    column_mapping: Dict[int, List[str]] = field(default_factory=dict)

    @property
    def rank1_columns(self) -> List[str]:
        return self.column_mapping.get(1, [])

    @property
    def rank2_columns(self) -> List[str]:
        return self.column_mapping.get(2, [])

    @property
    def rank3_columns(self) -> List[str]:
        return self.column_mapping.get(3, [])

    def all_columns(self) -> List[str]:
        """List every rank column of the battery."""
        return [column for level in sorted(self.column_mapping)
                for column in self.column_mapping[level]]


@dataclass
class SignificanceTestResult:
    """Container for a two-proportion z-test."""
    is_significant: bool
    p_value: float
    z_score: float
    comparison_type: ComparisonType = ComparisonType.NONE


@dataclass
class BannerStructure:
    """A banner question and the span of its answer columns."""
    question: str
    answers: List[str]
    start_index: int
    end_index: int


@dataclass
class ScaleCalculations:
    """Top/bottom box percentages, one value per banner column."""
    top_box: List[int]
    bottom_box: List[int]
    top2_box: List[int]
    bottom2_box: List[int]
    scale_min: float
    scale_max: float
    top3_box: Optional[List[int]] = None
    bottom3_box: Optional[List[int]] = None


@dataclass
class RankingCalculations:
    """Rank percentages: one row per option, one value per banner column."""
    rank1_only: List[List[int]]
    rank2_only: List[List[int]]
    rank3_only: List[List[int]]
    rank1_plus2: List[List[int]]
    rank1_plus2_plus3: List[List[int]]
    rank_options: List[str] = field(default_factory=list)
    max_ranks: int = 3


@dataclass
class StatisticalMeasures:
    """Mean, median and population standard deviation per banner column."""
    mean: List[float]
    median: List[float]
    standard_deviation: List[float]
    headers: List[str]


@dataclass
class OpenEndedTheme:
    """Keyword theme found in open-ended responses."""
    theme: str
    count: int
    percentage: int
    samples: List[str] = field(default_factory=list)
    cross_tab_data: Optional[Dict[str, List]] = None


@dataclass
class OpenEndResponse:
    """A single coded free-text response."""
    id: str
    text: str
    category_id: str
    confidence: float
    row_index: int


@dataclass
class OpenEndCategory:
    """A category produced by open-ended coding."""
    id: str
    name: str
    description: str
    keywords: List[str]
    sample_responses: List[str]
    response_count: int
    confidence: float


@dataclass
class OpenEndCoding:
    """Full result of coding one open-ended question."""
    question_column: str
    responses: List[OpenEndResponse]
    categories: List[OpenEndCategory]
    settings: CodingSettings

    def category_ids(self) -> List[str]:
        """List the ids of all produced categories."""
        return [category.id for category in self.categories]


@dataclass
class CrossTabResult:
    """
    Container for one cross-tabulated variable against all banners.

    ``absolute``, ``percentage`` and ``significance_flags`` share one shape:
    ``len(row_labels)`` rows by ``len(headers)`` columns, with the Total
    column first. ``base_values`` holds one denominator per column.
    """
    name: str
    display_name: str
    absolute: List[List[int]]
    percentage: List[List[str]]
    headers: List[str]
    row_labels: List[str]
    base_values: List[int]
    significance_flags: List[List[str]]
    question_type: QuestionType
    banner_structure: List[BannerStructure] = field(default_factory=list)
    banner_question: str = ""
    banner_answers: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    scale_calculations: Optional[ScaleCalculations] = None
    ranking_calculations: Optional[RankingCalculations] = None
    statistical_measures: Optional[StatisticalMeasures] = None
    open_ended_themes: Optional[List[OpenEndedTheme]] = None
    open_end_coding: Optional[OpenEndCoding] = None
    applied_filters: List[NestedFilterGroup] = field(default_factory=list)

    def shape(self) -> tuple:
        """Get (rows, columns) of the value matrices."""
        return len(self.absolute), len(self.headers)

    def has_warnings(self) -> bool:
        """Check if any validation warning was recorded."""
        return len(self.validation_errors) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the result to plain Python types."""
        return asdict(self, dict_factory=_plain_dict)


# Type aliases for convenience
Matrix = List[List[int]]
FlagMatrix = List[List[str]]
FilterNode = Union[FilterCondition, NestedFilterGroup]
