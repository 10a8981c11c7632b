"""
Row filtering for survey datasets.

This module evaluates simple per-column filter conditions and recursive
AND/OR/NOT filter groups, either against one row or vectorized over a whole
TabularDataset.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .dataset import TabularDataset
from .models import FilterCondition, FilterNode, FilterOperator, LogicalOperator, NestedFilterGroup
from ..text_analysis.text_processing import is_blank, parse_number, to_text

_NUMERIC_OPERATORS = (FilterOperator.GREATER_THAN, FilterOperator.LESS_THAN, FilterOperator.IN_RANGE)


def _compare(cell: Any, condition: FilterCondition) -> bool:
    """Apply a condition's operator to one cell, ignoring ``negate``."""
    operator = condition.operator

    if operator == FilterOperator.IS_EMPTY:
        return is_blank(cell)
    if operator == FilterOperator.IS_NOT_EMPTY:
        return not is_blank(cell)

    if operator in _NUMERIC_OPERATORS:
        number = parse_number(cell)
        target = parse_number(condition.value)
        if number is None or target is None:
            return False
        if operator == FilterOperator.GREATER_THAN:
            return number > target
        if operator == FilterOperator.LESS_THAN:
            return number < target
        upper = parse_number(condition.second_value)
        if upper is None:
            return False
        return target <= number <= upper

    text = to_text(cell).lower()
    target_text = to_text(condition.value).lower()

    if operator == FilterOperator.EQUALS:
        return text == target_text
    if operator == FilterOperator.NOT_EQUALS:
        return text != target_text
    if operator == FilterOperator.CONTAINS:
        return target_text in text
    if operator == FilterOperator.NOT_CONTAINS:
        return target_text not in text
    if operator == FilterOperator.STARTS_WITH:
        return text.startswith(target_text)
    if operator == FilterOperator.ENDS_WITH:
        return text.endswith(target_text)

    raise ValueError(f"Unsupported filter operator: {operator}")


def evaluate_condition(row: Mapping[str, Any], condition: FilterCondition) -> bool:
    """
    Evaluate a condition against one row.

    A condition on a column the row does not have passes, as it does in
    ``FilterEngine.condition_mask``. Numeric operators evaluate to False
    when either side is not a number.
    """
    if condition.column not in row:
        return True
    result = _compare(row[condition.column], condition)
    return not result if condition.negate else result


def evaluate_group(row: Mapping[str, Any], group: NestedFilterGroup) -> bool:
    """
    Evaluate a nested filter group against one row.

    Children are combined with the group's AND/OR operator and the result is
    inverted when ``negate`` is set. A group without children is True
    before negation.
    """
    results = (
        evaluate_group(row, child) if isinstance(child, NestedFilterGroup)
        else evaluate_condition(row, child)
        for child in group.children
    )
    if group.operator == LogicalOperator.OR and group.children:
        result = any(results)
    else:
        result = all(results)
    return not result if group.negate else result


class FilterEngine:
    """
    Vectorized filter evaluation over a TabularDataset.

    Simple filters are combined with an implicit AND; every nested group is
    then ANDed with that result.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def condition_mask(self, dataset: TabularDataset, condition: FilterCondition) -> pd.Series:
        """Boolean mask of rows satisfying one condition."""
        if condition.column not in dataset:
            self.logger.warning(
                f"Filter column '{condition.column}' not found in dataset; condition ignored"
            )
            return pd.Series(True, index=range(len(dataset)), dtype=bool)

        mask = dataset.column(condition.column).map(lambda cell: _compare(cell, condition))
        mask = mask.astype(bool)
        return ~mask if condition.negate else mask

    def node_mask(self, dataset: TabularDataset, node: FilterNode) -> pd.Series:
        """Mask of a filter tree node, either a condition or a group."""
        if isinstance(node, NestedFilterGroup):
            return self.group_mask(dataset, node)
        return self.condition_mask(dataset, node)

    def group_mask(self, dataset: TabularDataset, group: NestedFilterGroup) -> pd.Series:
        """Boolean mask of rows satisfying a nested filter group."""
        if not group.children:
            mask = pd.Series(True, index=range(len(dataset)), dtype=bool)
        else:
            child_masks = [self.node_mask(dataset, child) for child in group.children]
            stacked = np.vstack([m.to_numpy(dtype=bool) for m in child_masks])
            if group.operator == LogicalOperator.OR:
                combined = stacked.any(axis=0)
            else:
                combined = stacked.all(axis=0)
            mask = pd.Series(combined, index=range(len(dataset)), dtype=bool)
        return ~mask if group.negate else mask

    def apply_filters(self,
                      dataset: TabularDataset,
                      filters: Optional[Union[Dict[str, FilterCondition], Iterable[FilterCondition]]] = None,
                      nested_filters: Optional[List[NestedFilterGroup]] = None) -> TabularDataset:
        """
        Keep the rows matching every simple filter and every nested group.

        Parameters
        ----------
        dataset : TabularDataset
            Source data; left untouched
        filters : dict or iterable of FilterCondition, optional
            Simple filters, combined with AND
        nested_filters : list of NestedFilterGroup, optional
            Filter trees, each ANDed with the simple filters

        Returns
        -------
        TabularDataset
            New dataset holding the matching rows
        """
        if isinstance(filters, dict):
            filters = list(filters.values())
        conditions = list(filters or [])
        groups = list(nested_filters or [])

        if not conditions and not groups:
            return dataset

        mask = np.ones(len(dataset), dtype=bool)
        for condition in conditions:
            mask &= self.condition_mask(dataset, condition).to_numpy(dtype=bool)
        for group in groups:
            mask &= self.group_mask(dataset, group).to_numpy(dtype=bool)

        filtered = dataset.subset(mask)
        self.logger.info(
            f"Applied {len(conditions)} filters and {len(groups)} filter groups: "
            f"{len(filtered)} of {len(dataset)} rows kept"
        )
        return filtered


def apply_filters(dataset: TabularDataset,
                  filters: Optional[Union[Dict[str, FilterCondition], Iterable[FilterCondition]]] = None,
                  nested_filters: Optional[List[NestedFilterGroup]] = None) -> TabularDataset:
    """Filter a dataset with a default FilterEngine."""
    return FilterEngine().apply_filters(dataset, filters, nested_filters)
