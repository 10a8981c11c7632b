"""
Excel export of cross-tabulation results.

The workbook holds a table index followed by one value sheet per enabled
matrix kind (counts and percentages). Every table block carries its title,
question type, data quality warnings, a two-row banner header, the Base row
and the data rows with significance flags appended to each value.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

import pandas as pd

from ..data_processing.models import CrossTabResult, QuestionType

INDEX_SHEET = 'Table Index'
COUNTS_SHEET = 'Absolute Values'
PERCENTAGES_SHEET = 'Percentages'

SIGNIFICANCE_LEGEND = ('Statistical Significance: * = Significantly higher than total, '
                       '↓ = Significantly lower than total')

QUESTION_TYPE_NOTES = {
    QuestionType.SINGLE_CHOICE: 'One answer per respondent. Column percentages sum to 100%.',
    QuestionType.MULTIPLE_CHOICE: ('Select all that apply. Percentages based on respondents '
                                   'who answered any option.'),
    QuestionType.BINARY: 'Yes/No or True/False question. Column percentages sum to 100%.',
    QuestionType.SCALE: 'Rating scale with Top/Bottom Box analysis included.',
    QuestionType.RANKING: 'Ranking question with detailed rank position analysis.',
    QuestionType.OPEN_ENDED: 'Text responses automatically coded into themes using keyword analysis.',
    QuestionType.NUMERIC: 'Numerical values with statistical measures (mean, median, standard deviation).',
    QuestionType.DATE: 'Date/time values grouped for analysis.',
}

Row = List[Any]


def banner_header_rows(result: CrossTabResult) -> List[Row]:
    """
    Header rows for a table block.

    With banner structure the first row holds each banner question above
    its first answer and the second row holds the answers. Without it a
    single row repeats the headers.
    """
    if not result.banner_structure:
        return [[''] + list(result.headers)]

    question_row = ['', result.headers[0]]
    answer_row = ['', '']
    for banner in result.banner_structure:
        for position, answer in enumerate(banner.answers):
            question_row.append(banner.question if position == 0 else '')
            answer_row.append(answer)
    return [question_row, answer_row]


def _flagged(value: Any, flag: str) -> Any:
    return f"{value}{flag}" if flag else value


class ReportExporter:
    """
    Workbook builder for cross-tabulation results.

    Sheets are built as plain row lists so they can be inspected before
    anything is written; ``export`` writes them with pandas and openpyxl.
    """

    def __init__(self,
                 include_counts: bool = True,
                 include_percentages: bool = True):
        """
        Initialize ReportExporter.

        Parameters
        ----------
        include_counts : bool, default True
            Write the absolute values sheet
        include_percentages : bool, default True
            Write the percentages sheet

        Raises
        ------
        ValueError
            If both sheets are disabled
        """
        if not include_counts and not include_percentages:
            raise ValueError("At least one of counts or percentages must be exported")

        self.include_counts = include_counts
        self.include_percentages = include_percentages
        self.logger = logging.getLogger(__name__)

    def value_sheets(self) -> List[Tuple[str, str]]:
        """Enabled value sheets as ``(sheet name, matrix kind)`` pairs."""
        sheets = []
        if self.include_counts:
            sheets.append((COUNTS_SHEET, 'absolute'))
        if self.include_percentages:
            sheets.append((PERCENTAGES_SHEET, 'percentage'))
        return sheets

    def build_value_sheet(self,
                          results: Sequence[CrossTabResult],
                          kind: str) -> Tuple[List[Row], List[int]]:
        """
        Rows of one value sheet and the 1-based start row of each table.

        Parameters
        ----------
        results : sequence of CrossTabResult
            Tables in report order
        kind : {'absolute', 'percentage'}
            Matrix written in the data rows

        Returns
        -------
        tuple
            (sheet rows, start row of every table's title line)
        """
        if kind not in ('absolute', 'percentage'):
            raise ValueError(f"Unknown matrix kind: {kind}")

        title = COUNTS_SHEET if kind == 'absolute' else PERCENTAGES_SHEET
        rows: List[Row] = [
            [f"Cross-Tabulation Analysis Report - {title}"],
            [SIGNIFICANCE_LEGEND],
            []
        ]
        start_rows = []

        for index, result in enumerate(results):
            if index > 0:
                rows.extend([[], []])
            start_rows.append(len(rows) + 1)
            rows.extend(self.table_block(result, kind))

        return rows, start_rows

    def table_block(self, result: CrossTabResult, kind: str) -> List[Row]:
        """Rows of a single table in a value sheet."""
        rows: List[Row] = [
            [f"Table: {result.display_name}"],
            [f"Question Type: {result.question_type.value.upper().replace('-', ' ')}"],
            ['Base: Total respondents with valid data'],
        ]
        note = QUESTION_TYPE_NOTES.get(result.question_type)
        if note:
            rows.append([f"Analysis Note: {note}"])
        rows.append([])

        if result.validation_errors:
            rows.append(['DATA QUALITY WARNINGS:'])
            rows.extend([f"   - {error}"] for error in result.validation_errors)
            rows.append([])

        rows.extend(banner_header_rows(result))
        rows.append(['Base'] + list(result.base_values))

        matrix = result.absolute if kind == 'absolute' else result.percentage
        for row_index, label in enumerate(result.row_labels):
            flags = result.significance_flags[row_index] if row_index < len(result.significance_flags) else []
            values = matrix[row_index]
            rows.append([label] + [
                _flagged(value, flags[col] if col < len(flags) else '')
                for col, value in enumerate(values)
            ])

        if kind == 'absolute':
            rows.extend(self.statistics_block(result))
        else:
            rows.extend(self.scale_block(result))
            rows.extend(self.ranking_block(result))
        rows.extend(self.themes_block(result))
        rows.append([])
        return rows

    @staticmethod
    def statistics_block(result: CrossTabResult) -> List[Row]:
        measures = result.statistical_measures
        if measures is None:
            return []
        return [
            [],
            ['STATISTICAL MEASURES'],
            ['Mean'] + [f"{value:.2f}" for value in measures.mean],
            ['Median'] + [f"{value:.2f}" for value in measures.median],
            ['Std Deviation'] + [f"{value:.2f}" for value in measures.standard_deviation],
        ]

    @staticmethod
    def scale_block(result: CrossTabResult) -> List[Row]:
        """Top and bottom box rows; three-box rows only when computed."""
        scale = result.scale_calculations
        if scale is None:
            return []

        high, low = int(scale.scale_max), int(scale.scale_min)

        def percent_row(label, values):
            return [label] + [f"{value}%" for value in values]

        rows = [
            [],
            ['SCALE ANALYSIS (Top/Bottom Box)'],
            percent_row(f"Top Box ({high})", scale.top_box),
            percent_row(f"Top 2 Box ({high - 1}+{high})", scale.top2_box),
        ]
        if scale.top3_box is not None:
            rows.append(percent_row(f"Top 3 Box ({high - 2}+{high - 1}+{high})", scale.top3_box))
        rows.append(percent_row(f"Bottom Box ({low})", scale.bottom_box))
        rows.append(percent_row(f"Bottom 2 Box ({low}+{low + 1})", scale.bottom2_box))
        if scale.bottom3_box is not None:
            rows.append(percent_row(f"Bottom 3 Box ({low}+{low + 1}+{low + 2})", scale.bottom3_box))
        return rows

    @staticmethod
    def ranking_block(result: CrossTabResult) -> List[Row]:
        """
        Rank position rows.

        Ranking batteries already list their sections in the table, so the
        block is only added for single ranking columns.
        """
        ranking = result.ranking_calculations
        if ranking is None or ranking.rank_options:
            return []

        sections = [
            ('Rank 1', ranking.rank1_only),
            ('Rank 2', ranking.rank2_only),
            ('Rank 3', ranking.rank3_only),
            ('Rank 1+2', ranking.rank1_plus2),
            ('Rank 1+2+3', ranking.rank1_plus2_plus3),
        ]
        rows = [[], ['RANKING ANALYSIS']]
        for label, matrix in sections:
            values = matrix[0] if matrix else []
            rows.append([label] + [f"{value}%" for value in values])
        return rows

    @staticmethod
    def themes_block(result: CrossTabResult) -> List[Row]:
        if not result.open_ended_themes:
            return []

        banner_headers = list(result.headers[1:])
        rows = [
            [],
            ['OPEN-ENDED THEMES ANALYSIS'],
            ['Theme', 'Total Count', 'Total %']
            + [f"{header} Count" for header in banner_headers]
            + [f"{header} %" for header in banner_headers],
        ]
        for theme in result.open_ended_themes:
            row = [theme.theme, theme.count, f"{theme.percentage}%"]
            if theme.cross_tab_data:
                row.extend(theme.cross_tab_data['absolute'][1:])
                row.extend(theme.cross_tab_data['percentage'][1:])
            rows.append(row)
        return rows

    def build_index_sheet(self,
                          results: Sequence[CrossTabResult],
                          start_rows: Dict[str, List[int]]) -> List[Row]:
        """
        Rows of the table index.

        Parameters
        ----------
        results : sequence of CrossTabResult
            Tables in report order
        start_rows : dict
            Value sheet name to the start row of every table
        """
        sheet_names = [name for name, _ in self.value_sheets()]
        rows: List[Row] = [
            ['CROSS-TABULATION ANALYSIS - TABLE INDEX'],
            [f"Generated on: {pd.Timestamp.now():%Y-%m-%d %H:%M:%S}"],
            [],
            ['#', 'Table Name', 'Description'] + sheet_names,
        ]
        for index, result in enumerate(results):
            rows.append(
                [index + 1, result.display_name, f"Cross-tabulation analysis for {result.display_name}"]
                + [f"'{name}'!A{start_rows[name][index]}" for name in sheet_names]
            )

        rows.extend([
            [],
            ['Summary Statistics:'],
            ['Total Tables:', len(results)],
            ['Analysis Type:', 'Cross-Tabulation with Statistical Significance Testing'],
        ])
        return rows

    def build_sheets(self, results: Sequence[CrossTabResult]) -> Dict[str, List[Row]]:
        """Build every sheet of the workbook, index first."""
        value_sheets = {}
        start_rows = {}
        for sheet_name, kind in self.value_sheets():
            value_sheets[sheet_name], start_rows[sheet_name] = self.build_value_sheet(results, kind)

        sheets = {INDEX_SHEET: self.build_index_sheet(results, start_rows)}
        sheets.update(value_sheets)
        return sheets

    def export(self, results: Sequence[CrossTabResult], path: Union[str, Path]) -> Path:
        """
        Write the report workbook.

        Parameters
        ----------
        results : sequence of CrossTabResult
            Tables in report order
        path : str or Path
            Output ``.xlsx`` file

        Returns
        -------
        Path
            Path of the written workbook
        """
        path = Path(path)
        sheets = self.build_sheets(results)

        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)

        self.logger.info(f"Exported {len(results)} tables to {path}")
        return path


def export_report(results: Sequence[CrossTabResult],
                  path: Union[str, Path],
                  include_counts: bool = True,
                  include_percentages: bool = True) -> Path:
    """Export results with a new ReportExporter."""
    return ReportExporter(include_counts, include_percentages).export(results, path)
