"""
Cross-tabulation engine for survey reports.

This module turns a TabularDataset and an AnalysisConfig into one
CrossTabResult per table variable: counts, percentages, column bases and
significance flags against the Total column, plus type-specific blocks for
scale, ranking, numeric and open-ended questions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .significance_tests import SignificanceTester
from ..data_processing.dataset import TabularDataset
from ..data_processing.filter_engine import FilterEngine
from ..data_processing.models import (
    AnalysisConfig, BannerStructure, CodingSettings, CrossTabResult, Matrix, OpenEndedTheme,
    QuestionType, RankingCalculations, RankQuestionStructure
)
from ..descriptive_analysis.univariate_stats import UnivariateStats, percentage_of
from ..question_analysis.structure_detector import StructureDetector
from ..text_analysis.open_end_coder import OpenEndCoder
from ..text_analysis.text_processing import extract_question_from_header, remove_shared_prefix
from ..text_analysis.theme_library import THEME_LIBRARY, OTHER_THEME, match_theme

TOTAL_HEADER = 'Total'
NET_LABEL = 'NET: Any Response'
FULL_RESPONSES_LABEL = 'FULL RESPONSES'
THEMES_SEPARATOR = '--- THEMATIC ANALYSIS ---'

# Cell values that do not count as a multi-select selection
NOT_SELECTED = {'', '0', 'no', 'false', 'n/a', 'na', 'null', 'undefined'}

RANK_SECTIONS = ['Rank 1 Only', 'Rank 2 Only', 'Rank 3 Only', 'Rank 1 + 2', 'Rank 1 + 2 + 3']


@dataclass
class BannerLayout:
    """Banner columns of one report: headers, row masks and per-banner spans."""
    headers: List[str]
    masks: np.ndarray
    structure: List[BannerStructure]
    variables: List[str]

    @property
    def suffix(self) -> str:
        return '_'.join(self.variables) or TOTAL_HEADER

    def counts(self, indicators: np.ndarray) -> np.ndarray:
        """Count matrix (indicator columns x banner columns)."""
        return indicators.astype(int).T @ self.masks.astype(int)

    def bases(self, valid: np.ndarray) -> np.ndarray:
        """Per banner column count of valid rows."""
        return valid.astype(int) @ self.masks.astype(int)


def _percent_row(counts: Sequence[int], bases: Sequence[int]) -> List[str]:
    return [f"{percentage_of(count, base)}%" for count, base in zip(counts, bases)]


def _theme_name(text: str) -> str:
    theme_index = match_theme(text)
    return OTHER_THEME if theme_index is None else THEME_LIBRARY[theme_index].name


class CrossTabEngine:
    """
    Cross-tabulation of survey variables against banner variables.

    Features:
    - Regular tables for single-choice, binary, scale, numeric and ranking
      columns with box scores and descriptive statistics
    - Multi-select battery tables with a shared any-selection base
    - Ranking battery tables with rank 1/2/3 and combined sections
    - Open-ended tables with keyword themes and optional response coding
    - Column-versus-total significance flags on every table
    """

    def __init__(self,
                 alpha: float = 0.05,
                 use_exact_cdf: bool = False):
        """
        Initialize CrossTabEngine.

        Parameters
        ----------
        alpha : float, default 0.05
            Significance level for column-versus-total tests
        use_exact_cdf : bool, default False
            Use scipy's normal CDF instead of the rational approximation
        """
        self.alpha = alpha
        self.logger = logging.getLogger(__name__)

        # Initialize dependent analyzers
        self.significance_tester = SignificanceTester(alpha=alpha, use_exact_cdf=use_exact_cdf)
        self.filter_engine = FilterEngine()
        self.structure_detector = StructureDetector()
        self.univariate_stats = UnivariateStats()

    def generate_cross_tabs(self,
                            dataset: TabularDataset,
                            config: AnalysisConfig,
                            coding_settings: Optional[CodingSettings] = None) -> List[CrossTabResult]:
        """
        Build one table per configured table variable.

        Parameters
        ----------
        dataset : TabularDataset
            Survey data; never modified
        config : AnalysisConfig
            Table and banner variables, groups, types, names and filters
        coding_settings : CodingSettings, optional
            When given, open-ended tables also carry response coding

        Returns
        -------
        list of CrossTabResult
            Results in table variable order; variables without data are skipped
        """
        config.validate()
        filtered = self.filter_engine.apply_filters(dataset, config.filters, config.nested_filters)
        layout = self.build_banner_layout(filtered, config.banner_variables)

        rank_structures = {
            structure.question_name: structure
            for structure in self.structure_detector.detect_ranking_batteries(
                dataset.headers, config.question_types)
        }

        self.logger.info(
            f"Generating {len(config.table_variables)} tables over {len(filtered)} rows "
            f"and {len(layout.headers)} banner columns"
        )

        results = []
        for variable in config.table_variables:
            result = self._cross_tab_variable(
                filtered, variable, config, layout, rank_structures, coding_settings
            )
            if result is None:
                continue
            result.applied_filters = list(config.nested_filters)
            results.append(result)

        self.logger.info(f"Generated {len(results)} tables")
        return results

    def _cross_tab_variable(self,
                            dataset: TabularDataset,
                            variable: str,
                            config: AnalysisConfig,
                            layout: BannerLayout,
                            rank_structures: Dict[str, RankQuestionStructure],
                            coding_settings: Optional[CodingSettings]) -> Optional[CrossTabResult]:
        display_name = config.display_name(variable)

        if variable in config.multi_select_groups:
            self.logger.debug(f"'{variable}' is a multi-select group")
            return self.create_multi_select_cross_tab(
                dataset, variable, config.multi_select_groups[variable], layout, display_name
            )

        if variable in config.custom_variables:
            custom = config.custom_variables[variable]
            raise NotImplementedError(
                f"Cross-tabulation of custom variable '{variable}' "
                f"({custom.type.value}) is not supported"
            )

        if variable in rank_structures:
            self.logger.debug(f"'{variable}' is a ranking battery")
            return self.create_rank_question_cross_tab(
                dataset, rank_structures[variable], layout, display_name
            )

        if variable not in dataset:
            self.logger.warning(f"Table variable '{variable}' not found in dataset; skipped")
            return None

        question_type = config.question_types.get(variable, QuestionType.SINGLE_CHOICE)
        if question_type == QuestionType.OPEN_ENDED:
            self.logger.debug(f"'{variable}' is open-ended")
            return self.create_open_ended_cross_tab(
                dataset, variable, layout, display_name, coding_settings
            )

        return self.create_regular_cross_tab(dataset, variable, question_type, layout, display_name)

    def build_banner_layout(self, dataset: TabularDataset, banner_variables: Sequence[str]) -> BannerLayout:
        """
        Build the Total column followed by every banner variable's answers.

        Answers are the sorted distinct non-blank values of each banner
        column in the (filtered) dataset.
        """
        n_rows = len(dataset)
        headers = [TOTAL_HEADER]
        masks = [np.ones(n_rows, dtype=bool)]
        structure = []
        current_index = 1

        for banner in banner_variables:
            if banner in dataset:
                column = dataset.column(banner)
                answers = sorted(column[~dataset.blank_mask(banner)].unique())
            else:
                self.logger.warning(f"Banner variable '{banner}' not found in dataset")
                column = None
                answers = []

            for answer in answers:
                headers.append(answer)
                masks.append((column == answer).to_numpy(dtype=bool))

            structure.append(BannerStructure(
                question=extract_question_from_header(banner),
                answers=list(answers),
                start_index=current_index,
                end_index=current_index + len(answers) - 1
            ))
            current_index += len(answers)

        return BannerLayout(
            headers=headers,
            masks=np.column_stack(masks) if n_rows else np.zeros((0, len(headers)), dtype=bool),
            structure=structure,
            variables=list(banner_variables)
        )

    def _package(self,
                 name: str,
                 display_name: str,
                 question_type: QuestionType,
                 layout: BannerLayout,
                 row_labels: List[str],
                 absolute: Matrix,
                 percentage: List[List[str]],
                 base_values: List[int],
                 validation_errors: List[str]) -> CrossTabResult:
        """Run significance tests and assemble the result container."""
        flags = self.significance_tester.perform_significance_tests(absolute, base_values)
        return CrossTabResult(
            name=name,
            display_name=display_name,
            absolute=absolute,
            percentage=percentage,
            headers=list(layout.headers),
            row_labels=row_labels,
            base_values=base_values,
            significance_flags=flags,
            question_type=question_type,
            banner_structure=list(layout.structure),
            banner_question=' | '.join(layout.variables),
            banner_answers=list(layout.headers[1:]),
            validation_errors=validation_errors
        )

    def create_regular_cross_tab(self,
                                 dataset: TabularDataset,
                                 variable: str,
                                 question_type: QuestionType,
                                 layout: BannerLayout,
                                 display_name: Optional[str] = None) -> Optional[CrossTabResult]:
        """
        Cross-tabulate one plain column.

        Rows are the sorted distinct non-blank values plus a Total row. The
        base of each banner column is the number of non-blank answers in it.

        Returns
        -------
        CrossTabResult or None
            None when the column holds no valid data
        """
        column = dataset.column(variable)
        valid = ~dataset.blank_mask(variable).to_numpy(dtype=bool)
        values = sorted(column[valid].unique())

        if not values:
            self.logger.warning(f"No valid data found for variable: {variable}")
            return None

        indicators = np.column_stack([(column == value).to_numpy(dtype=bool) for value in values])
        counts = layout.counts(indicators)
        bases = layout.bases(valid).tolist()

        absolute = [row.tolist() for row in counts] + [list(bases)]
        percentage = [_percent_row(row, bases) for row in absolute]
        validation_errors = []

        if question_type in (QuestionType.SINGLE_CHOICE, QuestionType.BINARY):
            validation_errors.extend(self._check_percentage_sums(percentage[:-1], bases, layout.headers))

        result = self._package(
            name=f"{variable}_by_{layout.suffix}",
            display_name=display_name or variable,
            question_type=question_type,
            layout=layout,
            row_labels=list(values) + [TOTAL_HEADER],
            absolute=absolute,
            percentage=percentage,
            base_values=bases,
            validation_errors=validation_errors
        )

        if question_type in (QuestionType.NUMERIC, QuestionType.SCALE, QuestionType.RANKING):
            numeric = dataset.numeric(variable)

            if question_type in (QuestionType.NUMERIC, QuestionType.SCALE):
                result.statistical_measures = self.univariate_stats.statistical_measures(
                    numeric, layout.masks, layout.headers)

            if question_type == QuestionType.SCALE:
                scale_range = self.univariate_stats.detect_scale_range(numeric)
                if scale_range:
                    result.scale_calculations = self.univariate_stats.scale_boxes(
                        numeric, layout.masks, bases, scale_range)
                else:
                    self.logger.debug(f"'{variable}' has no recognizable scale range")

            if question_type == QuestionType.RANKING:
                result.ranking_calculations = self.univariate_stats.ranking_boxes(
                    numeric, layout.masks, bases)

        for warning in validation_errors:
            self.logger.warning(warning)
        return result

    @staticmethod
    def _check_percentage_sums(percentage: List[List[str]],
                               bases: List[int],
                               headers: List[str]) -> List[str]:
        """Warn about banner columns whose category percentages do not sum to ~100%."""
        warnings = []
        for col_index, header in enumerate(headers):
            if bases[col_index] == 0:
                continue
            total = sum(int(row[col_index].rstrip('%')) for row in percentage)
            if abs(total - 100) > 5:
                warnings.append(
                    f'Column "{header}" percentages sum to {total}% instead of 100%. '
                    f'This may indicate data quality issues.'
                )
        return warnings

    def create_multi_select_cross_tab(self,
                                      dataset: TabularDataset,
                                      group_name: str,
                                      columns: List[str],
                                      layout: BannerLayout,
                                      display_name: Optional[str] = None) -> Optional[CrossTabResult]:
        """
        Cross-tabulate a multi-select battery.

        Each battery column becomes one row. The base is the number of
        respondents selecting any option, so row percentages may add up
        to more than 100%. A final NET row repeats the bases.
        """
        present = [column for column in columns if column in dataset]
        missing = [column for column in columns if column not in dataset]
        if missing:
            self.logger.warning(f"Multi-select group '{group_name}' columns not found: {missing}")
        if not present:
            self.logger.warning(f"Multi-select group '{group_name}' has no columns in the dataset")
            return None

        selected = np.column_stack([
            ~dataset.column(column).str.lower().isin(NOT_SELECTED).to_numpy(dtype=bool)
            for column in present
        ])
        any_selected = selected.any(axis=1)

        bases = layout.bases(any_selected).tolist()
        counts = layout.counts(selected)
        absolute = [row.tolist() for row in counts] + [list(bases)]
        percentage = [_percent_row(row, bases) for row in absolute]

        validation_errors = []
        if bases[0] == 0:
            validation_errors.append(
                f"No respondents found who answered any option in multi-select group: {group_name}"
            )
            self.logger.warning(validation_errors[-1])

        return self._package(
            name=f"{group_name}_by_{layout.suffix}",
            display_name=display_name or group_name,
            question_type=QuestionType.MULTIPLE_CHOICE,
            layout=layout,
            row_labels=remove_shared_prefix(present) + [NET_LABEL],
            absolute=absolute,
            percentage=percentage,
            base_values=bases,
            validation_errors=validation_errors
        )

    @staticmethod
    def _rank_indicator(dataset: TabularDataset, column: Optional[str]) -> np.ndarray:
        """Rows holding a rank value (non-blank and not '0') in ``column``."""
        if column is None or column not in dataset:
            return np.zeros(len(dataset), dtype=bool)
        blank = dataset.blank_mask(column).to_numpy(dtype=bool)
        zero = (dataset.column(column) == '0').to_numpy(dtype=bool)
        return ~blank & ~zero

    def create_rank_question_cross_tab(self,
                                       dataset: TabularDataset,
                                       structure: RankQuestionStructure,
                                       layout: BannerLayout,
                                       display_name: Optional[str] = None) -> CrossTabResult:
        """
        Cross-tabulate a ranking battery.

        The base is the number of respondents ranking anything. Five
        sections follow: rank 1, 2 and 3 only, ranks 1+2 and ranks 1+2+3,
        each headed by a separator row and holding one row per option.
        Combined sections add the true counts of their rank levels.
        """
        n_options = len(structure.options)
        any_rank = np.zeros(len(dataset), dtype=bool)
        for column in structure.all_columns():
            any_rank |= self._rank_indicator(dataset, column)
        bases = layout.bases(any_rank).tolist()

        level_counts = []
        for level in (1, 2, 3):
            level_columns = structure.column_mapping.get(level, [])
            indicators = np.column_stack([
                self._rank_indicator(dataset, level_columns[i] if i < len(level_columns) else None)
                for i in range(n_options)
            ]) if n_options else np.zeros((len(dataset), 0), dtype=bool)
            level_counts.append(layout.counts(indicators))

        rank1, rank2, rank3 = level_counts
        section_counts = [rank1, rank2, rank3, rank1 + rank2, rank1 + rank2 + rank3]

        row_labels, absolute, percentage = [], [], []
        section_percentages = []
        for label, counts in zip(RANK_SECTIONS, section_counts):
            row_labels.append(f"--- {label.upper()} ---")
            absolute.append([0] * len(bases))
            percentage.append([''] * len(bases))

            section_pct = []
            for option_index, option in enumerate(structure.options):
                row = counts[option_index].tolist()
                row_labels.append(option)
                absolute.append(row)
                percentage.append(_percent_row(row, bases))
                section_pct.append([percentage_of(count, base) for count, base in zip(row, bases)])
            section_percentages.append(section_pct)

        validation_errors = []
        if bases[0] == 0:
            validation_errors.append(
                f"No respondents found who provided rankings for: {structure.question_name}"
            )
            self.logger.warning(validation_errors[-1])

        result = self._package(
            name=f"{structure.question_name}_ranking_by_{layout.suffix}",
            display_name=display_name or structure.question_name,
            question_type=QuestionType.RANKING,
            layout=layout,
            row_labels=row_labels,
            absolute=absolute,
            percentage=percentage,
            base_values=bases,
            validation_errors=validation_errors
        )
        result.ranking_calculations = RankingCalculations(
            rank1_only=section_percentages[0],
            rank2_only=section_percentages[1],
            rank3_only=section_percentages[2],
            rank1_plus2=section_percentages[3],
            rank1_plus2_plus3=section_percentages[4],
            rank_options=list(structure.options),
            max_ranks=structure.max_ranks
        )
        return result

    def create_open_ended_cross_tab(self,
                                    dataset: TabularDataset,
                                    variable: str,
                                    layout: BannerLayout,
                                    display_name: Optional[str] = None,
                                    coding_settings: Optional[CodingSettings] = None
                                    ) -> Optional[CrossTabResult]:
        """
        Cross-tabulate free-text responses by keyword theme.

        Rows are the full response count, a separator and one row per
        theme found (unmatched responses fall under "Other"), sorted by
        count. Each response counts towards exactly one theme.
        """
        column = dataset.column(variable)
        valid = ~dataset.blank_mask(variable).to_numpy(dtype=bool)
        responses = column[valid].tolist()

        if not responses:
            self.logger.warning(f"No valid responses found for open-ended question: {variable}")
            return None

        bases = layout.bases(valid).tolist()

        theme_names = [theme.name for theme in THEME_LIBRARY] + [OTHER_THEME]
        row_themes = column.map(_theme_name).where(valid, '')

        indicators = np.column_stack([(row_themes == name).to_numpy(dtype=bool) for name in theme_names])
        theme_counts = layout.counts(indicators)
        order = sorted(
            (i for i in range(len(theme_names)) if theme_counts[i][0] > 0),
            key=lambda i: -theme_counts[i][0]
        )

        row_labels = [FULL_RESPONSES_LABEL, THEMES_SEPARATOR]
        absolute = [list(bases), [0] * len(bases)]
        percentage = [_percent_row(bases, bases), [''] * len(bases)]

        themes = [OpenEndedTheme(
            theme='Full Responses',
            count=bases[0],
            percentage=percentage_of(bases[0], bases[0]),
            samples=responses[:10],
            cross_tab_data={
                'absolute': list(bases),
                'percentage': list(percentage[0]),
                'headers': list(layout.headers)
            }
        )]

        for i in order:
            row = theme_counts[i].tolist()
            pct_row = _percent_row(row, bases)
            row_labels.append(theme_names[i])
            absolute.append(row)
            percentage.append(pct_row)
            themes.append(OpenEndedTheme(
                theme=theme_names[i],
                count=row[0],
                percentage=percentage_of(row[0], bases[0]),
                samples=column[(row_themes == theme_names[i]).to_numpy(dtype=bool)].tolist()[:5],
                cross_tab_data={
                    'absolute': row,
                    'percentage': pct_row,
                    'headers': list(layout.headers)
                }
            ))

        result = self._package(
            name=f"{variable}_themes_by_{layout.suffix}",
            display_name=display_name or variable,
            question_type=QuestionType.OPEN_ENDED,
            layout=layout,
            row_labels=row_labels,
            absolute=absolute,
            percentage=percentage,
            base_values=bases,
            validation_errors=[]
        )
        result.open_ended_themes = themes

        if coding_settings is not None:
            result.open_end_coding = OpenEndCoder(coding_settings).code_responses(
                column.tolist(), variable)
        return result


def generate_cross_tabs(dataset: TabularDataset,
                        config: AnalysisConfig,
                        coding_settings: Optional[CodingSettings] = None,
                        alpha: float = 0.05) -> List[CrossTabResult]:
    """Generate all configured tables with a default CrossTabEngine."""
    return CrossTabEngine(alpha=alpha).generate_cross_tabs(dataset, config, coding_settings)
