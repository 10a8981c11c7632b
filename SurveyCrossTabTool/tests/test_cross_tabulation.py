"""
Tests for the cross-tabulation engine.

Covers regular, multi-select, ranking and open-ended tables, banner
layout, filtering and the invariants shared by every result.
"""

import unittest

from SurveyCrossTabTool.categorical_analysis.cross_tabulation import (
    NET_LABEL, TOTAL_HEADER, CrossTabEngine, generate_cross_tabs
)
from SurveyCrossTabTool.categorical_analysis.significance_tests import HIGHER_FLAG, LOWER_FLAG
from SurveyCrossTabTool.data_processing.dataset import TabularDataset
from SurveyCrossTabTool.data_processing.models import (
    AnalysisConfig, BannerStructure, CodingSettings, CustomVariable, CustomVariableType,
    FilterCondition, FilterOperator, LogicalOperator, NestedFilterGroup, QuestionType
)


def gender_by_region_dataset():
    """60 Male and 40 Female respondents split over North and South."""
    rows = (
        [['Male', 'North']] * 30 + [['Female', 'North']] * 10 +
        [['Male', 'South']] * 30 + [['Female', 'South']] * 30
    )
    return TabularDataset.from_records(['Gender', 'Region'], rows)


def assert_result_shape(test, result):
    n_rows, n_cols = result.shape()
    test.assertEqual(len(result.row_labels), n_rows)
    test.assertEqual(len(result.percentage), n_rows)
    test.assertEqual(len(result.significance_flags), n_rows)
    test.assertEqual(len(result.base_values), n_cols)
    for matrix in (result.absolute, result.percentage, result.significance_flags):
        for row in matrix:
            test.assertEqual(len(row), n_cols)
    for row in result.significance_flags:
        test.assertEqual(row[0], '')


class TestRegularCrossTab(unittest.TestCase):
    """Test cases for single-column tables."""

    def setUp(self):
        """Set up test fixtures."""
        self.dataset = gender_by_region_dataset()
        self.config = AnalysisConfig(
            table_variables=['Gender'],
            banner_variables=['Region'],
            question_types={'Gender': QuestionType.BINARY},
            table_names={'Gender': 'Respondent gender'}
        )

    def test_gender_by_region(self):
        results = generate_cross_tabs(self.dataset, self.config)
        self.assertEqual(len(results), 1)
        result = results[0]

        self.assertEqual(result.name, 'Gender_by_Region')
        self.assertEqual(result.display_name, 'Respondent gender')
        self.assertEqual(result.headers, [TOTAL_HEADER, 'North', 'South'])
        self.assertEqual(result.row_labels, ['Female', 'Male', TOTAL_HEADER])
        self.assertEqual(result.base_values, [100, 40, 60])

        male = result.row_labels.index('Male')
        female = result.row_labels.index('Female')
        self.assertEqual(result.absolute[male], [60, 30, 30])
        self.assertEqual(result.absolute[female], [40, 10, 30])
        self.assertEqual(result.percentage[male], ['60%', '75%', '50%'])
        self.assertEqual(result.percentage[female], ['40%', '25%', '50%'])
        self.assertEqual(result.absolute[-1], [100, 40, 60])
        self.assertEqual(result.percentage[-1], ['100%', '100%', '100%'])

        # North Male is 75% vs 60% overall: z = 1.67, p = 0.094
        for row in result.significance_flags:
            self.assertEqual(row, ['', '', ''])
        self.assertEqual(result.validation_errors, [])
        assert_result_shape(self, result)

    def test_gender_by_region_relaxed_alpha(self):
        result = generate_cross_tabs(self.dataset, self.config, alpha=0.1)[0]
        male = result.row_labels.index('Male')
        female = result.row_labels.index('Female')
        self.assertEqual(result.significance_flags[male], ['', HIGHER_FLAG, ''])
        self.assertEqual(result.significance_flags[female], ['', LOWER_FLAG, ''])

    def test_banner_structure(self):
        result = generate_cross_tabs(self.dataset, self.config)[0]
        self.assertEqual(result.banner_structure, [BannerStructure('Region', ['North', 'South'], 1, 2)])
        self.assertEqual(result.banner_question, 'Region')
        self.assertEqual(result.banner_answers, ['North', 'South'])

    def test_multiple_banners(self):
        dataset = TabularDataset.from_records(
            ['Gender', 'Region', 'Age group'],
            [['Male', 'North', '18-34'], ['Female', 'South', '35+'], ['Male', 'South', '35+']]
        )
        config = AnalysisConfig(table_variables=['Gender'], banner_variables=['Region', 'Age group'])
        result = CrossTabEngine().generate_cross_tabs(dataset, config)[0]

        self.assertEqual(result.headers, [TOTAL_HEADER, 'North', 'South', '18-34', '35+'])
        self.assertEqual(result.absolute[result.row_labels.index('Male')], [2, 1, 1, 1, 1])
        self.assertEqual([(b.start_index, b.end_index) for b in result.banner_structure], [(1, 2), (3, 4)])
        self.assertEqual(result.name, 'Gender_by_Region_Age group')
        assert_result_shape(self, result)

    def test_blank_cells_are_excluded_from_bases(self):
        dataset = TabularDataset.from_records(
            ['Q1', 'Region'],
            [['Yes', 'North'], ['', 'North'], ['No', 'South'], ['null', 'South'], ['Yes', '']]
        )
        config = AnalysisConfig(table_variables=['Q1'], banner_variables=['Region'])
        result = generate_cross_tabs(dataset, config)[0]

        self.assertEqual(result.headers, [TOTAL_HEADER, 'North', 'South'])
        self.assertEqual(result.base_values, [3, 1, 1])
        self.assertEqual(result.row_labels, ['No', 'Yes', TOTAL_HEADER])

    def test_empty_dataset(self):
        dataset = TabularDataset.from_records(['Gender', 'Region'], [])
        engine = CrossTabEngine()
        layout = engine.build_banner_layout(dataset, ['Region'])

        result = engine.create_regular_cross_tab(dataset, 'Gender', QuestionType.SINGLE_CHOICE, layout)
        self.assertIsNone(result)
        self.assertEqual(engine.generate_cross_tabs(dataset, self.config), [])

    def test_unknown_table_variable_is_skipped(self):
        config = AnalysisConfig(table_variables=['Missing', 'Gender'], banner_variables=['Region'])
        results = generate_cross_tabs(self.dataset, config)
        self.assertEqual([result.name for result in results], ['Gender_by_Region'])

    def test_filters_are_applied(self):
        config = AnalysisConfig(
            table_variables=['Gender'],
            banner_variables=['Region'],
            filters={'south': FilterCondition('Region', FilterOperator.EQUALS, 'South')},
            nested_filters=[NestedFilterGroup(LogicalOperator.AND, [])]
        )
        result = generate_cross_tabs(self.dataset, config)[0]

        self.assertEqual(result.headers, [TOTAL_HEADER, 'South'])
        self.assertEqual(result.base_values, [60, 60])
        self.assertEqual(result.applied_filters, config.nested_filters)

    def test_percentage_sum_warning(self):
        # Three equal categories round to 33% each
        dataset = TabularDataset.from_records(['Q1'], [['A'], ['B'], ['C']] * 2)
        config = AnalysisConfig(table_variables=['Q1'])
        result = generate_cross_tabs(dataset, config)[0]
        self.assertEqual(result.percentage[0], ['33%'])
        self.assertEqual(result.validation_errors, [])

        # Forty categories of 2.5% each all round up
        dataset = TabularDataset.from_records(['Q1'], [[f"c{index:02d}"] for index in range(40)])
        result = generate_cross_tabs(dataset, config)[0]
        self.assertEqual(len(result.validation_errors), 1)
        self.assertIn('Column "Total"', result.validation_errors[0])

    def test_custom_variable_is_not_supported(self):
        config = AnalysisConfig(
            table_variables=['Age band'],
            custom_variables={'Age band': CustomVariable('Age band', 'Age band', CustomVariableType.RECODE)}
        )
        with self.assertRaises(NotImplementedError):
            generate_cross_tabs(self.dataset, config)

    def test_idempotence(self):
        first = [result.to_dict() for result in generate_cross_tabs(self.dataset, self.config)]
        second = [result.to_dict() for result in generate_cross_tabs(self.dataset, self.config)]
        self.assertEqual(first, second)


class TestNumericCrossTabs(unittest.TestCase):
    """Test cases for scale, numeric and ranking column blocks."""

    def test_scale_boxes_and_statistics(self):
        dataset = TabularDataset.from_records(['Satisfaction'], [['5'], ['5'], ['4'], ['3'], ['1']])
        config = AnalysisConfig(table_variables=['Satisfaction'],
                                question_types={'Satisfaction': 'scale'})
        result = generate_cross_tabs(dataset, config)[0]

        scale = result.scale_calculations
        self.assertEqual((scale.scale_min, scale.scale_max), (1, 5))
        self.assertEqual(scale.top_box, [40])
        self.assertEqual(scale.top2_box, [60])
        self.assertEqual(scale.bottom_box, [20])
        self.assertEqual(scale.bottom2_box, [20])
        self.assertIsNone(scale.top3_box)

        measures = result.statistical_measures
        self.assertAlmostEqual(measures.mean[0], 3.6)
        self.assertAlmostEqual(measures.median[0], 4.0)
        self.assertAlmostEqual(measures.standard_deviation[0], 1.4967, places=4)
        self.assertEqual(measures.headers, [TOTAL_HEADER])

    def test_three_box_scores_for_long_scales(self):
        dataset = TabularDataset.from_records(['NPS'], [[str(v)] for v in range(0, 11)])
        config = AnalysisConfig(table_variables=['NPS'], question_types={'NPS': 'scale'})
        scale = generate_cross_tabs(dataset, config)[0].scale_calculations

        self.assertEqual(scale.top3_box, [27])
        self.assertEqual(scale.bottom3_box, [27])

    def test_numeric_statistics_per_banner(self):
        dataset = TabularDataset.from_records(
            ['Age', 'Gender'],
            [['20', 'Male'], ['40', 'Male'], ['30', 'Female'], ['n/a', 'Female']]
        )
        config = AnalysisConfig(table_variables=['Age'], banner_variables=['Gender'],
                                question_types={'Age': 'numeric'})
        result = generate_cross_tabs(dataset, config)[0]

        measures = result.statistical_measures
        self.assertEqual(measures.headers, [TOTAL_HEADER, 'Female', 'Male'])
        self.assertEqual(measures.mean, [30.0, 30.0, 30.0])
        self.assertAlmostEqual(measures.standard_deviation[2], 10.0)
        self.assertIsNone(result.scale_calculations)

    def test_ranking_column_boxes(self):
        dataset = TabularDataset.from_records(['Rank'], [['1'], ['1'], ['2'], ['3'], ['4']])
        config = AnalysisConfig(table_variables=['Rank'], question_types={'Rank': 'ranking'})
        ranking = generate_cross_tabs(dataset, config)[0].ranking_calculations

        self.assertEqual(ranking.rank1_only, [[40]])
        self.assertEqual(ranking.rank2_only, [[20]])
        self.assertEqual(ranking.rank1_plus2, [[60]])
        self.assertEqual(ranking.rank1_plus2_plus3, [[80]])


class TestMultiSelectCrossTab(unittest.TestCase):
    """Test cases for multi-select battery tables."""

    def setUp(self):
        """Set up test fixtures."""
        self.columns = ['Which brands - Brand A', 'Which brands - Brand B', 'Which brands - Brand C']
        rows = []
        for index in range(10):
            rows.append([
                'Yes' if index < 7 else 'No',
                'Yes' if index >= 7 else 'No',
                'Yes' if index in (0, 9) else 'No',
                'North' if index % 2 == 0 else 'South',
            ])
        self.dataset = TabularDataset.from_records(self.columns + ['Region'], rows)
        self.config = AnalysisConfig(
            table_variables=['Brands'],
            banner_variables=['Region'],
            multi_select_groups={'Brands': self.columns}
        )

    def test_any_selection_base(self):
        result = generate_cross_tabs(self.dataset, self.config)[0]

        self.assertEqual(result.question_type, QuestionType.MULTIPLE_CHOICE)
        self.assertEqual(result.row_labels, ['A', 'B', 'C', NET_LABEL])
        self.assertEqual(result.base_values, [10, 5, 5])
        self.assertEqual(result.absolute[0], [7, 4, 3])
        self.assertEqual(result.percentage[0][0], '70%')
        self.assertEqual(result.percentage[1][0], '30%')
        self.assertEqual(result.absolute[-1], [10, 5, 5])
        self.assertEqual(result.name, 'Brands_by_Region')
        assert_result_shape(self, result)

    def test_percentages_may_exceed_one_hundred(self):
        result = generate_cross_tabs(self.dataset, self.config)[0]
        total = sum(int(row[0].rstrip('%')) for row in result.percentage[:-1])
        self.assertGreater(total, 100)
        self.assertEqual(result.validation_errors, [])

    def test_no_selections(self):
        dataset = TabularDataset.from_records(self.columns, [['No', '0', '']] * 3)
        config = AnalysisConfig(table_variables=['Brands'], multi_select_groups={'Brands': self.columns})
        result = generate_cross_tabs(dataset, config)[0]

        self.assertEqual(result.base_values, [0])
        self.assertEqual(result.percentage[0], ['0%'])
        self.assertEqual(len(result.validation_errors), 1)


class TestRankingBatteryCrossTab(unittest.TestCase):
    """Test cases for ranking battery tables."""

    def setUp(self):
        """Set up test fixtures."""
        self.options = ['Very Satisfied', 'Satisfied', 'Neutral']
        self.headers = [f"Q5. How satisfied are you? - {option}_Rank{rank}"
                        for rank in (1, 2) for option in self.options]
        rows = [
            ['1', '', '', '', '1', ''],
            ['1', '', '', '', '', '1'],
            ['', '1', '', '1', '', ''],
            ['', '', '', '', '', ''],
        ]
        self.dataset = TabularDataset.from_records(self.headers, rows)
        self.config = AnalysisConfig(
            table_variables=['Q5. How satisfied are you?'],
            question_types={header: QuestionType.RANKING for header in self.headers}
        )

    def test_rank_sections(self):
        result = generate_cross_tabs(self.dataset, self.config)[0]

        self.assertEqual(result.question_type, QuestionType.RANKING)
        self.assertEqual(result.base_values, [3])
        self.assertEqual(len(result.row_labels), 20)
        self.assertEqual(result.row_labels[0], '--- RANK 1 ONLY ---')
        self.assertEqual(result.row_labels[1:4], self.options)
        self.assertEqual(result.row_labels[12], '--- RANK 1 + 2 ---')

        self.assertEqual([row[0] for row in result.absolute[1:4]], [2, 1, 0])
        self.assertEqual([row[0] for row in result.absolute[5:8]], [1, 1, 1])
        self.assertEqual([row[0] for row in result.absolute[13:16]], [3, 2, 1])
        self.assertEqual(result.percentage[0], [''])
        self.assertEqual(result.percentage[1], ['67%'])
        assert_result_shape(self, result)

    def test_ranking_calculations(self):
        ranking = generate_cross_tabs(self.dataset, self.config)[0].ranking_calculations

        self.assertEqual(ranking.rank_options, self.options)
        self.assertEqual(ranking.max_ranks, 2)
        self.assertEqual(ranking.rank1_only, [[67], [33], [0]])
        self.assertEqual(ranking.rank3_only, [[0], [0], [0]])
        self.assertEqual(ranking.rank1_plus2, [[100], [67], [33]])

    def test_rank_levels_in_different_header_order(self):
        headers = ['Brands_Rank1_Nike', 'Brands_Rank1_Adidas',
                   'Brands_Rank2_Adidas', 'Brands_Rank2_Nike']
        dataset = TabularDataset.from_records(headers, [['', '', '', '1']] * 4)
        config = AnalysisConfig(
            table_variables=['Brands'],
            question_types={header: QuestionType.RANKING for header in headers}
        )

        result = generate_cross_tabs(dataset, config)[0]
        rank2_start = result.row_labels.index('--- RANK 2 ONLY ---') + 1

        self.assertEqual(result.row_labels[rank2_start:rank2_start + 2], ['Nike', 'Adidas'])
        self.assertEqual([row[0] for row in result.absolute[rank2_start:rank2_start + 2]], [4, 0])
        self.assertEqual(result.ranking_calculations.rank2_only, [[100], [0]])


class TestOpenEndedCrossTab(unittest.TestCase):
    """Test cases for open-ended theme tables."""

    def setUp(self):
        """Set up test fixtures."""
        self.dataset = TabularDataset.from_records(
            ['Comments', 'Region'],
            [
                ['The price is too expensive', 'North'],
                ['Great customer service and friendly staff', 'South'],
                ['Cheap price and good value', 'South'],
                ['', 'North'],
                ['Nothing to add', 'North'],
            ]
        )
        self.config = AnalysisConfig(
            table_variables=['Comments'],
            banner_variables=['Region'],
            question_types={'Comments': QuestionType.OPEN_ENDED}
        )

    def test_theme_rows(self):
        result = generate_cross_tabs(self.dataset, self.config)[0]

        self.assertEqual(result.row_labels, [
            'FULL RESPONSES', '--- THEMATIC ANALYSIS ---',
            'Price/Cost/Value', 'Customer Service', 'Other'
        ])
        self.assertEqual(result.base_values, [4, 2, 2])
        self.assertEqual(result.absolute[0], [4, 2, 2])
        self.assertEqual(result.absolute[2], [2, 1, 1])
        self.assertEqual(result.percentage[2], ['50%', '50%', '50%'])
        self.assertEqual(result.percentage[1], ['', '', ''])
        self.assertIsNone(result.open_end_coding)
        assert_result_shape(self, result)

    def test_open_ended_themes(self):
        themes = generate_cross_tabs(self.dataset, self.config)[0].open_ended_themes

        self.assertEqual(themes[0].theme, 'Full Responses')
        self.assertEqual(themes[0].count, 4)
        self.assertEqual(themes[0].percentage, 100)
        self.assertEqual(themes[1].theme, 'Price/Cost/Value')
        self.assertEqual(themes[1].percentage, 50)
        self.assertEqual(themes[1].samples, ['The price is too expensive', 'Cheap price and good value'])
        self.assertEqual(themes[1].cross_tab_data['headers'], [TOTAL_HEADER, 'North', 'South'])

    def test_coding_is_attached(self):
        settings = CodingSettings(use_semantic_clustering=False)
        result = generate_cross_tabs(self.dataset, self.config, coding_settings=settings)[0]

        coding = result.open_end_coding
        self.assertEqual(coding.question_column, 'Comments')
        self.assertEqual(len(coding.responses), 4)
        self.assertEqual([response.row_index for response in coding.responses], [0, 1, 2, 4])
        for response in coding.responses:
            self.assertIn(response.category_id, coding.category_ids())


if __name__ == '__main__':
    unittest.main()
