"""
Tests for question type detection and battery structure detection.
"""

import unittest

from SurveyCrossTabTool.data_processing.dataset import TabularDataset
from SurveyCrossTabTool.data_processing.models import QuestionType
from SurveyCrossTabTool.question_analysis.structure_detector import (
    StructureDetector, detect_multi_select_batteries, detect_ranking_batteries,
    extract_question_root, split_rank_header
)
from SurveyCrossTabTool.question_analysis.type_detector import TypeDetector, is_date_like


class TestTypeDetector(unittest.TestCase):
    """Test cases for the question type cascade."""

    def setUp(self):
        self.detector = TypeDetector()

    def test_no_valid_data(self):
        result = self.detector.detect_column_type('Q1', ['', 'null', 'N/A'])
        self.assertEqual(result.type, QuestionType.SINGLE_CHOICE)
        self.assertEqual(result.confidence, 0.1)

    def test_date(self):
        values = [f"2024-01-{day:02d}" for day in range(1, 21)]
        result = self.detector.detect_column_type('Start date', values)
        self.assertEqual(result.type, QuestionType.DATE)
        self.assertEqual(result.confidence, 0.95)

    def test_numbers_are_not_dates(self):
        self.assertFalse(is_date_like('2024'))
        self.assertTrue(is_date_like('12/31/2023'))

    def test_binary(self):
        result = self.detector.detect_column_type('Gender', ['Male', 'Female'] * 10)
        self.assertEqual(result.type, QuestionType.BINARY)
        self.assertEqual(result.confidence, 0.95)

    def test_scale(self):
        values = ['1', '2', '3', '4', '5'] * 4
        result = self.detector.detect_column_type('Please rate the product', values)
        self.assertEqual(result.type, QuestionType.SCALE)
        self.assertEqual(result.confidence, 0.9)
        self.assertIn('1-5', result.reasoning)

    def test_numeric(self):
        values = [str(age) for age in range(18, 60)]
        result = self.detector.detect_column_type('Respondent age', values)
        self.assertEqual(result.type, QuestionType.NUMERIC)

    def test_open_ended(self):
        values = [
            'The staff were very friendly and helpful',
            'Checkout took far too long for a small order',
            'I would like more vegetarian choices on the menu',
            'Parking around the store is hard to find',
            'Prices went up noticeably compared with last year',
            'Everything was fine, nothing special to report',
        ]
        result = self.detector.detect_column_type('Any other comments?', values)
        self.assertEqual(result.type, QuestionType.OPEN_ENDED)
        self.assertEqual(result.confidence, 0.9)

    def test_ranking(self):
        values = [str(rank) for rank in range(1, 13)] * 2
        result = self.detector.detect_column_type('Rank your favourite brands', values)
        self.assertEqual(result.type, QuestionType.RANKING)

    def test_multiple_choice_indicator(self):
        result = self.detector.detect_column_type('Brand A', ['x', 'selected'] * 5)
        self.assertEqual(result.type, QuestionType.MULTIPLE_CHOICE)

    def test_single_choice(self):
        result = self.detector.detect_column_type('Region', ['North', 'South', 'East'] * 5)
        self.assertEqual(result.type, QuestionType.SINGLE_CHOICE)
        self.assertEqual(result.confidence, 0.7)

    def test_auto_detect_skips_multi_select_columns(self):
        dataset = TabularDataset.from_records(
            ['Gender', 'Brands - A', 'Brands - B'],
            [['Male', '1', '0'], ['Female', '0', '1']] * 5
        )
        types = self.detector.auto_detect_question_types(
            dataset, {'Brands': ['Brands - A', 'Brands - B']}
        )
        self.assertEqual(types, {'Gender': QuestionType.BINARY})


class TestStructureDetector(unittest.TestCase):
    """Test cases for multi-select and ranking battery detection."""

    def setUp(self):
        self.detector = StructureDetector()
        self.platform_headers = [
            'Which platforms do you use? - Facebook',
            'Which platforms do you use? - Twitter',
            'Which platforms do you use? - Instagram',
        ]

    def test_extract_question_root(self):
        self.assertEqual(extract_question_root('Which platforms do you use? - Facebook'),
                         'Which platforms do you use?')
        self.assertEqual(extract_question_root('Overall satisfaction (Product)'), 'Overall satisfaction')
        self.assertEqual(extract_question_root('How likely are you to recommend us today'),
                         'How likely are you to')

    def test_detect_multi_select_batteries(self):
        sample_rows = [
            dict(zip(self.platform_headers, ['1', '0', '1'])),
            dict(zip(self.platform_headers, ['0', '1', '0'])),
        ]
        groups = detect_multi_select_batteries(self.platform_headers + ['Gender'], sample_rows)

        self.assertEqual(len(groups), 1)
        group = groups[0]
        self.assertEqual(group.question_root, 'Which platforms do you use?')
        self.assertEqual(group.columns, self.platform_headers)
        self.assertGreaterEqual(group.confidence, 0.7)
        self.assertLessEqual(group.confidence, 1.0)
        self.assertIn('flag-based responses', group.details['reasoning_text'])

    def test_headers_only_scoring(self):
        groups = self.detector.detect_multi_select_batteries(self.platform_headers)
        # Base, consistent structure and keyword scores
        self.assertAlmostEqual(groups[0].confidence, 0.75)

    def test_short_roots_are_ignored(self):
        groups = self.detector.detect_multi_select_batteries(['Q1 - A', 'Q1 - B'])
        self.assertEqual(groups, [])

    def test_split_rank_header(self):
        self.assertEqual(
            split_rank_header('Q5. How satisfied are you? - Very Satisfied_Rank1'),
            ('Q5. How satisfied are you?', 'Very Satisfied', 1)
        )
        self.assertEqual(split_rank_header('Brands_Rank_2_Nike'), ('Brands', 'Nike', 2))
        self.assertIsNone(split_rank_header('Gender'))

    def test_detect_ranking_batteries(self):
        options = ['Very Satisfied', 'Satisfied', 'Neutral']
        headers = [f"Q5. How satisfied are you? - {option}_Rank{rank}"
                   for rank in (1, 2) for option in options]
        question_types = {header: QuestionType.RANKING for header in headers}

        structures = detect_ranking_batteries(headers + ['Gender'], question_types)

        self.assertEqual(len(structures), 1)
        structure = structures[0]
        self.assertEqual(structure.question_name, 'Q5. How satisfied are you?')
        self.assertEqual(structure.options, options)
        self.assertEqual(structure.max_ranks, 2)
        self.assertEqual(structure.rank1_columns, headers[:3])
        self.assertEqual(structure.rank2_columns, headers[3:])
        self.assertEqual(structure.rank3_columns, [])

    def test_uneven_rank_groups_are_rejected(self):
        headers = ['Brands_Rank1_Nike', 'Brands_Rank1_Adidas', 'Brands_Rank2_Nike']
        question_types = {header: 'ranking' for header in headers}
        self.assertEqual(self.detector.detect_ranking_batteries(headers, question_types), [])

    def test_rank_columns_follow_option_order(self):
        headers = ['Brands_Rank1_Nike', 'Brands_Rank1_Adidas',
                   'Brands_Rank2_Adidas', 'Brands_Rank2_Nike']
        question_types = {header: QuestionType.RANKING for header in headers}

        structure = self.detector.detect_ranking_batteries(headers, question_types)[0]
        self.assertEqual(structure.options, ['Nike', 'Adidas'])
        self.assertEqual(structure.rank1_columns, ['Brands_Rank1_Nike', 'Brands_Rank1_Adidas'])
        self.assertEqual(structure.rank2_columns, ['Brands_Rank2_Nike', 'Brands_Rank2_Adidas'])

    def test_mismatched_rank_options_are_rejected(self):
        headers = ['Brands_Rank1_Nike', 'Brands_Rank1_Adidas',
                   'Brands_Rank2_Nike', 'Brands_Rank2_Puma']
        question_types = {header: QuestionType.RANKING for header in headers}
        self.assertEqual(self.detector.detect_ranking_batteries(headers, question_types), [])

    def test_non_ranking_columns_are_ignored(self):
        headers = ['Brands_Rank1_Nike', 'Brands_Rank2_Nike']
        question_types = {header: QuestionType.SCALE for header in headers}
        self.assertEqual(self.detector.detect_ranking_batteries(headers, question_types), [])


if __name__ == '__main__':
    unittest.main()
