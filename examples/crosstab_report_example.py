"""
Example cross-tabulation report built with SurveyCrossTabTool.

This example demonstrates the full workflow from data loading through
Excel export for a typical customer survey with a multi-select battery,
a ranking battery, a rating scale and an open-ended comment question.
"""

import numpy as np
import pandas as pd

from SurveyCrossTabTool import (
    CrossTabTool, CodingSettings, FilterCondition, FilterOperator, QuestionType
)

PLATFORMS = ['Facebook', 'Instagram', 'TikTok', 'LinkedIn']
FEATURES = ['Price', 'Quality', 'Delivery']
COMMENTS = [
    'The price is too expensive for what you get',
    'Great customer service and friendly staff',
    'Delivery was slow and the wait was long',
    'Cheap price and good value overall',
    'Easy to find what I need, very convenient',
    'Staff were helpful and professional',
    '',
]


def create_sample_survey_data(n_responses=500):
    """Create sample survey data for demonstration."""
    np.random.seed(42)

    data = {
        'Respondent ID': range(1, n_responses + 1),
        'Gender': np.random.choice(['Male', 'Female'], n_responses, p=[0.48, 0.52]),
        'Region': np.random.choice(['North', 'South', 'East', 'West'], n_responses),
        'Age group': np.random.choice(['18-34', '35-54', '55+'], n_responses, p=[0.35, 0.40, 0.25]),
        'Please rate your overall satisfaction': np.random.choice(
            [1, 2, 3, 4, 5], n_responses, p=[0.05, 0.10, 0.25, 0.40, 0.20]
        ),
        'Any other comments?': np.random.choice(COMMENTS, n_responses),
    }

    # Select-all-that-apply battery stored as 1/0 flags
    for platform in PLATFORMS:
        data[f"Which platforms do you use? - {platform}"] = np.random.choice(
            [0, 1], n_responses, p=[0.55, 0.45]
        )

    df = pd.DataFrame(data)

    # Ranking battery: each respondent ranks two of the three features
    for rank in (1, 2):
        for feature in FEATURES:
            df[f"Feature_Rank{rank}_{feature}"] = ''
    for i in range(n_responses):
        first, second = np.random.choice(FEATURES, 2, replace=False)
        df.loc[i, f"Feature_Rank1_{first}"] = '1'
        df.loc[i, f"Feature_Rank2_{second}"] = '1'

    return df


def main():
    """Run the cross-tabulation report example."""
    print("=" * 60)
    print("CROSS-TABULATION REPORT EXAMPLE")
    print("=" * 60)

    # Step 1: Create sample data
    print("\n1. Creating sample survey data...")
    survey_data = create_sample_survey_data()
    survey_data.to_csv('sample_survey_data.csv', index=False)
    print(f"   - Created survey with {len(survey_data)} responses")
    print(f"   - {len(survey_data.columns)} variables")
    print("   - Sample data saved to 'sample_survey_data.csv'")

    # Step 2: Initialize the tool and load the data
    print("\n2. Loading survey data...")
    tool = CrossTabTool(alpha=0.05)
    dataset = tool.load_data('sample_survey_data.csv')
    print(f"   - Loaded {len(dataset)} records")

    # Step 3: Structure detection
    print("\n3. Detecting question structure...")
    # Ranking cells hold a 1 flag, so the battery is declared up front
    for column in dataset.headers:
        if column.startswith('Feature_Rank'):
            tool.analysis_config.question_types[column] = QuestionType.RANKING
    structure = tool.detect_structure()

    for root, columns in structure['multi_select_groups'].items():
        print(f"   - Multi-select battery: {root} ({len(columns)} options)")
    for battery in structure['ranking_batteries']:
        print(f"   - Ranking battery: {battery.question_name} "
              f"({len(battery.options)} options, {battery.max_ranks} ranks)")
    for column, q_type in structure['question_types'].items():
        if not column.startswith('Feature_Rank'):
            print(f"     * {column}: {q_type.value}")

    # Step 4: Report definition
    print("\n4. Configuring tables and banners...")
    config = tool.analysis_config
    config.table_variables = [
        'Please rate your overall satisfaction',
        'Which platforms do you use?',
        'Feature',
        'Any other comments?',
    ]
    config.banner_variables = ['Gender', 'Region']
    config.table_names = {'Please rate your overall satisfaction': 'Overall satisfaction'}
    config.filters = {
        'adults': FilterCondition('Age group', FilterOperator.NOT_EQUALS, '18-34', id='adults')
    }
    print(f"   - {len(config.table_variables)} tables by {len(config.banner_variables)} banners")

    # Step 5: Cross-tabulation
    print("\n5. Creating cross-tabulations...")
    results = tool.generate_cross_tabs(coding_settings=CodingSettings(max_categories=5))

    for result in results:
        n_rows, n_cols = result.shape()
        print(f"   - {result.display_name}: {n_rows} rows x {n_cols} columns, base {result.base_values[0]}")
        flagged = sum(1 for row in result.significance_flags for flag in row if flag)
        if flagged:
            print(f"     * {flagged} significant differences versus total")
        for error in result.validation_errors:
            print(f"     * Warning: {error}")

    # Step 6: Open-ended coding
    print("\n6. Coding open-ended comments...")
    coding = tool.code_open_ended('Any other comments?', settings=CodingSettings(use_semantic_clustering=False))
    for category in coding.categories:
        print(f"   - {category.name}: {category.response_count} responses")

    # Step 7: Export
    print("\n7. Exporting Excel report...")
    path = tool.export_report('crosstab_report.xlsx')
    print(f"   - Report saved to '{path}'")

    # Step 8: Summary
    print("\n8. Analysis Summary")
    print("=" * 40)
    summary = tool.get_analysis_summary()
    print(f"Dataset: {summary['n_records']} responses, {summary['n_variables']} variables")
    print(f"Tables: {summary['n_tables']} ({summary['tables_with_warnings']} with warnings)")
    print(f"Significance level: {summary['alpha']}")

    print("\n" + "=" * 60)
    print("ANALYSIS COMPLETE")
    print("=" * 60)

    return tool


if __name__ == "__main__":
    main()

    print("\nCheck the generated files:")
    print("- sample_survey_data.csv: Sample survey data")
    print("- crosstab_report.xlsx: Cross-tabulation report")
