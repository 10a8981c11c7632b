"""
Main Cross-Tabulation Tool class.

This module provides the primary interface for building survey cross-tab
reports, integrating data loading, question structure detection, filtering,
table generation, open-ended coding and Excel export.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .data_processing import (
    DataLoader, FilterEngine, TabularDataset,
    AnalysisConfig, CodingSettings, CrossTabResult, DetectedMultiSelectGroup,
    FilterCondition, NestedFilterGroup, OpenEndCoding, QuestionType, RankQuestionStructure
)
from .categorical_analysis import CrossTabEngine
from .question_analysis import StructureDetector, TypeDetector
from .reporting import ReportExporter
from .text_analysis import OpenEndCoder


class CrossTabTool:
    """
    Survey cross-tabulation tool.

    This is the main interface that integrates all components, providing a
    unified API for the report workflow from data loading through export.

    Features:
    - CSV, Excel and JSON survey data loading
    - Multi-select and ranking battery detection
    - Heuristic question type detection
    - Simple and nested respondent filters
    - Banner tables with column-versus-total significance flags
    - Open-ended theme analysis and response coding
    - Excel report export with a table index
    """

    def __init__(self,
                 config_path: Optional[str] = None,
                 alpha: float = 0.05,
                 log_level: str = 'INFO'):
        """
        Initialize the Cross-Tabulation Tool.

        Parameters
        ----------
        config_path : str, optional
            Path to a JSON configuration file with optional ``analysis``,
            ``coding`` and ``alpha`` entries
        alpha : float, default 0.05
            Significance level, overridden by the configuration file
        log_level : str, default 'INFO'
            Logging level
        """
        # Setup logging
        logging.basicConfig(
            level=getattr(logging, log_level.upper()),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        self.logger = logging.getLogger(__name__)

        # Configuration
        self.config = self._load_config(config_path) if config_path else {}
        self.alpha = float(self.config.get('alpha', alpha))
        self.analysis_config = AnalysisConfig.from_dict(self.config.get('analysis', {}))
        self.coding_settings = (CodingSettings.from_dict(self.config['coding'])
                                if 'coding' in self.config else None)

        # Initialize components
        self.data_loader = DataLoader()
        self.type_detector = TypeDetector()
        self.structure_detector = StructureDetector()
        self.filter_engine = FilterEngine()
        self.cross_tab_engine = CrossTabEngine(alpha=self.alpha)

        # Data storage
        self.dataset: Optional[TabularDataset] = None
        self.results: List[CrossTabResult] = []

        self.logger.info("Cross-Tabulation Tool initialized successfully")

    def _require_dataset(self, dataset: Optional[TabularDataset]) -> TabularDataset:
        if dataset is not None:
            return dataset
        if self.dataset is None:
            raise ValueError("No data loaded. Call load_data() first.")
        return self.dataset

    def load_data(self, file_path: Union[str, Path], **kwargs) -> TabularDataset:
        """
        Load survey data from file.

        Parameters
        ----------
        file_path : str or Path
            Path to a CSV, TSV, Excel or JSON file
        **kwargs
            Additional arguments for the format reader

        Returns
        -------
        TabularDataset
            Loaded survey data
        """
        self.logger.info(f"Loading survey data from {file_path}")

        try:
            self.dataset = self.data_loader.load_data(file_path, **kwargs)
            self.logger.info(
                f"Successfully loaded {len(self.dataset)} records with "
                f"{len(self.dataset.headers)} variables"
            )
            return self.dataset

        except Exception as e:
            self.logger.error(f"Failed to load survey data: {e}")
            raise

    def detect_multi_select_groups(self,
                                   dataset: Optional[TabularDataset] = None,
                                   min_confidence: float = 0.0) -> List[DetectedMultiSelectGroup]:
        """
        Detect multi-select batteries from headers and sampled responses.

        Parameters
        ----------
        dataset : TabularDataset, optional
            Data to inspect. Uses the loaded data if not provided
        min_confidence : float, default 0.0
            Candidates below this confidence are dropped

        Returns
        -------
        list of DetectedMultiSelectGroup
        """
        dataset = self._require_dataset(dataset)
        groups = self.structure_detector.detect_multi_select_batteries(
            dataset.headers, dataset.sample_rows(self.structure_detector.sample_rows)
        )
        return [group for group in groups if group.confidence >= min_confidence]

    def detect_question_types(self,
                              dataset: Optional[TabularDataset] = None,
                              multi_select_groups: Optional[Mapping[str, List[str]]] = None
                              ) -> Dict[str, QuestionType]:
        """
        Detect the question type of every column outside the multi-select groups.

        Parameters
        ----------
        dataset : TabularDataset, optional
            Data to inspect. Uses the loaded data if not provided
        multi_select_groups : mapping, optional
            Group name to member columns. Defaults to the configured groups

        Returns
        -------
        dict
            Column name to QuestionType
        """
        dataset = self._require_dataset(dataset)
        if multi_select_groups is None:
            multi_select_groups = self.analysis_config.multi_select_groups

        try:
            return self.type_detector.auto_detect_question_types(dataset, dict(multi_select_groups))

        except Exception as e:
            self.logger.error(f"Question type detection failed: {e}")
            raise

    def detect_structure(self,
                         dataset: Optional[TabularDataset] = None,
                         min_confidence: float = 0.5) -> Dict[str, Any]:
        """
        Run the two-phase structure detection and update the configuration.

        Multi-select batteries are detected first and claimed into the
        configured groups, the remaining columns are typed and ranking
        batteries are found among the ranking columns.

        Parameters
        ----------
        dataset : TabularDataset, optional
            Data to inspect. Uses the loaded data if not provided
        min_confidence : float, default 0.5
            Multi-select candidates below this confidence are not claimed

        Returns
        -------
        dict
            ``multi_select_groups``, ``question_types`` and ``ranking_batteries``
        """
        dataset = self._require_dataset(dataset)
        self.logger.info("Detecting question structure")

        try:
            groups = dict(self.analysis_config.multi_select_groups)
            claimed = set(self.analysis_config.multi_select_columns())

            for group in self.detect_multi_select_groups(dataset, min_confidence):
                columns = [column for column in group.columns if column not in claimed]
                if len(columns) < 2 or group.question_root in groups:
                    continue
                groups[group.question_root] = columns
                claimed.update(columns)

            question_types = self.detect_question_types(dataset, groups)
            for column, q_type in self.analysis_config.question_types.items():
                question_types[column] = q_type

            ranking = self.structure_detector.detect_ranking_batteries(dataset.headers, question_types)

            self.analysis_config.multi_select_groups = groups
            self.analysis_config.question_types = question_types

            self.logger.info(
                f"Structure detection completed: {len(groups)} multi-select groups, "
                f"{len(ranking)} ranking batteries"
            )
            return {
                'multi_select_groups': groups,
                'question_types': question_types,
                'ranking_batteries': ranking
            }

        except Exception as e:
            self.logger.error(f"Structure detection failed: {e}")
            raise

    def detect_ranking_batteries(self,
                                 dataset: Optional[TabularDataset] = None,
                                 question_types: Optional[Mapping[str, QuestionType]] = None
                                 ) -> List[RankQuestionStructure]:
        """Detect ranking batteries among the columns typed as ranking."""
        dataset = self._require_dataset(dataset)
        if question_types is None:
            question_types = self.analysis_config.question_types
        return self.structure_detector.detect_ranking_batteries(dataset.headers, question_types)

    def apply_filters(self,
                      filters: Optional[Union[Mapping[str, FilterCondition], Iterable[FilterCondition]]] = None,
                      nested_filters: Optional[List[NestedFilterGroup]] = None,
                      dataset: Optional[TabularDataset] = None) -> TabularDataset:
        """
        Keep the rows satisfying every filter.

        Parameters
        ----------
        filters : mapping or iterable of FilterCondition, optional
            Simple conditions. Defaults to the configured filters
        nested_filters : list of NestedFilterGroup, optional
            Filter trees. Defaults to the configured trees
        dataset : TabularDataset, optional
            Data to filter. Uses the loaded data if not provided

        Returns
        -------
        TabularDataset
            New dataset with the kept rows
        """
        dataset = self._require_dataset(dataset)
        if filters is None:
            filters = self.analysis_config.filters
        if nested_filters is None:
            nested_filters = self.analysis_config.nested_filters

        try:
            return self.filter_engine.apply_filters(dataset, filters, nested_filters)

        except Exception as e:
            self.logger.error(f"Filtering failed: {e}")
            raise

    def generate_cross_tabs(self,
                            config: Optional[Union[AnalysisConfig, Dict[str, Any]]] = None,
                            dataset: Optional[TabularDataset] = None,
                            coding_settings: Optional[CodingSettings] = None) -> List[CrossTabResult]:
        """
        Generate every configured table.

        Parameters
        ----------
        config : AnalysisConfig or dict, optional
            Report definition. Uses the configured one if not provided
        dataset : TabularDataset, optional
            Data to analyze. Uses the loaded data if not provided
        coding_settings : CodingSettings, optional
            Adds response coding to open-ended tables

        Returns
        -------
        list of CrossTabResult
        """
        dataset = self._require_dataset(dataset)
        if config is None:
            config = self.analysis_config
        elif isinstance(config, dict):
            config = AnalysisConfig.from_dict(config)
        if coding_settings is None:
            coding_settings = self.coding_settings

        if not config.table_variables:
            raise ValueError("No table variables configured")

        self.logger.info(
            f"Creating cross-tabulations: {len(config.table_variables)} tables by "
            f"{len(config.banner_variables)} banner variables"
        )

        try:
            self.results = self.cross_tab_engine.generate_cross_tabs(dataset, config, coding_settings)
            self.logger.info(f"Cross-tabulation completed with {len(self.results)} tables")
            return self.results

        except Exception as e:
            self.logger.error(f"Cross-tabulation failed: {e}")
            raise

    def code_open_ended(self,
                        column: str,
                        dataset: Optional[TabularDataset] = None,
                        settings: Optional[CodingSettings] = None) -> OpenEndCoding:
        """
        Code the free-text responses of one column.

        Parameters
        ----------
        column : str
            Open-ended column
        dataset : TabularDataset, optional
            Data to code. Uses the loaded data if not provided
        settings : CodingSettings, optional
            Coding settings. Defaults to the configured ones

        Returns
        -------
        OpenEndCoding
        """
        dataset = self._require_dataset(dataset)
        if column not in dataset:
            raise ValueError(f"Column '{column}' not found in dataset")

        try:
            coder = OpenEndCoder(settings or self.coding_settings)
            coding = coder.code_responses(dataset.column(column).tolist(), column)
            self.logger.info(
                f"Coded {len(coding.responses)} responses into {len(coding.categories)} categories"
            )
            return coding

        except Exception as e:
            self.logger.error(f"Open-ended coding failed: {e}")
            raise

    def export_report(self,
                      file_path: Union[str, Path],
                      results: Optional[List[CrossTabResult]] = None,
                      include_counts: bool = True,
                      include_percentages: bool = True) -> Path:
        """
        Export tables to an Excel workbook.

        Parameters
        ----------
        file_path : str or Path
            Output ``.xlsx`` path
        results : list of CrossTabResult, optional
            Tables to export. Uses the last generated tables if not provided
        include_counts : bool, default True
            Write the absolute values sheet
        include_percentages : bool, default True
            Write the percentages sheet

        Returns
        -------
        Path
        """
        if results is None:
            results = self.results
        if not results:
            raise ValueError("No cross-tabulation results to export")

        try:
            exporter = ReportExporter(include_counts=include_counts,
                                      include_percentages=include_percentages)
            return exporter.export(results, file_path)

        except Exception as e:
            self.logger.error(f"Report export failed: {e}")
            raise

    def get_analysis_summary(self) -> Dict[str, Any]:
        """
        Get summary of the loaded data and generated tables.

        Returns
        -------
        dict
            Summary of analysis results
        """
        return {
            'data_loaded': self.dataset is not None,
            'n_records': len(self.dataset) if self.dataset is not None else 0,
            'n_variables': len(self.dataset.headers) if self.dataset is not None else 0,
            'n_tables': len(self.results),
            'tables_with_warnings': sum(1 for result in self.results if result.has_warnings()),
            'alpha': self.alpha
        }

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """Load configuration from file."""
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
            self.logger.info(f"Configuration loaded from {config_path}")
            return config
        except (OSError, ValueError) as e:
            self.logger.warning(f"Failed to load configuration: {e}")
            return {}
