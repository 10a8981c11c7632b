"""
Multi-format data loader for survey response files.

This module reads CSV, TSV, Excel and JSON survey exports into a
TabularDataset. All cells are read as text so that codes such as ``"01"``
or ``"5"`` keep their original spelling; type inference happens later in
question analysis.
"""

import json
import logging
from pathlib import Path
from typing import Tuple, Union

import pandas as pd

from .dataset import TabularDataset


class DataLoader:
    """
    Data loader for survey exports.

    Supports:
    - CSV/TSV/TXT files with separator detection and encoding fallbacks
    - Excel files (.xlsx, .xls), first sheet by default
    - JSON files holding a list of response objects or
      ``{"headers": [...], "rows": [[...], ...]}``
    """

    FALLBACK_ENCODINGS = ('utf-8', 'latin-1', 'cp1252')

    def __init__(self, encoding: str = 'utf-8-sig'):
        """
        Initialize the DataLoader.

        Parameters
        ----------
        encoding : str, default 'utf-8-sig'
            Text encoding tried first for delimited files
        """
        self.encoding = encoding
        self.logger = logging.getLogger(__name__)

        # File format handlers
        self._handlers = {
            '.csv': self._load_csv,
            '.tsv': self._load_csv,
            '.txt': self._load_csv,
            '.xlsx': self._load_excel,
            '.xls': self._load_excel,
            '.json': self._load_json,
        }

    def load_data(self, file_path: Union[str, Path], **kwargs) -> TabularDataset:
        """
        Load survey data from file with automatic format detection.

        Parameters
        ----------
        file_path : str or Path
            Path to the data file
        **kwargs
            Additional arguments passed to the pandas reader

        Returns
        -------
        TabularDataset
            Dataset with normalized headers and text cells
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Data file not found: {file_path}")

        extension = file_path.suffix.lower()
        if extension not in self._handlers:
            raise ValueError(f"Unsupported file format: {extension}")

        self.logger.info(f"Loading data from {file_path} (format: {extension})")

        headers, rows = self._handlers[extension](file_path, **kwargs)

        if not headers:
            raise ValueError(f"No header row found in {file_path}")

        dataset = TabularDataset.from_records(headers, rows)
        self.logger.info(f"Loaded {len(dataset)} records with {len(dataset.headers)} variables")
        return dataset

    def _load_csv(self, file_path: Path, **kwargs) -> Tuple[list, list]:
        """Load CSV/TSV files, trying fallback encodings on decode errors."""
        sep = kwargs.pop('sep', None)
        if sep is None:
            if file_path.suffix.lower() == '.tsv':
                sep = '\t'
            else:
                sep = self._detect_separator(file_path)

        encodings = [self.encoding] + [e for e in self.FALLBACK_ENCODINGS if e != self.encoding]
        for encoding in encodings:
            try:
                data = pd.read_csv(
                    file_path,
                    sep=sep,
                    encoding=encoding,
                    dtype=str,
                    keep_default_na=False,
                    **kwargs
                )
                if encoding != self.encoding:
                    self.logger.warning(f"Used fallback encoding: {encoding}")
                break
            except UnicodeDecodeError:
                continue
            except pd.errors.EmptyDataError:
                raise ValueError(f"File is empty: {file_path}")
        else:
            raise ValueError("Could not decode file with any supported encoding")

        return self._split_frame(data)

    def _load_excel(self, file_path: Path, **kwargs) -> Tuple[list, list]:
        """Load the first (or named) sheet of an Excel workbook."""
        sheet_name = kwargs.pop('sheet_name', 0)
        data = pd.read_excel(file_path, sheet_name=sheet_name, dtype=object, **kwargs)
        return self._split_frame(data)

    def _load_json(self, file_path: Path, **kwargs) -> Tuple[list, list]:
        """Load JSON survey data."""
        with open(file_path, 'r', encoding='utf-8') as f:
            json_data = json.load(f)

        if isinstance(json_data, dict) and 'headers' in json_data:
            # Header row plus value rows
            return list(json_data['headers']), list(json_data.get('rows', []))
        elif isinstance(json_data, dict) and 'responses' in json_data:
            data = pd.DataFrame(json_data['responses'])
        elif isinstance(json_data, list):
            # Array of response objects
            data = pd.DataFrame(json_data)
        else:
            raise ValueError("Unsupported JSON structure")

        return self._split_frame(data)

    @staticmethod
    def _split_frame(data: pd.DataFrame) -> Tuple[list, list]:
        """Split a DataFrame into a header list and row lists."""
        rows = data.astype(object).where(pd.notna(data), None).values.tolist()
        return list(data.columns), rows

    def _detect_separator(self, file_path: Path) -> str:
        """Detect CSV separator by examining the first few lines."""
        with open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
            sample = f.read(1024)

        # Count occurrences of common separators
        separators = [',', ';', '\t', '|']
        counts = {sep: sample.count(sep) for sep in separators}

        # Return separator with highest count
        return max(counts.items(), key=lambda x: x[1])[0]
