"""
Immutable tabular dataset of survey responses.

The dataset wraps a pandas DataFrame whose cells are normalized text, so
every downstream component sees the same representation regardless of the
source file format: missing values are empty strings, integral floats are
rendered without a trailing ``.0`` and numbers are parsed on demand.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..text_analysis.text_processing import to_text, BLANK_MARKERS


class TabularDataset:
    """
    Read-only matrix of survey answers with unique column headers.

    Instances are never mutated after construction; filtering produces a
    new dataset through ``subset``.
    """

    def __init__(self, frame: pd.DataFrame):
        self._frame = frame.reset_index(drop=True)
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_records(cls,
                     headers: Sequence[Any],
                     rows: Iterable[Sequence[Any]]) -> 'TabularDataset':
        """
        Build a dataset from a header row and raw row values.

        Parameters
        ----------
        headers : sequence
            Header labels. Blank labels become ``Column_N`` and duplicates
            are renamed ``name_2``, ``name_3``, ...
        rows : iterable of sequences
            Cell values. Short rows are padded with ``""`` and long rows
            are truncated to the header width.

        Returns
        -------
        TabularDataset
        """
        columns = cls.normalize_headers(headers)
        width = len(columns)

        normalized_rows = []
        for row in rows:
            cells = [to_text(value) for value in list(row)[:width]]
            cells.extend([''] * (width - len(cells)))
            normalized_rows.append(cells)

        frame = pd.DataFrame(normalized_rows, columns=columns, dtype=object)
        return cls(frame)

    @classmethod
    def from_dataframe(cls, data: pd.DataFrame) -> 'TabularDataset':
        """Build a dataset from an already loaded DataFrame."""
        rows = data.astype(object).where(pd.notna(data), None).values.tolist()
        return cls.from_records(list(data.columns), rows)

    @staticmethod
    def normalize_headers(headers: Sequence[Any]) -> List[str]:
        """Replace blank headers and make duplicate headers unique."""
        columns = []
        seen = {}
        for index, header in enumerate(headers):
            name = to_text(header)
            if not name or name.startswith('Unnamed:'):
                name = f"Column_{index + 1}"

            if name in seen:
                seen[name] += 1
                candidate = f"{name}_{seen[name]}"
                while candidate in seen:
                    seen[name] += 1
                    candidate = f"{name}_{seen[name]}"
                seen[candidate] = 1
                name = candidate
            else:
                seen[name] = 1
            columns.append(name)
        return columns

    @property
    def headers(self) -> List[str]:
        return list(self._frame.columns)

    @property
    def frame(self) -> pd.DataFrame:
        """Copy of the underlying text frame."""
        return self._frame.copy()

    def __len__(self) -> int:
        return len(self._frame)

    def __contains__(self, column: str) -> bool:
        return column in self._frame.columns

    def __repr__(self) -> str:
        return f"TabularDataset(rows={len(self)}, columns={len(self.headers)})"

    def column(self, name: str) -> pd.Series:
        """Get one column as a Series of text values."""
        if name not in self._frame.columns:
            raise KeyError(f"Column not found: {name}")
        return self._frame[name]

    def values(self, name: str, limit: Optional[int] = None) -> List[str]:
        """Get the raw text values of a column in row order."""
        values = self.column(name).tolist()
        return values if limit is None else values[:limit]

    def blank_mask(self, name: str) -> pd.Series:
        """Boolean mask of blank cells (empty, 'null' or 'undefined')."""
        return self.column(name).isin(BLANK_MARKERS)

    def numeric(self, name: str) -> pd.Series:
        """Column parsed as numbers; non-numeric cells become NaN."""
        parsed = pd.to_numeric(self.column(name), errors='coerce')
        return parsed.replace([np.inf, -np.inf], np.nan)

    def rows(self) -> List[List[str]]:
        """Get all rows as lists of cells."""
        return self._frame.values.tolist()

    def records(self) -> List[dict]:
        """Get all rows as header-keyed dictionaries."""
        return self._frame.to_dict(orient='records')

    def sample_rows(self, n: int) -> List[dict]:
        """Get the first ``n`` rows as header-keyed dictionaries."""
        return self._frame.head(n).to_dict(orient='records')

    def subset(self, mask: Union[pd.Series, np.ndarray, List[bool]]) -> 'TabularDataset':
        """Return a new dataset holding only the rows where ``mask`` is True."""
        mask = np.asarray(mask, dtype=bool)
        if len(mask) != len(self._frame):
            raise ValueError(
                f"Mask length {len(mask)} does not match dataset length {len(self._frame)}"
            )
        return TabularDataset(self._frame.loc[mask])
