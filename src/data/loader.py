"""Data loading module for cleaned sale records."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

_EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


class DataIngestor:
    """Handles validated loading of the cleaned dataset from local files.

    CSV and Excel files are supported.  Cleaning (currency parsing, date
    decomposition, identifier removal) happens upstream; this class only
    reads what that stage produced.

    Args:
        file_path: Path to the data file. Falls back to the DATA_PATH env
            var or 'data/sales_clean.csv' if not provided.
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None) -> None:
        self.file_path = Path(
            file_path or os.getenv("DATA_PATH", "data/sales_clean.csv")
        )

    def load(self, sheet_name: Union[str, int] = 0) -> pd.DataFrame:
        """Load the file into a DataFrame, choosing the reader by suffix.

        Args:
            sheet_name: Sheet index or name for Excel files.

        Returns:
            Loaded DataFrame.

        Raises:
            FileNotFoundError: If the file path does not exist.
            ValueError: If the loaded DataFrame is empty.
        """
        logger.info("Attempting to load data from: %s", self.file_path)

        if not self.file_path.exists():
            msg = f"File not found: {self.file_path}"
            logger.error(msg)
            raise FileNotFoundError(msg)

        try:
            if self.file_path.suffix.lower() in _EXCEL_SUFFIXES:
                df = pd.read_excel(
                    self.file_path, sheet_name=sheet_name, engine="openpyxl"
                )
            else:
                df = pd.read_csv(self.file_path)
        except Exception as exc:
            logger.error("Failed to read data file: %s", exc)
            raise

        if df.empty:
            raise ValueError(f"Loaded DataFrame from '{self.file_path}' is empty.")

        logger.info("Successfully loaded %d rows and %d columns.", *df.shape)
        return df
