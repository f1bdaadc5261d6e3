"""
File Processing Utilities
------------------------
This module turns uploaded CSV and Excel files into Dataset objects.
It is the only place that knows about file formats; everything downstream
works on plain records.
"""

import io
import logging
import os
import re
import time
from datetime import datetime
from typing import Any, List, Literal

import numpy as np
import pandas as pd

from datamerge.core.exceptions import InputError
from datamerge.models.data_models import Dataset, Record
from datamerge.utils.text_processing import is_missing

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".csv", ".xlsx", ".xls"}
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
PREVIEW_ROWS = 15

# Header pandas invents for a column without a name
_UNNAMED_COLUMN = re.compile(r"^Unnamed: \d+$")


def detect_file_type(filename: str) -> Literal["csv", "excel"]:
    """CSV for a .csv extension, Excel for everything else."""
    extension = os.path.splitext(filename or "")[1].lower()
    return "csv" if extension == ".csv" else "excel"


def validate_upload(filename: str, size: int, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    """
    Check the name and size of an uploaded file before reading it.

    Raises:
        InputError: If the file is too large or not a CSV/Excel file
    """
    if size > max_bytes:
        raise InputError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit", {"size": size})
    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise InputError("Only Excel (.xlsx, .xls) and CSV files are allowed", {"filename": filename})


def generate_file_name(original_name: str) -> str:
    """Safe internal name: millisecond timestamp plus the cleaned original name."""
    safe_name = re.sub(r"[^a-zA-Z0-9.-]", "_", original_name)
    safe_name = re.sub(r"_{2,}", "_", safe_name).lower()
    return f"{int(time.time() * 1000)}_{safe_name}"


def clean_cell(value: Any) -> Any:
    """
    Convert a pandas cell into a plain Python scalar.

    Strings are trimmed, empty strings and NaN/NaT become None, numpy scalars
    become Python numbers and timestamps become datetimes.
    """
    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def read_dataframe(content: bytes, file_type: Literal["csv", "excel"]) -> pd.DataFrame:
    """Read raw file bytes into a DataFrame (first worksheet for Excel files)."""
    file_obj = io.BytesIO(content)
    if file_type == "csv":
        return pd.read_csv(file_obj, skip_blank_lines=True)
    return pd.read_excel(file_obj, sheet_name=0)


def dataframe_to_dataset(df: pd.DataFrame, original_name: str, file_type: Literal["csv", "excel"]) -> Dataset:
    """
    Build a Dataset from a DataFrame, keeping column and row order.

    Columns without a header and rows without any value are dropped.
    """
    df.columns = [str(column).strip() for column in df.columns]
    columns: List[str] = [
        column for column in df.columns
        if column and not _UNNAMED_COLUMN.match(column)
    ]
    df = df[columns]

    records: List[Record] = []
    for row in df.to_dict(orient="records"):
        record = {column: clean_cell(value) for column, value in row.items()}
        if any(value is not None for value in record.values()):
            records.append(record)

    return Dataset(
        name=generate_file_name(original_name),
        original_name=original_name,
        file_type=file_type,
        columns=columns,
        records=records,
        uploaded_at=datetime.now(),
    )


def read_dataset(content: bytes, filename: str) -> Dataset:
    """
    Parse an uploaded CSV or Excel file into a Dataset.

    Args:
        content: Raw bytes of the uploaded file
        filename: Original file name, used to pick the parser

    Returns:
        Dataset: The parsed dataset

    Raises:
        InputError: If the file can not be parsed
    """
    file_type = detect_file_type(filename)
    try:
        df = read_dataframe(content, file_type)
    except Exception as e:
        raise InputError(f"{'CSV' if file_type == 'csv' else 'Excel'} processing failed: {e}") from e

    try:
        dataset = dataframe_to_dataset(df, filename, file_type)
    except ValueError as e:
        # Headers that only differ by surrounding whitespace collide after trimming
        raise InputError(f"Invalid file structure: {e}") from e
    logger.info(f"Loaded {dataset.row_count} records with {len(dataset.columns)} columns from {filename}")
    return dataset


def extract_preview(dataset: Dataset, max_rows: int = PREVIEW_ROWS) -> List[Record]:
    """First rows of a dataset for display."""
    return dataset.records[:max_rows]
