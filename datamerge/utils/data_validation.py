"""
Dataset Validation
-----------------
Checks and clean-up applied to a dataset right after upload, before it is
stored in a session.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, List

from datamerge.core.validation import MAX_DATASET_ROWS
from datamerge.models.data_models import Dataset, Record, ValidationReport
from datamerge.utils.text_processing import is_missing

# Only the first rows are checked for shape problems
ROW_SAMPLE_SIZE = 100
MAX_COLUMN_NAME_LENGTH = 100
MAX_CELL_LENGTH = 1000


def validate_dataset(dataset: Dataset, max_rows: int = MAX_DATASET_ROWS) -> ValidationReport:
    """
    Validate an uploaded dataset.

    Args:
        dataset: The parsed dataset
        max_rows: Maximum number of records allowed

    Returns:
        ValidationReport: Every problem found
    """
    errors: List[str] = []

    if not dataset.records:
        errors.append("File contains no data rows")

    if not dataset.columns:
        errors.append("File contains no column headers")

    normalized = {column.lower().strip() for column in dataset.columns}
    if len(normalized) != len(dataset.columns):
        errors.append("File contains duplicate column names")

    if any(not column or not column.strip() for column in dataset.columns):
        errors.append("File contains empty column names")

    if dataset.row_count > max_rows:
        errors.append(f"File contains too many rows (maximum {max_rows:,} allowed)")

    known = set(dataset.columns)
    for i, row in enumerate(dataset.records[:ROW_SAMPLE_SIZE]):
        if not row:
            errors.append(f"Row {i + 1} is completely empty")
            continue
        unexpected = [key for key in row if key not in known]
        if unexpected:
            errors.append(f"Row {i + 1} contains unexpected columns: {', '.join(unexpected)}")

    return ValidationReport(valid=not errors, errors=errors)


def sanitize_column_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        return ""
    name = re.sub(r"\s+", " ", name.strip())
    name = re.sub(r"[^\w\s.-]", "", name)
    return name[:MAX_COLUMN_NAME_LENGTH]


def sanitize_value(value: Any) -> Any:
    """Normalize one cell: trimmed, length-capped strings, finite numbers, None for empty."""
    if is_missing(value):
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed[:MAX_CELL_LENGTH] if trimmed else None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value
    text = str(value).strip()
    return text[:MAX_CELL_LENGTH] if text else None


def sanitize_dataset(dataset: Dataset) -> Dataset:
    """
    Clean column names and cell values.

    Each record is projected onto the cleaned columns. Columns whose name
    cleans down to nothing are dropped, as are records left without keys.
    """
    renamed: Dict[str, str] = {}
    for column in dataset.columns:
        clean = sanitize_column_name(column)
        # First column wins when two names clean to the same text
        if clean and clean not in renamed.values():
            renamed[column] = clean

    records: List[Record] = []
    for row in dataset.records:
        record = {clean: sanitize_value(row.get(original)) for original, clean in renamed.items()}
        if record:
            records.append(record)

    return dataset.model_copy(update={"columns": list(renamed.values()), "records": records})


def _type_name(value: Any) -> str:
    if isinstance(value, str):
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (datetime, date)):
        return "date"
    return "other"


def data_type_stats(dataset: Dataset) -> Dict[str, Dict[str, Any]]:
    """
    Per-column value counts, null counts, type histogram and sample values.
    """
    stats: Dict[str, Dict[str, Any]] = {}
    for column in dataset.columns:
        values = [row.get(column) for row in dataset.records]
        present = [value for value in values if value is not None]
        types = {"string": 0, "number": 0, "boolean": 0, "date": 0, "other": 0}
        for value in present:
            types[_type_name(value)] += 1
        stats[column] = {
            "total_values": len(present),
            "null_count": len(values) - len(present),
            "data_types": types,
            "sample_values": present[:5],
        }
    return stats
