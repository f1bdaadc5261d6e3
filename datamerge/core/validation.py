"""
Validation
----------
Checks applied around a processing run:

- validate_processing_inputs raises InputError before any work is done
- validate_result cross-checks the bookkeeping of a finished run and reports
  every inconsistency it finds instead of raising or correcting it
"""

from typing import List, Optional

from datamerge.core.exceptions import InputError
from datamerge.models.data_models import (
    ColumnMapping,
    Dataset,
    MergeOperator,
    MergeOptions,
    ProcessedResult,
    ValidationReport,
)

MAX_DATASET_ROWS = 100_000


def validate_processing_inputs(
    dataset_a: Optional[Dataset],
    dataset_b: Optional[Dataset],
    mapping: Optional[ColumnMapping],
    options: Optional[MergeOptions],
    max_rows: int = MAX_DATASET_ROWS,
) -> None:
    """
    Validate everything a processing run needs.

    Args:
        dataset_a: First dataset
        dataset_b: Second dataset
        mapping: Key column of each dataset
        options: Merge operations to apply
        max_rows: Maximum number of records per dataset

    Raises:
        InputError: On the first problem found
    """
    for label, dataset in (("File 1", dataset_a), ("File 2", dataset_b)):
        if dataset is None or not dataset.records:
            raise InputError(f"{label} is empty or invalid")
        if dataset.row_count > max_rows:
            raise InputError(
                f"{label} contains too many rows (maximum {max_rows:,} allowed)",
                {"row_count": dataset.row_count},
            )

    if mapping is None or not mapping.column_a or not mapping.column_b:
        raise InputError("Column mapping is incomplete")

    if mapping.column_a not in dataset_a.columns:
        raise InputError(
            f"Column '{mapping.column_a}' not found in File 1. "
            f"Available columns: {', '.join(dataset_a.columns)}"
        )
    if mapping.column_b not in dataset_b.columns:
        raise InputError(
            f"Column '{mapping.column_b}' not found in File 2. "
            f"Available columns: {', '.join(dataset_b.columns)}"
        )

    if options is None or not options.operations:
        raise InputError("No merge operations specified")

    # MERGE_ALL works on whole records, so its column is not checked
    if not options.has_merge_all:
        all_columns = set(dataset_a.columns) | set(dataset_b.columns)
        for operation in options.operations:
            if not operation.column:
                raise InputError("Invalid merge operation configuration")
            if operation.column not in all_columns:
                raise InputError(
                    f"Column '{operation.column}' specified in merge operations not found in either file",
                    {"operator": operation.operator.value},
                )


def validate_result(result: Optional[ProcessedResult]) -> ValidationReport:
    """
    Cross-check the counts of a processing result.

    All checks run independently and every failure is reported.

    Args:
        result: The result to check

    Returns:
        ValidationReport: valid is True only when no check failed
    """
    errors: List[str] = []

    if result is None:
        return ValidationReport(valid=False, errors=["Results data is missing"])

    sections = {
        "duplicates": ("Duplicates", result.duplicates),
        "unique_a": ("Unique File 1", result.unique_a),
        "unique_b": ("Unique File 2", result.unique_b),
        "merged": ("Merged", result.merged),
    }
    for label, rows in sections.values():
        if not isinstance(rows, list):
            errors.append(f"{label} data is invalid")

    stats = result.stats
    if stats is None:
        errors.append("Statistics data is missing")
        return ValidationReport(valid=False, errors=errors)

    counts = {
        "duplicates": stats.duplicate_count,
        "unique_a": stats.unique_a_count,
        "unique_b": stats.unique_b_count,
        "merged": stats.merged_count,
    }
    for key, (label, rows) in sections.items():
        if isinstance(rows, list) and counts[key] != len(rows):
            errors.append(f"{label} count mismatch")

    if stats.duplicate_count + stats.unique_a_count != stats.total_a:
        errors.append("File 1 total count mismatch")
    if stats.duplicate_count + stats.unique_b_count != stats.total_b:
        errors.append("File 2 total count mismatch")
    if stats.merged_count != stats.duplicate_count:
        errors.append("Merged count does not equal duplicate count")

    return ValidationReport(valid=not errors, errors=errors)
