"""
Result Processing Utilities
--------------------------
Helpers that shape a ProcessedResult for display and export: titled sections,
summary percentages, export selections, column listing, searching and sorting.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from datamerge.core.exceptions import InputError
from datamerge.models.data_models import ExportType, ProcessedResult, Record
from datamerge.utils.text_processing import is_missing, to_text

SECTIONS = {
    "duplicates": ("Duplicate Records", "Records that exist in both files"),
    "unique_file1": ("Unique in File 1", "Records that only exist in the first file"),
    "unique_file2": ("Unique in File 2", "Records that only exist in the second file"),
    "merged": ("Merged Records", "Duplicate records merged with the chosen merge operations"),
}


def section_rows(result: ProcessedResult, section: str) -> List[Record]:
    """Rows of one named result set."""
    if section == "duplicates":
        return result.duplicates
    if section == "unique_file1":
        return result.unique_a
    if section == "unique_file2":
        return result.unique_b
    if section == "merged":
        return result.merged
    raise InputError(f"Invalid result section: {section}")


def section_count(result: ProcessedResult, section: str) -> int:
    stats = result.stats
    return {
        "duplicates": stats.duplicate_count,
        "unique_file1": stats.unique_a_count,
        "unique_file2": stats.unique_b_count,
        "merged": stats.merged_count,
    }[section]


def format_for_display(result: ProcessedResult) -> Dict[str, Dict[str, Any]]:
    """The four result sets with a title, a description and a count each."""
    return {
        key: {
            "title": title,
            "description": description,
            "data": section_rows(result, key),
            "count": section_count(result, key),
        }
        for key, (title, description) in SECTIONS.items()
    }


def calculate_percentage(value: int, total: int) -> float:
    if total == 0:
        return 0
    return round(value / total * 100, 2)


def summarize(result: ProcessedResult) -> Dict[str, Any]:
    """
    Overview totals and a percentage breakdown of a result.

    Duplicates and unique-in-A are relative to dataset A, unique-in-B to
    dataset B and merged records to the duplicates.
    """
    stats = result.stats
    return {
        "overview": {
            "total_records_processed": stats.duplicate_count + stats.unique_a_count + stats.unique_b_count,
            "file1_records": stats.total_a,
            "file2_records": stats.total_b,
            "processing_date": result.processed_at,
        },
        "breakdown": {
            "duplicates": {
                "count": stats.duplicate_count,
                "percentage": calculate_percentage(stats.duplicate_count, stats.total_a),
            },
            "unique_file1": {
                "count": stats.unique_a_count,
                "percentage": calculate_percentage(stats.unique_a_count, stats.total_a),
            },
            "unique_file2": {
                "count": stats.unique_b_count,
                "percentage": calculate_percentage(stats.unique_b_count, stats.total_b),
            },
            "merged": {
                "count": stats.merged_count,
                "percentage": calculate_percentage(stats.merged_count, stats.duplicate_count),
            },
        },
    }


def get_export_data(
    result: ProcessedResult,
    export_type: ExportType,
    now: Optional[datetime] = None,
) -> Tuple[List[Record], str]:
    """
    Select the rows and base file name for an export.

    "all" combines every result set and tags each row with a _record_type column.

    Returns:
        Tuple[List[Record], str]: The rows and a timestamped file name without extension
    """
    timestamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")

    if export_type in SECTIONS:
        return section_rows(result, export_type), f"{export_type}_{timestamp}"

    if export_type == "all":
        record_types = [
            ("duplicates", "duplicate"),
            ("unique_file1", "unique_file1"),
            ("unique_file2", "unique_file2"),
            ("merged", "merged"),
        ]
        rows = [
            {**row, "_record_type": record_type}
            for section, record_type in record_types
            for row in section_rows(result, section)
        ]
        return rows, f"complete_results_{timestamp}"

    raise InputError(f"Invalid export type: {export_type}")


def export_options(result: Optional[ProcessedResult]) -> List[Dict[str, Any]]:
    """Result sets that have rows to export, plus "all" when there is more than one."""
    if result is None:
        return []
    options = [
        {"type": key, "label": title, "count": section_count(result, key)}
        for key, (title, _) in SECTIONS.items()
        if section_rows(result, key)
    ]
    if len(options) > 1:
        stats = result.stats
        options.append({
            "type": "all",
            "label": "All Results",
            "count": stats.duplicate_count + stats.unique_a_count + stats.unique_b_count,
        })
    return options


def result_columns(result: ProcessedResult) -> List[str]:
    """Sorted names of every column that appears in any result set."""
    columns = set()
    for section in SECTIONS:
        for row in section_rows(result, section):
            columns.update(row)
    return sorted(columns)


def filter_rows(rows: Sequence[Record], search_term: str, columns: Optional[Sequence[str]] = None) -> List[Record]:
    """Rows where any searched column contains the term, ignoring case."""
    term = (search_term or "").strip().lower()
    if not term:
        return list(rows)
    search_columns = list(columns) if columns else list(rows[0].keys()) if rows else []
    return [
        row for row in rows
        if any(
            not is_missing(row.get(column)) and term in to_text(row.get(column)).lower()
            for column in search_columns
        )
    ]


def sort_rows(rows: Sequence[Record], sort_column: str, direction: Literal["asc", "desc"] = "asc") -> List[Record]:
    """
    Sort rows by one column. Numbers compare numerically, everything else as
    text; rows without a value always go last.
    """
    present = [row for row in rows if not is_missing(row.get(sort_column))]
    missing = [row for row in rows if is_missing(row.get(sort_column))]

    def sort_key(row: Record):
        value = row[sort_column]
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, value, "")
        return (1, 0, to_text(value).lower())

    present.sort(key=sort_key, reverse=direction == "desc")
    return present + missing
