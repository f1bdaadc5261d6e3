"""
Export Utilities
---------------
This module writes a result set to downloadable CSV or Excel bytes.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Sequence

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side

from datamerge.core.exceptions import InputError
from datamerge.models.data_models import Record

logger = logging.getLogger(__name__)

EXCEL_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIME_TYPE = "text/csv"

EXPORT_FORMATS: Dict[str, Dict[str, str]] = {
    "excel": {"label": "Excel (.xlsx)", "mime_type": EXCEL_MIME_TYPE, "extension": ".xlsx"},
    "csv": {"label": "CSV (.csv)", "mime_type": CSV_MIME_TYPE, "extension": ".csv"},
}

_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")


def _to_frame(rows: Sequence[Record]) -> pd.DataFrame:
    if not rows:
        raise InputError("No data to export")
    # Column order follows the first row, later-only columns are appended
    columns: List[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)
    return pd.DataFrame(list(rows), columns=columns)


def export_csv(rows: Sequence[Record]) -> bytes:
    """
    Write rows as CSV: every field quoted, CRLF line endings, UTF-8 with BOM
    so that Excel opens it with the right encoding.
    """
    df = _to_frame(rows)
    text = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    return text.encode("utf-8-sig")


def _column_width(header: str, values: List[Any]) -> int:
    longest = max([len(header)] + [len(str(value)) for value in values if pd.notna(value)])
    return min(max(longest + 2, 10), 50)


def export_excel(rows: Sequence[Record]) -> bytes:
    """
    Write rows to a single "Data" worksheet with a bold, shaded header and
    column widths fitted to the first 100 rows.
    """
    df = _to_frame(rows)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Data", index=False)
        worksheet = writer.sheets["Data"]

        for cell in worksheet[1]:
            cell.font = Font(bold=True)
            cell.fill = _HEADER_FILL
            cell.border = _BORDER
        for row in worksheet.iter_rows(min_row=2):
            for cell in row:
                cell.border = _BORDER

        sample = df.head(100)
        for index, column in enumerate(df.columns, start=1):
            letter = worksheet.cell(row=1, column=index).column_letter
            worksheet.column_dimensions[letter].width = _column_width(str(column), sample[column].tolist())

    logger.info(f"Exported {len(df)} rows to Excel")
    return buffer.getvalue()
