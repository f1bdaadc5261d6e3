"""
Utilities Module
Contains utility functions for value normalization, file ingestion, dataset
validation, result presentation and export.
"""

from .text_processing import is_missing, to_text, normalize_key, parse_number, round2
from .file_processing import read_dataset, validate_upload, extract_preview
from .data_validation import validate_dataset, sanitize_dataset, data_type_stats
from .export import export_csv, export_excel
