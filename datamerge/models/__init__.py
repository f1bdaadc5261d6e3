"""
Data Models Module
Contains Pydantic models for datasets, processing configuration, results and sessions.
"""

from .data_models import (
    ALL_COLUMNS,
    Record,
    Dataset,
    ColumnMapping,
    MergeOperator,
    MergeOperation,
    MergeOptions,
    ProcessingStats,
    ProcessedResult,
    ValidationReport,
    Session,
    ProcessingRequest,
    ProcessingResponse,
    ExportRequest,
    SessionResponse,
    FileSummary,
    UploadResponse,
)
