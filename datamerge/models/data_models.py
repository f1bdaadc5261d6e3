"""
Data Models
-----------
This module contains all Pydantic models used for data validation and response structures.
These models define the expected data formats for the datasets, the processing
configuration, the processing results and the session state held between requests.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A record is a row of a dataset: column name -> scalar cell value
Record = Dict[str, Any]

# Placeholder column used by the whole-record MERGE_ALL operation
ALL_COLUMNS = "ALL_COLUMNS"


class Dataset(BaseModel):
    """
    A parsed tabular dataset: the ordered column names plus the ordered records.

    Row order is kept exactly as read so that every derived result set is
    reproducible. The ingestion metadata (names, file type, upload time) is
    filled in by the file ingestion adapter and defaulted otherwise.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    original_name: str = ""
    file_type: Literal["csv", "excel"] = "csv"
    columns: List[str] = Field(default_factory=list)
    records: List[Record] = Field(default_factory=list)
    uploaded_at: datetime = Field(default_factory=datetime.now)

    @field_validator("columns")
    def columns_must_be_unique(cls, v: List[str]) -> List[str]:
        """Reject a column list that names the same column twice"""
        seen = set()
        for column in v:
            if column in seen:
                raise ValueError(f"Duplicate column name '{column}'")
            seen.add(column)
        return v

    @property
    def row_count(self) -> int:
        return len(self.records)


class ColumnMapping(BaseModel):
    """
    The single column from each dataset used as the match key.
    """
    column_a: str
    column_b: str


class MergeOperator(str, Enum):
    """Closed set of operators that can combine the two values of a duplicate pair."""
    TAKE_NEW = "TAKE_NEW"
    TAKE_OLD = "TAKE_OLD"
    SUM = "SUM"
    SUBTRACT = "SUBTRACT"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    CONCATENATE = "CONCATENATE"
    MERGE_ALL = "MERGE_ALL"


class MergeOperation(BaseModel):
    """
    A configured rule for one column. For MERGE_ALL the column is ignored and
    conventionally set to ALL_COLUMNS.
    """
    column: str = ALL_COLUMNS
    operator: MergeOperator


class MergeOptions(BaseModel):
    """Ordered list of merge operations chosen by the user."""
    operations: List[MergeOperation] = Field(default_factory=list)

    @property
    def has_merge_all(self) -> bool:
        return any(op.operator is MergeOperator.MERGE_ALL for op in self.operations)


class ProcessingStats(BaseModel):
    """
    Summary counts for one processing run.
    """
    total_a: int
    total_b: int
    duplicate_count: int
    unique_a_count: int
    unique_b_count: int
    merged_count: int


class ProcessedResult(BaseModel):
    """
    The four derived datasets of a processing run together with their statistics.
    `duplicates` holds the dataset A side of every duplicate pair.
    """
    duplicates: List[Record]
    unique_a: List[Record]
    unique_b: List[Record]
    merged: List[Record]
    stats: ProcessingStats
    processed_at: datetime = Field(default_factory=datetime.now)


class ValidationReport(BaseModel):
    """Outcome of a validation pass: every problem found, never just the first."""
    valid: bool
    errors: List[str] = Field(default_factory=list)


class Session(BaseModel):
    """
    Server-held state of one user flow. Instances are immutable snapshots;
    the session store is the only place a new snapshot is written.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    dataset_a: Optional[Dataset] = None
    dataset_b: Optional[Dataset] = None
    column_mapping: Optional[ColumnMapping] = None
    merge_options: Optional[MergeOptions] = None
    result: Optional[ProcessedResult] = None
    created_at: datetime
    last_activity: datetime


# --- API request / response models ---

FileKey = Literal["file1", "file2"]
ExportType = Literal["duplicates", "unique_file1", "unique_file2", "merged", "all"]
ExportFormat = Literal["excel", "csv"]


class ProcessingRequest(BaseModel):
    """Body of the process endpoint."""
    session_id: str
    column_mapping: ColumnMapping
    merge_options: MergeOptions


class ProcessingResponse(BaseModel):
    """
    The response model for the process endpoint,
    containing the results and any error messages.
    """
    success: bool
    message: str
    results: Optional[ProcessedResult] = None
    error: Optional[str] = None


class ExportRequest(BaseModel):
    """Body of the download endpoint."""
    session_id: str
    export_type: ExportType
    format: ExportFormat


class SessionResponse(BaseModel):
    success: bool
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    message: Optional[str] = None


class FileSummary(BaseModel):
    """Short description of an uploaded dataset."""
    name: str
    row_count: int
    columns: List[str]


class UploadResponse(BaseModel):
    """
    The response model for the upload endpoint, with a preview of the first rows.
    """
    success: bool
    session_id: str
    file_key: FileKey
    file_name: str
    row_count: int
    columns: List[str]
    preview: List[Record]
    message: str
