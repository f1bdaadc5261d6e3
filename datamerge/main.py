"""
FastAPI Main Application
-----------------------
This is the main application file that defines the FastAPI app and endpoints.
It drives one user flow per session: upload two files, choose the match key
and merge operations, process, inspect the results and download them.
"""

import time
import traceback
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Form, Query, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from datamerge.config import settings
from datamerge.core.exceptions import DataMergeError, InputError, ProcessingError
from datamerge.core.processing import process_duplicates
from datamerge.core.session_store import SessionStore
from datamerge.core.session_utils import (
    DATASET_FIELDS,
    attach_dataset,
    needs_expiration_warning,
    remaining_minutes,
    session_status,
)
from datamerge.core.validation import validate_result
from datamerge.models.data_models import (
    ExportRequest,
    ProcessingRequest,
    ProcessingResponse,
    SessionResponse,
    UploadResponse,
)
from datamerge.utils.data_validation import data_type_stats, sanitize_dataset, validate_dataset
from datamerge.utils.export import EXPORT_FORMATS, export_csv, export_excel
from datamerge.utils.file_processing import extract_preview, read_dataset, validate_upload
from datamerge.utils.result_processing import (
    SECTIONS,
    export_options,
    filter_rows,
    format_for_display,
    get_export_data,
    result_columns,
    sort_rows,
    summarize,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

session_store = SessionStore(
    timeout=settings.session_timeout,
    sweep_interval=settings.session_sweep_interval,
)


def get_store() -> SessionStore:
    """Dependency returning the process-wide session store."""
    return session_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    session_store.start_sweeper()
    yield
    session_store.shutdown()


# Initialize FastAPI app
app = FastAPI(
    title="Data Merge API",
    description="API for finding duplicate records between two datasets and merging them",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allow all methods
    allow_headers=["*"],  # Allow all headers
)


def _to_http_exception(e: Exception, context: str) -> HTTPException:
    """Translate an application error into an HTTP error, logging unexpected ones."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, DataMergeError):
        if isinstance(e, ProcessingError):
            logger.error(f"Processing error in {context}: {e.message}")
        return HTTPException(status_code=e.status_code, detail=e.message)
    logger.error(f"Error in {context}: {str(e)}\n{traceback.format_exc()}")
    return HTTPException(status_code=500, detail=f"Internal server error during {context}")


def _require_session_id(session_id: Optional[str]) -> str:
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")
    return session_id


@app.get("/")
async def root():
    """Root endpoint that returns a simple health check message."""
    return {"message": "Data Merge API is running!"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "timestamp": time.time()
    }


# --- Sessions ---

@app.post("/api/session", response_model=SessionResponse)
async def create_session(store: SessionStore = Depends(get_store)):
    """Create a new empty session."""
    session = store.create()
    return SessionResponse(
        success=True,
        session_id=session.id,
        created_at=session.created_at,
        message="Session created successfully",
    )


@app.get("/api/session/stats")
async def get_session_stats(store: SessionStore = Depends(get_store)):
    """Session statistics for monitoring."""
    return {"success": True, "stats": store.stats()}


@app.get("/api/session")
async def get_session_status(
    session_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_store),
):
    """
    Session status and timing information.

    Reading the status does not extend the session, so the remaining time
    reported here counts down between polls.
    """
    session_id = _require_session_id(session_id)
    session = store.peek(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found or expired")

    return {
        "success": True,
        "session": {
            **session_status(session),
            "remaining_minutes": remaining_minutes(store, session_id),
            "needs_expiration_warning": needs_expiration_warning(store, session_id),
        },
    }


@app.delete("/api/session")
async def delete_session(
    session_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_store),
):
    """Delete a session and everything stored in it."""
    session_id = _require_session_id(session_id)
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"success": True, "message": "Session deleted successfully"}


# --- Upload ---

@app.post("/api/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    file_key: str = Form(...),
    session_id: Optional[str] = Form(None),
    store: SessionStore = Depends(get_store),
):
    """
    Upload one of the two files of a session.

    The file is parsed, validated and sanitized before it is stored. When no
    session id is given, a new session is created once the file is accepted.

    Args:
        file: The CSV or Excel file
        file_key: "file1" or "file2"
        session_id: Existing session to add the file to

    Returns:
        UploadResponse: Summary of the stored dataset with a preview of its first rows
    """
    try:
        if file_key not in DATASET_FIELDS:
            raise HTTPException(status_code=400, detail="Invalid file key. Must be file1 or file2")

        content = await file.read()
        validate_upload(file.filename, len(content), max_bytes=settings.max_upload_bytes)

        session = store.require(session_id) if session_id else None

        dataset = read_dataset(content, file.filename)
        report = validate_dataset(dataset, max_rows=settings.max_dataset_rows)
        if not report.valid:
            raise InputError(f"File validation failed: {', '.join(report.errors)}")
        dataset = sanitize_dataset(dataset)
        if session is None:
            session = store.create()

        if not attach_dataset(store, session.id, file_key, dataset):
            raise HTTPException(status_code=500, detail="Failed to save file to session")

        logger.info(f"Stored {file.filename} as {file_key} of session {session.id}")
        return UploadResponse(
            success=True,
            session_id=session.id,
            file_key=file_key,
            file_name=dataset.original_name,
            row_count=dataset.row_count,
            columns=dataset.columns,
            preview=extract_preview(dataset, settings.preview_rows),
            message=f"File uploaded successfully. {dataset.row_count} rows processed.",
        )
    except Exception as e:
        raise _to_http_exception(e, "file upload")


@app.get("/api/upload")
async def get_upload_status(
    session_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_store),
):
    """Which files a session has received so far."""
    try:
        session = store.require(_require_session_id(session_id))
        return {"success": True, **session_status(session)}
    except Exception as e:
        raise _to_http_exception(e, "upload status")


@app.get("/api/file-data")
async def get_file_data(
    session_id: Optional[str] = Query(None),
    file_key: str = Query(...),
    store: SessionStore = Depends(get_store),
):
    """Columns, preview rows and per-column type statistics of an uploaded file."""
    try:
        session = store.require(_require_session_id(session_id))
        if file_key not in DATASET_FIELDS:
            raise HTTPException(status_code=400, detail="Invalid file key. Must be file1 or file2")

        dataset = getattr(session, DATASET_FIELDS[file_key])
        if dataset is None:
            raise HTTPException(status_code=404, detail=f"No file uploaded as {file_key}")

        return {
            "success": True,
            "file_name": dataset.original_name,
            "row_count": dataset.row_count,
            "columns": dataset.columns,
            "preview": extract_preview(dataset, settings.preview_rows),
            "data_types": data_type_stats(dataset),
        }
    except Exception as e:
        raise _to_http_exception(e, "file data retrieval")


# --- Processing ---

@app.post("/api/process", response_model=ProcessingResponse)
async def process_files(
    request: ProcessingRequest,
    store: SessionStore = Depends(get_store),
):
    """
    Match the two files of a session and merge the duplicates.

    The column mapping, merge options and result are stored in the session.
    A result whose counts do not add up is rejected with a processing error.
    """
    try:
        session = store.require(_require_session_id(request.session_id))
        if session.dataset_a is None or session.dataset_b is None:
            raise InputError("Both files must be uploaded before processing")

        logger.info(
            f"Processing session {session.id}: key {request.column_mapping.column_a!r} / "
            f"{request.column_mapping.column_b!r}, "
            f"{len(request.merge_options.operations)} merge operations"
        )

        result = process_duplicates(
            session.dataset_a,
            session.dataset_b,
            request.column_mapping,
            request.merge_options,
            max_rows=settings.max_dataset_rows,
        )

        validation = validate_result(result)
        if not validation.valid:
            raise ProcessingError(f"Processing validation failed: {', '.join(validation.errors)}")

        updated = store.update(
            session.id,
            {
                "column_mapping": request.column_mapping,
                "merge_options": request.merge_options,
                "result": result,
            },
            last_activity=store.clock(),
        )
        if not updated:
            raise HTTPException(status_code=500, detail="Failed to save results to session")

        stats = result.stats
        return ProcessingResponse(
            success=True,
            message=(
                f"Processing complete. Found {stats.duplicate_count} duplicates, "
                f"{stats.unique_a_count} unique in File 1, and {stats.unique_b_count} unique in File 2."
            ),
            results=result,
        )
    except Exception as e:
        raise _to_http_exception(e, "processing")


@app.get("/api/process")
async def get_processing_status(
    session_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_store),
):
    """Current processing configuration and result of a session."""
    try:
        session = store.require(_require_session_id(session_id))
        return {
            "success": True,
            "session_id": session.id,
            "has_results": session.result is not None,
            "column_mapping": session.column_mapping,
            "merge_options": session.merge_options,
            "results": session.result,
            "can_process": session.dataset_a is not None and session.dataset_b is not None,
        }
    except Exception as e:
        raise _to_http_exception(e, "processing status")


@app.get("/api/results")
async def get_results(
    session_id: Optional[str] = Query(None),
    section: Optional[str] = Query(None, description="duplicates, unique_file1, unique_file2 or merged"),
    search: Optional[str] = Query(None, description="Case-insensitive text to search for"),
    sort_by: Optional[str] = Query(None, description="Column to sort by"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    store: SessionStore = Depends(get_store),
):
    """
    Result sets of a session for display, with summary statistics.
    Searching and sorting apply to every returned section.
    """
    try:
        session = store.require(_require_session_id(session_id))
        if session.result is None:
            raise InputError("No processing results found. Please process data first.")
        if section is not None and section not in SECTIONS:
            raise InputError(f"Invalid result section: {section}")

        sections = format_for_display(session.result)
        if section is not None:
            sections = {section: sections[section]}

        for entry in sections.values():
            rows = entry["data"]
            if search:
                rows = filter_rows(rows, search)
            if sort_by:
                rows = sort_rows(rows, sort_by, sort_dir)
            entry["data"] = rows

        return {
            "success": True,
            "sections": sections,
            "summary": summarize(session.result),
            "columns": result_columns(session.result),
        }
    except Exception as e:
        raise _to_http_exception(e, "results retrieval")


# --- Download ---

@app.post("/api/download")
async def download_results(
    request: ExportRequest,
    store: SessionStore = Depends(get_store),
):
    """
    Download one result set as Excel or CSV.

    The session is deleted once the file has been generated.
    """
    try:
        session = store.require(_require_session_id(request.session_id))
        if session.result is None:
            raise InputError("No processing results found. Please process data first.")

        rows, file_name = get_export_data(session.result, request.export_type)
        if not rows:
            raise InputError(f"No data available for export type: {request.export_type}")

        if request.format == "excel":
            content = export_excel(rows)
        else:
            content = export_csv(rows)
        export_format = EXPORT_FORMATS[request.format]
        full_file_name = f"{file_name}{export_format['extension']}"

        store.delete(session.id)
        logger.info(f"Exported {len(rows)} rows as {full_file_name}; session {session.id} closed")

        return Response(
            content=content,
            media_type=export_format["mime_type"],
            headers={"Content-Disposition": f'attachment; filename="{full_file_name}"'},
        )
    except Exception as e:
        raise _to_http_exception(e, "download")


@app.get("/api/download")
async def get_download_options(
    session_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_store),
):
    """Result sets and file formats available for download."""
    try:
        session = store.require(_require_session_id(session_id))
        return {
            "success": True,
            "session_id": session.id,
            "has_results": session.result is not None,
            "export_options": export_options(session.result),
            "formats": [
                {"type": key, "label": fmt["label"], "mime_type": fmt["mime_type"]}
                for key, fmt in EXPORT_FORMATS.items()
            ],
        }
    except Exception as e:
        raise _to_http_exception(e, "download options")
