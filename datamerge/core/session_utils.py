"""
Session helpers used by the API layer: attaching uploaded datasets, status
flags and expiry information.
"""

from typing import Any, Dict, Optional

from datamerge.core.session_store import SessionStore
from datamerge.models.data_models import Dataset, FileKey, FileSummary, Session

WARNING_THRESHOLD_MINUTES = 5

DATASET_FIELDS = {"file1": "dataset_a", "file2": "dataset_b"}


def attach_dataset(store: SessionStore, session_id: str, file_key: FileKey, dataset: Dataset) -> bool:
    """
    Store an uploaded dataset in a session.

    Replacing a dataset drops any result computed from the previous one.

    Returns:
        bool: False if the session is unknown or expired
    """
    return store.update(session_id, {DATASET_FIELDS[file_key]: dataset, "result": None})


def remaining_minutes(store: SessionStore, session_id: str) -> int:
    """Whole minutes left before the session expires, 0 if it already has."""
    session = store.peek(session_id)
    if session is None:
        return 0
    return int(store.remaining_time(session).total_seconds() // 60)


def needs_expiration_warning(store: SessionStore, session_id: str) -> bool:
    """True when the session has 5 minutes or less left."""
    minutes = remaining_minutes(store, session_id)
    return 0 < minutes <= WARNING_THRESHOLD_MINUTES


def summarize_dataset(dataset: Optional[Dataset]) -> Optional[FileSummary]:
    if dataset is None:
        return None
    return FileSummary(name=dataset.original_name, row_count=dataset.row_count, columns=dataset.columns)


def session_status(session: Session) -> Dict[str, Any]:
    """Which parts of the flow a session has completed."""
    return {
        "id": session.id,
        "created_at": session.created_at,
        "last_activity": session.last_activity,
        "files": {
            "file1": summarize_dataset(session.dataset_a),
            "file2": summarize_dataset(session.dataset_b),
        },
        "has_both_files": session.dataset_a is not None and session.dataset_b is not None,
        "has_column_mapping": session.column_mapping is not None,
        "has_merge_options": session.merge_options is not None,
        "has_results": session.result is not None,
    }
