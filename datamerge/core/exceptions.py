"""
Application Exceptions
---------------------
Error taxonomy of the match/merge service. Each category maps to one kind of
response at the API boundary:

- InputError: the user supplied something unusable (HTTP 400)
- ProcessingError: the core produced an inconsistent result (HTTP 500)
- SessionNotFoundError: the session is unknown or has expired (HTTP 404)
"""

import time
from typing import Any, Dict, Optional


class DataMergeError(Exception):
    """
    Base exception of the service, carrying a message and optional context
    that can be logged or returned to the caller.
    """

    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to a dictionary for logging and API responses"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp,
        }


class InputError(DataMergeError):
    """Missing or invalid datasets, mapping or merge configuration"""

    status_code = 400


class ProcessingError(DataMergeError):
    """Result validation failures and unexpected internal inconsistencies"""

    status_code = 500


class SessionNotFoundError(DataMergeError):
    """The session does not exist or has expired"""

    status_code = 404

    def __init__(self, session_id: str):
        super().__init__("Session not found or expired", {"session_id": session_id})
        self.session_id = session_id
