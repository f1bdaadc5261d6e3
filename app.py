"""
DataMerge Application Entry Point
---------------------------------
This file serves as the entry point for the application, exposing the FastAPI
app defined in the datamerge package so it can be served with
`uvicorn app:app`.
"""

import logging

# Import the app from the main module
from datamerge.config import settings
from datamerge.main import app

logger = logging.getLogger(__name__)

# If this file is run directly, start the server
if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting DataMerge API on port {settings.port}")
    uvicorn.run("app:app", host="0.0.0.0", port=settings.port, reload=True)
