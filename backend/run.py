#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Creates missing tables on the configured database, then serves the API with
auto-reload. For local development only.
"""
import logging
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn  # noqa: E402

from agenda.core.logging import setup_logging  # noqa: E402
from agenda.init_db import init_db  # noqa: E402

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    setup_logging()
    init_db()
    logger.info("Starting development server at http://localhost:8000 (docs at /docs)")
    uvicorn.run("agenda.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
