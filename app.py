"""
App assembly entry point.

Re-exports the FastAPI `app` from `collector.api.main` so the service can be
started with ``uvicorn app:app``.
"""

from collector.api.main import app  # noqa: F401
