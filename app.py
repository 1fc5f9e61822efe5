"""
App assembly entry point.

Re-exports the FastAPI `app` from `techdeputies.api.main` so `uvicorn app:app`
keeps working from the repository root.
"""

from techdeputies.api.main import app  # noqa: F401
