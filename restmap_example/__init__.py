"""
Example application for restmap.

``create_app`` builds a FastAPI app that mirrors remote entities into a
local SQLite repository.  ``run.py`` at the project root serves it.
"""

from .app import create_app  # noqa: F401
