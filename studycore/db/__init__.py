"""Database package for studycore.

This package provides the DuckDB persistence layer.
Only StudyDatabase is exported as the public API.
"""

from .database import StudyDatabase

__all__ = ["StudyDatabase"]
