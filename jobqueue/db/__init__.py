"""
Database module.
Contains database connection, models, and repository implementations.
"""

from jobqueue.db.connection import Database, build_database_url, create_engine
from jobqueue.db.models import Base, Job, utcnow
from jobqueue.db.repository import JobRepository

__all__ = [
    "Database",
    "build_database_url",
    "create_engine",
    "Job",
    "Base",
    "JobRepository",
    "utcnow",
]
