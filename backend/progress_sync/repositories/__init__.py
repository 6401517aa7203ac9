"""Persistence repositories for the remote progress store."""

from .progress_records import ProgressRecordRepository, progress_records

__all__ = ["ProgressRecordRepository", "progress_records"]
