"""Append-only persistence for validation loop diagnostics."""

from src.components.validation_log.models import LoopLogRecord, ResultLogRecord
from src.components.validation_log.store import ValidationLogStore

__all__ = [
    "LoopLogRecord",
    "ResultLogRecord",
    "ValidationLogStore",
]
