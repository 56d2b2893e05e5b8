"""Persistence helpers for pipescript."""

from .sqlite import DEFAULT_DB_NAME, HistoryStore, RunRecord, TaskRecord

__all__ = ["DEFAULT_DB_NAME", "HistoryStore", "RunRecord", "TaskRecord"]
