"""Persistence backends."""

from approvalhub.core.config import Settings
from approvalhub.storage.base import ApprovalStore
from approvalhub.storage.memory import InMemoryApprovalStore
from approvalhub.storage.sqlite import SQLiteApprovalStore


def build_store(settings: Settings) -> ApprovalStore:
    """SQLite when a database path is configured, otherwise in memory."""
    if settings.database_path:
        return SQLiteApprovalStore(settings.database_path)
    return InMemoryApprovalStore()


__all__ = ["ApprovalStore", "InMemoryApprovalStore", "SQLiteApprovalStore", "build_store"]
