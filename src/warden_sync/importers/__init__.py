"""
Character import from external platforms.

Currently supports:
- PathCompanion (account-linked import, export and refresh-sync)
"""

from .base import (
    ImportAllReport,
    ImportConflict,
    ReconcileResult,
    SyncAction,
    SyncMode,
)

__all__ = [
    "ImportAllReport",
    "ImportConflict",
    "ReconcileResult",
    "SyncAction",
    "SyncMode",
]
