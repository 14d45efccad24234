"""
Warden Sync - PathCompanion character import, export and sync engine.
"""

from .config import SyncConfig, load_config
from .exceptions import ErrorKind, SyncError
from .storage import SyncStorage
from .sync import SyncOrchestrator

try:
    from importlib.metadata import PackageNotFoundError, version as _get_version
    __version__ = _get_version("warden-sync")
except PackageNotFoundError:
    __version__ = "0.1.0"
__all__ = ["ErrorKind", "SyncConfig", "SyncError", "SyncOrchestrator", "SyncStorage", "load_config"]
