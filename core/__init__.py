# fsops - Core Module
"""
Core infrastructure for fsops.
Configuration, the error taxonomy, the audit log and the permission manager
that the filesystem modules build on.
"""

from .config import Settings, load_settings
from .exceptions import (
    FilesystemError,
    NotFound,
    NotAFile,
    NotADirectory,
    PermissionDenied,
    AlreadyExists,
    IOFailure,
    UnsupportedOperation,
)
from .permission_manager import PermissionManager, PermissionLevel
from .logger import AuditLogger, AuditEntry

__all__ = [
    "Settings",
    "load_settings",
    "FilesystemError",
    "NotFound",
    "NotAFile",
    "NotADirectory",
    "PermissionDenied",
    "AlreadyExists",
    "IOFailure",
    "UnsupportedOperation",
    "PermissionManager",
    "PermissionLevel",
    "AuditLogger",
    "AuditEntry",
]

__version__ = "0.1.0"
