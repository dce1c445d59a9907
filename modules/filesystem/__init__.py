"""
Filesystem module for fsops.

The stateless Filesystem facade, plus FileOperator for permission-gated,
audited use of it.
"""

from .filesystem import Filesystem, FileEntry, OperationResult
from .file_ops import FileOperator

__all__ = ['Filesystem', 'FileEntry', 'OperationResult', 'FileOperator']
