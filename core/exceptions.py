"""
Error taxonomy for fsops.

Every error raised by the filesystem facade is a FilesystemError, which is
itself an OSError, so callers that already catch the built-in exceptions
keep working.
"""

import errno
from typing import Optional


class FilesystemError(OSError):
    """Base class for all fsops filesystem errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NotFound(FilesystemError, FileNotFoundError):
    """Path is absent where it is required to exist."""


class NotAFile(FilesystemError, IsADirectoryError):
    """A regular file was required."""


class NotADirectory(FilesystemError, NotADirectoryError):
    """A directory was required."""


class PermissionDenied(FilesystemError, PermissionError):
    """The operating system refused access to the path."""


class AlreadyExists(FilesystemError, FileExistsError):
    """The target of a create or overwrite already exists."""


class IOFailure(FilesystemError):
    """Generic OS-call failure (disk full, cross-device rename, ...)."""


class UnsupportedOperation(FilesystemError):
    """An optional collaborator needed by the operation is unavailable."""


_ERRNO_MAP = {
    errno.ENOENT: NotFound,
    errno.EISDIR: NotAFile,
    errno.ENOTDIR: NotADirectory,
    errno.EACCES: PermissionDenied,
    errno.EPERM: PermissionDenied,
    errno.EEXIST: AlreadyExists,
    errno.ENOTEMPTY: AlreadyExists,
}


def translate_os_error(error: OSError, path: Optional[str] = None) -> FilesystemError:
    """
    Map an OSError onto the matching FilesystemError subclass.

    The caller is expected to ``raise ... from error`` so the caught
    error stays attached as ``__cause__``.

    Args:
        error: The caught OSError
        path: Path the failing call was operating on

    Returns:
        A FilesystemError instance (not raised)
    """
    if isinstance(error, FilesystemError):
        return error

    target = path if path is not None else error.filename
    error_cls = _ERRNO_MAP.get(error.errno, IOFailure)
    reason = error.strerror or str(error)

    if target is not None:
        message = f"{reason}: {target}"
    else:
        message = reason

    return error_cls(message, path=None if target is None else str(target))
