"""
Filesystem facade for fsops.

Stateless, path-based helpers over the operating system's filesystem calls:
existence and metadata queries, whole-file content operations, permission
bits, hashing, globbing, directory listing and recursive copy/move/delete.

Two error styles are used, per operation:
- OS-call mirrors (move, copy, set_permissions, the directory operations)
  report failure through their return value.
- Content reads/writes and queries that need the path to exist raise a
  FilesystemError subclass from core.exceptions.

Nothing in here logs, reads configuration or checks permissions; that is the
job of FileOperator.
"""

import contextlib
import glob as globlib
import hashlib
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Set, Union

from core.exceptions import (
    NotADirectory,
    NotFound,
    UnsupportedOperation,
    translate_os_error,
)

try:
    import magic
except ImportError:
    # python-magic raises ImportError when libmagic itself is missing too
    magic = None


PathLike = Union[str, "os.PathLike[str]"]
Content = Union[bytes, str]

HASH_CHUNK_SIZE = 64 * 1024

# Checked in order; S_ISLNK must come first because lstat is used.
_FILE_TYPES = (
    (stat.S_ISLNK, "link"),
    (stat.S_ISDIR, "dir"),
    (stat.S_ISREG, "file"),
    (stat.S_ISFIFO, "fifo"),
    (stat.S_ISCHR, "char"),
    (stat.S_ISBLK, "block"),
    (stat.S_ISSOCK, "socket"),
)


def _to_bytes(content: Content) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


def _format_mode(mode: int) -> str:
    return f"{stat.S_IMODE(mode):04o}"


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _is_within(path: str, parent: str) -> bool:
    """True if the real ``path`` is ``parent`` or lies somewhere below it."""
    real_path = os.path.realpath(path)
    real_parent = os.path.realpath(parent)
    return os.path.commonpath([real_parent, real_path]) == real_parent


@dataclass
class FileEntry:
    """Information about a file or directory."""
    path: str
    name: str
    relative_path: str
    size: int
    modified: str
    extension: str
    permissions: str
    is_dir: bool
    is_file: bool

    @classmethod
    def from_path(cls, path: PathLike, root: Optional[PathLike] = None) -> "FileEntry":
        """
        Build an entry by stat-ing ``path``.

        Args:
            path: Path to the file or directory
            root: Directory that ``relative_path`` is computed against;
                  defaults to the entry's own parent

        Raises:
            NotFound: If the path does not exist
        """
        path = os.fspath(path)
        try:
            st = os.stat(path)
        except OSError as e:
            raise translate_os_error(e, path) from e

        is_dir = stat.S_ISDIR(st.st_mode)
        relative = os.path.relpath(path, os.fspath(root)) if root is not None else os.path.basename(path)

        return cls(
            path=path,
            name=os.path.basename(path),
            relative_path=relative,
            size=0 if is_dir else st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime).isoformat(),
            extension=Filesystem.extension(path),
            permissions=_format_mode(st.st_mode),
            is_dir=is_dir,
            is_file=stat.S_ISREG(st.st_mode),
        )


@dataclass
class OperationResult:
    """
    Outcome of an operation that touches several paths.

    Truthy when every sub-operation succeeded; ``failed`` lists the paths
    that could not be processed.
    """
    failed: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def __bool__(self) -> bool:
        return self.success


class Filesystem:
    """Static helpers over the native filesystem. Holds no state."""

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def exists(path: PathLike) -> bool:
        """Determine if a file or directory exists."""
        return os.path.exists(path)

    @staticmethod
    def missing(path: PathLike) -> bool:
        """Determine if a file or directory is missing."""
        return not os.path.exists(path)

    @staticmethod
    def is_file(path: PathLike) -> bool:
        return os.path.isfile(path)

    @staticmethod
    def is_directory(path: PathLike) -> bool:
        return os.path.isdir(path)

    @staticmethod
    def is_readable(path: PathLike) -> bool:
        return os.access(path, os.R_OK)

    @staticmethod
    def is_writable(path: PathLike) -> bool:
        return os.access(path, os.W_OK)

    @staticmethod
    def type(path: PathLike) -> str:
        """
        Get the type of a filesystem entry.

        A symbolic link is reported as ``link`` rather than followed.

        Returns:
            One of file, dir, link, fifo, char, block, socket or unknown

        Raises:
            NotFound: If nothing exists at the path
        """
        path = os.fspath(path)
        try:
            mode = os.lstat(path).st_mode
        except OSError as e:
            raise translate_os_error(e, path) from e

        for predicate, name in _FILE_TYPES:
            if predicate(mode):
                return name
        return "unknown"

    @staticmethod
    def mime_type(path: PathLike) -> Optional[str]:
        """
        Sniff the MIME type of a file from its content.

        Returns:
            The MIME type, or None if detection failed

        Raises:
            UnsupportedOperation: If libmagic is not available
        """
        path = os.fspath(path)
        if magic is None:
            raise UnsupportedOperation(
                "MIME type detection requires libmagic (python-magic)", path=path
            )

        try:
            return magic.from_file(path, mime=True)
        except (OSError, magic.MagicException):
            return None

    @staticmethod
    def size(path: PathLike) -> int:
        """Get the size of a file in bytes."""
        return Filesystem._stat(path).st_size

    @staticmethod
    def last_modified(path: PathLike) -> float:
        """Get the file's last modification time as a POSIX timestamp."""
        return Filesystem._stat(path).st_mtime

    @staticmethod
    def hash(path: PathLike, algorithm: str = "md5") -> str:
        """
        Get the hex digest of the file's content.

        MD5 is the default; any algorithm name ``hashlib.new`` accepts works.

        Raises:
            NotFound: If the path is not a regular file
            ValueError: If the algorithm is unknown
        """
        path = os.fspath(path)
        if not os.path.isfile(path):
            raise NotFound(f"File does not exist at path: {path}", path=path)

        hasher = hashlib.new(algorithm)
        try:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                    hasher.update(chunk)
        except OSError as e:
            raise translate_os_error(e, path) from e

        return hasher.hexdigest()

    @staticmethod
    def name(path: PathLike) -> str:
        """Extract the file name, without its extension, from a path."""
        return os.path.splitext(os.path.basename(os.fspath(path)))[0]

    @staticmethod
    def basename(path: PathLike) -> str:
        return os.path.basename(os.fspath(path))

    @staticmethod
    def dirname(path: PathLike) -> str:
        """Extract the parent directory from a path ("." for a bare name)."""
        return os.path.dirname(os.fspath(path)) or "."

    @staticmethod
    def extension(path: PathLike) -> str:
        """Extract the file extension, without the leading dot."""
        return os.path.splitext(os.fspath(path))[1][1:]

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    @staticmethod
    def get(path: PathLike) -> bytes:
        """
        Get the contents of a file.

        Raises:
            NotFound: If the path is not a regular file
        """
        path = os.fspath(path)
        if not os.path.isfile(path):
            raise NotFound(f"File does not exist at path: {path}", path=path)

        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise translate_os_error(e, path) from e

    @staticmethod
    def put(path: PathLike, content: Content, append: bool = False) -> int:
        """
        Write the contents of a file, creating or truncating it.

        Args:
            path: File to write
            content: Bytes, or text which is written as UTF-8
            append: Append instead of truncating

        Returns:
            Number of bytes written
        """
        path = os.fspath(path)
        data = _to_bytes(content)
        try:
            with open(path, "ab" if append else "wb") as f:
                return f.write(data)
        except OSError as e:
            raise translate_os_error(e, path) from e

    @classmethod
    def prepend(cls, path: PathLike, content: Content) -> int:
        """Prepend to a file, creating it if absent. Not atomic."""
        data = _to_bytes(content)
        if cls.exists(path):
            data += cls.get(path)
        return cls.put(path, data)

    @classmethod
    def append(cls, path: PathLike, content: Content) -> int:
        """Append to a file, creating it if absent."""
        return cls.put(path, content, append=True)

    @staticmethod
    def replace(path: PathLike, content: Content) -> None:
        """
        Write the contents of a file, replacing it atomically.

        The content goes to a temporary file in the target's directory which
        is then renamed over the target, so readers see either the old or
        the new content. Symlinks in ``path`` are resolved first so the link
        itself survives.
        """
        path = os.fspath(path)
        data = _to_bytes(content)
        target = os.path.realpath(path)
        directory = os.path.dirname(target)

        try:
            fd, temp_path = tempfile.mkstemp(
                dir=directory, prefix=f".{os.path.basename(target)}."
            )
        except OSError as e:
            raise translate_os_error(e, path) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(temp_path, 0o777 & ~_current_umask())
            os.replace(temp_path, target)
        except OSError as e:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(temp_path)
            raise translate_os_error(e, path) from e

    @staticmethod
    def delete(paths: Union[PathLike, Iterable[PathLike]]) -> OperationResult:
        """
        Delete the file at each given path.

        Every path is attempted exactly once, whatever happened to the
        previous ones.

        Args:
            paths: A single path or an iterable of paths
        """
        if isinstance(paths, (str, os.PathLike)):
            paths = [paths]

        result = OperationResult()
        for path in paths:
            try:
                os.unlink(path)
            except OSError:
                result.failed.append(os.fspath(path))
        return result

    @staticmethod
    def move(path: PathLike, target: PathLike) -> bool:
        """Move a file to a new location, replacing any file there."""
        try:
            os.replace(path, target)
        except OSError:
            return False
        return True

    @staticmethod
    def copy(path: PathLike, target: PathLike) -> bool:
        """Copy a file, with its metadata, to a new location."""
        try:
            shutil.copy2(path, target)
        except OSError:
            return False
        return True

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    @staticmethod
    def get_permissions(path: PathLike) -> str:
        """Get the permission bits of a path as a 4-digit octal string."""
        return _format_mode(Filesystem._stat(path).st_mode)

    @staticmethod
    def set_permissions(path: PathLike, mode: int) -> bool:
        try:
            os.chmod(path, mode)
        except OSError:
            return False
        return True

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    @staticmethod
    def glob(pattern: PathLike, recursive: bool = False, only_directories: bool = False) -> List[str]:
        """
        Find path names matching a pattern.

        Order is whatever the OS reports. ``**`` matches across directories
        only when ``recursive`` is set.
        """
        matches = globlib.glob(os.fspath(pattern), recursive=recursive)
        if only_directories:
            matches = [match for match in matches if os.path.isdir(match)]
        return matches

    @staticmethod
    def files(directory: PathLike, recursive: bool = False, hidden: bool = False) -> List[FileEntry]:
        """
        List the regular files in a directory.

        Args:
            directory: Directory to list
            recursive: Descend into subdirectories (symlinked ones are not followed)
            hidden: Include dot-files and, when recursing, dot-directories

        Returns:
            FileEntry objects sorted by relative path

        Raises:
            NotFound: If the directory does not exist
            NotADirectory: If the path is not a directory
        """
        root = Filesystem._require_directory(directory)
        entries = []

        for current, dirnames, filenames in os.walk(root):
            if not hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]

            for filename in filenames:
                if not hidden and filename.startswith("."):
                    continue
                full_path = os.path.join(current, filename)
                # Broken links and special files are skipped
                if os.path.isfile(full_path):
                    entries.append(FileEntry.from_path(full_path, root))

            if not recursive:
                break

        entries.sort(key=lambda entry: entry.relative_path)
        return entries

    @classmethod
    def all_files(cls, directory: PathLike, hidden: bool = False) -> List[FileEntry]:
        """Get all of the files from the given directory (recursive)."""
        return cls.files(directory, recursive=True, hidden=hidden)

    @staticmethod
    def directories(directory: PathLike, hidden: bool = False) -> List[str]:
        """Get the immediate subdirectories of a directory."""
        root = Filesystem._require_directory(directory)
        with os.scandir(root) as it:
            found = [
                os.path.join(root, entry.name)
                for entry in it
                if entry.is_dir() and (hidden or not entry.name.startswith("."))
            ]
        return sorted(found)

    @staticmethod
    def make_directory(
        path: PathLike,
        mode: int = 0o755,
        recursive: bool = False,
        force: bool = False
    ) -> bool:
        """
        Create a directory.

        Args:
            path: Directory to create
            mode: Permission bits, subject to the umask
            recursive: Also create missing parents
            force: Return False on failure instead of raising

        Raises:
            NotFound: If the parent is missing and ``recursive`` is not set
            AlreadyExists: If something already exists at the path
        """
        path = os.fspath(path)
        try:
            if recursive:
                os.makedirs(path, mode)
            else:
                os.mkdir(path, mode)
        except OSError as e:
            if force:
                return False
            raise translate_os_error(e, path) from e
        return True

    @classmethod
    def move_directory(cls, source: PathLike, destination: PathLike, overwrite: bool = False) -> bool:
        """
        Move a directory.

        An existing destination is refused unless ``overwrite`` is set, in
        which case it is deleted first. A destination that is the source or
        one of its ancestors is always refused. The move itself is a rename,
        so it fails across devices.
        """
        source = os.fspath(source)
        destination = os.fspath(destination)

        if not cls.is_directory(source):
            return False

        # Deleting such a destination would delete the source with it
        if _is_within(source, destination):
            return False

        if os.path.lexists(destination):
            if not overwrite:
                return False
            if os.path.isdir(destination) and not os.path.islink(destination):
                removed = cls.delete_directory(destination)
            else:
                removed = cls.delete(destination)
            if not removed:
                return False

        try:
            os.rename(source, destination)
        except OSError:
            return False
        return True

    @classmethod
    def copy_directory(
        cls,
        directory: PathLike,
        destination: PathLike,
        follow_symlinks: bool = False
    ) -> OperationResult:
        """
        Copy a directory to another location.

        Stops at the first failure and leaves whatever was already copied in
        place. Symbolic links are recreated as links unless
        ``follow_symlinks`` is set. When following, a link back to a
        directory already being copied is refused and reported in
        ``failed``.
        """
        source = os.fspath(directory)
        destination = os.fspath(destination)
        result = OperationResult()

        if not cls.is_directory(source):
            result.failed.append(source)
            return result

        if _is_within(destination, source):
            # Copying a tree into itself never terminates
            result.failed.append(destination)
            return result

        cls._copy_tree(source, destination, follow_symlinks, set(), result)
        return result

    @classmethod
    def _copy_tree(
        cls,
        source: str,
        destination: str,
        follow_symlinks: bool,
        ancestors: Set[str],
        result: OperationResult
    ) -> bool:
        real_source = os.path.realpath(source)
        if real_source in ancestors:
            result.failed.append(source)
            return False
        ancestors = ancestors | {real_source}

        if not os.path.isdir(destination):
            try:
                os.makedirs(destination, 0o777)
            except OSError:
                result.failed.append(destination)
                return False

        try:
            with os.scandir(source) as it:
                items = list(it)
        except OSError:
            result.failed.append(source)
            return False

        for item in items:
            target = os.path.join(destination, item.name)

            if item.is_symlink() and not follow_symlinks:
                copied = cls._copy_link(item.path, target)
            elif item.is_dir():
                # The nested call records its own failure
                if not cls._copy_tree(item.path, target, follow_symlinks, ancestors, result):
                    return False
                continue
            else:
                copied = cls.copy(item.path, target)

            if not copied:
                result.failed.append(item.path)
                return False

        return True

    @staticmethod
    def _copy_link(link: str, target: str) -> bool:
        try:
            os.symlink(os.readlink(link), target)
        except OSError:
            return False
        return True

    @classmethod
    def delete_directory(cls, directory: PathLike, preserve: bool = False) -> OperationResult:
        """
        Delete a directory recursively.

        Symbolic links, including links to directories, are removed as
        entries and never followed. A path that is itself a symlink is not
        treated as a directory. Deletion carries on past failures; every
        path that could not be removed ends up in ``failed``.

        Args:
            directory: Directory to delete
            preserve: Keep the (emptied) directory itself
        """
        directory = os.fspath(directory)
        result = OperationResult()

        if not os.path.isdir(directory) or os.path.islink(directory):
            result.failed.append(directory)
            return result

        cls._delete_tree(directory, preserve, result)
        return result

    @classmethod
    def _delete_tree(cls, directory: str, preserve: bool, result: OperationResult) -> None:
        try:
            with os.scandir(directory) as it:
                items = list(it)
        except OSError:
            result.failed.append(directory)
            return

        for item in items:
            if item.is_dir(follow_symlinks=False):
                cls._delete_tree(item.path, False, result)
            else:
                result.failed.extend(cls.delete(item.path).failed)

        if not preserve:
            try:
                os.rmdir(directory)
            except OSError:
                result.failed.append(directory)

    @classmethod
    def clean_directory(cls, directory: PathLike) -> OperationResult:
        """Empty a directory of all files and folders, keeping the directory."""
        return cls.delete_directory(directory, preserve=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _stat(path: PathLike) -> os.stat_result:
        path = os.fspath(path)
        try:
            return os.stat(path)
        except OSError as e:
            raise translate_os_error(e, path) from e

    @staticmethod
    def _require_directory(directory: PathLike) -> str:
        directory = os.fspath(directory)
        if not os.path.exists(directory):
            raise NotFound(f"Directory not found: {directory}", path=directory)
        if not os.path.isdir(directory):
            raise NotADirectory(f"Not a directory: {directory}", path=directory)
        return directory
