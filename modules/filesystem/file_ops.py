"""
File operations module for fsops.

Runs Filesystem facade operations behind permission checks and records each
one in the audit log. Mutating operations default to dry runs.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.exceptions import AlreadyExists, FilesystemError, NotFound, translate_os_error
from core.permission_manager import PermissionManager, PermissionLevel, ActionRequest
from core.logger import AuditLogger, ActionType, ActionStatus

from .filesystem import Content, FileEntry, Filesystem, OperationResult


WRITE_MODES = ("put", "append", "prepend", "replace")


class FileOperator:
    """Operations on files and directories with permission management."""

    def __init__(
        self,
        permission_manager: PermissionManager,
        logger: AuditLogger,
        safe_paths: Optional[Iterable[str]] = None
    ):
        """
        Initialize FileOperator.

        Args:
            permission_manager: Permission manager instance
            logger: Audit logger instance
            safe_paths: Directories where writes only need SAFE_WRITE;
                        defaults to the permission manager's settings
        """
        self.pm = permission_manager
        self.logger = logger
        if safe_paths is None:
            safe_paths = permission_manager.settings.safe_paths
        self.safe_paths = [os.path.realpath(os.path.expanduser(p)) for p in safe_paths]

    def _is_safe_path(self, path: str) -> bool:
        real_path = os.path.realpath(path)
        return any(
            real_path == safe or real_path.startswith(safe.rstrip(os.sep) + os.sep)
            for safe in self.safe_paths
        )

    def _get_write_level(self, *paths: str) -> PermissionLevel:
        """The level needed to write to all of ``paths``."""
        if all(self._is_safe_path(p) for p in paths):
            return PermissionLevel.SAFE_WRITE
        return PermissionLevel.SYSTEM_WRITE

    def _require_read(self, action_type: str, path: str) -> None:
        action = ActionRequest(
            action_type=action_type,
            description=f"{action_type.replace('_', ' ').capitalize()}: {path}",
            target=path,
            required_level=PermissionLevel.READ
        )
        result = self.pm.check_permission(action)
        if not result.success:
            raise PermissionError(f"Permission denied: {result.message}")

    def _run(
        self,
        action: ActionRequest,
        audit_type: ActionType,
        operation: Callable[[], Any],
        dry_run: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Check permission, then preview or execute ``operation`` and log the outcome.

        Returns:
            True if the action was executed (or previewed) successfully

        Raises:
            FilesystemError: If the operation raised; logged as FAILED first
        """
        level = action.required_level.value
        result = self.pm.check_permission(action, dry_run=dry_run)

        if not result.success:
            self.logger.log_action(
                action_type=audit_type,
                description=f"Permission denied: {action.description}",
                permission_level=level,
                target=action.target,
                user_approved=False,
                status=ActionStatus.DENIED,
                result=result.message
            )
            return False

        if dry_run or result.dry_run:
            self.logger.log_action(
                action_type=audit_type,
                description=f"DRY-RUN: Would {action.description[0].lower()}{action.description[1:]}",
                permission_level=level,
                target=action.target,
                status=ActionStatus.DRY_RUN,
                metadata=metadata
            )
            return True

        try:
            outcome = operation()
        except OSError as e:
            self.logger.log_action(
                action_type=audit_type,
                description=f"Failed: {action.description}",
                permission_level=level,
                target=action.target,
                status=ActionStatus.FAILED,
                result=f"Error: {e}"
            )
            if isinstance(e, FilesystemError):
                raise
            raise translate_os_error(e, action.target) from e

        failed: List[str] = []
        if isinstance(outcome, OperationResult):
            failed = outcome.failed
        succeeded = outcome is not False and not failed

        self.logger.log_action(
            action_type=audit_type,
            description=f"{'Done' if succeeded else 'Failed'}: {action.description}",
            permission_level=level,
            target=action.target,
            status=ActionStatus.EXECUTED if succeeded else ActionStatus.FAILED,
            result=None if succeeded else "Operation reported failure",
            metadata={**(metadata or {}), "failed": failed} if failed else metadata
        )
        return succeeded

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> bytes:
        """
        Read the contents of a file.

        Raises:
            PermissionError: If permission denied
            NotFound: If the path is not a regular file
        """
        self._require_read("read_file", path)
        return Filesystem.get(path)

    def hash_file(self, path: str, algorithm: Optional[str] = None) -> str:
        """Hash a file with the given or the configured algorithm."""
        self._require_read("hash_file", path)
        return Filesystem.hash(path, algorithm or self.pm.settings.hash_algorithm)

    def get_file_info(self, path: str) -> FileEntry:
        """
        Get information about a file or directory.

        Raises:
            NotFound: If path doesn't exist
        """
        self._require_read("get_file_info", path)
        return FileEntry.from_path(path)

    def list_directory(self, path: str, recursive: bool = False, hidden: Optional[bool] = None) -> List[FileEntry]:
        """
        List the files in a directory.

        Args:
            path: Directory to list
            recursive: Include files in subdirectories
            hidden: Include dot-files; defaults to the configured setting

        Raises:
            PermissionError: If permission denied
            NotADirectory: If path is not a directory
        """
        self._require_read("list_directory", path)
        if hidden is None:
            hidden = self.pm.settings.show_hidden
        return Filesystem.files(path, recursive=recursive, hidden=hidden)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_file(self, path: str, content: Content, mode: str = "put", dry_run: bool = True) -> bool:
        """
        Write content to a file.

        Args:
            path: File to write
            content: Bytes or UTF-8 text
            mode: One of put, append, prepend or replace
            dry_run: If True, only preview the action (default: True)
        """
        if mode not in WRITE_MODES:
            raise ValueError(f"Unknown write mode: {mode}")

        action = ActionRequest(
            action_type="write_file",
            description=f"Write file: {path}",
            target=path,
            required_level=self._get_write_level(path),
            parameters={"mode": mode, "content_length": len(content)}
        )
        writer = getattr(Filesystem, mode)
        return self._run(
            action, ActionType.WRITE, lambda: writer(path, content), dry_run,
            metadata={"mode": mode, "content_length": len(content)}
        )

    def make_directory(self, path: str, recursive: bool = False, dry_run: bool = True) -> bool:
        action = ActionRequest(
            action_type="write_directory",
            description=f"Create directory: {path}",
            target=path,
            required_level=self._get_write_level(path),
            parameters={"recursive": recursive}
        )
        mode = self.pm.settings.directory_mode
        return self._run(
            action, ActionType.WRITE,
            lambda: Filesystem.make_directory(path, mode, recursive=recursive),
            dry_run
        )

    def copy_file(self, src: str, dst: str, dry_run: bool = True) -> bool:
        """
        Copy a file from source to destination.

        Raises:
            NotFound: If the source is not a regular file
            AlreadyExists: If the destination already exists
        """
        self._check_transfer(src, dst)
        action = ActionRequest(
            action_type="copy_file",
            description=f"Copy {src} to {dst}",
            target=dst,
            required_level=self._get_write_level(dst),
            parameters={"source": src}
        )
        return self._run(
            action, ActionType.COPY, lambda: Filesystem.copy(src, dst), dry_run,
            metadata={"source": src, "destination": dst, "size": Filesystem.size(src)}
        )

    def move_file(self, src: str, dst: str, dry_run: bool = True) -> bool:
        """
        Move a file from source to destination.

        Both ends must be writable, so the higher of the two levels applies.
        """
        self._check_transfer(src, dst)
        action = ActionRequest(
            action_type="move_file",
            description=f"Move {src} to {dst}",
            target=dst,
            required_level=self._get_write_level(src, dst),
            parameters={"source": src}
        )
        return self._run(
            action, ActionType.MOVE, lambda: Filesystem.move(src, dst), dry_run,
            metadata={"source": src, "destination": dst, "size": Filesystem.size(src)}
        )

    @staticmethod
    def _check_transfer(src: str, dst: str) -> None:
        if not Filesystem.is_file(src):
            raise NotFound(f"Source file not found: {src}", path=src)
        if Filesystem.exists(dst):
            raise AlreadyExists(f"Destination already exists: {dst}", path=dst)

    def copy_directory(self, src: str, dst: str, dry_run: bool = True) -> bool:
        """Copy a directory tree. A failed copy leaves the partial tree in place."""
        action = ActionRequest(
            action_type="copy_directory",
            description=f"Copy directory {src} to {dst}",
            target=dst,
            required_level=self._get_write_level(dst),
            parameters={"source": src}
        )
        return self._run(
            action, ActionType.COPY, lambda: Filesystem.copy_directory(src, dst), dry_run,
            metadata={"source": src, "destination": dst}
        )

    def move_directory(self, src: str, dst: str, overwrite: bool = False, dry_run: bool = True) -> bool:
        """Move a directory; overwriting an existing destination is destructive."""
        level = PermissionLevel.DESTRUCTIVE if overwrite else self._get_write_level(src, dst)
        action = ActionRequest(
            action_type="move_directory",
            description=f"Move directory {src} to {dst}",
            target=dst,
            required_level=level,
            parameters={"source": src, "overwrite": overwrite}
        )
        return self._run(
            action, ActionType.MOVE,
            lambda: Filesystem.move_directory(src, dst, overwrite=overwrite),
            dry_run,
            metadata={"source": src, "destination": dst, "overwrite": overwrite}
        )

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_file(self, path: str, dry_run: bool = True) -> bool:
        """
        Delete a file.

        Raises:
            NotFound: If nothing exists at the path
        """
        if not os.path.lexists(path):
            raise NotFound(f"File not found: {path}", path=path)

        size = Path(path).lstat().st_size
        action = ActionRequest(
            action_type="delete_file",
            description=f"Delete file: {path}",
            target=path,
            required_level=PermissionLevel.DESTRUCTIVE,
            parameters={"size": size}
        )
        return self._run(
            action, ActionType.DELETE, lambda: Filesystem.delete(path), dry_run,
            metadata={"file_size": size}
        )

    def delete_directory(self, path: str, dry_run: bool = True) -> bool:
        action = ActionRequest(
            action_type="delete_directory",
            description=f"Delete directory: {path}",
            target=path,
            required_level=PermissionLevel.DESTRUCTIVE
        )
        return self._run(
            action, ActionType.DELETE, lambda: Filesystem.delete_directory(path), dry_run
        )

    def clean_directory(self, path: str, dry_run: bool = True) -> bool:
        """Remove everything inside a directory but keep the directory."""
        action = ActionRequest(
            action_type="clean_directory",
            description=f"Clean directory: {path}",
            target=path,
            required_level=PermissionLevel.DESTRUCTIVE
        )
        return self._run(
            action, ActionType.DELETE, lambda: Filesystem.clean_directory(path), dry_run
        )
