"""
Tests for the permission-gated FileOperator.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import Settings
from core.exceptions import AlreadyExists, NotFound
from core.logger import AuditLogger, ActionType, ActionStatus
from core.permission_manager import PermissionManager, PermissionLevel
from modules.filesystem import FileOperator


@pytest.fixture
def workspace():
    path = tempfile.mkdtemp()
    Path(path, "file.txt").write_text("Hello")
    os.makedirs(os.path.join(path, "tmp", "nested"))
    Path(path, "tmp", "foo.txt").write_text("foo")
    Path(path, "tmp", "nested", "baz.txt").write_text("baz")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def logger():
    with tempfile.NamedTemporaryFile(mode='w', suffix='.jsonl', delete=False) as f:
        yield AuditLogger(log_path=f.name)
    os.unlink(f.name)


@pytest.fixture
def permission_manager(workspace, logger):
    settings = Settings.from_dict({
        "audit_log": str(logger.log_path),
        "safe_paths": [workspace],
        "permissions": {
            "auto_approve": ["read_file", "list_directory", "get_file_info", "hash_file"],
            "blacklist": ["*.lock"],
            "protected_paths": [os.path.join(workspace, "protected")],
        },
    })
    pm = PermissionManager(config_path=os.path.join(workspace, "config.yaml"), logger=logger, settings=settings)
    pm.set_approval_callback(lambda desc, preview: True)
    return pm


@pytest.fixture
def operator(permission_manager, logger):
    return FileOperator(permission_manager, logger)


class TestReads:
    """Read operations never need approval."""

    def test_read_file(self, operator, workspace):
        assert operator.read_file(os.path.join(workspace, "file.txt")) == b"Hello"

    def test_read_missing_file(self, operator, workspace):
        with pytest.raises(NotFound):
            operator.read_file(os.path.join(workspace, "missing.txt"))

    def test_read_blacklisted_target(self, operator, workspace):
        with pytest.raises(PermissionError):
            operator.read_file(os.path.join(workspace, "db.lock"))

    def test_hash_file_uses_configured_algorithm(self, operator, workspace):
        path = os.path.join(workspace, "tmp", "foo.txt")
        assert operator.hash_file(path) == "acbd18db4cc2f85cedef654fccc4a4d8"
        assert len(operator.hash_file(path, "sha1")) == 40

    def test_get_file_info(self, operator, workspace):
        info = operator.get_file_info(os.path.join(workspace, "file.txt"))

        assert info.name == "file.txt"
        assert info.size == 5
        assert info.extension == "txt"
        assert info.is_file

    def test_list_directory(self, operator, workspace):
        names = [e.relative_path for e in operator.list_directory(os.path.join(workspace, "tmp"), recursive=True)]
        assert names == ["foo.txt", os.path.join("nested", "baz.txt")]


class TestWrites:
    """Mutating operations go through the permission manager and the audit log."""

    def test_write_level_depends_on_safe_paths(self, operator, workspace):
        assert operator._get_write_level(os.path.join(workspace, "a.txt")) == PermissionLevel.SAFE_WRITE
        assert operator._get_write_level("/etc/a.txt") == PermissionLevel.SYSTEM_WRITE
        assert operator._get_write_level(os.path.join(workspace, "a"), "/etc/a") == PermissionLevel.SYSTEM_WRITE

    def test_dry_run_changes_nothing(self, operator, workspace, logger):
        path = os.path.join(workspace, "new.txt")

        assert operator.write_file(path, "data")

        assert not os.path.exists(path)
        entry = logger.get_recent(limit=1)[0]
        assert entry.status == ActionStatus.DRY_RUN.value
        assert entry.action_type == ActionType.WRITE.value
        assert entry.target == path

    @pytest.mark.parametrize("mode,expected", [
        ("put", b"World"),
        ("append", b"HelloWorld"),
        ("prepend", b"WorldHello"),
        ("replace", b"World"),
    ])
    def test_write_modes(self, operator, workspace, mode, expected):
        path = os.path.join(workspace, "file.txt")

        assert operator.write_file(path, "World", mode=mode, dry_run=False)

        assert Path(path).read_bytes() == expected

    def test_unknown_write_mode(self, operator, workspace):
        with pytest.raises(ValueError):
            operator.write_file(os.path.join(workspace, "file.txt"), "x", mode="truncate")

    def test_denied_by_user(self, operator, permission_manager, workspace, logger):
        permission_manager.set_approval_callback(lambda desc, preview: False)
        path = os.path.join(workspace, "file.txt")

        assert operator.write_file(path, "World", dry_run=False) is False

        assert Path(path).read_text() == "Hello"
        assert logger.get_recent(limit=1)[0].status == ActionStatus.DENIED.value

    def test_protected_path_is_refused_even_in_dry_run(self, operator, workspace):
        assert operator.delete_directory(os.path.join(workspace, "protected")) is False
        assert operator.clean_directory(workspace, dry_run=False) is False
        assert os.path.exists(os.path.join(workspace, "file.txt"))

    def test_moving_a_protected_directory_is_refused(self, operator, workspace, logger):
        protected = os.path.join(workspace, "protected")
        os.makedirs(protected)
        Path(protected, "keep.txt").write_text("keep")

        assert operator.move_directory(protected, os.path.join(workspace, "elsewhere"), dry_run=False) is False
        assert operator.move_file(
            os.path.join(protected, "keep.txt"), os.path.join(workspace, "kept.txt"), dry_run=False
        )

        assert os.path.isdir(protected)
        assert not os.path.exists(os.path.join(workspace, "elsewhere"))
        assert logger.get_denied_actions()

    def test_make_directory(self, operator, workspace):
        path = os.path.join(workspace, "a", "b")

        assert operator.make_directory(path, recursive=True, dry_run=False)

        assert os.path.isdir(path)

    def test_failure_is_logged_and_raised(self, operator, workspace, logger):
        path = os.path.join(workspace, "missing", "file.txt")

        with pytest.raises(NotFound):
            operator.write_file(path, "x", dry_run=False)

        entry = logger.get_recent(limit=1)[0]
        assert entry.status == ActionStatus.FAILED.value
        assert entry.result.startswith("Error:")

    def test_copy_and_move_file(self, operator, workspace):
        src = os.path.join(workspace, "file.txt")
        copy = os.path.join(workspace, "copy.txt")
        moved = os.path.join(workspace, "moved.txt")

        assert operator.copy_file(src, copy, dry_run=False)
        assert operator.move_file(copy, moved, dry_run=False)

        assert Path(moved).read_text() == "Hello"
        assert not os.path.exists(copy)

    def test_copy_file_checks(self, operator, workspace):
        src = os.path.join(workspace, "file.txt")
        with pytest.raises(NotFound):
            operator.copy_file(os.path.join(workspace, "missing.txt"), os.path.join(workspace, "x.txt"))
        with pytest.raises(AlreadyExists):
            operator.copy_file(src, os.path.join(workspace, "tmp", "foo.txt"))

    def test_copy_and_move_directory(self, operator, workspace):
        src = os.path.join(workspace, "tmp")
        copy = os.path.join(workspace, "tmp2")
        moved = os.path.join(workspace, "tmp3")

        assert operator.copy_directory(src, copy, dry_run=False)
        assert operator.move_directory(copy, moved, dry_run=False)

        assert Path(moved, "nested", "baz.txt").read_text() == "baz"
        assert not os.path.exists(copy)
        assert os.path.isdir(src)

    def test_failed_directory_copy_is_logged(self, operator, workspace, logger):
        assert operator.copy_directory(os.path.join(workspace, "nope"), os.path.join(workspace, "x"), dry_run=False) is False

        entry = logger.get_recent(limit=1)[0]
        assert entry.status == ActionStatus.FAILED.value
        assert entry.metadata["failed"] == [os.path.join(workspace, "nope")]

    def test_overwriting_move_is_destructive(self, operator, permission_manager, workspace):
        seen = []
        permission_manager.set_approval_callback(lambda desc, preview: seen.append(desc) or True)
        src = os.path.join(workspace, "tmp")
        dst = os.path.join(workspace, "dst")
        os.makedirs(dst)

        assert operator.move_directory(src, dst, dry_run=False) is False
        assert operator.move_directory(src, dst, overwrite=True, dry_run=False)

        assert os.path.isfile(os.path.join(dst, "foo.txt"))
        assert len(seen) == 2

    def test_delete_file(self, operator, workspace):
        path = os.path.join(workspace, "file.txt")

        assert operator.delete_file(path, dry_run=True)
        assert os.path.exists(path)

        assert operator.delete_file(path, dry_run=False)
        assert not os.path.exists(path)

        with pytest.raises(NotFound):
            operator.delete_file(path)

    def test_clean_and_delete_directory(self, operator, workspace):
        tree = os.path.join(workspace, "tmp")

        assert operator.clean_directory(tree, dry_run=False)
        assert os.listdir(tree) == []

        assert operator.delete_directory(tree, dry_run=False)
        assert not os.path.exists(tree)
