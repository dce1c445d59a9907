"""
Tests for the fsops command line interface.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from fsops import fsops


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
def config(workspace):
    path = os.path.join(workspace, "config.yaml")
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump({
            "fsops": {
                "audit_log": os.path.join(workspace, "audit.jsonl"),
                "safe_paths": [workspace],
                "permissions": {
                    "auto_approve": ["read_file", "list_directory", "get_file_info", "hash_file"],
                    "blacklist": ["format_disk"],
                    "protected_paths": [os.path.join(workspace, "protected")],
                },
            }
        }, f)
    return path


@pytest.fixture
def run(config):
    runner = CliRunner()

    def invoke(*args, input=None):
        return runner.invoke(fsops, ["--config", config, *args], input=input)
    return invoke


class TestQueries:

    def test_info(self, run, workspace):
        result = run("info", os.path.join(workspace, "file.txt"))

        assert result.exit_code == 0
        assert "file.txt" in result.output
        assert "Permissions" in result.output

    def test_info_missing(self, run, workspace):
        result = run("info", os.path.join(workspace, "missing.txt"))

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_hash(self, run, workspace):
        result = run("hash", os.path.join(workspace, "tmp", "foo.txt"))

        assert result.exit_code == 0
        assert result.output.startswith("acbd18db4cc2f85cedef654fccc4a4d8")

    def test_hash_with_algorithm(self, run, workspace):
        result = run("hash", "-a", "sha256", os.path.join(workspace, "tmp", "foo.txt"))

        assert result.output.startswith("2c26b46b68ffc68ff99b453c1d30413413422d706483bfa0f98a5e886266e7ae")

    def test_cat(self, run, workspace):
        result = run("cat", os.path.join(workspace, "file.txt"))

        assert result.exit_code == 0
        assert result.output == "Hello"

    def test_ls(self, run, workspace):
        result = run("ls", "-r", os.path.join(workspace, "tmp"))

        assert result.exit_code == 0
        assert "foo.txt" in result.output
        assert "baz.txt" in result.output

    def test_ls_not_a_directory(self, run, workspace):
        result = run("ls", os.path.join(workspace, "file.txt"))

        assert result.exit_code == 1

    def test_dirs(self, run, workspace):
        result = run("dirs", workspace)

        assert result.output.splitlines() == [os.path.join(workspace, "tmp")]


class TestChanges:

    def test_rm_is_a_dry_run_by_default(self, run, workspace):
        path = os.path.join(workspace, "file.txt")

        result = run("rm", path)

        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert os.path.exists(path)

    def test_rm_execute_approved(self, run, workspace):
        path = os.path.join(workspace, "file.txt")

        result = run("rm", "--execute", path, input="y\n")

        assert result.exit_code == 0
        assert "PERMISSION REQUEST" in result.output
        assert not os.path.exists(path)

    def test_rm_attempts_every_path(self, run, workspace):
        missing = os.path.join(workspace, "missing.txt")
        path = os.path.join(workspace, "file.txt")

        result = run("rm", missing, path)

        assert result.exit_code == 1
        assert "Dry run" in result.output
        assert "Not done" in result.output

    def test_rmdir_denied(self, run, workspace):
        tree = os.path.join(workspace, "tmp")

        result = run("rmdir", "--execute", tree, input="n\n")

        assert result.exit_code == 1
        assert os.path.isdir(tree)

    def test_protected_directory_is_refused(self, run, workspace):
        os.makedirs(os.path.join(workspace, "protected"))

        result = run("clean", workspace)

        assert result.exit_code == 1
        assert "Not done" in result.output

    def test_copy_and_move_dir(self, run, workspace):
        src = os.path.join(workspace, "tmp")
        copy = os.path.join(workspace, "copy")
        moved = os.path.join(workspace, "moved")

        assert run("copy-dir", "--execute", src, copy, input="y\n").exit_code == 0
        assert run("move-dir", "--execute", copy, moved, input="y\n").exit_code == 0

        assert os.path.isfile(os.path.join(moved, "nested", "baz.txt"))
        assert not os.path.exists(copy)

    def test_audit_shows_recent_actions(self, run, workspace):
        run("rm", os.path.join(workspace, "file.txt"))

        result = run("audit", "-n", "5")

        assert result.exit_code == 0
        assert "Recent Audit Log" in result.output
        assert "No audit entries" not in result.output


class TestPermissionCommands:

    def test_blacklist_is_saved(self, run, config):
        result = run("permission", "blacklist", "delete_*")

        assert result.exit_code == 0
        with open(config, encoding="utf-8") as f:
            saved = yaml.safe_load(f)
        assert "delete_*" in saved["fsops"]["permissions"]["blacklist"]

    def test_whitelist_and_list(self, run):
        assert run("permission", "whitelist", "copy_*", "--level", "system_write").exit_code == 0

        result = run("permission", "list")

        assert "copy_* (up to SYSTEM_WRITE)" in result.output
        assert "format_disk" in result.output
