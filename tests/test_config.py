"""
Tests for configuration loading.
"""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import Settings, default_config, load_config, load_settings, save_permissions


@pytest.fixture
def config_dir():
    with tempfile.TemporaryDirectory() as path:
        yield path


def test_missing_file_gives_defaults(config_dir):
    assert load_config(os.path.join(config_dir, "nope.yaml")) == default_config()


def test_invalid_yaml_gives_defaults(config_dir):
    path = os.path.join(config_dir, "bad.yaml")
    Path(path).write_text("fsops: [unclosed\n")

    assert load_config(path) == default_config()


def test_settings_fill_gaps_from_defaults():
    settings = Settings.from_dict({"hash_algorithm": "sha256", "permissions": {"blacklist": []}})

    assert settings.hash_algorithm == "sha256"
    assert settings.directory_mode == 0o755
    assert settings.permissions["blacklist"] == []
    assert "read_file" in settings.permissions["auto_approve"]


@pytest.mark.parametrize("value", ["0750", 0o750, "750"])
def test_directory_mode_parsing(value):
    assert Settings.from_dict({"directory_mode": value}).directory_mode == 0o750


def test_load_settings_reads_root_key(config_dir):
    path = os.path.join(config_dir, "config.yaml")
    Path(path).write_text("fsops:\n  show_hidden: true\n  safe_paths: [~/work]\n")

    settings = load_settings(path)

    assert settings.show_hidden
    assert settings.safe_paths == [os.path.expanduser("~/work")]


def test_save_permissions_keeps_other_keys(config_dir):
    path = os.path.join(config_dir, "config.yaml")
    Path(path).write_text("fsops:\n  hash_algorithm: sha1\nother: 1\n")

    save_permissions(path, {"blacklist": ["rm_*"]})

    with open(path, encoding="utf-8") as f:
        saved = yaml.safe_load(f)
    assert saved["other"] == 1
    assert saved["fsops"]["hash_algorithm"] == "sha1"
    assert saved["fsops"]["permissions"] == {"blacklist": ["rm_*"]}


def test_save_permissions_without_root_key(config_dir):
    path = os.path.join(config_dir, "config.yaml")
    Path(path).write_text(
        "hash_algorithm: sha256\nshow_hidden: true\npermissions:\n  blacklist: [format_disk]\n"
    )

    save_permissions(path, {"blacklist": ["format_disk", "rm_*"]})

    with open(path, encoding="utf-8") as f:
        saved = yaml.safe_load(f)
    assert "fsops" not in saved
    settings = load_settings(path)
    assert settings.hash_algorithm == "sha256"
    assert settings.show_hidden
    assert settings.permissions["blacklist"] == ["format_disk", "rm_*"]


def test_save_permissions_creates_file(config_dir):
    path = os.path.join(config_dir, "new.yaml")

    save_permissions(path, {"auto_approve": ["read_file"]})

    assert load_settings(path).permissions["auto_approve"] == ["read_file"]
