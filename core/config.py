"""
Configuration loading for fsops.

Settings live in a YAML file under an ``fsops`` root key. A missing or
unreadable file falls back to the defaults below.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


ROOT_KEY = "fsops"


def default_config() -> Dict[str, Any]:
    """Return default configuration."""
    return {
        "audit_log": "data/audit_log.jsonl",
        "hash_algorithm": "md5",
        "directory_mode": "0755",
        "show_hidden": False,
        "safe_paths": [
            str(Path.home()),
            tempfile.gettempdir(),
        ],
        "permissions": {
            "auto_approve": [
                "read_file",
                "list_directory",
                "get_file_info",
                "hash_file",
            ],
            "whitelist": {},
            "blacklist": [
                "format_disk",
            ],
            "protected_paths": [
                "/",
                str(Path.home()),
            ],
        },
    }


@dataclass
class Settings:
    """Resolved fsops settings."""
    audit_log: str = "data/audit_log.jsonl"
    hash_algorithm: str = "md5"
    directory_mode: int = 0o755
    show_hidden: bool = False
    safe_paths: List[str] = field(default_factory=list)
    permissions: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Build settings from a config mapping, filling gaps from the defaults."""
        defaults = default_config()
        merged = {**defaults, **(data or {})}
        permissions = {**defaults["permissions"], **(merged.get("permissions") or {})}

        return cls(
            audit_log=str(merged["audit_log"]),
            hash_algorithm=str(merged["hash_algorithm"]),
            directory_mode=_parse_mode(merged["directory_mode"]),
            show_hidden=bool(merged["show_hidden"]),
            safe_paths=[os.path.expanduser(p) for p in merged["safe_paths"] or []],
            permissions=permissions,
        )


def _parse_mode(value: Any) -> int:
    # YAML reads 0755 as the octal int 493 but "0755" as a string
    if isinstance(value, int):
        return value
    return int(str(value), 8)


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """
    Load the raw configuration mapping from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        The mapping under the ``fsops`` key (or the whole document if that
        key is absent), or the defaults if the file cannot be read
    """
    path = Path(config_path)
    if not path.exists():
        return default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return default_config()

    if not isinstance(config, dict):
        return default_config()
    return config.get(ROOT_KEY, config)


def load_settings(config_path: str = "config.yaml") -> Settings:
    """Load configuration and resolve it into a Settings object."""
    return Settings.from_dict(load_config(config_path))


def save_permissions(config_path: str, permissions: Dict[str, Any]) -> None:
    """
    Write the permissions block back to the config file.

    Other keys already present in the file are kept. A file without the
    ``fsops`` root key is read as a whole by ``load_config``, so the block
    is written at the top level there.

    Args:
        config_path: Path to the YAML configuration file
        permissions: The permissions mapping to store
    """
    path = Path(config_path)
    config: Dict[str, Any] = {ROOT_KEY: {}}

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                existing = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            existing = None
        if isinstance(existing, dict) and existing:
            config = existing

    section: Optional[Dict[str, Any]]
    if ROOT_KEY in config:
        section = config[ROOT_KEY]
        if not isinstance(section, dict):
            section = config[ROOT_KEY] = {}
    else:
        section = config
    section["permissions"] = permissions

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False)
