"""
Permission Manager for fsops.

Gates every mutating filesystem operation run through FileOperator.
Blacklisted actions and anything that would write to or remove a protected
path are refused outright; the rest are auto-approved, treated as dry runs,
or put to the user.
"""

import fnmatch
import os
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Dict, Any, Callable

import click

from .config import Settings, load_settings, save_permissions
from .logger import AuditLogger, AuditEntry, ActionType, ActionStatus


class PermissionLevel(Enum):
    """
    Permission levels for actions.

    Higher levels require more trust and typically user approval.
    """
    READ = 0           # Queries and reads (always allowed)
    SUGGEST = 1        # Dry-run operations (preview only)
    SAFE_WRITE = 2     # Writes under the configured safe paths
    SYSTEM_WRITE = 3   # Writes anywhere else
    DESTRUCTIVE = 4    # Deletes, overwriting moves, directory cleaning


@dataclass
class ActionRequest:
    """Represents a request to perform an action on a path."""
    action_type: str
    description: str
    target: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    required_level: PermissionLevel = PermissionLevel.READ

    def matches_pattern(self, pattern: str) -> bool:
        """Check if this action matches a glob pattern."""
        return fnmatch.fnmatch(self.action_type, pattern)


@dataclass
class ActionResult:
    """Result of a permission check."""
    success: bool
    status: str
    message: Optional[str] = None
    data: Optional[Any] = None
    dry_run: bool = False


def _is_within(path: str, parent: str) -> bool:
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


class PermissionManager:
    """
    Central permission manager.

    Holds the auto-approve list, the blacklist and the protected paths, and
    runs the approval workflow for everything in between.
    """

    def __init__(
        self,
        config_path: str = "config.yaml",
        logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the permission manager.

        Args:
            config_path: Path to the YAML configuration file
            logger: AuditLogger instance for logging decisions
            settings: Pre-loaded settings; read from ``config_path`` if omitted
        """
        self.config_path = config_path
        self.settings = settings or load_settings(config_path)
        self.logger = logger or AuditLogger(self.settings.audit_log)

        perms = self.settings.permissions
        self.auto_approve: List[str] = list(perms.get("auto_approve", []))
        self.blacklist: List[str] = list(perms.get("blacklist", []))
        self.protected_paths: List[str] = [
            os.path.realpath(os.path.expanduser(p)) for p in perms.get("protected_paths", [])
        ]

        self.whitelist: Dict[str, PermissionLevel] = {
            pattern: PermissionLevel[name.upper()]
            for pattern, name in (perms.get("whitelist") or {}).items()
        }

        # User approval callback (can be overridden)
        self._approval_callback: Optional[Callable[[str, str], bool]] = None

    def set_approval_callback(self, callback: Callable[[str, str], bool]) -> None:
        """
        Set the callback used to ask for approval.

        Args:
            callback: Function taking (action_description, preview) and
                      returning True if approved
        """
        self._approval_callback = callback

    def check_permission(self, action: ActionRequest, dry_run: bool = False) -> ActionResult:
        """
        Check if an action is permitted.

        Order of evaluation:
        1. Blacklisted actions and writes touching a protected path are denied
        2. Auto-approved and whitelisted actions pass
        3. READ actions pass
        4. SUGGEST actions and dry runs pass as dry runs
        5. Everything else is put to the user

        Args:
            action: The ActionRequest to check
            dry_run: If True, only preview the action

        Returns:
            ActionResult indicating if the action is permitted
        """
        if self._is_blacklisted(action):
            return self._deny(action, dry_run, "This action is blacklisted and cannot be executed.")

        if self._touches_protected_path(action):
            return self._deny(action, dry_run, "Action would change or remove a protected path.")

        if self._is_auto_approved(action):
            self.logger.log_action(
                action_type=ActionType.PERMISSION,
                description=f"Auto-approved: {action.description}",
                permission_level=action.required_level.value,
                target=action.target,
                user_approved=True,
                status=ActionStatus.APPROVED,
                result="Auto-approved action"
            )
            return ActionResult(
                success=True,
                status="APPROVED",
                message="Action is auto-approved.",
                dry_run=dry_run
            )

        if action.required_level == PermissionLevel.READ:
            return ActionResult(
                success=True,
                status="APPROVED",
                message="Read operations are always permitted.",
                dry_run=dry_run
            )

        if action.required_level == PermissionLevel.SUGGEST or dry_run:
            return ActionResult(
                success=True,
                status="DRY_RUN",
                message="Dry-run mode - action will be previewed only.",
                dry_run=True
            )

        return self._request_approval(action, dry_run)

    def _deny(self, action: ActionRequest, dry_run: bool, reason: str) -> ActionResult:
        self.logger.log_action(
            action_type=ActionType.PERMISSION,
            description=f"BLOCKED: {action.description}",
            permission_level=action.required_level.value,
            target=action.target,
            user_approved=False,
            status=ActionStatus.DENIED,
            result=reason
        )
        return ActionResult(success=False, status="DENIED", message=reason, dry_run=dry_run)

    def _is_blacklisted(self, action: ActionRequest) -> bool:
        for pattern in self.blacklist:
            if action.matches_pattern(pattern):
                return True
            if action.target and fnmatch.fnmatch(action.target, pattern):
                return True
        return False

    def _is_auto_approved(self, action: ActionRequest) -> bool:
        if any(action.matches_pattern(pattern) for pattern in self.auto_approve):
            return True
        # Whitelisted patterns only cover actions up to their recorded level
        return any(
            action.matches_pattern(pattern) and action.required_level.value <= level.value
            for pattern, level in self.whitelist.items()
        )

    def _touches_protected_path(self, action: ActionRequest) -> bool:
        """
        A write is refused if its target is a protected path or one of the
        protected path's ancestors (removing /home removes the home directory).
        A move removes its source as well, so the source is checked too.
        """
        if action.required_level.value < PermissionLevel.SAFE_WRITE.value:
            return False

        paths = [action.target]
        if action.matches_pattern("move_*") and action.parameters:
            paths.append(action.parameters.get("source"))

        for path in paths:
            if not path:
                continue
            real_path = os.path.realpath(os.path.expanduser(path))
            if any(_is_within(protected, real_path) for protected in self.protected_paths):
                return True
        return False

    def _request_approval(self, action: ActionRequest, dry_run: bool) -> ActionResult:
        """Ask for approval through the callback, or on the terminal if none is set."""
        if self._approval_callback is None:
            return self._cli_approval(action, dry_run)

        preview = self._generate_preview(action)
        approved = bool(self._approval_callback(action.description, preview))
        return self._record_decision(action, dry_run, approved, "User", {"preview": preview})

    def _cli_approval(self, action: ActionRequest, dry_run: bool) -> ActionResult:
        click.echo("\n" + "=" * 60)
        click.echo("PERMISSION REQUEST")
        click.echo("=" * 60)
        click.echo(f"\nAction: {action.description}")
        click.echo(f"Type: {action.action_type}")
        click.echo(f"Permission Level: {action.required_level.name}")
        if action.target:
            click.echo(f"Target: {action.target}")
        click.echo(f"\nPreview:\n{self._generate_preview(action)}")
        click.echo("\n" + "-" * 60)

        try:
            response = click.prompt(
                "Approve this action? [y/N/never]", default="n", show_default=False
            ).strip().lower()
        except click.Abort:
            response = "n"

        if response == "never":
            self.add_to_blacklist(action.action_type)
            return ActionResult(
                success=False,
                status="BLACKLISTED",
                message="Action added to blacklist.",
                dry_run=dry_run
            )

        return self._record_decision(action, dry_run, response in ("y", "yes"), "CLI")

    def _record_decision(
        self,
        action: ActionRequest,
        dry_run: bool,
        approved: bool,
        source: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ActionResult:
        status = ActionStatus.APPROVED if approved else ActionStatus.DENIED
        self.logger.log_action(
            action_type=ActionType.PERMISSION,
            description=f"{source} {'approved' if approved else 'denied'}: {action.description}",
            permission_level=action.required_level.value,
            target=action.target,
            user_approved=approved,
            status=status,
            metadata=metadata
        )
        return ActionResult(
            success=approved,
            status=status.value,
            message="Action approved." if approved else "Action denied.",
            dry_run=dry_run
        )

    def _generate_preview(self, action: ActionRequest) -> str:
        """Describe what the action would do."""
        verbs = (
            ("delete", "DELETE"),
            ("clean", "EMPTY"),
            ("move", "MOVE"),
            ("copy", "COPY"),
            ("write", "WRITE to"),
        )
        lines = []
        for prefix, verb in verbs:
            if action.action_type.startswith(prefix):
                lines.append(f"This will {verb}: {action.target}")
                break
        else:
            lines.append(f"This will perform: {action.description}")

        if action.parameters:
            lines.append("\nParameters:")
            for key, value in action.parameters.items():
                lines.append(f"  - {key}: {value}")

        return "\n".join(lines)

    def add_to_whitelist(self, pattern: str, level: PermissionLevel) -> None:
        """
        Auto-approve an action pattern up to the given level.

        Args:
            pattern: Glob pattern for action types
            level: Maximum permission level to auto-approve
        """
        self.whitelist[pattern] = level
        self.logger.log_action(
            action_type=ActionType.PERMISSION,
            description=f"Added to whitelist: {pattern}",
            permission_level=level.value,
            status=ActionStatus.EXECUTED
        )

    def add_to_blacklist(self, pattern: str) -> None:
        """Blacklist an action type or target path pattern."""
        if pattern not in self.blacklist:
            self.blacklist.append(pattern)
            self.logger.log_action(
                action_type=ActionType.PERMISSION,
                description=f"Added to blacklist: {pattern}",
                permission_level=PermissionLevel.DESTRUCTIVE.value,
                status=ActionStatus.EXECUTED
            )

    def remove_from_blacklist(self, pattern: str) -> bool:
        """
        Remove a pattern from the blacklist.

        Returns:
            True if removed, False if not found
        """
        if pattern not in self.blacklist:
            return False

        self.blacklist.remove(pattern)
        self.logger.log_action(
            action_type=ActionType.PERMISSION,
            description=f"Removed from blacklist: {pattern}",
            permission_level=PermissionLevel.DESTRUCTIVE.value,
            status=ActionStatus.EXECUTED
        )
        return True

    def get_audit_log(self, limit: int = 100) -> List[AuditEntry]:
        """Get recent audit log entries."""
        return self.logger.get_recent(limit=limit)

    def save_config(self) -> None:
        """Save the current permission lists back to the config file."""
        permissions = dict(self.settings.permissions)
        permissions["auto_approve"] = self.auto_approve
        permissions["blacklist"] = self.blacklist
        permissions["whitelist"] = {pattern: level.name for pattern, level in self.whitelist.items()}
        save_permissions(self.config_path, permissions)
