"""
Audit Logger for fsops.

Provides append-only logging of every gated filesystem action with its
timestamp, target path, permission level and outcome.
"""

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional
from enum import Enum


class ActionType(Enum):
    """Types of actions that can be logged."""
    READ = "read"
    WRITE = "write"
    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"
    PERMISSION = "permission"


class ActionStatus(Enum):
    """Status of an action execution."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXECUTED = "executed"
    FAILED = "failed"
    DRY_RUN = "dry_run"


CSV_COLUMNS = (
    "timestamp",
    "action_type",
    "description",
    "target",
    "permission_level",
    "user_approved",
    "status",
    "result",
)


@dataclass
class AuditEntry:
    """A single audit log record."""
    timestamp: str
    action_type: str
    description: str
    permission_level: int
    target: Optional[str] = None
    user_approved: Optional[bool] = None
    status: str = ActionStatus.PENDING.value
    result: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        description: str,
        permission_level: int,
        target: Optional[str] = None,
        user_approved: Optional[bool] = None,
        status: ActionStatus = ActionStatus.PENDING,
        result: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "AuditEntry":
        """Factory method to create an audit entry with current timestamp."""
        return cls(
            timestamp=datetime.now().isoformat(),
            action_type=action_type.value,
            description=description,
            permission_level=permission_level,
            target=target,
            user_approved=user_approved,
            status=status.value,
            result=result,
            metadata=metadata or {}
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "AuditEntry":
        return cls(**json.loads(json_str))


class AuditLogger:
    """
    Append-only audit logger.

    Entries are written one per line to a JSONL file. Nothing is ever
    rewritten in place; ``clear`` rotates the file to a backup instead.
    """

    def __init__(self, log_path: str = "data/audit_log.jsonl"):
        """
        Initialize the audit logger.

        Args:
            log_path: Path to the JSONL log file
        """
        self.log_path = Path(log_path)
        self._ensure_log_file()

    def _ensure_log_file(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.log_path.exists():
            self.log_path.touch()

    def log(self, entry: AuditEntry) -> None:
        """Append an audit entry to the log."""
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(entry.to_json() + "\n")

    def log_action(
        self,
        action_type: ActionType,
        description: str,
        permission_level: int,
        target: Optional[str] = None,
        user_approved: Optional[bool] = None,
        status: ActionStatus = ActionStatus.PENDING,
        result: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """
        Create and log an entry in one call.

        Returns the created AuditEntry.
        """
        entry = AuditEntry.create(
            action_type=action_type,
            description=description,
            permission_level=permission_level,
            target=target,
            user_approved=user_approved,
            status=status,
            result=result,
            metadata=metadata
        )
        self.log(entry)
        return entry

    def _iter_entries(self) -> Iterator[AuditEntry]:
        """Yield entries oldest first, skipping lines that fail to parse."""
        if not self.log_path.exists():
            return

        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield AuditEntry.from_json(line)
                except (json.JSONDecodeError, TypeError):
                    continue

    def _filter(self, predicate: Callable[[AuditEntry], bool], limit: int) -> List[AuditEntry]:
        entries = []
        for entry in self._iter_entries():
            if len(entries) >= limit:
                break
            if predicate(entry):
                entries.append(entry)
        return entries

    def get_recent(self, limit: int = 100) -> List[AuditEntry]:
        """
        Get the most recent audit entries.

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of AuditEntry objects, most recent first
        """
        entries = list(self._iter_entries())
        return list(reversed(entries[-limit:])) if limit > 0 else []

    def get_by_date(self, date: datetime) -> List[AuditEntry]:
        """Get all audit entries logged on the given date."""
        date_str = date.strftime("%Y-%m-%d")
        return [e for e in self._iter_entries() if e.timestamp.startswith(date_str)]

    def get_by_action_type(self, action_type: ActionType, limit: int = 100) -> List[AuditEntry]:
        return self._filter(lambda e: e.action_type == action_type.value, limit)

    def get_by_target(self, target: str, limit: int = 100) -> List[AuditEntry]:
        """Get entries whose target is the given path."""
        return self._filter(lambda e: e.target == target, limit)

    def get_denied_actions(self, limit: int = 50) -> List[AuditEntry]:
        """
        Get actions that were denied.

        Useful for reviewing which paths were refused and why.
        """
        return self._filter(lambda e: e.status == ActionStatus.DENIED.value, limit)

    def export(self, format: str = "json") -> str:
        """
        Export the entire audit log.

        Args:
            format: Export format ("json" or "csv")

        Returns:
            String containing the exported data
        """
        entries = self.get_recent(limit=10000)

        if format == "json":
            return json.dumps([asdict(e) for e in entries], indent=2)
        elif format == "csv":
            lines = [",".join(CSV_COLUMNS)]
            for e in entries:
                lines.append(
                    f'"{e.timestamp}","{e.action_type}","{e.description}","{e.target or ""}",'
                    f'{e.permission_level},{e.user_approved},"{e.status}","{e.result or ""}"'
                )
            return "\n".join(lines) + ("" if entries else "\n")
        else:
            raise ValueError(f"Unsupported export format: {format}")

    def clear(self, confirm: bool = False) -> bool:
        """
        Clear the audit log.

        The current log is renamed to a timestamped backup and a fresh empty
        log is started.

        Args:
            confirm: Must be True to actually clear the log

        Returns:
            True if cleared, False otherwise
        """
        if not confirm or not self.log_path.exists():
            return False

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.log_path.with_suffix(f".backup.{stamp}.jsonl")
        self.log_path.rename(backup_path)
        self.log_path.touch()
        return True
