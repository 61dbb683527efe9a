"""
Backup reminder scheduling.

Tracks when the last backup completed and decides when the user should be
reminded to make a new one. Delivering the reminder is up to the caller.
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Self

import structlog

from macpgp.config import MacPGPConfig
from macpgp.core.files import atomic_write, read_file
from macpgp.exceptions import FileAccessError

logger = structlog.get_logger(__name__)

_FIRST_REMINDER_DELAY = timedelta(days=1)


class BackupReminderService:
    """
    Example:
        reminders = BackupReminderService.from_config(config)
        backups = BackupService(store, config, on_complete=reminders.record_backup)
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        interval_days: int = 30,
        state_path: Path | None = None,
    ) -> None:
        """
        Args:
            enabled: Whether reminders are active.
            interval_days: Days after a backup before the next reminder.
            state_path: JSON file persisting the last backup time. None keeps
                it in memory.
        """
        if interval_days <= 0:
            msg = "interval_days must be positive"
            raise ValueError(msg)
        self._enabled = enabled
        self._interval = timedelta(days=interval_days)
        self._state_path = state_path
        self._last_backup_at: datetime | None = None

    @classmethod
    def from_config(cls, config: MacPGPConfig) -> Self:
        service = cls(
            enabled=config.reminder_enabled,
            interval_days=config.reminder_interval_days,
            state_path=config.reminder_state_path,
        )
        service.load()
        return service

    @property
    def last_backup_at(self) -> datetime | None:
        return self._last_backup_at

    def load(self) -> None:
        """Load the last backup time. A missing or unreadable state file means no backup yet."""
        if self._state_path is None or not self._state_path.exists():
            return
        try:
            state = json.loads(read_file(self._state_path))
            last = datetime.fromisoformat(state["lastBackupDate"])
            self._last_backup_at = last if last.tzinfo is not None else last.replace(tzinfo=UTC)
        except (FileAccessError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable backup state", path=str(self._state_path), exc_info=e)
            self._last_backup_at = None

    def record_backup(self, at: datetime | None = None) -> None:
        """
        Record a completed backup.

        Raises:
            FileAccessError: If the state file cannot be written.
        """
        self._last_backup_at = (at or datetime.now(UTC)).astimezone(UTC)
        if self._state_path is not None:
            payload = json.dumps({"lastBackupDate": self._last_backup_at.isoformat()}, indent=2)
            atomic_write(self._state_path, payload.encode("utf-8"))
        logger.debug("Backup recorded", at=self._last_backup_at.isoformat())

    def next_reminder_at(self, now: datetime | None = None) -> datetime | None:
        """
        When the next reminder is due, or None when reminders are disabled.

        Without any recorded backup the first reminder is one day from now.
        """
        if not self._enabled:
            return None
        if self._last_backup_at is None:
            return (now or datetime.now(UTC)) + _FIRST_REMINDER_DELAY
        return self._last_backup_at + self._interval

    def is_reminder_needed(self, now: datetime | None = None) -> bool:
        if not self._enabled:
            return False
        if self._last_backup_at is None:
            return True
        return (now or datetime.now(UTC)) >= self._last_backup_at + self._interval

    def days_since_last_backup(self, now: datetime | None = None) -> int | None:
        if self._last_backup_at is None:
            return None
        return ((now or datetime.now(UTC)) - self._last_backup_at).days
