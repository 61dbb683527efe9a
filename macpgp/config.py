"""
MacPGP backup configuration.
"""

import getpass
import socket
from dataclasses import dataclass, field
from pathlib import Path

_DEFAULT_HOME = Path.home() / ".macpgp"


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "Unknown User"


def _default_device() -> str:
    return socket.gethostname() or "Unknown Device"


@dataclass(frozen=True, kw_only=True)
class MacPGPConfig:
    """
    Attributes:
        keyring_path: Armored keyring file used by the pgpy key store.
        reminder_state_path: JSON file holding the last backup timestamp.
            None keeps the reminder state in memory only.
        backup_extension: File extension for backup files.
        reminder_enabled: Whether backup reminders are active.
        reminder_interval_days: Days between a backup and the next reminder.
        created_by: Identity recorded in new backups.
        device_name: Device name recorded in new backups.
        keychain_service: Service name used for stored passphrases.
    """

    keyring_path: Path = _DEFAULT_HOME / "keyring.asc"
    reminder_state_path: Path | None = _DEFAULT_HOME / "backup-state.json"
    backup_extension: str = ".macpgp"
    reminder_enabled: bool = True
    reminder_interval_days: int = 30
    created_by: str = field(default_factory=_default_user)
    device_name: str = field(default_factory=_default_device)
    keychain_service: str = "com.macpgp.keychain"

    def __post_init__(self) -> None:
        if not self.backup_extension.startswith("."):
            msg = "backup_extension must start with a dot"
            raise ValueError(msg)
        if self.reminder_interval_days <= 0:
            msg = "reminder_interval_days must be positive"
            raise ValueError(msg)
        if not self.keychain_service:
            msg = "keychain_service must not be empty"
            raise ValueError(msg)
