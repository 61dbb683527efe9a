"""File helpers."""

import os
import tempfile
from pathlib import Path

import structlog

from macpgp.exceptions import FileAccessError

logger = structlog.get_logger(__name__)


def atomic_write(path: Path, data: bytes, *, mode: int = 0o600) -> None:
    """
    Write data to path so readers see either the old file or the complete new one.

    Data goes to a temporary file in the destination directory, is fsynced,
    then renamed over the destination.

    Raises:
        FileAccessError: If any step fails. The destination is left untouched.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        msg = f"Cannot write file: {e}"
        raise FileAccessError(msg, path=str(path)) from e

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        _discard(tmp_name)
        msg = f"Cannot write file: {e}"
        raise FileAccessError(msg, path=str(path)) from e

    logger.debug("File written", path=str(path), size=len(data))


def read_file(path: Path) -> bytes:
    """
    Read a whole file.

    Raises:
        FileAccessError: If the file cannot be read.
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        msg = f"Cannot read file: {e}"
        raise FileAccessError(msg, path=str(path)) from e


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove temporary file", path=tmp_name, exc_info=e)
