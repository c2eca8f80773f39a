"""Crash-safe writes for the state ledger and generated workspace files."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str) -> None:
    """
    Replace ``file_path`` with ``content`` in one rename.

    The temp file lives in the target directory so ``os.replace`` never
    crosses filesystems. Readers see either the old file or the new one.

    Raises:
        OSError: If the write or the rename fails; the target is untouched
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, file_path)
    except OSError as e:
        logger.error(f"Failed to write {file_path}: {e}")
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def atomic_write_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """Serialize data as JSON and write it atomically."""
    atomic_write_text(file_path, json.dumps(data, indent=indent, sort_keys=True) + "\n")
