"""Processed-ticket ledger that makes the workflow idempotent across restarts."""

import json
import logging
import threading
from pathlib import Path
from typing import List, Set

from ..utils.atomic_io import atomic_write_json

logger = logging.getLogger(__name__)


class ProcessedStore:
    """
    Durable set of ticket keys whose workflow fully succeeded.

    Writes are write-through: ``mark_processed`` persists the whole set
    before returning, so a crash right after a mark never loses it.

    File format: ``{"processed": {"PROJ-1": true, ...}}``
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self._processed: Set[str] = set()
        self._lock = threading.Lock()

    def load(self) -> bool:
        """
        Populate the set from disk.

        A missing or unreadable file is not fatal: the store starts empty.

        Returns:
            True if state was loaded from disk
        """
        try:
            raw = self.file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No state file at {self.file_path}, starting with an empty ledger")
            return False
        except OSError as e:
            logger.warning(f"Cannot read state file {self.file_path}, starting empty: {e}")
            return False

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"State file {self.file_path} is not valid JSON, starting empty: {e}")
            return False

        processed = data.get("processed", {}) if isinstance(data, dict) else {}
        if not isinstance(processed, dict):
            logger.warning(f"State file {self.file_path} has no 'processed' object, starting empty")
            return False

        with self._lock:
            self._processed = {str(key) for key, done in processed.items() if done}
        logger.info(f"Loaded {len(self._processed)} processed tickets from {self.file_path}")
        return True

    def is_processed(self, key: str) -> bool:
        with self._lock:
            return key in self._processed

    def mark_processed(self, key: str) -> None:
        """Record a ticket as done and persist the ledger synchronously.

        Raises:
            OSError: If the ledger cannot be written; the in-memory mark is
                rolled back so memory never claims more than disk.
        """
        with self._lock:
            if key in self._processed:
                return
            self._processed.add(key)
            try:
                self._save_locked()
            except OSError:
                self._processed.discard(key)
                raise
        logger.debug(f"Marked {key} as processed")

    def processed_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._processed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processed)

    def _save_locked(self) -> None:
        atomic_write_json(self.file_path, {"processed": {key: True for key in sorted(self._processed)}})
