"""File-backed key-value storage for VetLab.

A single JSON document maps string keys to string blobs, so each consumer
owns one key and serializes its own payload. Writes replace the whole file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(OSError):
    """Raised when the storage file cannot be read or written."""


class JsonFileStorage:
    """Keyed blob store persisted as one JSON object."""

    def __init__(self, path: str):
        """Initialize with the storage file path.

        Args:
            path: Path of the JSON file. Created on first write.
        """
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        """Read the whole document.

        Raises:
            StorageError: If the file exists but cannot be read or parsed.
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageError(f"Corrupt storage file {self.path}: {e}") from e
        except IOError as e:
            raise StorageError(f"Cannot read storage file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def get_item(self, key: str) -> Optional[str]:
        """Get the blob stored under key, or None if absent."""
        value = self._read().get(key)
        if value is None:
            return None
        return str(value)

    def set_item(self, key: str, value: str) -> None:
        """Store a blob under key.

        Other keys are preserved. An unreadable document is replaced.

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            data = self._read()
        except StorageError:
            logger.warning("Replacing unreadable storage file %s", self.path)
            data = {}
        data[key] = value

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".storage-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write storage file {self.path}: {e}") from e
