"""Calculation history for VetLab.

Records are kept newest first in a single storage key and capped at a fixed
number of entries:
- append() inserts at the front and evicts the oldest on overflow
- load_all() never fails; unreadable state loads as empty history
- remove_at() deletes one record by position
- export_text() renders records as CSV text
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .storage import JsonFileStorage, StorageError

logger = logging.getLogger(__name__)

# Bump the suffix for an incompatible schema; old keys are simply ignored.
HISTORY_KEY = "vetlab_history_v2"
DEFAULT_MAX_ENTRIES = 300

EXPORT_HEADER = ["type", "time", "description"]


class CalculationKind(Enum):
    """Kinds of calculation that produce history records.

    Values are the persisted type strings.
    """

    MOLARITY_TO_MASS = "M→g"
    PERCENT_TO_MASS = "%w/v"
    DILUTION = "C1V1"
    SERIAL_DILUTION = "serial"
    DOSE = "dose"
    UNIT_CONVERSION = "convert"
    BUFFER_PH = "buffer_ph"
    BUFFER_RATIO = "buffer_ratio"


class HistoryStorageError(Exception):
    """Raised when history cannot be written."""


@dataclass(frozen=True)
class HistoryRecord:
    """A single recorded calculation."""

    type: CalculationKind
    time: int  # epoch milliseconds
    sentence: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "time": self.time,
            "sentence": self.sentence,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryRecord":
        """Create from dictionary.

        Raises:
            ValueError: If the type is unknown or time is not a representable timestamp.
            KeyError: If a required key is missing.
        """
        raw_time = data["time"]
        try:
            time = int(raw_time)
            datetime.fromtimestamp(time / 1000.0)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Time out of range: {raw_time!r}") from e

        return cls(
            type=CalculationKind(data["type"]),
            time=time,
            sentence=data.get("sentence") or "",
            data=dict(data.get("data") or {}),
        )

    @property
    def local_time(self) -> datetime:
        """Creation time in the local timezone."""
        return datetime.fromtimestamp(self.time / 1000.0)

    @property
    def description(self) -> str:
        """Sentence, or the raw data when no sentence was stored."""
        if self.sentence:
            return self.sentence
        return json.dumps(self.data, ensure_ascii=False)


class HistoryStore:
    """Persist and manage calculation history."""

    def __init__(self, storage: JsonFileStorage, max_entries: int = DEFAULT_MAX_ENTRIES):
        """Initialize with a storage backend.

        Args:
            storage: Key-value storage holding the history blob.
            max_entries: Maximum number of records kept, at most 300.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.storage = storage
        self.max_entries = min(max_entries, DEFAULT_MAX_ENTRIES)

    def _read_raw(self) -> List[dict]:
        """Read the stored array, degrading to empty on any problem."""
        try:
            raw = self.storage.get_item(HISTORY_KEY)
        except StorageError as e:
            logger.warning("History unreadable, treating as empty: %s", e)
            return []

        if not raw:
            return []

        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("History blob is not valid JSON, treating as empty: %s", e)
            return []

        if not isinstance(entries, list):
            logger.warning("History blob is not a list, treating as empty")
            return []
        return entries

    def _write(self, records: Sequence[HistoryRecord]) -> None:
        """Persist the full sequence.

        Raises:
            HistoryStorageError: If the storage write fails.
        """
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False)
        try:
            self.storage.set_item(HISTORY_KEY, payload)
        except StorageError as e:
            raise HistoryStorageError(f"Could not save history: {e}") from e

    def load_all(self) -> List[HistoryRecord]:
        """Load all records, newest first.

        Returns:
            List of records; empty if nothing is stored or state is corrupt.
        """
        records = []
        for i, entry in enumerate(self._read_raw()):
            try:
                records.append(HistoryRecord.from_dict(entry))
            except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as e:
                logger.warning("Skipping unreadable history entry %d: %s", i, e)
        return records

    def append(self, record: HistoryRecord) -> List[HistoryRecord]:
        """Insert a record at the front, evicting the oldest past the cap.

        Returns:
            The new history sequence.

        Raises:
            HistoryStorageError: If the write fails; stored history is unchanged.
        """
        records = [record] + self.load_all()
        records = records[: self.max_entries]
        self._write(records)
        logger.debug("Recorded %s calculation (%d in history)", record.type.value, len(records))
        return records

    def remove_at(self, index: int) -> bool:
        """Delete the record at a position.

        Args:
            index: 0-based position in the newest-first sequence.

        Returns:
            True if deleted, False if the index is out of range.

        Raises:
            HistoryStorageError: If the write fails.
        """
        records = self.load_all()
        if index < 0 or index >= len(records):
            return False

        del records[index]
        self._write(records)
        return True

    @property
    def size(self) -> int:
        """Return current history size."""
        return len(self.load_all())


def format_time(record: HistoryRecord, tz: Optional[tzinfo] = None) -> str:
    """Render a record's time in the locale's date/time representation.

    Uses local time unless a timezone is given.
    """
    if tz is None:
        return record.local_time.strftime("%c")
    return datetime.fromtimestamp(record.time / 1000.0, tz).strftime("%c")


def export_text(records: Sequence[HistoryRecord], tz: Optional[tzinfo] = None) -> str:
    """Serialize records to CSV text.

    The header row is bare; every data field is quoted with embedded
    quotes doubled.

    Args:
        records: Records to export, in display order.
        tz: Timezone for the time column (local time when omitted).

    Returns:
        CSV text, rows joined with newlines.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        writer.writerow([record.type.value, format_time(record, tz), record.description])

    lines = [",".join(EXPORT_HEADER)]
    body = buffer.getvalue().rstrip("\n")
    if body:
        lines.append(body)
    return "\n".join(lines)


def get_history_store(storage: JsonFileStorage, max_entries: Optional[int] = None) -> HistoryStore:
    """Get a history store instance.

    Args:
        storage: Key-value storage backend.
        max_entries: Cap override (defaults to 300).

    Returns:
        HistoryStore instance.
    """
    return HistoryStore(storage, max_entries or DEFAULT_MAX_ENTRIES)
