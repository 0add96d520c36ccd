"""
JSON document stores for face records and attendance events.

Each store is one whole-collection document on disk. Writes replace the file
atomically and every read-modify-write cycle runs under the store's lock.
"""
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Generic, List, Tuple, TypeVar

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from errors import StorageCorrupt, StorageWriteError
from models import AttendanceEvent, AttendanceEventList, FaceRecord, FaceRecordList

logger = logging.getLogger("face_attendance.database")

T = TypeVar("T")


class JsonDocumentStore(Generic[T]):
    """Load/save a list of pydantic models as a single JSON array."""

    def __init__(self, path, adapter: TypeAdapter):
        self.path = Path(path)
        self.adapter = adapter
        self.lock = threading.RLock()

    def load(self) -> List[T]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageCorrupt(f"Cannot read {self.path}: {e}") from e

        try:
            return self.adapter.validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            raise StorageCorrupt(f"Cannot parse {self.path}: {e}") from e

    def save(self, items: List[T]) -> None:
        data = self.adapter.dump_json(list(items), indent=2, by_alias=True)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageWriteError(f"Cannot write {self.path}: {e}") from e


def upsert(records: List[FaceRecord], new_record: FaceRecord) -> Tuple[List[FaceRecord], bool]:
    """
    Insert or replace a record keyed by case-insensitive name.

    Returns the new list and True when the record was appended, False when
    an existing record was replaced in its original position.
    """
    key = new_record.name.casefold()
    updated = list(records)
    for i, record in enumerate(updated):
        if record.name.casefold() == key:
            updated[i] = new_record
            return updated, False
    updated.append(new_record)
    return updated, True


class FaceStore(JsonDocumentStore[FaceRecord]):
    """Registered faces, at most one per case-insensitive name."""

    def __init__(self, path):
        super().__init__(path, FaceRecordList)

    def register(self, record: FaceRecord) -> Tuple[bool, int]:
        """Upsert and persist one record. Returns (inserted, total count)."""
        with self.lock:
            records, inserted = upsert(self.load(), record)
            self.save(records)
        return inserted, len(records)


class AttendanceLog(JsonDocumentStore[AttendanceEvent]):
    """Append-only attendance history in insertion order."""

    def __init__(self, path):
        super().__init__(path, AttendanceEventList)

    def append(self, event: AttendanceEvent) -> None:
        with self.lock:
            events = self.load()
            events.append(event)
            self.save(events)

    def list_all(self) -> List[AttendanceEvent]:
        with self.lock:
            return list(self.load())
