"""Persistence for insight records.

The durable copy is one JSON array. Every append re-reads and re-writes the
whole array, so appends are serialized through a lock per resolved file path
and the new content is swapped in with ``os.replace``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

from insights import InsightRecord, MalformedRecordError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The store could not durably write a record."""


class MalformedStoreError(Exception):
    """Persisted data exists but cannot be read back as insight records."""


@dataclass(frozen=True)
class StoreSnapshot:
    """Result of reading the whole collection.

    ``recovered_error`` is set when the persisted data was unreadable and the
    snapshot was treated as empty instead.
    """

    records: Tuple[InsightRecord, ...] = ()
    recovered_error: Optional[MalformedStoreError] = None

    @property
    def recovered(self) -> bool:
        return self.recovered_error is not None


class InsightStore(Protocol):
    def append(self, record: InsightRecord) -> None:
        ...

    def list_all(self) -> List[InsightRecord]:
        ...

    def get_by_id(self, record_id: str) -> Optional[InsightRecord]:
        ...


def sort_by_recency(records) -> List[InsightRecord]:
    return sorted(records, key=lambda record: record.upload_date, reverse=True)


def _find(records, record_id: str) -> Optional[InsightRecord]:
    for record in records:
        if record.id == record_id:
            return record
    return None


# One lock per store file, kept for the life of the process. _thread.lock does
# not support weak references, so entries are never evicted; the service only
# ever opens the configured path.
_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(path)
        if lock is None:
            lock = threading.Lock()
            _PATH_LOCKS[path] = lock
        return lock


class JsonFileInsightStore:
    """Insight store backed by a single pretty-printed JSON file."""

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)
        self._lock = _lock_for(self.path)

    def load(self) -> StoreSnapshot:
        if not os.path.exists(self.path):
            return StoreSnapshot()
        try:
            return StoreSnapshot(records=tuple(self._read_records()))
        except OSError as exc:
            error = MalformedStoreError(f"could not read file: {exc}")
            logger.error("Insight store %s could not be read, treating it as empty: %s", self.path, exc)
            return StoreSnapshot(recovered_error=error)
        except MalformedStoreError as exc:
            logger.error("Insight store %s is unreadable, treating it as empty: %s", self.path, exc)
            return StoreSnapshot(recovered_error=exc)

    def list_all(self) -> List[InsightRecord]:
        return sort_by_recency(self.load().records)

    def get_by_id(self, record_id: str) -> Optional[InsightRecord]:
        return _find(self.load().records, record_id)

    def append(self, record: InsightRecord) -> None:
        with self._lock:
            records = self._load_for_write()
            if _find(records, record.id) is not None:
                raise StorageError(f"Insight {record.id} already exists in {self.path}")
            records.append(record)
            self._write_records(records)
        logger.debug("Appended insight %s to %s (%s total)", record.id, self.path, len(records))

    def _read_records(self) -> List[InsightRecord]:
        """Parse the whole collection.

        ``OSError`` from opening or reading the file propagates unchanged;
        only content that does not parse raises ``MalformedStoreError``.
        """
        with open(self.path, "r", encoding="utf-8") as handle:
            try:
                payload = json.load(handle)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise MalformedStoreError(f"invalid JSON: {exc}") from exc

        if not isinstance(payload, list):
            raise MalformedStoreError(f"expected a JSON array, got {type(payload).__name__}")
        try:
            return [InsightRecord.from_dict(item) for item in payload]
        except MalformedRecordError as exc:
            raise MalformedStoreError(str(exc)) from exc

    def _load_for_write(self) -> List[InsightRecord]:
        if not os.path.exists(self.path):
            return []
        try:
            return self._read_records()
        except OSError as exc:
            raise StorageError(f"Could not read insight store {self.path}: {exc}") from exc
        except MalformedStoreError as exc:
            self._quarantine(exc)
            return []

    def _quarantine(self, reason: MalformedStoreError) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = f"{self.path}.corrupt-{stamp}"
        try:
            os.replace(self.path, target)
        except OSError as exc:
            raise StorageError(
                f"Insight store {self.path} is unreadable and could not be set aside: {exc}"
            ) from exc
        logger.error(
            "Insight store %s was unreadable (%s); moved it to %s and started a new collection",
            self.path,
            reason,
            target,
        )

    def _write_records(self, records: List[InsightRecord]) -> None:
        directory = os.path.dirname(self.path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(self.path)}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump([record.to_dict() for record in records], handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StorageError(f"Could not write insight store {self.path}: {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)


@dataclass
class InMemoryInsightStore:
    """Process-local store with the same contract as the file store."""

    records: List[InsightRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(self, record: InsightRecord) -> None:
        with self._lock:
            if _find(self.records, record.id) is not None:
                raise StorageError(f"Insight {record.id} already exists")
            self.records.append(record)

    def list_all(self) -> List[InsightRecord]:
        with self._lock:
            return sort_by_recency(self.records)

    def get_by_id(self, record_id: str) -> Optional[InsightRecord]:
        with self._lock:
            return _find(self.records, record_id)
