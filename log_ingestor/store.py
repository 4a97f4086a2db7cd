"""Durable JSON-file store holding the retained log records."""

import json
import logging
import os
import tempfile
import threading

from log_ingestor.errors import PersistenceError
from log_ingestor.models import LogRecord

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Whole-collection JSON store with a fixed retention cap.

    The file holds a single container ``{"logs": [...]}`` ordered newest
    insertion first. Every append rewrites the full collection through a
    temp file and ``os.replace``, so readers of the file never observe a
    partial write. An immutable in-memory snapshot mirrors the last
    committed state and is only swapped after the write succeeds.
    """

    def __init__(self, path: str, max_records: int = 1000):
        self._path = path
        self._max_records = max_records
        self._lock = threading.Lock()
        self._records: tuple[LogRecord, ...] | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def max_records(self) -> int:
        return self._max_records

    def load(self) -> list[LogRecord]:
        """Return the retained records, newest insertion first."""
        records = self._records
        if records is None:
            with self._lock:
                records = self._load_locked()
        return list(records)

    def count(self) -> int:
        return len(self.load())

    def append(self, record: LogRecord) -> int:
        """Insert *record* at the head, enforce the cap, persist.

        Returns the collection size after insertion.

        Raises:
            PersistenceError: if the collection could not be written. The
                record is then not part of the store.
        """
        with self._lock:
            current = self._load_locked()
            updated = ((record,) + current)[: self._max_records]
            self._write_locked(updated)
            self._records = updated
            evicted = len(current) + 1 - len(updated)
            if evicted:
                logger.debug("Evicted %d record(s) past retention cap %d",
                             evicted, self._max_records)
            return len(updated)

    def reset(self) -> None:
        """Drop every record and persist the empty collection."""
        with self._lock:
            self._write_locked(())
            self._records = ()
        logger.info("Store reset: %s", self._path)

    def _load_locked(self) -> tuple[LogRecord, ...]:
        """Return the snapshot, reading or creating the file on first use. Caller holds the lock."""
        if self._records is not None:
            return self._records

        if not os.path.exists(self._path):
            self._write_locked(())
            self._records = ()
            logger.info("Created new logs database file: %s", self._path)
            return self._records

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            records = tuple(LogRecord.from_dict(d) for d in data.get("logs", []))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise PersistenceError(f"could not read {self._path}") from exc

        self._records = records[: self._max_records]
        logger.info("Loaded %d record(s) from %s", len(self._records), self._path)
        return self._records

    def _write_locked(self, records: tuple[LogRecord, ...]) -> None:
        """Atomically replace the file with *records*. Caller holds the lock."""
        directory = os.path.dirname(os.path.abspath(self._path))
        tmp = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"logs": [r.to_dict() for r in records]}, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise PersistenceError(f"could not write {self._path}") from exc
