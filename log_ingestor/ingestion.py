"""Validate -> assign identity -> persist -> notify, for one record at a time."""

import logging
import threading
import uuid
from datetime import datetime, timezone

from log_ingestor.broadcaster import Broadcaster
from log_ingestor.errors import PersistenceError, ValidationError
from log_ingestor.metrics import Metrics
from log_ingestor.models import LogRecord
from log_ingestor.store import JsonFileStore
from log_ingestor.validator import LogValidator

logger = logging.getLogger(__name__)

EVENT_KIND = "logIngested"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionCoordinator:
    """The only writer of the store.

    A record is persisted only after it validates, and broadcast only
    after it is persisted. Broadcasting is best-effort and never changes
    the outcome of ``ingest``.
    """

    def __init__(self, validator: LogValidator, store: JsonFileStore,
                 broadcaster: Broadcaster, metrics: Metrics | None = None,
                 id_factory=None, clock=None):
        self._validator = validator
        self._store = store
        self._broadcaster = broadcaster
        self._metrics = metrics or Metrics()
        self._id_factory = id_factory or _new_id
        self._clock = clock or _utc_now
        self._write_lock = threading.Lock()

    def ingest(self, candidate) -> LogRecord:
        """Ingest one candidate record and return the stored record.

        Raises:
            ValidationError: the candidate was rejected; nothing persisted.
            PersistenceError: the store write failed; nothing broadcast.
        """
        try:
            self._validator.validate(candidate)
        except ValidationError as exc:
            self._metrics.record_rejected(exc.kind)
            logger.info("Rejected log record: %s", exc)
            raise

        with self._write_lock:
            record = LogRecord.create(candidate, self._id_factory(), self._clock())
            try:
                total = self._store.append(record)
            except PersistenceError:
                self._metrics.record_persistence_failure()
                logger.exception("Failed to persist log record %s", record.id)
                raise

            self._metrics.record_ingested()
            self._notify(record, total)

        logger.debug("Ingested %s (%s) from %s", record.id, record.level, record.resource_id)
        return record

    def _notify(self, record: LogRecord, total: int):
        event = {
            "kind": EVENT_KIND,
            "record": record.to_dict(),
            "totalCount": total,
        }
        try:
            self._broadcaster.publish(event)
        except Exception:
            self._metrics.record_broadcast_failure()
            logger.warning("Broadcast of %s failed", record.id, exc_info=True)
