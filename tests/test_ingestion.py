"""Tests for the ingestion coordinator's validate -> persist -> notify contract."""

import threading
from datetime import datetime, timezone

import pytest

from log_ingestor.errors import (
    InvalidLevelError,
    InvalidTimestampError,
    MissingFieldsError,
    PersistenceError,
)
from log_ingestor.ingestion import IngestionCoordinator
from log_ingestor.metrics import Metrics
from log_ingestor.query import FilterCriteria, query
from log_ingestor.store import JsonFileStore

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeBroadcaster:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    def publish(self, event):
        if self.fail:
            raise RuntimeError("broker down")
        self.events.append(event)


class FailingStore:
    def __init__(self):
        self.calls = 0

    def append(self, record):
        self.calls += 1
        raise PersistenceError("disk full")


def _coordinator(validator, store, broadcaster, **kwargs):
    return IngestionCoordinator(validator, store, broadcaster, **kwargs)


class TestSuccessfulIngest:
    def test_returns_fully_formed_record(self, validator, store, sample_log):
        coordinator = _coordinator(validator, store, FakeBroadcaster(),
                                   id_factory=lambda: "fixed-id", clock=lambda: FIXED_NOW)
        record = coordinator.ingest(sample_log)
        d = record.to_dict()
        assert d["id"] == "fixed-id"
        assert d["timestamp"] == "2024-01-01T10:00:00.000Z"
        assert d["ingestedAt"] == "2024-06-01T12:00:00.000Z"
        assert d["metadata"] == {"retryCount": 3}

    def test_record_visible_to_query(self, validator, store, sample_log):
        before = datetime.now(timezone.utc)
        record = _coordinator(validator, store, FakeBroadcaster()).ingest(sample_log)
        results = query(store.load(), FilterCriteria())
        assert [r.id for r in results] == [record.id]
        assert results[0].ingested_at >= before.replace(microsecond=before.microsecond // 1000 * 1000)

    def test_sub_millisecond_timestamp_stable_across_restart(self, validator, store, sample_log):
        sample_log["timestamp"] = "2024-01-01T10:00:00.000500Z"
        record = _coordinator(validator, store, FakeBroadcaster()).ingest(sample_log)
        shown = record.to_dict()["timestamp"]
        assert shown == "2024-01-01T10:00:00.000Z"

        criteria = FilterCriteria(timestamp_end=shown, timestamp_start=shown)
        before_restart = [r.id for r in query(store.load(), criteria)]
        after_restart = [r.id for r in query(JsonFileStore(store.path).load(), criteria)]
        assert before_restart == after_restart == [record.id]

    def test_ingested_at_truncated_to_millis(self, validator, store, sample_log):
        now = datetime(2024, 6, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        record = _coordinator(validator, store, FakeBroadcaster(), clock=lambda: now).ingest(sample_log)
        assert record.ingested_at.microsecond == 123000
        assert JsonFileStore(store.path).load()[0].ingested_at == record.ingested_at

    def test_ids_are_unique(self, validator, store, sample_log):
        coordinator = _coordinator(validator, store, FakeBroadcaster())
        ids = {coordinator.ingest(dict(sample_log)).id for _ in range(20)}
        assert len(ids) == 20

    def test_exactly_one_event_with_total(self, validator, store, sample_log):
        broadcaster = FakeBroadcaster()
        coordinator = _coordinator(validator, store, broadcaster)
        coordinator.ingest(sample_log)
        record = coordinator.ingest(dict(sample_log, message="second"))

        assert len(broadcaster.events) == 2
        event = broadcaster.events[-1]
        assert event["kind"] == "logIngested"
        assert event["record"] == record.to_dict()
        assert event["totalCount"] == 2

    def test_metrics_counted(self, validator, store, sample_log):
        metrics = Metrics()
        _coordinator(validator, store, FakeBroadcaster(), metrics=metrics).ingest(sample_log)
        assert metrics.snapshot()["ingested"] == 1


class TestRejection:
    def test_invalid_level_not_persisted_or_broadcast(self, validator, store, sample_log):
        broadcaster = FakeBroadcaster()
        sample_log["level"] = "fatal"
        with pytest.raises(InvalidLevelError):
            _coordinator(validator, store, broadcaster).ingest(sample_log)
        assert store.count() == 0
        assert broadcaster.events == []

    def test_invalid_timestamp_not_persisted(self, validator, store, sample_log):
        sample_log["timestamp"] = "never"
        with pytest.raises(InvalidTimestampError):
            _coordinator(validator, store, FakeBroadcaster()).ingest(sample_log)
        assert store.count() == 0

    def test_store_never_called_on_rejection(self, validator, sample_log):
        store = FailingStore()
        del sample_log["level"]
        with pytest.raises(MissingFieldsError):
            _coordinator(validator, store, FakeBroadcaster()).ingest(sample_log)
        assert store.calls == 0

    def test_rejection_counted_by_kind(self, validator, store, sample_log):
        metrics = Metrics()
        sample_log["level"] = "fatal"
        with pytest.raises(InvalidLevelError):
            _coordinator(validator, store, FakeBroadcaster(), metrics=metrics).ingest(sample_log)
        assert metrics.snapshot()["rejected"] == {"InvalidLevel": 1}


class TestPersistenceFailure:
    def test_failure_raised_and_nothing_broadcast(self, validator, sample_log):
        broadcaster = FakeBroadcaster()
        metrics = Metrics()
        with pytest.raises(PersistenceError):
            _coordinator(validator, FailingStore(), broadcaster, metrics=metrics).ingest(sample_log)
        assert broadcaster.events == []
        assert metrics.snapshot()["persistence_failures"] == 1


class TestBroadcastFailure:
    def test_broadcast_error_does_not_fail_ingest(self, validator, store, sample_log):
        metrics = Metrics()
        coordinator = _coordinator(validator, store, FakeBroadcaster(fail=True), metrics=metrics)
        record = coordinator.ingest(sample_log)
        assert store.load()[0].id == record.id
        assert metrics.snapshot()["broadcast_failures"] == 1


class TestConcurrentIngest:
    def test_no_lost_updates(self, validator, store, sample_log):
        broadcaster = FakeBroadcaster()
        coordinator = _coordinator(validator, store, broadcaster)
        errors = []

        def worker(n):
            try:
                for i in range(10):
                    coordinator.ingest(dict(sample_log, message=f"worker {n} event {i}"))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert store.count() == 60
        assert len({r.id for r in store.load()}) == 60
        assert [e["totalCount"] for e in broadcaster.events] == list(range(1, 61))
