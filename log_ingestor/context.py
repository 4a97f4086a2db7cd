"""Process-scoped wiring of the store, validator, broadcaster and coordinator."""

import logging
from dataclasses import dataclass

from log_ingestor.broadcaster import Broadcaster
from log_ingestor.config import Config
from log_ingestor.ingestion import IngestionCoordinator
from log_ingestor.metrics import Metrics
from log_ingestor.store import JsonFileStore
from log_ingestor.validator import LogValidator

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: Config
    store: JsonFileStore
    validator: LogValidator
    broadcaster: Broadcaster
    metrics: Metrics
    coordinator: IngestionCoordinator

    def close(self):
        self.broadcaster.close()


def build_context(config: Config) -> AppContext:
    """Create every component and load the store so its file exists before serving."""
    store = JsonFileStore(config["storage"]["data_file"], max_records=config["storage"]["max_logs"])
    store.load()

    validator = LogValidator(config["schema"]["path"])
    broadcaster = Broadcaster(queue_size=config["broadcast"]["subscriber_queue_size"])
    broadcaster.start()
    metrics = Metrics()
    coordinator = IngestionCoordinator(validator, store, broadcaster, metrics)

    logger.info("Store ready at %s (%d records, cap %d)",
                store.path, store.count(), store.max_records)
    return AppContext(
        config=config,
        store=store,
        validator=validator,
        broadcaster=broadcaster,
        metrics=metrics,
        coordinator=coordinator,
    )
