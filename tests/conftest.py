import pytest

from log_ingestor.app import create_app
from log_ingestor.broadcaster import Broadcaster
from log_ingestor.config import Config
from log_ingestor.context import build_context
from log_ingestor.store import JsonFileStore
from log_ingestor.validator import LogValidator


@pytest.fixture
def sample_log():
    return {
        "level": "error",
        "message": "Database connection failed",
        "resourceId": "db-server-01",
        "timestamp": "2024-01-01T10:00:00Z",
        "traceId": "trace-001",
        "spanId": "span-001",
        "commit": "abc123",
        "metadata": {"retryCount": 3},
    }


@pytest.fixture
def config(tmp_path):
    return Config(overrides={
        "storage": {"data_file": str(tmp_path / "logs.json")},
        "broadcast": {"poll_interval_seconds": 0.05},
    })


@pytest.fixture
def validator(config):
    return LogValidator(config["schema"]["path"])


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "logs.json"), max_records=1000)


@pytest.fixture
def broadcaster():
    hub = Broadcaster(queue_size=10)
    hub.start()
    yield hub
    hub.close()


@pytest.fixture
def context(config):
    ctx = build_context(config)
    yield ctx
    ctx.close()


@pytest.fixture
def app(context):
    """Create a Flask test app."""
    application = create_app(context=context)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
