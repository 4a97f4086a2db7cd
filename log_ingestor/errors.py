"""Exceptions raised by the ingestion and storage layers."""

from log_ingestor.models import LEVELS


class LogIngestorError(Exception):
    """Base class for all log-ingestor errors."""


class ValidationError(LogIngestorError):
    """Raised when a candidate record is rejected before persistence."""

    kind = "Validation"


class MissingFieldsError(ValidationError):
    kind = "MissingFields"

    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidLevelError(ValidationError):
    kind = "InvalidLevel"

    def __init__(self, level):
        self.level = level
        super().__init__(f"Invalid level. Must be one of: {', '.join(LEVELS)}")


class InvalidTimestampError(ValidationError):
    kind = "InvalidTimestamp"

    def __init__(self, value):
        self.value = value
        super().__init__("Invalid timestamp format. Must be ISO 8601")


class InvalidMetadataError(ValidationError):
    kind = "InvalidMetadata"

    def __init__(self, value):
        self.value = value
        super().__init__("Metadata must be a JSON object")


class PersistenceError(LogIngestorError):
    """Raised when the durable store cannot read or write its file."""
