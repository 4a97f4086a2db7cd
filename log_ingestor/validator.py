"""Validates inbound log records before anything is persisted."""

import json
import math
import threading
from collections import defaultdict

import jsonschema

from log_ingestor.errors import (
    InvalidLevelError,
    InvalidMetadataError,
    InvalidTimestampError,
    MissingFieldsError,
    ValidationError,
)
from log_ingestor.models import REQUIRED_FIELDS, parse_timestamp


def _is_blank(value) -> bool:
    """True for values a client cannot use to fill a required field.

    Empty containers count as present: ``{}`` is a valid metadata object.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float) and not math.isfinite(value):
        return True
    if isinstance(value, (int, float)):
        return value == 0
    return False


class LogValidator:
    """Validates candidate records against the bundled JSON schema."""

    def __init__(self, schema_path):
        with open(schema_path, "r") as f:
            schema = json.load(f)

        self._validator = jsonschema.Draft202012Validator(schema)
        self._lock = threading.Lock()
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats():
        return {
            "total": 0,
            "valid": 0,
            "invalid": 0,
            "error_types": defaultdict(int),
        }

    def validate(self, candidate):
        """Validate a candidate record and return it unchanged.

        Checks run in a fixed order and the first failure wins: missing
        fields, then level, then timestamp, then metadata shape.

        Raises:
            ValidationError: one of its subclasses, naming the problem.
        """
        try:
            self._check(candidate)
        except ValidationError as exc:
            self._record(exc.kind)
            raise

        self._record(None)
        return candidate

    def _check(self, candidate):
        if not isinstance(candidate, dict):
            raise MissingFieldsError(REQUIRED_FIELDS)

        missing = [f for f in REQUIRED_FIELDS if _is_blank(candidate.get(f))]
        if missing:
            raise MissingFieldsError(missing)

        schema_errors = {}
        for error in self._validator.iter_errors(candidate):
            path = error.absolute_path[0] if error.absolute_path else None
            schema_errors.setdefault(path, error)

        if "level" in schema_errors:
            raise InvalidLevelError(candidate["level"])

        if parse_timestamp(candidate["timestamp"]) is None:
            raise InvalidTimestampError(candidate["timestamp"])

        if "metadata" in schema_errors:
            raise InvalidMetadataError(candidate["metadata"])

    def _record(self, kind):
        with self._lock:
            self._stats["total"] += 1
            if kind is None:
                self._stats["valid"] += 1
            else:
                self._stats["invalid"] += 1
                self._stats["error_types"][kind] += 1

    def get_stats(self):
        """Return a copy of the stats dict."""
        with self._lock:
            stats = dict(self._stats)
            stats["error_types"] = dict(stats["error_types"])
        return stats
