"""LogRecord model and timestamp helpers."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

LEVELS = ("error", "warn", "info", "debug")
REQUIRED_FIELDS = (
    "level", "message", "resourceId", "timestamp",
    "traceId", "spanId", "commit", "metadata",
)


def parse_timestamp(value) -> datetime | None:
    """Parse *value* into an aware UTC datetime, or return None.

    Accepts ISO 8601 strings (naive values are taken as UTC) and numeric
    epoch milliseconds.
    """
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                return None
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str):
            dt = datetime.fromisoformat(value.strip())
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop sub-millisecond precision so stored, returned and reloaded values agree."""
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def format_timestamp(dt: datetime) -> str:
    """Render *dt* as ISO 8601 UTC with milliseconds, e.g. 2024-01-01T10:00:00.000Z."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogRecord:
    id: str
    level: str
    message: str
    resource_id: str
    timestamp: datetime
    trace_id: str
    span_id: str
    commit: str
    ingested_at: datetime
    metadata: dict = field(default_factory=dict)

    @classmethod
    def create(cls, candidate: dict, record_id: str, ingested_at: datetime) -> "LogRecord":
        """Build a stored record from a validated candidate dict."""
        return cls(
            id=record_id,
            level=candidate["level"],
            message=candidate["message"],
            resource_id=candidate["resourceId"],
            timestamp=truncate_to_millis(parse_timestamp(candidate["timestamp"])),
            trace_id=candidate["traceId"],
            span_id=candidate["spanId"],
            commit=candidate["commit"],
            ingested_at=truncate_to_millis(ingested_at.astimezone(timezone.utc)),
            metadata=candidate["metadata"],
        )

    @classmethod
    def from_dict(cls, d: dict) -> "LogRecord":
        timestamp = parse_timestamp(d["timestamp"])
        ingested_at = parse_timestamp(d["ingestedAt"])
        if timestamp is None or ingested_at is None:
            raise ValueError(f"record {d.get('id')!r} has an unparseable timestamp")
        return cls(
            id=d["id"],
            level=d["level"],
            message=d["message"],
            resource_id=d["resourceId"],
            timestamp=timestamp,
            trace_id=d["traceId"],
            span_id=d["spanId"],
            commit=d["commit"],
            ingested_at=ingested_at,
            metadata=d.get("metadata", {}),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "resourceId": self.resource_id,
            "timestamp": format_timestamp(self.timestamp),
            "traceId": self.trace_id,
            "spanId": self.span_id,
            "commit": self.commit,
            "metadata": self.metadata,
            "ingestedAt": format_timestamp(self.ingested_at),
        }
