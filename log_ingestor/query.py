"""Filter predicates and the query entry point over a record snapshot."""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Callable, Iterable, Mapping

from log_ingestor.models import LogRecord, parse_timestamp

# query parameter name -> FilterCriteria attribute
_PARAMS = {
    "level": "level",
    "message": "message",
    "resourceId": "resource_id",
    "traceId": "trace_id",
    "spanId": "span_id",
    "commit": "commit",
    "timestamp_start": "timestamp_start",
    "timestamp_end": "timestamp_end",
}


@dataclass(frozen=True)
class FilterCriteria:
    level: str | None = None
    message: str | None = None
    resource_id: str | None = None
    trace_id: str | None = None
    span_id: str | None = None
    commit: str | None = None
    timestamp_start: str | None = None
    timestamp_end: str | None = None

    @classmethod
    def from_args(cls, args: Mapping) -> "FilterCriteria":
        """Build criteria from flat string parameters (e.g. ``request.args``).

        Missing and empty parameters impose no constraint.
        """
        values = {}
        for param, attr in _PARAMS.items():
            value = args.get(param)
            if value:
                values[attr] = value
        return cls(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def filter_by_level(record: LogRecord, level: str) -> bool:
    return record.level == level


def filter_by_message(record: LogRecord, keyword: str) -> bool:
    """True if keyword appears in the message (case-insensitive)."""
    return keyword.lower() in str(record.message).lower()


def filter_by_field(record: LogRecord, attr: str, value: str) -> bool:
    """Exact, case-sensitive match on an identifier attribute."""
    return getattr(record, attr) == value


def filter_after(record: LogRecord, start: datetime) -> bool:
    return record.timestamp >= start


def filter_before(record: LogRecord, end: datetime) -> bool:
    return record.timestamp <= end


def build_filter_chain(criteria: FilterCriteria) -> Callable[[LogRecord], bool]:
    """Combine all active criteria into a single predicate that ANDs them.

    Timestamp bounds that do not parse are dropped rather than rejected.
    """
    predicates = []

    if criteria.level:
        predicates.append(lambda r, l=criteria.level: filter_by_level(r, l))

    if criteria.message:
        predicates.append(lambda r, k=criteria.message: filter_by_message(r, k))

    for attr in ("resource_id", "trace_id", "span_id", "commit"):
        value = getattr(criteria, attr)
        if value:
            predicates.append(lambda r, a=attr, v=value: filter_by_field(r, a, v))

    start = parse_timestamp(criteria.timestamp_start) if criteria.timestamp_start else None
    if start is not None:
        predicates.append(lambda r, s=start: filter_after(r, s))

    end = parse_timestamp(criteria.timestamp_end) if criteria.timestamp_end else None
    if end is not None:
        predicates.append(lambda r, e=end: filter_before(r, e))

    if not predicates:
        return lambda record: True

    def combined(record: LogRecord) -> bool:
        return all(p(record) for p in predicates)

    return combined


def query(records: Iterable[LogRecord], criteria: FilterCriteria | None = None) -> list[LogRecord]:
    """Return the records matching *criteria*, newest timestamp first.

    Never mutates *records*; ties keep their input order.
    """
    chain = build_filter_chain(criteria or FilterCriteria())
    matched = [r for r in records if chain(r)]
    matched.sort(key=lambda r: r.timestamp, reverse=True)
    return matched
