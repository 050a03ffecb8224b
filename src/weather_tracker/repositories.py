"""Measurement persistence on top of the SQLAlchemy models."""
from __future__ import annotations

import datetime as dt
from typing import Callable, Mapping, Protocol, TypeVar

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .database import session_scope
from .logging_setup import get_logger
from .measurements import Measurement, MeasurementBuilder, normalize_timestamp
from .models import MeasurementRecord, MetricRecord

T = TypeVar("T")


class StoreError(RuntimeError):
    """Raised when the underlying database fails."""


class MeasurementStore(Protocol):
    def add(self, measurement: Measurement) -> None: ...

    def fetch(self, timestamp: dt.datetime) -> Measurement | None: ...

    def query_range(self, start: dt.datetime, end: dt.datetime) -> list[Measurement]: ...

    def delete(self, timestamp: dt.datetime) -> int: ...

    def replace(self, measurement: Measurement) -> bool: ...

    def update(self, timestamp: dt.datetime, metrics: Mapping[str, object]) -> Measurement | None: ...

    def count(self) -> int: ...

def _to_db_timestamp(timestamp: dt.datetime) -> dt.datetime:
    return normalize_timestamp(timestamp).replace(tzinfo=None)


def _from_db_timestamp(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def record_from_measurement(measurement: Measurement) -> MeasurementRecord:
    record = MeasurementRecord(timestamp=_to_db_timestamp(measurement.timestamp))
    for position, (name, value) in enumerate(measurement.metrics.items()):
        record.metrics.append(MetricRecord(position=position, name=name, value=value))
    return record


def measurement_from_record(record: MeasurementRecord) -> Measurement:
    builder = MeasurementBuilder().with_timestamp(_from_db_timestamp(record.timestamp))
    for metric in record.metrics:
        builder.with_metric(metric.name, metric.value)
    return builder.build()


class SqlMeasurementStore:
    """Store measurements in a relational database.

    Each call runs in its own committed session so a completed ``add`` is
    visible to every later ``fetch`` or ``query_range``. Timestamps are not
    unique: ``fetch`` resolves duplicates to the earliest stored row.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        retry_attempts: int = 3,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.retry_attempts = retry_attempts
        self.logger = logger or get_logger(__name__)

    def _run(self, action: str, operation: Callable[[Session], T]) -> T:
        retrying = Retrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    with session_scope(self.session_factory) as session:
                        return operation(session)
        except SQLAlchemyError as exc:
            self.logger.error("store.failed", action=action, error=str(exc))
            raise StoreError(f"Failed to {action} measurement(s)") from exc
        raise AssertionError("unreachable")  # pragma: no cover

    def add(self, measurement: Measurement) -> None:
        self.logger.info(
            "store.add",
            timestamp=measurement.timestamp.isoformat(),
            metrics=dict(measurement.metrics),
        )

        def _add(session: Session) -> None:
            session.add(record_from_measurement(measurement))

        self._run("add", _add)

    def fetch(self, timestamp: dt.datetime) -> Measurement | None:
        key = _to_db_timestamp(timestamp)
        self.logger.info("store.fetch", timestamp=timestamp.isoformat())

        def _fetch(session: Session) -> list[Measurement]:
            records = session.execute(
                select(MeasurementRecord)
                .where(MeasurementRecord.timestamp == key)
                .order_by(MeasurementRecord.id)
            ).scalars().all()
            return [measurement_from_record(record) for record in records]

        matches = self._run("fetch", _fetch)
        if not matches:
            self.logger.warning("store.fetch.not_found", timestamp=timestamp.isoformat())
            return None
        if len(matches) > 1:
            self.logger.warning(
                "store.fetch.duplicate_timestamp",
                timestamp=timestamp.isoformat(),
                matches=len(matches),
            )
        return matches[0]

    def query_range(self, start: dt.datetime, end: dt.datetime) -> list[Measurement]:
        """Return measurements with ``start <= timestamp < end``."""

        lower = _to_db_timestamp(start)
        upper = _to_db_timestamp(end)
        self.logger.info(
            "store.query_range",
            start=start.isoformat(),
            end=end.isoformat(),
        )
        if lower >= upper:
            return []

        def _query(session: Session) -> list[Measurement]:
            records = session.execute(
                select(MeasurementRecord)
                .where(MeasurementRecord.timestamp >= lower, MeasurementRecord.timestamp < upper)
                .order_by(MeasurementRecord.timestamp, MeasurementRecord.id)
            ).scalars().all()
            return [measurement_from_record(record) for record in records]

        measurements = self._run("query", _query)
        self.logger.info("store.query_range.found", count=len(measurements))
        return measurements

    def delete(self, timestamp: dt.datetime) -> int:
        key = _to_db_timestamp(timestamp)

        def _delete(session: Session) -> int:
            return _delete_at(session, key)

        removed = self._run("delete", _delete)
        self.logger.info("store.delete", timestamp=timestamp.isoformat(), removed=removed)
        return removed

    def replace(self, measurement: Measurement) -> bool:
        """Swap whatever is stored at the measurement's timestamp for ``measurement``."""

        key = _to_db_timestamp(measurement.timestamp)

        def _replace(session: Session) -> int:
            removed = _delete_at(session, key)
            session.add(record_from_measurement(measurement))
            return removed

        removed = self._run("replace", _replace)
        self.logger.info(
            "store.replace",
            timestamp=measurement.timestamp.isoformat(),
            replaced=removed,
        )
        return removed > 0

    def update(self, timestamp: dt.datetime, metrics: Mapping[str, object]) -> Measurement | None:
        """Merge ``metrics`` into the earliest measurement stored at ``timestamp``.

        The read and the write share one transaction; other rows at the same
        timestamp are left alone.
        """

        key = _to_db_timestamp(timestamp)

        def _update(session: Session) -> Measurement | None:
            record = session.execute(
                select(MeasurementRecord)
                .where(MeasurementRecord.timestamp == key)
                .order_by(MeasurementRecord.id)
                .limit(1)
            ).scalars().first()
            if record is None:
                return None
            updated = measurement_from_record(record).with_metrics(metrics)
            stored = {metric.name: metric for metric in record.metrics}
            for position, (name, value) in enumerate(updated.metrics.items()):
                if name in stored:
                    stored[name].value = value
                else:
                    record.metrics.append(MetricRecord(position=position, name=name, value=value))
            return updated

        updated = self._run("update", _update)
        if updated is None:
            self.logger.warning("store.update.not_found", timestamp=timestamp.isoformat())
            return None
        self.logger.info("store.update", timestamp=timestamp.isoformat(), metrics=sorted(metrics))
        return updated

    def count(self) -> int:
        def _count(session: Session) -> int:
            return session.execute(select(func.count(MeasurementRecord.id))).scalar_one()

        return self._run("count", _count)


def _delete_at(session: Session, key: dt.datetime) -> int:
    ids = session.execute(
        select(MeasurementRecord.id).where(MeasurementRecord.timestamp == key)
    ).scalars().all()
    if not ids:
        return 0
    session.execute(delete(MetricRecord).where(MetricRecord.measurement_id.in_(ids)))
    session.execute(delete(MeasurementRecord).where(MeasurementRecord.id.in_(ids)))
    return len(ids)


__all__ = [
    "MeasurementStore",
    "SqlMeasurementStore",
    "StoreError",
    "measurement_from_record",
    "record_from_measurement",
]
