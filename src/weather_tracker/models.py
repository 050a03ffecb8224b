"""SQLAlchemy models for stored measurements and their metrics."""
from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class MeasurementRecord(Base):
    __tablename__ = "measurements"
    __table_args__ = (Index("ix_measurements_timestamp", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # naive UTC; timezone is re-attached when converting back to Measurement
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)

    metrics: Mapped[list["MetricRecord"]] = relationship(
        back_populates="measurement",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MetricRecord.position",
    )


class MetricRecord(Base):
    __tablename__ = "metrics"
    __table_args__ = (
        UniqueConstraint("measurement_id", "name", name="uq_metric_per_measurement"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    measurement_id: Mapped[int] = mapped_column(
        ForeignKey("measurements.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)

    measurement: Mapped[MeasurementRecord] = relationship(back_populates="metrics")


__all__ = ["Base", "MeasurementRecord", "MetricRecord"]
