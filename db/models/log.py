"""Floorline — Log ORM Model.

One row per machine event. Rows are immutable after insert; ``created_at``
is text (``YYYY-MM-DD HH:MM:SS`` local time when written by the service).
"""

from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text

from db.base import Base


class LogEntry(Base):
    """A status/production event reported by a machine."""
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    machine_name = Column(
        String(255),
        ForeignKey("machines.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event = Column(String(255), nullable=False)
    total_count = Column(Integer, nullable=False, default=0)
    interval_count = Column(Integer, nullable=False, default=0)
    machine_rate = Column(Float, nullable=False, default=0.0)
    comments = Column(Text, nullable=True)
    mo = Column(String(255), nullable=True)
    part_number = Column(String(255), nullable=True)
    operator_id = Column(String(255), nullable=True)
    shift_number = Column(String(64), nullable=True)
    created_at = Column(String(64), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LogEntry id={self.id} machine={self.machine_name!r} event={self.event!r}>"
