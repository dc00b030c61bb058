"""ORM models for the event store."""

from db.models.log import LogEntry
from db.models.machine import Machine

__all__ = ["LogEntry", "Machine"]
