"""Floorline — Machine ORM Model.

Defines the Machine entity. ``last_updated`` is kept as text so producers
writing straight to the table may use any supported timestamp form.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, String

from db.base import Base


class Machine(Base):
    """A station on the factory floor, identified by its name."""
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    last_updated = Column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Machine name={self.name!r} last_updated={self.last_updated!r}>"
