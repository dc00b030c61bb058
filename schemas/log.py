"""Floorline — Log Schemas.

Pydantic models for log ingestion and read-back.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from machine_state.identity import resolve_machine_key

TEXT_FIELDS = ("comments", "mo", "part_number", "operator_id", "shift_number")


class LogCreate(BaseModel):
    """Payload for one machine event."""
    machine_name: str = Field(..., min_length=1, max_length=255)
    event: str = Field(..., min_length=1, max_length=255)
    total_count: int = Field(default=0, ge=0)
    interval_count: int = Field(default=0, ge=0)
    machine_rate: float = Field(default=0.0, ge=0)
    comments: str | None = None
    mo: str | None = None
    part_number: str | None = None
    operator_id: str | None = None
    shift_number: str | None = None
    created_at: str | int | float | None = Field(
        None,
        description="Event time; defaults to the time of insert",
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("machine_name"):
            try:
                data = {**data, "machine_name": resolve_machine_key(data)}
            except ValueError:
                pass
        return data

    @field_validator("machine_name", "event")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class LogOut(BaseModel):
    """Stored log row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    machine_name: str
    event: str
    total_count: int | None = 0
    interval_count: int | None = 0
    machine_rate: float | None = 0.0
    comments: str | None = None
    mo: str | None = None
    part_number: str | None = None
    operator_id: str | None = None
    shift_number: str | None = None
    created_at: str | None = None
