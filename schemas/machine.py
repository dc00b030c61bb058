"""Floorline — Machine Schemas.

Pydantic models for Machine API requests and responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from machine_state.identity import resolve_machine_key


class MachineCreate(BaseModel):
    """Payload for registering (or re-registering) a machine.

    The name may arrive under any of the identity keys producers use
    (``name``, ``machine_name``, ``machine_id``, ``id``).
    """
    name: str = Field(..., min_length=1, max_length=255)
    last_updated: str | int | float | None = Field(
        None,
        description="Reported timestamp; defaults to the time of registration",
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            try:
                data = {**data, "name": resolve_machine_key(data)}
            except ValueError:
                pass
        return data

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class MachineOut(BaseModel):
    """Machine resource with its derived power indicator."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    last_updated: str | None = None
    online: bool | None = Field(None, description="None when last_updated is unparseable")
    liveness: str | None = None
