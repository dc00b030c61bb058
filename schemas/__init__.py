"""Request/response models for the Floorline API."""

from schemas.log import LogCreate, LogOut
from schemas.machine import MachineCreate, MachineOut
from schemas.response import APIResponse, ORJSONResponse, ResponseMeta

__all__ = [
    "APIResponse",
    "LogCreate",
    "LogOut",
    "MachineCreate",
    "MachineOut",
    "ORJSONResponse",
    "ResponseMeta",
]
