"""Canonical machine identity.

Producers and clients name machines under different keys. This resolves a
payload to the one identity string used everywhere downstream.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

IDENTITY_KEYS = ("name", "machine_name", "machine_id", "id")


def resolve_machine_key(payload: Any) -> str:
    """Return the canonical machine name for a dict or record.

    Raises:
        ValueError: If no identity key holds a non-empty value.
    """
    for key in IDENTITY_KEYS:
        if isinstance(payload, Mapping):
            value = payload.get(key)
        else:
            value = getattr(payload, key, None)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    raise ValueError("payload carries no machine identity")
