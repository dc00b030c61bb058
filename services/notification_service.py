"""Floorline — Machine Change Notifier.

Fans machine-state changes out to subscribed UI sessions. Every publisher
receives a ``MachineNotifier`` explicitly; there is no process-global handle.

Message pushed to subscribers:
    {"type": "machine-update", "machine": {"name": ..., "online": ..., ...}}

Implementations:
    WebSocketHub       in-process registry of WebSocket subscribers
    RedisNotifier      publishes to ``<prefix>:<machine>`` and ``<prefix>``
    CompositeNotifier  fan-out where one failing target never blocks the rest
    NullNotifier       drops everything
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

import orjson
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.websockets import WebSocket

from config import RedisSettings
from core.exceptions import ExternalServiceError
from logger import get_logger
from machine_state.identity import resolve_machine_key

logger = get_logger(__name__)

MESSAGE_TYPE = "machine-update"


def machine_update_message(machine: dict[str, Any]) -> dict[str, Any]:
    return {"type": MESSAGE_TYPE, "machine": machine}


@runtime_checkable
class MachineNotifier(Protocol):
    async def publish(self, machine: dict[str, Any]) -> None:
        """Announce a machine record to its subscribers."""
        ...


class NullNotifier:
    async def publish(self, machine: dict[str, Any]) -> None:
        return None


class WebSocketHub:
    """Per-machine subscriber channels plus a wildcard channel.

    Sends to all targets concurrently; a socket whose send fails is dropped
    from every channel.
    """

    WILDCARD = "*"

    def __init__(self) -> None:
        self._channels: dict[str, set[WebSocket]] = {}
        self.logger = logger.bind(service="WebSocketHub")

    @property
    def connection_count(self) -> int:
        sockets: set[WebSocket] = set()
        for subscribers in self._channels.values():
            sockets |= subscribers
        return len(sockets)

    def subscribers(self, machine: str | None = None) -> set[WebSocket]:
        return set(self._channels.get(machine or self.WILDCARD, ()))

    def subscribe(self, websocket: WebSocket, machine: str | None = None) -> None:
        channel = machine or self.WILDCARD
        self._channels.setdefault(channel, set()).add(websocket)
        self.logger.debug("Subscribed", channel=channel)

    def unsubscribe(self, websocket: WebSocket, machine: str | None = None) -> None:
        channel = machine or self.WILDCARD
        subscribers = self._channels.get(channel)
        if subscribers is None:
            return
        subscribers.discard(websocket)
        if not subscribers:
            del self._channels[channel]

    def disconnect(self, websocket: WebSocket) -> None:
        for channel in list(self._channels):
            self.unsubscribe(websocket, channel)

    async def publish(self, machine: dict[str, Any]) -> None:
        name = resolve_machine_key(machine)
        targets = self.subscribers(name) | self.subscribers()
        if not targets:
            return

        text = orjson.dumps(machine_update_message(machine)).decode()
        sockets = list(targets)
        results = await asyncio.gather(
            *(ws.send_text(text) for ws in sockets),
            return_exceptions=True,
        )
        for ws, result in zip(sockets, results):
            if isinstance(result, Exception):
                self.logger.info(
                    "Dropping dead subscriber",
                    machine=name,
                    error_type=type(result).__name__,
                )
                self.disconnect(ws)


class RedisNotifier:
    """Publishes machine updates on Redis pub/sub for other processes."""

    def __init__(self, client: aioredis.Redis, channel_prefix: str = MESSAGE_TYPE):
        self.client = client
        self.channel_prefix = channel_prefix

    def channels(self, machine_name: str) -> tuple[str, str]:
        return f"{self.channel_prefix}:{machine_name}", self.channel_prefix

    async def publish(self, machine: dict[str, Any]) -> None:
        payload = orjson.dumps(machine_update_message(machine))
        try:
            for channel in self.channels(resolve_machine_key(machine)):
                await self.client.publish(channel, payload)
        except RedisError as exc:
            raise ExternalServiceError("redis", str(exc)) from exc


class CompositeNotifier:
    def __init__(self, targets: Iterable[MachineNotifier]):
        self.targets = list(targets)

    async def publish(self, machine: dict[str, Any]) -> None:
        for target in self.targets:
            try:
                await target.publish(machine)
            except Exception as exc:
                logger.warning(
                    "Notifier target failed",
                    target=type(target).__name__,
                    machine=machine.get("name"),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )


async def connect_redis(settings: RedisSettings) -> aioredis.Redis | None:
    """Open and ping a Redis client; None when Redis is unreachable."""
    client = aioredis.Redis(
        host=settings.host,
        port=settings.port,
        db=settings.db,
        password=settings.password.get_secret_value() if settings.password else None,
        ssl=settings.ssl,
        socket_timeout=settings.socket_timeout,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis connection failed", url=settings.url_safe, error=str(exc))
        await client.aclose()
        return None
    logger.info("Redis connected", url=settings.url_safe)
    return client
