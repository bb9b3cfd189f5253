from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set, Union

from .messages import (
    MalformedMessage,
    Method,
    error_notification,
    parse_message,
    tracks_added_notification,
    tracks_listing,
)
from .registry import TrackRegistry

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    websocket: Any
    peer: str = "unknown"
    state: ConnectionState = field(default=ConnectionState.CONNECTING)

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN


class ConnectionHub:
    """Keeps the live WebSocket connections and answers their track messages."""

    def __init__(self, registry: TrackRegistry, *, send_timeout: float = 5.0) -> None:
        self.registry = registry
        self.send_timeout = send_timeout
        self._connections: Set[Connection] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: Any, peer: str = "unknown") -> Connection:
        connection = Connection(websocket=websocket, peer=peer)
        await websocket.accept()
        connection.state = ConnectionState.OPEN
        async with self._lock:
            self._connections.add(connection)
        logger.info("%s connected.", peer)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        was_open = connection.state is not ConnectionState.CLOSED
        connection.state = ConnectionState.CLOSED
        async with self._lock:
            self._connections.discard(connection)
        if was_open:
            logger.info("%s disconnected", connection.peer)

    async def send(self, connection: Connection, payload: Dict[str, Any]) -> None:
        await connection.websocket.send_text(json.dumps(payload, allow_nan=False))

    async def _deliver(self, connection: Connection, raw: str) -> None:
        await asyncio.wait_for(connection.websocket.send_text(raw), timeout=self.send_timeout)

    async def broadcast(
        self, payload: Dict[str, Any], *, exclude: Optional[Connection] = None
    ) -> int:
        async with self._lock:
            recipients = [
                conn for conn in self._connections if conn is not exclude and conn.is_open
            ]

        if not recipients:
            return 0

        raw = json.dumps(payload, allow_nan=False)
        results = await asyncio.gather(
            *(self._deliver(conn, raw) for conn in recipients), return_exceptions=True
        )

        delivered = 0
        for connection, result in zip(recipients, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "broadcast to %s failed, dropping connection: %r", connection.peer, result
                )
                await self.disconnect(connection)
                continue
            delivered += 1
        return delivered

    async def handle(self, connection: Connection, raw: Union[str, bytes]) -> None:
        try:
            message = parse_message(raw)
        except MalformedMessage as exc:
            logger.debug("rejecting frame from %s: %s", connection.peer, exc)
            await self.send(connection, error_notification())
            return

        logger.debug("message from %s: %s", connection.peer, message.payload)

        kind = message.kind
        if kind is Method.GET_TRACKS:
            await self.send(connection, tracks_listing(self.registry.snapshot()))
        elif kind is Method.NEW_TRACKS_ADDED:
            await self.broadcast(tracks_added_notification(message), exclude=connection)
        else:
            logger.debug("ignoring method %r from %s", message.method, connection.peer)

    def __len__(self) -> int:
        return len(self._connections)
