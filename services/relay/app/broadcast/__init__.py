"""Track registry and WebSocket fan-out."""

from .hub import Connection, ConnectionHub, ConnectionState
from .messages import INVALID_MESSAGE_ERROR, MalformedMessage, Method, parse_message
from .registry import TrackLocation, TrackRecord, TrackRegistry

__all__ = [
    "Connection",
    "ConnectionHub",
    "ConnectionState",
    "INVALID_MESSAGE_ERROR",
    "MalformedMessage",
    "Method",
    "TrackLocation",
    "TrackRecord",
    "TrackRegistry",
    "parse_message",
]
