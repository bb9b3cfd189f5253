from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

INVALID_MESSAGE_ERROR = "Invalid message. Failed to subscribe."


class MalformedMessage(ValueError):
    """Inbound frame that is not a JSON object with a `method` field."""


class Method(str, Enum):
    GET_TRACKS = "getTracks"
    NEW_TRACKS_ADDED = "newTracksAdded"


@dataclass
class InboundMessage:
    method: Any
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[Method]:
        """The recognised method, or None for anything the hub ignores."""
        if not isinstance(self.method, str):
            return None
        try:
            return Method(self.method)
        except ValueError:
            return None


def _reject_constant(token: str) -> Any:
    # NaN and Infinity are not JSON; browsers fail to parse them
    raise MalformedMessage(f"frame contains non-standard constant {token}")


def parse_message(raw: Union[str, bytes]) -> InboundMessage:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMessage("frame is not valid UTF-8") from exc

    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (TypeError, ValueError) as exc:
        raise MalformedMessage("frame is not valid JSON") from exc

    if not isinstance(data, dict) or not data.get("method"):
        raise MalformedMessage("frame has no method")

    return InboundMessage(method=data["method"], payload=data)


def error_notification() -> Dict[str, Any]:
    return {"errors": INVALID_MESSAGE_ERROR}


def tracks_listing(all_tracks: Dict[str, Any]) -> Dict[str, Any]:
    return {"method": Method.GET_TRACKS.value, "allTracks": all_tracks}


def tracks_added_notification(message: InboundMessage) -> Dict[str, Any]:
    notification: Dict[str, Any] = {"method": Method.NEW_TRACKS_ADDED.value}
    # an absent tracksAdded field is relayed as an absent allTracks field
    if "tracksAdded" in message.payload:
        notification["allTracks"] = message.payload["tracksAdded"]
    return notification
