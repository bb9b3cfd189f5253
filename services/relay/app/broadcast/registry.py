from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TrackLocation(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class TrackRecord:
    location: TrackLocation
    session_id: str
    track_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location.value,
            "sessionId": self.session_id,
            "trackName": self.track_name,
        }


class TrackRegistry:
    """In-memory map of published track names to where they can be pulled from.

    Records live for the lifetime of the process. There is no removal; a
    track published again under the same name replaces the earlier record.
    """

    def __init__(self) -> None:
        self._tracks: Dict[str, TrackRecord] = {}
        self._lock = threading.Lock()

    def register(
        self, track_name: str, location: TrackLocation | str, session_id: str
    ) -> TrackRecord:
        record = TrackRecord(
            location=TrackLocation(location),
            session_id=session_id,
            track_name=track_name,
        )
        with self._lock:
            self._tracks[track_name] = record
        return record

    def get(self, track_name: str) -> Optional[TrackRecord]:
        with self._lock:
            return self._tracks.get(track_name)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            records = list(self._tracks.items())
        return {name: record.to_dict() for name, record in records}

    def __contains__(self, track_name: object) -> bool:
        with self._lock:
            return track_name in self._tracks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)
