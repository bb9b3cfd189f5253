from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .broadcast.registry import TrackLocation, TrackRegistry

logger = logging.getLogger(__name__)


class VendorError(Exception):
    """The Realtime API answered with an error code."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class RealtimeClient:
    """Thin bridge to the Cloudflare Realtime sessions API.

    Not an SDK: each method is one request/response exchange. Publishing
    local tracks records them in the shared TrackRegistry so other clients
    can find and pull them.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        registry: TrackRegistry,
        *,
        base_url: str = "https://rtc.live.cloudflare.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.app_id = app_id
        self.registry = registry
        self.prefix_path = f"{base_url.rstrip('/')}/apps/{app_id}"
        # most recently created session, used when a caller omits the id
        self.session_id: Optional[str] = None
        self._http = httpx.AsyncClient(
            base_url=self.prefix_path,
            headers={
                "content-type": "application/json",
                "Authorization": f"Bearer {app_secret}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send_request(
        self, path: str, body: Dict[str, Any], method: str = "POST"
    ) -> Dict[str, Any]:
        response = await self._http.request(method, path, json=body)
        try:
            result = response.json()
        except ValueError:
            raise VendorError(
                f"unexpected response from Realtime API ({response.status_code})"
            ) from None
        if not isinstance(result, dict):
            raise VendorError(
                f"unexpected response from Realtime API ({response.status_code})"
            )
        return result

    @staticmethod
    def check_errors(result: Dict[str, Any], tracks_count: int = 0) -> None:
        if result.get("errorCode"):
            raise VendorError(result.get("errorDescription") or str(result["errorCode"]))
        tracks = result.get("tracks") or []
        for idx in range(min(tracks_count, len(tracks))):
            track = tracks[idx] or {}
            if track.get("errorCode"):
                raise VendorError(f"tracks[{idx}]: {track.get('errorDescription')}")

    def _resolve_session(self, session_id: Optional[str]) -> str:
        resolved = session_id or self.session_id
        if not resolved:
            raise VendorError("no session id")
        return resolved

    async def new_session(self, offer_sdp: str) -> Dict[str, Any]:
        """Send the initial offer and create a session."""
        body = {"sessionDescription": {"type": "offer", "sdp": offer_sdp}}
        result = await self._send_request("/sessions/new", body)
        self.check_errors(result)
        self.session_id = result.get("sessionId")
        logger.info("created session %s", self.session_id)
        return result

    async def new_tracks(
        self,
        track_objects: List[Dict[str, Any]],
        session_id: Optional[str] = None,
        offer_sdp: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Publish local tracks or pull remote ones into a session."""
        sid = self._resolve_session(session_id)
        body: Dict[str, Any] = {"tracks": track_objects}
        if offer_sdp:
            body["sessionDescription"] = {"type": "offer", "sdp": offer_sdp}

        result = await self._send_request(f"/sessions/{sid}/tracks/new", body)
        self.check_errors(result, len(track_objects))

        if track_objects and track_objects[0].get("location") == TrackLocation.LOCAL.value:
            # published tracks are remote from every other client's point of view
            for track in result.get("tracks") or []:
                name = track.get("trackName")
                if name:
                    self.registry.register(name, TrackLocation.REMOTE, sid)
                    logger.info("registered track %s from session %s", name, sid)
        return result

    async def send_answer_sdp(self, answer: str, session_id: Optional[str] = None) -> None:
        """Send an answer SDP when the session needs renegotiating."""
        sid = self._resolve_session(session_id)
        body = {"sessionDescription": {"type": "answer", "sdp": answer}}
        result = await self._send_request(f"/sessions/{sid}/renegotiate", body, "PUT")
        self.check_errors(result)
