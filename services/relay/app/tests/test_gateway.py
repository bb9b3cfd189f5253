import json
import unittest

import httpx
from fastapi.testclient import TestClient

from services.relay.app.broadcast.messages import INVALID_MESSAGE_ERROR
from services.relay.app.broadcast.registry import TrackRegistry
from services.relay.app.main import create_app
from services.relay.app.realtime import RealtimeClient


def fake_vendor(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/sessions/new"):
        return httpx.Response(200, json={"sessionId": "S", "sessionDescription": {"type": "answer", "sdp": "v=0"}})
    if path.endswith("/tracks/new"):
        body = json.loads(request.content)
        if any(track.get("trackName") == "broken" for track in body["tracks"]):
            return httpx.Response(
                200,
                json={"tracks": [{"errorCode": "invalid", "errorDescription": "bad track"}]},
            )
        return httpx.Response(200, json={"tracks": [{"trackName": t["trackName"]} for t in body["tracks"]]})
    if path.endswith("/renegotiate"):
        return httpx.Response(200, json={})
    return httpx.Response(404, json={"errorCode": "not_found", "errorDescription": "no such route"})


def timing_out_vendor(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


class GatewayTestCase(unittest.TestCase):
    handler = staticmethod(fake_vendor)

    def setUp(self) -> None:
        self.registry = TrackRegistry()
        realtime = RealtimeClient(
            "app-123",
            "secret",
            self.registry,
            base_url="https://rtc.example.test/v1",
            transport=httpx.MockTransport(self.handler),
        )
        self.app = create_app(self.registry, realtime, static_dir="does-not-exist")
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)


class HttpRouteTests(GatewayTestCase):
    def test_new_session(self) -> None:
        response = self.client.post("/api/newSession", json={"sdp": "offer"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["newSessionResult"]["sessionId"], "S")

    def test_new_tracks_publishes(self) -> None:
        response = self.client.post(
            "/api/newTracks",
            json={"trackObjects": [{"location": "local", "trackName": "cam1"}], "sessionId": "S", "sdp": "offer"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"newLocalTracksResult": {"tracks": [{"trackName": "cam1"}]}})
        self.assertIn("cam1", self.registry)

    def test_vendor_error_maps_to_bad_gateway(self) -> None:
        response = self.client.post(
            "/api/newTracks",
            json={"trackObjects": [{"location": "local", "trackName": "broken"}], "sessionId": "S"},
        )

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json(), {"detail": "tracks[0]: bad track"})
        self.assertEqual(len(self.registry), 0)

    def test_send_answer(self) -> None:
        response = self.client.post("/api/sendAnswerSDP", json={"answer": "answer-sdp", "sessionId": "S"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})

    def test_invalid_body(self) -> None:
        response = self.client.post("/api/newSession", json={})

        self.assertEqual(response.status_code, 422)

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["tracks"], 0)
        self.assertEqual(response.json()["connections"], 0)


class TimeoutTests(GatewayTestCase):
    handler = staticmethod(timing_out_vendor)

    def test_timeout_maps_to_gateway_timeout(self) -> None:
        response = self.client.post("/api/newSession", json={"sdp": "offer"})

        self.assertEqual(response.status_code, 504)


class WebSocketTests(GatewayTestCase):
    def test_publish_then_get_tracks(self) -> None:
        self.client.post(
            "/api/newTracks",
            json={"trackObjects": [{"location": "local", "trackName": "cam1"}], "sessionId": "S"},
        )

        with self.client.websocket_connect("/") as ws:
            ws.send_json({"method": "getTracks"})
            self.assertEqual(
                ws.receive_json(),
                {
                    "method": "getTracks",
                    "allTracks": {"cam1": {"location": "remote", "sessionId": "S", "trackName": "cam1"}},
                },
            )

    def test_malformed_message_keeps_connection_open(self) -> None:
        with self.client.websocket_connect("/") as ws:
            ws.send_text("not json")
            self.assertEqual(ws.receive_json(), {"errors": INVALID_MESSAGE_ERROR})

            ws.send_bytes(b'{"method": "getTracks"}')
            self.assertEqual(ws.receive_json(), {"method": "getTracks", "allTracks": {}})

    def test_new_tracks_added_reaches_other_clients(self) -> None:
        with self.client.websocket_connect("/") as sender, self.client.websocket_connect("/") as other:
            # a round trip on each socket guarantees both are registered with the hub
            for ws in (sender, other):
                ws.send_json({"method": "getTracks"})
                ws.receive_json()

            sender.send_json({"method": "newTracksAdded", "tracksAdded": ["cam1"]})
            self.assertEqual(other.receive_json(), {"method": "newTracksAdded", "allTracks": ["cam1"]})

            # the next frame the sender sees is its own query, not the broadcast
            sender.send_json({"method": "unknown"})
            sender.send_json({"method": "getTracks"})
            self.assertEqual(sender.receive_json(), {"method": "getTracks", "allTracks": {}})


if __name__ == "__main__":
    unittest.main()
