import unittest

from services.relay.app.broadcast.registry import TrackLocation, TrackRecord, TrackRegistry


class TrackRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = TrackRegistry()

    def test_register_returns_record(self) -> None:
        record = self.registry.register("cam1", "remote", "session-1")

        self.assertEqual(
            record,
            TrackRecord(location=TrackLocation.REMOTE, session_id="session-1", track_name="cam1"),
        )
        self.assertIn("cam1", self.registry)
        self.assertEqual(self.registry.get("cam1"), record)

    def test_snapshot_uses_wire_keys(self) -> None:
        self.registry.register("cam1", TrackLocation.REMOTE, "session-1")
        self.registry.register("mic1", TrackLocation.LOCAL, "session-2")

        self.assertEqual(
            self.registry.snapshot(),
            {
                "cam1": {"location": "remote", "sessionId": "session-1", "trackName": "cam1"},
                "mic1": {"location": "local", "sessionId": "session-2", "trackName": "mic1"},
            },
        )

    def test_reregistering_overwrites(self) -> None:
        self.registry.register("cam1", TrackLocation.REMOTE, "old-session")
        self.registry.register("cam1", TrackLocation.REMOTE, "new-session")

        self.assertEqual(len(self.registry), 1)
        self.assertEqual(self.registry.snapshot()["cam1"]["sessionId"], "new-session")

    def test_snapshot_is_detached(self) -> None:
        snapshot = self.registry.snapshot()
        self.registry.register("cam1", TrackLocation.REMOTE, "session-1")

        self.assertEqual(snapshot, {})
        self.assertIsNone(self.registry.get("missing"))

    def test_unknown_location_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.registry.register("cam1", "sideways", "session-1")
        self.assertEqual(len(self.registry), 0)


if __name__ == "__main__":
    unittest.main()
