import json
import threading
import unittest
from unittest.mock import patch

from study_notes.core.models import DeviceFilter, LinkState, Note, SyncState
from study_notes.core.sync import LinkError, NetworkSyncClient, StatusTracker, WirelessSyncClient
from study_notes.integrations.ble_link import BleLinkError, PeerInfo, WirelessCapabilityError
from study_notes.integrations.device_client import DeviceClient


class _DummyResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.text = ""


class NetworkSyncClientTests(unittest.TestCase):
    def setUp(self):
        self.client = NetworkSyncClient(DeviceClient(timeout=1))
        self.seen = []
        self.client.status.subscribe(lambda s: self.seen.append(s.state))
        self.notes = (Note("a", "Read ch.4", "Math", "high", None, None, 1),)

    def test_starts_idle(self):
        self.assertEqual(self.client.status.current.state, SyncState.IDLE)

    @patch("requests.post")
    def test_http_500_ends_in_error_with_code(self, mock_post):
        mock_post.return_value = _DummyResponse(500)

        outcome = self.client.sync(self.notes, "http://device/api/notes")

        self.assertEqual(self.seen, [SyncState.IN_PROGRESS, SyncState.ERROR])
        self.assertEqual(outcome.state, SyncState.ERROR)
        self.assertIn("500", outcome.detail)
        self.assertEqual(self.client.status.current, outcome)

    @patch("requests.post")
    def test_success_ends_ok(self, mock_post):
        mock_post.return_value = _DummyResponse(200)

        outcome = self.client.sync(self.notes, "http://device/api/notes")

        self.assertEqual(self.seen, [SyncState.IN_PROGRESS, SyncState.OK])
        self.assertEqual(outcome.state, SyncState.OK)

    @patch("requests.post")
    def test_transport_failure_ends_in_error_with_message(self, mock_post):
        import requests

        mock_post.side_effect = requests.Timeout("timed out")

        outcome = self.client.sync(self.notes, "http://device/api/notes")

        self.assertEqual(outcome.state, SyncState.ERROR)
        self.assertIn("timed out", outcome.detail)
        self.assertEqual(mock_post.call_count, 1)


class StatusTrackerTests(unittest.TestCase):
    def test_failing_listener_does_not_break_others(self):
        tracker = StatusTracker("a")
        seen = []

        def broken(_status):
            raise RuntimeError("boom")

        tracker.subscribe(broken)
        tracker.subscribe(seen.append)
        tracker.set("b")

        self.assertEqual(seen, ["b"])
        self.assertEqual(tracker.current, "b")


class _FakeSession:
    def __init__(self, peer, on_disconnect, reject_writes=False):
        self.peer = peer
        self.on_disconnect = on_disconnect
        self.reject_writes = reject_writes
        self.writes = []
        self.closed = False

    def write(self, characteristic_uuid, payload):
        if self.reject_writes:
            raise BleLinkError("write rejected")
        self.writes.append((characteristic_uuid, payload))

    def close(self):
        self.closed = True


class _FakeLink:
    def __init__(self, peers=None, connect_error=None, reject_writes=False):
        self.peers = peers if peers is not None else [PeerInfo("StudyReminder-1", "AA:BB")]
        self.connect_error = connect_error
        self.reject_writes = reject_writes
        self.sessions = []
        self.discover_calls = []

    def discover(self, name_prefix, timeout=8.0):
        self.discover_calls.append(name_prefix)
        return list(self.peers)

    def open_session(self, peer, allowed_services=(), on_disconnect=None):
        if self.connect_error:
            raise BleLinkError(self.connect_error)
        session = _FakeSession(peer, on_disconnect, self.reject_writes)
        self.sessions.append(session)
        return session


class _GatedLink(_FakeLink):
    """Holds the first discover call until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.scan_entered = threading.Event()
        self.release = threading.Event()
        self._gated = False

    def discover(self, name_prefix, timeout=8.0):
        if not self._gated:
            self._gated = True
            self.scan_entered.set()
            self.release.wait(timeout=5)
        return super().discover(name_prefix, timeout)


class _FaultyLink(_FakeLink):
    def open_session(self, peer, allowed_services=(), on_disconnect=None):
        raise RuntimeError("unexpected backend fault")


class WirelessSyncClientTests(unittest.TestCase):
    def setUp(self):
        self.filter = DeviceFilter("StudyReminder", ("0000ffe0-0000-1000-8000-00805f9b34fb",))
        self.seen = []

    def _client(self, link=None, factory=None):
        client = WirelessSyncClient(
            link_factory=factory or (lambda: link),
            characteristic_uuid="0000ffe1-0000-1000-8000-00805f9b34fb",
        )
        client.status.subscribe(lambda s: self.seen.append(s))
        return client

    def test_unsupported_platform_fails_without_retrying(self):
        calls = []

        def factory():
            calls.append(1)
            raise WirelessCapabilityError("no BLE")

        client = self._client(factory=factory)

        first = client.connect(self.filter)
        second = client.connect(self.filter)

        self.assertEqual([s.state for s in self.seen[:2]], [LinkState.CONNECTING, LinkState.FAILED])
        self.assertEqual(first.detail, "not supported")
        self.assertEqual(second.detail, "not supported")
        self.assertNotIn(LinkState.CONNECTED, [s.state for s in self.seen])
        self.assertEqual(len(calls), 1)

    def test_connect_success_reports_peer_name(self):
        link = _FakeLink()
        client = self._client(link)

        outcome = client.connect(self.filter)

        self.assertEqual(outcome.state, LinkState.CONNECTED)
        self.assertEqual(outcome.detail, "StudyReminder-1")
        self.assertEqual(link.discover_calls, ["StudyReminder"])
        self.assertTrue(client.connected)

    def test_user_cancel_is_failed_cancelled(self):
        client = self._client(_FakeLink())

        outcome = client.connect(self.filter, chooser=lambda peers: None)

        self.assertEqual(outcome.state, LinkState.FAILED)
        self.assertEqual(outcome.detail, "cancelled")

    def test_no_peer_found(self):
        client = self._client(_FakeLink(peers=[]))

        outcome = client.connect(self.filter)

        self.assertEqual(outcome.state, LinkState.FAILED)
        self.assertIn("no matching device", outcome.detail)

    def test_session_failure_is_failed_with_detail(self):
        client = self._client(_FakeLink(connect_error="peer unreachable"))

        outcome = client.connect(self.filter)

        self.assertEqual(outcome.state, LinkState.FAILED)
        self.assertIn("peer unreachable", outcome.detail)
        self.assertFalse(client.connected)

    def test_chooser_selection_is_used(self):
        peers = [PeerInfo("StudyReminder-1", "AA"), PeerInfo("StudyReminder-2", "BB")]
        client = self._client(_FakeLink(peers=peers))

        outcome = client.connect(self.filter, chooser=lambda found: found[1])

        self.assertEqual(outcome.detail, "StudyReminder-2")

    def test_link_loss_moves_to_disconnected(self):
        link = _FakeLink()
        client = self._client(link)
        client.connect(self.filter)

        link.sessions[0].on_disconnect()

        self.assertEqual(client.status.current.state, LinkState.DISCONNECTED)
        self.assertEqual(client.status.current.detail, "link lost")
        with self.assertRaises(LinkError):
            client.send(b"x")

    def test_send_requires_connected_session(self):
        client = self._client(_FakeLink())

        with self.assertRaises(LinkError):
            client.send(b"payload")

    def test_send_note_count_writes_json(self):
        link = _FakeLink()
        client = self._client(link)
        client.connect(self.filter)

        client.send_note_count(3)

        uuid, payload = link.sessions[0].writes[0]
        self.assertEqual(uuid, "0000ffe1-0000-1000-8000-00805f9b34fb")
        self.assertEqual(json.loads(payload.decode("utf-8")), {"count": 3})

    def test_rejected_write_raises_link_error(self):
        client = self._client(_FakeLink(reject_writes=True))
        client.connect(self.filter)

        with self.assertRaises(LinkError):
            client.send(b"payload")

    def test_disconnect_closes_session(self):
        link = _FakeLink()
        client = self._client(link)
        client.connect(self.filter)

        outcome = client.disconnect()

        self.assertTrue(link.sessions[0].closed)
        self.assertEqual(outcome.state, LinkState.DISCONNECTED)
        self.assertFalse(client.connected)

    def test_unexpected_session_error_is_failed(self):
        client = self._client(_FaultyLink())

        outcome = client.connect(self.filter)

        self.assertEqual(outcome.state, LinkState.FAILED)
        self.assertEqual(outcome.detail, "unexpected backend fault")
        self.assertEqual(client.status.current, outcome)
        self.assertFalse(client.connected)

    def test_raising_chooser_is_failed(self):
        client = self._client(_FakeLink())

        def chooser(_peers):
            raise RuntimeError("dialog closed")

        outcome = client.connect(self.filter, chooser=chooser)

        self.assertEqual(outcome.state, LinkState.FAILED)
        self.assertEqual(client.status.current.detail, "dialog closed")

    def _start_gated_connect(self, client, link, results):
        worker = threading.Thread(target=lambda: results.append(client.connect(self.filter)), daemon=True)
        worker.start()
        self.assertTrue(link.scan_entered.wait(timeout=5))
        return worker

    def test_overlapping_attempts_keep_only_newest_session(self):
        link = _GatedLink()
        client = self._client(link)
        results = []

        worker = self._start_gated_connect(client, link, results)
        newest = client.connect(self.filter)
        link.release.set()
        worker.join(timeout=5)

        live, orphan = link.sessions
        self.assertEqual(newest.state, LinkState.CONNECTED)
        self.assertEqual(results[0].detail, "superseded")
        self.assertTrue(orphan.closed)
        self.assertFalse(live.closed)
        self.assertEqual(client.status.current, newest)

        orphan.on_disconnect()
        self.assertEqual(client.status.current.state, LinkState.CONNECTED)
        client.send(b"x")
        self.assertEqual(len(live.writes), 1)

    def test_superseded_failure_does_not_override_status(self):
        link = _GatedLink()
        client = self._client(link)
        results = []

        def chooser(peers):
            return None if threading.current_thread() is worker else peers[0]

        worker = threading.Thread(
            target=lambda: results.append(client.connect(self.filter, chooser=chooser)), daemon=True
        )
        worker.start()
        self.assertTrue(link.scan_entered.wait(timeout=5))
        client.connect(self.filter, chooser=chooser)
        link.release.set()
        worker.join(timeout=5)

        self.assertEqual(results[0].detail, "cancelled")
        self.assertEqual(client.status.current.state, LinkState.CONNECTED)

    def test_disconnect_supersedes_attempt_in_flight(self):
        link = _GatedLink()
        client = self._client(link)
        results = []

        worker = self._start_gated_connect(client, link, results)
        client.disconnect()
        link.release.set()
        worker.join(timeout=5)

        self.assertEqual(results[0].detail, "superseded")
        self.assertTrue(link.sessions[0].closed)
        self.assertEqual(client.status.current.state, LinkState.DISCONNECTED)
        self.assertFalse(client.connected)

    def test_reconnect_replaces_previous_session(self):
        link = _FakeLink()
        client = self._client(link)
        client.connect(self.filter)
        client.connect(self.filter)

        self.assertTrue(link.sessions[0].closed)
        link.sessions[0].on_disconnect()
        self.assertEqual(client.status.current.state, LinkState.CONNECTED)


if __name__ == "__main__":
    unittest.main()
