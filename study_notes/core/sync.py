"""Network and wireless synchronization clients with per-transport status."""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Generic, Optional, Sequence, TypeVar

from study_notes.core.models import DeviceFilter, LinkState, LinkStatus, Note, SyncState, SyncStatus
from study_notes.integrations.ble_link import (
    BleLink,
    BleLinkError,
    BleSession,
    PeerInfo,
    WirelessCapabilityError,
)
from study_notes.integrations.device_client import DeviceClient, NetworkSyncError

logger = logging.getLogger(__name__)

S = TypeVar("S")

PeerChooser = Callable[[Sequence[PeerInfo]], Optional[PeerInfo]]


class WirelessConnectError(RuntimeError):
    """Discovery was cancelled or the session could not be established."""


class LinkError(RuntimeError):
    """Raised when sending over a wireless session that is not usable."""


class StatusTracker(Generic[S]):
    """Holds the current status of one transport and notifies listeners on change."""

    def __init__(self, initial: S):
        self._current = initial
        self._lock = threading.Lock()
        self._listeners: list[Callable[[S], None]] = []

    @property
    def current(self) -> S:
        return self._current

    def subscribe(self, listener: Callable[[S], None]) -> None:
        self._listeners.append(listener)

    def set(self, status: S) -> S:
        with self._lock:
            self._current = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:  # noqa: BLE001
                logger.exception("Status listener failed for %s", status)
        return status


def first_peer(peers: Sequence[PeerInfo]) -> Optional[PeerInfo]:
    return peers[0] if peers else None


class NetworkSyncClient:
    """Pushes the full collection to the device over HTTP, one attempt per call."""


class WirelessSyncClient:
    def __init__(
        self,
        link_factory: Callable[[], BleLink] = BleLink,
        scan_seconds: float = 8.0,
        characteristic_uuid: str = "",
    ):
        self._link_factory = link_factory
        self._link: Optional[BleLink] = None
        self._unsupported = False
        self._session: Optional[BleSession] = None
        self._attempt = 0
        self._lock = threading.RLock()
        self.scan_seconds = scan_seconds
        self.characteristic_uuid = characteristic_uuid
        self.status: StatusTracker[LinkStatus] = StatusTracker(LinkStatus(LinkState.DISCONNECTED))

    @property
    def connected(self) -> bool:
        return self.status.current.state == LinkState.CONNECTED and self._session is not None

    def connect(self, device_filter: DeviceFilter, chooser: Optional[PeerChooser] = None) -> LinkStatus:
        """Run one connect attempt.

        A newer attempt supersedes this one: a superseded attempt closes
        whatever session it opened and leaves the status untouched.
        """
        with self._lock:
            self._attempt += 1
            attempt = self._attempt
            stale, self._session = self._session, None
            self.status.set(LinkStatus(LinkState.CONNECTING, "Bluetooth: connecting..."))
        if stale is not None:
            stale.close()

        try:
            link = self._get_link()
        except WirelessCapabilityError as exc:
            logger.warning("Bluetooth unavailable: %s", exc)
            return self._finish(attempt, LinkStatus(LinkState.FAILED, "not supported"))

        try:
            session = self._establish(link, device_filter, chooser or first_peer, attempt)
        except WirelessConnectError as exc:
            logger.error("Bluetooth error: %s", exc)
            return self._finish(attempt, LinkStatus(LinkState.FAILED, str(exc)))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected Bluetooth connect failure")
            return self._finish(attempt, LinkStatus(LinkState.FAILED, str(exc) or type(exc).__name__))

        with self._lock:
            if attempt == self._attempt:
                self._session = session
                return self.status.set(LinkStatus(LinkState.CONNECTED, session.peer.name or "device"))
        logger.info("Closing session from superseded Bluetooth attempt %s", attempt)
        session.close()
        return LinkStatus(LinkState.FAILED, "superseded")

    def _finish(self, attempt: int, outcome: LinkStatus) -> LinkStatus:
        with self._lock:
            if attempt != self._attempt:
                return outcome
            return self.status.set(outcome)

    def _get_link(self) -> BleLink:
        with self._lock:
            if self._unsupported:
                raise WirelessCapabilityError("Bluetooth is not supported on this platform")
            if self._link is None:
                try:
                    self._link = self._link_factory()
                except WirelessCapabilityError:
                    self._unsupported = True
                    raise
            return self._link

    def _establish(
        self, link: BleLink, device_filter: DeviceFilter, chooser: PeerChooser, attempt: int
    ) -> BleSession:
        try:
            peers = link.discover(device_filter.name_prefix, timeout=self.scan_seconds)
        except BleLinkError as exc:
            raise WirelessConnectError(str(exc)) from exc

        if not peers:
            raise WirelessConnectError("no matching device found")

        selected = chooser(peers)
        if selected is None:
            raise WirelessConnectError("cancelled")

        try:
            return link.open_session(
                selected,
                allowed_services=device_filter.service_uuids,
                on_disconnect=lambda: self._on_link_lost(attempt),
            )
        except BleLinkError as exc:
            raise WirelessConnectError(str(exc)) from exc

    def _on_link_lost(self, attempt: int) -> None:
        # notifications from a replaced or closed session are ignored
        with self._lock:
            if self._session is None or attempt != self._attempt:
                return
            if self.status.current.state != LinkState.CONNECTED:
                return
            self._session = None
            self.status.set(LinkStatus(LinkState.DISCONNECTED, "link lost"))

    def send(self, payload: bytes, characteristic_uuid: Optional[str] = None) -> None:
        session = self._session
        if session is None or self.status.current.state != LinkState.CONNECTED:
            raise LinkError("Bluetooth session is not connected")
        target = characteristic_uuid or self.characteristic_uuid
        if not target:
            raise LinkError("No characteristic configured for writes")
        try:
            session.write(target, payload)
        except BleLinkError as exc:
            raise LinkError(str(exc)) from exc

    def send_note_count(self, count: int) -> None:
        self.send(json.dumps({"count": count}).encode("utf-8"))

    def disconnect(self) -> LinkStatus:
        """Close the current session. Attempts still in flight are superseded."""
        with self._lock:
            self._attempt += 1
            session, self._session = self._session, None
            outcome = self.status.set(LinkStatus(LinkState.DISCONNECTED))
        if session is not None:
            session.close()
        return outcome
