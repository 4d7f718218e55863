"""Bluetooth Low Energy access to the study reminder device using bleak."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BleLinkError(RuntimeError):
    """Raised when scanning, connecting or writing over BLE fails."""


class WirelessCapabilityError(RuntimeError):
    """Raised when the running platform has no usable BLE stack."""


def ble_supported() -> bool:
    """Return True when the bleak BLE stack can be imported on this platform."""
    try:
        import bleak  # noqa: F401
    except ImportError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class PeerInfo:
    """A discovered peer that matched the name filter."""

    name: str
    address: str
    rssi: Optional[int] = None
    device: Any = field(default=None, compare=False, repr=False)


class _LoopThread:
    """Private asyncio loop on a daemon thread; bleak objects stay bound to it."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, name="ble-loop", daemon=True)
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()


class BleSession:
    """An established GATT session with one peer."""

    def __init__(self, runner: _LoopThread, client: Any, peer: PeerInfo, allowed_services: Iterable[str]):
        self._runner = runner
        self._client = client
        self.peer = peer
        self.allowed_services = {s.lower() for s in allowed_services}

    @property
    def is_connected(self) -> bool:
        return bool(self._client.is_connected)

    def write(self, characteristic_uuid: str, payload: bytes) -> None:
        if not self.is_connected:
            raise BleLinkError(f"Link to {self.peer.name} is down")
        self._runner.run(self._write(characteristic_uuid.lower(), payload))

    async def _write(self, characteristic_uuid: str, payload: bytes) -> None:
        from bleak.exc import BleakError

        characteristic = self._client.services.get_characteristic(characteristic_uuid)
        if characteristic is None:
            raise BleLinkError(f"Characteristic {characteristic_uuid} not exposed by {self.peer.name}")
        if self.allowed_services and str(characteristic.service_uuid).lower() not in self.allowed_services:
            raise BleLinkError(f"Service {characteristic.service_uuid} is not in the allowed service list")
        try:
            await self._client.write_gatt_char(characteristic, payload, response=True)
        except (BleakError, OSError, asyncio.TimeoutError) as exc:
            raise BleLinkError(f"Write rejected: {exc}") from exc

    def close(self) -> None:
        if not self.is_connected:
            return
        try:
            self._runner.run(self._client.disconnect())
        except Exception:  # noqa: BLE001
            logger.exception("Error closing BLE session with %s", self.peer.address)


class BleLink:
    """Discovery and session establishment over bleak."""

    def __init__(self) -> None:
        if not ble_supported():
            raise WirelessCapabilityError("Bluetooth is not supported on this platform")
        self._runner = _LoopThread()

    def discover(self, name_prefix: str, timeout: float = 8.0) -> list[PeerInfo]:
        return self._runner.run(self._discover(name_prefix, timeout))

    async def _discover(self, name_prefix: str, timeout: float) -> list[PeerInfo]:
        from bleak import BleakScanner
        from bleak.exc import BleakError

        try:
            found = await BleakScanner.discover(timeout=timeout, return_adv=True)
        except (BleakError, OSError) as exc:
            raise BleLinkError(f"Bluetooth scan failed: {exc}") from exc

        peers = []
        for device, adv in found.values():
            name = adv.local_name or device.name or ""
            if name_prefix and not name.startswith(name_prefix):
                continue
            peers.append(PeerInfo(name=name, address=device.address, rssi=adv.rssi, device=device))
        peers.sort(key=lambda p: p.rssi if p.rssi is not None else -999, reverse=True)
        logger.info("BLE scan found %s peer(s) matching '%s'", len(peers), name_prefix)
        return peers

    def open_session(
        self,
        peer: PeerInfo,
        allowed_services: Iterable[str] = (),
        on_disconnect: Optional[Callable[[], None]] = None,
    ) -> BleSession:
        client = self._runner.run(self._connect(peer, on_disconnect))
        return BleSession(self._runner, client, peer, allowed_services)

    async def _connect(self, peer: PeerInfo, on_disconnect: Optional[Callable[[], None]]) -> Any:
        from bleak import BleakClient
        from bleak.exc import BleakError

        def _disconnected(_client: Any) -> None:
            logger.warning("BLE link to %s lost", peer.address)
            if on_disconnect is not None:
                on_disconnect()

        client = BleakClient(peer.device or peer.address, disconnected_callback=_disconnected)
        try:
            await client.connect()
        except (BleakError, OSError, asyncio.TimeoutError) as exc:
            raise BleLinkError(f"Could not connect to {peer.name or peer.address}: {exc}") from exc
        return client
