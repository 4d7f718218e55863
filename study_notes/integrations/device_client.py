"""Minimal HTTP client for the study reminder device using requests."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from study_notes.core.export import notes_document
from study_notes.core.models import Note


class NetworkSyncError(RuntimeError):
    """Domain error for device HTTP failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DeviceClient:
    """HTTP client for the device REST endpoints."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def push_notes(self, url: str, notes: Iterable[Note]) -> int:
        """POST the whole collection as one payload and return the HTTP status."""
        import requests

        try:
            resp = requests.post(
                url,
                headers=self._headers,
                json=notes_document(notes),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkSyncError(f"Network error contacting device: {exc}") from None

        if not 200 <= resp.status_code < 300:
            raise NetworkSyncError(f"HTTP {resp.status_code}", status_code=resp.status_code)

        return resp.status_code

    def get_status(self, url: str) -> dict[str, Any]:
        import requests

        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkSyncError(f"Network error reading device status: {exc}") from None

        if not 200 <= resp.status_code < 300:
            raise NetworkSyncError(f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            raise NetworkSyncError("Device returned a status that is not JSON") from None
        if not isinstance(data, dict):
            raise NetworkSyncError("Device returned an unexpected status document")
        return data
