"""Tkinter dialog for app settings."""

from __future__ import annotations

import tkinter as tk
from tkinter import messagebox, ttk

from study_notes.core.models import AppSettings


class SettingsDialog(tk.Toplevel):
    """Modal settings editor."""

    def __init__(self, parent: tk.Misc, current: AppSettings, on_save: callable):
        super().__init__(parent)
        self.title("Settings")
        self.resizable(False, False)
        self.transient(parent)
        self.grab_set()

        self._current = current
        self._on_save = on_save

        self.entries: dict[str, ttk.Entry] = {}
        fields = [
            ("device_base_url", "Device base URL"),
            ("sync_endpoint", "Notes endpoint"),
            ("status_endpoint", "Status endpoint"),
            ("request_timeout_seconds", "HTTP timeout (s)"),
            ("ble_name_prefix", "Bluetooth name prefix"),
            ("ble_service_uuid", "Bluetooth service UUID(s)"),
            ("ble_characteristic_uuid", "Bluetooth characteristic UUID"),
            ("ble_scan_seconds", "Bluetooth scan (s)"),
            ("default_subject", "Default subject"),
            ("default_priority", "Default priority"),
        ]

        for idx, (key, label) in enumerate(fields):
            ttk.Label(self, text=label).grid(row=idx, column=0, sticky="w", padx=6, pady=4)
            entry = ttk.Entry(self, width=50)
            entry.insert(0, str(getattr(current, key, "") or ""))
            entry.grid(row=idx, column=1, sticky="ew", padx=6, pady=4)
            self.entries[key] = entry

        ttk.Button(self, text="Save", command=self._save).grid(
            row=len(fields), column=1, sticky="e", padx=6, pady=8
        )

    def _int_value(self, key: str, fallback: int) -> int:
        raw = self.entries[key].get().strip()
        try:
            value = int(raw)
        except ValueError:
            return fallback
        return value if value > 0 else fallback

    def _save(self) -> None:
        base_url = self.entries["device_base_url"].get().strip()
        if not base_url.startswith(("http://", "https://")):
            messagebox.showwarning("Validation", "The device URL must start with http:// or https://.", parent=self)
            self.entries["device_base_url"].focus_set()
            return

        new_settings = AppSettings(
            device_base_url=base_url,
            sync_endpoint=self.entries["sync_endpoint"].get().strip() or "/api/notes",
            status_endpoint=self.entries["status_endpoint"].get().strip() or "/api/status",
            request_timeout_seconds=self._int_value("request_timeout_seconds", self._current.request_timeout_seconds),
            ble_name_prefix=self.entries["ble_name_prefix"].get().strip(),
            ble_service_uuid=self.entries["ble_service_uuid"].get().strip(),
            ble_characteristic_uuid=self.entries["ble_characteristic_uuid"].get().strip(),
            ble_scan_seconds=self._int_value("ble_scan_seconds", self._current.ble_scan_seconds),
            default_subject=self.entries["default_subject"].get().strip() or "General",
            default_priority=self.entries["default_priority"].get().strip() or "normal",
        )
        self._on_save(new_settings)
        self.destroy()
