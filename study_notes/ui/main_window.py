"""Main Tkinter window."""

from __future__ import annotations

import logging
import queue
import tkinter as tk
from datetime import datetime
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Optional, Sequence

from tkcalendar import DateEntry

from study_notes.core.export import EXPORT_FILENAME
from study_notes.core.models import AppSettings, LinkState, LinkStatus, NoteCreateRequest, SyncState, SyncStatus
from study_notes.core.service import StudyNotesService
from study_notes.core.sync import LinkError
from study_notes.integrations.ble_link import PeerInfo
from study_notes.integrations.device_client import NetworkSyncError
from study_notes.ui.settings_dialog import SettingsDialog

logger = logging.getLogger(__name__)


class MainWindow(ttk.Frame):
    """Note form, note list and transport status bar."""

    def __init__(self, master: tk.Tk, service: StudyNotesService):
        super().__init__(master, padding=10)
        self.master = master
        self.service = service
        self.msg_queue: queue.Queue[tuple[str, object]] = queue.Queue()
        self.storage_var = tk.StringVar(value="Local storage OK")
        self.wifi_var = tk.StringVar(value="Wi-Fi: idle")
        self.bt_var = tk.StringVar(value="Bluetooth: disconnected")
        self.sync_var = tk.StringVar(value="Not synced with device")
        self.pack(fill="both", expand=True)

        self._build_form()
        self._build_list()
        self._build_status_bar()
        self._load_label_values()

        # listeners fire on worker threads; the Tk thread drains msg_queue
        self.service.network.status.subscribe(lambda s: self.msg_queue.put(("network_status", s)))
        self.service.wireless.status.subscribe(lambda s: self.msg_queue.put(("wireless_status", s)))

        self.refresh_notes()
        self.after(150, self._poll_queue)

    def _build_form(self) -> None:
        form = ttk.LabelFrame(self, text="New note")
        form.pack(fill="x", pady=5)

        self.subject_var = tk.StringVar()
        self.priority_var = tk.StringVar()
        self.has_due_var = tk.BooleanVar(value=False)
        self.due_time_var = tk.StringVar()

        ttk.Label(form, text="Subject").grid(row=0, column=0, padx=4, pady=4, sticky="e")
        self.subject_combo = ttk.Combobox(form, textvariable=self.subject_var, width=18)
        self.subject_combo.grid(row=0, column=1, padx=4, pady=4)

        ttk.Label(form, text="Priority").grid(row=0, column=2, padx=4, pady=4, sticky="e")
        self.priority_combo = ttk.Combobox(form, textvariable=self.priority_var, state="readonly", width=12)
        self.priority_combo.grid(row=0, column=3, padx=4, pady=4)

        ttk.Checkbutton(form, text="Due date", variable=self.has_due_var).grid(row=0, column=4, padx=4, pady=4)
        self.date_entry = DateEntry(form, width=12, date_pattern="yyyy-mm-dd")
        self.date_entry.grid(row=0, column=5, padx=4, pady=4)

        ttk.Label(form, text="Time (HH:MM)").grid(row=0, column=6, padx=4, pady=4, sticky="e")
        ttk.Entry(form, textvariable=self.due_time_var, width=8).grid(row=0, column=7, padx=4, pady=4)

        self.text_widget = tk.Text(form, height=6, width=100)
        self.text_widget.grid(row=1, column=0, columnspan=8, sticky="ew", padx=4, pady=4)

        actions = ttk.Frame(form)
        actions.grid(row=2, column=0, columnspan=8, sticky="e", pady=6)
        ttk.Button(actions, text="Settings", command=self._open_settings).pack(side="left", padx=3)
        ttk.Button(actions, text="Save note", command=self._save_note).pack(side="left", padx=3)
        ttk.Button(actions, text="Clear form", command=self._clear_form).pack(side="left", padx=3)
        ttk.Button(actions, text="Export JSON", command=self._export_json).pack(side="left", padx=3)
        ttk.Button(actions, text="Sync via Wi-Fi", command=self._sync_wifi).pack(side="left", padx=3)
        ttk.Button(actions, text="Device status", command=self._device_status).pack(side="left", padx=3)
        ttk.Button(actions, text="Connect Bluetooth", command=self._connect_bluetooth).pack(side="left", padx=3)
        ttk.Button(actions, text="Send count", command=self._send_count).pack(side="left", padx=3)

    def _build_list(self) -> None:
        frame = ttk.LabelFrame(self, text="Notes")
        frame.pack(fill="both", expand=True, pady=8)

        columns = ("subject", "priority", "text", "created", "due")
        self.tree = ttk.Treeview(frame, columns=columns, show="headings", height=14)
        for c in columns:
            self.tree.heading(c, text=c.capitalize())
        self.tree.column("subject", width=110)
        self.tree.column("priority", width=80)
        self.tree.column("text", width=420)
        self.tree.column("created", width=110)
        self.tree.column("due", width=170)
        self.tree.pack(fill="both", expand=True, padx=4, pady=4)

        toolbar = ttk.Frame(frame)
        toolbar.pack(fill="x", padx=4, pady=4)
        ttk.Button(toolbar, text="Delete selected", command=self._delete_selected).pack(side="left", padx=3)
        ttk.Button(toolbar, text="Clear all notes", command=self._clear_all).pack(side="right", padx=3)

    def _build_status_bar(self) -> None:
        bar = ttk.Frame(self)
        bar.pack(fill="x", pady=(2, 0))
        for var in (self.storage_var, self.wifi_var, self.bt_var, self.sync_var):
            ttk.Label(bar, textvariable=var, anchor="w").pack(side="left", padx=8)

    def _load_label_values(self) -> None:
        settings = self.service.get_settings()
        subjects = self.service.get_labels("Subject")
        priorities = self.service.get_labels("Priority")
        self.subject_combo.configure(values=subjects)
        self.priority_combo.configure(values=priorities)
        self._apply_defaults(settings)

    def _apply_defaults(self, settings: AppSettings) -> None:
        self.subject_var.set(settings.default_subject)
        self.priority_var.set(settings.default_priority)

    def _open_settings(self) -> None:
        current = self.service.get_settings()

        def on_save(new_settings: AppSettings) -> None:
            self.service.save_settings(new_settings)
            self._apply_defaults(new_settings)

        SettingsDialog(self.master, current, on_save)

    def _save_note(self) -> None:
        due_time = self.due_time_var.get().strip()
        req = NoteCreateRequest(
            text=self.text_widget.get("1.0", "end"),
            subject=self.subject_var.get(),
            priority=self.priority_var.get(),
            due_date=self.date_entry.get_date().isoformat() if self.has_due_var.get() else None,
            due_time=due_time or None,
        )
        note, msg = self.service.create_note(req)
        if note is None:
            messagebox.showwarning("Validation", msg)
            return
        self.text_widget.delete("1.0", "end")
        self.refresh_notes()
        self._flash_sync_status(msg)

    def _clear_form(self) -> None:
        # subject and priority stay as they are for faster input in class
        self.text_widget.delete("1.0", "end")

    def _flash_sync_status(self, message: str) -> None:
        self.sync_var.set(message)

        def reset() -> None:
            if not self.service.list_canonical():
                self.sync_var.set("Not synced with device")

        self.after(2500, reset)

    def _export_json(self) -> None:
        target = filedialog.asksaveasfilename(
            parent=self.master,
            initialfile=EXPORT_FILENAME,
            defaultextension=".json",
            filetypes=[("JSON", "*.json")],
        )
        if not target:
            return
        try:
            self.service.export_to(Path(target))
        except OSError as exc:
            logger.exception("Export failed")
            messagebox.showerror("Export", f"Could not write file: {exc}")

    def _sync_wifi(self) -> None:
        self.service.start_network_sync()

    def _device_status(self) -> None:
        try:
            status = self.service.check_device_status()
        except NetworkSyncError as exc:
            messagebox.showerror("Device status", str(exc))
            return
        details = "\n".join(f"{k}: {v}" for k, v in status.items()) or "(empty)"
        messagebox.showinfo("Device status", details)

    def _connect_bluetooth(self) -> None:
        self.service.start_wireless_connect(self._choose_peer)

    def _choose_peer(self, peers: Sequence[PeerInfo]) -> Optional[PeerInfo]:
        """Runs on the worker thread; the question itself is asked on the Tk thread."""
        reply: queue.Queue[Optional[PeerInfo]] = queue.Queue(maxsize=1)
        self.msg_queue.put(("choose_peer", (peers, reply)))
        return reply.get()

    def _ask_peer(self, peers: Sequence[PeerInfo]) -> Optional[PeerInfo]:
        for peer in peers:
            if messagebox.askyesno("Bluetooth", f"Connect to {peer.name or 'device'} ({peer.address})?"):
                return peer
        return None

    def _send_count(self) -> None:
        try:
            self.service.send_note_count()
        except LinkError as exc:
            messagebox.showwarning("Bluetooth", str(exc))
            return
        self.sync_var.set("Note count sent over Bluetooth")

    def _delete_selected(self) -> None:
        selection = self.tree.selection()
        if not selection:
            messagebox.showwarning("Attention", "Select a note.")
            return
        for note_id in selection:
            self.service.delete_note(note_id)
        self.refresh_notes()

    def _clear_all(self) -> None:
        confirmed = messagebox.askyesno("Clear all", "Delete all notes? This cannot be undone.")
        if self.service.clear_all(confirmed):
            self.refresh_notes()

    def _poll_queue(self) -> None:
        while True:
            try:
                kind, payload = self.msg_queue.get_nowait()
            except queue.Empty:
                break
            if kind == "network_status":
                self._show_network_status(payload)
            elif kind == "wireless_status":
                self._show_wireless_status(payload)
            elif kind == "choose_peer":
                peers, reply = payload
                reply.put(self._ask_peer(peers))
        self._drain_service_events()
        self.after(150, self._poll_queue)

    def _drain_service_events(self) -> None:
        while True:
            try:
                kind, result = self.service.events.get_nowait()
            except queue.Empty:
                return
            if isinstance(result, Exception):
                messagebox.showerror("Error", f"{kind}: {result}")
            elif isinstance(result, LinkStatus) and result.detail == "not supported":
                messagebox.showwarning("Bluetooth", "Bluetooth is not supported on this device.")

    def _show_network_status(self, status: SyncStatus) -> None:
        labels = {
            SyncState.IDLE: "Wi-Fi: idle",
            SyncState.IN_PROGRESS: "Wi-Fi: syncing...",
            SyncState.OK: "Wi-Fi: synced with device",
            SyncState.ERROR: "Wi-Fi: error contacting device",
        }
        self.wifi_var.set(labels[status.state])
        if status.detail:
            self.sync_var.set(status.detail)

    def _show_wireless_status(self, status: LinkStatus) -> None:
        if status.state == LinkState.CONNECTED:
            self.bt_var.set(f"Bluetooth: connected to {status.detail}")
        elif status.state == LinkState.FAILED:
            self.bt_var.set(f"Bluetooth: connection failed ({status.detail})")
        elif status.state == LinkState.CONNECTING:
            self.bt_var.set("Bluetooth: connecting...")
        else:
            self.bt_var.set(f"Bluetooth: disconnected {status.detail}".rstrip())

    def refresh_notes(self) -> None:
        for row in self.tree.get_children():
            self.tree.delete(row)
        for note in self.service.list_notes():
            created = datetime.fromtimestamp(note.created_at / 1000).strftime("%d/%m %H:%M")
            self.tree.insert(
                "",
                "end",
                iid=note.id,
                values=(note.subject, note.priority, note.text, created, note.due_label()),
            )
        last_error = self.service.store.storage.last_error
        self.storage_var.set(last_error if last_error else "Local storage OK")

    def shutdown(self) -> None:
        try:
            self.service.disconnect_wireless()
        except Exception:  # noqa: BLE001
            logger.exception("Error closing Bluetooth session on exit")
