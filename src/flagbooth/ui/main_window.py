from __future__ import annotations

import logging
import threading
import traceback
import tkinter as tk
from tkinter import filedialog, messagebox, simpledialog, ttk
from typing import Any, Callable, Optional

from flagbooth.api.client import CampaignClient, CheckinResult, Progress
from flagbooth.app.config import AppConfig
from flagbooth.app.session import EditorSession
from flagbooth.app.state import AppState
from flagbooth.app.storage import LocalStore
from flagbooth.app.temp_paths import AppPaths
from flagbooth.core.locations import GROUP_STAGE, LOCATIONS, effective_location, location_from_url
from flagbooth.core.models import FORMATS
from flagbooth.ui.image_canvas import EditorCanvas

logger = logging.getLogger(__name__)

PHASE_LABELS = {
    "group_stage": "Group Stage",
    "knockout_r32": "Knockout: Round of 32",
    "knockout_r16": "Knockout: Round of 16",
    "semifinal": "Semifinal",
}

QUEUE_SYNC_INTERVAL_MS = 60_000


class FlagBoothApp(ttk.Frame):
    """Capture the Flag booth: pick a location and format, place a photo, save and check in."""

    def __init__(self, master: tk.Tk, state: AppState, config: AppConfig, initial_location: Optional[str] = None):
        super().__init__(master)
        self.master = master
        self.state = state
        self.app_config = config

        self.paths = AppPaths.default(app_name=config.app_name)
        self.client = CampaignClient(config, LocalStore(self.paths.store_file))
        self.session = EditorSession(
            config.frames_dir,
            state=state,
            dispatch=lambda fn: self.master.after(0, fn),
        )

        self._build_style()
        self._build_layout()
        self._bind_shortcuts()
        self.session.on_render = self.editor.set_image

        self._set_buttons_initial_state()
        self.set_status("Ready.")

        self._flushing = False
        self._load_config(initial_location)
        self.master.after(2000, self._periodic_flush)

    # ---------- UI construction ----------

    def _build_style(self) -> None:
        style = ttk.Style(self.master)
        if "clam" in style.theme_names():
            style.theme_use("clam")

    def _build_layout(self) -> None:
        self.pack(fill="both", expand=True)

        # Top toolbar
        toolbar = ttk.Frame(self, padding=(10, 8))
        toolbar.pack(side="top", fill="x")

        ttk.Label(toolbar, text="Location:").pack(side="left")
        self.var_location = tk.StringVar()
        self.combo_location = ttk.Combobox(toolbar, textvariable=self.var_location, state="readonly", width=30)
        self.combo_location.pack(side="left", padx=(4, 10))
        self.combo_location.bind("<<ComboboxSelected>>", lambda e: self.on_location_selected())

        ttk.Label(toolbar, text="Format:").pack(side="left")
        self.var_format = tk.StringVar()
        self.combo_format = ttk.Combobox(
            toolbar, textvariable=self.var_format, state="readonly", width=16,
            values=[f.label for f in FORMATS.values()],
        )
        self.combo_format.pack(side="left", padx=(4, 10))
        self.combo_format.bind("<<ComboboxSelected>>", lambda e: self.on_format_selected())

        ttk.Separator(toolbar, orient="vertical").pack(side="left", fill="y", padx=8)
        self.btn_upload = ttk.Button(toolbar, text="Upload photo", command=self.on_upload)
        self.btn_checkin = ttk.Button(toolbar, text="Save & Check in", command=self.on_save_and_checkin)
        self.btn_save = ttk.Button(toolbar, text="Save only", command=self.on_save_only)
        self.btn_reset = ttk.Button(toolbar, text="Reset", command=self.on_reset)

        self.btn_upload.pack(side="left")
        self.btn_checkin.pack(side="left", padx=(6, 0))
        self.btn_save.pack(side="left", padx=(6, 0))
        self.btn_reset.pack(side="left", padx=(12, 0))

        self.progress = ttk.Progressbar(toolbar, mode="indeterminate", length=120)
        self.progress.pack(side="right")

        self.phase_label = ttk.Label(self, text="", anchor="center")
        self.phase_label.pack(side="top", fill="x")

        # Main split area
        main = ttk.PanedWindow(self, orient="horizontal")
        main.pack(side="top", fill="both", expand=True, padx=10, pady=(0, 10))

        # Left pane: editor
        left = ttk.LabelFrame(main, text="Photo (drag to move, scroll to zoom)", padding=8)
        main.add(left, weight=3)
        self.editor = EditorCanvas(left, self.session.gestures)
        self.editor.pack(fill="both", expand=True)
        self.location_meta = ttk.Label(left, text="No location selected.")
        self.location_meta.pack(side="bottom", anchor="w", pady=(6, 0))

        # Right pane: progress + leaderboard
        right = ttk.Frame(main)
        main.add(right, weight=2)

        nb = ttk.Notebook(right)
        nb.pack(fill="both", expand=True)

        tab_progress = ttk.Frame(nb, padding=8)
        nb.add(tab_progress, text="Progress")
        tab_progress.columnconfigure(0, weight=1)
        tab_progress.rowconfigure(2, weight=1)

        self.progress_label = ttk.Label(tab_progress, text=f"0 / {len(LOCATIONS)} flags captured")
        self.progress_label.grid(row=0, column=0, sticky="w")
        self.progress_bar = ttk.Progressbar(tab_progress, mode="determinate", maximum=len(LOCATIONS))
        self.progress_bar.grid(row=1, column=0, sticky="ew", pady=(4, 8))

        self.tree = ttk.Treeview(tab_progress, columns=("location", "country", "status"), show="headings", height=16)
        self.tree.heading("location", text="Location")
        self.tree.heading("country", text="Paired with")
        self.tree.heading("status", text="")
        self.tree.column("location", width=200, stretch=True)
        self.tree.column("country", width=120, stretch=False)
        self.tree.column("status", width=30, stretch=False, anchor="center")
        self.tree.grid(row=2, column=0, sticky="nsew")

        btn_row = ttk.Frame(tab_progress)
        btn_row.grid(row=3, column=0, sticky="ew", pady=(8, 0))
        self.btn_refresh = ttk.Button(btn_row, text="Refresh", command=self.on_refresh_progress)
        self.btn_refresh.pack(side="left")
        self.btn_submit = ttk.Button(btn_row, text="Submit for review", command=self.on_submit)
        self.btn_submit.pack(side="left", padx=(6, 0))

        tab_leaders = ttk.Frame(nb, padding=8)
        nb.add(tab_leaders, text="Leaderboard")
        tab_leaders.columnconfigure(0, weight=1)
        tab_leaders.rowconfigure(0, weight=1)
        self.leader_tree = ttk.Treeview(tab_leaders, columns=("rank", "name", "count"), show="headings", height=16)
        self.leader_tree.heading("rank", text="#")
        self.leader_tree.heading("name", text="Explorer")
        self.leader_tree.heading("count", text="Locations")
        self.leader_tree.column("rank", width=40, stretch=False)
        self.leader_tree.column("count", width=90, stretch=False)
        self.leader_tree.grid(row=0, column=0, sticky="nsew")
        ttk.Button(tab_leaders, text="Refresh", command=self.on_refresh_leaderboard).grid(
            row=1, column=0, sticky="w", pady=(8, 0)
        )

        # Status bar
        status = ttk.Frame(self, padding=(10, 6))
        status.pack(side="bottom", fill="x")
        self.status_var = tk.StringVar(value="Ready.")
        ttk.Label(status, textvariable=self.status_var).pack(side="left")

    def _bind_shortcuts(self) -> None:
        self.master.bind_all("<Control-o>", lambda e: self.on_upload())
        self.master.bind_all("<Command-o>", lambda e: self.on_upload())

        self.master.bind_all("<Control-s>", lambda e: self.on_save_and_checkin())
        self.master.bind_all("<Command-s>", lambda e: self.on_save_and_checkin())

    # ---------- Utilities ----------

    def set_status(self, text: str) -> None:
        self.status_var.set(text)

    def set_busy(self, busy: bool, message: str | None = None) -> None:
        if message:
            self.set_status(message)
        if busy:
            self.progress.start(12)
        else:
            self.progress.stop()

    def _run_in_background(self, work: Callable[[], Any], done: Callable[[Any], None], message: str) -> None:
        """Run `work` on a worker thread, then `done(result)` back on the UI thread."""
        self.set_busy(True, message)

        def worker() -> None:
            result: Any = None
            err: Exception | None = None
            tb: str | None = None
            try:
                result = work()
            except Exception as e:
                err = e
                tb = traceback.format_exc()

            def finish_on_ui_thread() -> None:
                self.set_busy(False)
                if err is not None:
                    logger.error("Background task failed: %s", tb)
                    messagebox.showerror("Something went wrong", f"{err}")
                    self.set_status("Failed.")
                    return
                done(result)

            self.master.after(0, finish_on_ui_thread)

        threading.Thread(target=worker, daemon=True).start()

    def _set_buttons_initial_state(self) -> None:
        self.btn_upload.state(["disabled"])
        self.btn_checkin.state(["disabled"])
        self.btn_save.state(["disabled"])
        self.btn_submit.state(["disabled"])

    def _update_photo_buttons(self) -> None:
        ready = self.state.format_name is not None
        self.btn_upload.state(["!disabled"] if ready else ["disabled"])
        has_photo = ready and self.state.has_photo
        self.btn_checkin.state(["!disabled"] if has_photo else ["disabled"])
        self.btn_save.state(["!disabled"] if has_photo else ["disabled"])

    def _location_labels(self) -> list[str]:
        labels = []
        for slug in LOCATIONS:
            loc = effective_location(slug, self.state.overrides)
            labels.append(f"{loc.name}{'  [KO]' if loc.knockout else ''}")
        return labels

    def _slug_for_label_index(self, index: int) -> Optional[str]:
        slugs = list(LOCATIONS)
        return slugs[index] if 0 <= index < len(slugs) else None

    def _format_for_label(self, label: str) -> Optional[str]:
        for name, fmt in FORMATS.items():
            if fmt.label == label:
                return name
        return None

    # ---------- Config / phase ----------

    def _load_config(self, initial_location: Optional[str]) -> None:
        def done(cfg) -> None:
            self.state.phase = cfg.phase
            self.state.overrides = cfg.overrides
            if cfg.phase == GROUP_STAGE:
                self.phase_label.configure(text="")
            else:
                self.phase_label.configure(text=PHASE_LABELS.get(cfg.phase, cfg.phase))
            self.combo_location.configure(values=self._location_labels())
            if initial_location and initial_location in LOCATIONS:
                self.combo_location.current(list(LOCATIONS).index(initial_location))
                self.on_location_selected()
            self._render_progress(self.client.cached_progress())
            self.set_status("Ready. Pick a location and a format.")

        self._run_in_background(self.client.fetch_config, done, "Loading campaign…")

    def _periodic_flush(self) -> None:
        self._flush_queue()
        self.master.after(QUEUE_SYNC_INTERVAL_MS, self._periodic_flush)

    def _flush_queue(self) -> None:
        """Replay queued check-ins in the background; one replay at a time."""
        if self._flushing or not self.client.queued_checkins():
            return
        self._flushing = True

        def work() -> int:
            try:
                return self.client.flush_queue()
            finally:
                self._flushing = False

        self._run_in_background(
            work,
            lambda remaining: self.set_status(f"Synced queued check-ins ({remaining} still pending)."),
            "Syncing queued check-ins…",
        )

    # ---------- Selection ----------

    def on_location_selected(self) -> None:
        slug = self._slug_for_label_index(self.combo_location.current())
        if slug is None or not self.session.select_location(slug):
            return
        loc = self.state.location
        self.location_meta.configure(text=f"{loc.flag}  {loc.name}  ·  Paired with {loc.country}  ·  \"{loc.tagline}\"")
        if self.state.format_name:
            self.session.select_format(self.state.format_name)
        self.set_status(f"{loc.name} selected.")

    def on_format_selected(self) -> None:
        fmt = self._format_for_label(self.var_format.get())
        if fmt is None:
            return
        if self.state.location is None:
            messagebox.showwarning("No location", "Pick a location first.")
            self.var_format.set("")
            return
        self.session.select_format(fmt)
        self._update_photo_buttons()
        self.set_status("Upload a photo, then drag and scroll to position it.")

    # ---------- Photo ----------

    def on_upload(self) -> None:
        if self.state.format_name is None:
            return
        path = filedialog.askopenfilename(
            title="Select a photo",
            filetypes=[
                ("Image files", "*.jpg *.jpeg *.png *.bmp *.tif *.tiff *.webp *.heic"),
                ("All files", "*.*"),
            ],
        )
        if not path:
            return
        if not self.session.load_photo(path):
            self.set_status("That file is not an image; nothing loaded.")
            return
        self._update_photo_buttons()
        p = self.state.photo
        self.set_status(f"Loaded {p.width}x{p.height} photo. Drag to move, scroll to zoom.")

    # ---------- Save / check in ----------

    def _ask_visitor(self) -> Optional[tuple[str, str]]:
        cached = self.client.cached_visitor() or {}
        first = simpledialog.askstring("Check in", "First name:", initialvalue=cached.get("firstName", ""), parent=self)
        if not first or not first.strip():
            return None
        email = simpledialog.askstring("Check in", "Email:", initialvalue=cached.get("email", ""), parent=self)
        if not email or not email.strip():
            return None
        return email.strip(), first.strip()

    def _export(self) -> Optional[str]:
        try:
            path = self.session.export(self.paths.exports_dir)
        except (OSError, RuntimeError) as e:
            messagebox.showerror("Save failed", f"Could not save the photo.\n\n{e}")
            self.set_status("Save failed.")
            return None
        return str(path)

    def on_save_only(self) -> None:
        if not self.state.has_photo:
            return
        path = self._export()
        if path:
            self.set_status(f"Saved: {path}")

    def on_save_and_checkin(self) -> None:
        if not self.state.has_photo or self.state.format_name is None:
            return

        cached = self.client.cached_visitor()
        if cached and cached.get("email"):
            visitor = (cached["email"], cached.get("firstName", ""))
        else:
            visitor = self._ask_visitor()
            if visitor is None:
                self.set_status("Check-in cancelled.")
                return

        thumb = self.session.thumbnail()
        path = self._export()
        if path is None:
            return

        email, first_name = visitor
        slug = self.state.location_slug
        fmt = self.state.format_name
        phase = self.state.phase

        def work() -> CheckinResult:
            result = self.client.checkin(email, first_name, slug, fmt, phase)
            self.client.upload_photo(email, slug, thumb)
            return result

        self._run_in_background(work, lambda result: self._on_checked_in(result, path), "Saving and checking in…")

    def _on_checked_in(self, result: CheckinResult, path: str) -> None:
        progress = self.client.cached_progress()
        self._render_progress(progress)
        if not result.queued:
            # API reachable again
            self._flush_queue()
        note = " (offline: will sync later)" if result.queued else ""
        self.set_status(f"Flag captured! {progress.count}/{progress.total}{note}. Saved: {path}")
        if result.offer:
            code = result.offer.get("offer_code")
            messagebox.showinfo(
                "Venue offer",
                result.offer.get("offer_text", "") + (f"\n\nCode: {code}" if code else ""),
            )
        if progress.complete:
            messagebox.showinfo("All flags captured", "You captured every flag! Submit for review from the Progress tab.")

    # ---------- Progress / leaderboard ----------

    def _render_progress(self, progress: Progress) -> None:
        for iid in self.tree.get_children():
            self.tree.delete(iid)
        for slug in LOCATIONS:
            loc = effective_location(slug, self.state.overrides)
            mark = "✓" if slug in progress.visited else ""
            self.tree.insert("", "end", values=(loc.name, loc.country, mark))

        self.progress_label.configure(text=f"{progress.count} / {progress.total} flags captured")
        self.progress_bar.configure(maximum=progress.total, value=progress.count)
        self.btn_submit.state(["!disabled"] if progress.complete else ["disabled"])

    def on_refresh_progress(self) -> None:
        visitor = self.client.cached_visitor()
        if not visitor or not visitor.get("email"):
            self._render_progress(self.client.cached_progress())
            return
        self._run_in_background(
            lambda: self.client.fetch_progress(visitor["email"]),
            self._render_progress,
            "Loading progress…",
        )

    def on_submit(self) -> None:
        visitor = self.client.cached_visitor()
        if not visitor or not visitor.get("email"):
            answer = self._ask_visitor()
            if answer is None:
                return
            self.client.cache_visitor(*answer)
            visitor = self.client.cached_visitor()

        def done(result) -> None:
            if result.success:
                messagebox.showinfo("Submitted", "Thanks! Your captures are in for review.")
                self.set_status("Submitted for review.")
            else:
                messagebox.showerror("Submission failed", result.error or "Submission failed. Please try again.")
                self.set_status("Submission failed.")

        self._run_in_background(lambda: self.client.submit_for_review(visitor["email"]), done, "Submitting…")

    def on_refresh_leaderboard(self) -> None:
        def done(data) -> None:
            for iid in self.leader_tree.get_children():
                self.leader_tree.delete(iid)
            leaders = data.get("leaders") or []
            for i, leader in enumerate(leaders, start=1):
                self.leader_tree.insert("", "end", values=(i, leader.get("first_name", ""), leader.get("count", 0)))
            self.set_status("Leaderboard updated." if leaders else "Be the first explorer!")

        self._run_in_background(self.client.fetch_leaderboard, done, "Loading leaderboard…")

    # ---------- Reset ----------

    def on_reset(self) -> None:
        self.session.reset()
        self.paths.cleanup()
        self.editor.clear()
        self.var_format.set("")
        self._set_buttons_initial_state()
        self._render_progress(self.client.cached_progress())
        self.set_status("Reset complete.")


def run(location: Optional[str] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    if location and "://" in location:
        location = location_from_url(location)

    root = tk.Tk()
    root.title("Capture the Flag ATL")
    root.geometry("1200x800")
    root.minsize(900, 600)

    state = AppState()
    FlagBoothApp(root, state, AppConfig.from_env(), initial_location=location)

    root.mainloop()
