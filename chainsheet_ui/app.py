from __future__ import annotations

import logging
import queue
import tkinter as tk
from concurrent.futures import Future, ThreadPoolExecutor
from tkinter import messagebox
from typing import Any, Callable, Tuple

from chainsheet import ChainExecutor, ConfigurationError, GenerationClient, ProviderType, Settings, Sheet, SheetError
from chainsheet.executor import Generator
from chainsheet_ui.grid import SheetGrid
from chainsheet_ui.options import SettingsWindow

logger = logging.getLogger(__name__)

POLL_MS = 50
DEFAULT_WORKERS = 4


class App(tk.Tk):
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        workers: int = DEFAULT_WORKERS,
        client: Generator | None = None,
        sheet: Sheet | None = None,
    ) -> None:
        super().__init__()
        self.title("ChainSheet")
        self.geometry("1200x720")
        self.rowconfigure(1, weight=1)
        self.columnconfigure(0, weight=1)

        self.sheet = sheet or Sheet.default()
        self.executor = ChainExecutor(self.sheet, client or GenerationClient(), settings)
        self._pool = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="chain")
        # (row_id, column_id) pairs posted from worker threads, drained on the Tk thread
        self._events: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        self._settings_window: SettingsWindow | None = None
        self._provider_var = tk.StringVar()
        self._chain_var = tk.StringVar()

        self._build_menu()
        self._build_toolbar()
        self._build_body()
        self._build_statusbar()

        self.sheet.subscribe(self._on_cell_changed)
        self._render()
        self._refresh_status()
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self.after(POLL_MS, self._drain_events)

    # ---- UI ----
    def _build_menu(self):
        m = tk.Menu(self)
        sysm = tk.Menu(m, tearoff=False)
        sysm.add_command(label="Settings...", command=self._open_settings)
        sysm.add_separator()
        sysm.add_command(label="Quit", command=self._on_close)
        m.add_cascade(label="System", menu=sysm)

        sheetm = tk.Menu(m, tearoff=False)
        sheetm.add_command(label="Add Row", command=self._add_row)
        sheetm.add_command(label="Add Column", command=self._add_column)
        m.add_cascade(label="Sheet", menu=sheetm)

        self.config(menu=m)

    def _build_toolbar(self):
        bar = tk.Frame(self, bg="#2b2d31")
        bar.grid(row=0, column=0, sticky="ew")
        for name, cmd in [("Add Row", self._add_row), ("Add Column", self._add_column), ("Settings", self._open_settings)]:
            tk.Button(bar, text=name, command=cmd).pack(side=tk.LEFT, padx=4, pady=4)
        tk.Label(bar, textvariable=self._provider_var, fg="#e6e6e6", bg="#2b2d31").pack(side=tk.RIGHT, padx=8)

    def _build_body(self):
        self.grid_view = SheetGrid(self)
        self.grid_view.grid(row=1, column=0, sticky="nsew")

        self.grid_view.on_cell_edit = self.executor.edit
        self.grid_view.on_cell_commit = self._commit
        self.grid_view.on_regenerate = self._regenerate
        self.grid_view.on_remove_row = self._remove_row
        self.grid_view.on_remove_column = self._remove_column
        self.grid_view.on_add_column = self._add_column
        self.grid_view.on_header_change = self._change_header
        self.grid_view.on_source_change = self._change_source

    def _build_statusbar(self):
        bar = tk.Frame(self, bg="#1e1f22")
        bar.grid(row=2, column=0, sticky="ew")
        tk.Label(bar, textvariable=self._chain_var, fg="#9ca3af", bg="#1e1f22", anchor="w").pack(
            fill=tk.X, padx=8, pady=2
        )

    def _render(self) -> None:
        headers, rows = self.sheet.snapshot()
        self.grid_view.render(headers, rows)
        self._refresh_status()

    def _refresh_status(self) -> None:
        settings = self.executor.settings
        model = settings.local_model_name if settings.provider is ProviderType.LOCAL else settings.hosted_model_name
        self._provider_var.set(f"Using {settings.provider_label} ({model})")
        chain = " → ".join(h.label for h in self.sheet.graph.chain())
        self._chain_var.set(f"Chain: {chain}" if chain else "")

    # ---- background work ----
    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._pool.submit(fn, *args)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Chain task failed", exc_info=exc)

    def _on_cell_changed(self, row_id: str, column_id: str) -> None:
        self._events.put((row_id, column_id))

    def _drain_events(self) -> None:
        try:
            while True:
                row_id, column_id = self._events.get_nowait()
                index = self.sheet.graph.index_of(column_id)
                cell = self.sheet.cell(row_id, index) if index != -1 else None
                if cell is not None:
                    self.grid_view.refresh_cell(row_id, column_id, cell)
        except queue.Empty:
            pass
        self.after(POLL_MS, self._drain_events)

    # ---- actions ----
    def _commit(self, row_id: str, column_id: str, value: str) -> None:
        self._submit(self.executor.commit_column, row_id, column_id, value)

    def _regenerate(self, row_id: str, column_id: str) -> None:
        self._submit(self.executor.regenerate_column, row_id, column_id)

    def _add_row(self) -> None:
        self.sheet.add_row()
        self._render()

    def _remove_row(self, row_id: str) -> None:
        self.sheet.remove_row(row_id)
        self._render()

    def _add_column(self) -> None:
        self.sheet.add_column()
        self._render()

    def _remove_column(self, index: int) -> None:
        try:
            self.sheet.remove_column(index)
        except ConfigurationError as e:
            messagebox.showerror("Remove column", str(e))
            return
        self._render()

    def _change_header(self, index: int, field: str, value: str) -> None:
        if field == "label":
            self.sheet.update_column(index, label=value)
            # labels feed the source menus; rebuild once focus handling is done
            self.after_idle(self._render)
        elif field == "prompt":
            self.sheet.update_column(index, prompt=value)

    def _change_source(self, index: int, source_id: str) -> None:
        try:
            self.sheet.set_source(index, source_id)
        except SheetError as e:
            messagebox.showerror("Invalid source", str(e))
        self._render()

    def _open_settings(self) -> None:
        existing = self._settings_window
        if existing is not None and existing.winfo_exists():
            existing.lift()
            existing.focus_force()
            return

        def on_close() -> None:
            self._settings_window = None

        self._settings_window = SettingsWindow(self, self.executor.settings, self.apply_settings, on_close)

    def apply_settings(self, settings: Settings) -> None:
        self.executor.update_settings(settings)
        logger.info("Settings saved: provider=%s", settings.provider.value)
        self._refresh_status()

    def _on_close(self) -> None:
        self.sheet.unsubscribe(self._on_cell_changed)
        self._pool.shutdown(wait=False, cancel_futures=True)
        self.destroy()


def launch(settings: Settings | None = None, workers: int = DEFAULT_WORKERS) -> None:
    app = App(settings, workers=workers)
    app.mainloop()
