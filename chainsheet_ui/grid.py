from __future__ import annotations

import tkinter as tk
from dataclasses import dataclass
from tkinter import font as tkfont
from typing import Callable, Dict, List, Tuple

from chainsheet.models import Cell, CellStatus, ColumnHeader, Row

BG_COLOR = "#1e1f22"
HEADER_BG = "#2b2d31"
CELL_BG = "#3b3d44"
FG_COLOR = "#f5f5f5"
LABEL_COLOR = "#e6e6e6"
MUTED_COLOR = "#9ca3af"

# status -> (badge text, badge colour, cell background)
STATUS_STYLE: Dict[CellStatus, Tuple[str, str, str]] = {
    CellStatus.IDLE: ("", MUTED_COLOR, CELL_BG),
    CellStatus.PENDING: ("…", "#3b82f6", "#1e3a5f"),
    CellStatus.SUCCEEDED: ("✓", "#22c55e", CELL_BG),
    CellStatus.FAILED: ("!", "#ef4444", "#5f1e1e"),
}

CELL_WIDTH = 30
CELL_HEIGHT = 5
PROMPT_HEIGHT = 3
SOURCE_PLACEHOLDER = "Select Source"


class Tooltip:
    """Hover popup used to show a failed cell's error message."""

    def __init__(self, widget: tk.Widget, text: str = "") -> None:
        self.widget = widget
        self.text = text
        self._tip: tk.Toplevel | None = None
        widget.bind("<Enter>", self._show, add="+")
        widget.bind("<Leave>", self._hide, add="+")

    def _show(self, _event=None) -> None:
        if not self.text or self._tip is not None:
            return
        x = self.widget.winfo_rootx() + 16
        y = self.widget.winfo_rooty() + self.widget.winfo_height() + 4
        tip = tk.Toplevel(self.widget)
        tip.wm_overrideredirect(True)
        tip.wm_geometry(f"+{x}+{y}")
        tk.Label(
            tip,
            text=self.text,
            justify=tk.LEFT,
            wraplength=320,
            bg="#fef2f2",
            fg="#991b1b",
            relief=tk.SOLID,
            borderwidth=1,
            padx=6,
            pady=4,
        ).pack()
        self._tip = tip

    def _hide(self, _event=None) -> None:
        if self._tip is not None:
            try:
                self._tip.destroy()
            except tk.TclError:
                pass
            self._tip = None


@dataclass
class CellWidget:
    row_id: str
    column_id: str
    frame: tk.Frame
    text: tk.Text
    badge: tk.Label
    tooltip: Tooltip
    value: str = ""
    dirty: bool = False


class SheetGrid(tk.Frame):
    """Scrollable grid: one header per column, one text cell per row/column."""

    def __init__(self, master: tk.Misc, **kw):
        super().__init__(master, bg=BG_COLOR, **kw)
        self.headers: List[ColumnHeader] = []
        self.cells: Dict[Tuple[str, str], CellWidget] = {}

        self.on_cell_edit: Callable[[str, int, str], None] | None = None
        self.on_cell_commit: Callable[[str, str, str], None] | None = None
        self.on_regenerate: Callable[[str, str], None] | None = None
        self.on_remove_row: Callable[[str], None] | None = None
        self.on_remove_column: Callable[[int], None] | None = None
        self.on_add_column: Callable[[], None] | None = None
        self.on_header_change: Callable[[int, str, str], None] | None = None
        self.on_source_change: Callable[[int, str], None] | None = None

        self._bold = tkfont.nametofont("TkDefaultFont").copy()
        self._bold.configure(weight="bold")

        self.canvas = tk.Canvas(self, bg=BG_COLOR, highlightthickness=0)
        vbar = tk.Scrollbar(self, orient=tk.VERTICAL, command=self.canvas.yview)
        hbar = tk.Scrollbar(self, orient=tk.HORIZONTAL, command=self.canvas.xview)
        self.canvas.configure(yscrollcommand=vbar.set, xscrollcommand=hbar.set)
        self.canvas.grid(row=0, column=0, sticky="nsew")
        vbar.grid(row=0, column=1, sticky="ns")
        hbar.grid(row=1, column=0, sticky="ew")
        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)

        self.inner = tk.Frame(self.canvas, bg=BG_COLOR)
        self.canvas.create_window((0, 0), window=self.inner, anchor="nw")
        self.inner.bind("<Configure>", lambda _e: self.canvas.configure(scrollregion=self.canvas.bbox("all")))

    # ---- lookups ----
    def column_index(self, column_id: str) -> int:
        for idx, header in enumerate(self.headers):
            if header.id == column_id:
                return idx
        return -1

    def _source_choices(self, header: ColumnHeader) -> List[Tuple[str, str]]:
        others = [h for h in self.headers if h.id != header.id]
        labels = [h.label for h in others]
        choices: List[Tuple[str, str]] = []
        for h in others:
            display = h.label if labels.count(h.label) == 1 else f"{h.label} [{h.id}]"
            choices.append((display, h.id))
        return choices

    # ---- rendering ----
    def render(self, headers: List[ColumnHeader], rows: List[Row]) -> None:
        self.flush_pending()
        for child in self.inner.winfo_children():
            child.destroy()
        self.cells.clear()
        self.headers = list(headers)

        tk.Label(self.inner, text="#", bg=BG_COLOR, fg=MUTED_COLOR).grid(row=0, column=0, sticky="nsew")
        for idx, header in enumerate(self.headers):
            self._build_header(idx, header).grid(row=0, column=idx + 1, sticky="nsew", padx=2, pady=2)
        tk.Button(self.inner, text="+", width=3, command=self._add_column).grid(
            row=0, column=len(self.headers) + 1, sticky="n", padx=4, pady=4
        )

        for r, row in enumerate(rows, start=1):
            self._build_row_controls(r, row).grid(row=r, column=0, sticky="n", padx=2, pady=2)
            for idx, cell in enumerate(row.cells):
                if idx >= len(self.headers):
                    break
                widget = self._build_cell(row.id, self.headers[idx], cell)
                widget.frame.grid(row=r, column=idx + 1, sticky="nsew", padx=2, pady=2)
                self.cells[(row.id, self.headers[idx].id)] = widget

    def _build_header(self, index: int, header: ColumnHeader) -> tk.Frame:
        frame = tk.Frame(self.inner, bg=HEADER_BG, padx=6, pady=6)
        top = tk.Frame(frame, bg=HEADER_BG)
        top.pack(fill=tk.X)

        if header.is_input:
            tk.Label(top, text=header.label, font=self._bold, bg=HEADER_BG, fg=LABEL_COLOR, anchor="w").pack(
                side=tk.LEFT, fill=tk.X, expand=True
            )
            tk.Label(
                frame,
                text="Start typing in the rows below to trigger the chain.",
                bg=HEADER_BG,
                fg=MUTED_COLOR,
                wraplength=220,
                justify=tk.LEFT,
            ).pack(fill=tk.X, pady=(6, 0))
            return frame

        label_var = tk.StringVar(value=header.label)
        entry = tk.Entry(top, textvariable=label_var, font=self._bold, bg=CELL_BG, fg=FG_COLOR, insertbackground=FG_COLOR)
        entry.pack(side=tk.LEFT, fill=tk.X, expand=True)

        def commit_label(_event=None) -> None:
            value = label_var.get().strip()
            if value and value != header.label and self.on_header_change:
                self.on_header_change(index, "label", value)

        entry.bind("<FocusOut>", commit_label)
        entry.bind("<Return>", commit_label)
        tk.Button(top, text="✕", command=lambda: self._remove_column(index)).pack(side=tk.RIGHT, padx=(4, 0))

        choices = self._source_choices(header)
        by_display = {display: cid for display, cid in choices}
        current = next((display for display, cid in choices if cid == header.source_id), SOURCE_PLACEHOLDER)
        source_var = tk.StringVar(value=current)

        def pick_source(selection: str) -> None:
            cid = by_display.get(selection)
            if cid and cid != header.source_id and self.on_source_change:
                self.on_source_change(index, cid)

        src_row = tk.Frame(frame, bg=HEADER_BG)
        src_row.pack(fill=tk.X, pady=(6, 0))
        tk.Label(src_row, text="Source", bg=HEADER_BG, fg=MUTED_COLOR).pack(side=tk.LEFT)
        menu = tk.OptionMenu(src_row, source_var, *([d for d, _ in choices] or [SOURCE_PLACEHOLDER]), command=pick_source)
        menu.configure(bg=CELL_BG, fg=FG_COLOR, activebackground=CELL_BG, activeforeground=FG_COLOR, highlightthickness=0)
        menu["menu"].configure(bg=CELL_BG, fg=FG_COLOR, activebackground=HEADER_BG, activeforeground=FG_COLOR)
        menu.pack(side=tk.LEFT, fill=tk.X, expand=True, padx=(6, 0))

        prompt = tk.Text(
            frame, wrap=tk.WORD, height=PROMPT_HEIGHT, width=CELL_WIDTH, bg=CELL_BG, fg=FG_COLOR, insertbackground=FG_COLOR
        )
        prompt.insert("1.0", header.prompt)
        prompt.pack(fill=tk.X, pady=(6, 0))

        def commit_prompt(_event=None) -> None:
            value = prompt.get("1.0", "end-1c")
            if value != header.prompt and self.on_header_change:
                self.on_header_change(index, "prompt", value)

        prompt.bind("<FocusOut>", commit_prompt)
        return frame

    def _build_row_controls(self, number: int, row: Row) -> tk.Frame:
        frame = tk.Frame(self.inner, bg=BG_COLOR)
        tk.Label(frame, text=str(number), bg=BG_COLOR, fg=MUTED_COLOR).pack()
        tk.Button(frame, text="✕", command=lambda: self._remove_row(row.id)).pack(pady=(4, 0))
        return frame

    def _build_cell(self, row_id: str, header: ColumnHeader, cell: Cell) -> CellWidget:
        frame = tk.Frame(self.inner, bg=CELL_BG)
        bar = tk.Frame(frame, bg=CELL_BG)
        bar.pack(fill=tk.X)
        badge = tk.Label(bar, text="", bg=CELL_BG, fg=MUTED_COLOR, width=2)
        badge.pack(side=tk.LEFT)
        if not header.is_input:
            tk.Button(bar, text="↻", command=lambda: self._regenerate(row_id, header.id)).pack(side=tk.RIGHT)

        text = tk.Text(frame, wrap=tk.WORD, height=CELL_HEIGHT, width=CELL_WIDTH, bg=CELL_BG, fg=FG_COLOR, insertbackground=FG_COLOR)
        text.insert("1.0", cell.value)
        text.pack(fill=tk.BOTH, expand=True)

        widget = CellWidget(row_id, header.id, frame, text, badge, Tooltip(badge), value=cell.value)
        text.bind("<KeyRelease>", lambda _e: self._on_key(widget))
        text.bind("<FocusOut>", lambda _e: self._on_blur(widget))
        # Ctrl+Enter commits by moving focus away, same as clicking elsewhere.
        text.bind("<Control-Return>", lambda _e: (self.canvas.focus_set(), "break")[1])
        self._apply_status(widget, cell)
        return widget

    def _apply_status(self, widget: CellWidget, cell: Cell) -> None:
        symbol, colour, background = STATUS_STYLE[cell.status]
        widget.badge.configure(text=symbol, fg=colour)
        widget.text.configure(bg=background)
        if cell.status is CellStatus.FAILED:
            widget.tooltip.text = cell.error or "An error occurred"
        else:
            widget.tooltip.text = ""

    def refresh_cell(self, row_id: str, column_id: str, cell: Cell) -> None:
        widget = self.cells.get((row_id, column_id))
        if widget is None:
            return
        current = widget.text.get("1.0", "end-1c")
        if current != cell.value and self.focus_get() is not widget.text:
            widget.text.delete("1.0", tk.END)
            widget.text.insert("1.0", cell.value)
            widget.value = cell.value
        self._apply_status(widget, cell)

    # ---- events ----
    def _on_key(self, widget: CellWidget) -> None:
        index = self.column_index(widget.column_id)
        if index == -1:
            return
        value = widget.text.get("1.0", "end-1c")
        if value == widget.value:
            return
        widget.value = value
        widget.dirty = True
        if self.on_cell_edit:
            self.on_cell_edit(widget.row_id, index, value)

    def _on_blur(self, widget: CellWidget) -> None:
        if not widget.dirty:
            return
        widget.dirty = False
        if self.column_index(widget.column_id) == -1:
            return
        if self.on_cell_commit:
            self.on_cell_commit(widget.row_id, widget.column_id, widget.text.get("1.0", "end-1c"))

    def flush_pending(self) -> None:
        """Commit edited cells that never saw a focus-out.

        Buttons do not take focus, so a click that rebuilds the grid would
        otherwise destroy an edited cell before its commit fires.
        """

        for widget in list(self.cells.values()):
            if widget.dirty:
                self._on_blur(widget)

    def _regenerate(self, row_id: str, column_id: str) -> None:
        if self.column_index(column_id) != -1 and self.on_regenerate:
            self.on_regenerate(row_id, column_id)

    def _remove_row(self, row_id: str) -> None:
        if self.on_remove_row:
            self.on_remove_row(row_id)

    def _remove_column(self, index: int) -> None:
        if self.on_remove_column:
            self.on_remove_column(index)

    def _add_column(self) -> None:
        if self.on_add_column:
            self.on_add_column()
