"""Row store kept in lockstep with the column graph."""
from __future__ import annotations

import copy
import itertools
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Tuple

from chainsheet.errors import ConfigurationError
from chainsheet.graph import ColumnGraph
from chainsheet.models import Cell, CellStatus, ColumnHeader, Row

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 3
NEW_COLUMN_PROMPT = "New system instruction..."

CellListener = Callable[[str, str], None]


class Sheet:
    """Owns the columns and the rows; every row carries one cell per column.

    All mutation goes through this class so row-cell arrays never drift from
    the header list. Listeners are called with ``(row_id, column_id)`` after
    a cell changes and may be invoked from worker threads.
    """

    def __init__(self, graph: ColumnGraph | None = None, rows: Iterable[Row] | None = None) -> None:
        self.graph = graph if graph is not None else ColumnGraph()
        self.rows: List[Row] = list(rows or [])
        self._lock = threading.RLock()
        self._listeners: List[CellListener] = []
        self._seq: Dict[str, itertools.count] = {}
        for row in self.rows:
            if len(row.cells) != len(self.graph):
                raise ConfigurationError(f"Row {row.id} has {len(row.cells)} cells for {len(self.graph)} columns")

    @classmethod
    def default(cls, row_count: int = DEFAULT_ROWS) -> "Sheet":
        sheet = cls()
        entry = sheet.add_column("User Input", "", input_column=True)
        step1 = sheet.add_column("Step 1 Output", "Summarize the input in one sentence.", source_id=entry.id)
        sheet.add_column("Step 2 Output", "Translate the summary to French.", source_id=step1.id)
        for _ in range(row_count):
            sheet.add_row()
        return sheet

    # ---- ids / listeners ----
    def _next_id(self, prefix: str) -> str:
        counter = self._seq.setdefault(prefix, itertools.count())
        while True:
            candidate = f"{prefix}-{next(counter)}"
            if prefix == "col" and self.graph.index_of(candidate) != -1:
                continue
            if prefix == "row" and self.find_row(candidate) is not None:
                continue
            return candidate

    def _new_cell(self) -> Cell:
        return Cell(id=self._next_id("cell"))

    def subscribe(self, listener: CellListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: CellListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, row_id: str, column_id: str) -> None:
        for listener in list(self._listeners):
            listener(row_id, column_id)

    # ---- columns ----
    @property
    def headers(self) -> List[ColumnHeader]:
        return self.graph.headers

    def add_column(
        self,
        label: str | None = None,
        prompt: str | None = None,
        *,
        source_id: str | None = None,
        input_column: bool = False,
    ) -> ColumnHeader:
        with self._lock:
            if not input_column and source_id is None and len(self.graph):
                source_id = self.graph[len(self.graph) - 1].id
            header = ColumnHeader(
                id=self._next_id("col"),
                label=label if label is not None else f"Step {len(self.graph)}",
                prompt=prompt if prompt is not None else ("" if input_column else NEW_COLUMN_PROMPT),
                source_id=None if input_column else source_id,
                is_input=input_column,
            )
            self.graph.append(header)
            for row in self.rows:
                row.cells.append(self._new_cell())
        logger.debug("Added column %s (source=%s)", header.id, header.source_id)
        return header

    def remove_column(self, index: int) -> ColumnHeader:
        with self._lock:
            header = self.graph.remove(index)
            for row in self.rows:
                del row.cells[index]
        logger.debug("Removed column %s", header.id)
        return header

    def update_column(self, index: int, *, label: str | None = None, prompt: str | None = None) -> None:
        with self._lock:
            header = self.graph.get(index)
            if header is None:
                raise ConfigurationError(f"No column at index {index}")
            if label is not None:
                header.label = label
            if prompt is not None:
                header.prompt = prompt

    def set_source(self, index: int, source_id: str) -> None:
        with self._lock:
            self.graph.set_source(index, source_id)

    # ---- rows ----
    def add_row(self) -> Row:
        with self._lock:
            row = Row(id=self._next_id("row"), cells=[self._new_cell() for _ in self.graph])
            self.rows.append(row)
        return row

    def remove_row(self, row_id: str) -> bool:
        with self._lock:
            before = len(self.rows)
            self.rows = [r for r in self.rows if r.id != row_id]
            return len(self.rows) != before

    def find_row(self, row_id: str) -> Row | None:
        for row in self.rows:
            if row.id == row_id:
                return row
        return None

    # ---- cells ----
    def cell(self, row_id: str, index: int) -> Cell | None:
        with self._lock:
            row = self.find_row(row_id)
            if row is None or not 0 <= index < len(row.cells):
                return None
            return copy.copy(row.cells[index])

    def cell_value(self, row_id: str, index: int) -> str | None:
        found = self.cell(row_id, index)
        return None if found is None else found.value

    def update_cell(self, row_id: str, column_id: str, **changes: Any) -> bool:
        """Apply ``changes`` to the cell addressed by column id.

        Returns False when the row or column no longer exists, which happens
        when a structural edit lands while a generation is in flight.
        """

        with self._lock:
            row = self.find_row(row_id)
            index = self.graph.index_of(column_id)
            if row is None or index == -1:
                logger.debug("Dropping update for %s/%s: target no longer exists", row_id, column_id)
                return False
            target = row.cells[index]
            for key, value in changes.items():
                setattr(target, key, value)
        self._notify(row_id, column_id)
        return True

    def edit_cell(self, row_id: str, index: int, value: str) -> bool:
        header = self.graph.get(index)
        if header is None:
            return False
        return self.update_cell(row_id, header.id, value=value, status=CellStatus.IDLE, error=None)

    def snapshot(self) -> Tuple[List[ColumnHeader], List[Row]]:
        """Detached copies of headers and rows for rendering."""

        with self._lock:
            return copy.deepcopy(self.graph.headers), copy.deepcopy(self.rows)
