from __future__ import annotations

from typing import List, Tuple

import pytest

from chainsheet.errors import ConfigurationError
from chainsheet.models import CellStatus
from chainsheet.sheet import NEW_COLUMN_PROMPT, Sheet


def test_default_sheet_layout() -> None:
    sheet = Sheet.default()
    labels = [h.label for h in sheet.headers]
    assert labels == ["User Input", "Step 1 Output", "Step 2 Output"]
    entry, step1, step2 = sheet.headers
    assert entry.is_input and entry.source_id is None
    assert step1.source_id == entry.id
    assert step2.source_id == step1.id
    assert step2.prompt == "Translate the summary to French."
    assert len(sheet.rows) == 3
    for row in sheet.rows:
        assert len(row.cells) == 3
        assert all(c.status is CellStatus.IDLE and c.value == "" for c in row.cells)


def test_add_column_defaults_to_last_column_and_extends_rows() -> None:
    sheet = Sheet.default(row_count=2)
    last = sheet.headers[-1]
    header = sheet.add_column()
    assert header.source_id == last.id
    assert header.prompt == NEW_COLUMN_PROMPT
    assert header.label == "Step 3"
    assert not header.is_input
    for row in sheet.rows:
        assert len(row.cells) == 4
        assert row.cells[-1].status is CellStatus.IDLE


def test_remove_column_drops_positional_cell() -> None:
    sheet = Sheet.default(row_count=1)
    row = sheet.rows[0]
    keep_ids = [row.cells[0].id, row.cells[2].id]
    removed = sheet.remove_column(1)
    assert removed.label == "Step 1 Output"
    assert [c.id for c in row.cells] == keep_ids
    assert len(sheet.headers) == 2
    # dangling reference is not repaired
    assert sheet.headers[1].source_id == removed.id


def test_remove_entry_column_refused() -> None:
    sheet = Sheet.default(row_count=1)
    with pytest.raises(ConfigurationError):
        sheet.remove_column(0)
    assert len(sheet.rows[0].cells) == 3


def test_add_and_remove_rows() -> None:
    sheet = Sheet.default(row_count=0)
    first = sheet.add_row()
    second = sheet.add_row()
    assert first.id != second.id
    assert len(first.cells) == len(sheet.headers)
    assert sheet.remove_row(first.id) is True
    assert sheet.remove_row(first.id) is False
    assert [r.id for r in sheet.rows] == [second.id]


def test_edit_cell_resets_only_that_cell() -> None:
    sheet = Sheet.default(row_count=1)
    row = sheet.rows[0]
    step1 = sheet.headers[1]
    sheet.update_cell(row.id, step1.id, value="old", status=CellStatus.FAILED, error="boom")
    sheet.update_cell(row.id, sheet.headers[2].id, value="downstream", status=CellStatus.SUCCEEDED)

    sheet.edit_cell(row.id, 1, "typed")

    assert row.cells[1].value == "typed"
    assert row.cells[1].status is CellStatus.IDLE
    assert row.cells[1].error is None
    assert row.cells[2].value == "downstream"
    assert row.cells[2].status is CellStatus.SUCCEEDED


def test_update_cell_for_removed_column_is_dropped() -> None:
    sheet = Sheet.default(row_count=1)
    row = sheet.rows[0]
    gone = sheet.remove_column(2)
    assert sheet.update_cell(row.id, gone.id, value="late") is False
    assert sheet.update_cell("row-missing", sheet.headers[1].id, value="late") is False


def test_listeners_receive_cell_changes() -> None:
    sheet = Sheet.default(row_count=1)
    seen: List[Tuple[str, str]] = []
    sheet.subscribe(lambda r, c: seen.append((r, c)))
    row = sheet.rows[0]
    sheet.edit_cell(row.id, 0, "hello")
    assert seen == [(row.id, sheet.headers[0].id)]


def test_snapshot_is_detached() -> None:
    sheet = Sheet.default(row_count=1)
    headers, rows = sheet.snapshot()
    rows[0].cells[0].value = "changed"
    headers[1].label = "changed"
    assert sheet.rows[0].cells[0].value == ""
    assert sheet.headers[1].label == "Step 1 Output"


def test_cell_lookup_returns_copy() -> None:
    sheet = Sheet.default(row_count=1)
    row = sheet.rows[0]
    cell = sheet.cell(row.id, 0)
    assert cell is not None
    cell.value = "mutated"
    assert sheet.cell_value(row.id, 0) == ""
    assert sheet.cell(row.id, 7) is None
