"""Plain data types shared by the sheet, the executor and the UI."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class CellStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ColumnHeader:
    id: str
    label: str
    prompt: str = ""
    source_id: str | None = None
    is_input: bool = False


@dataclass
class Cell:
    id: str
    value: str = ""
    status: CellStatus = CellStatus.IDLE
    error: str | None = None


@dataclass
class Row:
    id: str
    cells: List[Cell] = field(default_factory=list)
