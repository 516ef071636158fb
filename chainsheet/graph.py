"""Column dependency graph.

Columns form a functional graph: every generated column names at most one
source column by id. Source assignment is checked so that following source
references always terminates.
"""
from __future__ import annotations

from typing import Iterable, List

from chainsheet.errors import ConfigurationError, CycleError
from chainsheet.models import ColumnHeader


class ColumnGraph:
    def __init__(self, headers: Iterable[ColumnHeader] | None = None) -> None:
        self.headers: List[ColumnHeader] = []
        for header in headers or []:
            self.append(header)

    def __len__(self) -> int:
        return len(self.headers)

    def __iter__(self):
        return iter(self.headers)

    def __getitem__(self, index: int) -> ColumnHeader:
        return self.headers[index]

    # ---- lookups ----
    def get(self, index: int) -> ColumnHeader | None:
        if 0 <= index < len(self.headers):
            return self.headers[index]
        return None

    def index_of(self, column_id: str | None) -> int:
        """Return the position of ``column_id`` or -1 when it is unknown."""

        if column_id is None:
            return -1
        for idx, header in enumerate(self.headers):
            if header.id == column_id:
                return idx
        return -1

    def dependents(self, column_id: str) -> List[int]:
        """Indices of the columns whose source is ``column_id``, in header order."""

        return [idx for idx, h in enumerate(self.headers) if h.source_id == column_id]

    def chain(self) -> List[ColumnHeader]:
        """Columns reachable from the entry column, depth first."""

        entry = next((h for h in self.headers if h.is_input), None)
        if entry is None:
            return []
        ordered: List[ColumnHeader] = []
        seen: set[str] = set()
        stack = [entry]
        while stack:
            header = stack.pop()
            if header.id in seen:
                continue
            seen.add(header.id)
            ordered.append(header)
            for idx in reversed(self.dependents(header.id)):
                stack.append(self.headers[idx])
        return ordered

    # ---- mutation ----
    def append(self, header: ColumnHeader) -> int:
        if self.index_of(header.id) != -1:
            raise ConfigurationError(f"Duplicate column id: {header.id}")
        if header.is_input:
            if any(h.is_input for h in self.headers):
                raise ConfigurationError("Sheet already has an entry column")
            if header.source_id is not None:
                raise ConfigurationError("The entry column cannot have a source")
        self.headers.append(header)
        return len(self.headers) - 1

    def remove(self, index: int) -> ColumnHeader:
        if index == 0:
            raise ConfigurationError("The entry column cannot be removed")
        if not 0 < index < len(self.headers):
            raise ConfigurationError(f"No column at index {index}")
        # Dangling source references are left for the executor to report.
        return self.headers.pop(index)

    def set_source(self, index: int, source_id: str) -> None:
        header = self.get(index)
        if header is None:
            raise ConfigurationError(f"No column at index {index}")
        if header.is_input:
            raise ConfigurationError("The entry column cannot have a source")
        if self.index_of(source_id) == -1:
            raise ConfigurationError(f"Unknown source column: {source_id}")
        if self.would_cycle(header.id, source_id):
            raise CycleError(f"Using {source_id} as the source of {header.id} creates a cycle")
        header.source_id = source_id

    def would_cycle(self, column_id: str, source_id: str) -> bool:
        """True when walking source references from ``source_id`` reaches ``column_id``."""

        current: str | None = source_id
        visited: set[str] = set()
        while current is not None:
            if current == column_id:
                return True
            if current in visited:
                # pre-existing loop that does not involve column_id
                return False
            visited.add(current)
            idx = self.index_of(current)
            if idx == -1:
                return False
            current = self.headers[idx].source_id
        return False
