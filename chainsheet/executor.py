"""Run generation for a cell and propagate results down the column chain."""
from __future__ import annotations

import logging
from typing import Protocol

from chainsheet.errors import GenerationError
from chainsheet.models import CellStatus
from chainsheet.settings import Settings
from chainsheet.sheet import Sheet

logger = logging.getLogger(__name__)

SOURCE_CONFIG_ERROR = "Source column configuration invalid."


class Generator(Protocol):
    def generate(self, system_prompt: str, user_prompt: str, settings: Settings) -> str:  # pragma: no cover - protocol
        ...


class ChainExecutor:
    """Generates cells and pushes each result into its dependent columns.

    Propagation is depth first and sequential: a dependent is only generated
    once its source call has returned, and it receives that returned text
    directly rather than re-reading the sheet.
    """

    def __init__(self, sheet: Sheet, client: Generator, settings: Settings | None = None) -> None:
        self.sheet = sheet
        self.client = client
        self._settings = settings or Settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    def update_settings(self, settings: Settings) -> None:
        # Read at the start of every call; chains already running pick it up mid-way.
        self._settings = settings

    # ---- user events ----
    def edit(self, row_id: str, column_index: int, value: str) -> None:
        self.sheet.edit_cell(row_id, column_index, value)

    def commit(self, row_id: str, column_index: int, value: str) -> None:
        header = self.sheet.graph.get(column_index)
        if header is None:
            return
        self.sheet.update_cell(row_id, header.id, value=value)
        for dep in self.sheet.graph.dependents(header.id):
            self.run_generation(row_id, dep, value)

    def regenerate(self, row_id: str, column_index: int) -> None:
        self.run_generation(row_id, column_index)

    # Id-addressed entry points for queued work: the index is resolved when
    # the job starts, so columns removed while it waited cannot shift it.
    def commit_column(self, row_id: str, column_id: str, value: str) -> None:
        index = self.sheet.graph.index_of(column_id)
        if index == -1:
            logger.debug("Skipping commit for %s/%s: column no longer exists", row_id, column_id)
            return
        self.commit(row_id, index, value)

    def regenerate_column(self, row_id: str, column_id: str) -> None:
        index = self.sheet.graph.index_of(column_id)
        if index == -1:
            logger.debug("Skipping regenerate for %s/%s: column no longer exists", row_id, column_id)
            return
        self.run_generation(row_id, index)

    # ---- core ----
    def run_generation(self, row_id: str, column_index: int, direct_input: str | None = None) -> None:
        header = self.sheet.graph.get(column_index)
        if header is None or header.is_input:
            return

        source_value = direct_input
        if source_value is None:
            source_index = self.sheet.graph.index_of(header.source_id)
            if source_index == -1:
                logger.warning("Column %s has unresolved source %r", header.id, header.source_id)
                self.sheet.update_cell(row_id, header.id, status=CellStatus.FAILED, error=SOURCE_CONFIG_ERROR)
                return
            if self.sheet.find_row(row_id) is None:
                return
            source_value = self.sheet.cell_value(row_id, source_index) or ""

        if not source_value.strip():
            return

        if not self.sheet.update_cell(row_id, header.id, status=CellStatus.PENDING, error=None):
            return

        settings = self._settings
        logger.info("Generating %s/%s via %s", row_id, header.id, settings.provider.value)
        try:
            result = self.client.generate(header.prompt, source_value, settings)
        except GenerationError as exc:
            logger.warning("Generation failed for %s/%s: %s", row_id, header.id, exc)
            self.sheet.update_cell(row_id, header.id, status=CellStatus.FAILED, error=str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error generating %s/%s", row_id, header.id)
            self.sheet.update_cell(
                row_id, header.id, status=CellStatus.FAILED, error=str(exc) or exc.__class__.__name__
            )
            return

        if not self.sheet.update_cell(row_id, header.id, value=result, status=CellStatus.SUCCEEDED, error=None):
            return

        # Re-resolve by id: the header list may have changed while the call was in flight.
        for dep in self.sheet.graph.dependents(header.id):
            self.run_generation(row_id, dep, result)


__all__ = ["ChainExecutor", "SOURCE_CONFIG_ERROR"]
