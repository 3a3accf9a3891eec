"""
Error types raised by the import pipeline and the inventory stores.

Every error carries the pipeline stage it belongs to so the API can tell the
dashboard exactly where an attempt stopped.
"""
from __future__ import annotations


class InventoryImportError(Exception):
    """Base class for import failures."""

    stage = "error"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


class InvalidWorkbook(InventoryImportError):
    """The uploaded bytes could not be opened as a spreadsheet."""

    stage = "reading"


class SheetNotFound(InventoryImportError):
    """The requested sheet name is not part of the workbook."""

    stage = "parsing"


class EmptySheet(InventoryImportError):
    """The selected sheet has no data rows below its header."""

    stage = "parsing"


class NoImportableData(InventoryImportError):
    """Every address in the import already exists in the inventory."""

    stage = "checking"


class PerItemCommitFailure(InventoryImportError):
    """The store rejected one equipment item; siblings are unaffected."""

    stage = "importing"

    def __init__(self, machine_id: str, message: str):
        super().__init__(f"Failed to import equipment {machine_id}: {message}")
        self.machine_id = machine_id
        self.reason = message


class NetworkOrStoreError(InventoryImportError):
    """The inventory store could not be reached or failed at transport level."""


class PipelineBusy(RuntimeError):
    """A second file was pushed into a pipeline that is still running."""


class ImportStageError(Exception):
    """
    Raised by the pipeline once a fatal error has been turned into an
    ``error`` progress value. ``failed_stage`` is the stage that was running.
    ``outcome`` is set when the importing stage failed part way, and holds
    the equipment that was already created.
    """

    def __init__(self, error: InventoryImportError, failed_stage: str, progress, outcome=None):
        super().__init__(error.message)
        self.error = error
        self.failed_stage = failed_stage
        self.progress = progress
        self.outcome = outcome

    def to_dict(self) -> dict:
        data = {
            "error": self.error.message,
            "errorType": type(self.error).__name__,
            "stage": self.failed_stage,
            "progress": self.progress.to_dict(),
        }
        if self.outcome is not None:
            data["imported"] = self.outcome.imported
            data["createdIds"] = list(self.outcome.created_ids)
            data["itemErrors"] = list(self.outcome.errors)
        return data
