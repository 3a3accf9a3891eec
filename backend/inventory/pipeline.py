"""
The import pipeline: reading -> parsing -> grouping -> checking -> importing -> complete.

Each stage call returns its own record of the progress values it produced
(and passes each one to ``on_progress`` as it happens) instead of updating a
shared status field, so two pipelines never see each other's progress.

Preview and commit are separate calls with separate duplicate checks. The
pre-commit check is the one that drives filtering; the preview check is only
shown to the user.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterator, NoReturn, Sequence

from .committer import commit_groups, filter_duplicates
from .conf import import_setting
from .duplicates import check_system_duplicates, duplicate_report, find_in_file_duplicates
from .errors import (
    EmptySheet,
    ImportStageError,
    InvalidWorkbook,
    InventoryImportError,
    NetworkOrStoreError,
    NoImportableData,
    PipelineBusy,
    SheetNotFound,
)
from .grouping import exact_machine_id, extract_ip_addresses, folded_machine_id, group_by_machine_id
from .records import (
    STAGE_CHECKING,
    STAGE_COMPLETE,
    STAGE_ERROR,
    STAGE_GROUPING,
    STAGE_IMPORTING,
    STAGE_PARSING,
    STAGE_READING,
    CommitOutcome,
    DuplicateCheck,
    DuplicateInFile,
    EquipmentGroup,
    ImportProgress,
    ImportResult,
    ParseResult,
    SheetInfo,
)
from .workbook import Workbook, auto_select_sheet, catalog_sheets, open_workbook, parse_sheet

if TYPE_CHECKING:
    from .store import InventoryStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


@dataclass(frozen=True)
class ReadStage:
    workbook: Workbook
    sheets: tuple[SheetInfo, ...]
    selected_sheet: str | None
    progress: tuple[ImportProgress, ...]

    @property
    def needs_sheet_selection(self) -> bool:
        return self.selected_sheet is None

    def to_dict(self) -> dict:
        return {
            "filename": self.workbook.filename,
            "sheets": [sheet.to_dict() for sheet in self.sheets],
            "selectedSheet": self.selected_sheet,
            "needsSheetSelection": self.needs_sheet_selection,
            "progress": [value.to_dict() for value in self.progress],
        }


@dataclass(frozen=True)
class PreviewStage:
    filename: str
    sheet_name: str
    parsed: ParseResult
    groups: tuple[EquipmentGroup, ...]
    in_file_duplicates: tuple[DuplicateInFile, ...]
    preview_checks: tuple[DuplicateCheck, ...]
    progress: tuple[ImportProgress, ...]

    def to_dict(self) -> dict:
        data = self.parsed.to_dict()
        data.update(
            {
                "filename": self.filename,
                "sheet": self.sheet_name,
                "groups": [group.to_dict() for group in self.groups],
                "duplicateIPs": [duplicate.to_dict() for duplicate in self.in_file_duplicates],
                "previewChecks": [check.to_dict() for check in self.preview_checks],
                "existingInSystem": sum(1 for check in self.preview_checks if check.exists_in_system),
                "progress": [value.to_dict() for value in self.progress],
            }
        )
        return data


@dataclass(frozen=True)
class CommitStage:
    precommit_checks: tuple[DuplicateCheck, ...]
    result: ImportResult
    progress: tuple[ImportProgress, ...]

    @property
    def final(self) -> ImportProgress:
        return self.progress[-1]

    def to_dict(self) -> dict:
        return {
            "result": self.result.to_dict(),
            "stage": self.final.stage,
            "progress": [value.to_dict() for value in self.progress],
        }


class _ProgressLog:
    def __init__(self, callback: ProgressCallback | None):
        self.values: list[ImportProgress] = []
        self._callback = callback

    def emit(self, stage: str, message: str, progress: int) -> ImportProgress:
        value = ImportProgress(stage=stage, message=message, progress=progress)
        self.values.append(value)
        logger.info("[%s %s%%] %s", stage, progress, message)
        if self._callback is not None:
            self._callback(value)
        return value


class ImportPipeline:
    """
    Drives one import attempt at a time.

    Usage from a view or a command::

        pipeline = ImportPipeline(store)
        read = pipeline.read(data, "equipment.xlsx")
        preview = pipeline.parse(read, read.selected_sheet or chosen_sheet)
        # ... user confirms ...
        commit = pipeline.commit(preview.groups)

    Fatal problems raise ImportStageError after an ``error`` progress value
    has been emitted. The pipeline never commits on its own.
    """

    def __init__(
        self,
        store: "InventoryStore",
        on_progress: ProgressCallback | None = None,
        default_subnet: str | None = None,
        group_key: Callable[[str], str] | None = None,
    ):
        self.store = store
        self._on_progress = on_progress
        self.default_subnet = default_subnet or import_setting("DEFAULT_SUBNET")
        if group_key is None:
            group_key = folded_machine_id if import_setting("NORMALIZE_MACHINE_IDS") else exact_machine_id
        self.group_key = group_key
        self._lock = threading.Lock()

    @contextmanager
    def _in_flight(self) -> Iterator[_ProgressLog]:
        if not self._lock.acquire(blocking=False):
            raise PipelineBusy("An import is already running in this pipeline")
        try:
            yield _ProgressLog(self._on_progress)
        finally:
            self._lock.release()

    @staticmethod
    def _fail(
        log: _ProgressLog,
        error: InventoryImportError,
        failed_stage: str,
        outcome: CommitOutcome | None = None,
    ) -> NoReturn:
        logger.error("Import failed during %s: %s", failed_stage, error.message)
        if outcome is not None and outcome.imported:
            logger.error(
                "%s equipment were created before the failure: %s",
                outcome.imported,
                ", ".join(outcome.created_ids),
            )
        progress = log.emit(STAGE_ERROR, error.message, 0)
        raise ImportStageError(error, failed_stage, progress, outcome=outcome) from error

    # -- reading -----------------------------------------------------------

    def read(self, data: bytes, filename: str | None = None) -> ReadStage:
        """Open the workbook and catalog its sheets."""
        with self._in_flight() as log:
            log.emit(STAGE_READING, "Validating workbook structure...", 10)
            try:
                workbook = open_workbook(data, filename)
            except InvalidWorkbook as exc:
                self._fail(log, exc, STAGE_READING)

            log.emit(STAGE_READING, "Detecting sheets in workbook...", 30)
            sheets = catalog_sheets(workbook)
            if not any(sheet.has_data for sheet in sheets):
                self._fail(log, EmptySheet("No sheets with data found", stage=STAGE_READING), STAGE_READING)

            selected = auto_select_sheet(sheets)
            log.emit(STAGE_READING, f"Found {len(sheets)} sheet(s)", 100)
            return ReadStage(
                workbook=workbook,
                sheets=tuple(sheets),
                selected_sheet=selected,
                progress=tuple(log.values),
            )

    # -- parsing, grouping, preview check ------------------------------------

    def parse(self, read: ReadStage, sheet_name: str | None = None) -> PreviewStage:
        """Parse the chosen sheet, group it, find in-file duplicates and run the preview check."""
        name = sheet_name or read.selected_sheet
        if name is None:
            raise ValueError("A sheet must be chosen when more than one sheet has data")

        with self._in_flight() as log:
            log.emit(STAGE_PARSING, f'Parsing data from "{name}"...', 20)
            try:
                parsed = parse_sheet(read.workbook, name)
            except (SheetNotFound, EmptySheet) as exc:
                self._fail(log, exc, STAGE_PARSING)

            log.emit(STAGE_GROUPING, "Grouping equipment and systems...", 50)
            groups = group_by_machine_id(parsed.rows, key=self.group_key)
            in_file = find_in_file_duplicates(parsed.rows)
            if in_file:
                logger.warning(
                    "%s address(es) appear more than once in %s", len(in_file), read.workbook.filename
                )

            log.emit(STAGE_CHECKING, "Checking for duplicates in system...", 70)
            try:
                checks = check_system_duplicates(self.store, [row.ip_address for row in parsed.rows])
            except NetworkOrStoreError as exc:
                self._fail(log, exc, STAGE_CHECKING)

            existing = sum(1 for check in checks if check.exists_in_system)
            log.emit(STAGE_CHECKING, f"Ready to import ({existing} address(es) already in system)", 100)
            return PreviewStage(
                filename=read.workbook.filename,
                sheet_name=name,
                parsed=parsed,
                groups=tuple(groups),
                in_file_duplicates=tuple(in_file),
                preview_checks=tuple(checks),
                progress=tuple(log.values),
            )

    # -- pre-commit check and import ------------------------------------------

    def commit(
        self,
        groups: Sequence[EquipmentGroup],
        filename: str = "",
        sheet_name: str = "",
    ) -> CommitStage:
        """
        Re-check the inventory, filter pre-existing addresses and create the equipment.

        Call only after the user confirmed the preview. Always ends in
        ``complete`` once the store was contacted, even when every item failed.
        """
        with self._in_flight() as log:
            log.emit(STAGE_CHECKING, "Final check for duplicates...", 10)
            try:
                checks = check_system_duplicates(self.store, extract_ip_addresses(groups))
            except NetworkOrStoreError as exc:
                self._fail(log, exc, STAGE_CHECKING)

            existing = sum(1 for check in checks if check.exists_in_system)
            log.emit(STAGE_CHECKING, f"Found {existing} existing IPs", 25)
            filtered = filter_duplicates(groups, checks)

            if not filtered.groups:
                error = NoImportableData("All IP addresses already exist in the system")
                logger.warning("Nothing to import: %s", error.message)
                log.emit(STAGE_ERROR, "No new data to import", 0)
                result = ImportResult(
                    success=False,
                    imported=0,
                    skipped=filtered.skipped,
                    errors=(error.message,),
                    warnings=filtered.warnings,
                    duplicates=tuple(checks),
                )
                return CommitStage(precommit_checks=tuple(checks), result=result, progress=tuple(log.values))

            total_ips = sum(len(group.systems) for group in filtered.groups)
            log.emit(
                STAGE_IMPORTING,
                f"Importing {len(filtered.groups)} equipment ({total_ips} IP addresses total)...",
                40,
            )
            outcome = CommitOutcome()
            try:
                commit_groups(self.store, filtered.groups, self.default_subnet, outcome=outcome)
            except NetworkOrStoreError as exc:
                self._fail(log, exc, STAGE_IMPORTING, outcome=outcome)

            log.emit(STAGE_IMPORTING, "Processing import results...", 90)
            warnings = list(filtered.warnings) + duplicate_report(checks)
            result = ImportResult(
                success=outcome.imported > 0,
                imported=outcome.imported,
                skipped=filtered.skipped,
                errors=tuple(outcome.errors),
                warnings=tuple(warnings),
                duplicates=tuple(checks),
            )
            try:
                self.store.record_import(result, filename=filename, sheet_name=sheet_name)
            except NetworkOrStoreError as exc:
                logger.warning("Import history not recorded: %s", exc.message)

            if outcome.imported:
                message = f"Successfully imported {outcome.imported} equipment"
            else:
                message = f"Import finished with {len(outcome.errors)} error(s); nothing imported"
            log.emit(STAGE_COMPLETE, message, 100)
            return CommitStage(precommit_checks=tuple(checks), result=result, progress=tuple(log.values))

    def run(
        self,
        data: bytes,
        filename: str | None = None,
        sheet_name: str | None = None,
        confirm: Callable[[PreviewStage], bool] | None = None,
        choose_sheet: Callable[[Sequence[SheetInfo]], str | None] | None = None,
    ) -> tuple[PreviewStage, CommitStage | None]:
        """
        Whole attempt in one call, for scripts.

        ``confirm`` sees the preview and must return True for anything to be
        written; without it the run stops after the preview.
        """
        read = self.read(data, filename)
        name = sheet_name or read.selected_sheet
        if name is None and choose_sheet is not None:
            name = choose_sheet(read.sheets)
        preview = self.parse(read, name)
        if confirm is None or not confirm(preview):
            logger.info("Import of %s not confirmed; nothing written", preview.filename)
            return preview, None
        return preview, self.commit(preview.groups, filename=preview.filename, sheet_name=preview.sheet_name)
