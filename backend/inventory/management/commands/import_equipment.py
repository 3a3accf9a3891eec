"""
Import an equipment spreadsheet from the command line.

    python manage.py import_equipment equipment.xlsx --sheet FS03 --yes
    python manage.py import_equipment equipment.xlsx --remote https://site/api --username ops

Exit codes: 0 everything imported, 2 partial import or nothing to import,
3 unreadable or empty input, 1 the inventory could not be reached.
"""
from __future__ import annotations

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from inventory.conf import import_setting
from inventory.errors import ImportStageError, NetworkOrStoreError
from inventory.pipeline import ImportPipeline
from inventory.remote import RestInventoryStore
from inventory.store import DjangoInventoryStore

EXIT_PARTIAL = 2
EXIT_INVALID_INPUT = 3
EXIT_STORE_UNAVAILABLE = 1


class Command(BaseCommand):
    help = "Preview and import equipment with their IP addresses from an .xlsx/.xls/.csv file."

    def add_arguments(self, parser):
        parser.add_argument("file", help="Path to the spreadsheet")
        parser.add_argument("--sheet", help="Sheet to import when the workbook has several")
        parser.add_argument("--yes", action="store_true", help="Import without asking for confirmation")
        parser.add_argument("--remote", help="Base URL of another inventory API, e.g. https://host/api")
        parser.add_argument("--username", help="Basic auth user for --remote")
        parser.add_argument("--password", help="Basic auth password for --remote")
        parser.add_argument("--json", action="store_true", help="Print the preview and result as JSON")

    def handle(self, *args, **options):
        path = Path(options["file"])
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CommandError(f"Cannot read {path}: {exc}", returncode=EXIT_INVALID_INPUT) from exc

        as_json = options["json"]
        pipeline = ImportPipeline(
            self._store(options),
            on_progress=None if as_json else self._show_progress,
        )

        try:
            read = pipeline.read(data, path.name)
            sheet = options["sheet"] or read.selected_sheet
            if sheet is None:
                names = ", ".join(info.name for info in read.sheets if info.has_data)
                raise CommandError(
                    f"Several sheets contain data ({names}); choose one with --sheet",
                    returncode=EXIT_INVALID_INPUT,
                )
            preview = pipeline.parse(read, sheet)
        except ImportStageError as exc:
            raise self._stage_error(exc) from exc

        if as_json:
            self.stdout.write(json.dumps({"preview": preview.to_dict()}, indent=2))
        else:
            self._show_preview(preview)

        if not options["yes"] and not self._confirm(len(preview.groups)):
            self.stdout.write("Import cancelled; nothing was written.")
            return

        try:
            commit = pipeline.commit(preview.groups, filename=preview.filename, sheet_name=preview.sheet_name)
        except ImportStageError as exc:
            raise self._stage_error(exc) from exc

        result = commit.result
        if as_json:
            self.stdout.write(json.dumps(commit.to_dict(), indent=2))
        else:
            self._show_result(result)

        if not result.success:
            raise CommandError("Nothing was imported", returncode=EXIT_PARTIAL)
        if result.errors:
            raise CommandError(f"{len(result.errors)} equipment failed to import", returncode=EXIT_PARTIAL)

    def _store(self, options):
        if options["remote"]:
            return RestInventoryStore(
                options["remote"],
                username=options["username"],
                password=options["password"],
                timeout=import_setting("REMOTE_TIMEOUT"),
            )
        return DjangoInventoryStore()

    def _stage_error(self, exc: ImportStageError) -> CommandError:
        if isinstance(exc.error, NetworkOrStoreError):
            returncode = EXIT_STORE_UNAVAILABLE
        else:
            returncode = EXIT_INVALID_INPUT
        if exc.outcome is not None and exc.outcome.imported:
            self.stderr.write(
                f"{exc.outcome.imported} equipment were created before the failure: "
                + ", ".join(exc.outcome.created_ids)
            )
        return CommandError(f"Import failed while {exc.failed_stage}: {exc.error.message}", returncode=returncode)

    def _confirm(self, group_count: int) -> bool:
        answer = input(f"Import {group_count} equipment? [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    def _show_progress(self, value):
        self.stdout.write(f"[{value.progress:3d}%] {value.message}")

    def _show_preview(self, preview):
        parsed = preview.parsed
        self.stdout.write(
            f"{preview.filename} / {preview.sheet_name}: {parsed.total_rows} rows, "
            f"{len(preview.groups)} equipment, {parsed.total_ips} unique IPs"
        )
        for skipped in parsed.skipped_rows:
            self.stdout.write(self.style.WARNING(f"  row {skipped.row} skipped: {skipped.reason}"))
        for duplicate in preview.in_file_duplicates:
            rows = ", ".join(str(occurrence.row) for occurrence in duplicate.occurrences)
            self.stdout.write(self.style.WARNING(f"  {duplicate.ip_address} repeated on row(s) {rows}"))
        for check in preview.preview_checks:
            if check.exists_in_system:
                owner = check.existing_equipment.name if check.existing_equipment else "unassigned"
                self.stdout.write(self.style.WARNING(f"  {check.ip_address} already exists ({owner})"))

    def _show_result(self, result):
        style = self.style.SUCCESS if result.success and not result.errors else self.style.WARNING
        self.stdout.write(style(f"Imported: {result.imported}, skipped: {result.skipped}, errors: {len(result.errors)}"))
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))
        for warning in result.warnings:
            self.stdout.write(f"  {warning}")
