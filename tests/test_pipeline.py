"""End-to-end tests for the staged import pipeline against the in-memory store."""
import pytest

from inventory.errors import EmptySheet, ImportStageError, InvalidWorkbook, NetworkOrStoreError, PipelineBusy
from inventory.grouping import folded_machine_id
from inventory.pipeline import ImportPipeline

from .conftest import HEADER, xlsx_bytes


def stages(progress):
    return [(value.stage, value.progress) for value in progress]


def test_preview_then_commit(store, equipment_xlsx):
    seen = []
    pipeline = ImportPipeline(store, on_progress=seen.append, default_subnet="255.255.0.0")

    read = pipeline.read(equipment_xlsx, "equipment.xlsx")
    assert read.selected_sheet == "Equipment"
    assert not read.needs_sheet_selection
    assert stages(read.progress) == [("reading", 10), ("reading", 30), ("reading", 100)]

    preview = pipeline.parse(read)
    assert [group.machine_id for group in preview.groups] == ["FS03", "FS02"]
    assert preview.parsed.total_rows == 3
    assert preview.parsed.total_ips == 2
    assert [duplicate.ip_address for duplicate in preview.in_file_duplicates] == ["10.31.141.216"]
    assert [occurrence.row for occurrence in preview.in_file_duplicates[0].occurrences] == [2]
    assert not any(check.exists_in_system for check in preview.preview_checks)
    assert stages(preview.progress) == [("parsing", 20), ("grouping", 50), ("checking", 70), ("checking", 100)]
    assert store.created == []

    commit = pipeline.commit(preview.groups, filename=preview.filename, sheet_name=preview.sheet_name)

    result = commit.result
    assert result.success
    assert result.imported == 2
    assert result.skipped == 0
    assert result.errors == ()
    assert [spec.name for spec in store.created] == ["FS03", "FS02"]
    assert store.created[0].addresses[1].subnet == "255.255.0.0"
    assert stages(commit.progress) == [
        ("checking", 10),
        ("checking", 25),
        ("importing", 40),
        ("importing", 90),
        ("complete", 100),
    ]
    assert commit.final.stage == "complete"
    assert store.history[0][1:] == ("equipment.xlsx", "Equipment")
    assert seen == list(read.progress + preview.progress + commit.progress)


def test_commit_skips_addresses_that_appeared_after_preview(store, equipment_xlsx):
    pipeline = ImportPipeline(store)
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))
    store.add_existing("10.31.141.216", owner="FS01")

    commit = pipeline.commit(preview.groups)

    result = commit.result
    assert result.imported == 1
    assert result.skipped == 2
    assert [spec.name for spec in store.created] == ["FS02"]
    assert result.warnings == (
        "Skipped 10.31.141.216 (ROCKY COMPUTER) - already exists in system",
        "Skipped 10.31.141.216 (PLC S7-400) - already exists in system",
        "10.31.141.216 - Already assigned to FS01 (TRUCK)",
    )
    assert [check.ip_address for check in commit.precommit_checks if check.exists_in_system] == ["10.31.141.216"]


def test_commit_with_everything_already_present(store, equipment_xlsx):
    pipeline = ImportPipeline(store)
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))
    store.add_existing("10.31.141.216")
    store.add_existing("10.31.145.211")

    commit = pipeline.commit(preview.groups)

    assert not commit.result.success
    assert commit.result.imported == 0
    assert commit.result.skipped == 3
    assert commit.result.errors == ("All IP addresses already exist in the system",)
    assert commit.final.stage == "error"
    assert store.created == []
    assert store.history == []


def test_partial_failure_is_reported_not_raised(store, equipment_xlsx):
    store.reject.add("FS03")
    pipeline = ImportPipeline(store)
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))

    commit = pipeline.commit(preview.groups)

    assert commit.result.success
    assert commit.result.imported == 1
    assert commit.result.errors == ("Failed to import equipment FS03: rejected by store",)
    assert commit.final.stage == "complete"


def test_failed_item_only_run_ends_complete_without_success(store, equipment_xlsx):
    store.reject.update({"FS03", "FS02"})
    pipeline = ImportPipeline(store)
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))

    commit = pipeline.commit(preview.groups)

    assert not commit.result.success
    assert len(commit.result.errors) == 2
    assert commit.final.stage == "complete"


def test_unreadable_file_ends_in_error_progress(store):
    seen = []
    pipeline = ImportPipeline(store, on_progress=seen.append)

    with pytest.raises(ImportStageError) as info:
        pipeline.read(b"garbage", "broken.xlsx")

    assert isinstance(info.value.error, InvalidWorkbook)
    assert info.value.failed_stage == "reading"
    assert info.value.progress.stage == "error"
    assert seen[-1] == info.value.progress
    assert info.value.to_dict()["errorType"] == "InvalidWorkbook"


def test_workbook_without_data_fails_while_reading(store):
    pipeline = ImportPipeline(store)

    with pytest.raises(ImportStageError) as info:
        pipeline.read(xlsx_bytes({"Sheet1": [HEADER]}), "empty.xlsx")

    assert isinstance(info.value.error, EmptySheet)
    assert info.value.failed_stage == "reading"


def test_sheet_choice_required_with_several_data_sheets(store, equipment_rows):
    pipeline = ImportPipeline(store)
    read = pipeline.read(xlsx_bytes({"North": equipment_rows, "South": equipment_rows}), "pits.xlsx")

    assert read.needs_sheet_selection
    with pytest.raises(ValueError):
        pipeline.parse(read)

    preview = pipeline.parse(read, "South")
    assert preview.sheet_name == "South"


def test_unknown_sheet_fails_while_parsing(store, equipment_xlsx):
    pipeline = ImportPipeline(store)
    read = pipeline.read(equipment_xlsx, "equipment.xlsx")

    with pytest.raises(ImportStageError) as info:
        pipeline.parse(read, "Nope")

    assert info.value.failed_stage == "parsing"


def test_unreachable_store_fails_the_check(store, equipment_xlsx):
    pipeline = ImportPipeline(store)
    read = pipeline.read(equipment_xlsx, "equipment.xlsx")
    store.lookups_fail = True

    with pytest.raises(ImportStageError) as info:
        pipeline.parse(read)

    assert isinstance(info.value.error, NetworkOrStoreError)
    assert info.value.failed_stage == "checking"
    assert store.created == []


def test_store_failure_during_import_stops_the_run(store, equipment_xlsx):
    pipeline = ImportPipeline(store)
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))
    store.creates_fail = True

    with pytest.raises(ImportStageError) as info:
        pipeline.commit(preview.groups)

    assert info.value.failed_stage == "importing"


def test_import_failure_reports_what_was_already_created(store, equipment_xlsx):
    class FlakyStore(type(store)):
        def create_equipment_with_addresses(self, spec):
            if self.created:
                raise NetworkOrStoreError("store went away")
            return super().create_equipment_with_addresses(spec)

    pipeline = ImportPipeline(FlakyStore())
    preview = pipeline.parse(pipeline.read(equipment_xlsx, "equipment.xlsx"))

    with pytest.raises(ImportStageError) as info:
        pipeline.commit(preview.groups)

    assert info.value.failed_stage == "importing"
    assert info.value.outcome.imported == 1
    payload = info.value.to_dict()
    assert payload["imported"] == 1
    assert payload["createdIds"] == ["eq-1"]


def test_second_run_while_busy_is_refused(store, equipment_xlsx):
    pipeline = None

    def reenter(_progress):
        pipeline.read(equipment_xlsx, "again.xlsx")

    pipeline = ImportPipeline(store, on_progress=reenter)
    with pytest.raises(PipelineBusy):
        pipeline.read(equipment_xlsx, "equipment.xlsx")

    pipeline._on_progress = None
    assert pipeline.read(equipment_xlsx, "equipment.xlsx").selected_sheet == "Equipment"


def test_run_without_confirmation_writes_nothing(store, equipment_xlsx):
    preview, commit = ImportPipeline(store).run(equipment_xlsx, "equipment.xlsx")

    assert commit is None
    assert len(preview.groups) == 2
    assert store.created == []


def test_run_with_confirmation_and_folded_machine_ids(store):
    data = xlsx_bytes(
        {
            "Sheet1": [
                HEADER,
                ["FS03", "ROCKY", "10.0.0.1", "", "", ""],
                ["fs03", "PLC", "10.0.0.2", "", "", ""],
            ]
        }
    )
    pipeline = ImportPipeline(store, group_key=folded_machine_id)

    preview, commit = pipeline.run(data, "mixed.xlsx", confirm=lambda _preview: True)

    assert len(preview.groups) == 1
    assert commit.result.imported == 1
    assert len(store.created[0].addresses) == 2


def test_run_asks_for_a_sheet(store, equipment_rows):
    data = xlsx_bytes({"North": equipment_rows, "South": equipment_rows})
    offered = []

    def choose(sheets):
        offered.extend(sheet.name for sheet in sheets)
        return "North"

    preview, _ = ImportPipeline(store).run(data, "pits.xlsx", choose_sheet=choose)

    assert offered == ["North", "South"]
    assert preview.sheet_name == "North"
