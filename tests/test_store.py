"""Tests for the ORM-backed inventory store."""
import pytest
from django.contrib.auth import get_user_model

from inventory.errors import PerItemCommitFailure
from inventory.integrity import CRITICAL, scan_integrity
from inventory.models import Equipment, ImportHistory, IPAddress, IPAssignment
from inventory.pipeline import ImportPipeline
from inventory.records import AddressSpec, EquipmentSpec, ImportResult
from inventory.store import DjangoInventoryStore

from .conftest import HEADER, xlsx_bytes

pytestmark = pytest.mark.django_db


def make_spec(machine_id, *addresses):
    return EquipmentSpec(
        machine_id=machine_id,
        name=machine_id,
        type="DRILL",
        serial_number=machine_id,
        notes="bulk",
        addresses=tuple(AddressSpec(address=address, subnet="255.255.255.0") for address in addresses),
    )


def test_create_equipment_with_addresses():
    user = get_user_model().objects.create_user(username="ops", password="secret", first_name="Pat")
    store = DjangoInventoryStore(user=user)

    created_id = store.create_equipment_with_addresses(make_spec("FS03", "10.0.0.1", "10.0.0.2", "10.0.0.1"))

    equipment = Equipment.objects.get(pk=created_id)
    assert equipment.name == equipment.serial_number == "FS03"
    assert equipment.equipment_type == "DRILL"
    assert equipment.status == "OFFLINE"
    assert sorted(IPAddress.objects.values_list("address", flat=True)) == ["10.0.0.1", "10.0.0.2"]
    assert set(IPAddress.objects.values_list("status", flat=True)) == {"ASSIGNED"}
    assert IPAssignment.objects.filter(equipment=equipment, is_active=True, assigned_by=user).count() == 2


def test_existing_address_rejects_the_whole_item():
    store = DjangoInventoryStore()
    store.create_equipment_with_addresses(make_spec("FS03", "10.0.0.1"))

    with pytest.raises(PerItemCommitFailure) as info:
        store.create_equipment_with_addresses(make_spec("FS02", "10.0.0.2", "10.0.0.1"))

    assert info.value.machine_id == "FS02"
    assert "10.0.0.1" in info.value.reason
    assert not Equipment.objects.filter(name="FS02").exists()
    assert not IPAddress.objects.filter(address="10.0.0.2").exists()


def test_address_shared_by_two_machines_rejects_the_second_one():
    data = xlsx_bytes(
        {
            "Equipment": [
                HEADER,
                ["FS03", "ROCKY COMPUTER", "10.0.0.1", "", "", ""],
                ["FS02", "ROCKY COMPUTER", "10.0.0.2", "", "", ""],
                ["FS02", "PLC", "10.0.0.1", "", "", ""],
            ]
        }
    )
    pipeline = ImportPipeline(DjangoInventoryStore())
    preview = pipeline.parse(pipeline.read(data, "shared.xlsx"))

    assert [duplicate.ip_address for duplicate in preview.in_file_duplicates] == ["10.0.0.1"]

    result = pipeline.commit(preview.groups).result

    assert result.imported == 1
    assert len(result.errors) == 1
    assert "FS02" in result.errors[0]
    assert not Equipment.objects.filter(name="FS02").exists()
    assert not IPAddress.objects.filter(address="10.0.0.2").exists()

def test_find_address_reports_owner():
    store = DjangoInventoryStore()
    store.create_equipment_with_addresses(make_spec("FS03", "10.0.0.1"))
    IPAddress.objects.create(address="10.0.0.9", status="AVAILABLE")

    owned = store.find_address("10.0.0.1")
    free = store.find_address("10.0.0.9")

    assert owned.status == "ASSIGNED"
    assert owned.owner.name == "FS03"
    assert owned.owner.type == "DRILL"
    assert free.owner is None
    assert store.find_address("10.0.0.50") is None


def test_list_active_assignments():
    user = get_user_model().objects.create_user(username="ops", password="secret")
    store = DjangoInventoryStore(user=user)
    store.create_equipment_with_addresses(make_spec("FS03", "10.0.0.1"))
    IPAssignment.objects.update(is_active=False)
    store.create_equipment_with_addresses(make_spec("FS02", "10.0.0.2"))

    assignments = store.list_active_assignments()

    assert [(item.address, item.equipment_name, item.assigned_by) for item in assignments] == [
        ("10.0.0.2", "FS02", "ops")
    ]


def test_record_import():
    store = DjangoInventoryStore()
    result = ImportResult(success=True, imported=2, skipped=1, errors=("x",), warnings=("a", "b"))

    store.record_import(result, filename="equipment.xlsx", sheet_name="Equipment")

    entry = ImportHistory.objects.get()
    assert entry.original_filename == "equipment.xlsx"
    assert (entry.imported, entry.skipped, entry.error_count) == (2, 1, 1)
    assert entry.summary == "Imported: 2, Skipped: 1, Errors: 1, Warnings: 2"


def test_integrity_scan_finds_database_problems():
    store = DjangoInventoryStore()
    store.create_equipment_with_addresses(make_spec("FS03", "10.0.0.1"))
    first = Equipment.objects.get(name="FS03")
    ip = IPAddress.objects.get(address="10.0.0.1")
    other = Equipment.objects.create(name="FS02", equipment_type="DRILL")
    IPAssignment.objects.create(ip_address=ip, equipment=other, is_active=True)
    IPAddress.objects.create(address="10.0.0.1", status="AVAILABLE")

    report = scan_integrity(store)

    assert report.status == CRITICAL
    assert report.summary.duplicate_records == 1
    assert report.summary.conflicts == 1
    assert report.summary.mismatches == 0
    assert {item.equipment_name for item in report.conflicts[0].assignments} == {first.name, other.name}
