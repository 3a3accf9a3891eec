"""Shared fixtures: an in-memory inventory store and spreadsheet builders."""
from __future__ import annotations

from io import BytesIO

import pandas as pd
import pytest

from inventory.errors import NetworkOrStoreError, PerItemCommitFailure
from inventory.records import AssignmentRecord, EquipmentRef, IPAddressRecord

HEADER = ["MACHINE ID", "SYSTEM", "IP ADDRESS", "SUBNET MASK", "GATEWAY", "COMMENTS"]


class FakeStore:
    """Dictionary-backed store with switches for the failure paths."""

    def __init__(self):
        self.records: list[IPAddressRecord] = []
        self.assignments: list[AssignmentRecord] = []
        self.created = []
        self.history = []
        self.lookups: list[str] = []
        self.reject: set[str] = set()
        self.lookups_fail = False
        self.creates_fail = False
        self._next_id = 1

    def add_existing(self, address: str, owner: str | None = None, status: str = "ASSIGNED") -> IPAddressRecord:
        owner_ref = EquipmentRef(id=f"eq-{owner}", name=owner, type="TRUCK") if owner else None
        record = IPAddressRecord(id=str(self._next_id), address=address, status=status, owner=owner_ref)
        self._next_id += 1
        self.records.append(record)
        return record

    def find_address(self, address):
        self.lookups.append(address)
        if self.lookups_fail:
            raise NetworkOrStoreError("connection refused")
        return next((record for record in self.records if record.address == address), None)

    def list_addresses(self):
        return list(self.records)

    def list_active_assignments(self):
        return [assignment for assignment in self.assignments if assignment.is_active]

    def create_equipment_with_addresses(self, spec):
        if self.creates_fail:
            raise NetworkOrStoreError("store went away")
        if spec.machine_id in self.reject:
            raise PerItemCommitFailure(spec.machine_id, "rejected by store")
        self.created.append(spec)
        return f"eq-{len(self.created)}"

    def record_import(self, result, filename="", sheet_name=""):
        self.history.append((result, filename, sheet_name))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


def xlsx_bytes(sheets: dict[str, list[list]]) -> bytes:
    """Build an .xlsx in memory; each sheet is a list of rows, header included."""
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buffer.getvalue()


@pytest.fixture
def equipment_rows() -> list[list[str]]:
    return [
        HEADER,
        ["FS03", "ROCKY COMPUTER", "10.31.141.216", "255.255.255.0", "10.31.141.1", "ip addresses done"],
        ["FS03", "PLC S7-400", "10.31.141.216", "", "10.31.141.1", ""],
        ["FS02", "ROCKY COMPUTER", "10.31.145.211", "255.255.255.0", "10.31.145.1", ""],
    ]


@pytest.fixture
def equipment_xlsx(equipment_rows) -> bytes:
    return xlsx_bytes({"Equipment": equipment_rows})
