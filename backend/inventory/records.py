"""
Plain value types passed between the import stages and the integrity scanner.

Nothing in here touches the database. Each type has a ``to_dict`` that
produces the camelCase shape the dashboard already consumes, so the views can
hand them straight to ``Response``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Pipeline stages, in the order a successful run visits them.
STAGE_IDLE = "idle"
STAGE_READING = "reading"
STAGE_PARSING = "parsing"
STAGE_GROUPING = "grouping"
STAGE_CHECKING = "checking"
STAGE_IMPORTING = "importing"
STAGE_COMPLETE = "complete"
STAGE_ERROR = "error"

STAGES = (
    STAGE_IDLE,
    STAGE_READING,
    STAGE_PARSING,
    STAGE_GROUPING,
    STAGE_CHECKING,
    STAGE_IMPORTING,
    STAGE_COMPLETE,
    STAGE_ERROR,
)

STATUS_AVAILABLE = "AVAILABLE"
STATUS_ASSIGNED = "ASSIGNED"
STATUS_RESERVED = "RESERVED"
STATUS_OFFLINE = "OFFLINE"

ADDRESS_STATUSES = (STATUS_AVAILABLE, STATUS_ASSIGNED, STATUS_RESERVED, STATUS_OFFLINE)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Spreadsheet side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SheetInfo:
    """Shape of one sheet in an uploaded workbook."""

    name: str
    row_count: int
    column_count: int
    has_data: bool

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "rowCount": self.row_count,
            "columnCount": self.column_count,
            "hasData": self.has_data,
        }


@dataclass(frozen=True)
class RawRow:
    """One data row of the selected sheet. ``row_index`` is 1-based, header excluded."""

    machine_id: str
    system: str
    ip_address: str
    subnet: str
    gateway: str
    comments: str
    row_index: int

    def to_dict(self) -> dict:
        return {
            "machineId": self.machine_id,
            "system": self.system,
            "ipAddress": self.ip_address,
            "subnet": self.subnet,
            "gateway": self.gateway,
            "comments": self.comments,
            "rowIndex": self.row_index,
        }


@dataclass(frozen=True)
class SkippedRow:
    row: int
    reason: str

    def to_dict(self) -> dict:
        return {"row": self.row, "reason": self.reason}


@dataclass(frozen=True)
class ParseResult:
    """Rows read from one sheet plus the counters shown in the preview."""

    rows: tuple[RawRow, ...]
    total_rows: int
    total_ips: int
    skipped_rows: tuple[SkippedRow, ...] = ()

    def to_dict(self) -> dict:
        return {
            "totalRows": self.total_rows,
            "totalIPs": self.total_ips,
            "skippedRows": [row.to_dict() for row in self.skipped_rows],
        }


@dataclass(frozen=True)
class SystemEntry:
    """One system (PLC, onboard computer, ...) of an equipment unit."""

    system: str
    ip_address: str
    subnet: str = ""
    gateway: str = ""
    comments: str = ""

    def to_dict(self) -> dict:
        return {
            "system": self.system,
            "ipAddress": self.ip_address,
            "subnet": self.subnet,
            "gateway": self.gateway,
            "comments": self.comments,
        }


@dataclass(frozen=True)
class EquipmentGroup:
    """All systems that share a machine id, in file order."""

    machine_id: str
    systems: tuple[SystemEntry, ...]

    def to_dict(self) -> dict:
        return {
            "machineId": self.machine_id,
            "systems": [entry.to_dict() for entry in self.systems],
        }


@dataclass(frozen=True)
class Occurrence:
    row: int
    machine_id: str
    system: str

    def to_dict(self) -> dict:
        return {"row": self.row, "machineId": self.machine_id, "system": self.system}


@dataclass(frozen=True)
class DuplicateInFile:
    """
    An address seen on more than one row. ``occurrences`` leaves out the first
    (canonical) row, so its length is total occurrences minus one.
    """

    ip_address: str
    occurrences: tuple[Occurrence, ...]

    def to_dict(self) -> dict:
        return {
            "ipAddress": self.ip_address,
            "occurrences": [occurrence.to_dict() for occurrence in self.occurrences],
        }


# ---------------------------------------------------------------------------
# Store side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EquipmentRef:
    id: str
    name: str
    type: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "type": self.type}


@dataclass(frozen=True)
class DuplicateCheck:
    ip_address: str
    exists_in_system: bool
    existing_equipment: EquipmentRef | None = None

    def to_dict(self) -> dict:
        data: dict = {"ipAddress": self.ip_address, "existsInSystem": self.exists_in_system}
        if self.existing_equipment is not None:
            data["existingEquipment"] = self.existing_equipment.to_dict()
        return data


@dataclass(frozen=True)
class IPAddressRecord:
    """A persisted address row. ``owner`` is the equipment of an active assignment, if any."""

    id: str
    address: str
    status: str
    owner: EquipmentRef | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "address": self.address,
            "status": self.status,
            "owner": self.owner.to_dict() if self.owner else None,
            "createdAt": _iso(self.created_at),
        }


@dataclass(frozen=True)
class AssignmentRecord:
    id: str
    ip_address_id: str
    address: str
    equipment_id: str
    is_active: bool
    assigned_at: datetime | None = None
    equipment_name: str = "Unknown"
    equipment_type: str = "UNKNOWN"
    assigned_by: str = "System"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ipAddressId": self.ip_address_id,
            "address": self.address,
            "equipmentId": self.equipment_id,
            "equipmentName": self.equipment_name,
            "equipmentType": self.equipment_type,
            "isActive": self.is_active,
            "assignedAt": _iso(self.assigned_at),
            "assignedBy": self.assigned_by,
        }


@dataclass(frozen=True)
class AddressSpec:
    address: str
    subnet: str
    gateway: str = ""
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "subnet": self.subnet,
            "gateway": self.gateway,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class EquipmentSpec:
    """Payload for one equipment-creation request."""

    machine_id: str
    name: str
    type: str
    serial_number: str
    notes: str
    addresses: tuple[AddressSpec, ...]
    status: str = "OFFLINE"

    def to_dict(self) -> dict:
        return {
            "machineId": self.machine_id,
            "name": self.name,
            "type": self.type,
            "serialNumber": self.serial_number,
            "notes": self.notes,
            "status": self.status,
            "ipAddresses": [address.to_dict() for address in self.addresses],
        }


# ---------------------------------------------------------------------------
# Pipeline outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportProgress:
    stage: str = STAGE_IDLE
    message: str = ""
    progress: int = 0

    def __post_init__(self) -> None:
        if self.stage not in STAGES:
            raise ValueError(f"Unknown import stage: {self.stage}")
        if not 0 <= self.progress <= 100:
            raise ValueError(f"Progress out of range: {self.progress}")

    def to_dict(self) -> dict:
        return {"stage": self.stage, "message": self.message, "progress": self.progress}


@dataclass(frozen=True)
class ImportResult:
    success: bool
    imported: int
    skipped: int
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    duplicates: tuple[DuplicateCheck, ...] = ()

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duplicates": [check.to_dict() for check in self.duplicates],
        }


# ---------------------------------------------------------------------------
# Integrity report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DuplicateRecordReport:
    address: str
    record_count: int
    records: tuple[IPAddressRecord, ...]
    severity: str = "CRITICAL"

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "recordCount": self.record_count,
            "severity": self.severity,
            "records": [
                {"id": record.id, "status": record.status, "createdAt": _iso(record.created_at)}
                for record in self.records
            ],
        }


@dataclass(frozen=True)
class ConflictReport:
    ip_address: str
    assignment_count: int
    assignments: tuple[AssignmentRecord, ...]
    severity: str = "CRITICAL"

    def to_dict(self) -> dict:
        return {
            "ipAddress": self.ip_address,
            "assignmentCount": self.assignment_count,
            "severity": self.severity,
            "assignments": [assignment.to_dict() for assignment in self.assignments],
        }


@dataclass(frozen=True)
class MismatchReport:
    address: str
    current_status: str
    expected_status: str
    active_assignments: int
    severity: str = "WARNING"

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "currentStatus": self.current_status,
            "expectedStatus": self.expected_status,
            "activeAssignments": self.active_assignments,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class IntegritySummary:
    total_ips: int
    active_assignments: int
    duplicate_records: int
    conflicts: int
    mismatches: int

    @property
    def total_issues(self) -> int:
        return self.duplicate_records + self.conflicts + self.mismatches

    def to_dict(self) -> dict:
        return {
            "totalIPs": self.total_ips,
            "activeAssignments": self.active_assignments,
            "duplicateRecords": self.duplicate_records,
            "conflicts": self.conflicts,
            "mismatches": self.mismatches,
            "totalIssues": self.total_issues,
        }


@dataclass(frozen=True)
class IntegrityReport:
    summary: IntegritySummary
    duplicate_records: tuple[DuplicateRecordReport, ...]
    conflicts: tuple[ConflictReport, ...]
    mismatches: tuple[MismatchReport, ...]
    status: str
    health_score: int
    recommendations: tuple[str, ...] = ()
    checked_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "healthScore": self.health_score,
            "checkedAt": _iso(self.checked_at),
            "summary": self.summary.to_dict(),
            "duplicateRecords": [item.to_dict() for item in self.duplicate_records],
            "conflicts": [item.to_dict() for item in self.conflicts],
            "mismatches": [item.to_dict() for item in self.mismatches],
            "recommendations": list(self.recommendations),
        }


@dataclass
class CommitOutcome:
    """Mutable tally filled in while equipment items are submitted."""

    imported: int = 0
    errors: list[str] = field(default_factory=list)
    created_ids: list[str] = field(default_factory=list)
