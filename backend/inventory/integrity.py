"""
Integrity scan over the persisted inventory.

Three checks, all read-only:
- duplicate address records (more than one row for the same address),
- assignment conflicts (more than one active assignment for an address),
- status mismatches (ASSIGNED must mean "has an active assignment").

The two store reads are not taken from one snapshot, so a report produced
while imports are running is advisory. Nothing here repairs anything.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

from .addresses import normalize_ip
from .records import (
    STATUS_ASSIGNED,
    STATUS_AVAILABLE,
    AssignmentRecord,
    ConflictReport,
    DuplicateRecordReport,
    IntegrityReport,
    IntegritySummary,
    IPAddressRecord,
    MismatchReport,
)

if TYPE_CHECKING:
    from .store import InventoryStore

logger = logging.getLogger(__name__)

HEALTHY = "HEALTHY"
WARNING = "WARNING"
CRITICAL = "CRITICAL"

CRITICAL_DEDUCTION = 30
MISMATCH_DEDUCTION = 5


def find_duplicate_records(addresses: Iterable[IPAddressRecord]) -> list[DuplicateRecordReport]:
    by_address: dict[str, list[IPAddressRecord]] = {}
    for record in addresses:
        by_address.setdefault(normalize_ip(record.address), []).append(record)
    return [
        DuplicateRecordReport(address=address, record_count=len(records), records=tuple(records))
        for address, records in by_address.items()
        if len(records) > 1
    ]


def find_assignment_conflicts(assignments: Iterable[AssignmentRecord]) -> list[ConflictReport]:
    by_address: dict[str, list[AssignmentRecord]] = {}
    for assignment in assignments:
        if assignment.is_active:
            by_address.setdefault(normalize_ip(assignment.address), []).append(assignment)

    conflicts: list[ConflictReport] = []
    for address, active in by_address.items():
        if len(active) < 2:
            continue
        ordered = sorted(active, key=lambda item: (item.assigned_at is None, item.assigned_at or datetime.min))
        conflicts.append(
            ConflictReport(ip_address=address, assignment_count=len(active), assignments=tuple(ordered))
        )
    return conflicts


def find_status_mismatches(
    addresses: Iterable[IPAddressRecord],
    assignments: Iterable[AssignmentRecord],
) -> list[MismatchReport]:
    """An address is ASSIGNED exactly when it has at least one active assignment."""
    active_counts = Counter(assignment.ip_address_id for assignment in assignments if assignment.is_active)

    mismatches: list[MismatchReport] = []
    for record in addresses:
        count = active_counts.get(record.id, 0)
        if (record.status == STATUS_ASSIGNED) == (count > 0):
            continue
        mismatches.append(
            MismatchReport(
                address=record.address,
                current_status=record.status,
                expected_status=STATUS_ASSIGNED if count else STATUS_AVAILABLE,
                active_assignments=count,
            )
        )
    return mismatches


def scan_integrity(store: "InventoryStore", checked_at: datetime | None = None) -> IntegrityReport:
    """Read every address and active assignment and report what is inconsistent."""
    addresses = store.list_addresses()
    assignments = [assignment for assignment in store.list_active_assignments() if assignment.is_active]

    duplicates = find_duplicate_records(addresses)
    conflicts = find_assignment_conflicts(assignments)
    mismatches = find_status_mismatches(addresses, assignments)

    for duplicate in duplicates:
        logger.warning("Duplicate address records: %s (%s rows)", duplicate.address, duplicate.record_count)
    for conflict in conflicts:
        logger.warning(
            "Assignment conflict: %s has %s active assignments", conflict.ip_address, conflict.assignment_count
        )
    if mismatches:
        logger.warning("%s address(es) have a status that does not match their assignments", len(mismatches))

    critical = len(duplicates) + len(conflicts)
    if critical:
        status = CRITICAL
    elif mismatches:
        status = WARNING
    else:
        status = HEALTHY
    health_score = max(0, 100 - critical * CRITICAL_DEDUCTION - len(mismatches) * MISMATCH_DEDUCTION)

    summary = IntegritySummary(
        total_ips=len(addresses),
        active_assignments=len(assignments),
        duplicate_records=len(duplicates),
        conflicts=len(conflicts),
        mismatches=len(mismatches),
    )
    logger.info("Integrity scan finished: %s, %s issue(s)", status, summary.total_issues)

    return IntegrityReport(
        summary=summary,
        duplicate_records=tuple(duplicates),
        conflicts=tuple(conflicts),
        mismatches=tuple(mismatches),
        status=status,
        health_score=health_score,
        recommendations=tuple(_recommendations(duplicates, conflicts, mismatches)),
        checked_at=checked_at or datetime.now(timezone.utc),
    )


def _recommendations(
    duplicates: list[DuplicateRecordReport],
    conflicts: list[ConflictReport],
    mismatches: list[MismatchReport],
) -> list[str]:
    lines: list[str] = []
    if duplicates:
        lines.append(
            f"Critical: {len(duplicates)} address(es) are stored more than once; "
            "merge the records so each address has a single row"
        )
    if conflicts:
        lines.append("Critical: the same IP address cannot be assigned to multiple equipment")
        lines.append("Open IP Management to review each conflict and release the extra assignments")
        if len(conflicts) > 1:
            lines.append(f"{len(conflicts)} IP addresses are currently in conflict - prioritize resolution")
    if mismatches:
        lines.append(
            f"{len(mismatches)} address status(es) disagree with their assignments; "
            "resync the status of the listed addresses"
        )
    if not lines:
        lines.append("No duplicate records, assignment conflicts or status mismatches detected")
    return lines
