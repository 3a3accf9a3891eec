"""
Duplicate detection for an import.

Two separate questions are answered here:
- which addresses repeat inside the uploaded file, and
- which addresses already exist in the persisted inventory.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from .addresses import normalize_ip
from .records import DuplicateCheck, DuplicateInFile, Occurrence, RawRow

if TYPE_CHECKING:
    from .store import InventoryStore

logger = logging.getLogger(__name__)


def find_in_file_duplicates(rows: Iterable[RawRow]) -> list[DuplicateInFile]:
    """
    Report every normalized address carried by two or more rows.

    Works on the flat rows, not on the groups, so an address copied onto two
    different machines is still caught. The first row bearing an address is
    the canonical one and is left out of ``occurrences``; the rest follow
    file order. Results are ordered by where each address first appears.
    """
    by_address: dict[str, list[RawRow]] = {}
    for row in rows:
        by_address.setdefault(normalize_ip(row.ip_address), []).append(row)

    duplicates: list[DuplicateInFile] = []
    for address, bearing in by_address.items():
        if len(bearing) < 2:
            continue
        ordered = sorted(bearing, key=lambda item: item.row_index)
        duplicates.append(
            DuplicateInFile(
                ip_address=address,
                occurrences=tuple(
                    Occurrence(row=row.row_index, machine_id=row.machine_id, system=row.system)
                    for row in ordered[1:]
                ),
            )
        )
    return duplicates


def check_system_duplicates(store: "InventoryStore", addresses: Iterable[str]) -> list[DuplicateCheck]:
    """
    Look every candidate address up in the inventory.

    Read only. Candidates are normalized and de-duplicated first, so the
    result has exactly one entry per unique address. Store failures are not
    swallowed; they propagate as NetworkOrStoreError.
    """
    unique: dict[str, None] = {}
    for address in addresses:
        normalized = normalize_ip(address)
        if normalized:
            unique.setdefault(normalized, None)

    checks: list[DuplicateCheck] = []
    for address in unique:
        record = store.find_address(address)
        if record is None:
            checks.append(DuplicateCheck(ip_address=address, exists_in_system=False))
        else:
            checks.append(
                DuplicateCheck(
                    ip_address=address,
                    exists_in_system=True,
                    existing_equipment=record.owner,
                )
            )

    existing = sum(1 for check in checks if check.exists_in_system)
    logger.info("Checked %s address(es) against the inventory, %s already exist", len(checks), existing)
    return checks


def duplicate_report(checks: Iterable[DuplicateCheck]) -> list[str]:
    """Human readable lines for addresses that already exist."""
    lines: list[str] = []
    for check in checks:
        if not check.exists_in_system:
            continue
        if check.existing_equipment is not None:
            lines.append(
                f"{check.ip_address} - Already assigned to "
                f"{check.existing_equipment.name} ({check.existing_equipment.type})"
            )
        else:
            lines.append(f"{check.ip_address} - Already exists in system")
    return lines
