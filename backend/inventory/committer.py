"""
Turning filtered equipment groups into create requests against the store.

The store is the unit of atomicity per equipment: one request creates the
equipment with all of its addresses or fails for that item alone. Nothing
here assumes the batch as a whole is atomic.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Sequence

from .addresses import normalize_ip
from .errors import NoImportableData, PerItemCommitFailure
from .grouping import infer_equipment_type
from .records import AddressSpec, CommitOutcome, DuplicateCheck, EquipmentGroup, EquipmentSpec

if TYPE_CHECKING:
    from .store import InventoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOutcome:
    groups: tuple[EquipmentGroup, ...]
    skipped: int
    warnings: tuple[str, ...]


def filter_duplicates(
    groups: Iterable[EquipmentGroup],
    checks: Iterable[DuplicateCheck],
) -> FilterOutcome:
    """
    Drop addresses the inventory already has.

    A group keeps its still-new systems; a group left with none is removed.
    ``skipped`` counts dropped addresses, with one warning per address.
    """
    existing = {normalize_ip(check.ip_address) for check in checks if check.exists_in_system}

    kept: list[EquipmentGroup] = []
    warnings: list[str] = []
    skipped = 0
    for group in groups:
        survivors = []
        for entry in group.systems:
            if normalize_ip(entry.ip_address) in existing:
                warnings.append(
                    f"Skipped {entry.ip_address} ({entry.system}) - already exists in system"
                )
                skipped += 1
                continue
            survivors.append(entry)
        if survivors:
            kept.append(EquipmentGroup(machine_id=group.machine_id, systems=tuple(survivors)))

    return FilterOutcome(groups=tuple(kept), skipped=skipped, warnings=tuple(warnings))


def build_equipment_spec(group: EquipmentGroup, default_subnet: str = "255.255.255.0") -> EquipmentSpec:
    """Creation payload for one group: named after its machine id, one address per system."""
    first_system = group.systems[0].system if group.systems else ""
    comments = [entry.comments for entry in group.systems if entry.comments]
    notes = "; ".join(comments) or f"Imported via bulk import - {len(group.systems)} systems"

    return EquipmentSpec(
        machine_id=group.machine_id,
        name=group.machine_id,
        type=infer_equipment_type(group.machine_id, first_system),
        serial_number=group.machine_id,
        notes=notes,
        addresses=tuple(
            AddressSpec(
                address=normalize_ip(entry.ip_address),
                subnet=entry.subnet or default_subnet,
                gateway=entry.gateway,
                notes=entry.comments,
            )
            for entry in group.systems
        ),
    )


def commit_groups(
    store: "InventoryStore",
    groups: Sequence[EquipmentGroup],
    default_subnet: str = "255.255.255.0",
    outcome: CommitOutcome | None = None,
) -> CommitOutcome:
    """
    Submit every group as one creation request.

    A rejected item is recorded in ``errors`` and the loop moves on.
    NetworkOrStoreError is not caught: a transport failure ends the run.
    Pass your own ``outcome`` to keep the tally of what was already created
    when that happens.
    An empty batch raises NoImportableData without touching the store.
    """
    if not groups:
        raise NoImportableData("All IP addresses already exist in the system")

    if outcome is None:
        outcome = CommitOutcome()
    for group in groups:
        spec = build_equipment_spec(group, default_subnet)
        try:
            created_id = store.create_equipment_with_addresses(spec)
        except PerItemCommitFailure as exc:
            logger.warning("Equipment %s rejected: %s", group.machine_id, exc.reason)
            outcome.errors.append(exc.message)
            continue
        outcome.imported += 1
        outcome.created_ids.append(str(created_id))
        logger.debug("Created equipment %s (%s) with %s address(es)", spec.name, created_id, len(spec.addresses))

    logger.info("Committed %s of %s equipment item(s)", outcome.imported, len(groups))
    return outcome
