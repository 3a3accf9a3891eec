"""Fold parsed rows into one entry per machine id."""
from __future__ import annotations

import re
from typing import Callable, Iterable

from .addresses import normalize_ip
from .records import EquipmentGroup, RawRow, SystemEntry

# Checked in order; the first keyword found in "<machine id> <system>" wins.
_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("TRUCK", ("truck", "haul")),
    ("EXCAVATOR", ("excavator", "ex-")),
    ("DRILL", ("drill", "fd-")),
    ("LOADER", ("loader", "ld-")),
    ("DOZER", ("dozer", "dz-")),
    ("SHOVEL", ("shovel", "sh-")),
    ("CRUSHER", ("crusher",)),
    ("CONVEYOR", ("conveyor",)),
    ("GRADER", ("grader",)),
)


def exact_machine_id(machine_id: str) -> str:
    return machine_id


def folded_machine_id(machine_id: str) -> str:
    """Case and whitespace insensitive grouping key ("fs 03" == "FS  03")."""
    return re.sub(r"\s+", " ", machine_id.strip()).upper()


def group_by_machine_id(
    rows: Iterable[RawRow],
    key: Callable[[str], str] = exact_machine_id,
) -> list[EquipmentGroup]:
    """
    One EquipmentGroup per distinct machine id, in first-seen order.

    Systems keep file order and are never de-duplicated here; repeated
    addresses are reported separately by the duplicate detector. With a
    non-default ``key`` the group keeps the machine id spelling of its
    first row.
    """
    order: list[str] = []
    machine_ids: dict[str, str] = {}
    systems: dict[str, list[SystemEntry]] = {}

    for row in rows:
        group_key = key(row.machine_id)
        if group_key not in systems:
            order.append(group_key)
            machine_ids[group_key] = row.machine_id
            systems[group_key] = []
        systems[group_key].append(
            SystemEntry(
                system=row.system,
                ip_address=row.ip_address,
                subnet=row.subnet,
                gateway=row.gateway,
                comments=row.comments,
            )
        )

    return [
        EquipmentGroup(machine_id=machine_ids[group_key], systems=tuple(systems[group_key]))
        for group_key in order
    ]


def extract_ip_addresses(groups: Iterable[EquipmentGroup]) -> list[str]:
    """Unique normalized addresses across all groups, in first-seen order."""
    seen: dict[str, None] = {}
    for group in groups:
        for entry in group.systems:
            if entry.ip_address:
                seen.setdefault(normalize_ip(entry.ip_address), None)
    return list(seen)


def infer_equipment_type(machine_id: str, system: str) -> str:
    combined = f"{machine_id} {system}".lower()
    for equipment_type, keywords in _TYPE_KEYWORDS:
        if any(keyword in combined for keyword in keywords):
            return equipment_type
    return "OTHER"
