"""
The small CRUD surface the import pipeline and the integrity scanner need.

`InventoryStore` is the contract. `DjangoInventoryStore` implements it on top
of the ORM; `inventory.remote.RestInventoryStore` implements it over HTTP.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Protocol

from django.db import DatabaseError, DataError, IntegrityError, transaction

from .errors import NetworkOrStoreError, PerItemCommitFailure
from .models import Equipment, ImportHistory, IPAddress, IPAssignment
from .records import (
    STATUS_ASSIGNED,
    AssignmentRecord,
    EquipmentRef,
    EquipmentSpec,
    ImportResult,
    IPAddressRecord,
)

logger = logging.getLogger(__name__)


class InventoryStore(Protocol):
    def find_address(self, address: str) -> IPAddressRecord | None:
        ...

    def list_addresses(self) -> list[IPAddressRecord]:
        ...

    def list_active_assignments(self) -> list[AssignmentRecord]:
        ...

    def create_equipment_with_addresses(self, spec: EquipmentSpec) -> str:
        ...

    def record_import(self, result: ImportResult, filename: str = "", sheet_name: str = "") -> None:
        ...


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.error("Inventory database error while %s: %s", action, exc)
        raise NetworkOrStoreError(f"Inventory store failed while {action}: {exc}") from exc


def _equipment_ref(equipment: Equipment) -> EquipmentRef:
    return EquipmentRef(id=str(equipment.pk), name=equipment.name, type=equipment.equipment_type)


def _assigned_by(assignment: IPAssignment) -> str:
    user = assignment.assigned_by
    if user is None:
        return "System"
    return user.get_full_name() or user.get_username()


class DjangoInventoryStore:
    """ORM-backed store. `user` is stamped on assignments created by imports."""

    def __init__(self, user=None):
        self.user = user if getattr(user, "is_authenticated", False) else None

    def find_address(self, address: str) -> IPAddressRecord | None:
        with _store_errors(f"looking up {address}"):
            ip = IPAddress.objects.filter(address=address).order_by("created_at", "id").first()
            if ip is None:
                return None
            active = (
                ip.assignments.filter(is_active=True)
                .select_related("equipment")
                .order_by("assigned_at", "id")
                .first()
            )
            owner = _equipment_ref(active.equipment) if active else None
            return IPAddressRecord(
                id=str(ip.pk),
                address=ip.address,
                status=ip.status,
                owner=owner,
                created_at=ip.created_at,
            )

    def list_addresses(self) -> list[IPAddressRecord]:
        with _store_errors("listing addresses"):
            return [
                IPAddressRecord(
                    id=str(ip.pk),
                    address=ip.address,
                    status=ip.status,
                    created_at=ip.created_at,
                )
                for ip in IPAddress.objects.order_by("address", "created_at", "id")
            ]

    def list_active_assignments(self) -> list[AssignmentRecord]:
        with _store_errors("listing active assignments"):
            queryset = (
                IPAssignment.objects.filter(is_active=True)
                .select_related("ip_address", "equipment", "assigned_by")
                .order_by("assigned_at", "id")
            )
            return [
                AssignmentRecord(
                    id=str(assignment.pk),
                    ip_address_id=str(assignment.ip_address_id),
                    address=assignment.ip_address.address,
                    equipment_id=str(assignment.equipment_id),
                    equipment_name=assignment.equipment.name,
                    equipment_type=assignment.equipment.equipment_type,
                    is_active=assignment.is_active,
                    assigned_at=assignment.assigned_at,
                    assigned_by=_assigned_by(assignment),
                )
                for assignment in queryset
            ]

    def create_equipment_with_addresses(self, spec: EquipmentSpec) -> str:
        """
        Create the equipment, its addresses and active assignments in one
        transaction.

        The addresses are checked again inside the transaction; if any of
        them exists by now the whole item is rejected. Constraint and value
        errors (IntegrityError, DataError) reject only this item; any other
        DatabaseError means the store itself failed. An address repeated
        within the same equipment is stored once.
        """
        unique_specs = {}
        for address_spec in spec.addresses:
            unique_specs.setdefault(address_spec.address, address_spec)

        try:
            with transaction.atomic():
                taken = sorted(
                    set(
                        IPAddress.objects.filter(address__in=list(unique_specs)).values_list(
                            "address", flat=True
                        )
                    )
                )
                if taken:
                    raise PerItemCommitFailure(
                        spec.machine_id, f"IP address(es) already exist: {', '.join(taken)}"
                    )

                equipment = Equipment.objects.create(
                    name=spec.name,
                    equipment_type=spec.type,
                    serial_number=spec.serial_number,
                    status=spec.status,
                    notes=spec.notes,
                )
                for address_spec in unique_specs.values():
                    ip = IPAddress.objects.create(
                        address=address_spec.address,
                        subnet=address_spec.subnet,
                        gateway=address_spec.gateway,
                        notes=address_spec.notes,
                        status=STATUS_ASSIGNED,
                    )
                    IPAssignment.objects.create(
                        ip_address=ip,
                        equipment=equipment,
                        assigned_by=self.user,
                        is_active=True,
                        notes="Bulk import",
                    )
        except IntegrityError as exc:
            raise PerItemCommitFailure(spec.machine_id, str(exc)) from exc
        except DataError as exc:
            logger.warning("Database rejected values for %s: %s", spec.machine_id, exc)
            raise PerItemCommitFailure(spec.machine_id, f"Invalid value: {exc}") from exc
        except DatabaseError as exc:
            logger.error("Database error creating %s: %s", spec.machine_id, exc)
            raise NetworkOrStoreError(f"Inventory store failed creating {spec.machine_id}: {exc}") from exc

        return str(equipment.pk)

    def record_import(self, result: ImportResult, filename: str = "", sheet_name: str = "") -> None:
        summary = (
            f"Imported: {result.imported}, Skipped: {result.skipped}, "
            f"Errors: {len(result.errors)}, Warnings: {len(result.warnings)}"
        )
        with _store_errors("recording import history"):
            ImportHistory.objects.create(
                original_filename=filename[:255],
                sheet_name=sheet_name[:255],
                success=result.success,
                imported=result.imported,
                skipped=result.skipped,
                error_count=len(result.errors),
                summary=summary,
            )
