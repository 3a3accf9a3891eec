"""Persisted inventory: equipment, their IP addresses, assignments and import runs."""
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class Equipment(models.Model):
    """
    One physical unit (truck, drill, shovel, ...).

    Bulk imports use the spreadsheet MACHINE ID as both name and serial number.
    """

    name = models.CharField(max_length=255)
    equipment_type = models.CharField(max_length=50, default="OTHER")
    serial_number = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, default="OFFLINE")
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.name} ({self.equipment_type})"


class IPAddress(models.Model):
    """
    One network address.

    `address` is indexed, not unique. Rows sharing an address are reported
    by the integrity scan; the import path checks before it writes.
    """

    STATUS_CHOICES = [
        ("AVAILABLE", "Available"),
        ("ASSIGNED", "Assigned"),
        ("RESERVED", "Reserved"),
        ("OFFLINE", "Offline"),
    ]

    address = models.CharField(max_length=45, db_index=True)
    subnet = models.CharField(max_length=45, blank=True)
    gateway = models.CharField(max_length=45, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="AVAILABLE")
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.address} [{self.status}]"


class IPAssignment(models.Model):
    """Binding of an address to an equipment unit; only `is_active` ones are in effect."""

    ip_address = models.ForeignKey(IPAddress, related_name="assignments", on_delete=models.CASCADE)
    equipment = models.ForeignKey(Equipment, related_name="ip_assignments", on_delete=models.CASCADE)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="ip_assignments",
        on_delete=models.SET_NULL,
    )
    is_active = models.BooleanField(default=True)
    assigned_at = models.DateTimeField(default=timezone.now)
    released_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    def __str__(self) -> str:  # type: ignore[override]
        state = "active" if self.is_active else "released"
        return f"{self.ip_address_id} -> {self.equipment_id} ({state})"


class ImportHistory(models.Model):
    """One row per committed bulk import, shown in the "Recent imports" panel."""

    uploaded_at = models.DateTimeField(auto_now_add=True)
    original_filename = models.CharField(max_length=255, blank=True)
    sheet_name = models.CharField(max_length=255, blank=True)
    success = models.BooleanField(default=False)
    imported = models.PositiveIntegerField(default=0)
    skipped = models.PositiveIntegerField(default=0)
    error_count = models.PositiveIntegerField(default=0)
    summary = models.TextField(blank=True)

    def __str__(self) -> str:  # type: ignore[override]
        return f"Import on {self.uploaded_at:%Y-%m-%d %H:%M} - {self.original_filename}"
