"""
Serializers used by the API views.

Incoming JSON uses the dashboard's camelCase names, so the fields are
declared that way and converted into the record dataclasses here.
"""
from rest_framework import serializers

from .addresses import is_valid_ipv4
from .models import ImportHistory
from .records import AddressSpec, EquipmentGroup, EquipmentSpec, ImportResult, SystemEntry


class ImportUploadSerializer(serializers.Serializer):
    """The workbook to preview, plus the sheet when the user already picked one."""

    file = serializers.FileField()
    sheet = serializers.CharField(required=False, allow_blank=True, default="")


class SystemEntrySerializer(serializers.Serializer):
    system = serializers.CharField(allow_blank=True, default="")
    ipAddress = serializers.CharField()
    subnet = serializers.CharField(required=False, allow_blank=True, default="")
    gateway = serializers.CharField(required=False, allow_blank=True, default="")
    comments = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_ipAddress(self, value: str) -> str:
        if not is_valid_ipv4(value):
            raise serializers.ValidationError(f"{value} is not a valid IPv4 address.")
        return value.strip()


class EquipmentGroupSerializer(serializers.Serializer):
    machineId = serializers.CharField()
    systems = SystemEntrySerializer(many=True, allow_empty=False)


class ImportCommitSerializer(serializers.Serializer):
    """
    Groups from the preview step, sent back once the user confirmed.

    `confirmed` must be true; the commit endpoint refuses to write otherwise.
    """

    groups = EquipmentGroupSerializer(many=True)
    confirmed = serializers.BooleanField(default=False)
    filename = serializers.CharField(required=False, allow_blank=True, default="")
    sheet = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_confirmed(self, value: bool) -> bool:
        if not value:
            raise serializers.ValidationError("Import must be confirmed after reviewing the preview.")
        return value


class CheckDuplicatesSerializer(serializers.Serializer):
    ipAddresses = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class AddressSpecSerializer(serializers.Serializer):
    address = serializers.IPAddressField(protocol="IPv4")
    subnet = serializers.CharField(required=False, allow_blank=True, default="")
    gateway = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class EquipmentCreateSerializer(serializers.Serializer):
    machineId = serializers.CharField()
    name = serializers.CharField()
    type = serializers.CharField(default="OTHER")
    serialNumber = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.CharField(required=False, default="OFFLINE")
    ipAddresses = AddressSpecSerializer(many=True, allow_empty=False)


class ImportResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    imported = serializers.IntegerField(min_value=0)
    skipped = serializers.IntegerField(min_value=0)
    errors = serializers.ListField(child=serializers.CharField(), default=list)
    warnings = serializers.ListField(child=serializers.CharField(), default=list)


class HistoryRecordSerializer(serializers.Serializer):
    """Import outcome reported by a remote client."""

    filename = serializers.CharField(required=False, allow_blank=True, default="")
    sheet = serializers.CharField(required=False, allow_blank=True, default="")
    result = ImportResultSerializer()


class ImportHistorySerializer(serializers.ModelSerializer):
    """Compact representation of one import run."""

    class Meta:
        model = ImportHistory
        fields = [
            "id",
            "uploaded_at",
            "original_filename",
            "sheet_name",
            "success",
            "imported",
            "skipped",
            "error_count",
            "summary",
        ]


def groups_from_data(groups: list[dict]) -> list[EquipmentGroup]:
    return [
        EquipmentGroup(
            machine_id=group["machineId"],
            systems=tuple(
                SystemEntry(
                    system=entry["system"],
                    ip_address=entry["ipAddress"],
                    subnet=entry["subnet"],
                    gateway=entry["gateway"],
                    comments=entry["comments"],
                )
                for entry in group["systems"]
            ),
        )
        for group in groups
    ]


def equipment_spec_from_data(data: dict) -> EquipmentSpec:
    return EquipmentSpec(
        machine_id=data["machineId"],
        name=data["name"],
        type=data["type"].upper(),
        serial_number=data["serialNumber"],
        notes=data["notes"],
        status=data["status"].upper(),
        addresses=tuple(
            AddressSpec(
                address=item["address"],
                subnet=item["subnet"],
                gateway=item["gateway"],
                notes=item["notes"],
            )
            for item in data["ipAddresses"]
        ),
    )


def import_result_from_data(data: dict) -> ImportResult:
    return ImportResult(
        success=data["success"],
        imported=data["imported"],
        skipped=data["skipped"],
        errors=tuple(data["errors"]),
        warnings=tuple(data["warnings"]),
    )
