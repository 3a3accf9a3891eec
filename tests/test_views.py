"""API tests for the import, lookup and integrity endpoints."""
import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework.test import APIClient

from inventory.models import Equipment, ImportHistory, IPAddress

from .conftest import xlsx_bytes

pytestmark = pytest.mark.django_db


@pytest.fixture
def api_client():
    user = get_user_model().objects.create_user(username="ops", password="secret")
    api = APIClient()
    api.force_authenticate(user=user)
    return api


def upload(data, name="equipment.xlsx"):
    return SimpleUploadedFile(name, data, content_type="application/octet-stream")


def test_requires_authentication():
    response = APIClient().get("/api/ip-addresses/")

    assert response.status_code in (401, 403)


def test_preview_and_commit_flow(api_client, equipment_xlsx):
    response = api_client.post("/api/import/preview/", {"file": upload(equipment_xlsx)}, format="multipart")

    assert response.status_code == 200
    preview = response.json()
    assert preview["sheet"] == "Equipment"
    assert preview["totalRows"] == 3
    assert preview["totalIPs"] == 2
    assert [group["machineId"] for group in preview["groups"]] == ["FS03", "FS02"]
    assert preview["duplicateIPs"][0]["ipAddress"] == "10.31.141.216"
    assert preview["existingInSystem"] == 0
    assert Equipment.objects.count() == 0

    response = api_client.post(
        "/api/import/commit/",
        {"groups": preview["groups"], "confirmed": True, "filename": "equipment.xlsx", "sheet": "Equipment"},
        format="json",
    )

    assert response.status_code == 200
    body = response.json()
    assert body["stage"] == "complete"
    assert body["result"]["imported"] == 2
    assert body["result"]["success"] is True
    assert sorted(Equipment.objects.values_list("name", flat=True)) == ["FS02", "FS03"]
    assert IPAddress.objects.count() == 2
    assert ImportHistory.objects.get().original_filename == "equipment.xlsx"

    again = api_client.post(
        "/api/import/commit/", {"groups": preview["groups"], "confirmed": True}, format="json"
    ).json()
    assert again["stage"] == "error"
    assert again["result"]["skipped"] == 3
    assert Equipment.objects.count() == 2


def test_commit_requires_confirmation(api_client):
    groups = [{"machineId": "FS03", "systems": [{"system": "PLC", "ipAddress": "10.0.0.1"}]}]

    response = api_client.post("/api/import/commit/", {"groups": groups}, format="json")

    assert response.status_code == 400
    assert "confirmed" in response.json()
    assert Equipment.objects.count() == 0


def test_commit_rejects_invalid_addresses(api_client):
    groups = [
        {
            "machineId": "FS03",
            "systems": [
                {"system": "PLC", "ipAddress": "not-an-ip"},
                {"system": "HMI", "ipAddress": "999.1.1.1"},
            ],
        }
    ]

    response = api_client.post("/api/import/commit/", {"groups": groups, "confirmed": True}, format="json")

    assert response.status_code == 400
    systems = response.json()["groups"][0]["systems"]
    assert "not a valid IPv4 address" in systems[0]["ipAddress"][0]
    assert "not a valid IPv4 address" in systems[1]["ipAddress"][0]
    assert IPAddress.objects.count() == 0


def test_commit_accepts_leading_zero_addresses(api_client):
    groups = [{"machineId": "FS03", "systems": [{"system": "PLC", "ipAddress": "010.031.141.216"}]}]

    response = api_client.post("/api/import/commit/", {"groups": groups, "confirmed": True}, format="json")

    assert response.status_code == 200
    assert list(IPAddress.objects.values_list("address", flat=True)) == ["10.31.141.216"]


def test_preview_asks_for_sheet(api_client, equipment_rows):
    data = xlsx_bytes({"North": equipment_rows, "South": equipment_rows})

    body = api_client.post("/api/import/preview/", {"file": upload(data)}, format="multipart").json()

    assert body["needsSheetSelection"] is True
    assert [sheet["name"] for sheet in body["sheets"]] == ["North", "South"]

    body = api_client.post(
        "/api/import/preview/", {"file": upload(data), "sheet": "South"}, format="multipart"
    ).json()
    assert body["sheet"] == "South"
    assert body["needsSheetSelection"] is False


def test_preview_rejects_unreadable_file(api_client):
    response = api_client.post("/api/import/preview/", {"file": upload(b"nope")}, format="multipart")

    assert response.status_code == 400
    body = response.json()
    assert body["stage"] == "reading"
    assert body["errorType"] == "InvalidWorkbook"
    assert body["progress"]["stage"] == "error"


@override_settings(INVENTORY_IMPORT={"MAX_UPLOAD_BYTES": 10})
def test_preview_rejects_large_upload(api_client, equipment_xlsx):
    response = api_client.post("/api/import/preview/", {"file": upload(equipment_xlsx)}, format="multipart")

    assert response.status_code == 400
    assert "larger than 10 bytes" in response.json()["error"]


def test_equipment_create_lookup_and_conflict(api_client):
    payload = {
        "machineId": "FS03",
        "name": "FS03",
        "type": "drill",
        "ipAddresses": [{"address": "10.0.0.1", "subnet": "255.255.255.0"}],
    }

    created = api_client.post("/api/equipment/", payload, format="json")
    assert created.status_code == 201
    assert Equipment.objects.get(pk=created.json()["id"]).equipment_type == "DRILL"

    found = api_client.get("/api/ip-addresses/lookup/", {"address": "010.000.000.001"})
    assert found.status_code == 200
    assert found.json()["owner"]["name"] == "FS03"
    assert api_client.get("/api/ip-addresses/lookup/", {"address": "10.9.9.9"}).status_code == 404

    conflict = api_client.post("/api/equipment/", dict(payload, machineId="FS02", name="FS02"), format="json")
    assert conflict.status_code == 409
    assert conflict.json()["machineId"] == "FS02"

    assert [item["address"] for item in api_client.get("/api/ip-addresses/").json()] == ["10.0.0.1"]
    assert api_client.get("/api/ip-assignments/active/").json()[0]["equipmentName"] == "FS03"


def test_check_duplicates(api_client):
    api_client.post(
        "/api/equipment/",
        {"machineId": "FS03", "name": "FS03", "ipAddresses": [{"address": "10.0.0.1"}]},
        format="json",
    )

    body = api_client.post(
        "/api/ip-addresses/check-duplicates/", {"ipAddresses": ["10.0.0.1", "10.0.0.2"]}, format="json"
    ).json()

    assert body["totalChecked"] == 2
    assert body["totalDuplicates"] == 1
    assert body["duplicates"][0]["existingEquipment"]["name"] == "FS03"


def test_integrity_report_and_pdf(api_client):
    IPAddress.objects.create(address="10.0.0.1", status="ASSIGNED")

    report = api_client.get("/api/integrity/").json()
    assert report["status"] == "WARNING"
    assert report["healthScore"] == 95
    assert report["summary"]["mismatches"] == 1

    pdf = api_client.get("/api/integrity/pdf/")
    assert pdf.status_code == 200
    assert pdf["Content-Type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")


def test_template_download(api_client):
    response = api_client.get("/api/import/template/")

    assert response.status_code == 200
    assert "equipment-import-template.csv" in response["Content-Disposition"]
    assert response.content.decode("utf-8").startswith("MACHINE ID,SYSTEM,IP ADDRESS")


def test_history_records_and_lists_latest(api_client):
    for index in range(7):
        response = api_client.post(
            "/api/import/history/",
            {
                "filename": f"file{index}.xlsx",
                "sheet": "Sheet1",
                "result": {"success": True, "imported": index, "skipped": 0},
            },
            format="json",
        )
        assert response.status_code == 201

    entries = api_client.get("/api/import/history/").json()

    assert len(entries) == 5
    assert entries[0]["original_filename"] == "file6.xlsx"
