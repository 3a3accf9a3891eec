"""
Inventory store that talks to another instance of this backend over HTTP.

Used by `manage.py import_equipment --remote ...` so a file can be imported
from a field laptop into the site server. Same contract as
`DjangoInventoryStore`; only the transport differs.
"""
from __future__ import annotations

import logging
from typing import Any

import requests
from django.utils.dateparse import parse_datetime

from .errors import NetworkOrStoreError, PerItemCommitFailure
from .records import AssignmentRecord, EquipmentRef, EquipmentSpec, ImportResult, IPAddressRecord

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data)
    return str(data)


def _equipment(data: dict | None) -> EquipmentRef | None:
    if not data:
        return None
    return EquipmentRef(id=str(data["id"]), name=data.get("name", ""), type=data.get("type", ""))


def _address_record(data: dict) -> IPAddressRecord:
    created = data.get("createdAt")
    return IPAddressRecord(
        id=str(data["id"]),
        address=data["address"],
        status=data["status"],
        owner=_equipment(data.get("owner")),
        created_at=parse_datetime(created) if created else None,
    )


def _assignment_record(data: dict) -> AssignmentRecord:
    assigned = data.get("assignedAt")
    return AssignmentRecord(
        id=str(data["id"]),
        ip_address_id=str(data["ipAddressId"]),
        address=data["address"],
        equipment_id=str(data["equipmentId"]),
        equipment_name=data.get("equipmentName") or "Unknown",
        equipment_type=data.get("equipmentType") or "UNKNOWN",
        is_active=bool(data.get("isActive", True)),
        assigned_at=parse_datetime(assigned) if assigned else None,
        assigned_by=data.get("assignedBy") or "System",
    )


class RestInventoryStore:
    """
    HTTP client for the /api/ endpoints of this project.

    Basic auth credentials are reused for every request, like the dashboard
    clients do.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("Request to %s failed: %s", url, exc)
            raise NetworkOrStoreError(f"Could not reach inventory at {url}: {exc}") from exc
        if response.status_code >= 500 or response.status_code in (401, 403):
            message = _error_message(response)
            logger.error("Inventory at %s answered %s: %s", url, response.status_code, message)
            raise NetworkOrStoreError(f"Inventory request {method} {path} failed ({response.status_code}): {message}")
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkOrStoreError(f"Inventory returned invalid JSON from {response.url}") from exc

    def find_address(self, address: str) -> IPAddressRecord | None:
        response = self._request("GET", "/ip-addresses/lookup/", params={"address": address})
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise NetworkOrStoreError(f"Address lookup failed for {address}: {_error_message(response)}")
        return _address_record(self._json(response))

    def list_addresses(self) -> list[IPAddressRecord]:
        response = self._request("GET", "/ip-addresses/")
        if response.status_code != 200:
            raise NetworkOrStoreError(f"Listing addresses failed: {_error_message(response)}")
        return [_address_record(item) for item in self._json(response)]

    def list_active_assignments(self) -> list[AssignmentRecord]:
        response = self._request("GET", "/ip-assignments/active/")
        if response.status_code != 200:
            raise NetworkOrStoreError(f"Listing assignments failed: {_error_message(response)}")
        return [_assignment_record(item) for item in self._json(response)]

    def create_equipment_with_addresses(self, spec: EquipmentSpec) -> str:
        response = self._request("POST", "/equipment/", json=spec.to_dict())
        if response.status_code in (200, 201):
            return str(self._json(response)["id"])
        raise PerItemCommitFailure(spec.machine_id, _error_message(response))

    def record_import(self, result: ImportResult, filename: str = "", sheet_name: str = "") -> None:
        payload = {"filename": filename, "sheet": sheet_name, "result": result.to_dict()}
        response = self._request("POST", "/import/history/", json=payload)
        if response.status_code not in (200, 201):
            raise NetworkOrStoreError(f"Recording import history failed: {_error_message(response)}")
