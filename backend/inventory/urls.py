"""
URL patterns for the `inventory` app.

Import flow, integrity checks and the small CRUD surface used by remote
import clients.
"""
from django.urls import path

from .views import (
    ActiveAssignmentListView,
    CheckDuplicatesView,
    EquipmentCreateView,
    ImportCommitView,
    ImportHistoryView,
    ImportPreviewView,
    ImportTemplateView,
    IntegrityReportPdfView,
    IntegrityReportView,
    IPAddressListView,
    IPAddressLookupView,
)

urlpatterns = [
    path("import/preview/", ImportPreviewView.as_view(), name="import-preview"),
    path("import/commit/", ImportCommitView.as_view(), name="import-commit"),
    path("import/template/", ImportTemplateView.as_view(), name="import-template"),
    path("import/history/", ImportHistoryView.as_view(), name="import-history"),
    path("ip-addresses/", IPAddressListView.as_view(), name="ip-address-list"),
    path("ip-addresses/lookup/", IPAddressLookupView.as_view(), name="ip-address-lookup"),
    path("ip-addresses/check-duplicates/", CheckDuplicatesView.as_view(), name="ip-check-duplicates"),
    path("ip-assignments/active/", ActiveAssignmentListView.as_view(), name="ip-assignments-active"),
    path("equipment/", EquipmentCreateView.as_view(), name="equipment-create"),
    path("integrity/", IntegrityReportView.as_view(), name="integrity-report"),
    path("integrity/pdf/", IntegrityReportPdfView.as_view(), name="integrity-report-pdf"),
]
