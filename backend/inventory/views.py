"""
API views for the `inventory` app.

The flow the dashboard follows:
- upload a workbook to the preview endpoint, get groups, in-file duplicates
  and the addresses that already exist back,
- send the (possibly edited) groups to the commit endpoint after the user
  confirmed, get the ImportResult back.

The remaining endpoints are the plain CRUD surface the remote store uses,
the integrity report and the template download.
"""
from __future__ import annotations

from django.http import HttpResponse
from django.utils.timezone import now
from rest_framework.authentication import BasicAuthentication, SessionAuthentication
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .addresses import normalize_ip
from .conf import import_setting
from .duplicates import check_system_duplicates
from .errors import ImportStageError, NetworkOrStoreError, PerItemCommitFailure
from .integrity import scan_integrity
from .models import ImportHistory
from .pipeline import ImportPipeline
from .reports import render_integrity_pdf
from .serializers import (
    CheckDuplicatesSerializer,
    EquipmentCreateSerializer,
    HistoryRecordSerializer,
    ImportCommitSerializer,
    ImportHistorySerializer,
    ImportUploadSerializer,
    equipment_spec_from_data,
    groups_from_data,
    import_result_from_data,
)
from .store import DjangoInventoryStore
from .template import TEMPLATE_FILENAME, build_template_csv


def _store_for(request) -> DjangoInventoryStore:
    return DjangoInventoryStore(user=request.user)


def _store_unavailable(exc: NetworkOrStoreError) -> Response:
    return Response(
        {"error": exc.message, "stage": exc.stage},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


class ImportPreviewView(APIView):
    """
    Read the uploaded workbook and return everything the preview step shows.

    When more than one sheet has data and no `sheet` was sent, only the
    sheet list comes back with `needsSheetSelection: true`.
    """

    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ImportUploadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        upload = serializer.validated_data["file"]
        max_bytes = import_setting("MAX_UPLOAD_BYTES")
        if upload.size > max_bytes:
            return Response(
                {"error": f"File is larger than {max_bytes} bytes.", "stage": "reading"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        pipeline = ImportPipeline(_store_for(request))
        try:
            read = pipeline.read(upload.read(), upload.name)
            sheet = serializer.validated_data["sheet"] or read.selected_sheet
            if not sheet:
                return Response(read.to_dict(), status=status.HTTP_200_OK)
            preview = pipeline.parse(read, sheet)
        except ImportStageError as exc:
            return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)

        payload = preview.to_dict()
        payload["sheets"] = [info.to_dict() for info in read.sheets]
        payload["needsSheetSelection"] = False
        payload["progress"] = [value.to_dict() for value in read.progress + preview.progress]
        return Response(payload, status=status.HTTP_200_OK)


class ImportCommitView(APIView):
    """Re-check, filter and create the confirmed groups."""

    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ImportCommitSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        pipeline = ImportPipeline(_store_for(request))
        try:
            commit = pipeline.commit(
                groups_from_data(data["groups"]),
                filename=data["filename"],
                sheet_name=data["sheet"],
            )
        except ImportStageError as exc:
            return Response(exc.to_dict(), status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(commit.to_dict(), status=status.HTTP_200_OK)


class CheckDuplicatesView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = CheckDuplicatesSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            checks = check_system_duplicates(_store_for(request), serializer.validated_data["ipAddresses"])
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)

        return Response(
            {
                "duplicates": [check.to_dict() for check in checks],
                "totalChecked": len(checks),
                "totalDuplicates": sum(1 for check in checks if check.exists_in_system),
            },
            status=status.HTTP_200_OK,
        )


class IPAddressListView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        try:
            records = _store_for(request).list_addresses()
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        return Response([record.to_dict() for record in records], status=status.HTTP_200_OK)


class IPAddressLookupView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        address = normalize_ip(request.query_params.get("address", ""))
        if not address:
            return Response({"error": "address is required"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            record = _store_for(request).find_address(address)
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        if record is None:
            return Response({"error": f"{address} not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(record.to_dict(), status=status.HTTP_200_OK)


class ActiveAssignmentListView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        try:
            assignments = _store_for(request).list_active_assignments()
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        return Response([assignment.to_dict() for assignment in assignments], status=status.HTTP_200_OK)


class EquipmentCreateView(APIView):
    """Create one equipment with all of its addresses, or nothing."""

    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = EquipmentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        spec = equipment_spec_from_data(serializer.validated_data)
        try:
            created_id = _store_for(request).create_equipment_with_addresses(spec)
        except PerItemCommitFailure as exc:
            return Response({"error": exc.reason, "machineId": exc.machine_id}, status=status.HTTP_409_CONFLICT)
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        return Response({"id": created_id}, status=status.HTTP_201_CREATED)


class IntegrityReportView(APIView):
    """Run the integrity scan now. Reports are never cached."""

    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        try:
            report = scan_integrity(_store_for(request))
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        return Response(report.to_dict(), status=status.HTTP_200_OK)


class IntegrityReportPdfView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        try:
            report = scan_integrity(_store_for(request))
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        response = HttpResponse(render_integrity_pdf(report), content_type="application/pdf")
        filename = f"IP_Integrity_Report_{now():%Y%m%d_%H%M%S}.pdf"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


class ImportTemplateView(APIView):
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        response = HttpResponse(build_template_csv(), content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{TEMPLATE_FILENAME}"'
        return response


class ImportHistoryView(APIView):
    """Latest import runs, newest first; remote clients POST their outcome here."""

    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        entries = ImportHistory.objects.order_by("-uploaded_at", "-id")[: import_setting("HISTORY_LIMIT")]
        serializer = ImportHistorySerializer(entries, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = HistoryRecordSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            _store_for(request).record_import(
                import_result_from_data(data["result"]),
                filename=data["filename"],
                sheet_name=data["sheet"],
            )
        except NetworkOrStoreError as exc:
            return _store_unavailable(exc)
        return Response({"ok": True}, status=status.HTTP_201_CREATED)
