"""
Printable integrity report.

Text only, built with ReportLab's canvas. The dashboard draws the charts;
this is the version people attach to a ticket.
"""
from __future__ import annotations

from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .records import IntegrityReport

LEFT = 40
INDENT = 60
BOTTOM_MARGIN = 60


class _PageWriter:
    """Keeps track of the cursor and starts a new page when we run out of room."""

    def __init__(self, pdf_canvas: canvas.Canvas, height: float):
        self.canvas = pdf_canvas
        self.height = height
        self.y = height - 50

    def line(self, text: str, x: int = INDENT, font: str = "Helvetica", size: int = 10, gap: int = 15) -> None:
        if self.y < BOTTOM_MARGIN:
            self.canvas.showPage()
            self.y = self.height - 50
        self.canvas.setFont(font, size)
        self.canvas.drawString(x, self.y, text)
        self.y -= gap

    def heading(self, text: str) -> None:
        self.y -= 10
        self.line(text, x=LEFT, font="Helvetica-Bold", size=12, gap=20)


def render_integrity_pdf(report: IntegrityReport) -> bytes:
    buffer = BytesIO()
    pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
    _, height = A4
    page = _PageWriter(pdf_canvas, height)

    page.line("IP Inventory Integrity Report", x=LEFT, font="Helvetica-Bold", size=14, gap=30)
    if report.checked_at is not None:
        page.line(f"Checked at: {report.checked_at:%Y-%m-%d %H:%M:%S %Z}", x=LEFT)
    page.line(f"Status: {report.status}    Health score: {report.health_score}/100", x=LEFT)

    summary = report.summary
    page.heading("Summary")
    page.line(f"IP addresses: {summary.total_ips}")
    page.line(f"Active assignments: {summary.active_assignments}")
    page.line(f"Duplicate address records: {summary.duplicate_records}")
    page.line(f"Assignment conflicts: {summary.conflicts}")
    page.line(f"Status mismatches: {summary.mismatches}")

    if report.duplicate_records:
        page.heading("Duplicate address records")
        for duplicate in report.duplicate_records:
            ids = ", ".join(record.id for record in duplicate.records)
            page.line(f"{duplicate.address}: {duplicate.record_count} records (ids {ids})")

    if report.conflicts:
        page.heading("Assignment conflicts")
        for conflict in report.conflicts:
            page.line(f"{conflict.ip_address}: {conflict.assignment_count} active assignments")
            for assignment in conflict.assignments:
                assigned_at = f"{assignment.assigned_at:%Y-%m-%d %H:%M}" if assignment.assigned_at else "unknown"
                page.line(
                    f"- {assignment.equipment_name} ({assignment.equipment_type}), "
                    f"since {assigned_at} by {assignment.assigned_by}",
                    x=INDENT + 15,
                )

    if report.mismatches:
        page.heading("Status mismatches")
        for mismatch in report.mismatches:
            page.line(
                f"{mismatch.address}: {mismatch.current_status} -> expected {mismatch.expected_status} "
                f"({mismatch.active_assignments} active)"
            )

    page.heading("Recommendations")
    for recommendation in report.recommendations:
        page.line(recommendation)

    pdf_canvas.showPage()
    pdf_canvas.save()
    return buffer.getvalue()
