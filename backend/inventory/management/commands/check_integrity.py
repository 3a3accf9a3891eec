"""Run the IP integrity scan; exits with status 1 when anything needs attention."""
from __future__ import annotations

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from inventory.errors import NetworkOrStoreError
from inventory.integrity import scan_integrity
from inventory.reports import render_integrity_pdf
from inventory.store import DjangoInventoryStore


class Command(BaseCommand):
    help = "Scan addresses and assignments for duplicates, conflicts and status mismatches."

    def add_arguments(self, parser):
        parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
        parser.add_argument("--pdf", metavar="PATH", help="Also write the report as a PDF")

    def handle(self, *args, **options):
        try:
            report = scan_integrity(DjangoInventoryStore())
        except NetworkOrStoreError as exc:
            raise CommandError(exc.message) from exc

        if options["pdf"]:
            path = Path(options["pdf"])
            path.write_bytes(render_integrity_pdf(report))
            self.stdout.write(f"PDF report written to {path}")

        if options["json"]:
            self.stdout.write(json.dumps(report.to_dict(), indent=2))
        else:
            summary = report.summary
            self.stdout.write(f"Status: {report.status} (health score {report.health_score})")
            self.stdout.write(
                f"{summary.total_ips} IPs, {summary.active_assignments} active assignments, "
                f"{summary.duplicate_records} duplicate records, {summary.conflicts} conflicts, "
                f"{summary.mismatches} status mismatches"
            )
            for recommendation in report.recommendations:
                self.stdout.write(f"  - {recommendation}")

        if report.summary.total_issues:
            raise CommandError(f"{report.summary.total_issues} integrity issue(s) found", returncode=1)
