"""The downloadable CSV template. Column order must match the parser's positional fallback."""
from __future__ import annotations

import csv
from io import StringIO

TEMPLATE_FILENAME = "equipment-import-template.csv"

TEMPLATE_HEADERS = ("MACHINE ID", "SYSTEM", "IP ADDRESS", "SUBNET MASK", "GATEWAY", "COMMENTS")

TEMPLATE_SAMPLE_ROWS = (
    ("FS03", "ROCKY COMPUTER", "10.31.141.216", "255.255.255.0", "10.31.141.1", "ip addresses done"),
    ("FS03", "PLC S7-400", "10.31.141.213", "255.255.255.0", "10.31.141.1", "ip addresses done"),
    ("FS03", "SIBAS", "10.31.141.219", "255.255.255.0", "10.31.141.1", "ip addresses done"),
    ("FS02", "ROCKY COMPUTER", "10.31.145.211", "255.255.255.0", "10.31.145.1", "ip addresses done"),
    ("FS02", "PLC S7-400", "10.31.145.212", "255.255.255.0", "10.31.145.1", "ip addresses done"),
)


def build_template_csv() -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerows(TEMPLATE_SAMPLE_ROWS)
    return buffer.getvalue()
