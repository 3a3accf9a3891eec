"""
Workbook reading: the sheet catalog and the row parser.

Pandas does the actual file work (openpyxl underneath for .xlsx). Every cell
is turned into a trimmed string straight away, so the rest of the import
never sees NaN, floats or None.
"""
from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .addresses import is_valid_ipv4, normalize_ip
from .errors import EmptySheet, InvalidWorkbook, SheetNotFound
from .records import ParseResult, RawRow, SheetInfo, SkippedRow

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv", ".txt"}

# Field order doubles as the positional fallback when a header is not recognised.
COLUMN_FIELDS = ("machine_id", "system", "ip_address", "subnet", "gateway", "comments")

# Header text is compared after lower-casing and dropping spaces, "_" and "-".
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "machine_id": ("machineid", "machine", "equipmentid", "equipment", "unitid", "id"),
    "system": ("system", "systemname", "component", "device", "name"),
    "ip_address": ("ipaddress", "ip", "ipaddr", "address"),
    "subnet": ("subnetmask", "subnet", "netmask", "mask"),
    "gateway": ("gateway", "defaultgateway", "gw", "router"),
    "comments": ("comments", "comment", "notes", "note", "description", "remarks", "remark", "memo"),
}

# Second pass for decorated headers ("IP Address (v4)", "Machine No.") that match no alias.
HEADER_FRAGMENTS: dict[str, re.Pattern[str]] = {
    "machine_id": re.compile(r"machine|equipment"),
    "ip_address": re.compile(r"^ip|ipaddr"),
    "subnet": re.compile(r"subnet|mask"),
}


@dataclass(frozen=True)
class Workbook:
    """An opened workbook: sheet name -> grid of cell strings, in workbook order."""

    filename: str
    sheets: dict[str, list[list[str]]]

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    def rows(self, sheet_name: str) -> list[list[str]]:
        try:
            return self.sheets[sheet_name]
        except KeyError:
            raise SheetNotFound(f'Sheet "{sheet_name}" not found') from None


def open_workbook(data: bytes, filename: str | None = None) -> Workbook:
    """
    Open uploaded bytes as a workbook.

    ``.csv`` uploads become a single sheet named after the file. Everything
    else goes through ``pandas.read_excel`` (openpyxl for .xlsx, xlrd for
    .xls). Bytes pandas cannot open are reported as ``InvalidWorkbook``; a
    missing reader engine is an installation problem and its ImportError
    propagates.
    """
    name = filename or "upload.xlsx"
    if not data:
        raise InvalidWorkbook(f"{name} is empty")

    suffix = Path(name).suffix.lower()
    try:
        if suffix in CSV_SUFFIXES:
            frames = {Path(name).stem or "Sheet1": _read_csv(data)}
        else:
            frames = pd.read_excel(BytesIO(data), sheet_name=None, header=None, dtype=object)
    except (ValueError, OSError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
        logger.warning("Could not open %s as a workbook: %s", name, exc)
        raise InvalidWorkbook(f"Could not read {name} as a spreadsheet: {exc}") from exc

    if not frames:
        raise InvalidWorkbook(f"No sheets found in {name}")

    sheets = {str(sheet_name): _frame_rows(frame) for sheet_name, frame in frames.items()}
    logger.debug("Opened %s with sheets %s", name, list(sheets))
    return Workbook(filename=name, sheets=sheets)


def catalog_sheets(workbook: Workbook) -> list[SheetInfo]:
    """Describe every sheet; ``has_data`` needs at least one non-blank row below the header."""
    catalog: list[SheetInfo] = []
    for name, grid in workbook.sheets.items():
        filled = [row for row in grid if not _is_blank(row)]
        catalog.append(
            SheetInfo(
                name=name,
                row_count=len(grid),
                column_count=max((len(row) for row in grid), default=0),
                has_data=len(filled) > 1,
            )
        )
    return catalog


def auto_select_sheet(sheets: list[SheetInfo]) -> str | None:
    """Return the sheet name when exactly one sheet carries data."""
    with_data = [sheet for sheet in sheets if sheet.has_data]
    if len(with_data) == 1:
        return with_data[0].name
    return None


def detect_columns(header: list[str]) -> dict[str, int]:
    """
    Map field names to column positions.

    Header text wins: exact aliases first, then the fragments for headers
    with extra text around the name. Fields the header does not name fall
    back to the template position (MACHINE ID, SYSTEM, IP ADDRESS, SUBNET
    MASK, GATEWAY, COMMENTS) unless another field already claimed that column.
    """
    mapping: dict[str, int] = {}
    for index, cell in enumerate(header):
        key = _header_key(cell)
        if not key:
            continue
        for field_name, aliases in HEADER_ALIASES.items():
            if field_name not in mapping and key in aliases:
                mapping[field_name] = index
                break

    claimed = set(mapping.values())
    for index, cell in enumerate(header):
        key = _header_key(cell)
        if not key or index in claimed:
            continue
        for field_name, pattern in HEADER_FRAGMENTS.items():
            if field_name not in mapping and pattern.search(key):
                mapping[field_name] = index
                claimed.add(index)
                break

    used = set(mapping.values())
    for position, field_name in enumerate(COLUMN_FIELDS):
        if field_name not in mapping and position not in used:
            mapping[field_name] = position
            used.add(position)
    return mapping


def parse_sheet(workbook: Workbook, sheet_name: str) -> ParseResult:
    """
    Read one sheet into RawRow records.

    The first non-blank row is the header. Rows without a machine id or an IP
    address, or with an address that is not IPv4, are skipped and listed in
    ``skipped_rows`` instead of failing the import.
    """
    grid = workbook.rows(sheet_name)
    header_pos = next((index for index, row in enumerate(grid) if not _is_blank(row)), None)
    if header_pos is None:
        raise EmptySheet(f'Sheet "{sheet_name}" is empty')

    columns = detect_columns(grid[header_pos])
    rows: list[RawRow] = []
    skipped: list[SkippedRow] = []
    seen_data = False

    for row_index, cells in enumerate(grid[header_pos + 1 :], start=1):
        if _is_blank(cells):
            continue
        values = {name: _cell(cells, columns.get(name)) for name in COLUMN_FIELDS}
        if _repeats_header(values):
            continue
        seen_data = True

        if not values["machine_id"]:
            skipped.append(SkippedRow(row_index, "missing machine id"))
            continue
        if not values["ip_address"]:
            skipped.append(SkippedRow(row_index, "missing IP address"))
            continue
        if not is_valid_ipv4(values["ip_address"]):
            skipped.append(SkippedRow(row_index, f'invalid IP address "{values["ip_address"]}"'))
            continue

        rows.append(RawRow(row_index=row_index, **values))

    if not seen_data:
        raise EmptySheet(f'Sheet "{sheet_name}" has no data rows')
    if not rows:
        raise EmptySheet(
            f'Sheet "{sheet_name}" has no rows with both a machine id and a valid IP address'
        )

    if skipped:
        logger.info("Skipped %s row(s) in sheet %s", len(skipped), sheet_name)

    return ParseResult(
        rows=tuple(rows),
        total_rows=len(rows),
        total_ips=len({normalize_ip(row.ip_address) for row in rows}),
        skipped_rows=tuple(skipped),
    )


def _read_csv(data: bytes) -> pd.DataFrame:
    try:
        return pd.read_csv(
            BytesIO(data),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def _frame_rows(frame: pd.DataFrame) -> list[list[str]]:
    grid = [
        [_cell_text(value) for value in record]
        for record in frame.itertuples(index=False, name=None)
    ]
    while grid and _is_blank(grid[-1]):
        grid.pop()
    return grid


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _cell(cells: list[str], index: int | None) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index]


def _is_blank(cells: list[str]) -> bool:
    return all(not cell for cell in cells)


def _header_key(text: str) -> str:
    return re.sub(r"[\s_\-]", "", (text or "").lower())


def _repeats_header(values: dict[str, str]) -> bool:
    return (
        _header_key(values["machine_id"]) in HEADER_ALIASES["machine_id"]
        and _header_key(values["ip_address"]) in HEADER_ALIASES["ip_address"]
    )
