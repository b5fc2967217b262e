"""
CSV parser for owned-vehicle exports.

The collection spreadsheet is exported as CSV with a fixed positional
layout:

    line 1   row-number line (discarded)
    line 2   header (only its column count is checked)
    line 3+  one owned vehicle per record

Quoting follows RFC 4180: quoted fields may contain commas and line
breaks, and "" inside quotes is a literal quote. A record with broken
quoting is reported and parsing resumes on the next physical line.
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterator, Optional
import structlog

from exceptions import CSVParseError
from models.owned_vehicle import StorageCondition, VehicleStatus
from models.vehicle_import import CandidateRow, OwnedVehicleParseResult
from utils.text_utils import clean_text, convert_html_breaks

logger = structlog.get_logger(__name__)


# ===================
# COLUMN LAYOUT
# ===================

NO_COL = 0
CATEGORY_COL = 1
SERIES_COL = 2
VEHICLE_TYPE_COL = 6
BRAND_COL = 7
CODE_COL = 8
PRICE_INCL_TAX_COL = 11
STORE_COL = 12
PURCHASE_DATE_COL = 13
ID_COL = 14
NOTES1_COL = 16
CASE_COL = 17
NOTES2_COL = 18

# Columns after ID are optional, so ragged rows still parse.
MIN_COLUMNS = max(NO_COL, ID_COL) + 1

WITHOUT_CASE_VALUES = {"ケースなし", "なし", "no", "none", "without case", "no case"}

_DATE_PATTERN = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")


@dataclass
class CSVRecord:
    """One logical CSV record and the physical line it starts on."""
    line: int
    cells: list[str]
    error: Optional[str] = None


# ===================
# GENERIC TOKENIZER
# ===================

def read_records(text: str) -> list[CSVRecord]:
    """
    Split CSV text into records.

    Blank records are dropped. Cells are whitespace-trimmed.

    Args:
        text: Raw CSV content

    Returns:
        Records in input order; a record whose quoting could not be read
        has error set and no cells
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    records = []
    for line, cells, error in _iter_raw_records(io.StringIO(text, newline="").readlines()):
        if error is not None:
            records.append(CSVRecord(line=line, cells=[], error=error))
            continue

        cells = [cell.strip() for cell in cells]
        if not any(cells):
            continue

        records.append(CSVRecord(line=line, cells=cells))

    return records


def parse_csv(text: str) -> list[list[str]]:
    """Parse CSV text into rows of trimmed cells, skipping blank and unreadable records."""
    return [r.cells for r in read_records(text) if r.error is None]


def _iter_raw_records(lines: list[str]) -> Iterator[tuple[int, list[str], Optional[str]]]:
    """Yield (first line number, cells, error) for every record, blank ones included."""
    start = 0
    while start < len(lines):
        reader = csv.reader(lines[start:], strict=True, skipinitialspace=True)
        consumed = 0
        try:
            for cells in reader:
                yield start + consumed + 1, cells, None
                consumed = reader.line_num
            return
        except csv.Error as e:
            bad_line = start + consumed + 1
            logger.debug("csv_record_unreadable", line=bad_line, error=str(e))
            yield bad_line, [], f"unreadable quoting ({e})"
            start = bad_line


# ===================
# OWNED VEHICLE CSV
# ===================

def parse_owned_vehicle_csv(text: str) -> OwnedVehicleParseResult:
    """
    Parse an owned-vehicle CSV export.

    Args:
        text: Raw CSV content

    Returns:
        OwnedVehicleParseResult with candidate rows and row-level errors

    Raises:
        CSVParseError: If the content is empty, has no header, or the
            header has fewer columns than the layout needs
    """
    if not text or not text.strip():
        raise CSVParseError("CSV file is empty")

    records = read_records(text)
    if not records:
        raise CSVParseError("CSV file is empty")
    if len(records) < 2:
        raise CSVParseError("Header row not found")

    header = records[1]
    if header.error is not None:
        raise CSVParseError(
            "Header row could not be read",
            details={"line": header.line, "error": header.error}
        )
    if len(header.cells) < MIN_COLUMNS:
        raise CSVParseError(
            f"Not enough columns: expected at least {MIN_COLUMNS}, got {len(header.cells)}",
            details={"expected": MIN_COLUMNS, "actual": len(header.cells)}
        )

    result = OwnedVehicleParseResult()

    for record in records[2:]:
        if record.error is not None:
            result.skipped_rows.append(record.line)
            result.errors.append(f"Row {record.line}: {record.error}")
            continue

        if len(record.cells) < MIN_COLUMNS:
            result.skipped_rows.append(record.line)
            result.errors.append(
                f"Row {record.line}: expected at least {MIN_COLUMNS} columns, "
                f"got {len(record.cells)}"
            )
            continue

        result.rows.append(_build_candidate(record))

    logger.info(
        "owned_vehicle_csv_parsed",
        row_count=len(result.rows),
        error_count=len(result.errors)
    )

    return result


def _build_candidate(record: CSVRecord) -> CandidateRow:
    cells = record.cells

    def get(index: int) -> Optional[str]:
        if index >= len(cells):
            return None
        return cells[index] or None

    category = get(CATEGORY_COL) or ""
    series = get(SERIES_COL) or ""
    product_name = f"{category} {series}".strip() or None

    store = get(STORE_COL)
    notes = ", ".join(
        part for part in (
            get(NOTES1_COL),
            get(NOTES2_COL),
            f"Store: {store}" if store else None,
        )
        if part
    )

    return CandidateRow(
        row_number=record.line,
        management_id=get(ID_COL) or "",
        brand=clean_text(get(BRAND_COL), max_length=100),
        product_code=clean_text(get(CODE_COL), max_length=100),
        product_name=clean_text(product_name),
        vehicle_type=clean_text(get(VEHICLE_TYPE_COL), max_length=100),
        current_status=VehicleStatus.NORMAL,
        storage_condition=_parse_storage(get(CASE_COL)),
        purchase_date=_parse_date(get(PURCHASE_DATE_COL)),
        purchase_price=_parse_price(get(PRICE_INCL_TAX_COL)),
        notes=convert_html_breaks(notes or None),
    )


def _parse_storage(value: Optional[str]) -> StorageCondition:
    if value and value.strip().lower() in WITHOUT_CASE_VALUES:
        return StorageCondition.WITHOUT_CASE
    return StorageCondition.WITH_CASE


def _parse_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY/MM/DD or YYYY-MM-DD; anything else is treated as missing."""
    if not value:
        return None

    match = _DATE_PATTERN.match(value.strip())
    if not match:
        return None

    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def _parse_price(value: Optional[str]) -> Optional[Decimal]:
    """Parse a price like "¥12,800"; invalid or negative values become None."""
    if not value:
        return None

    cleaned = re.sub(r"[¥￥,円\s]", "", value)
    if not cleaned:
        return None

    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not price.is_finite() or price < 0:
        return None
    return price
