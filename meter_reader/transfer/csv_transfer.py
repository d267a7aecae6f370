"""
Reading Export / Import

Flat CSV format, one row per reading:

    "Meter Number","Meter Name","Date","Time","Current Reading","Image Blob"

- Date is YYYY-MM-DD, Time is HH:MM:SS (no fractions, no timezone)
- Image Blob is the base64 JPEG payload, empty when the reading has no photo
- Every cell is quoted; embedded quotes are doubled

DESIGN DECISION: Import is tolerant per row and strict per file.
A bad row is skipped and counted; a file without the header row is refused
as a whole. Parsing never touches the registry - it only returns what
would be added, and the caller merges it after the full pass.
"""

import csv
import io
import math
import re
from datetime import datetime
from typing import Iterable, Sequence

import structlog
from pydantic import ValidationError

from meter_reader.models.meter import (
    MAX_NAME_LENGTH,
    ImportResult,
    Meter,
    Reading,
    to_local_naive,
)
from meter_reader.services.image import data_url_payload, payload_to_data_url

logger = structlog.get_logger(__name__)

HEADER = [
    "Meter Number",
    "Meter Name",
    "Date",
    "Time",
    "Current Reading",
    "Image Blob",
]

UNKNOWN = "Unknown"

# Photos are stored inline, so cells can be far larger than csv's 128 KiB default
_MAX_FIELD_SIZE = 64 * 1024 * 1024

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class TransferError(Exception):
    """Base exception for export/import errors."""
    pass


class ImportFailedError(TransferError):
    """The file as a whole cannot be imported."""
    pass


def _format_value(value: float) -> str:
    # 140.0 -> "140", 140.5 -> "140.5"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def lenient_float(text: str) -> float:
    """
    Parse the leading number of a cell; anything unparsable becomes 0.

    "140.5" -> 140.5, "140 kWh" -> 140.0, "abc" -> 0.0, "inf" -> 0.0
    """
    match = _LEADING_NUMBER.match((text or "").strip())
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def serialize(meters: Sequence[Meter], readings: Iterable[Reading]) -> str:
    """Render the reading log as CSV text (header included)."""
    by_id = {m.id: m for m in meters}

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADER)

    for reading in readings:
        meter = by_id.get(reading.meter_id)
        taken_at = reading.date.replace(microsecond=0)
        writer.writerow([
            meter.number if meter else UNKNOWN,
            meter.name if meter else UNKNOWN,
            taken_at.date().isoformat(),
            taken_at.time().isoformat(),
            _format_value(reading.reading),
            data_url_payload(reading.image),
        ])

    return buffer.getvalue().rstrip("\n")


def _parse_timestamp(date_text: str, time_text: str) -> datetime:
    return to_local_naive(datetime.fromisoformat(f"{date_text}T{time_text}"))


def _meter_name(name: str, number: str) -> str:
    # Empty or over-long names fall back to the number
    if not name or len(name) > MAX_NAME_LENGTH:
        return f"Meter {number}"
    return name


def parse(text: str, existing_meters: Sequence[Meter]) -> ImportResult:
    """
    Parse exported CSV text into new meters and readings.

    Rows are handled in file order. A meter number not seen before creates a
    meter (named from the row, or "Meter <number>"), and later rows with the
    same number attach to it.

    Raises:
        ImportFailedError: Empty file, missing header, or broken CSV
    """
    if not text or not text.strip():
        raise ImportFailedError("The file is empty")

    csv.field_size_limit(max(csv.field_size_limit(), _MAX_FIELD_SIZE))
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))

    try:
        header = next(reader, None)
        if not header or header[0].strip().strip('"').lower() != HEADER[0].lower():
            raise ImportFailedError("The file does not start with the expected header row")

        meters_by_number = {m.number: m for m in existing_meters}
        new_meters: list[Meter] = []
        new_readings: list[Reading] = []
        skipped = 0

        for row in reader:
            if not any(cell.strip() for cell in row):
                continue

            cells = [cell.strip() for cell in row] + [""] * (len(HEADER) - len(row))
            number, name, date_text, time_text, value_text, image_text = cells[:len(HEADER)]

            if not number or not value_text:
                skipped += 1
                logger.warning("import_row_skipped", line=reader.line_num, reason="missing_field")
                continue

            try:
                taken_at = _parse_timestamp(date_text, time_text)
                meter = meters_by_number.get(number)
                if meter is None:
                    meter = Meter(
                        name=_meter_name(name, number),
                        number=number,
                        last_month_reading=0.0,
                    )
                    new_meters.append(meter)
                    meters_by_number[number] = meter

                new_readings.append(Reading(
                    meter_id=meter.id,
                    reading=lenient_float(value_text),
                    date=taken_at,
                    image=payload_to_data_url(image_text),
                ))
            except (ValueError, ValidationError) as e:
                skipped += 1
                logger.warning("import_row_skipped", line=reader.line_num, reason=str(e))

    except csv.Error as e:
        raise ImportFailedError(f"The file is not valid CSV: {e}")

    logger.info(
        "import_parsed",
        readings=len(new_readings),
        new_meters=len(new_meters),
        skipped_rows=skipped,
    )
    return ImportResult(
        new_meters=new_meters,
        new_readings=new_readings,
        skipped_rows=skipped,
    )
