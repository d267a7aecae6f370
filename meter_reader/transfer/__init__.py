"""CSV export/import package."""

from meter_reader.transfer.csv_transfer import (
    HEADER,
    ImportFailedError,
    TransferError,
    lenient_float,
    parse,
    serialize,
)

__all__ = [
    "HEADER",
    "ImportFailedError",
    "TransferError",
    "lenient_float",
    "parse",
    "serialize",
]
