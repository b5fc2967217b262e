"""
File parsers module.
"""

from parsers.csv_parser import (
    parse_csv,
    read_records,
    parse_owned_vehicle_csv,
    CSVRecord,
    MIN_COLUMNS,
)

__all__ = [
    "parse_csv",
    "read_records",
    "parse_owned_vehicle_csv",
    "CSVRecord",
    "MIN_COLUMNS",
]
